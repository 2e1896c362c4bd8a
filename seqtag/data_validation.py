from __future__ import annotations
from typing import Any, Dict, Iterable, List, Sequence

from .codecs import parse_outcome
from .types import Span, SequenceCodec


def validate_outcomes(outcomes: Sequence[str], codec: SequenceCodec) -> Dict[str, Any]:
    """
    Checks a tag stream against the rules of a codec.

    Every position is tested with the codec's own sequence validator, so the
    report flags exactly the transitions the decoder would never produce:
    -   Tags that do not parse as an outcome of the codec.
    -   Continuations that do not follow an open entity of the same type, or
        (for BILOU) entities left open before ``other``, ``start`` or ``unit``.

    Args:
        outcomes: The per-token tags to check.
        codec: The codec the tags are meant for.

    Returns:
        A dictionary with the total `issue_count` and a list of `issues`, each
        a dictionary describing one problem.
    """
    issues = []
    validator = codec.create_sequence_validator()

    for i, tag in enumerate(outcomes):
        if parse_outcome(tag) is None:
            issues.append({
                "type": "unknown_tag_error",
                "idx": i,
                "tag": tag,
                "message": f"Tag '{tag}' at index {i} is not a valid outcome."
            })
            continue
        if not validator.valid_sequence(i, outcomes, outcomes[:i], tag):
            issues.append({
                "type": "illegal_transition_error",
                "idx": i,
                "tag": tag,
                "message": f"Tag '{tag}' at index {i} may not follow {(outcomes[i - 1] if i else 'the sentence start')!r}."
            })

    return {"issue_count": len(issues), "issues": issues}


def validate_spans(spans: Iterable[Span], length: int) -> Dict[str, Any]:
    """
    Checks that spans fit in a sentence of ``length`` tokens and do not overlap.

    Returns:
        A dictionary with the total `issue_count` and a list of `issues`.
    """
    issues = []
    ordered = sorted(spans)

    for span in ordered:
        if span.end > length:
            issues.append({
                "type": "out_of_bounds_error",
                "span": str(span),
                "message": f"Span {span} reaches past the end of a {length}-token sentence."
            })

    # `widest` is the earlier span reaching furthest right.
    widest = None
    for cur in ordered:
        if widest is not None and widest.intersects(cur):
            issues.append({
                "type": "overlap_error",
                "span": str(cur),
                "other": str(widest),
                "message": f"Span {cur} overlaps span {widest}."
            })
        if widest is None or cur.end > widest.end:
            widest = cur

    return {"issue_count": len(issues), "issues": issues}


def drop_overlapping_spans(spans: Iterable[Span]) -> List[Span]:
    """Sorts the spans and drops every span that intersects one kept before it."""
    kept: List[Span] = []
    for span in sorted(spans):
        if kept and kept[-1].intersects(span):
            continue
        kept.append(span)
    return kept
