"""Span <-> outcome-tag codecs and the transition validators they supply.

Two tag schemes are supported:

-   **BIO**: ``<type>-start`` opens an entity, ``<type>-cont`` continues it and
    ``other`` marks tokens outside any entity.
-   **BILOU**: adds ``<type>-last`` to close a multi-token entity and
    ``<type>-unit`` for single-token entities. Every opened entity must be
    closed explicitly.

Each codec can encode spans into tags, decode tags into spans, hand out the
`SequenceValidator` the beam search uses to prune illegal transitions, and
check at load time whether a model's outcome vocabulary fits the scheme.
"""
from __future__ import annotations
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .data_structures import DFA, ERROR_STATE
from .types import CONTINUE, DEFAULT_TYPE, LAST, OTHER, START, UNIT, Outcome, Span

__all__ = [
    "OutcomeFormatError",
    "parse_outcome",
    "extract_name_type",
    "BioSequenceValidator",
    "BilouSequenceValidator",
    "BioCodec",
    "BilouCodec",
    "CODECS",
    "get_codec",
]

_KIND_ORDER = {START: 0, CONTINUE: 1, LAST: 2, UNIT: 3}


class OutcomeFormatError(ValueError):
    """Raised when a tag stream holds a tag the codec does not understand."""

    def __init__(self, tag: str, position: int):
        super().__init__(f"Unrecognized outcome tag {tag!r} at position {position}.")
        self.tag = tag
        self.position = position


@lru_cache(maxsize=4096)
def parse_outcome(tag: str) -> Optional[Outcome]:
    """
    Split a wire-format tag into its kind and entity type.

    The type is everything before the last ``-``, so types may contain hyphens
    themselves (``"B-MISC-start"`` has type ``"B-MISC"``).

    Returns:
        The parsed `Outcome`, or ``None`` if the tag is not ``"other"`` and does
        not end in one of the known suffixes.
    """
    if tag == OTHER:
        return Outcome(OTHER)
    name_type, sep, suffix = tag.rpartition("-")
    if not sep or not name_type or suffix not in _KIND_ORDER:
        return None
    return Outcome(suffix, name_type)


def extract_name_type(tag: str) -> Optional[str]:
    parsed = parse_outcome(tag)
    return parsed.type if parsed is not None else None


def _previous_outcome(index: int, outcomes: Sequence[str]) -> Optional[Outcome]:
    if index <= 0 or not outcomes:
        return None
    return parse_outcome(outcomes[index - 1])


def _tag(name_type: Optional[str], kind: str) -> str:
    return f"{name_type if name_type is not None else DEFAULT_TYPE}-{kind}"


def _check_span(span: Span, length: int) -> None:
    if span.end > length:
        raise ValueError(f"Span {span} does not fit into a sequence of length {length}.")
    if span.start == span.end:
        raise ValueError(f"Cannot encode the empty span {span}.")


def _canonical_order(outcomes: Iterable[str], kinds: frozenset) -> Optional[List[Outcome]]:
    """
    Order a vocabulary so that a left-to-right automaton can judge it as a set.

    ``other`` comes first, then each entity type (sorted by name) with its tags
    in start/cont/last/unit order. Returns ``None`` if any tag is unknown to
    the codec.
    """
    parsed = set()
    for tag in outcomes:
        outcome = parse_outcome(tag)
        if outcome is None or outcome.kind not in kinds:
            return None
        parsed.add(outcome)
    others = [o for o in parsed if o.kind == OTHER]
    typed = sorted((o for o in parsed if o.kind != OTHER), key=lambda o: (o.type, _KIND_ORDER[o.kind]))
    return others + typed


class BioSequenceValidator:
    """
    Transition rules for BIO tags.

    A ``cont`` must directly follow a ``start`` or ``cont`` of the same type.
    ``start`` and ``other`` are always allowed.
    """

    def valid_sequence(self, index: int, input_sequence: Sequence[Any], outcomes: Sequence[str], outcome: str) -> bool:
        parsed = parse_outcome(outcome)
        if parsed is None or parsed.kind not in BioCodec.KINDS:
            return False
        if parsed.kind != CONTINUE:
            return True
        previous = _previous_outcome(index, outcomes)
        if previous is None:
            return False
        return previous.kind in (START, CONTINUE) and previous.type == parsed.type


class BilouSequenceValidator:
    """
    Transition rules for BILOU tags.

    While an entity is open (the previous tag is a ``start`` or ``cont``) the
    only legal tags are ``cont`` or ``last`` of the same type. Otherwise
    ``start``, ``unit`` and ``other`` are legal and ``cont``/``last`` are not.
    """

    def valid_sequence(self, index: int, input_sequence: Sequence[Any], outcomes: Sequence[str], outcome: str) -> bool:
        parsed = parse_outcome(outcome)
        if parsed is None or parsed.kind not in BilouCodec.KINDS:
            return False
        previous = _previous_outcome(index, outcomes)
        is_open = previous is not None and previous.kind in (START, CONTINUE)
        if parsed.kind in (CONTINUE, LAST):
            return is_open and previous.type == parsed.type
        return not is_open


class BioCodec:
    """Encodes spans as BIO tags (``start``/``cont``/``other``)."""

    KINDS = frozenset({OTHER, START, CONTINUE})

    # state transition chart
    #
    #                     | state |
    #                     +---+---+
    #        symbol       | 0 | 1 |
    #  -------------------+---+---+
    #  0 (other)          | 0 | 1 |
    #  1 (start)          | 1 | 1 |
    #  2 (cont; same type)|ERR| 1 |
    #  3 (cont; diff type)|ERR|ERR|
    #
    #  initial state: 0, accepting states: {1}
    MOVE_FUNCTION = (
        (0, 1, ERROR_STATE, ERROR_STATE),
        (1, 1, 1, ERROR_STATE),
    )
    ACCEPTING_STATES = (1,)

    def _parse(self, tag: str, position: int) -> Outcome:
        parsed = parse_outcome(tag)
        if parsed is None or parsed.kind not in self.KINDS:
            raise OutcomeFormatError(tag, position)
        return parsed

    def encode(self, spans: Iterable[Span], length: int) -> List[str]:
        outcomes = [OTHER] * length
        for span in spans:
            _check_span(span, length)
            outcomes[span.start] = _tag(span.type, START)
            for i in range(span.start + 1, span.end):
                outcomes[i] = _tag(span.type, CONTINUE)
        return outcomes

    def decode(self, outcomes: Sequence[str]) -> List[Span]:
        """
        Turn a BIO tag stream into spans.

        The decoder trusts its input: a ``cont`` extends whatever span is open
        without checking the type, and a ``cont`` with nothing open is skipped.
        The span type is taken from the last tag inside the span.

        Raises:
            OutcomeFormatError: If a tag is not a BIO tag.
        """
        spans: List[Span] = []
        start = end = -1
        for li, tag in enumerate(outcomes):
            parsed = self._parse(tag, li)
            if parsed.kind == START:
                if start != -1:
                    spans.append(Span(start, end, extract_name_type(outcomes[li - 1])))
                start, end = li, li + 1
            elif parsed.kind == CONTINUE:
                end = li + 1
            elif start != -1:
                spans.append(Span(start, end, extract_name_type(outcomes[li - 1])))
                start = end = -1

        if start != -1:
            spans.append(Span(start, end, extract_name_type(outcomes[-1])))
        return spans

    def create_sequence_validator(self) -> BioSequenceValidator:
        return BioSequenceValidator()

    def _symbols(self, ordered: List[Outcome]) -> List[int]:
        symbols = []
        current_type = None
        for outcome in ordered:
            if outcome.kind == OTHER:
                symbols.append(0)
            elif outcome.kind == START:
                current_type = outcome.type
                symbols.append(1)
            else:
                symbols.append(2 if outcome.type == current_type else 3)
        return symbols

    def are_outcomes_compatible(self, outcomes: Iterable[str]) -> bool:
        """
        Check that a model's outcome vocabulary is a usable BIO tag set.

        There must be at least one ``start`` tag and every ``cont`` type needs
        a matching ``start``. The order of ``outcomes`` does not matter.
        """
        ordered = _canonical_order(outcomes, self.KINDS)
        if ordered is None:
            return False
        return DFA(0, self.MOVE_FUNCTION, self.ACCEPTING_STATES).run(self._symbols(ordered))


class BilouCodec:
    """Encodes spans as BILOU tags (``start``/``cont``/``last``/``unit``/``other``)."""

    KINDS = frozenset({OTHER, START, CONTINUE, LAST, UNIT})

    # state transition chart
    #
    #                     |   state   |
    #                     +---+---+---+
    #        symbol       | 0 | 1 | 2 |
    #  -------------------+---+---+---+
    #  0 (other)          | 0 |ERR| 2 |
    #  1 (start)          | 1 |ERR| 1 |
    #  2 (cont; same type)|ERR| 1 |ERR|
    #  3 (cont; diff type)|ERR|ERR|ERR|
    #  4 (last; same type)|ERR| 2 |ERR|
    #  5 (last; diff type)|ERR|ERR|ERR|
    #  6 (unit)           | 2 |ERR| 2 |
    #
    #  initial state: 0, accepting states: {2}
    MOVE_FUNCTION = (
        (0, 1, ERROR_STATE, ERROR_STATE, ERROR_STATE, ERROR_STATE, 2),
        (ERROR_STATE, ERROR_STATE, 1, ERROR_STATE, 2, ERROR_STATE, ERROR_STATE),
        (2, 1, ERROR_STATE, ERROR_STATE, ERROR_STATE, ERROR_STATE, 2),
    )
    ACCEPTING_STATES = (2,)

    def _parse(self, tag: str, position: int) -> Outcome:
        parsed = parse_outcome(tag)
        if parsed is None or parsed.kind not in self.KINDS:
            raise OutcomeFormatError(tag, position)
        return parsed

    def encode(self, spans: Iterable[Span], length: int) -> List[str]:
        outcomes = [OTHER] * length
        for span in spans:
            _check_span(span, length)
            if span.length() == 1:
                outcomes[span.start] = _tag(span.type, UNIT)
                continue
            outcomes[span.start] = _tag(span.type, START)
            for i in range(span.start + 1, span.end - 1):
                outcomes[i] = _tag(span.type, CONTINUE)
            outcomes[span.end - 1] = _tag(span.type, LAST)
        return outcomes

    def decode(self, outcomes: Sequence[str]) -> List[Span]:
        """
        Turn a BILOU tag stream into spans.

        Only closed entities are emitted: a ``start`` ... ``last`` run or a
        ``unit``. An entity interrupted by ``other``, ``unit`` or a new
        ``start``, or left open at the end of the stream is dropped.

        Raises:
            OutcomeFormatError: If a tag is not a BILOU tag.
        """
        spans: List[Span] = []
        start = -1
        for li, tag in enumerate(outcomes):
            parsed = self._parse(tag, li)
            if parsed.kind == START:
                start = li
            elif parsed.kind == LAST:
                if start != -1:
                    spans.append(Span(start, li + 1, extract_name_type(outcomes[li - 1])))
                    start = -1
            elif parsed.kind == UNIT:
                spans.append(Span(li, li + 1, parsed.type))
                start = -1
            elif parsed.kind == OTHER:
                start = -1
        return spans

    def create_sequence_validator(self) -> BilouSequenceValidator:
        return BilouSequenceValidator()

    def _symbols(self, ordered: List[Outcome]) -> List[int]:
        symbols = []
        current_type = None
        for outcome in ordered:
            if outcome.kind == OTHER:
                symbols.append(0)
            elif outcome.kind == START:
                current_type = outcome.type
                symbols.append(1)
            elif outcome.kind == CONTINUE:
                symbols.append(2 if outcome.type == current_type else 3)
            elif outcome.kind == LAST:
                symbols.append(4 if outcome.type == current_type else 5)
            else:
                symbols.append(6)
        return symbols

    def are_outcomes_compatible(self, outcomes: Iterable[str]) -> bool:
        """
        Check that a model's outcome vocabulary is a usable BILOU tag set.

        There must be a ``start`` or ``unit`` tag, every ``start`` type needs a
        ``last`` and vice versa, and every ``cont`` type needs both. The order
        of ``outcomes`` does not matter.
        """
        ordered = _canonical_order(outcomes, self.KINDS)
        if ordered is None:
            return False
        return DFA(0, self.MOVE_FUNCTION, self.ACCEPTING_STATES).run(self._symbols(ordered))


CODECS: Dict[str, type] = {"bio": BioCodec, "bilou": BilouCodec}


def get_codec(name: str):
    """Instantiate the codec registered under ``name`` (case-insensitive)."""
    try:
        return CODECS[name.lower()]()
    except KeyError:
        raise ValueError(f"Unknown codec {name!r}; expected one of {sorted(CODECS)}.")
