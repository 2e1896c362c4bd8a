"""Value types and capability protocols shared by the decoder and the codecs.

`Span` and `Sequence` are the two data carriers of the package: a codec turns
spans into per-token outcome tags and back, and the beam search grows
sequences of outcome tags one position at a time. The `Protocol` classes at
the bottom describe the collaborators the beam search talks to; any object
with the right methods can be plugged in.
"""
from __future__ import annotations
import math
from dataclasses import dataclass, field, replace
from functools import total_ordering
from typing import Any, Iterable, List, Optional, Protocol, Sequence as SequenceT

__all__ = [
    "OTHER",
    "START",
    "CONTINUE",
    "LAST",
    "UNIT",
    "DEFAULT_TYPE",
    "Span",
    "Sequence",
    "Outcome",
    "Sample",
    "ContextGenerator",
    "ScoringModel",
    "SequenceValidator",
    "SequenceCodec",
]

# Outcome suffixes. These strings are shared with serialized models and
# annotated corpora, so they must not change.
OTHER = "other"
START = "start"
CONTINUE = "cont"
LAST = "last"
UNIT = "unit"

DEFAULT_TYPE = "default"


@total_ordering
@dataclass(frozen=True)
class Span:
    """
    A half-open token range ``[start, end)`` with an optional type label.

    Spans compare and hash on ``(start, end, type)``; the probability attached
    by a decoder is carried along but never takes part in equality or
    ordering. Spans without a type sort before typed spans at the same offsets.

    Attributes:
        start: Index of the first token covered by the span.
        end: Index one past the last token covered by the span.
        type: The entity type, e.g. ``"PERSON"``, or ``None``.
        prob: Optional confidence assigned by a decoder.
    """
    start: int
    end: int
    type: Optional[str] = None
    prob: Optional[float] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < 0:
            raise ValueError(f"Span indices must be zero or greater, got [{self.start}, {self.end}).")
        if self.start > self.end:
            raise ValueError(f"Span start {self.start} is larger than its end {self.end}.")

    def _sort_key(self) -> tuple:
        return (self.start, self.end, self.type is not None, self.type or "")

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Span):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def length(self) -> int:
        return self.end - self.start

    def contains(self, other: "Span | int") -> bool:
        """True if ``other`` (a span or a token index) lies inside this span."""
        if isinstance(other, Span):
            return self.start <= other.start and other.end <= self.end
        return self.start <= other < self.end

    def starts_with(self, other: "Span") -> bool:
        return self.start == other.start and self.contains(other)

    def intersects(self, other: "Span") -> bool:
        """True if the two spans share at least one position, or one contains the other."""
        return (
            self.contains(other)
            or other.contains(self)
            or self.start <= other.start < self.end
            or other.start <= self.start < other.end
        )

    def crosses(self, other: "Span") -> bool:
        """True if the spans overlap but neither contains the other."""
        return (
            not self.contains(other)
            and not other.contains(self)
            and (self.start <= other.start < self.end or other.start <= self.start < other.end)
        )

    def covered_text(self, items: SequenceT[Any]) -> SequenceT[Any]:
        """Return the slice of ``items`` (a string or token list) covered by the span."""
        if self.end > len(items):
            raise ValueError(f"Span {self} reaches past the end of the given sequence.")
        return items[self.start : self.end]

    def shifted(self, offset: int) -> "Span":
        return replace(self, start=self.start + offset, end=self.end + offset)

    def with_prob(self, prob: float) -> "Span":
        return replace(self, prob=prob)

    def __str__(self) -> str:
        text = f"[{self.start}..{self.end})"
        if self.type is not None:
            text += f" {self.type}"
        return text


def _log(p: float) -> float:
    return math.log(p) if p > 0.0 else float("-inf")


@dataclass(frozen=True)
class Sequence:
    """
    One hypothesis of the beam search: the outcomes chosen so far.

    Sequences are immutable. `extend` returns a new sequence holding copies of
    the prior outcome and probability tuples, so two branches grown from the
    same parent never share state.

    Attributes:
        outcomes: The outcome tag chosen at each processed position.
        probs: The probability the model assigned to each chosen outcome.
        score: Sum of the natural logs of ``probs``.
    """
    outcomes: tuple[str, ...] = ()
    probs: tuple[float, ...] = ()
    score: float = 0.0

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[str]) -> "Sequence":
        """Wrap an externally supplied tag stream; every step gets probability 1."""
        tags = tuple(outcomes)
        return cls(outcomes=tags, probs=(1.0,) * len(tags), score=0.0)

    def extend(self, outcome: str, prob: float) -> "Sequence":
        return Sequence(
            outcomes=self.outcomes + (outcome,),
            probs=self.probs + (prob,),
            score=self.score + _log(prob),
        )

    def size(self) -> int:
        return len(self.outcomes)

    def outcome(self, index: int) -> str:
        return self.outcomes[index]

    def prob(self, index: int) -> float:
        return self.probs[index]

    def __str__(self) -> str:
        return f"{self.score} {list(self.outcomes)}"


@dataclass(frozen=True)
class Outcome:
    """A parsed outcome tag: its kind (one of the suffixes) and entity type."""
    kind: str
    type: Optional[str] = None

    def render(self) -> str:
        if self.kind == OTHER:
            return OTHER
        return f"{self.type}-{self.kind}"


@dataclass(frozen=True)
class Sample:
    """
    A tokenized sentence with its reference spans.

    ``document_start`` marks the first sentence of a new document; decoders
    reset any document-level adaptive feature state when they see it.
    """
    tokens: tuple[str, ...]
    spans: tuple[Span, ...] = ()
    document_start: bool = False


class ContextGenerator(Protocol):
    """Produces the feature strings for one position of the input."""

    def get_context(
        self,
        index: int,
        sequence: SequenceT[Any],
        prior_outcomes: SequenceT[str],
        additional_context: Any,
    ) -> SequenceT[str]:
        ...


class ScoringModel(Protocol):
    """Maps feature strings to a probability for every outcome of a fixed vocabulary."""

    @property
    def num_outcomes(self) -> int:
        ...

    def eval(self, contexts: SequenceT[str]) -> SequenceT[float]:
        ...

    def get_outcome(self, index: int) -> str:
        ...


class SequenceValidator(Protocol):
    """Decides whether ``outcome`` may follow ``outcomes`` at position ``index``."""

    def valid_sequence(
        self,
        index: int,
        input_sequence: SequenceT[Any],
        outcomes: SequenceT[str],
        outcome: str,
    ) -> bool:
        ...


class SequenceCodec(Protocol):
    """Maps typed spans to per-token outcome tags and back."""

    def encode(self, spans: Iterable[Span], length: int) -> List[str]:
        ...

    def decode(self, outcomes: SequenceT[str]) -> List[Span]:
        ...

    def create_sequence_validator(self) -> SequenceValidator:
        ...

    def are_outcomes_compatible(self, outcomes: Iterable[str]) -> bool:
        ...
