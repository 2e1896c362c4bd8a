"""k-best beam search over a sequence of tokens.

The search follows Ratnaparkhi's maximum-entropy tagger: walk the input left
to right, and at every position grow each surviving hypothesis by the outcomes
the scoring model likes best, pruning illegal transitions with a
`SequenceValidator`. Only the ``size`` best hypotheses survive each step.

Two details matter for reproducing the decoder's output exactly:

1.  **Per-parent branching**: a parent only branches into outcomes whose
    probability is at least the ``size``-th largest for that parent. Ties at
    the cut-off are all explored, so the branching factor can exceed ``size``.
2.  **Starvation fallback**: when no child has reached the next beam after a
    parent was expanded (every top outcome was illegal or too unlikely), the
    parent is expanded again with every legal outcome, ignoring the cut-off.
"""
from __future__ import annotations
import logging
from functools import lru_cache
from typing import Any, List, Optional, Sequence as SequenceT, Tuple

from .data_structures import BoundedHeap
from .types import ContextGenerator, ScoringModel, Sequence, SequenceValidator

logger = logging.getLogger(__name__)

DEFAULT_BEAM_SIZE = 3
ZERO_LOG = -100000.0


class BeamSearch:
    """
    Performs k-best search over an input sequence.

    The instance holds configuration only (plus the optional evaluation
    cache); all beam state lives inside `best_sequences`, so one instance can
    serve several threads. The cache is a ``functools.lru_cache`` and is safe
    to share.

    Attributes
    ----------
    size:
        Beam width ``k``: the number of hypotheses kept after each position,
        and the per-parent branching cut-off.
    context_generator:
        Produces the feature strings for a position given the outcomes chosen
        so far.
    model:
        The scoring oracle turning feature strings into outcome probabilities.
    validator:
        Optional transition filter; ``None`` accepts every outcome.
    cache_size:
        Capacity of the evaluation cache keyed by the feature tuple; 0
        disables caching.
    """
    def __init__(
        self,
        size: int,
        context_generator: ContextGenerator,
        model: ScoringModel,
        validator: Optional[SequenceValidator] = None,
        cache_size: int = 0,
    ):
        if size < 1:
            raise ValueError(f"Beam size must be at least 1, got {size}.")
        self.size = size
        self.context_generator = context_generator
        self.model = model
        self.validator = validator
        self.cache_size = cache_size
        if cache_size > 0:
            self._score = lru_cache(maxsize=cache_size)(self._eval)
        else:
            self._score = self._eval

    def _eval(self, contexts: Tuple[str, ...]) -> Tuple[float, ...]:
        return tuple(float(p) for p in self.model.eval(list(contexts)))

    def cache_info(self):
        """Hit/miss statistics of the evaluation cache, or ``None`` when disabled."""
        return self._score.cache_info() if self.cache_size > 0 else None

    @property
    def outcomes(self) -> List[str]:
        return [self.model.get_outcome(i) for i in range(self.model.num_outcomes)]

    def _expand(
        self,
        parent: Sequence,
        index: int,
        sequence: SequenceT[Any],
        scores: Tuple[float, ...],
        min_sequence_score: float,
        threshold: Optional[float] = None,
    ) -> List[Sequence]:
        """Extend ``parent`` by every legal outcome scoring at least ``threshold``."""
        children: List[Sequence] = []
        for p, prob in enumerate(scores):
            if threshold is not None and prob < threshold:
                continue
            outcome = self.model.get_outcome(p)
            if self.validator is not None and not self.validator.valid_sequence(
                index, sequence, parent.outcomes, outcome
            ):
                continue
            child = parent.extend(outcome, prob)
            if child.score > min_sequence_score:
                children.append(child)
        return children

    def best_sequences(
        self,
        num_sequences: int,
        sequence: SequenceT[Any],
        additional_context: Any = None,
        min_sequence_score: float = ZERO_LOG,
    ) -> List[Sequence]:
        """
        Find the ``num_sequences`` most likely outcome sequences for ``sequence``.

        Args:
            num_sequences: Maximum number of sequences to return.
            sequence: The input tokens, one outcome is chosen per token.
            additional_context: Passed through to the context generator as is.
            min_sequence_score: Hypotheses whose log-probability does not
                exceed this value are discarded.

        Returns:
            Up to ``num_sequences`` sequences, best first. An empty input yields
            a single empty sequence; an empty list means every hypothesis was
            pruned before the end of the input.
        """
        beam: BoundedHeap[Sequence] = BoundedHeap(self.size)
        beam.add(Sequence())

        for i in range(len(sequence)):
            next_beam: BoundedHeap[Sequence] = BoundedHeap(self.size)

            for parent in beam.best_first():
                contexts = tuple(
                    self.context_generator.get_context(i, sequence, parent.outcomes, additional_context)
                )
                scores = self._score(contexts)
                ranked = sorted(scores)
                threshold = ranked[max(0, len(ranked) - self.size)]

                next_beam.extend(self._expand(parent, i, sequence, scores, min_sequence_score, threshold))

                if next_beam.is_empty():
                    logger.debug("No legal top-%d outcome at position %d; widening to all outcomes.", self.size, i)
                    next_beam.extend(self._expand(parent, i, sequence, scores, min_sequence_score))

            if next_beam.is_empty():
                logger.debug("Beam emptied at position %d of %d.", i, len(sequence))
                return []
            beam = next_beam

        return [beam.extract() for _ in range(min(num_sequences, beam.size()))]

    def best_sequence(
        self,
        sequence: SequenceT[Any],
        additional_context: Any = None,
        min_sequence_score: float = ZERO_LOG,
    ) -> Optional[Sequence]:
        """Return the single most likely sequence, or ``None`` if the beam died."""
        sequences = self.best_sequences(1, sequence, additional_context, min_sequence_score)
        return sequences[0] if sequences else None
