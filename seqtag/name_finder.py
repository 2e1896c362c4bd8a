"""Runtime name finder: beam search plus a span codec.

`NameFinder` is the piece applications talk to. It owns a `BeamSearch`, the
codec that gives the outcome tags their meaning and the context generator
whose adaptive state spans the sentences of one document.

Typical use::

    cfg = load_config("config.yaml")
    finder = NameFinder.from_config(cfg, load_model(cfg.paths["model"]))
    for sentence in document:
        spans = finder.find(sentence)
    finder.clear_adaptive_data()
"""
from __future__ import annotations
import logging
from pathlib import Path
from statistics import fmean
from typing import Any, Iterable, List, Optional, Sequence

from tqdm import tqdm

from .beam_search import DEFAULT_BEAM_SIZE, ZERO_LOG, BeamSearch
from .codecs import BioCodec, get_codec
from .config import Config, load_config
from .features import TokenContextGenerator
from .io_utils import load_model
from .scorer import MaxentScorer
from .types import ContextGenerator, Sample, Sequence as OutcomeSequence, SequenceCodec, Span

logger = logging.getLogger(__name__)


class IncompatibleOutcomesError(ValueError):
    """Raised when a model's outcome vocabulary cannot be decoded by the codec."""

    def __init__(self, codec: SequenceCodec, outcomes: Sequence[str]):
        self.codec = codec
        self.outcomes = tuple(outcomes)
        super().__init__(
            f"Model outcomes {list(self.outcomes)} are not compatible with {type(codec).__name__}."
        )


class NameFinder:
    """
    Finds typed spans (names) in tokenized sentences.

    Attributes:
        model: The scoring oracle; its outcome vocabulary must pass the codec's
               compatibility check.
        codec: Maps the decoded tag stream to spans.
        context_generator: Feature producer, `TokenContextGenerator` by default.
        beam: The configured `BeamSearch`.
        min_sequence_score: Score floor handed to every search.
    """
    def __init__(
        self,
        model: MaxentScorer,
        codec: Optional[SequenceCodec] = None,
        context_generator: Optional[ContextGenerator] = None,
        beam_size: int = DEFAULT_BEAM_SIZE,
        cache_size: int = 0,
        min_sequence_score: float = ZERO_LOG,
    ):
        self.model = model
        self.codec = codec if codec is not None else BioCodec()
        if not self.codec.are_outcomes_compatible(model.outcomes):
            raise IncompatibleOutcomesError(self.codec, model.outcomes)
        self.context_generator = context_generator if context_generator is not None else TokenContextGenerator()
        self.beam = BeamSearch(
            beam_size,
            self.context_generator,
            model,
            validator=self.codec.create_sequence_validator(),
            cache_size=cache_size,
        )
        self.min_sequence_score = min_sequence_score
        self._best_sequence: Optional[OutcomeSequence] = None

    @classmethod
    def from_config(cls, cfg: Config, model: MaxentScorer) -> "NameFinder":
        return cls(
            model,
            codec=get_codec(cfg.codec),
            context_generator=TokenContextGenerator(cfg.features),
            beam_size=cfg.beam_size,
            cache_size=cfg.cache_size,
            min_sequence_score=cfg.min_sequence_score,
        )

    def find(self, tokens: Sequence[str], additional_context: Any = None, document_start: bool = False) -> List[Span]:
        """
        Tags one sentence and returns the spans found in it.

        Each returned span carries the arithmetic mean of the probabilities of
        the outcomes it covers. The decoded outcomes are fed back into the
        context generator's adaptive data so later sentences of the same
        document can use them.

        Args:
            tokens: The tokens of the sentence.
            additional_context: Optional per-token extra feature values.
            document_start: Clear the adaptive data before tagging, because
                            this sentence opens a new document.

        Returns:
            The decoded spans in token order; empty when nothing was found or
            when every hypothesis was pruned.
        """
        if document_start:
            self.clear_adaptive_data()

        best = self.beam.best_sequence(tokens, additional_context, self.min_sequence_score)
        self._best_sequence = best
        if best is None:
            logger.warning("Beam search found no valid sequence for a sentence of %d tokens.", len(tokens))
            return []

        self.context_generator.update_adaptive_data(tokens, best.outcomes)
        return self.span_probs(self.codec.decode(best.outcomes))

    def probs(self) -> List[float]:
        """Per-token probabilities of the most recently decoded sentence."""
        if self._best_sequence is None:
            return []
        return list(self._best_sequence.probs)

    def span_probs(self, spans: Iterable[Span]) -> List[Span]:
        """Attaches the mean token probability of the last decode to each span."""
        token_probs = self.probs()
        out = []
        for span in spans:
            covered = token_probs[span.start : span.end]
            out.append(span.with_prob(fmean(covered)) if covered else span)
        return out

    def find_all(self, sentences: Iterable[Sequence[str]], show_progress: bool = False) -> List[List[Span]]:
        """Tags every sentence of one document, then forgets the document."""
        results: List[List[Span]] = []
        try:
            for tokens in tqdm(sentences, desc="Finding names", unit="sentence", disable=not show_progress):
                results.append(self.find(tokens))
        finally:
            self.clear_adaptive_data()
        return results

    def find_samples(self, samples: Iterable[Sample], show_progress: bool = False) -> List[List[Span]]:
        """Tags a stream of samples, resetting adaptive data at each ``document_start``."""
        results = [
            self.find(sample.tokens, document_start=sample.document_start)
            for sample in tqdm(samples, desc="Finding names", unit="sample", disable=not show_progress)
        ]
        self.clear_adaptive_data()
        return results

    def clear_adaptive_data(self) -> None:
        self.context_generator.clear_adaptive_data()


def load_name_finder(config_path: str = "config.yaml") -> NameFinder:
    """
    Builds a `NameFinder` from a config file and the model it points to.

    ``paths.model`` is resolved relative to the directory of the config file.

    Raises:
        ValueError: If the config does not name a model file.
    """
    cfg = load_config(config_path)
    model_path = cfg.paths.get("model")
    if not model_path:
        raise ValueError(f"Configuration {config_path} does not define paths.model.")
    model = load_model(str(Path(config_path).parent / model_path))
    return NameFinder.from_config(cfg, model)
