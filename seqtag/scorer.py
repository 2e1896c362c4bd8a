"""Evaluates a trained log-linear weight table as a scoring oracle.

The `MaxentScorer` is the model half of the decoder: given the feature strings
produced for one position it returns a probability for every outcome in a
fixed vocabulary. It does not learn anything; the weights come from an
external trainer and are loaded with `seqtag.io_utils.load_model`.
"""
from __future__ import annotations
from typing import Dict, Iterable, List, Mapping, Sequence

import numpy as np


class MaxentScorer:
    """
    Scores outcomes with a maximum-entropy (log-linear) weight table.

    For each outcome the weights of all active features are summed; the sums
    are exponentiated and normalized so the probabilities add up to one.
    Features without a weight row are ignored and a row that does not mention
    an outcome contributes 0 to it.

    Attributes:
        outcomes: The outcome vocabulary. The position of an outcome in this
                  tuple is its index in every probability vector.
        weights: The raw nested ``{feature: {outcome: weight}}`` mapping.
    """
    def __init__(self, outcomes: Iterable[str], weights: Mapping[str, Mapping[str, float]]):
        self.outcomes = tuple(outcomes)
        if not self.outcomes:
            raise ValueError("MaxentScorer needs at least one outcome.")
        if len(set(self.outcomes)) != len(self.outcomes):
            raise ValueError(f"Duplicate outcomes in vocabulary: {list(self.outcomes)}")
        self._index = {outcome: i for i, outcome in enumerate(self.outcomes)}

        self.weights: Dict[str, Dict[str, float]] = {}
        self._vectors: Dict[str, np.ndarray] = {}
        for feature, row in weights.items():
            vector = np.zeros(len(self.outcomes), dtype=np.float64)
            for outcome, w in row.items():
                if outcome not in self._index:
                    raise ValueError(f"Weight for feature '{feature}' refers to unknown outcome '{outcome}'.")
                vector[self._index[outcome]] = float(w)
            self.weights[feature] = {k: float(v) for k, v in row.items()}
            self._vectors[feature] = vector

    @property
    def num_outcomes(self) -> int:
        return len(self.outcomes)

    def get_outcome(self, index: int) -> str:
        return self.outcomes[index]

    def get_index(self, outcome: str) -> int:
        """Position of ``outcome`` in the vocabulary, or -1 if it is unknown."""
        return self._index.get(outcome, -1)

    def get_weight(self, feature: str, outcome: str) -> float:
        """Returns the learned weight, or 0.0 if the feature or outcome has none."""
        try:
            return self.weights[feature][outcome]
        except KeyError:
            return 0.0

    def eval(self, contexts: Sequence[str]) -> List[float]:
        """
        Computes the outcome distribution for one position.

        Args:
            contexts: The active feature strings. A feature listed twice
                      counts twice.

        Returns:
            One probability per outcome, in vocabulary order.
        """
        totals = np.zeros(len(self.outcomes), dtype=np.float64)
        for feature in contexts:
            vector = self._vectors.get(feature)
            if vector is not None:
                totals += vector
        totals -= totals.max()
        probs = np.exp(totals)
        probs /= probs.sum()
        return probs.tolist()

    def best_outcome(self, probs: Sequence[float]) -> str:
        """The outcome with the highest probability; the first one wins ties."""
        return self.outcomes[int(np.argmax(probs))]

    def all_outcomes(self, probs: Sequence[float]) -> str:
        """A readable ``outcome[prob]`` listing, handy when debugging a model."""
        return " ".join(f"{outcome}[{p:.4f}]" for outcome, p in zip(self.outcomes, probs))

    def to_dict(self) -> Dict[str, object]:
        return {"outcomes": list(self.outcomes), "weights": {f: dict(row) for f, row in self.weights.items()}}
