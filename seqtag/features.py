"""The default context generator for the name finder.

Features are plain strings so they can key a weight table directly. For the
token at ``index`` the generator emits:

-   ``def``: a bias feature that is always active.
-   ``w=`` / ``wc=`` / ``w&c=``: the lowercased token, its shape class, both.
-   ``p{n}w=`` / ``p{n}wc=`` and ``n{n}w=`` / ``n{n}wc=``: the same for the
    tokens up to ``prev_window`` before and ``next_window`` after it.
-   ``pw,w=`` / ``w,nw=``: token bigrams across the position.
-   ``po=`` / ``ppo=`` / ``pow=`` / ``powf=``: the outcomes already chosen for
    the previous two positions, alone and paired with the current token.
-   ``pd=``: the outcome this token received the last time it was tagged in
    the current document (the "previous map"), when enabled.
-   ``ac=``: caller-supplied per-token values from ``additional_context``.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .types import OTHER

_PUNCT = set("!\"#$%&'()*+,-./:;<=>?@[\\]^_`{|}~")


@dataclass(frozen=True)
class FeatureConfig:
    """
    Settings of `TokenContextGenerator`.

    Attributes:
        prev_window: Number of preceding tokens that contribute window features.
        next_window: Number of following tokens that contribute window features.
        use_previous_map: Emit the document-level ``pd=`` feature.
    """
    prev_window: int = 2
    next_window: int = 2
    use_previous_map: bool = True

    def __post_init__(self) -> None:
        if self.prev_window < 0 or self.next_window < 0:
            raise ValueError(
                f"Window sizes must be zero or greater, got prev={self.prev_window}, next={self.next_window}."
            )


# --- Helper Functions ---
def token_class(token: str) -> str:
    """Classifies the surface shape of a token."""
    if not token: return "other"
    if token.islower() and token.isalpha(): return "lc"
    if token.isdigit():
        if len(token) == 2: return "2d"
        if len(token) == 4: return "4d"
        return "num"
    if all(c in _PUNCT for c in token): return "punct"
    if any(c.isdigit() for c in token):
        if token.isalnum(): return "an"
        if "-" in token: return "dd"
        if "/" in token: return "ds"
        if "," in token: return "dc"
        if "." in token: return "dp"
        return "num"
    if token.isalpha() and token.isupper():
        return "sc" if len(token) == 1 else "ac"
    if token[0].isupper(): return "ic"
    return "other"


class TokenContextGenerator:
    """
    Builds the feature strings for one token position.

    The generator keeps one piece of adaptive state, the previous map, which
    remembers the outcome assigned to each token earlier in the document. It is
    changed only through `update_adaptive_data` and `clear_adaptive_data`;
    the decoder calls the former after each sentence and the latter at a
    document boundary.
    """
    def __init__(self, config: Optional[FeatureConfig] = None):
        self.config = config if config is not None else FeatureConfig()
        self._previous_map: Dict[str, str] = {}

    def _token_features(self, prefix: str, token: str) -> List[str]:
        return [f"{prefix}w={token.lower()}", f"{prefix}wc={token_class(token)}"]

    def get_context(
        self,
        index: int,
        sequence: Sequence[Any],
        prior_outcomes: Optional[Sequence[str]],
        additional_context: Any = None,
    ) -> List[str]:
        tokens = [str(t) for t in sequence]
        token = tokens[index]
        features = ["def"]
        features.extend(self._token_features("", token))
        features.append(f"w&c={token.lower()},{token_class(token)}")

        for n in range(1, self.config.prev_window + 1):
            if index - n < 0:
                break
            features.extend(self._token_features(f"p{n}", tokens[index - n]))
        for n in range(1, self.config.next_window + 1):
            if index + n >= len(tokens):
                break
            features.extend(self._token_features(f"n{n}", tokens[index + n]))

        if index > 0:
            features.append(f"pw,w={tokens[index - 1].lower()},{token.lower()}")
        if index + 1 < len(tokens):
            features.append(f"w,nw={token.lower()},{tokens[index + 1].lower()}")

        if self.config.use_previous_map and token in self._previous_map:
            features.append(f"pd={self._previous_map[token]}")

        # Outcome features need the hypothesis; training-time callers may pass None.
        if prior_outcomes is not None:
            po = prior_outcomes[index - 1] if index > 0 else OTHER
            ppo = prior_outcomes[index - 2] if index > 1 else OTHER
            features.append(f"po={po}")
            features.append(f"pow={po},{token}")
            features.append(f"powf={po},{token_class(token)}")
            features.append(f"ppo={ppo}")

        if additional_context is not None and index < len(additional_context):
            features.extend(f"ac={value}" for value in additional_context[index])

        return features

    def update_adaptive_data(self, tokens: Sequence[str], outcomes: Sequence[str]) -> None:
        """Records the outcome of every token of a decoded sentence."""
        if len(tokens) != len(outcomes):
            raise ValueError(
                f"The tokens and outcomes must have the same length, got {len(tokens)} and {len(outcomes)}."
            )
        for token, outcome in zip(tokens, outcomes):
            self._previous_map[str(token)] = outcome

    def clear_adaptive_data(self) -> None:
        self._previous_map.clear()
