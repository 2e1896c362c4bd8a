"""Provides utility functions for loading and saving models and samples.

Two JSON documents are supported. A model file holds the outcome vocabulary
and the log-linear weight table of a `MaxentScorer`::

    {"outcomes": ["other", "PER-start", ...],
     "weights": {"w=john": {"PER-start": 1.2, "other": -0.4}, ...}}

A samples file holds tokenized sentences with their reference spans::

    {"samples": [{"tokens": ["John", "left"],
                  "spans": [{"start": 0, "end": 1, "type": "PER"}],
                  "document_start": true}]}

Unknown keys are ignored on load so files can carry extra annotations.
"""
import json
from typing import Any, Dict, List

from .scorer import MaxentScorer
from .types import Sample, Span


def _read_json(path: str, what: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"{what} file not found at: {path}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Error decoding JSON from {path}: {e}")
    if not isinstance(data, dict):
        raise TypeError(f"Expected a JSON object at the root of {path}")
    return data


def _write_json(path: str, data: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def load_model(path: str) -> MaxentScorer:
    """
    Loads a `MaxentScorer` from a JSON weights file.

    Args:
        path: The path to the model file.

    Returns:
        The scorer, with outcomes in the order they are listed in the file.

    Raises:
        FileNotFoundError: If the file at the specified path does not exist.
        ValueError: If the file is not valid JSON, or the weights mention an
                    outcome that is not in the vocabulary.
        TypeError: If "outcomes" is not a list or "weights" is not a mapping of
                   mappings.
    """
    data = _read_json(path, "Model")

    outcomes = data.get("outcomes")
    if not isinstance(outcomes, list):
        raise TypeError(f"Expected an 'outcomes' key with a list of strings in {path}")

    weights = data.get("weights", {})
    if not isinstance(weights, dict):
        raise TypeError(f"Expected a 'weights' key with an object in {path}")
    for feature, row in weights.items():
        if not isinstance(row, dict):
            raise TypeError(f"Weights for feature '{feature}' in {path} are not an object.")

    return MaxentScorer([str(o) for o in outcomes], weights)


def save_model(path: str, model: MaxentScorer) -> None:
    """Saves a `MaxentScorer` in the format `load_model` reads."""
    _write_json(path, model.to_dict())


def _span_from_dict(item: Any, i: int, j: int, path: str) -> Span:
    if not isinstance(item, dict):
        raise TypeError(f"Span {j} of sample {i} in {path} is not a dictionary.")
    try:
        return Span(int(item["start"]), int(item["end"]), item.get("type"))
    except KeyError as e:
        raise TypeError(f"Span {j} of sample {i} in {path} is missing {e}.")


def load_samples(path: str) -> List[Sample]:
    """
    Loads annotated sentences from a JSON file.

    Args:
        path: The path to the samples file.

    Returns:
        A list of `Sample` instances in file order.

    Raises:
        FileNotFoundError: If the file at the specified path does not exist.
        ValueError: If the file is not valid JSON, a span has invalid bounds,
                    or a span reaches past the end of its sentence.
        TypeError: If the JSON structure is incorrect (e.g., "samples" is
                   missing or not a list, or an item is not a dictionary).
    """
    data = _read_json(path, "Samples")

    items = data.get("samples")
    if not isinstance(items, list):
        raise TypeError(f"Expected a 'samples' key with a list of objects in {path}")

    out = []
    for i, s_dict in enumerate(items):
        if not isinstance(s_dict, dict):
            raise TypeError(f"Sample item at index {i} in {path} is not a dictionary.")
        tokens = s_dict.get("tokens")
        if not isinstance(tokens, list):
            raise TypeError(f"Sample item at index {i} in {path} has no 'tokens' list.")

        spans = tuple(_span_from_dict(item, i, j, path) for j, item in enumerate(s_dict.get("spans", [])))
        for span in spans:
            if span.end > len(tokens):
                raise ValueError(f"Span {span} of sample {i} in {path} reaches past its {len(tokens)} tokens.")

        out.append(Sample(
            tokens=tuple(str(t) for t in tokens),
            spans=spans,
            document_start=bool(s_dict.get("document_start", False)),
        ))
    return out


def save_samples(path: str, samples: List[Sample]) -> None:
    """Saves samples in the format `load_samples` reads."""
    sample_dicts = []
    for sample in samples:
        sample_dicts.append({
            "tokens": list(sample.tokens),
            "spans": [{"start": s.start, "end": s.end, "type": s.type} for s in sample.spans],
            "document_start": sample.document_start,
        })
    _write_json(path, {"samples": sample_dicts})
