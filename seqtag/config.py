"""Manages the loading and validation of decoder configuration.

This module defines the `Config` dataclass, a typed container for the settings
of the name finder (beam width, codec, evaluation cache, feature windows and
file paths), and `load_config`, which reads them from a `config.yaml` file and
fills in defaults for anything left out.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .codecs import CODECS
from .features import FeatureConfig

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """
    A typed configuration object that holds all settings for the name finder.

    Attributes:
        beam_size: The number of hypotheses kept at each step of the beam search.
        cache_size: Capacity of the model evaluation cache; 0 disables it.
        codec: Name of the span codec, ``"bio"`` or ``"bilou"``.
        min_sequence_score: Hypotheses whose log-probability does not exceed this
                            value are pruned.
        features: Settings of the default context generator.
        paths: Relative paths to model files, resolved against the config file.
    """
    beam_size: int = 3
    cache_size: int = 0
    codec: str = "bio"
    min_sequence_score: float = -100000.0
    features: FeatureConfig = field(default_factory=FeatureConfig)
    paths: dict[str, str] = field(default_factory=dict)


def load_config(path: str = "config.yaml") -> Config:
    """
    Loads and validates a YAML configuration file into a Config object.

    Args:
        path: The path to the `config.yaml` file.

    Returns:
        A fully populated and validated `Config` object.

    Raises:
        FileNotFoundError: If the specified `config.yaml` file cannot be found.
        ValueError: If the YAML cannot be parsed or a setting is out of range.
        TypeError: If the root of the YAML file, or one of its sections, is not
                   a dictionary.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            y = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found at: {path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML file at {path}: {e}")

    # An empty file means "all defaults".
    if y is None:
        y = {}
    if not isinstance(y, dict):
        raise TypeError(f"Configuration file {path} must be a dictionary.")

    features_yaml = y.get("features", {}) or {}
    paths_yaml = y.get("paths", {}) or {}
    if not isinstance(features_yaml, dict) or not isinstance(paths_yaml, dict):
        raise TypeError(f"The 'features' and 'paths' sections of {path} must be dictionaries.")

    beam_size = int(y.get("beam_size", 3))
    if beam_size < 1:
        raise ValueError(f"beam_size must be at least 1, got {beam_size} in {path}.")

    cache_size = int(y.get("cache_size", 0))
    if cache_size < 0:
        raise ValueError(f"cache_size must be zero or greater, got {cache_size} in {path}.")

    codec = str(y.get("codec", "bio")).lower()
    if codec not in CODECS:
        raise ValueError(f"Unknown codec '{codec}' in {path}; expected one of {sorted(CODECS)}.")

    features = FeatureConfig(
        prev_window=int(features_yaml.get("prev_window", 2)),
        next_window=int(features_yaml.get("next_window", 2)),
        use_previous_map=bool(features_yaml.get("use_previous_map", True)),
    )

    paths = {str(k): str(v) for k, v in paths_yaml.items()}
    model_path_str = paths.get("model")
    if model_path_str:
        full_model_path = Path(path).parent / model_path_str
        if not full_model_path.exists():
            logger.warning("Model file %s does not exist yet.", full_model_path)

    return Config(
        beam_size=beam_size,
        cache_size=cache_size,
        codec=codec,
        min_sequence_score=float(y.get("min_sequence_score", -100000.0)),
        features=features,
        paths=paths,
    )
