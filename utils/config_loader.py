"""Configuration management utilities."""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / 'configs' / 'thresholds.yaml'


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge override into a copy of base.

    Nested mappings are merged key by key; any other value in override
    replaces the value in base.
    """
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _read_yaml(config_path: Path) -> Dict[str, Any]:
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(
            f"Config file {config_path} must contain a mapping, got {type(config).__name__}"
        )
    return config


def load_config(config_path=None, defaults_path: Optional[Path] = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    The shipped thresholds file is read first and the user file is deep-merged
    over it, so a partial file only overrides the keys it names.

    Args:
        config_path: Path to YAML configuration file (str or Path); None
            returns the shipped defaults
        defaults_path: Base configuration merged under the user file; None
            disables merging

    Returns:
        Dictionary containing configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If the document is not a mapping
        yaml.YAMLError: If config file is malformed
    """
    base: Dict[str, Any] = {}
    if defaults_path is not None and Path(defaults_path).exists():
        base = _read_yaml(Path(defaults_path))

    if config_path is None:
        return base

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    config = deep_merge(base, _read_yaml(config_path))

    logger.debug(f"Loaded config keys: {list(config.keys())}")

    return config


def get_nested_config(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """
    Get nested configuration value using dot notation.

    Example:
        get_nested_config(config, 'touch.stability.tremor_penalty_gain', default=80)

    Args:
        config: Configuration dictionary
        key_path: Dot-separated path to value
        default: Default value if path not found

    Returns:
        Configuration value or default
    """
    keys = key_path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value
