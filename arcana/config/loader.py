"""Configuration loading and parsing."""

import copy
import yaml
from pathlib import Path
from typing import Dict, Any, Optional


class ConfigError(Exception):
    """Configuration-related errors."""
    pass


DEFAULT_CONFIG: Dict[str, Any] = {
    'database': {
        'url': 'sqlite:///arcana.db',
    },
    'scanning': {
        'duplicate_policy': 'coalesce',
        'default_genre': 'Unknown',
    },
    'steam': {
        'api_key': None,
        'steam_id': None,
        'request_timeout': 30,
        'include_free_games': True,
    },
    'logging': {
        'level': 'INFO',
        'console': True,
        'file': None,
    },
}


def merge_dicts(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge overrides into a copy of base.

    Args:
        base: Base dictionary
        overrides: Values that replace or extend base

    Returns:
        New merged dictionary
    """
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_dicts(merged[key], value)
        elif value is None and isinstance(merged.get(key), dict):
            # An empty YAML section keeps its defaults
            continue
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load and parse configuration file.

    Args:
        config_path: Path to config.yaml file. If None, searches current directory.

    Returns:
        Parsed configuration dictionary, merged over DEFAULT_CONFIG

    Raises:
        ConfigError: If config file cannot be loaded or parsed
    """
    # Determine config file path
    if config_path is None:
        config_path = Path.cwd() / "config.yaml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}\n"
            f"Copy config.yaml.example to config.yaml and configure it."
        )

    # Load YAML
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {e}")

    # Empty file means "all defaults"
    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise ConfigError("Configuration file must contain a YAML dictionary")

    return merge_dicts(DEFAULT_CONFIG, config)


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Get a nested configuration value using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., 'scanning.duplicate_policy')
        default: Default value if path not found

    Returns:
        Configuration value or default

    Example:
        >>> get_config_value(config, 'scanning.duplicate_policy')
        'coalesce'
    """
    keys = path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value
