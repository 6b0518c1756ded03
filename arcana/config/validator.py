"""Configuration validation."""

import logging
from typing import Dict, Any, List

logger = logging.getLogger(__name__)

VALID_DUPLICATE_POLICIES = ('allow', 'coalesce', 'reject')
VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class ValidationError(Exception):
    """Configuration validation errors."""
    pass


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Args:
        config: Configuration dictionary from loader

    Raises:
        ValidationError: If configuration is invalid
    """
    errors = []

    errors.extend(_validate_database(config.get('database', {})))
    errors.extend(_validate_scanning(config.get('scanning', {})))
    errors.extend(_validate_steam(config.get('steam', {})))
    errors.extend(_validate_logging(config.get('logging', {})))

    if errors:
        raise ValidationError(
            "Configuration validation failed:\n  - " + "\n  - ".join(errors)
        )


def _section(section: Any, name: str, errors: List[str]) -> Dict[str, Any]:
    if section is None:
        return {}
    if not isinstance(section, dict):
        errors.append(f"{name} must be a dictionary")
        return {}
    return section


def _validate_database(section: Dict[str, Any]) -> List[str]:
    """Validate database section."""
    errors = []
    section = _section(section, 'database', errors)

    url = section.get('url')
    if not isinstance(url, str) or not url.strip():
        errors.append("database.url is required")
    elif '://' not in url:
        errors.append(f"database.url must be a SQLAlchemy URL, got: {url}")

    return errors


def _validate_scanning(section: Dict[str, Any]) -> List[str]:
    """Validate scanning section."""
    errors = []
    section = _section(section, 'scanning', errors)

    policy = section.get('duplicate_policy', 'coalesce')
    if policy not in VALID_DUPLICATE_POLICIES:
        errors.append(
            f"scanning.duplicate_policy must be one of {', '.join(VALID_DUPLICATE_POLICIES)}, got: {policy}"
        )

    genre = section.get('default_genre', 'Unknown')
    if not isinstance(genre, str) or not genre.strip():
        errors.append("scanning.default_genre must be a non-empty string")

    return errors


def _validate_steam(section: Dict[str, Any]) -> List[str]:
    """Validate steam section."""
    errors = []
    section = _section(section, 'steam', errors)

    timeout = section.get('request_timeout', 30)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or not 1 <= timeout <= 300:
        errors.append(f"steam.request_timeout must be between 1 and 300 seconds, got: {timeout}")

    steam_id = section.get('steam_id')
    if steam_id is not None and not str(steam_id).isdigit():
        errors.append(f"steam.steam_id must be a numeric SteamID64, got: {steam_id}")

    api_key = section.get('api_key')
    if api_key is not None and not isinstance(api_key, str):
        errors.append("steam.api_key must be a string")

    if not isinstance(section.get('include_free_games', True), bool):
        errors.append("steam.include_free_games must be true or false")

    return errors


def _validate_logging(section: Dict[str, Any]) -> List[str]:
    """Validate logging section."""
    errors = []
    section = _section(section, 'logging', errors)

    level = section.get('level', 'INFO')
    if not isinstance(level, str) or level.upper() not in VALID_LOG_LEVELS:
        errors.append(f"logging.level must be one of {', '.join(VALID_LOG_LEVELS)}, got: {level}")

    if not isinstance(section.get('console', True), bool):
        errors.append("logging.console must be true or false")

    log_file = section.get('file')
    if log_file is not None and not isinstance(log_file, str):
        errors.append("logging.file must be a path string")

    return errors
