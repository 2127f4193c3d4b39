"""
Configuration management and loading.

Handles application settings read from a YAML file.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from listening_stats.core.importer import resolve_timezone


@dataclass(frozen=True)
class Settings:
    """Validated application settings."""
    db_path: str = "listening_stats.db"
    timezone: Optional[str] = None
    chunk_size: int = 1000
    top_limit: int = 50
    discovery_limit: int = 100

    def __post_init__(self):
        """Validate numeric settings are positive."""
        if self.chunk_size <= 0:
            raise ValueError("import.chunk_size must be > 0")
        if self.top_limit <= 0:
            raise ValueError("report.top_limit must be > 0")
        if self.discovery_limit <= 0:
            raise ValueError("report.discovery_limit must be > 0")


# Section -> {key: (settings field, expected type)}
_SCHEMA = {
    "database": {"path": ("db_path", str)},
    "import": {"chunk_size": ("chunk_size", int)},
    "report": {
        "top_limit": ("top_limit", int),
        "discovery_limit": ("discovery_limit", int),
    },
}


def load_settings(path: Optional[str] = None) -> Settings:
    """Load and validate settings from a YAML file.

    Unknown keys are rejected so that a typo never silently falls back
    to a default.

    Args:
        path: Path to YAML configuration file; defaults are used when None

    Returns:
        Validated Settings object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    if path is None:
        return Settings()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        return Settings()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = set(_SCHEMA) | {"timezone"}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    values: Dict[str, Any] = {}

    timezone = raw_config.get("timezone")
    if timezone is not None:
        if not isinstance(timezone, str):
            raise ValueError("'timezone' must be a string")
        resolve_timezone(timezone)
        values["timezone"] = timezone

    for section, keys in _SCHEMA.items():
        if section not in raw_config:
            continue
        values.update(_parse_section(raw_config[section], section, keys))

    return Settings(**values)


def _parse_section(data: Any, section: str, keys: Dict[str, tuple]) -> Dict[str, Any]:
    """Parse and type-check one configuration section.

    Raises:
        ValueError: If the section is invalid
    """
    if not isinstance(data, dict):
        raise ValueError(f"'{section}' must be a dictionary")

    unknown_keys = set(data.keys()) - set(keys)
    if unknown_keys:
        raise ValueError(f"Unknown keys in {section}: {unknown_keys}")

    values = {}
    for key, (field_name, expected) in keys.items():
        if key not in data:
            continue
        value = data[key]
        if isinstance(value, bool) or not isinstance(value, expected):
            raise ValueError(f"'{section}.{key}' must be of type {expected.__name__}")
        values[field_name] = value
    return values
