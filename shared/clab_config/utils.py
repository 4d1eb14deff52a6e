"""
Helpers for reading configuration values from files and the environment.
"""

from pathlib import Path
from typing import Any

import yaml


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from ``path``.

    Returns an empty dict when the file does not exist.

    Raises:
        ValueError: If the file cannot be read, is not valid YAML, or does
            not contain a mapping at the top level.
    """
    if not path.exists():
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ValueError(f"Could not read config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data


def safe_int(value: Any, default: int = 0) -> int:
    """Parse an integer, falling back to ``default``."""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def safe_float(value: Any, default: float = 0.0) -> float:
    """Parse a float, falling back to ``default``."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (ValueError, TypeError):
        return default


def safe_bool(value: Any, default: bool = False) -> bool:
    """Parse a boolean.

    Recognizes: true/false, yes/no, on/off, 1/0 (case-insensitive).
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value

    lowered = str(value).lower().strip()
    if lowered in ("true", "yes", "1", "on"):
        return True
    if lowered in ("false", "no", "0", "off"):
        return False
    return default


def split_list(value: Any) -> list[str]:
    """Turn a comma-separated string or a YAML list into a list of strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(part).strip() for part in value if str(part).strip()]
