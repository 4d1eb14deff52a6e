"""
Reusable validators for configuration values.

Each validator returns ``(is_valid, error_message)``; the message is None
when the value is valid.
"""

from urllib.parse import urlparse


def validate_non_empty(value: str | None, field_name: str) -> tuple[bool, str | None]:
    """Validate that a string value is set and not blank."""
    if value is None:
        return False, f"{field_name} is not set"
    if not value.strip():
        return False, f"{field_name} is empty"
    return True, None


def validate_url(url: str, *, require_https: bool = True) -> tuple[bool, str | None]:
    """Validate an HTTP(S) URL."""
    if not url:
        return False, "URL is empty"

    parsed = urlparse(url)
    if not parsed.scheme:
        return False, "URL missing scheme (http:// or https://)"
    if parsed.scheme not in ("http", "https"):
        return False, f"URL scheme must be http or https, got {parsed.scheme}"
    if not parsed.netloc:
        return False, "URL missing host"
    if require_https and parsed.scheme != "https":
        return False, f"URL must use HTTPS, got {parsed.scheme}://"
    return True, None


def validate_positive(value: float | int, field_name: str, *, allow_zero: bool = False) -> tuple[bool, str | None]:
    """Validate that a number is positive (or non-negative with ``allow_zero``)."""
    if allow_zero and value >= 0:
        return True, None
    if value > 0:
        return True, None
    bound = ">= 0" if allow_zero else "> 0"
    return False, f"{field_name} must be {bound}, got {value}"


def validate_range(value: float, field_name: str, low: float, high: float) -> tuple[bool, str | None]:
    """Validate that ``low <= value <= high``."""
    if low <= value <= high:
        return True, None
    return False, f"{field_name} must be between {low} and {high}, got {value}"


def mask_secret(value: str | None, *, visible_chars: int = 6) -> str:
    """Mask a secret for display, keeping a short recognizable prefix."""
    if not value:
        return "[EMPTY]"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * min(len(value) - visible_chars, 12)
