"""
ClabLogger - structured logging for clab components.

Wraps a stdlib logger so call sites can pass structured fields as keyword
arguments. Output goes to stderr; JSON on CI, human-readable elsewhere.
"""

import logging
import os
import sys
import threading
from typing import Any

from .context import get_current_context
from .formatters import ConsoleFormatter, JsonFormatter


# Keyword names that logging.LogRecord reserves for itself
_RESERVED = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}


def _wants_json() -> bool:
    fmt = os.environ.get("CLAB_LOG_FORMAT", "").lower()
    if fmt:
        return fmt == "json"
    return bool(os.environ.get("GITHUB_ACTIONS") or os.environ.get("CI"))


class ClabLogger:
    """Structured logger for clab components.

    Usage:
        from clab_logging import get_logger

        logger = get_logger("deep-dive")
        logger.info("Analyzing item", path="src/app.py", level="file")
    """

    def __init__(
        self,
        name: str,
        level: int | str = logging.INFO,
        component: str | None = None,
    ):
        """Initialize the logger.

        Args:
            name: Logger name (typically the subsystem, e.g. "notes")
            level: Log level (default INFO)
            component: Optional component within the subsystem
        """
        self.name = name
        self.component = component
        self._logger = logging.getLogger(f"clab.{name}")
        self._logger.setLevel(level if isinstance(level, int) else getattr(logging, level.upper()))
        self._logger.propagate = False
        self._handler_lock = threading.Lock()

    def _ensure_handlers(self) -> None:
        """Attach the console handler on first use."""
        if self._logger.handlers:
            return
        with self._handler_lock:
            if self._logger.handlers:
                return
            handler = logging.StreamHandler(sys.stderr)
            handler.setLevel(logging.DEBUG)
            if _wants_json():
                handler.setFormatter(JsonFormatter(service=self.name, component=self.component))
            else:
                handler.setFormatter(ConsoleFormatter(service=self.name))
            self._logger.addHandler(handler)

    def _get_extra(self, fields: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        ctx = get_current_context()
        if ctx:
            result.update(ctx.to_dict())
            result.update(ctx.extra)
        result.update(fields)
        return {(f"field_{key}" if key in _RESERVED else key): value for key, value in result.items()}

    def _log(self, level: int, msg: str, *args: Any, exc_info: Any = None, **kwargs: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._ensure_handlers()
        self._logger.log(level, msg, *args, exc_info=exc_info, extra=self._get_extra(kwargs))

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, exc_info: Any = None, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, *args, exc_info=exc_info, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log an error with the active exception's traceback."""
        self._log(logging.ERROR, msg, *args, exc_info=True, **kwargs)

    def set_level(self, level: int | str) -> None:
        self._logger.setLevel(level if isinstance(level, int) else getattr(logging, level.upper()))

    def with_context(self, **kwargs: Any) -> "BoundLogger":
        """Create a logger that adds the given fields to every call."""
        return BoundLogger(self, kwargs)


class BoundLogger:
    """Logger bound to a fixed set of fields."""

    def __init__(self, parent: ClabLogger, bound_fields: dict[str, Any]):
        self._parent = parent
        self._bound_fields = bound_fields

    def _merge(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        result = dict(self._bound_fields)
        result.update(kwargs)
        return result

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._parent.debug(msg, *args, **self._merge(kwargs))

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._parent.info(msg, *args, **self._merge(kwargs))

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._parent.warning(msg, *args, **self._merge(kwargs))

    def error(self, msg: str, *args: Any, exc_info: Any = None, **kwargs: Any) -> None:
        self._parent.error(msg, *args, exc_info=exc_info, **self._merge(kwargs))

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._parent.exception(msg, *args, **self._merge(kwargs))

    def with_context(self, **kwargs: Any) -> "BoundLogger":
        return BoundLogger(self._parent, self._merge(kwargs))


_loggers: dict[str, ClabLogger] = {}
_registry_lock = threading.Lock()


def get_logger(
    name: str,
    level: int | str = logging.INFO,
    component: str | None = None,
) -> ClabLogger:
    """Get or create a logger by name.

    Loggers are cached by name and component, so repeated calls return the
    same instance.
    """
    key = f"{name}:{component or ''}"
    with _registry_lock:
        if key not in _loggers:
            _loggers[key] = ClabLogger(name, level, component)
        return _loggers[key]


def set_global_level(level: int | str) -> None:
    """Apply a log level to every logger created so far (used by --verbose)."""
    with _registry_lock:
        loggers = list(_loggers.values())
    for logger in loggers:
        logger.set_level(level)


def configure_root_logging(level: int | str = logging.WARNING, json_format: bool = False) -> None:
    """Route third-party library logs (requests, urllib3) through our formatters."""
    root = logging.getLogger()
    root.setLevel(level if isinstance(level, int) else getattr(logging, level.upper()))
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter(service="root") if json_format else ConsoleFormatter(service="root"))
    root.addHandler(handler)
