"""
Log formatters for clab_logging.

JsonFormatter emits one JSON object per line (CI logs, log files);
ConsoleFormatter emits a compact human-readable line for terminals.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from .context import CONTEXT_FIELDS


# LogRecord attributes that are never treated as structured extras
_STANDARD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
        *CONTEXT_FIELDS,
    }
)


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Return the structured fields passed to a log call."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    """One JSON object per log record.

    Output format:
        {"timestamp": "2025-11-28T12:34:56.789Z", "severity": "INFO",
         "message": "Analyzing item", "service": "clab",
         "context": {"run_id": "...", "agent_id": "architect"},
         "extra": {"path": "src/app.py"}}
    """

    def __init__(self, service: str = "clab", component: str | None = None):
        super().__init__()
        self.service = service
        self.component = component

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self._format_timestamp(record),
            "severity": record.levelname,
            "message": record.getMessage(),
            "service": self.service,
        }
        if self.component:
            entry["component"] = self.component
        if record.name and record.name != self.service:
            entry["logger"] = record.name

        context = {name: getattr(record, name) for name in CONTEXT_FIELDS if getattr(record, name, None)}
        if context:
            entry["context"] = context

        extra = record_extras(record)
        if extra:
            entry["extra"] = extra

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if record.levelno >= logging.WARNING:
            entry["sourceLocation"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(entry, default=str, ensure_ascii=False)

    def _format_timestamp(self, record: logging.LogRecord) -> str:
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{int(dt.microsecond / 1000):03d}Z"


class ConsoleFormatter(logging.Formatter):
    """Human-readable console formatter.

    Output format:
        12:34:56 [INFO    ] deep-dive: Analyzing item (agent=architect path=src/app.py) level=file
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[90m"

    def __init__(self, service: str = "clab", use_colors: bool | None = None, show_extra: bool = True):
        super().__init__()
        self.service = service
        self.use_colors = use_colors if use_colors is not None else self._detect_color_support()
        self.show_extra = show_extra

    def _detect_color_support(self) -> bool:
        if os.environ.get("NO_COLOR"):
            return False
        return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:8}"
        if self.use_colors:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        message = f"{timestamp} [{level}] {self.service}: {record.getMessage()}"

        context_parts = []
        if getattr(record, "agent_id", None):
            context_parts.append(f"agent={record.agent_id}")
        if getattr(record, "subject_path", None):
            context_parts.append(f"path={record.subject_path}")
        if context_parts:
            context_str = f"({' '.join(context_parts)})"
            if self.use_colors:
                context_str = f"{self.DIM}{context_str}{self.RESET}"
            message += f" {context_str}"

        if self.show_extra:
            extra = record_extras(record)
            if extra:
                message += " " + " ".join(f"{key}={value}" for key, value in extra.items())

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message
