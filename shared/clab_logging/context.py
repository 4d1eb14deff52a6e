"""
Context management for clab_logging.

Carries the identifiers of the current analysis run (run id, agent, subject
path, granularity) into every log line emitted inside a scope. Backed by a
ContextVar so worker threads and nested scopes see their own values.
"""

import secrets
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from typing import Any


_current_context: ContextVar["LogContext | None"] = ContextVar("clab_log_context", default=None)

# Fields copied onto each log record (and hidden from the "extra" section).
CONTEXT_FIELDS = ("run_id", "agent_id", "subject_path", "level")


@dataclass
class LogContext:
    """Correlation fields for one analysis run.

    Attributes:
        run_id: Identifier shared by every log line of one CLI invocation
        agent_id: Persona whose perspective is being analyzed
        subject_path: Repository-relative path of the work item
        level: Granularity of the work item (file, directory, module, package)
        extra: Additional fields to include in logs
    """

    run_id: str | None = None
    agent_id: str | None = None
    subject_path: str | None = None
    level: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.run_id is None:
            self.run_id = secrets.token_hex(6)

    def with_fields(self, **kwargs: Any) -> "LogContext":
        """Return a copy with context fields overridden and extras merged."""
        known = {k: v for k, v in kwargs.items() if k in CONTEXT_FIELDS}
        extra = dict(self.extra)
        extra.update({k: v for k, v in kwargs.items() if k not in CONTEXT_FIELDS})
        return replace(self, extra=extra, **known)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for name in CONTEXT_FIELDS:
            value = getattr(self, name)
            if value:
                result[name] = value
        return result


def get_current_context() -> LogContext | None:
    """Get the current logging context."""
    return _current_context.get()


def set_current_context(ctx: LogContext | None) -> None:
    """Set the current logging context."""
    _current_context.set(ctx)


def get_or_create_context() -> LogContext:
    """Get the current context or create a new one."""
    ctx = get_current_context()
    if ctx is None:
        ctx = LogContext()
        set_current_context(ctx)
    return ctx


class ContextScope:
    """Context manager for scoped logging context.

    Fields not given explicitly are inherited from the enclosing scope, so a
    per-item scope inside a run scope keeps the run_id and agent_id.

    Usage:
        with ContextScope(agent_id="architect"):
            with ContextScope(subject_path="src/app.py", level="file"):
                logger.info("Analyzing item")
    """

    def __init__(self, **fields: Any):
        self._fields = fields
        self._token: Any = None

    def __enter__(self) -> LogContext:
        parent = get_current_context()
        if parent is None:
            known = {k: v for k, v in self._fields.items() if k in CONTEXT_FIELDS}
            extra = {k: v for k, v in self._fields.items() if k not in CONTEXT_FIELDS}
            ctx = LogContext(extra=extra, **known)
        else:
            ctx = parent.with_fields(**self._fields)
        self._token = _current_context.set(ctx)
        return ctx

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        _current_context.reset(self._token)
