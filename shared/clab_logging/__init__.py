"""
clab_logging - Structured logging library for clab components.

Usage:
    from clab_logging import get_logger, ContextScope

    logger = get_logger("deep-dive")
    logger.info("Starting traversal", max_depth=3)

    # Every log line inside the scope carries the run and agent ids
    with ContextScope(agent_id="architect"):
        logger.info("Analyzing item", path="src/app.py")

    # Bound logger
    bound = logger.with_context(level="file")
    bound.debug("Cache hit")

    # Model calls
    from clab_logging import ModelCall, log_model_call

    call = ModelCall(model="anthropic/claude-3.5-sonnet", prompt=prompt)
    ...
    log_model_call(logger, call.finish(text=response_text))
"""

from .context import (
    ContextScope,
    LogContext,
    get_current_context,
    get_or_create_context,
    set_current_context,
)
from .formatters import ConsoleFormatter, JsonFormatter
from .logger import BoundLogger, ClabLogger, configure_root_logging, get_logger, set_global_level
from .model_calls import ModelCall, TokenUsage, log_model_call


__all__ = [
    "BoundLogger",
    "ClabLogger",
    "ConsoleFormatter",
    "ContextScope",
    "JsonFormatter",
    "LogContext",
    "ModelCall",
    "TokenUsage",
    "configure_root_logging",
    "get_current_context",
    "get_logger",
    "get_or_create_context",
    "log_model_call",
    "set_current_context",
    "set_global_level",
]
