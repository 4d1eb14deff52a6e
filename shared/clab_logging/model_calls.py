"""
Model call capture for clab_logging.

Records each text-generation request as one structured log line carrying the
model, timing, token usage, and truncated prompt/response previews. Used by
the HTTP model client so every call is visible for cost and debugging.
"""

import time
from dataclasses import dataclass, field
from typing import Any

from .logger import ClabLogger


PREVIEW_LENGTH = 200


@dataclass
class TokenUsage:
    """Token counts reported by the provider.

    Attributes:
        prompt_tokens: Tokens in the request
        completion_tokens: Tokens in the response
        total_tokens: Total tokens (computed if not reported)
    """

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int | None = None

    def __post_init__(self):
        if self.total_tokens is None:
            self.total_tokens = self.prompt_tokens + self.completion_tokens

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "TokenUsage":
        """Build from an OpenAI-style ``usage`` object; tolerates None."""
        data = data or {}
        return cls(
            prompt_tokens=int(data.get("prompt_tokens") or 0),
            completion_tokens=int(data.get("completion_tokens") or 0),
            total_tokens=data.get("total_tokens"),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens or 0,
        }


def _preview(text: str) -> str:
    if len(text) > PREVIEW_LENGTH:
        return text[:PREVIEW_LENGTH] + "..."
    return text


@dataclass
class ModelCall:
    """One model invocation, filled in as the request progresses."""

    model: str
    prompt: str
    started: float = field(default_factory=time.perf_counter)
    duration_ms: float = 0.0
    response_text: str = ""
    model_used: str | None = None
    usage: TokenUsage = field(default_factory=TokenUsage)
    error: str | None = None

    def finish(
        self,
        text: str = "",
        model_used: str | None = None,
        usage: TokenUsage | None = None,
        error: str | None = None,
    ) -> "ModelCall":
        self.duration_ms = (time.perf_counter() - self.started) * 1000
        self.response_text = text
        self.model_used = model_used
        if usage is not None:
            self.usage = usage
        self.error = error
        return self

    def to_log_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "model": self.model,
            "duration_ms": round(self.duration_ms, 2),
            "prompt_length": len(self.prompt),
            "prompt_preview": _preview(self.prompt),
            **self.usage.to_dict(),
        }
        if self.model_used and self.model_used != self.model:
            result["model_used"] = self.model_used
        if self.response_text:
            result["response_length"] = len(self.response_text)
            result["response_preview"] = _preview(self.response_text)
        if self.error:
            result["error"] = self.error
        return result


def log_model_call(logger: ClabLogger, call: ModelCall) -> None:
    """Emit the structured record for a finished model call."""
    if call.error:
        logger.warning("Model call failed", **call.to_log_dict())
    else:
        logger.info("Model call completed", **call.to_log_dict())
