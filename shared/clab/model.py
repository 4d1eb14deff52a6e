"""
Model invocation over the OpenRouter chat-completions API.

Every request carries an explicit timeout; a timeout, a transport error, a
non-2xx status, or a body without a completion all raise ServiceError.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

import requests

from clab_logging import ModelCall, TokenUsage, get_logger, log_model_call

from .errors import ServiceError
from .extraction import extract_json


logger = get_logger("model")

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "anthropic/claude-3.5-sonnet"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4000
DEFAULT_TIMEOUT = 120.0

# Attribution headers OpenRouter shows on its dashboard
APP_REFERER = "https://github.com/idea-nexus-ventures/analyze-action"
APP_TITLE = "Consciousness Lab"


@dataclass
class ModelResponse:
    """Text returned by one model call."""

    text: str
    model_used: str
    usage: TokenUsage = field(default_factory=TokenUsage)


class ModelService(Protocol):
    """Anything that turns a prompt into text."""

    def call(
        self,
        model: str | None,
        prompt: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ModelResponse: ...


class OpenRouterClient:
    """HTTP client for OpenRouter.

    Usage:
        client = OpenRouterClient(api_key, default_model="anthropic/claude-3.5-sonnet")
        response = client.call(None, "Summarize this file ...")
        data = call_json(client, None, "Respond in JSON ...")
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = OPENROUTER_URL,
        default_model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        if not api_key:
            raise ValueError("OpenRouter API key is required")
        self.base_url = base_url
        self.default_model = default_model
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "HTTP-Referer": APP_REFERER,
                "X-Title": APP_TITLE,
            }
        )

    def call(
        self,
        model: str | None,
        prompt: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ModelResponse:
        """Send one user message and return the completion text.

        Raises:
            ServiceError: On timeout, transport failure, error status, or a
                response body without a completion.
        """
        model = model or self.default_model
        body = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": DEFAULT_TEMPERATURE if temperature is None else temperature,
            "max_tokens": DEFAULT_MAX_TOKENS if max_tokens is None else max_tokens,
        }
        call = ModelCall(model=model, prompt=prompt)

        try:
            response = self.session.post(self.base_url, json=body, timeout=self.timeout)
        except requests.Timeout as e:
            self._fail(call, f"Model call timed out after {self.timeout}s", e)
        except requests.RequestException as e:
            self._fail(call, f"Model call failed: {e}", e)

        if not response.ok:
            detail = response.text[:500]
            self._fail(call, f"OpenRouter API error: {response.status_code} - {detail}", status_code=response.status_code)

        try:
            data = response.json()
            text = data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            self._fail(call, f"Malformed response body: {e}", e, status_code=response.status_code)

        result = ModelResponse(
            text=text,
            model_used=data.get("model") or model,
            usage=TokenUsage.from_dict(data.get("usage")),
        )
        log_model_call(logger, call.finish(text=result.text, model_used=result.model_used, usage=result.usage))
        return result

    def _fail(
        self,
        call: ModelCall,
        message: str,
        cause: BaseException | None = None,
        status_code: int | None = None,
    ) -> None:
        log_model_call(logger, call.finish(error=message))
        raise ServiceError(message, status_code=status_code) from cause

    def list_models(self, timeout: float = 5.0) -> list[str]:
        """Model ids the key can use (used by the health check)."""
        url = self.base_url.rsplit("/chat/completions", 1)[0] + "/models"
        try:
            response = self.session.get(url, timeout=timeout)
            response.raise_for_status()
            return [m.get("id", "") for m in response.json().get("data", [])]
        except (requests.RequestException, ValueError) as e:
            raise ServiceError(f"Could not list models: {e}") from e


def call_json(service: ModelService, model: str | None, prompt: str, **options: Any) -> Any:
    """Call ``service`` and recover the JSON payload of its answer.

    Raises:
        ServiceError: If the call fails.
        ExtractionError: If no JSON value can be recovered.
    """
    return extract_json(service.call(model, prompt, **options).text)
