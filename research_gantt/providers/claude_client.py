import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from anthropic import AsyncAnthropic

from research_gantt.errors import CompletionBlockedError, CompletionResponseError
from research_gantt.reliability.retry import linear_backoff, retry_with_backoff

logger = logging.getLogger(__name__)

STRUCTURED_TOOL_NAME = "emit_result"


@dataclass(frozen=True)
class ModelConfig:
    """Sampling controls fixed per use-site."""

    max_output_tokens: int
    temperature: float
    top_p: float | None = None
    top_k: int | None = None


@dataclass
class ClaudeUsage:
    model: str
    input_tokens: int | None
    output_tokens: int | None
    request_id: str | None


class ClaudeClient:
    """Anthropic Messages wrapper with structured and free-text completion modes.

    Both modes share one retry core: up to ``max_attempts`` requests, waiting
    ``backoff_ms * attempt`` between them, and re-raising the last error.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        request_timeout_ms: int = 120000,
        max_attempts: int = 3,
        backoff_ms: int = 1000,
        client: Any | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_usage: Callable[[ClaudeUsage], None] | None = None,
    ) -> None:
        self._client = client if client is not None else AsyncAnthropic(api_key=api_key)
        self._model = model
        self._timeout_s = max(1.0, request_timeout_ms / 1000.0)
        self._max_attempts = max(1, max_attempts)
        self._delay = linear_backoff(backoff_ms / 1000.0)
        self._sleep = sleep
        self._on_usage = on_usage

    @property
    def model(self) -> str:
        return self._model

    @staticmethod
    def _request_id(exc: Exception) -> str | None:
        rid = getattr(exc, "request_id", None)
        if rid:
            return str(rid)
        body = getattr(exc, "body", None)
        if isinstance(body, dict):
            return body.get("request_id")
        return None

    def _request_kwargs(self, system: str, user: str, config: ModelConfig) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "system": system,
            "messages": [{"role": "user", "content": user}],
            "max_tokens": config.max_output_tokens,
            "temperature": config.temperature,
        }
        if config.top_p is not None:
            kwargs["top_p"] = config.top_p
        if config.top_k is not None:
            kwargs["top_k"] = config.top_k
        return kwargs

    async def _create(self, **kwargs: Any) -> Any:
        try:
            async with asyncio.timeout(self._timeout_s):
                response = await self._client.messages.create(**kwargs)
        except Exception as exc:
            logger.warning("Claude call failed model=%s request_id=%s error=%s", self._model, self._request_id(exc), exc)
            raise
        self._check_response(response)
        if self._on_usage is not None:
            usage = getattr(response, "usage", None)
            self._on_usage(
                ClaudeUsage(
                    model=self._model,
                    input_tokens=getattr(usage, "input_tokens", None),
                    output_tokens=getattr(usage, "output_tokens", None),
                    request_id=getattr(response, "id", None),
                )
            )
        return response

    @staticmethod
    def _check_response(response: Any) -> None:
        stop_reason = getattr(response, "stop_reason", None)
        if stop_reason == "refusal":
            raise CompletionBlockedError("API call blocked: the model refused to respond")
        content = getattr(response, "content", None)
        if not content:
            logger.error("Invalid API response without content: %r", response)
            raise CompletionResponseError("Invalid response from AI API")

    @staticmethod
    def _text_of(response: Any) -> str:
        return "".join(b.text for b in response.content if getattr(b, "type", "") == "text")

    def _structured_payload(self, response: Any) -> dict[str, Any]:
        for block in response.content:
            if getattr(block, "type", "") == "tool_use" and getattr(block, "name", "") == STRUCTURED_TOOL_NAME:
                payload = getattr(block, "input", None)
                if getattr(response, "stop_reason", None) == "max_tokens":
                    raise CompletionResponseError("Structured response was truncated at max_tokens")
                if not isinstance(payload, dict):
                    raise CompletionResponseError("Structured response was not a JSON object")
                return payload
        text = self._text_of(response).strip()
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as exc:
            raise CompletionResponseError(f"Structured response was not valid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise CompletionResponseError("Structured response was not a JSON object")
        return parsed

    async def complete_structured(
        self,
        system: str,
        user: str,
        schema: dict[str, Any],
        config: ModelConfig,
    ) -> dict[str, Any]:
        kwargs = self._request_kwargs(system, user, config)
        kwargs["tools"] = [
            {
                "name": STRUCTURED_TOOL_NAME,
                "description": "Return the result as a single JSON object matching the input schema.",
                "input_schema": schema,
            }
        ]
        kwargs["tool_choice"] = {"type": "tool", "name": STRUCTURED_TOOL_NAME}

        async def attempt() -> dict[str, Any]:
            response = await self._create(**kwargs)
            return self._structured_payload(response)

        return await retry_with_backoff(
            attempt,
            attempts=self._max_attempts,
            delay=self._delay,
            sleep=self._sleep,
            label="structured completion",
        )

    async def complete_text(self, system: str, user: str, config: ModelConfig) -> str:
        kwargs = self._request_kwargs(system, user, config)

        async def attempt() -> str:
            response = await self._create(**kwargs)
            text = self._text_of(response)
            if not text:
                raise CompletionResponseError("Invalid response from AI API")
            return text

        return await retry_with_backoff(
            attempt,
            attempts=self._max_attempts,
            delay=self._delay,
            sleep=self._sleep,
            label="text completion",
        )
