"""HTTP client wrapper for OpenAI-compatible chat completion endpoints."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import httpx

from config import Settings, get_settings
from saveai.logging_config import get_logger

logger = get_logger(__name__)


class OpenAIClientError(RuntimeError):
    """Base exception for OpenAI client failures."""


class OpenAIRateLimitError(OpenAIClientError):
    """Raised when rate limit responses are received."""


class OpenAITimeoutError(OpenAIClientError):
    """Raised when the API does not respond within budget."""


ErrorMap: dict[int, type[OpenAIClientError]] = {
    429: OpenAIRateLimitError,
}


def _classify_error(status_code: int) -> type[OpenAIClientError]:
    return ErrorMap.get(status_code, OpenAIClientError)


def strip_json_fences(content: str) -> str:
    """Remove markdown code fences from LLM responses."""

    text = content.strip()
    if text.startswith("```"):
        text = text[3:]
        if text.lower().startswith("json"):
            text = text[4:]
        text = text.lstrip()
        if "```" in text:
            text = text.rsplit("```", 1)[0]
    return text.strip()


def _first_choice(response: Any) -> dict[str, Any]:
    if not isinstance(response, dict):
        raise OpenAIClientError("OpenAI response is not a JSON object")
    choices = response.get("choices")
    if not isinstance(choices, list) or not choices:
        raise OpenAIClientError("OpenAI returned no choices")
    if not isinstance(choices[0], dict):
        raise OpenAIClientError("OpenAI choice is not a JSON object")
    return choices[0]


def _message_content(choice: dict[str, Any]) -> str:
    message = choice.get("message")
    if not isinstance(message, dict):
        raise OpenAIClientError("OpenAI choice has no message")
    content = message.get("content")
    if not isinstance(content, str) or not content.strip():
        raise OpenAIClientError("OpenAI returned empty content")
    return content


@dataclass
class OpenAIClient:
    """Async client for ``/chat/completions`` with JSON-object responses."""

    settings: Settings = field(default_factory=get_settings)
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.settings.openai_api_key:
            raise OpenAIClientError("OpenAI API key is required but not configured")

        timeout = httpx.Timeout(
            timeout=self.settings.ai_timeout_seconds,
            connect=self.settings.ai_connect_timeout_seconds,
        )
        self._client = httpx.AsyncClient(
            base_url=self.settings.openai_base_url,
            headers={
                "Authorization": f"Bearer {self.settings.openai_api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=self.transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()

    async def _post(self, payload: dict[str, Any]) -> Any:
        if not self._client:
            raise OpenAIClientError("HTTP client not initialized")

        try:
            response = await self._client.post("/chat/completions", json=payload)
        except httpx.TimeoutException as exc:
            raise OpenAITimeoutError("OpenAI request timed out") from exc
        except httpx.RequestError as exc:
            logger.warning("openai_request_error", error=str(exc))
            raise OpenAIClientError("OpenAI request failed") from exc

        if response.status_code >= 400:
            # Body is logged for operators only; it never reaches the caller.
            logger.warning("openai_request_failed", status_code=response.status_code, response=response.text[:500])
            raise _classify_error(response.status_code)(f"OpenAI returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise OpenAIClientError("OpenAI returned a non-JSON body") from exc

    async def complete_json(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        model: str | None = None,
    ) -> dict[str, Any]:
        """Run one completion and return the decoded JSON object from the first choice."""

        payload: dict[str, Any] = {
            "model": model or self.settings.openai_model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "response_format": {"type": "json_object"},
        }
        logger.info("openai_request", model=payload["model"])
        response = await self._post(payload)

        choice = _first_choice(response)
        content = _message_content(choice)

        try:
            parsed = json.loads(strip_json_fences(content))
        except json.JSONDecodeError as exc:
            logger.warning("openai_invalid_json", finish_reason=choice.get("finish_reason"))
            raise OpenAIClientError("OpenAI returned unparseable content") from exc
        if not isinstance(parsed, dict):
            raise OpenAIClientError("OpenAI content is not a JSON object")
        return parsed


__all__ = ["OpenAIClient", "OpenAIClientError", "OpenAIRateLimitError", "OpenAITimeoutError", "strip_json_fences"]
