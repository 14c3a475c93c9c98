"""HTTP client for the Manus product analysis API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from config import Settings, get_settings
from saveai.logging_config import get_logger

logger = get_logger(__name__)


class ManusClientError(RuntimeError):
    """Base exception for Manus API failures."""


@dataclass
class ManusClient:
    """Async client for the Manus ``/analyze`` endpoint."""

    settings: Settings = field(default_factory=get_settings)
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.settings.manus_api_key:
            raise ManusClientError("Manus API key is required but not configured")

        self._client = httpx.AsyncClient(
            base_url=self.settings.manus_base_url,
            headers={
                "Authorization": f"Bearer {self.settings.manus_api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(
                timeout=self.settings.ai_timeout_seconds,
                connect=self.settings.ai_connect_timeout_seconds,
            ),
            transport=self.transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()

    async def analyze(
        self,
        *,
        product_name: str,
        product_price: float,
        product_url: str,
        description: str | None,
    ) -> dict[str, Any]:
        if not self._client:
            raise ManusClientError("HTTP client not initialized")

        payload = {
            "product_name": product_name,
            "product_price": product_price,
            "product_url": product_url,
            "description": description,
        }
        logger.info("manus_request")
        try:
            response = await self._client.post("/analyze", json=payload)
        except httpx.RequestError as exc:
            logger.warning("manus_request_error", error=str(exc))
            raise ManusClientError("Manus request failed") from exc

        if response.status_code >= 400:
            logger.warning("manus_request_failed", status_code=response.status_code, response=response.text[:500])
            raise ManusClientError(f"Manus returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ManusClientError("Manus returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise ManusClientError("Manus response is not a JSON object")
        return data


__all__ = ["ManusClient", "ManusClientError"]
