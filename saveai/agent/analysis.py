"""AI product analysis with an ordered provider fallback chain.

Providers are tried in order and the first success wins. Each provider gets a
single attempt. When no provider is configured a canned analysis is returned
instead, so ``/analyze`` works in environments without credentials.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from config import Settings
from saveai.agent import prompts
from saveai.api.manus_client import ManusClient, ManusClientError
from saveai.api.openai_client import OpenAIClient, OpenAIClientError
from saveai.logging_config import get_logger
from saveai.models.schemas import AnalysisResult, SuggestedAlternative

logger = get_logger(__name__)


class ProviderError(RuntimeError):
    """A provider call failed or returned an unusable reply."""


class UpstreamFailure(RuntimeError):
    """Every configured provider failed."""


@dataclass(frozen=True, slots=True)
class ProductForAnalysis:
    name: str
    price: float
    url: str
    description: str | None = None


class AnalysisProvider(Protocol):
    name: str

    async def analyze(self, product: ProductForAnalysis) -> AnalysisResult:
        """Return a complete result or raise ``ProviderError``."""


def _build_result(payload: dict[str, Any], provider: str, alternatives_key: str) -> AnalysisResult:
    try:
        return AnalysisResult.model_validate(
            {
                "summary": payload.get("summary") or "Analysis completed",
                "pros": payload.get("pros") or [],
                "cons": payload.get("cons") or [],
                "suggestedAlternatives": payload.get(alternatives_key) or [],
                "aiProvider": provider,
            }
        )
    except ValidationError as exc:
        raise ProviderError(f"{provider} reply did not match the analysis schema") from exc


@dataclass
class OpenAIAnalysisProvider:
    settings: Settings
    transport: httpx.AsyncBaseTransport | None = None
    name: str = field(default="openai", init=False)

    async def analyze(self, product: ProductForAnalysis) -> AnalysisResult:
        client = OpenAIClient(settings=self.settings, transport=self.transport)
        try:
            payload = await client.complete_json(
                system_prompt=prompts.ANALYSIS_SYSTEM_PROMPT,
                user_prompt=prompts.build_analysis_prompt(product.name, product.price, product.description),
            )
        except OpenAIClientError as exc:
            raise ProviderError(str(exc)) from exc
        finally:
            await client.close()
        return _build_result(payload, self.name, "suggestedAlternatives")


@dataclass
class ManusAnalysisProvider:
    settings: Settings
    transport: httpx.AsyncBaseTransport | None = None
    name: str = field(default="manus", init=False)

    async def analyze(self, product: ProductForAnalysis) -> AnalysisResult:
        client = ManusClient(settings=self.settings, transport=self.transport)
        try:
            payload = await client.analyze(
                product_name=product.name,
                product_price=product.price,
                product_url=product.url,
                description=product.description,
            )
        except ManusClientError as exc:
            raise ProviderError(str(exc)) from exc
        finally:
            await client.close()
        return _build_result(payload, self.name, "alternatives")


def mock_analysis(product: ProductForAnalysis) -> AnalysisResult:
    return AnalysisResult(
        summary=(
            f"{product.name} is a solid choice at ${product.price:.2f}. It offers good value for money "
            "with competitive features in its category."
        ),
        pros=[
            "Competitive pricing",
            "Good build quality",
            "Positive user reviews",
            "Wide availability",
            "Reliable brand",
        ],
        cons=[
            "Limited color options",
            "Could have better warranty",
            "Shipping may take longer",
        ],
        suggestedAlternatives=[
            SuggestedAlternative(name="Similar Product A", reason="Better warranty coverage and slightly lower price"),
            SuggestedAlternative(name="Similar Product B", reason="Premium features with excellent customer reviews"),
        ],
        aiProvider="mock",
    )


@dataclass
class ProductAnalyzer:
    providers: list[AnalysisProvider] = field(default_factory=list)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ProductAnalyzer":
        providers: list[AnalysisProvider] = []
        if settings.openai_api_key:
            providers.append(OpenAIAnalysisProvider(settings=settings, transport=transport))
        if settings.manus_api_key:
            providers.append(ManusAnalysisProvider(settings=settings, transport=transport))
        return cls(providers=providers)

    @property
    def provider_names(self) -> list[str]:
        return [provider.name for provider in self.providers]

    async def analyze(self, product: ProductForAnalysis) -> AnalysisResult:
        if not self.providers:
            logger.info("analysis_mock_used", reason="no_provider_configured")
            return mock_analysis(product)

        for provider in self.providers:
            try:
                result = await provider.analyze(product)
            except ProviderError as exc:
                logger.warning("analysis_provider_failed", provider=provider.name, error=str(exc))
                continue
            logger.info("analysis_completed", provider=provider.name)
            return result

        raise UpstreamFailure("No AI service available")


__all__ = [
    "ManusAnalysisProvider",
    "OpenAIAnalysisProvider",
    "ProductAnalyzer",
    "ProductForAnalysis",
    "ProviderError",
    "UpstreamFailure",
    "mock_analysis",
]
