"""Collaborators shared by every request, built once per application."""

from __future__ import annotations

from dataclasses import dataclass

from config import Settings
from saveai.agent.analysis import ProductAnalyzer
from saveai.agent.product_lookup import PlaceholderProductLookup, ProductLookup
from saveai.db.base import RecordStore
from saveai.db.memory_store import MemoryRecordStore

from .auth import (
    IdentityProvider,
    InMemoryRateLimiter,
    RateLimiter,
    RedisRateLimiter,
    StaticTokenIdentityProvider,
    SupabaseIdentityProvider,
)
from .bootstrap import LOG_INFO, LOG_WARNING


@dataclass
class Services:
    store: RecordStore
    identity_provider: IdentityProvider
    analyzer: ProductAnalyzer
    product_lookup: ProductLookup
    rate_limiter: RateLimiter | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Services":
        if settings.supabase_configured:
            from supabase import create_client

            from saveai.db.supabase_store import SupabaseRecordStore

            client = create_client(settings.supabase_url, settings.supabase_key)
            store: RecordStore = SupabaseRecordStore(client=client)
            identity_provider: IdentityProvider = SupabaseIdentityProvider(client=client)
            LOG_INFO("Supabase configured", url=settings.supabase_url)
        else:
            store = MemoryRecordStore()
            identity_provider = StaticTokenIdentityProvider.from_csv(settings.static_session_tokens)
            LOG_WARNING("Supabase not configured; using in-memory store and static session tokens")

        return cls(
            store=store,
            identity_provider=identity_provider,
            analyzer=ProductAnalyzer.from_settings(settings),
            product_lookup=PlaceholderProductLookup(),
            rate_limiter=build_rate_limiter(settings),
        )


def build_rate_limiter(settings: Settings) -> RateLimiter | None:
    if not settings.rate_limit_enabled:
        return None
    if settings.rate_limit_backend == "redis":
        return RedisRateLimiter.from_url(settings.redis_url, settings.rate_limit_requests, settings.rate_limit_window)
    return InMemoryRateLimiter(settings.rate_limit_requests, settings.rate_limit_window)


__all__ = ["Services", "build_rate_limiter"]
