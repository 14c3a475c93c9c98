"""Shared fixtures: an app wired to in-memory collaborators and two callers."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from config import Settings
from saveai.agent.analysis import ProductAnalyzer
from saveai.agent.product_lookup import PlaceholderProductLookup
from saveai.db.memory_store import MemoryRecordStore
from saveai.infrastructure import create_app
from saveai.infrastructure.auth import StaticTokenIdentityProvider
from saveai.infrastructure.services import Services

USER_A = "11111111-1111-4111-8111-111111111111"
USER_B = "22222222-2222-4222-8222-222222222222"
TOKEN_A = "session-token-a"
TOKEN_B = "session-token-b"
MISSING_ID = "99999999-9999-4999-8999-999999999999"


def auth(token: str = TOKEN_A) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def make_settings(**overrides) -> Settings:
    values = {
        "env": "development",
        "supabase_url": "",
        "supabase_key": "",
        "static_session_tokens": "",
        "openai_api_key": "",
        "manus_api_key": "",
        "amazon_affiliate_tag": "",
        "rate_limit_enabled": False,
        "enable_background_jobs": False,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def services(store: MemoryRecordStore) -> Services:
    return Services(
        store=store,
        identity_provider=StaticTokenIdentityProvider(tokens={TOKEN_A: USER_A, TOKEN_B: USER_B}),
        analyzer=ProductAnalyzer(),
        product_lookup=PlaceholderProductLookup(),
        rate_limiter=None,
    )


@pytest.fixture
def client(settings: Settings, services: Services) -> TestClient:
    return TestClient(create_app(settings, services))
