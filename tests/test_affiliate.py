"""Affiliate link tests."""

from __future__ import annotations

from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from conftest import USER_A, auth, make_settings
from saveai.agent.affiliate import build_affiliate_url
from saveai.db import AFFILIATE_CLICKS
from saveai.infrastructure import create_app


def _params(url: str) -> dict[str, list[str]]:
    return parse_qs(urlparse(url).query)


class TestBuildAffiliateUrl:
    def test_amazon_tag(self):
        settings = make_settings(amazon_affiliate_tag="saveai-20")

        url = build_affiliate_url("https://www.amazon.com/dp/B08N5WRWNW?th=1", "Amazon", settings)

        assert _params(url) == {"th": ["1"], "tag": ["saveai-20"]}
        assert url.startswith("https://www.amazon.com/dp/B08N5WRWNW?")

    def test_existing_tag_is_replaced(self):
        settings = make_settings(amazon_affiliate_tag="saveai-20")

        url = build_affiliate_url("https://amzn.to/x?tag=someone-else", "amazon", settings)

        assert _params(url)["tag"] == ["saveai-20"]

    def test_amazon_short_link_gets_tag(self):
        settings = make_settings(amazon_affiliate_tag="saveai-20")

        url = build_affiliate_url("https://a.co/d/abc123", "Other", settings)

        assert _params(url) == {"tag": ["saveai-20"]}

    def test_amazon_without_tag_falls_back_to_utm(self):
        url = build_affiliate_url("https://www.amazon.com/dp/1", "Amazon", make_settings())

        assert _params(url) == {
            "utm_source": ["saveai"],
            "utm_medium": ["affiliate"],
            "utm_campaign": ["amazon"],
        }

    def test_other_store_utm_with_product_id(self):
        url = build_affiliate_url("https://www.bestbuy.com/site/123", " BestBuy ", make_settings(), "sku-9")

        assert _params(url) == {
            "utm_source": ["saveai"],
            "utm_medium": ["affiliate"],
            "utm_campaign": ["bestbuy"],
            "utm_content": ["sku-9"],
        }

    def test_deterministic(self):
        settings = make_settings(amazon_affiliate_tag="saveai-20")
        args = ("https://www.walmart.com/ip/42", "Walmart", settings, "p1")

        assert build_affiliate_url(*args) == build_affiliate_url(*args)


class TestAffiliateRoute:
    def test_builds_link_and_tracks_click(self, client, store):
        response = client.post(
            "/api/affiliate",
            json={"productUrl": "https://www.bestbuy.com/site/123", "store": "BestBuy", "productId": "sku-9"},
            headers=auth(),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["originalUrl"] == "https://www.bestbuy.com/site/123"
        assert data["store"] == "BestBuy"
        assert data["tracked"] is True
        assert _params(data["affiliateUrl"])["utm_content"] == ["sku-9"]

        clicks = store.select(AFFILIATE_CLICKS, USER_A)
        assert len(clicks) == 1
        assert clicks[0]["affiliate_url"] == data["affiliateUrl"]

    def test_uses_configured_amazon_tag(self, services):
        client = TestClient(create_app(make_settings(amazon_affiliate_tag="saveai-20"), services))

        response = client.post(
            "/api/affiliate",
            json={"productUrl": "https://www.amazon.com/dp/B08N5WRWNW", "store": "Amazon"},
            headers=auth(),
        )

        assert _params(response.json()["data"]["affiliateUrl"]) == {"tag": ["saveai-20"]}

    @pytest.mark.parametrize(
        "payload,error",
        [
            ({"store": "Amazon"}, "Missing required field: productUrl"),
            ({"productUrl": "https://example.com"}, "Missing required field: store"),
            ({"productUrl": "javascript:alert(1)", "store": "x"}, "productUrl must be a valid http(s) URL"),
            ({"productUrl": "https://example.com", "store": "<>"}, "Invalid store"),
        ],
    )
    def test_validation(self, client, store, payload, error):
        response = client.post("/api/affiliate", json=payload, headers=auth())

        assert response.status_code == 400
        assert response.json()["error"] == error
        assert store.select(AFFILIATE_CLICKS, USER_A) == []

    def test_tracking_failure_still_returns_link(self, client, services):
        failing = MagicMock()
        failing.insert.side_effect = RuntimeError("store unavailable")
        services.store = failing

        response = client.post(
            "/api/affiliate",
            json={"productUrl": "https://example.com/p", "store": "Example"},
            headers=auth(),
        )

        assert response.status_code == 200
        assert response.json()["data"]["tracked"] is False
