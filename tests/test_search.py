"""Search route and product lookup tests."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from conftest import USER_A, USER_B, auth
from saveai.agent.product_lookup import PlaceholderProductLookup, find_cheapest
from saveai.db import SEARCH_HISTORY
from saveai.db.base import StoreError
from saveai.models.schemas import Product


def _product(product_id: str, price: float) -> Product:
    return Product(id=product_id, name=product_id, price=price, currency="USD", url="https://example.com", store="s")


def test_keyword_search(client, store):
    response = client.post("/api/search", json={"query": "  <b>wireless</b> headphones "}, headers=auth())

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["query"] == "bwireless/b headphones"
    assert data["type"] == "keyword"
    assert data["urlType"] is None
    assert data["cheapest"]["price"] == 279.99
    assert len(data["alternatives"]) == 2

    history = store.select(SEARCH_HISTORY, USER_A)
    assert len(history) == 1
    assert data["searchId"] == history[0]["id"]
    assert history[0]["query"] == data["query"]
    assert history[0]["result_count"] == 3
    assert history[0]["cheapest_price"] == 279.99
    assert store.select(SEARCH_HISTORY, USER_B) == []


@pytest.mark.parametrize(
    "query,url_type,store_name",
    [
        ("https://www.amazon.com/dp/B08N5WRWNW", "amazon", "Amazon"),
        ("https://a.co/d/abc123", "amazon", "Amazon"),
        ("https://www.bestbuy.com/site/123", "other", "Generic Store"),
    ],
)
def test_url_search_classifies_store(client, query, url_type, store_name):
    response = client.post("/api/search", json={"query": query}, headers=auth())

    data = response.json()["data"]
    assert data["type"] == "url"
    assert data["urlType"] == url_type
    assert data["product"]["url"] == query
    assert data["product"]["store"] == store_name


def test_search_is_deterministic(client):
    first = client.post("/api/search", json={"query": "laptop"}, headers=auth()).json()["data"]
    second = client.post("/api/search", json={"query": "laptop"}, headers=auth()).json()["data"]

    assert first["product"] == second["product"]
    assert first["alternatives"] == second["alternatives"]
    assert first["searchId"] != second["searchId"]


@pytest.mark.parametrize("payload", [{}, {"query": ""}, {"query": None}])
def test_missing_query(client, store, payload):
    response = client.post("/api/search", json=payload, headers=auth())

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Missing required field: query"}
    assert store.select(SEARCH_HISTORY, USER_A) == []


@pytest.mark.parametrize("query", ["<<>>", "   ", 42])
def test_query_empty_after_sanitizing(client, store, query):
    response = client.post("/api/search", json={"query": query}, headers=auth())

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid query"
    assert store.select(SEARCH_HISTORY, USER_A) == []


def test_non_object_body(client):
    response = client.post("/api/search", json=["laptop"], headers=auth())

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"


def test_history_failure_does_not_fail_search(client, services):
    failing = MagicMock()
    failing.insert.side_effect = StoreError("insert on search_history failed")
    services.store = failing

    response = client.post("/api/search", json={"query": "laptop"}, headers=auth())

    assert response.status_code == 200
    assert response.json()["data"]["searchId"].startswith("search_")
    failing.insert.assert_called_once()


class TestFindCheapest:
    def test_minimum_price(self):
        products = [_product("a", 10), _product("b", 5), _product("c", 7)]

        assert find_cheapest(products).id == "b"

    def test_tie_keeps_first(self):
        products = [_product("a", 10), _product("b", 5), _product("c", 5)]

        assert find_cheapest(products).id == "b"

    def test_single(self):
        assert find_cheapest([_product("only", 1)]).id == "only"

    def test_empty(self):
        with pytest.raises(ValueError):
            find_cheapest([])


def test_placeholder_lookup_shape():
    products = PlaceholderProductLookup().lookup("desk lamp", is_url=False, store=None)

    assert [product.price for product in products] == [299.99, 279.99, 319.99]
    assert products[0].name == "Search results for: desk lamp"
    assert all(product.currency == "USD" for product in products)
    assert len({product.id for product in products}) == 3
