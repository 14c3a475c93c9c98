"""Product lookup used by ``/search``.

``PlaceholderProductLookup`` stands in for a real scraping or catalog
integration. Its output is a pure function of the query, so repeated searches
return the same products.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Protocol, Sequence

from saveai.models.schemas import Product
from saveai.validation import StoreKind


class ProductLookup(Protocol):
    def lookup(self, query: str, *, is_url: bool, store: StoreKind | None) -> list[Product]:
        """Return the matched product first, followed by alternatives."""


def _query_digest(query: str) -> str:
    return hashlib.sha256(query.encode("utf-8")).hexdigest()[:12]


@dataclass
class PlaceholderProductLookup:
    currency: str = "USD"
    image: str = "/placeholder.jpg"

    def lookup(self, query: str, *, is_url: bool, store: StoreKind | None) -> list[Product]:
        digest = _query_digest(query)
        name = "Product from URL" if is_url else f"Search results for: {query}"
        primary = Product(
            id=f"prod_{digest}",
            name=name,
            price=299.99,
            currency=self.currency,
            image=self.image,
            url=query if is_url else f"https://example.com/product/{digest}",
            store="Amazon" if store == "amazon" else "Generic Store",
            rating=4.5,
            reviews=1234,
        )
        alternatives = [
            Product(
                id=f"alt_1_{digest}",
                name=f"{name} - Alternative 1",
                price=279.99,
                currency=self.currency,
                image=self.image,
                url="https://example.com/alt1",
                store="Store A",
                rating=4.3,
                reviews=890,
            ),
            Product(
                id=f"alt_2_{digest}",
                name=f"{name} - Alternative 2",
                price=319.99,
                currency=self.currency,
                image=self.image,
                url="https://example.com/alt2",
                store="Store B",
                rating=4.7,
                reviews=2100,
            ),
        ]
        return [primary, *alternatives]


def find_cheapest(products: Sequence[Product]) -> Product:
    """Minimum by price; on a tie the first product encountered wins."""

    if not products:
        raise ValueError("Cannot pick the cheapest of an empty result set")
    cheapest = products[0]
    for product in products[1:]:
        if product.price < cheapest.price:
            cheapest = product
    return cheapest


__all__ = ["PlaceholderProductLookup", "ProductLookup", "find_cheapest"]
