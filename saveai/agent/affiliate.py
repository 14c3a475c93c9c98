"""Deterministic affiliate link construction."""

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from config import Settings
from saveai.validation import classify_store


def _with_params(url: str, params: dict[str, str]) -> str:
    parsed = urlparse(url)
    query = dict(parse_qsl(parsed.query, keep_blank_values=True))
    query.update(params)
    return urlunparse(parsed._replace(query=urlencode(query)))


def build_affiliate_url(url: str, store: str, settings: Settings, product_id: str | None = None) -> str:
    """Append tracking parameters for the destination store.

    Amazon links carry the associate ``tag`` when one is configured; every other
    destination gets UTM parameters. The same inputs always give the same URL.
    """

    is_amazon = classify_store(url) == "amazon" or store.strip().lower() == "amazon"
    if is_amazon and settings.amazon_affiliate_tag:
        return _with_params(url, {"tag": settings.amazon_affiliate_tag})

    params = {"utm_source": settings.affiliate_source, "utm_medium": "affiliate", "utm_campaign": store.strip().lower()}
    if product_id:
        params["utm_content"] = product_id
    return _with_params(url, params)


__all__ = ["build_affiliate_url"]
