"""Input sanitisation and structural validation helpers shared by every route."""

from __future__ import annotations

import math
import re
from typing import Any, Iterable, Literal, Mapping
from urllib.parse import urlparse

MAX_INPUT_LENGTH = 1000

AMAZON_MARKERS = ("amazon.", "amzn.to", "amzn.com", "amzn.eu", "amzn.asia")
# a.co is compared to the hostname, so "mega.co/" is not taken for an Amazon link
AMAZON_SHORT_HOSTS = frozenset({"a.co", "www.a.co"})

_ANGLE_BRACKETS = re.compile(r"[<>]")
_JAVASCRIPT_SCHEME = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+=", re.IGNORECASE)
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_UUID = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
_CURRENCY = re.compile(r"^[A-Z]{3}$")

InputKind = Literal["url", "keyword"]
StoreKind = Literal["amazon", "other"]


def sanitize(text: Any) -> str:
    """Strip markup characters, script schemes and inline handlers from free text."""

    if not isinstance(text, str):
        return ""

    cleaned = text.strip()
    cleaned = _ANGLE_BRACKETS.sub("", cleaned)
    cleaned = _JAVASCRIPT_SCHEME.sub("", cleaned)
    cleaned = _EVENT_HANDLER.sub("", cleaned)
    return cleaned[:MAX_INPUT_LENGTH]


def is_url(text: str) -> bool:
    """Return True only for well-formed http/https URLs with a host."""

    if not isinstance(text, str) or not text or any(char.isspace() for char in text):
        return False
    try:
        parsed = urlparse(text)
        hostname = parsed.hostname
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(hostname)


def classify_input(text: str) -> InputKind:
    return "url" if is_url(text) else "keyword"


def classify_store(url: str) -> StoreKind:
    lowered = url.lower()
    if any(marker in lowered for marker in AMAZON_MARKERS):
        return "amazon"
    try:
        hostname = urlparse(lowered).hostname
    except ValueError:
        return "other"
    return "amazon" if hostname in AMAZON_SHORT_HOSTS else "other"


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and bool(_EMAIL.match(email))


def is_valid_identifier(value: Any) -> bool:
    """UUID-shaped check only; existence is verified by the store."""

    return isinstance(value, str) and bool(_UUID.match(value))


def is_valid_currency(code: Any) -> bool:
    return isinstance(code, str) and bool(_CURRENCY.match(code))


def is_number(value: Any) -> bool:
    # bool is a subclass of int but never a price
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def is_positive_number(value: Any) -> bool:
    return is_number(value) and value > 0


def require_fields(record: Mapping[str, Any], field_names: Iterable[str]) -> str | None:
    """Return the first field that is absent, ``None`` or an empty string."""

    for name in field_names:
        value = record.get(name)
        if value is None or value == "":
            return name
    return None


__all__ = [
    "AMAZON_MARKERS",
    "AMAZON_SHORT_HOSTS",
    "MAX_INPUT_LENGTH",
    "classify_input",
    "classify_store",
    "is_number",
    "is_positive_number",
    "is_url",
    "is_valid_currency",
    "is_valid_email",
    "is_valid_identifier",
    "require_fields",
    "sanitize",
]
