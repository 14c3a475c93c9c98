"""Storage backends for owner-scoped records."""

from saveai.db.base import (
    AFFILIATE_CLICKS,
    AUDIT_LOG,
    NOTIFICATIONS,
    SAVED_PRODUCTS,
    SEARCH_HISTORY,
    RecordStore,
    StoreError,
)

__all__ = [
    "AFFILIATE_CLICKS",
    "AUDIT_LOG",
    "NOTIFICATIONS",
    "SAVED_PRODUCTS",
    "SEARCH_HISTORY",
    "RecordStore",
    "StoreError",
]
