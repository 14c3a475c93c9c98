"""Owner-scoped record store contract shared by every storage backend."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

SEARCH_HISTORY = "search_history"
SAVED_PRODUCTS = "saved_products"
NOTIFICATIONS = "notifications"
AFFILIATE_CLICKS = "affiliate_clicks"
AUDIT_LOG = "audit_log"

Row = dict[str, Any]


class StoreError(RuntimeError):
    """Raised when the backing store rejects or fails an operation."""


class RecordStore(Protocol):
    """Every call is scoped to ``owner_id``; no method reads or writes other owners' rows."""

    def insert(self, table: str, owner_id: str, values: Row) -> Row:
        """Insert one row owned by ``owner_id`` and return it as stored."""

    def select(self, table: str, owner_id: str, *, record_id: str | None = None, filters: Row | None = None) -> list[Row]:
        """Return the owner's rows, newest first."""

    def update(self, table: str, owner_id: str, record_id: str, values: Row) -> Row | None:
        """Update one owned row; ``None`` when it does not exist for this owner."""

    def delete(self, table: str, owner_id: str, *, record_id: str | None = None) -> int:
        """Delete one owned row, or all of the owner's rows; return the count removed."""

    def purge_older_than(self, table: str, cutoff: datetime) -> int:
        """Maintenance only: remove rows of any owner created before ``cutoff``."""

    def ping(self) -> bool:
        """Cheap liveness probe used by the health check."""
