"""Process-local record store used for development and tests."""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from saveai.db.base import SAVED_PRODUCTS, Row
from saveai.logging_config import get_logger

logger = get_logger(__name__)

_TABLES_WITH_UPDATED_AT = frozenset({SAVED_PRODUCTS})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _matches(row: Row, owner_id: str, record_id: str | None, filters: Row | None) -> bool:
    if row["user_id"] != owner_id:
        return False
    if record_id is not None and row["id"] != record_id:
        return False
    return all(row.get(key) == value for key, value in (filters or {}).items())


@dataclass
class MemoryRecordStore:
    """Dictionary-backed store with the same owner scoping as the Supabase store.

    Contents are lost on restart.
    """

    clock: Callable[[], datetime] = _utcnow
    _tables: dict[str, list[Row]] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def insert(self, table: str, owner_id: str, values: Row) -> Row:
        now = self.clock()
        row: Row = {**values, "id": str(uuid.uuid4()), "user_id": owner_id, "created_at": now}
        if table in _TABLES_WITH_UPDATED_AT:
            row["updated_at"] = now
        with self._lock:
            self._tables.setdefault(table, []).append(row)
        logger.debug("memory_store_insert", table=table, record_id=row["id"])
        return dict(row)

    def select(self, table: str, owner_id: str, *, record_id: str | None = None, filters: Row | None = None) -> list[Row]:
        with self._lock:
            rows = [dict(row) for row in self._tables.get(table, []) if _matches(row, owner_id, record_id, filters)]
        # reversed() first so equal timestamps still come back newest-inserted first
        return sorted(reversed(rows), key=lambda row: row["created_at"], reverse=True)

    def update(self, table: str, owner_id: str, record_id: str, values: Row) -> Row | None:
        protected = {"id", "user_id", "created_at"}
        with self._lock:
            for row in self._tables.get(table, []):
                if _matches(row, owner_id, record_id, None):
                    row.update({key: value for key, value in values.items() if key not in protected})
                    if table in _TABLES_WITH_UPDATED_AT:
                        row["updated_at"] = self.clock()
                    return dict(row)
        return None

    def delete(self, table: str, owner_id: str, *, record_id: str | None = None) -> int:
        with self._lock:
            rows = self._tables.get(table, [])
            kept = [row for row in rows if not _matches(row, owner_id, record_id, None)]
            self._tables[table] = kept
            deleted = len(rows) - len(kept)
        logger.debug("memory_store_delete", table=table, deleted=deleted)
        return deleted

    def purge_older_than(self, table: str, cutoff: datetime) -> int:
        with self._lock:
            rows = self._tables.get(table, [])
            kept = [row for row in rows if row["created_at"] >= cutoff]
            self._tables[table] = kept
            return len(rows) - len(kept)

    def ping(self) -> bool:
        return True


__all__ = ["MemoryRecordStore"]
