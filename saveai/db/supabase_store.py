"""Supabase-backed record store.

Tables live in the ``public`` schema and are protected by row-level security.
Every query below still filters on ``user_id`` so that a misconfigured policy or
a service-role key cannot widen access.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from saveai.db.base import SAVED_PRODUCTS, Row, StoreError
from saveai.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class SupabaseRecordStore:
    """Thin owner-scoped wrapper around the supabase-py query builder."""

    client: Client

    def _table(self, name: str) -> Any:
        return self.client.table(name)

    def _execute(self, operation: str, table: str, query: Any) -> list[Row]:
        try:
            response = query.execute()
        except (APIError, httpx.HTTPError) as exc:
            logger.error("supabase_query_failed", operation=operation, table=table, error=str(exc))
            raise StoreError(f"{operation} on {table} failed") from exc
        return list(response.data or [])

    def insert(self, table: str, owner_id: str, values: Row) -> Row:
        rows = self._execute("insert", table, self._table(table).insert({**values, "user_id": owner_id}))
        if not rows:
            raise StoreError(f"insert on {table} returned no row")
        return rows[0]

    def select(self, table: str, owner_id: str, *, record_id: str | None = None, filters: Row | None = None) -> list[Row]:
        query = self._table(table).select("*").eq("user_id", owner_id)
        if record_id is not None:
            query = query.eq("id", record_id)
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        return self._execute("select", table, query.order("created_at", desc=True))

    def update(self, table: str, owner_id: str, record_id: str, values: Row) -> Row | None:
        payload = dict(values)
        if table == SAVED_PRODUCTS:
            payload["updated_at"] = datetime.now(timezone.utc).isoformat()
        query = self._table(table).update(payload).eq("id", record_id).eq("user_id", owner_id)
        rows = self._execute("update", table, query)
        return rows[0] if rows else None

    def delete(self, table: str, owner_id: str, *, record_id: str | None = None) -> int:
        query = self._table(table).delete().eq("user_id", owner_id)
        if record_id is not None:
            query = query.eq("id", record_id)
        rows = self._execute("delete", table, query)
        logger.info("supabase_rows_deleted", table=table, deleted=len(rows))
        return len(rows)

    def purge_older_than(self, table: str, cutoff: datetime) -> int:
        query = self._table(table).delete().lt("created_at", cutoff.isoformat())
        return len(self._execute("purge", table, query))

    def ping(self) -> bool:
        try:
            self._table(SAVED_PRODUCTS).select("id").limit(1).execute()
        except (APIError, httpx.HTTPError) as exc:
            logger.warning("supabase_ping_failed", error=str(exc))
            return False
        return True


__all__ = ["SupabaseRecordStore"]
