"""Record store and audit cleanup tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, call

import httpx
import pytest
from postgrest.exceptions import APIError

from config import Settings
from saveai.db import AUDIT_LOG, SAVED_PRODUCTS, SEARCH_HISTORY, StoreError
from saveai.db.memory_store import MemoryRecordStore
from saveai.db.supabase_store import SupabaseRecordStore
from saveai.infrastructure import bootstrap

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


class TestMemoryRecordStore:
    def test_insert_assigns_identity_fields(self):
        store = MemoryRecordStore(clock=lambda: NOW)

        row = store.insert(SAVED_PRODUCTS, "u1", {"product_name": "x", "id": "forged", "user_id": "u2"})

        assert row["id"] != "forged"
        assert row["user_id"] == "u1"
        assert row["created_at"] == NOW
        assert row["updated_at"] == NOW

    def test_update_protects_ownership(self):
        store = MemoryRecordStore()
        row = store.insert(SAVED_PRODUCTS, "u1", {"notes": None})

        updated = store.update(SAVED_PRODUCTS, "u1", row["id"], {"notes": "n", "user_id": "u2", "id": "x"})

        assert updated["user_id"] == "u1"
        assert updated["id"] == row["id"]
        assert store.update(SAVED_PRODUCTS, "u2", row["id"], {"notes": "stolen"}) is None

    def test_returned_rows_are_copies(self):
        store = MemoryRecordStore()
        row = store.insert(SEARCH_HISTORY, "u1", {"query": "a"})
        row["query"] = "mutated"

        assert store.select(SEARCH_HISTORY, "u1")[0]["query"] == "a"

    def test_equal_timestamps_keep_insertion_order_newest_first(self):
        store = MemoryRecordStore(clock=lambda: NOW)
        for query in ("first", "second", "third"):
            store.insert(SEARCH_HISTORY, "u1", {"query": query})

        assert [row["query"] for row in store.select(SEARCH_HISTORY, "u1")] == ["third", "second", "first"]

    def test_delete_scoped_to_owner(self):
        store = MemoryRecordStore()
        store.insert(SEARCH_HISTORY, "u1", {"query": "a"})
        store.insert(SEARCH_HISTORY, "u1", {"query": "b"})
        store.insert(SEARCH_HISTORY, "u2", {"query": "c"})

        assert store.delete(SEARCH_HISTORY, "u1") == 2
        assert store.delete(SEARCH_HISTORY, "u1") == 0
        assert len(store.select(SEARCH_HISTORY, "u2")) == 1

    def test_purge_older_than(self):
        times = iter([NOW - timedelta(days=100), NOW - timedelta(days=10)])
        store = MemoryRecordStore(clock=lambda: next(times))
        store.insert(AUDIT_LOG, "u1", {"action": "delete"})
        store.insert(AUDIT_LOG, "u2", {"action": "delete"})

        assert store.purge_older_than(AUDIT_LOG, NOW - timedelta(days=90)) == 1
        assert store.select(AUDIT_LOG, "u1") == []
        assert len(store.select(AUDIT_LOG, "u2")) == 1


class TestSupabaseRecordStore:
    @staticmethod
    def _client(data=None, error: Exception | None = None) -> MagicMock:
        client = MagicMock()
        query = client.table.return_value
        for method in ("select", "insert", "update", "delete", "eq", "lt", "order", "limit"):
            getattr(query, method).return_value = query
        if error is not None:
            query.execute.side_effect = error
        else:
            query.execute.return_value = MagicMock(data=data)
        return client

    def test_select_filters_by_owner_and_orders(self):
        client = self._client(data=[{"id": "r1"}])
        store = SupabaseRecordStore(client=client)

        rows = store.select(SEARCH_HISTORY, "u1", record_id="r1")

        query = client.table.return_value
        client.table.assert_called_with(SEARCH_HISTORY)
        query.eq.assert_any_call("user_id", "u1")
        query.eq.assert_any_call("id", "r1")
        query.order.assert_called_once_with("created_at", desc=True)
        assert rows == [{"id": "r1"}]

    def test_insert_sets_owner(self):
        client = self._client(data=[{"id": "r1", "user_id": "u1"}])

        SupabaseRecordStore(client=client).insert(SEARCH_HISTORY, "u1", {"query": "a", "user_id": "u2"})

        client.table.return_value.insert.assert_called_once_with({"query": "a", "user_id": "u1"})

    def test_update_and_delete_are_owner_scoped(self):
        client = self._client(data=[])
        store = SupabaseRecordStore(client=client)

        assert store.update(SAVED_PRODUCTS, "u1", "r1", {"notes": "n"}) is None
        assert store.delete(SAVED_PRODUCTS, "u1", record_id="r1") == 0

        query = client.table.return_value
        payload = query.update.call_args.args[0]
        assert payload["notes"] == "n"
        assert "updated_at" in payload
        assert query.eq.call_args_list.count(call("user_id", "u1")) == 2

    @pytest.mark.parametrize(
        "error",
        [
            APIError({"message": "permission denied", "code": "42501"}),
            httpx.ConnectError("connection refused"),
        ],
    )
    def test_driver_errors_become_store_errors(self, error):
        store = SupabaseRecordStore(client=self._client(error=error))

        with pytest.raises(StoreError):
            store.select(SEARCH_HISTORY, "u1")
        assert store.ping() is False


class TestAuditCleanup:
    def test_purge_uses_retention_window(self):
        store = MagicMock()
        store.purge_older_than.return_value = 4

        assert bootstrap.purge_audit_log(store, retention_days=30) == 4

        table, cutoff = store.purge_older_than.call_args.args
        assert table == AUDIT_LOG
        expected = datetime.now(timezone.utc) - timedelta(days=30)
        assert abs((cutoff - expected).total_seconds()) < 5

    def test_purge_failure_is_logged_not_raised(self):
        store = MagicMock()
        store.purge_older_than.side_effect = StoreError("purge on audit_log failed")

        assert bootstrap.purge_audit_log(store, retention_days=30) == 0

    def test_jobs_disabled(self, monkeypatch):
        scheduler = MagicMock(running=False)
        monkeypatch.setattr(bootstrap, "background_scheduler", scheduler)

        bootstrap.start_background_jobs(MagicMock(), Settings(_env_file=None, enable_background_jobs=False))

        scheduler.add_job.assert_not_called()
        scheduler.start.assert_not_called()

    def test_jobs_schedule_daily_cleanup(self, monkeypatch):
        scheduler = MagicMock(running=False)
        monkeypatch.setattr(bootstrap, "background_scheduler", scheduler)
        store = MagicMock()
        settings = Settings(_env_file=None, enable_background_jobs=True, cleanup_hour=4, audit_retention_days=30)

        bootstrap.start_background_jobs(store, settings)

        kwargs = scheduler.add_job.call_args.kwargs
        assert kwargs["func"] is bootstrap.purge_audit_log
        assert kwargs["args"] == (store, 30)
        assert kwargs["trigger"] == "cron"
        assert kwargs["hour"] == 4
        scheduler.start.assert_called_once()
