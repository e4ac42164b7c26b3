"""Tests for the SQLite client against a temporary database file."""

from collections.abc import AsyncIterator

import pytest

from famsched.core import db_client
from famsched.core.config import Constants, settings
from famsched.core.db_client import RecordNotFoundError, parse_filter


@pytest.fixture
async def sqlite_db(tmp_path, monkeypatch) -> AsyncIterator[None]:
    """Point the client at a fresh database with the schema applied."""
    monkeypatch.setattr(settings, "sqlite_db_path", str(tmp_path / "famsched.db"))
    await db_client.init_db()
    yield
    await db_client.close_connection()


async def _add_task(task_id: str, **columns) -> None:
    await db_client.upsert_record(collection="tasks", data={"id": task_id, **columns}, key_field="id")


@pytest.mark.unit
class TestParseFilter:
    def test_and_with_booleans(self) -> None:
        where, params = parse_filter('completed = "false" && send_notification = "true"')

        assert where == "completed = ? AND send_notification = ?"
        assert params == [False, True]

    def test_comparisons_and_numbers(self) -> None:
        where, params = parse_filter('reminder_lead_minutes >= "10" && user_name != "roi"')

        assert where == "reminder_lead_minutes >= ? AND user_name != ?"
        assert params == [10, "roi"]

    def test_invalid_syntax(self) -> None:
        with pytest.raises(ValueError, match="Invalid filter syntax"):
            parse_filter("completed == false")


@pytest.mark.integration
class TestSQLiteClient:
    async def test_insert_if_absent_inserts_once(self, sqlite_db) -> None:
        data = {"dispatch_key": "t1:2026-02-24T12:00:00.000Z:10:https://push.example/a", "sent_at": "x"}

        assert await db_client.insert_if_absent(collection="reminder_dispatches", data=data, key_field="dispatch_key")
        assert not await db_client.insert_if_absent(
            collection="reminder_dispatches", data=data, key_field="dispatch_key"
        )

        rows = await db_client.list_records(collection="reminder_dispatches")
        assert len(rows) == 1

    async def test_upsert_overwrites_given_columns(self, sqlite_db) -> None:
        row = {"endpoint": "https://push.example/a", "p256dh": "p", "auth": "a", "reminder_lead_minutes": 10}
        await db_client.upsert_record(collection="push_subscriptions", data=row, key_field="endpoint")

        stored = await db_client.upsert_record(
            collection="push_subscriptions",
            data={**row, "user_name": "roi", "watch_children": ["amit"], "reminder_lead_minutes": 30},
            key_field="endpoint",
        )

        assert stored["user_name"] == "roi"
        assert stored["watch_children"] == '["amit"]'
        assert stored["reminder_lead_minutes"] == 30
        assert len(await db_client.list_records(collection="push_subscriptions")) == 1

    async def test_filters_and_updates_tasks(self, sqlite_db) -> None:
        await _add_task("t1", title="Piano", child="alin")
        await _add_task("t2", title="Swim", completed=1)
        await _add_task("t3", title="Art", send_notification=0)

        pending = await db_client.list_records(
            collection="tasks", filter_query='completed = "false" && send_notification = "true"'
        )
        assert [row["id"] for row in pending] == ["t1"]

        updated = await db_client.update_record(collection="tasks", record_id="t1", data={"notified": True})
        assert updated["notified"] == 1

    async def test_sort_descending(self, sqlite_db) -> None:
        for endpoint, updated_at in (("a", "2026-01-01"), ("b", "2026-03-01"), ("c", "2026-02-01")):
            await db_client.upsert_record(
                collection="push_subscriptions",
                data={"endpoint": endpoint, "p256dh": "p", "auth": "a", "updated_at": updated_at},
                key_field="endpoint",
            )

        rows = await db_client.list_records(collection="push_subscriptions", sort="-updated_at")

        assert [row["endpoint"] for row in rows] == ["b", "c", "a"]

    async def test_list_all_records_reads_every_page(self, sqlite_db, monkeypatch) -> None:
        monkeypatch.setattr(Constants, "BULK_READ_LIMIT", 2)
        for index in range(5):
            await _add_task(f"t{index}")

        rows = await db_client.list_all_records(collection="tasks")

        assert [row["id"] for row in rows] == ["t0", "t1", "t2", "t3", "t4"]

    async def test_list_all_records_exact_multiple_of_page(self, sqlite_db, monkeypatch) -> None:
        monkeypatch.setattr(Constants, "BULK_READ_LIMIT", 2)
        for index in range(4):
            await _add_task(f"t{index}")

        assert len(await db_client.list_all_records(collection="tasks")) == 4

    async def test_missing_records(self, sqlite_db) -> None:
        with pytest.raises(RecordNotFoundError):
            await db_client.get_record(collection="tasks", record_id="nope")
        with pytest.raises(RecordNotFoundError):
            await db_client.delete_record(collection="push_subscriptions", record_id="nope", key_field="endpoint")

    async def test_init_db_is_idempotent(self, sqlite_db) -> None:
        await db_client.init_db()

        assert await db_client.list_records(collection="tasks") == []

    async def test_invalid_identifier(self, sqlite_db) -> None:
        with pytest.raises(db_client.DatabaseError, match="Invalid identifier"):
            await db_client.list_records(collection="tasks; DROP TABLE tasks")
