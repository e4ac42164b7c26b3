"""Tests for dispatch keys and the dispatch deduplicator."""

import asyncio
from datetime import UTC, datetime, timedelta, timezone

import pytest

from famsched.domain.dispatch import build_dispatch_key, format_instant
from famsched.services import dispatch_service


START = datetime(2026, 2, 24, 14, 0, tzinfo=UTC)


@pytest.mark.unit
class TestDispatchKey:
    def test_key_layout(self) -> None:
        key = build_dispatch_key(task_id="t1", start=START, lead_minutes=10, endpoint="https://push.example/a")

        assert key == "t1:2026-02-24T14:00:00.000Z:10:https://push.example/a"

    def test_start_instant_is_rendered_in_utc(self) -> None:
        local = START.astimezone(timezone(timedelta(hours=2)))

        assert format_instant(local) == "2026-02-24T14:00:00.000Z"

    def test_rescheduled_task_gets_a_new_key(self) -> None:
        before = build_dispatch_key(task_id="t1", start=START, lead_minutes=10, endpoint="e")
        after = build_dispatch_key(task_id="t1", start=START + timedelta(hours=1), lead_minutes=10, endpoint="e")

        assert before != after

    def test_lead_and_endpoint_separate_keys(self) -> None:
        base = build_dispatch_key(task_id="t1", start=START, lead_minutes=10, endpoint="e1")

        assert base != build_dispatch_key(task_id="t1", start=START, lead_minutes=5, endpoint="e1")
        assert base != build_dispatch_key(task_id="t1", start=START, lead_minutes=10, endpoint="e2")


@pytest.mark.unit
class TestDispatchService:
    async def test_unknown_key_is_not_dispatched(self, patched_db) -> None:
        assert await dispatch_service.was_dispatched("t1:x:10:e") is False

    async def test_mark_then_check(self, patched_db) -> None:
        created = await dispatch_service.mark_dispatched("t1:x:10:e", sent_at=START)

        assert created is True
        assert await dispatch_service.was_dispatched("t1:x:10:e") is True
        assert patched_db.rows("reminder_dispatches") == [
            {"dispatch_key": "t1:x:10:e", "sent_at": "2026-02-24T14:00:00.000Z"}
        ]

    async def test_duplicate_mark_is_a_silent_no_op(self, patched_db) -> None:
        first, second = await asyncio.gather(
            dispatch_service.mark_dispatched("t1:x:10:e"),
            dispatch_service.mark_dispatched("t1:x:10:e"),
        )

        assert sorted([first, second]) == [False, True]
        assert len(patched_db.rows("reminder_dispatches")) == 1
