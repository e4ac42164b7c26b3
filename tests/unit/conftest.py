"""Pytest configuration and fixtures for unit tests."""

import json
from typing import Any
from unittest.mock import Mock

import pytest
from pywebpush import WebPushException

from famsched.interface import push_sender
from famsched.interface.push_sender import PushTransport, VapidConfig
from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db() -> InMemoryDBClient:
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches famsched.core.db_client functions to use InMemoryDBClient."""
    for name in (
        "insert_if_absent",
        "upsert_record",
        "get_record",
        "update_record",
        "delete_record",
        "list_records",
    ):
        monkeypatch.setattr(f"famsched.core.db_client.{name}", getattr(in_memory_db, name))
    return in_memory_db


class FakePushService:
    """Stands in for pywebpush.webpush, recording every message.

    ``fail_with`` maps an endpoint to the HTTP status the push service should
    answer with; 0 raises a WebPushException without a response.
    """

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail_with: dict[str, int] = {}

    def __call__(self, *, subscription_info, data, vapid_private_key, vapid_claims, ttl) -> None:
        endpoint = subscription_info["endpoint"]
        if endpoint in self.fail_with:
            status = self.fail_with[endpoint]
            response = Mock(status_code=status) if status else None
            raise WebPushException(f"Push failed: {status}", response=response)
        self.sent.append({"endpoint": endpoint, "payload": json.loads(data), "ttl": ttl})

    def endpoints(self) -> list[str]:
        return [message["endpoint"] for message in self.sent]


@pytest.fixture
def push_service(monkeypatch) -> FakePushService:
    """Replaces the network call made by PushTransport."""
    fake = FakePushService()
    monkeypatch.setattr(push_sender, "webpush", fake)
    return fake


@pytest.fixture
def transport(monkeypatch, push_service) -> PushTransport:
    """A configured transport installed as the process-wide one."""
    configured = PushTransport(VapidConfig(public_key="test-public", private_key="test-private"), ttl_seconds=60)
    monkeypatch.setattr(push_sender, "_transport", configured)
    return configured


@pytest.fixture
def task_row():
    """Factory for stored task rows with the columns' default values."""

    def _make(task_id: str = "t1", **overrides: Any) -> dict[str, Any]:
        row = {
            "id": task_id,
            "title": "Piano lesson",
            "event_date": "2026-02-24",
            "event_time": "14:00",
            "child": "alin",
            "event_type": "lesson",
            "is_recurring": 0,
            "recurring_template_id": None,
            "completed": 0,
            "notified": 0,
            "send_notification": 1,
            "needs_ack": 0,
        }
        row.update(overrides)
        return row

    return _make


@pytest.fixture
def subscription_row():
    """Factory for stored push_subscriptions rows."""

    def _make(endpoint: str, user_name: str | None = None, **overrides: Any) -> dict[str, Any]:
        row = {
            "endpoint": endpoint,
            "p256dh": "p256dh-key",
            "auth": "auth-secret",
            "user_name": user_name,
            "receive_all": 0,
            "watch_children": None,
            "reminder_lead_minutes": 10,
            "updated_at": "2026-02-01T00:00:00+00:00",
        }
        row.update(overrides)
        return row

    return _make
