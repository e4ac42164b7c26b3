"""Tests for task acknowledgement and test notifications."""

import pytest

from famsched.core.errors import PushDeliveryError, PushNotConfiguredError
from famsched.services import notification_service, subscription_service


@pytest.mark.unit
class TestAcknowledgeTask:
    async def test_marks_completed_and_notifies_parents(
        self, patched_db, task_row, subscription_row, transport, push_service
    ) -> None:
        patched_db.seed("tasks", task_row(child="amit"))
        patched_db.seed(
            "push_subscriptions",
            subscription_row("https://push.example/amit", "amit"),
            subscription_row("https://push.example/mom", "sivan"),
            key_field="endpoint",
        )

        result = await notification_service.acknowledge_task(event_id="t1")

        assert result.completed is True
        assert result.already_confirmed is False
        assert result.child_name == "עמית"
        assert result.title == "Piano lesson"
        assert patched_db.rows("tasks")[0]["completed"] is True
        assert push_service.endpoints() == ["https://push.example/mom"]
        assert push_service.sent[0]["payload"]["body"] == "עמית confirmed the task: Piano lesson"

    async def test_falls_back_to_all_devices_without_parents(
        self, patched_db, task_row, subscription_row, transport, push_service
    ) -> None:
        patched_db.seed("tasks", task_row())
        patched_db.seed(
            "push_subscriptions",
            subscription_row("https://push.example/amit", "amit"),
            subscription_row("https://push.example/anon"),
            key_field="endpoint",
        )

        await notification_service.acknowledge_task(event_id="t1", child_name="alin")

        assert sorted(push_service.endpoints()) == ["https://push.example/amit", "https://push.example/anon"]

    async def test_already_completed_notifies_nobody(
        self, patched_db, task_row, subscription_row, transport, push_service
    ) -> None:
        patched_db.seed("tasks", task_row(completed=1))
        patched_db.seed("push_subscriptions", subscription_row("https://push.example/mom", "sivan"), key_field="endpoint")

        result = await notification_service.acknowledge_task(event_id="t1")

        assert result.already_confirmed is True
        assert push_service.sent == []

    async def test_blank_event_id(self, patched_db) -> None:
        with pytest.raises(ValueError, match="eventId is required"):
            await notification_service.acknowledge_task(event_id="  ")

    async def test_unknown_task(self, patched_db) -> None:
        with pytest.raises(KeyError):
            await notification_service.acknowledge_task(event_id="missing")


@pytest.mark.unit
class TestSendTestNotification:
    async def test_broadcast(self, patched_db, subscription_row, transport, push_service) -> None:
        patched_db.seed(
            "push_subscriptions",
            subscription_row("https://push.example/a", "amit"),
            subscription_row("https://push.example/b", "roi"),
            key_field="endpoint",
        )

        result = await notification_service.send_test_notification()

        assert result.sent == 2
        assert result.skipped == 0

    async def test_targets_latest_device_of_person(self, patched_db, subscription_row, transport, push_service):
        patched_db.seed(
            "push_subscriptions",
            subscription_row("https://push.example/old", "ravid", updated_at="2026-01-01T00:00:00+00:00"),
            subscription_row("https://push.example/new", "ravid", updated_at="2026-01-05T00:00:00+00:00"),
            subscription_row("https://push.example/a", "amit"),
            key_field="endpoint",
        )

        result = await notification_service.send_test_notification(user_name="רביד")

        assert result.sent == 1
        assert push_service.endpoints() == ["https://push.example/new"]
        assert result.target == "רביד"

    async def test_person_without_device(self, patched_db, transport) -> None:
        with pytest.raises(KeyError, match="No registered device"):
            await notification_service.send_test_notification(user_name="alin")

    async def test_re_registered_device_becomes_the_target(
        self, patched_db, subscription_row, transport, push_service
    ) -> None:
        patched_db.seed(
            "push_subscriptions",
            subscription_row("https://push.example/A", "alin", updated_at="2026-01-01T00:00:00+00:00"),
            subscription_row("https://push.example/B", "alin", updated_at="2026-01-02T00:00:00+00:00"),
            key_field="endpoint",
        )
        await subscription_service.save_subscription(
            {"endpoint": "https://push.example/A", "keys": {"p256dh": "p", "auth": "a"}, "userName": "alin"}
        )

        await notification_service.send_test_notification(user_name="alin")

        assert push_service.endpoints() == ["https://push.example/A"]

    async def test_undelivered_direct_push_raises(self, patched_db, subscription_row, transport, push_service) -> None:
        patched_db.seed("push_subscriptions", subscription_row("https://push.example/A", "alin"), key_field="endpoint")
        push_service.fail_with["https://push.example/A"] = 410

        with pytest.raises(PushDeliveryError, match="Test push to אלין failed") as excinfo:
            await notification_service.send_test_notification(user_name="alin")

        assert excinfo.value.reason == "expired_subscription"
        assert excinfo.value.status_code == 410
        assert patched_db.rows("push_subscriptions") == []

    async def test_direct_push_without_keys(self, patched_db, subscription_row, push_service) -> None:
        patched_db.seed("push_subscriptions", subscription_row("https://push.example/A", "alin"), key_field="endpoint")

        with pytest.raises(PushNotConfiguredError) as excinfo:
            await notification_service.send_test_notification(user_name="alin")

        assert excinfo.value.reason == "missing_configuration"
        assert push_service.sent == []
