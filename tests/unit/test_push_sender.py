"""Tests for Web Push delivery."""

import pytest

from famsched.core.config import settings
from famsched.domain.subscription import Subscription
from famsched.interface import push_sender
from famsched.interface.push_sender import PushTransport, VapidConfig, get_push_transport
from famsched.models.service_models import DeliveryOutcome, PushPayload


def _subscription(endpoint: str = "https://push.example/alin", user_name: str | None = "alin") -> Subscription:
    return Subscription(endpoint=endpoint, p256dh="p256dh-key", auth="auth-secret", user_name=user_name)


PAYLOAD = PushPayload(title="Hello", body="World")


@pytest.mark.unit
class TestVapidConfig:
    def test_incomplete_without_private_key(self) -> None:
        assert VapidConfig(public_key="pub").is_complete is False
        assert VapidConfig(public_key="pub", private_key="priv").is_complete is True

    def test_built_lazily_from_settings(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "vapid_public_key", "pub")
        monkeypatch.setattr(settings, "vapid_private_key", "priv")
        monkeypatch.setattr(settings, "vapid_subject", "mailto:family@example.com")

        transport = get_push_transport()

        assert transport.is_configured
        assert transport.config.claims() == {"sub": "mailto:family@example.com"}
        assert get_push_transport() is transport

    def test_claims_are_fresh_per_call(self) -> None:
        config = VapidConfig(public_key="pub", private_key="priv")
        claims = config.claims()
        claims["aud"] = "https://push.example"

        assert config.claims() == {"sub": "mailto:admin@example.com"}


@pytest.mark.unit
class TestPushTransportSend:
    async def test_delivered(self, transport, push_service) -> None:
        payload = PushPayload.model_validate(
            {"title": "Hi", "body": "There", "confirmTask": {"eventId": "t1", "eventTitle": "Piano", "childName": "x"}}
        )

        result = await transport.send(_subscription(), payload)

        assert result.outcome is DeliveryOutcome.DELIVERED
        assert result.ok
        assert push_service.sent[0]["payload"] == {
            "title": "Hi",
            "body": "There",
            "url": "/",
            "confirmTask": {"eventId": "t1", "eventTitle": "Piano", "childName": "x"},
        }
        assert push_service.sent[0]["ttl"] == 60

    async def test_missing_configuration_skips_network(self, patched_db, push_service) -> None:
        transport = PushTransport(VapidConfig(public_key="pub"))

        result = await transport.send(_subscription(), PAYLOAD)

        assert result.outcome is DeliveryOutcome.MISSING_CONFIGURATION
        assert push_service.sent == []

    @pytest.mark.parametrize("status", [404, 410])
    async def test_gone_endpoint_is_removed(self, patched_db, subscription_row, transport, push_service, status) -> None:
        endpoint = "https://push.example/gone"
        patched_db.seed("push_subscriptions", subscription_row(endpoint, "alin"), key_field="endpoint")
        push_service.fail_with[endpoint] = status

        result = await transport.send(_subscription(endpoint), PAYLOAD)

        assert result.outcome is DeliveryOutcome.EXPIRED_SUBSCRIPTION
        assert result.removed
        assert result.status_code == status
        assert patched_db.rows("push_subscriptions") == []

    @pytest.mark.parametrize("status", [500, 429, 0])
    async def test_transient_failure_keeps_subscription(
        self, patched_db, subscription_row, transport, push_service, status
    ) -> None:
        endpoint = "https://push.example/flaky"
        patched_db.seed("push_subscriptions", subscription_row(endpoint, "alin"), key_field="endpoint")
        push_service.fail_with[endpoint] = status

        result = await transport.send(_subscription(endpoint), PAYLOAD)

        assert result.outcome is DeliveryOutcome.SEND_FAILED
        assert not result.removed
        assert len(patched_db.rows("push_subscriptions")) == 1

    async def test_unexpected_error_is_a_send_failure(self, monkeypatch, transport) -> None:
        def explode(**kwargs):
            raise ConnectionError("network down")

        monkeypatch.setattr(push_sender, "webpush", explode)

        result = await transport.send(_subscription(), PAYLOAD)

        assert result.outcome is DeliveryOutcome.SEND_FAILED
        assert "network down" in (result.error or "")


@pytest.mark.unit
class TestBroadcast:
    async def test_send_to_all_with_exclusion(self, patched_db, subscription_row, transport, push_service) -> None:
        patched_db.seed(
            "push_subscriptions",
            subscription_row("https://push.example/a", "amit"),
            subscription_row("https://push.example/b", "sivan"),
            subscription_row("https://push.example/c"),
            key_field="endpoint",
        )

        result = await transport.send_to_all(PAYLOAD, exclude_endpoint="https://push.example/c")

        assert result.sent == 2
        assert result.skipped == 1
        assert sorted(push_service.endpoints()) == ["https://push.example/a", "https://push.example/b"]

    async def test_send_to_parents_only(self, patched_db, subscription_row, transport, push_service) -> None:
        patched_db.seed(
            "push_subscriptions",
            subscription_row("https://push.example/kid", "amit"),
            subscription_row("https://push.example/mom", "sivan"),
            subscription_row("https://push.example/dad", "roi"),
            key_field="endpoint",
        )

        result = await transport.send_to_parents(PAYLOAD, frozenset({"roi"}))

        assert result.sent == 1
        assert push_service.endpoints() == ["https://push.example/dad"]
