"""Web Push delivery using VAPID (pywebpush)."""

import asyncio
import logging

from pydantic import BaseModel, Field
from pywebpush import WebPushException, webpush

from famsched.core.config import settings
from famsched.core.errors import ErrorCategory, classify_delivery_error, is_gone_status
from famsched.core.logging import endpoint_preview
from famsched.domain.people import PARENT_KEYS
from famsched.domain.subscription import Subscription
from famsched.models.service_models import BroadcastResult, DeliveryOutcome, DeliveryResult, PushPayload
from famsched.services import subscription_service


logger = logging.getLogger(__name__)


class VapidConfig(BaseModel):
    """Application server credentials for the Web Push protocol."""

    public_key: str | None = Field(None, description="VAPID public key handed to browsers")
    private_key: str | None = Field(None, description="VAPID private key used to sign requests")
    subject: str = Field("mailto:admin@example.com", description="Contact URI sent in the VAPID claims")

    @classmethod
    def from_settings(cls) -> "VapidConfig":
        return cls(
            public_key=settings.vapid_public_key,
            private_key=settings.vapid_private_key,
            subject=settings.vapid_subject,
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.public_key and self.private_key)

    def claims(self) -> dict[str, str]:
        # pywebpush adds "aud" and "exp" to the dict it receives
        return {"sub": self.subject}


def _status_code(error: WebPushException) -> int | None:
    response = getattr(error, "response", None)
    return getattr(response, "status_code", None) if response is not None else None


class PushTransport:
    """Sends encrypted push messages and prunes subscriptions the push service reports gone."""

    def __init__(self, config: VapidConfig, *, ttl_seconds: int = 3600) -> None:
        self.config = config
        self.ttl_seconds = ttl_seconds

    @property
    def is_configured(self) -> bool:
        return self.config.is_complete

    def _deliver(self, subscription: Subscription, data: str) -> None:
        webpush(
            subscription_info={
                "endpoint": subscription.endpoint,
                "keys": {"p256dh": subscription.p256dh, "auth": subscription.auth},
            },
            data=data,
            vapid_private_key=self.config.private_key,
            vapid_claims=self.config.claims(),
            ttl=self.ttl_seconds,
        )

    async def send(self, subscription: Subscription, payload: PushPayload) -> DeliveryResult:
        """Send one message to one device.

        A 404/410 from the push service deletes the subscription; any other
        failure leaves the store untouched so the next sweep can retry.

        Args:
            subscription: Target device
            payload: Message body

        Returns:
            DeliveryResult with the outcome class
        """
        preview = endpoint_preview(subscription.endpoint)
        if not self.is_configured:
            logger.error(
                "Missing VAPID configuration; cannot send notification",
                extra={"endpoint": preview, "category": ErrorCategory.CONFIGURATION.value},
            )
            return DeliveryResult(outcome=DeliveryOutcome.MISSING_CONFIGURATION, error="missing-vapid")

        data = payload.model_dump_json(by_alias=True, exclude_none=True)
        try:
            # pywebpush is blocking (requests); keep the event loop free
            await asyncio.to_thread(self._deliver, subscription, data)
        except WebPushException as e:
            status_code = _status_code(e)
            if is_gone_status(status_code):
                await subscription_service.remove_subscription(subscription.endpoint)
                logger.warning(
                    "Subscription expired and removed",
                    extra={"endpoint": preview, "status_code": status_code},
                )
                return DeliveryResult(
                    outcome=DeliveryOutcome.EXPIRED_SUBSCRIPTION, status_code=status_code, error=str(e)
                )
            logger.error(
                "Failed to send notification",
                extra={
                    "endpoint": preview,
                    "status_code": status_code,
                    "category": classify_delivery_error(e, status_code).value,
                    "error": str(e),
                },
            )
            return DeliveryResult(outcome=DeliveryOutcome.SEND_FAILED, status_code=status_code, error=str(e))
        except Exception as e:
            logger.error(
                "Failed to send notification",
                extra={"endpoint": preview, "category": classify_delivery_error(e).value, "error": str(e)},
            )
            return DeliveryResult(outcome=DeliveryOutcome.SEND_FAILED, error=str(e))

        logger.info("Push notification sent", extra={"endpoint": preview, "title": payload.title})
        return DeliveryResult(outcome=DeliveryOutcome.DELIVERED)

    async def _send_each(self, targets: list[Subscription], payload: PushPayload, total: int) -> BroadcastResult:
        sent = 0
        for subscription in targets:
            result = await self.send(subscription, payload)
            if result.ok:
                sent += 1
        return BroadcastResult(sent=sent, skipped=total - len(targets))

    async def send_to_all(self, payload: PushPayload, *, exclude_endpoint: str | None = None) -> BroadcastResult:
        """Send a message to every registered device, optionally skipping one endpoint."""
        subscriptions = await subscription_service.list_subscriptions()
        excluded = exclude_endpoint.strip() if exclude_endpoint else ""
        targets = [s for s in subscriptions if s.endpoint != excluded]
        return await self._send_each(targets, payload, len(subscriptions))

    async def send_to_parents(self, payload: PushPayload, parents: frozenset[str] = PARENT_KEYS) -> BroadcastResult:
        """Send a message to the devices owned by the given parents."""
        subscriptions = await subscription_service.list_subscriptions()
        targets = [s for s in subscriptions if s.is_parent and s.user_name in parents]
        return await self._send_each(targets, payload, len(subscriptions))


_transport: PushTransport | None = None


def get_push_transport() -> PushTransport:
    """Return the process-wide transport, building it from settings on first use."""
    global _transport  # noqa: PLW0603
    if _transport is None:
        _transport = PushTransport(VapidConfig.from_settings(), ttl_seconds=settings.push_ttl_seconds)
    return _transport


def reset_push_transport() -> None:
    """Drop the cached transport so the next call re-reads settings."""
    global _transport  # noqa: PLW0603
    _transport = None
