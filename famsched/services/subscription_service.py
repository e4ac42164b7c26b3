"""Push subscription store: registration, removal and bulk reads."""

import logging
from collections import Counter
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from famsched.core import db_client
from famsched.core.errors import SubscriptionValidationError
from famsched.core.logging import endpoint_preview, span
from famsched.domain.people import is_parent, lookup_person
from famsched.domain.subscription import Subscription, coerce_lead_minutes, parse_watch_children
from famsched.models.service_models import SubscriptionOverview, SubscriptionOverviewItem


logger = logging.getLogger(__name__)

COLLECTION = "push_subscriptions"


def _clean_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def build_subscription(raw: Any) -> Subscription:
    """Normalize a client registration payload into a Subscription.

    The payload is the browser's PushSubscription JSON (``endpoint`` and
    ``keys.p256dh`` / ``keys.auth``) extended with ``userName``, ``receiveAll``,
    ``watchChildren`` and ``reminderLeadMinutes``.

    - Unknown user names are stored as unassigned.
    - ``receiveAll`` is honored for parents only.
    - ``watchChildren`` is kept for parents without ``receiveAll``, limited to
      known children and deduplicated.
    - The lead time snaps to the nearest allowed option.

    Raises:
        SubscriptionValidationError: If the endpoint or either key is missing
    """
    if not isinstance(raw, dict):
        raise SubscriptionValidationError("Invalid push subscription")

    keys = raw.get("keys") if isinstance(raw.get("keys"), dict) else {}
    endpoint = _clean_str(raw.get("endpoint"))
    p256dh = _clean_str(keys.get("p256dh"))
    auth = _clean_str(keys.get("auth"))
    if not endpoint or not p256dh or not auth:
        raise SubscriptionValidationError("Subscription missing endpoint or keys")

    person = lookup_person(_clean_str(raw.get("userName")))
    user_name = person.key if person else None
    parent = is_parent(user_name)
    receive_all = parent and bool(raw.get("receiveAll"))
    watch_children = parse_watch_children(raw.get("watchChildren")) if parent and not receive_all else []

    return Subscription(
        endpoint=endpoint,
        p256dh=p256dh,
        auth=auth,
        user_name=user_name,
        receive_all=receive_all,
        watch_children=watch_children,
        reminder_lead_minutes=coerce_lead_minutes(raw.get("reminderLeadMinutes")),
    )


async def save_subscription(raw: Any) -> Subscription:
    """Register or update a device, keyed by its endpoint.

    Raises:
        SubscriptionValidationError: If the payload is incomplete
        db_client.DatabaseError: If the store write fails
    """
    with span("subscription_service.save_subscription"):
        subscription = build_subscription(raw)
        row = subscription.to_row()
        row["updated_at"] = datetime.now(UTC)
        await db_client.upsert_record(collection=COLLECTION, data=row, key_field="endpoint")
        logger.info(
            "Push subscription saved",
            extra={
                "endpoint": endpoint_preview(subscription.endpoint),
                "user_name": subscription.user_name,
                "reminder_lead_minutes": subscription.reminder_lead_minutes,
            },
        )
        return subscription


async def remove_subscription(endpoint: str) -> bool:
    """Delete a device by endpoint.

    Blank endpoints and endpoints that are already gone are ignored.

    Returns:
        True if a row was deleted
    """
    with span("subscription_service.remove_subscription"):
        trimmed = endpoint.strip() if endpoint else ""
        if not trimmed:
            return False
        try:
            await db_client.delete_record(collection=COLLECTION, record_id=trimmed, key_field="endpoint")
        except KeyError:
            logger.debug("Subscription already removed", extra={"endpoint": endpoint_preview(trimmed)})
            return False
        logger.info("Push subscription removed", extra={"endpoint": endpoint_preview(trimmed)})
        return True


async def _list_rows(*, newest_first: bool = False) -> list[dict[str, Any]]:
    return await db_client.list_all_records(collection=COLLECTION, sort="-updated_at" if newest_first else "")


async def list_subscriptions(*, newest_first: bool = False) -> list[Subscription]:
    """Bulk-load every registered device, dropping rows that fail validation.

    With ``newest_first`` the most recently registered or refreshed device comes first.
    """
    with span("subscription_service.list_subscriptions"):
        subscriptions: list[Subscription] = []
        for row in await _list_rows(newest_first=newest_first):
            try:
                subscriptions.append(Subscription.model_validate(row))
            except ValidationError as e:
                logger.warning(
                    "Skipping invalid subscription row",
                    extra={"endpoint": endpoint_preview(str(row.get("endpoint") or "")), "error": str(e)},
                )
        return subscriptions


async def summarize_subscriptions() -> SubscriptionOverview:
    """List registered devices for diagnostics, without exposing full endpoints or keys."""
    with span("subscription_service.summarize_subscriptions"):
        rows = await _list_rows(newest_first=True)

        items: list[SubscriptionOverviewItem] = []
        for row in rows:
            try:
                subscription = Subscription.model_validate(row)
            except ValidationError:
                continue
            items.append(
                SubscriptionOverviewItem(
                    user_name=subscription.user_name or "(unassigned)",
                    endpoint_preview=endpoint_preview(subscription.endpoint),
                    receive_all=subscription.receive_all,
                    watch_children=subscription.watch_children,
                    reminder_lead_minutes=subscription.reminder_lead_minutes,
                    updated_at=str(row["updated_at"]) if row.get("updated_at") else None,
                )
            )

        by_user_name = dict(Counter(item.user_name for item in items))
        return SubscriptionOverview(total=len(items), by_user_name=by_user_name, items=items)
