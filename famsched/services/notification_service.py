"""Task acknowledgement and ad-hoc notifications."""

import logging

from famsched.core.config import Constants
from famsched.core.errors import PushDeliveryError, PushNotConfiguredError
from famsched.core.logging import endpoint_preview, span
from famsched.domain.people import PEOPLE, PersonCategory, lookup_person
from famsched.interface.push_sender import PushTransport, get_push_transport
from famsched.models.service_models import AckResult, BroadcastResult, DeliveryOutcome, PushPayload
from famsched.services import audience_service, subscription_service, task_service


logger = logging.getLogger(__name__)


def _resolve_child_name(child_name: str | None, raw_child: str) -> str:
    """Prefer the name sent by the client, then the task's first addressed child."""
    if child_name and child_name.strip():
        person = lookup_person(child_name)
        return person.display_name if person else child_name.strip()

    audience = audience_service.resolve_audience(raw_child)
    return next(
        (p.display_name for p in PEOPLE if p.category is PersonCategory.CHILD and p.key in audience),
        Constants.DEFAULT_CHILD_NAME,
    )


async def acknowledge_task(
    *,
    event_id: str,
    child_name: str | None = None,
    transport: PushTransport | None = None,
) -> AckResult:
    """Mark a task completed and tell the parents.

    The parents' devices are notified first; if none of them received the
    message, it goes to every registered device instead. Acknowledging an
    already completed task notifies nobody.

    Args:
        event_id: Task ID from the reminder's confirm action
        child_name: Name shown in the parent notification (defaults to the task's child)
        transport: Push transport (defaults to the process-wide one)

    Returns:
        AckResult describing the task

    Raises:
        ValueError: If event_id is blank
        KeyError: If the task does not exist
    """
    with span("notification_service.acknowledge_task"):
        task_id = event_id.strip() if event_id else ""
        if not task_id:
            msg = "eventId is required"
            raise ValueError(msg)

        task, already_completed = await task_service.mark_completed(task_id)
        name = _resolve_child_name(child_name, task.child)
        title = task.title or Constants.DEFAULT_TASK_TITLE
        result = AckResult(
            event_id=task_id,
            child_name=name,
            title=title,
            already_confirmed=already_completed,
        )
        if already_completed:
            logger.info("Task already confirmed", extra={"task_id": task_id})
            return result

        push = transport or get_push_transport()
        payload = PushPayload(title="Task confirmed", body=f"{name} confirmed the task: {title}")
        parent_result = await push.send_to_parents(payload)
        if parent_result.sent == 0:
            logger.info("No parent device reached; notifying all devices", extra={"task_id": task_id})
            await push.send_to_all(payload)

        logger.info("Task acknowledged", extra={"task_id": task_id, "child_name": name})
        return result


async def send_test_notification(
    *,
    user_name: str | None = None,
    transport: PushTransport | None = None,
) -> BroadcastResult:
    """Send a test push to every device, or to the most recently registered device of one person.

    Raises:
        KeyError: If a person is named but has no registered device
        PushNotConfiguredError: If the direct send found no VAPID keys
        PushDeliveryError: If the direct send was not delivered
    """
    with span("notification_service.send_test_notification"):
        push = transport or get_push_transport()
        if not user_name or not user_name.strip():
            return await push.send_to_all(PushPayload(title="Test notification", body="Push is working"))

        person = lookup_person(user_name)
        if person is None:
            msg = f"Unknown person: {user_name}"
            raise KeyError(msg)

        subscriptions = await subscription_service.list_subscriptions(newest_first=True)
        owned = [s for s in subscriptions if s.user_name == person.key]
        if not owned:
            msg = f"No registered device found for {person.display_name}"
            raise KeyError(msg)

        target = owned[0]
        result = await push.send(
            target,
            PushPayload(title=f"Test push for {person.display_name}", body="A test notification reached this device"),
        )
        if not result.ok:
            error_class = (
                PushNotConfiguredError if result.outcome is DeliveryOutcome.MISSING_CONFIGURATION else PushDeliveryError
            )
            msg = f"Test push to {person.display_name} failed"
            raise error_class(msg, reason=result.outcome.value, status_code=result.status_code)

        logger.info(
            "Test notification sent",
            extra={"user_name": person.key, "endpoint": endpoint_preview(target.endpoint)},
        )
        return BroadcastResult(sent=1, skipped=len(subscriptions) - 1, target=person.display_name)
