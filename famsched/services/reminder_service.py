"""Reminder sweep: decide which tasks are due for which devices and deliver each reminder once.

One sweep loads every subscription and every candidate task in bulk, then for
each task resolves its audience, keeps the devices whose personal lead time
makes the reminder due right now, and delivers through the push transport.
A dispatch key per (task, start instant, lead time, endpoint) is checked
before sending and recorded after a successful send, so repeated or
overlapping sweeps never deliver the same reminder twice.
"""

import logging
from datetime import UTC, datetime, tzinfo

from famsched.core.config import Constants, settings
from famsched.core.errors import classify_sweep_error
from famsched.core.logging import endpoint_preview, log_with_task_context, span
from famsched.domain.dispatch import build_dispatch_key, format_instant
from famsched.domain.people import PEOPLE, PersonCategory, get_person, is_child
from famsched.domain.subscription import Subscription, normalize_lead_minutes
from famsched.domain.task import Task
from famsched.interface.push_sender import PushTransport, get_push_transport
from famsched.models.service_models import (
    ConfirmTask,
    PushAction,
    PushPayload,
    SkipReason,
    SweepState,
    SweepSummary,
)
from famsched.services import audience_service, dispatch_service, subscription_service, task_service
from famsched.services.due_window import (
    InvalidTaskDateError,
    InvalidTaskTimeError,
    clamp_window_forward,
    diff_minutes,
    get_schedule_zone,
    is_due_for_lead,
    is_within_horizon,
    parse_task_start,
)


logger = logging.getLogger(__name__)


def build_reminder_payload(
    task: Task,
    *,
    minutes_until_start: int,
    subscription: Subscription,
    audience: frozenset[str],
) -> PushPayload:
    """Build the reminder message, including the confirm action the service worker renders."""
    title = task.title or Constants.DEFAULT_TASK_TITLE
    if is_child(subscription.user_name) and subscription.user_name in audience:
        child_name = get_person(subscription.user_name).display_name
    else:
        child_name = next(
            (p.display_name for p in PEOPLE if p.category is PersonCategory.CHILD and p.key in audience),
            Constants.DEFAULT_CHILD_NAME,
        )

    return PushPayload(
        title="Task reminder",
        body=f"{title} starts in {minutes_until_start} minutes ({task.time})",
        url=Constants.DEFAULT_PUSH_URL,
        actions=[PushAction(action="confirm", title="Seen it")],
        confirm_task=ConfirmTask(event_id=task.id, event_title=title, child_name=child_name),
    )


class ReminderSweep:
    """One pass of the reminder engine.

    A sweep instance is single use: build it, await ``run()``, read the summary.
    """

    def __init__(
        self,
        *,
        transport: PushTransport,
        now: datetime,
        zone: tzinfo,
        window_forward_minutes: int,
        horizon_minutes: int,
        skip_notified_tasks: bool,
        empty_watch_receives_all: bool,
        strict_child_only: bool,
    ) -> None:
        self.transport = transport
        self.now = now.astimezone(UTC)
        self.zone = zone
        self.window_forward_minutes = clamp_window_forward(window_forward_minutes)
        self.horizon_minutes = horizon_minutes
        self.skip_notified_tasks = skip_notified_tasks
        self.empty_watch_receives_all = empty_watch_receives_all
        self.strict_child_only = strict_child_only

        self.state = SweepState.IDLE
        self.summary = SweepSummary(
            now_utc_iso=format_instant(self.now),
            window_forward_minutes=self.window_forward_minutes,
            horizon_minutes=self.horizon_minutes,
            strict_child_only=strict_child_only,
        )
        self._removed_endpoints: set[str] = set()

    def _skip(self, task: Task, reason: SkipReason, **context: object) -> None:
        self.summary.skipped_by_reason[reason.value] += 1
        log_with_task_context(logger, "debug", f"Reminder skipped: {reason.value}", task_id=task.id, **context)

    async def run(self) -> SweepSummary:
        """Execute the sweep.

        Store failures while loading subscriptions or tasks propagate; failures
        while handling a single task are logged and counted in ``errors``.
        """
        self.state = SweepState.LOADING_SUBSCRIPTIONS
        subscriptions = await subscription_service.list_subscriptions()
        self.summary.subscriptions = len(subscriptions)
        if not subscriptions:
            logger.info("Reminder sweep found no subscriptions")
            self.state = SweepState.IDLE
            return self.summary

        self.state = SweepState.LOADING_TASKS
        tasks = await task_service.list_reminder_candidates(include_notified=not self.skip_notified_tasks)
        self.summary.scanned = len(tasks)

        for task in tasks:
            try:
                await self._process_task(task, subscriptions)
            except Exception as e:
                self.summary.errors += 1
                logger.exception(
                    "Reminder processing failed",
                    extra={"task_id": task.id, "category": classify_sweep_error(e).value, "error": str(e)},
                )

        self.state = SweepState.IDLE
        logger.info(
            "Reminder sweep finished",
            extra={
                "scanned": self.summary.scanned,
                "sent": self.summary.sent,
                "errors": self.summary.errors,
                "skipped_by_reason": self.summary.skipped_by_reason,
            },
        )
        return self.summary

    async def _process_task(self, task: Task, subscriptions: list[Subscription]) -> None:
        self.state = SweepState.EVALUATING

        if task.completed:
            self._skip(task, SkipReason.COMPLETED)
            return
        if not task.send_notification:
            self._skip(task, SkipReason.NOTIFICATIONS_DISABLED)
            return
        if self.skip_notified_tasks and task.notified:
            self._skip(task, SkipReason.ALREADY_NOTIFIED)
            return

        try:
            start = parse_task_start(task.date, task.time, self.zone)
        except InvalidTaskTimeError:
            self._skip(task, SkipReason.INVALID_TIME, time=task.time)
            return
        except InvalidTaskDateError:
            self._skip(task, SkipReason.INVALID_DATE, date=task.date)
            return

        minutes_until_start = diff_minutes(start, self.now)
        if not is_within_horizon(minutes_until_start, self.horizon_minutes):
            self._skip(task, SkipReason.OUTSIDE_WINDOW, diff_minutes=minutes_until_start)
            return

        audience = audience_service.resolve_audience(task.child)
        recipients = [
            subscription
            for subscription in subscriptions
            if subscription.endpoint not in self._removed_endpoints
            and audience_service.subscription_receives_task(
                subscription,
                audience,
                empty_watch_receives_all=self.empty_watch_receives_all,
                strict_child_only=self.strict_child_only,
            )
        ]
        if not recipients:
            self._skip(task, SkipReason.NO_AUDIENCE, child=task.child)
            return

        due = [
            subscription
            for subscription in recipients
            if is_due_for_lead(minutes_until_start, subscription.reminder_lead_minutes, self.window_forward_minutes)
        ]
        if not due:
            self._skip(task, SkipReason.OFFSET_NOT_DUE, diff_minutes=minutes_until_start)
            return

        attempted = 0
        delivered = 0
        for subscription in due:
            lead = normalize_lead_minutes(subscription.reminder_lead_minutes)
            dispatch_key = build_dispatch_key(
                task_id=task.id, start=start, lead_minutes=lead, endpoint=subscription.endpoint
            )
            if await dispatch_service.was_dispatched(dispatch_key):
                self._skip(task, SkipReason.ALREADY_DISPATCHED, endpoint=endpoint_preview(subscription.endpoint))
                continue

            self.state = SweepState.DISPATCHING
            payload = build_reminder_payload(
                task, minutes_until_start=minutes_until_start, subscription=subscription, audience=audience
            )
            attempted += 1
            result = await self.transport.send(subscription, payload)
            if result.removed:
                self._removed_endpoints.add(subscription.endpoint)
            if not result.ok:
                continue

            delivered += 1
            self.state = SweepState.RECORDING
            if await dispatch_service.mark_dispatched(dispatch_key, sent_at=datetime.now(UTC)):
                self.summary.sent += 1
            else:
                self._skip(task, SkipReason.ALREADY_DISPATCHED, endpoint=endpoint_preview(subscription.endpoint))

        if delivered:
            await task_service.mark_notified(task.id)
            log_with_task_context(logger, "info", "Reminders delivered", task_id=task.id, delivered=delivered)
        elif attempted:
            self._skip(task, SkipReason.DELIVERY_FAILED, attempted=attempted)


async def run_reminder_sweep(
    *,
    now: datetime | None = None,
    transport: PushTransport | None = None,
    strict_child_only: bool = False,
    window_forward_minutes: int | None = None,
) -> SweepSummary:
    """Run one reminder sweep with the configured policies.

    Args:
        now: Evaluation instant (defaults to the current UTC time)
        transport: Push transport (defaults to the process-wide one)
        strict_child_only: Deliver only to devices owned by an addressed child
        window_forward_minutes: Override the configured forward tolerance (clamped to 0..15)

    Returns:
        SweepSummary with counts per outcome

    Raises:
        db_client.DatabaseError: If subscriptions or tasks cannot be loaded
    """
    with span("reminder_service.run_reminder_sweep"):
        sweep = ReminderSweep(
            transport=transport or get_push_transport(),
            now=now or datetime.now(UTC),
            zone=get_schedule_zone(settings.schedule_timezone),
            window_forward_minutes=(
                settings.reminder_window_forward_minutes if window_forward_minutes is None else window_forward_minutes
            ),
            horizon_minutes=settings.reminder_horizon_minutes,
            skip_notified_tasks=settings.reminder_skip_notified_tasks,
            empty_watch_receives_all=settings.parent_empty_watch_receives_all,
            strict_child_only=strict_child_only,
        )
        return await sweep.run()
