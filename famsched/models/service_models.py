"""Pydantic models for service layer return types.

These models provide type safety at service boundaries. Models that leave the
service as JSON serialize with camelCase keys (``model_dump(by_alias=True)``),
which is what the web client reads.
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exposing camelCase aliases while accepting field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SkipReason(StrEnum):
    """Why a task did not receive a reminder in a sweep.

    Reasons are counted once per task, except ``already_dispatched``, which is
    counted once per device whose dispatch key already exists. A device whose
    delivery succeeded but whose dispatch record was written first by an
    overlapping sweep also counts as ``already_dispatched`` and not as ``sent``.
    """

    COMPLETED = "completed"
    ALREADY_NOTIFIED = "already_notified"
    NOTIFICATIONS_DISABLED = "notifications_disabled"
    INVALID_DATE = "invalid_date"
    INVALID_TIME = "invalid_time"
    OUTSIDE_WINDOW = "outside_window"
    OFFSET_NOT_DUE = "offset_not_due"
    ALREADY_DISPATCHED = "already_dispatched"
    NO_AUDIENCE = "no_audience"
    DELIVERY_FAILED = "delivery_failed"


def empty_skip_counts() -> dict[str, int]:
    return {reason.value: 0 for reason in SkipReason}


class SweepState(StrEnum):
    """Reminder sweep lifecycle."""

    IDLE = "IDLE"
    LOADING_SUBSCRIPTIONS = "LOADING_SUBSCRIPTIONS"
    LOADING_TASKS = "LOADING_TASKS"
    EVALUATING = "EVALUATING"
    DISPATCHING = "DISPATCHING"
    RECORDING = "RECORDING"


class DeliveryOutcome(StrEnum):
    """Result class of a single push delivery attempt."""

    DELIVERED = "delivered"
    EXPIRED_SUBSCRIPTION = "expired_subscription"
    SEND_FAILED = "send_failed"
    MISSING_CONFIGURATION = "missing_configuration"


class DeliveryResult(BaseModel):
    """Result of sending one push message."""

    outcome: DeliveryOutcome
    status_code: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is DeliveryOutcome.DELIVERED

    @property
    def removed(self) -> bool:
        return self.outcome is DeliveryOutcome.EXPIRED_SUBSCRIPTION


class PushAction(BaseModel):
    action: str
    title: str


class ConfirmTask(CamelModel):
    event_id: str
    event_title: str
    child_name: str


class PushPayload(CamelModel):
    """Message body handed to the service worker."""

    title: str
    body: str
    url: str = "/"
    actions: list[PushAction] | None = None
    confirm_task: ConfirmTask | None = None


class SweepSummary(CamelModel):
    """Outcome of one reminder sweep."""

    ok: bool = True
    scanned: int = 0
    sent: int = 0
    skipped_by_reason: dict[str, int] = Field(default_factory=empty_skip_counts)
    errors: int = 0
    now_utc_iso: str
    subscriptions: int = 0
    window_forward_minutes: int
    horizon_minutes: int
    strict_child_only: bool = False


class BroadcastResult(CamelModel):
    """Result of sending one payload to many subscriptions."""

    sent: int
    skipped: int
    target: str | None = None


class AckResult(CamelModel):
    """Result of acknowledging a task."""

    ok: bool = True
    event_id: str
    child_name: str
    title: str
    completed: bool = True
    already_confirmed: bool = False


class SubscriptionOverviewItem(CamelModel):
    user_name: str
    endpoint_preview: str
    receive_all: bool
    watch_children: list[str]
    reminder_lead_minutes: int
    updated_at: str | None = None


class SubscriptionOverview(CamelModel):
    """Registered devices grouped for the diagnostics endpoint."""

    total: int
    by_user_name: dict[str, int]
    items: list[SubscriptionOverviewItem]
