"""Reminder dispatch records (idempotency markers)."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field


def format_instant(instant: datetime) -> str:
    """Render an aware datetime as a UTC ISO-8601 string with millisecond precision and a Z suffix."""
    utc = instant.astimezone(UTC)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def build_dispatch_key(*, task_id: str, start: datetime, lead_minutes: int, endpoint: str) -> str:
    """Build the idempotency key for one (task, start instant, lead time, endpoint) delivery.

    The start instant keeps a rescheduled task from being suppressed by its old
    record, the lead time separates devices with different preferences, and the
    endpoint separates devices.
    """
    return f"{task_id}:{format_instant(start)}:{lead_minutes}:{endpoint}"


class DispatchRecord(BaseModel):
    """A delivered reminder."""

    dispatch_key: str = Field(..., min_length=1)
    sent_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_row(self) -> dict[str, str]:
        return {"dispatch_key": self.dispatch_key, "sent_at": format_instant(self.sent_at)}
