"""Task domain models and row normalization."""

from typing import Any

from pydantic import BaseModel, Field


def _first_present(row: dict[str, Any], *keys: str) -> Any:
    """Return the first non-empty value among the given keys (SQL COALESCE)."""
    for key in keys:
        value = row.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def parse_bool(value: Any, *, default: bool) -> bool:
    """Interpret stored booleans (ints, bools, 'true'/'false' strings, None)."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off", ""):
            return False
    return default


class Task(BaseModel):
    """A scheduled activity occurrence."""

    id: str = Field(..., description="Stable task ID")
    title: str = Field(default="", description="Display title")
    date: str = Field(default="", description="Scheduled date as entered (YYYY-MM-DD, DD-MM-YYYY or ISO)")
    time: str = Field(default="", description="Scheduled local wall-clock time (HH:MM)")
    child: str = Field(default="", description="Recipient encoding, e.g. 'amit_alin'")
    type: str = Field(default="", description="Activity category")
    is_recurring: bool = Field(default=False, description="Generated from a weekly template")
    recurring_template_id: str | None = Field(default=None, description="Source template, if recurring")
    completed: bool = Field(default=False, description="Acknowledged as done")
    notified: bool = Field(default=False, description="At least one reminder was delivered")
    send_notification: bool = Field(default=True, description="Reminders enabled for this task")
    needs_ack: bool = Field(default=False, description="Recipient is asked to confirm the reminder")

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Task":
        """Build a Task from a stored row, resolving legacy column aliases.

        Current columns win over legacy ones: title over text, event_date over
        day, event_time over time, event_type over type, is_recurring over
        is_weekly, needs_ack over require_confirmation, id over event_id.
        """
        template_id = _first_present(row, "recurring_template_id")
        return cls(
            id=str(_first_present(row, "id", "event_id") or ""),
            title=str(_first_present(row, "title", "text") or "").strip(),
            date=str(_first_present(row, "event_date", "day") or "").strip(),
            time=str(_first_present(row, "event_time", "time") or "").strip(),
            child=str(row.get("child") or "").strip(),
            type=str(_first_present(row, "event_type", "type") or "").strip().lower(),
            is_recurring=parse_bool(_first_present(row, "is_recurring", "is_weekly"), default=False),
            recurring_template_id=str(template_id) if template_id is not None else None,
            completed=parse_bool(row.get("completed"), default=False),
            notified=parse_bool(row.get("notified"), default=False),
            send_notification=parse_bool(row.get("send_notification"), default=True),
            needs_ack=parse_bool(_first_present(row, "needs_ack", "require_confirmation"), default=False),
        )
