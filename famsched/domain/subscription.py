"""Push subscription domain models."""

import math
from typing import Any

from pydantic import BaseModel, Field, field_validator

from famsched.domain.people import CHILD_KEYS, is_parent, lookup_person


REMINDER_LEAD_OPTIONS: tuple[int, ...] = (5, 10, 15, 30)
DEFAULT_REMINDER_LEAD_MINUTES = 10


def normalize_lead_minutes(value: Any) -> int:
    """Return the value if it is an allowed lead time, else the default.

    Used on stored rows right before window math.
    """
    if value is None or isinstance(value, bool):
        return DEFAULT_REMINDER_LEAD_MINUTES
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return DEFAULT_REMINDER_LEAD_MINUTES
    return int(numeric) if numeric in REMINDER_LEAD_OPTIONS else DEFAULT_REMINDER_LEAD_MINUTES


def coerce_lead_minutes(value: Any) -> int:
    """Snap a requested lead time to the nearest allowed option.

    Non-numeric and missing values fall back to the default. Ties go to the
    shorter lead time.
    """
    if value is None or isinstance(value, bool):
        return DEFAULT_REMINDER_LEAD_MINUTES
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return DEFAULT_REMINDER_LEAD_MINUTES
    if not math.isfinite(numeric):
        return DEFAULT_REMINDER_LEAD_MINUTES
    return min(REMINDER_LEAD_OPTIONS, key=lambda option: (abs(option - numeric), option))


def parse_watch_children(value: Any) -> list[str]:
    """Parse a stored or submitted watch list into known child keys (order kept, duplicates dropped)."""
    if value is None:
        return []
    raw_items = value.split(",") if isinstance(value, str) else value
    if not isinstance(raw_items, list | tuple | set | frozenset):
        return []

    children: list[str] = []
    for item in raw_items:
        if not isinstance(item, str):
            continue
        person = lookup_person(item)
        if person is not None and person.key in CHILD_KEYS and person.key not in children:
            children.append(person.key)
    return children


class Subscription(BaseModel):
    """A registered push endpoint with its recipient preferences."""

    endpoint: str = Field(..., min_length=1, description="Push service endpoint URL (unique key)")
    p256dh: str = Field(..., min_length=1, description="Client public key for payload encryption")
    auth: str = Field(..., min_length=1, description="Client auth secret for payload encryption")
    user_name: str | None = Field(default=None, description="Owner person key, None for unassigned devices")
    receive_all: bool = Field(default=False, description="Parent receives every child's reminders")
    watch_children: list[str] = Field(default_factory=list, description="Child keys a parent follows")
    reminder_lead_minutes: int = Field(
        default=DEFAULT_REMINDER_LEAD_MINUTES, description="Minutes before start at which to remind"
    )

    @field_validator("user_name", mode="before")
    @classmethod
    def normalize_user_name(cls, v: Any) -> str | None:
        """Map any known alias to the person key; unknown names become None."""
        if not isinstance(v, str):
            return None
        person = lookup_person(v)
        return person.key if person else None

    @field_validator("receive_all", mode="before")
    @classmethod
    def coerce_receive_all(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("watch_children", mode="before")
    @classmethod
    def coerce_watch_children(cls, v: Any) -> list[str]:
        return parse_watch_children(v)

    @field_validator("reminder_lead_minutes", mode="before")
    @classmethod
    def coerce_lead(cls, v: Any) -> int:
        return normalize_lead_minutes(v)

    @property
    def is_parent(self) -> bool:
        return is_parent(self.user_name)

    def to_row(self) -> dict[str, Any]:
        """Serialize into a push_subscriptions row."""
        return {
            "endpoint": self.endpoint,
            "p256dh": self.p256dh,
            "auth": self.auth,
            "user_name": self.user_name,
            "receive_all": self.receive_all,
            "watch_children": ",".join(self.watch_children) if self.watch_children else None,
            "reminder_lead_minutes": self.reminder_lead_minutes,
        }
