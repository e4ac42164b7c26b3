"""Domain models and DTOs."""

from famsched.domain.dispatch import DispatchRecord, build_dispatch_key
from famsched.domain.people import PEOPLE, Person, PersonCategory
from famsched.domain.subscription import (
    DEFAULT_REMINDER_LEAD_MINUTES,
    REMINDER_LEAD_OPTIONS,
    Subscription,
)
from famsched.domain.task import Task


__all__ = [
    "DEFAULT_REMINDER_LEAD_MINUTES",
    "PEOPLE",
    "REMINDER_LEAD_OPTIONS",
    "DispatchRecord",
    "Person",
    "PersonCategory",
    "Subscription",
    "Task",
    "build_dispatch_key",
]
