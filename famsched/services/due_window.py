"""Due-window evaluation for task reminders.

A task's scheduled start is entered as a local date plus an HH:MM wall-clock
time. Both are interpreted in the configured schedule zone and turned into an
absolute UTC instant; every comparison afterwards is between UTC instants.
"""

import math
import re
from datetime import UTC, date, datetime, time, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo

from famsched.core.config import Constants
from famsched.domain.subscription import normalize_lead_minutes


_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")
_ISO_DATETIME_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T")
_ISO_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_DAY_FIRST_DATE_PATTERN = re.compile(r"^(\d{2})-(\d{2})-(\d{4})$")


class InvalidTaskTimeError(ValueError):
    """Raised when a task's time is not a valid HH:MM value."""


class InvalidTaskDateError(ValueError):
    """Raised when a task's date cannot be parsed."""


@lru_cache(maxsize=16)
def get_schedule_zone(name: str) -> tzinfo:
    """Resolve an IANA zone name; "UTC" maps to the built-in UTC zone."""
    if name.strip().upper() == "UTC":
        return UTC
    return ZoneInfo(name.strip())


def parse_task_time(value: str) -> time:
    """Parse an HH:MM wall-clock time (hours 0-23, minutes 0-59)."""
    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise InvalidTaskTimeError(f"Invalid task time: {value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:  # noqa: PLR2004
        raise InvalidTaskTimeError(f"Task time out of range: {value!r}")
    return time(hour=hours, minute=minutes)


def parse_task_date(value: str) -> date:
    """Parse a task date in YYYY-MM-DD, DD-MM-YYYY, or ISO datetime form (date part only)."""
    trimmed = value.strip()
    match = _ISO_DATETIME_PATTERN.match(trimmed) or _ISO_DATE_PATTERN.match(trimmed)
    if match:
        year, month, day = match.group(1), match.group(2), match.group(3)
    elif match := _DAY_FIRST_DATE_PATTERN.match(trimmed):
        day, month, year = match.group(1), match.group(2), match.group(3)
    else:
        raise InvalidTaskDateError(f"Invalid task date: {value!r}")

    try:
        return date(int(year), int(month), int(day))
    except ValueError as e:
        raise InvalidTaskDateError(f"Invalid task date: {value!r}") from e


def parse_task_start(date_value: str, time_value: str, zone: tzinfo) -> datetime:
    """Combine a task's local date and time into an absolute UTC instant.

    The time is validated first, so a task missing both reports an invalid time.

    Raises:
        InvalidTaskTimeError: If the time is missing or malformed
        InvalidTaskDateError: If the date is missing or malformed
    """
    start_time = parse_task_time(time_value)
    start_date = parse_task_date(date_value)
    return datetime.combine(start_date, start_time, tzinfo=zone).astimezone(UTC)


def diff_minutes(start: datetime, now: datetime) -> int:
    """Whole minutes from now until start, rounded down."""
    return math.floor((start - now).total_seconds() / 60)


def clamp_window_forward(minutes: int) -> int:
    return max(0, min(Constants.MAX_WINDOW_FORWARD_MINUTES, minutes))


def is_within_horizon(minutes_until_start: int, horizon_minutes: int) -> bool:
    """Coarse filter: not already started and not further ahead than the horizon."""
    return 0 <= minutes_until_start <= horizon_minutes


def is_due_for_lead(minutes_until_start: int, lead_minutes: object, window_forward_minutes: int) -> bool:
    """Fine filter: lead <= minutes until start <= lead + forward tolerance (inclusive).

    Leads outside the allowed options are normalized to the default first.
    """
    lead = normalize_lead_minutes(lead_minutes)
    return lead <= minutes_until_start <= lead + clamp_window_forward(window_forward_minutes)
