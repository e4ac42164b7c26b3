"""Tests for due-window evaluation."""

from datetime import UTC, datetime, timedelta

import pytest

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


@pytest.mark.unit
class TestParseTaskStart:
    def test_iso_date_in_utc(self) -> None:
        start = parse_task_start("2026-02-24", "14:00", UTC)

        assert start == datetime(2026, 2, 24, 14, 0, tzinfo=UTC)

    def test_day_first_date(self) -> None:
        assert parse_task_start("24-02-2026", "9:05", UTC) == datetime(2026, 2, 24, 9, 5, tzinfo=UTC)

    def test_iso_datetime_uses_date_part(self) -> None:
        start = parse_task_start("2026-02-24T00:00:00.000Z", "14:00", UTC)

        assert start == datetime(2026, 2, 24, 14, 0, tzinfo=UTC)

    def test_named_zone_converts_to_utc(self) -> None:
        start = parse_task_start("2026-02-24", "14:00", get_schedule_zone("Asia/Jerusalem"))

        assert start == datetime(2026, 2, 24, 12, 0, tzinfo=UTC)

    @pytest.mark.parametrize("value", ["", "24:00", "12:60", "noon", "12:5", "1200"])
    def test_invalid_time(self, value: str) -> None:
        with pytest.raises(InvalidTaskTimeError):
            parse_task_start("2026-02-24", value, UTC)

    @pytest.mark.parametrize("value", ["", "2026-02-30", "tomorrow", "2026/02/24", "31-13-2026"])
    def test_invalid_date(self, value: str) -> None:
        with pytest.raises(InvalidTaskDateError):
            parse_task_start(value, "14:00", UTC)

    def test_time_is_checked_before_date(self) -> None:
        with pytest.raises(InvalidTaskTimeError):
            parse_task_start("garbage", "garbage", UTC)


@pytest.mark.unit
class TestWindows:
    def test_diff_minutes_rounds_down(self) -> None:
        now = datetime(2026, 2, 24, 13, 50, 30, tzinfo=UTC)
        start = datetime(2026, 2, 24, 14, 0, tzinfo=UTC)

        assert diff_minutes(start, now) == 9
        assert diff_minutes(start, now - timedelta(seconds=30)) == 10
        assert diff_minutes(start, start + timedelta(seconds=1)) == -1

    def test_horizon_bounds(self) -> None:
        assert is_within_horizon(0, 45)
        assert is_within_horizon(45, 45)
        assert not is_within_horizon(46, 45)
        assert not is_within_horizon(-1, 45)

    @pytest.mark.parametrize(
        ("minutes_until_start", "expected"),
        [(9, False), (10, True), (17, True), (25, True), (26, False)],
    )
    def test_lead_window_is_inclusive(self, minutes_until_start: int, expected: bool) -> None:
        assert is_due_for_lead(minutes_until_start, 10, 15) is expected

    def test_unknown_lead_uses_default(self) -> None:
        assert is_due_for_lead(10, 7, 0)
        assert not is_due_for_lead(7, 7, 0)

    @pytest.mark.parametrize(("value", "expected"), [(-5, 0), (0, 0), (7, 7), (15, 15), (60, 15)])
    def test_window_forward_is_clamped(self, value: int, expected: int) -> None:
        assert clamp_window_forward(value) == expected
