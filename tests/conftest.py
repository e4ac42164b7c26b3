"""Pytest configuration and shared fixtures."""

import pytest

from famsched.core.config import settings
from famsched.core.scheduler_tracker import job_tracker
from famsched.interface import push_sender


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Pin settings that tests rely on, whatever the developer's .env holds."""
    monkeypatch.setattr(settings, "cron_secret", None)
    monkeypatch.setattr(settings, "schedule_timezone", "UTC")
    monkeypatch.setattr(settings, "reminder_window_forward_minutes", 15)
    monkeypatch.setattr(settings, "reminder_horizon_minutes", 45)
    monkeypatch.setattr(settings, "reminder_skip_notified_tasks", False)
    monkeypatch.setattr(settings, "parent_empty_watch_receives_all", True)
    monkeypatch.setattr(settings, "reminder_scheduler_enabled", False)
    monkeypatch.setattr(settings, "vapid_public_key", None)
    monkeypatch.setattr(settings, "vapid_private_key", None)
    push_sender.reset_push_transport()
    job_tracker.reset()
    yield
    push_sender.reset_push_transport()
    job_tracker.reset()
