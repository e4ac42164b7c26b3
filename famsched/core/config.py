"""Configuration management for famsched."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SQLite Configuration
    sqlite_db_path: str = Field(default="./data/famsched.db", description="Path to the SQLite database file")

    # Web Push (VAPID) Configuration
    vapid_public_key: str | None = Field(default=None, description="VAPID public key (URL-safe base64)")
    vapid_private_key: str | None = Field(default=None, description="VAPID private key (URL-safe base64 or PEM)")
    vapid_subject: str = Field(
        default="mailto:admin@example.com", description="VAPID subject contact (mailto: or https: URL)"
    )
    push_ttl_seconds: int = Field(default=3600, description="How long the push service keeps undelivered messages")

    # Trigger Authentication
    cron_secret: str | None = Field(
        default=None, description="Bearer token expected on reminder trigger endpoints (unset = open)"
    )

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    # Reminder Sweep Configuration
    schedule_timezone: str = Field(
        default="UTC", description="Zone in which task dates and times are entered (IANA name)"
    )
    reminder_window_forward_minutes: int = Field(
        default=15, description="Tolerance after a subscriber's lead time during which the reminder still fires"
    )
    reminder_horizon_minutes: int = Field(
        default=45, description="Tasks starting further ahead than this are not evaluated"
    )
    reminder_skip_notified_tasks: bool = Field(
        default=False, description="Skip tasks already flagged as notified before per-device evaluation"
    )
    parent_empty_watch_receives_all: bool = Field(
        default=True, description="Parents with no watched children receive every child's reminders"
    )

    # In-process scheduler (the external cron trigger is the primary invoker)
    reminder_scheduler_enabled: bool = Field(
        default=False, description="Run the reminder sweep from the in-process scheduler"
    )
    reminder_sweep_interval_seconds: int = Field(default=60, description="Interval between in-process sweeps")

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # HTTP Status Codes
    HTTP_BAD_REQUEST: int = 400
    HTTP_UNAUTHORIZED: int = 401
    HTTP_NOT_FOUND: int = 404
    HTTP_GONE: int = 410
    HTTP_SERVER_ERROR: int = 500

    # Reminder Window
    MAX_WINDOW_FORWARD_MINUTES: int = 15
    ENDPOINT_PREVIEW_LENGTH: int = 40

    # Push Payload
    DEFAULT_PUSH_URL: str = "/"
    DEFAULT_TASK_TITLE: str = "Task"
    DEFAULT_CHILD_NAME: str = "Your child"

    # Pagination Defaults
    BULK_READ_LIMIT: int = 10000

    # Job Tracker Configuration
    TRACKER_DEAD_LETTER_QUEUE_MAXLEN: int = 100
    TRACKER_ERROR_MAX_LENGTH: int = 500


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
