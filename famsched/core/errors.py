"""Error classification utilities for reminder sweeps and push delivery."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel

from famsched.core.config import Constants
from famsched.core.db_client import DatabaseError


class ErrorCategory(Enum):
    """Categories of errors that can occur while dispatching reminders."""

    CONFIGURATION = "configuration"
    TRANSIENT_DELIVERY = "transient_delivery"
    PERMANENT_DELIVERY = "permanent_delivery"
    DATA = "data"
    IDEMPOTENCY_RACE = "idempotency_race"
    INFRASTRUCTURE = "infrastructure"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_PUSH_NOT_CONFIGURED = "ERR_PUSH_NOT_CONFIGURED"
    ERR_SUBSCRIPTION_EXPIRED = "ERR_SUBSCRIPTION_EXPIRED"
    ERR_PUSH_DELIVERY_FAILED = "ERR_PUSH_DELIVERY_FAILED"
    ERR_INVALID_SUBSCRIPTION = "ERR_INVALID_SUBSCRIPTION"
    ERR_TASK_NOT_FOUND = "ERR_TASK_NOT_FOUND"
    ERR_STORE_UNAVAILABLE = "ERR_STORE_UNAVAILABLE"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with operator-facing messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


class PushDeliveryError(RuntimeError):
    """Raised when a push that the caller waits on was not delivered."""

    def __init__(self, message: str, *, reason: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


class PushNotConfiguredError(PushDeliveryError):
    """Raised when the VAPID key pair is missing."""


class SubscriptionValidationError(ValueError):
    """Raised when a push subscription payload is missing its endpoint or keys."""


_TRANSIENT_PATTERNS: dict[Literal["network", "throttle"], dict[str, list[str] | set[str]]] = {
    "network": {
        "phrases": ["connection", "timeout", "timed out", "unreachable", "502", "503", "504"],
        "exception_types": {"ConnectionError", "TimeoutError", "ConnectTimeout", "ReadTimeout"},
    },
    "throttle": {
        "phrases": ["429", "too many requests", "rate limit"],
        "exception_types": set(),
    },
}


def _match_error_pattern(*, error_str: str, exception_type: str, pattern_type: Literal["network", "throttle"]) -> bool:
    """Return True if the error matches the configured pattern type."""
    patterns = _TRANSIENT_PATTERNS[pattern_type]
    return any(phrase in error_str for phrase in patterns["phrases"]) or exception_type in patterns["exception_types"]


def is_gone_status(status_code: int | None) -> bool:
    """Return True for push service responses meaning the endpoint no longer exists."""
    return status_code in (Constants.HTTP_NOT_FOUND, Constants.HTTP_GONE)


def classify_delivery_error(exception: Exception, status_code: int | None = None) -> ErrorCategory:
    """Classify a push delivery failure.

    Args:
        exception: The exception raised by the transport
        status_code: HTTP status returned by the push service, when known

    Returns:
        PERMANENT_DELIVERY for gone endpoints, CONFIGURATION for missing
        credentials, TRANSIENT_DELIVERY otherwise.
    """
    if isinstance(exception, PushNotConfiguredError):
        return ErrorCategory.CONFIGURATION
    if is_gone_status(status_code):
        return ErrorCategory.PERMANENT_DELIVERY
    return ErrorCategory.TRANSIENT_DELIVERY


def classify_sweep_error(exception: Exception) -> ErrorCategory:
    """Classify a failure raised while a sweep handles one task or loads its inputs.

    Malformed task data is DATA, store failures are INFRASTRUCTURE and abort
    the sweep when they happen during loading.
    """
    if isinstance(exception, DatabaseError):
        return ErrorCategory.INFRASTRUCTURE
    if isinstance(exception, ValueError):
        return ErrorCategory.DATA
    return ErrorCategory.UNKNOWN


def classify_error_with_response(exception: Exception, status_code: int | None = None) -> ErrorResponse:
    """Classify an error and return a structured response with recovery suggestions."""
    error_str = str(exception).lower()
    exception_type = type(exception).__name__
    category = classify_delivery_error(exception, status_code)

    if category is ErrorCategory.CONFIGURATION:
        return ErrorResponse(
            code=ErrorCode.ERR_PUSH_NOT_CONFIGURED,
            message="Push notifications are not configured.",
            suggestion="Set VAPID_PUBLIC_KEY and VAPID_PRIVATE_KEY and restart the service.",
            severity=ErrorSeverity.CRITICAL,
        )

    if category is ErrorCategory.PERMANENT_DELIVERY:
        return ErrorResponse(
            code=ErrorCode.ERR_SUBSCRIPTION_EXPIRED,
            message="The device subscription has expired.",
            suggestion="The subscription was removed; the device must subscribe again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, SubscriptionValidationError):
        return ErrorResponse(
            code=ErrorCode.ERR_INVALID_SUBSCRIPTION,
            message="The push subscription is incomplete.",
            suggestion="Send the full PushSubscription JSON including endpoint and keys.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, KeyError) and "not found" in error_str:
        return ErrorResponse(
            code=ErrorCode.ERR_TASK_NOT_FOUND,
            message="Task not found.",
            suggestion="Reload the schedule; the task may have been deleted.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, DatabaseError):
        return ErrorResponse(
            code=ErrorCode.ERR_STORE_UNAVAILABLE,
            message="The schedule store is unavailable.",
            suggestion="Check the database file and disk space; the sweep will run again on the next trigger.",
            severity=ErrorSeverity.HIGH,
        )

    if isinstance(exception, PushDeliveryError) or (
        _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="network")
    ) or (
        _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="throttle")
    ):
        return ErrorResponse(
            code=ErrorCode.ERR_PUSH_DELIVERY_FAILED,
            message="The push service could not be reached.",
            suggestion="The reminder stays eligible and will be retried on the next sweep.",
            severity=ErrorSeverity.MEDIUM,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Check the service logs. The reminder will be retried on the next sweep.",
        severity=ErrorSeverity.MEDIUM,
    )
