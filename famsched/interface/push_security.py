"""Shared-secret authorization for trigger and diagnostics endpoints."""

import logging
import secrets
from typing import NamedTuple

from fastapi import HTTPException, Request

from famsched.core.config import Constants, settings


logger = logging.getLogger(__name__)


class TriggerAuthResult(NamedTuple):
    """Result of trigger authorization."""

    is_valid: bool
    error_message: str | None
    http_status_code: int | None


def validate_bearer_token(authorization: str | None, expected_secret: str | None) -> TriggerAuthResult:
    """Check an Authorization header against the configured secret.

    With no secret configured every request is allowed.

    Args:
        authorization: Raw Authorization header value
        expected_secret: Configured shared secret, or None

    Returns:
        TriggerAuthResult indicating whether the caller may proceed
    """
    if not expected_secret or not expected_secret.strip():
        return TriggerAuthResult(is_valid=True, error_message=None, http_status_code=None)

    header = (authorization or "").strip()
    token = header[len("Bearer ") :].strip() if header.startswith("Bearer ") else ""
    if not token or not secrets.compare_digest(token.encode(), expected_secret.strip().encode()):
        return TriggerAuthResult(
            is_valid=False,
            error_message="Unauthorized",
            http_status_code=Constants.HTTP_UNAUTHORIZED,
        )

    return TriggerAuthResult(is_valid=True, error_message=None, http_status_code=None)


async def require_trigger_secret(request: Request) -> None:
    """FastAPI dependency rejecting callers without the configured bearer token."""
    result = validate_bearer_token(request.headers.get("authorization"), settings.cron_secret)
    if not result.is_valid:
        logger.warning("Trigger authorization failed", extra={"path": request.url.path})
        raise HTTPException(
            status_code=result.http_status_code or Constants.HTTP_UNAUTHORIZED,
            detail=result.error_message,
        )
