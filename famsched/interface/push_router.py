"""Push subscription, reminder trigger, confirmation and test endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from famsched.core.config import Constants
from famsched.core.errors import (
    PushDeliveryError,
    SubscriptionValidationError,
    classify_error_with_response,
    classify_sweep_error,
)
from famsched.interface.push_security import require_trigger_secret
from famsched.interface.push_sender import get_push_transport
from famsched.services import notification_service, reminder_service, subscription_service


router = APIRouter(prefix="/push", tags=["push"])
logger = logging.getLogger(__name__)


def error_response(message: str, status_code: int, **extra: str) -> JSONResponse:
    return JSONResponse(content={"error": message, **extra}, status_code=status_code)


async def read_json_body(request: Request) -> dict[str, Any]:
    """Parse a JSON object body; anything else reads as an empty object."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


async def run_sweep_response(*, strict_child_only: bool) -> JSONResponse:
    """Run one reminder sweep and render its summary (shared by every trigger route)."""
    try:
        summary = await reminder_service.run_reminder_sweep(strict_child_only=strict_child_only)
    except Exception as e:
        error = classify_error_with_response(e)
        logger.exception(
            "Reminder sweep failed",
            extra={
                "code": error.code,
                "category": classify_sweep_error(e).value,
                "severity": error.severity.value,
            },
        )
        return JSONResponse(
            content={"error": str(e) or "Failed to send reminders", "code": error.code},
            status_code=Constants.HTTP_SERVER_ERROR,
        )
    return JSONResponse(content=summary.model_dump(by_alias=True))


async def acknowledge_response(request: Request) -> JSONResponse:
    """Mark the task from a reminder's confirm action as completed."""
    body = await read_json_body(request)
    event_id = body.get("eventId") if isinstance(body.get("eventId"), str) else ""
    child_name = body.get("childName") if isinstance(body.get("childName"), str) else None
    try:
        result = await notification_service.acknowledge_task(event_id=event_id, child_name=child_name)
    except ValueError as e:
        return error_response(str(e), Constants.HTTP_BAD_REQUEST)
    except KeyError as e:
        error = classify_error_with_response(e)
        return error_response("Task not found", Constants.HTTP_NOT_FOUND, code=error.code)
    except Exception as e:
        logger.exception("Task acknowledgement failed", extra={"task_id": event_id})
        return error_response(str(e) or "Failed to acknowledge task", Constants.HTTP_SERVER_ERROR)
    return JSONResponse(content=result.model_dump(by_alias=True))


@router.get("/subscribe")
async def get_push_config() -> dict[str, Any]:
    """Tell the client whether push is available and which VAPID key to subscribe with."""
    transport = get_push_transport()
    return {"enabled": transport.is_configured, "publicKey": transport.config.public_key}


@router.post("/subscribe")
async def subscribe(request: Request) -> JSONResponse:
    """Register or update this device's subscription and preferences."""
    body = await read_json_body(request)
    subscription = body.get("subscription") if isinstance(body.get("subscription"), dict) else {}
    raw = {
        **subscription,
        "userName": body.get("userName"),
        "receiveAll": body.get("receiveAll"),
        "watchChildren": body.get("watchChildren"),
        "reminderLeadMinutes": body.get("reminderLeadMinutes"),
    }
    try:
        saved = await subscription_service.save_subscription(raw)
    except SubscriptionValidationError as e:
        error = classify_error_with_response(e)
        return error_response(str(e), Constants.HTTP_BAD_REQUEST, code=error.code)
    except Exception as e:
        logger.exception("Subscription save failed")
        return error_response(str(e) or "Failed to subscribe", Constants.HTTP_BAD_REQUEST)
    return JSONResponse(content={"ok": True, "endpoint": saved.endpoint})


@router.delete("/subscribe")
async def unsubscribe(request: Request) -> JSONResponse:
    """Remove this device's subscription."""
    body = await read_json_body(request)
    endpoint = body.get("endpoint") if isinstance(body.get("endpoint"), str) else ""
    if not endpoint.strip():
        return error_response("endpoint is required", Constants.HTTP_BAD_REQUEST)
    try:
        await subscription_service.remove_subscription(endpoint)
    except Exception as e:
        logger.exception("Subscription removal failed")
        return error_response(str(e) or "Failed to unsubscribe", Constants.HTTP_BAD_REQUEST)
    return JSONResponse(content={"ok": True})


@router.api_route("/remind", methods=["GET", "POST"], dependencies=[Depends(require_trigger_secret)])
async def remind(strict_child_only: bool = Query(default=False, alias="strictChildOnly")) -> JSONResponse:
    """Reminder sweep trigger for the external scheduler."""
    return await run_sweep_response(strict_child_only=strict_child_only)


@router.post("/confirm")
async def confirm(request: Request) -> JSONResponse:
    """Confirm action from a reminder notification."""
    return await acknowledge_response(request)


@router.post("/test")
async def send_test(request: Request) -> JSONResponse:
    """Send a test notification to everyone, or to one person's latest device."""
    body = await read_json_body(request)
    user_name = request.query_params.get("userName") or body.get("userName")
    try:
        result = await notification_service.send_test_notification(
            user_name=user_name if isinstance(user_name, str) else None
        )
    except KeyError as e:
        return error_response(str(e.args[0]) if e.args else "Not found", Constants.HTTP_NOT_FOUND)
    except PushDeliveryError as e:
        error = classify_error_with_response(e, e.status_code)
        logger.warning("Test notification not delivered", extra={"reason": e.reason, "code": error.code})
        return error_response(str(e), Constants.HTTP_SERVER_ERROR, reason=e.reason, code=error.code)
    except Exception as e:
        logger.exception("Test notification failed")
        return error_response(str(e) or "Failed to send test push", Constants.HTTP_SERVER_ERROR)
    return JSONResponse(content={"ok": True, **result.model_dump(by_alias=True, exclude_none=True)})
