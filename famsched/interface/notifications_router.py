"""Scheduled reminder check, acknowledgement and subscription diagnostics endpoints."""


from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from famsched.interface.push_router import acknowledge_response, run_sweep_response
from famsched.interface.push_security import require_trigger_secret
from famsched.services import subscription_service


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.api_route("/check", methods=["GET", "POST"], dependencies=[Depends(require_trigger_secret)])
async def check(strict_child_only: bool = Query(default=False, alias="strictChildOnly")) -> JSONResponse:
    """Periodic reminder check invoked by the cron trigger."""
    return await run_sweep_response(strict_child_only=strict_child_only)


@router.post("/ack")
async def acknowledge(request: Request) -> JSONResponse:
    """Acknowledge a task from the app."""
    return await acknowledge_response(request)


@router.get("/subscriptions", dependencies=[Depends(require_trigger_secret)])
async def list_subscriptions() -> JSONResponse:
    """Registered devices with shortened endpoints and per-person counts."""
    overview = await subscription_service.summarize_subscriptions()
    return JSONResponse(content=overview.model_dump(by_alias=True))
