"""Liveness endpoints."""

import structlog
from fastapi import APIRouter, Request

from pushrelay.errors import PushRelayError
from pushrelay.subscriptions.expiry import utcnow
from pushrelay.subscriptions.models import HealthStatus

logger = structlog.get_logger()

router = APIRouter()


@router.get("/")
async def root() -> dict:
    return {"message": "Push notification server is running!"}


@router.get("/health", response_model=HealthStatus)
async def health(request: Request) -> HealthStatus:
    """Report store connectivity; never fails the request."""
    service = request.app.state.subscriptions
    connected = service.store.is_connected
    total = None
    if connected:
        try:
            total = await service.count()
        except PushRelayError as exc:
            logger.warning("health_count_failed", error=str(exc))
    return HealthStatus(
        store_connected=connected,
        total_subscriptions=total,
        timestamp=utcnow(),
    )
