"""Push notification API endpoints."""

import structlog
from fastapi import APIRouter, HTTPException, Request

from pushrelay.errors import (
    DeliveryFailure,
    NoSubscribers,
    StoreUnavailable,
    SubscriptionNotFound,
)
from pushrelay.notifications.models import (
    NotificationRequest,
    SendOneResponse,
    SendSummary,
)
from pushrelay.notifications.push import PushDispatcher

logger = structlog.get_logger()

router = APIRouter()


def _dispatcher(request: Request) -> PushDispatcher:
    return request.app.state.dispatcher


@router.get("/vapid-public-key")
async def vapid_public_key(request: Request) -> dict:
    """Return the VAPID application server key."""
    return {"publicKey": request.app.state.vapid_public_key}


@router.post(
    "/send-notification",
    response_model=SendSummary,
    response_model_exclude_none=True,
)
async def send_notification(
    request: Request,
    body: NotificationRequest | None = None,
) -> SendSummary:
    """Broadcast a notification to every live subscription."""
    try:
        return await _dispatcher(request).send_to_all(body or NotificationRequest())
    except NoSubscribers as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        logger.error("broadcast_failed", error=str(exc))
        raise HTTPException(
            status_code=500,
            detail=f"Failed to send notifications: {exc}",
        ) from exc


@router.post("/send-notification/{subscription_id}", response_model=SendOneResponse)
async def send_notification_to(
    subscription_id: str,
    request: Request,
    body: NotificationRequest | None = None,
) -> SendOneResponse:
    """Send a notification to one subscription."""
    try:
        result = await _dispatcher(request).send_to_one(
            subscription_id,
            body or NotificationRequest(),
        )
    except SubscriptionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (DeliveryFailure, StoreUnavailable) as exc:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to send notification: {exc}",
        ) from exc
    return SendOneResponse(id=result.id)
