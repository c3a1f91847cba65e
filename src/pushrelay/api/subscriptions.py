"""Subscription management endpoints."""

from typing import Any

import structlog
from fastapi import APIRouter, Body, HTTPException, Request

from pushrelay.errors import (
    InvalidSubscription,
    StoreUnavailable,
    SubscriptionNotFound,
)
from pushrelay.subscriptions.models import (
    CleanupSummary,
    SubscribeResponse,
    SubscriptionRecord,
    UnsubscribeResponse,
)
from pushrelay.subscriptions.service import SubscriptionService

logger = structlog.get_logger()

router = APIRouter()


def _service(request: Request) -> SubscriptionService:
    return request.app.state.subscriptions


def _client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    if request.client and request.client.host:
        return request.client.host
    return "Unknown"


@router.post("/subscribe", status_code=201, response_model=SubscribeResponse)
async def subscribe(
    request: Request,
    body: Any = Body(default=None),
) -> SubscribeResponse:
    """Register a browser push subscription."""
    try:
        record, total = await _service(request).subscribe(
            body,
            user_agent=request.headers.get("user-agent"),
            ip_address=_client_ip(request),
        )
    except InvalidSubscription as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        logger.error("subscribe_failed", error=str(exc))
        raise HTTPException(
            status_code=500,
            detail=f"Failed to save subscription: {exc}",
        ) from exc
    return SubscribeResponse(
        id=record.id,
        expires_at=record.expires_at,
        user_agent=record.user_agent,
        ip_address=record.ip_address,
        total_subscriptions=total,
    )


@router.get("/subscriptions", response_model=list[SubscriptionRecord])
async def list_subscriptions(request: Request) -> list[SubscriptionRecord]:
    """All live subscriptions."""
    try:
        records = await _service(request).list_live()
    except StoreUnavailable as exc:
        logger.error("list_subscriptions_failed", error=str(exc))
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch subscriptions: {exc}",
        ) from exc
    logger.debug("subscriptions_listed", count=len(records))
    return records


@router.get("/subscriptions/{subscription_id}", response_model=SubscriptionRecord)
async def get_subscription(subscription_id: str, request: Request) -> SubscriptionRecord:
    try:
        return await _service(request).get(subscription_id)
    except SubscriptionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch subscription: {exc}",
        ) from exc


@router.delete("/unsubscribe/{subscription_id}", response_model=UnsubscribeResponse)
async def unsubscribe(subscription_id: str, request: Request) -> UnsubscribeResponse:
    try:
        await _service(request).unsubscribe(subscription_id)
    except SubscriptionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to delete subscription: {exc}",
        ) from exc
    return UnsubscribeResponse(id=subscription_id)


@router.post("/cleanup-expired", response_model=CleanupSummary)
async def cleanup_expired(request: Request) -> CleanupSummary:
    """Delete every expired subscription now."""
    try:
        removed, processed = await _service(request).sweep_expired()
    except StoreUnavailable as exc:
        logger.error("cleanup_failed", error=str(exc))
        raise HTTPException(
            status_code=500,
            detail=f"Failed to cleanup expired subscriptions: {exc}",
        ) from exc
    return CleanupSummary(
        expired_subscriptions_removed=removed,
        total_processed=processed,
    )
