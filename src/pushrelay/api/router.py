from fastapi import APIRouter

from pushrelay.api import health, notifications, subscriptions

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(subscriptions.router, tags=["subscriptions"])
api_router.include_router(notifications.router, tags=["notifications"])
