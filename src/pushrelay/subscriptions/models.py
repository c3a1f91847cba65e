"""Pydantic models for push subscriptions."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubscriptionKeys(BaseModel):
    """Client encryption material, passed through untouched."""

    p256dh: str
    auth: str


class PushSubscriptionInfo(BaseModel):
    """Browser-issued push subscription (endpoint + keys)."""

    endpoint: str
    keys: SubscriptionKeys


class SubscriptionRecord(_CamelModel):
    """A persisted push subscription."""

    id: str
    subscription: PushSubscriptionInfo
    created_at: datetime
    expires_at: datetime
    is_active: bool = True
    user_agent: str = "Unknown"
    ip_address: str = "Unknown"

    @property
    def endpoint(self) -> str:
        return self.subscription.endpoint

    @property
    def keys(self) -> SubscriptionKeys:
        return self.subscription.keys


class SubscribeResponse(_CamelModel):
    """Result of a successful subscribe call."""

    message: str = "Subscription added successfully"
    id: str
    expires_at: datetime
    user_agent: str
    ip_address: str
    total_subscriptions: int


class UnsubscribeResponse(_CamelModel):
    message: str = "Subscription deleted successfully"
    id: str


class CleanupSummary(_CamelModel):
    """Outcome of a sweep over all stored subscriptions."""

    message: str = "Cleanup completed"
    expired_subscriptions_removed: int = Field(
        description="Expired records deleted by this sweep",
    )
    total_processed: int = Field(description="Records examined")


class HealthStatus(_CamelModel):
    status: str = "OK"
    store_connected: bool
    total_subscriptions: int | None = None
    timestamp: datetime
