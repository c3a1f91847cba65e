"""Turn a client-submitted push subscription into a storable record."""

import uuid
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any

from pushrelay.errors import InvalidSubscription
from pushrelay.subscriptions.expiry import SUBSCRIPTION_HORIZON, utcnow
from pushrelay.subscriptions.models import (
    PushSubscriptionInfo,
    SubscriptionKeys,
    SubscriptionRecord,
)


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def parse_subscription(raw: Any) -> PushSubscriptionInfo:
    """Validate the raw JSON body of a subscribe request.

    Raises:
        InvalidSubscription: If the endpoint or either key is
            missing or empty.
    """
    if not isinstance(raw, Mapping):
        raise InvalidSubscription("Invalid subscription data")
    endpoint = raw.get("endpoint")
    keys = raw.get("keys")
    if not _non_empty_str(endpoint) or not isinstance(keys, Mapping):
        raise InvalidSubscription("Invalid subscription data")
    p256dh = keys.get("p256dh")
    auth = keys.get("auth")
    if not _non_empty_str(p256dh) or not _non_empty_str(auth):
        raise InvalidSubscription("Invalid subscription keys")
    return PushSubscriptionInfo(
        endpoint=endpoint,
        keys=SubscriptionKeys(p256dh=p256dh, auth=auth),
    )


def build_record(
    raw: Any,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
    now: datetime | None = None,
    horizon: timedelta = SUBSCRIPTION_HORIZON,
) -> SubscriptionRecord:
    """Build a new record with a fresh id and expiry.

    Nothing is persisted here; the caller hands the record
    to the store.
    """
    info = parse_subscription(raw)
    if horizon <= timedelta(0):
        msg = f"Subscription horizon must be positive, got {horizon}"
        raise ValueError(msg)
    created_at = now or utcnow()
    return SubscriptionRecord(
        id=str(uuid.uuid4()),
        subscription=info,
        created_at=created_at,
        expires_at=created_at + horizon,
        user_agent=user_agent or "Unknown",
        ip_address=ip_address or "Unknown",
    )
