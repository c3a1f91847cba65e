"""Expiry policy for subscription records."""

from datetime import UTC, datetime, timedelta

from pushrelay.subscriptions.models import SubscriptionRecord

SUBSCRIPTION_HORIZON = timedelta(days=365)


def utcnow() -> datetime:
    return datetime.now(UTC)


def is_expired(record: SubscriptionRecord, now: datetime | None = None) -> bool:
    """True once ``now`` is strictly past the record's expiry."""
    if now is None:
        now = utcnow()
    return now > record.expires_at
