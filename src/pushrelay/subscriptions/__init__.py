from pushrelay.subscriptions.models import SubscriptionRecord
from pushrelay.subscriptions.service import SubscriptionService
from pushrelay.subscriptions.store import SubscriptionStore

__all__ = [
    "SubscriptionRecord",
    "SubscriptionService",
    "SubscriptionStore",
]
