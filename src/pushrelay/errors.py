"""Domain errors raised by the store, service and dispatcher."""


class PushRelayError(Exception):
    """Base class for pushrelay errors."""


class InvalidSubscription(PushRelayError, ValueError):
    """Subscription payload is missing its endpoint or keys."""


class SubscriptionNotFound(PushRelayError, KeyError):
    """No live subscription exists under the given id."""

    def __init__(self, subscription_id: str, reason: str = "not found") -> None:
        super().__init__(subscription_id)
        self.subscription_id = subscription_id
        self.reason = reason

    def __str__(self) -> str:
        return f"Subscription {self.reason}"


class NoSubscribers(PushRelayError):
    """A broadcast found no live subscriptions."""

    def __str__(self) -> str:
        return "No subscriptions found"


class StoreUnavailable(PushRelayError):
    """The Redis connection is down or not yet established."""


class DeliveryFailure(PushRelayError):
    """A single push delivery attempt failed."""

    def __init__(
        self,
        subscription_id: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.subscription_id = subscription_id
        self.status_code = status_code

    @property
    def endpoint_gone(self) -> bool:
        """True when the push service reports the endpoint permanently invalid."""
        return self.status_code in (404, 410)
