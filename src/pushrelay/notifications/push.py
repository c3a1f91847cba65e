"""Web Push notification delivery with dead-endpoint cleanup."""

import asyncio
import json
from pathlib import Path

import structlog
from pywebpush import WebPushException, webpush

from pushrelay.errors import DeliveryFailure, NoSubscribers, PushRelayError
from pushrelay.notifications.models import (
    DeliveryResult,
    NotificationRequest,
    SendSummary,
)
from pushrelay.subscriptions.models import SubscriptionRecord
from pushrelay.subscriptions.service import SubscriptionService

logger = structlog.get_logger()


class PushDispatcher:
    """Send notifications to stored subscriptions.

    Each delivery is an independent blocking pywebpush call
    run in a worker thread. A 404/410 from the push service
    deletes the subscription; any other failure is reported
    and the subscription is kept. Nothing is retried.
    """

    def __init__(
        self,
        subscriptions: SubscriptionService,
        vapid_private_key: str | Path,
        vapid_claims: dict,
        ttl: int = 86_400,
    ) -> None:
        self._subscriptions = subscriptions
        self._private_key = str(vapid_private_key)
        self._claims = vapid_claims
        self._ttl = ttl

    async def send_to_all(self, request: NotificationRequest) -> SendSummary:
        """Broadcast to every live subscription.

        Raises:
            NoSubscribers: If no live subscription exists.
            StoreUnavailable: If the subscriptions cannot be listed.
        """
        targets = await self._subscriptions.list_live()
        if not targets:
            raise NoSubscribers()

        payload = json.dumps(request.envelope())
        logger.info("broadcast_started", targets=len(targets))
        results = await asyncio.gather(
            *(self._deliver(record, payload) for record in targets)
        )
        successful = sum(1 for r in results if r.success)
        failed = len(results) - successful
        logger.info("broadcast_complete", successful=successful, failed=failed)
        return SendSummary(
            successful=successful,
            failed=failed,
            total_processed=len(results),
            results=list(results),
        )

    async def send_to_one(
        self,
        subscription_id: str,
        request: NotificationRequest,
    ) -> DeliveryResult:
        """Deliver to a single subscription.

        Raises:
            SubscriptionNotFound: If absent or expired.
            DeliveryFailure: If the push service rejected it.
        """
        record = await self._subscriptions.get(subscription_id)
        await self._attempt(record, json.dumps(request.envelope()))
        return DeliveryResult(success=True, id=record.id)

    async def _deliver(self, record: SubscriptionRecord, payload: str) -> DeliveryResult:
        try:
            await self._attempt(record, payload)
        except DeliveryFailure as exc:
            return DeliveryResult(success=False, id=record.id, error=str(exc))
        except Exception as exc:
            logger.exception("push_target_crashed", subscription_id=record.id)
            return DeliveryResult(
                success=False,
                id=record.id,
                error=str(exc) or type(exc).__name__,
            )
        return DeliveryResult(success=True, id=record.id)

    async def _attempt(self, record: SubscriptionRecord, payload: str) -> None:
        try:
            await asyncio.to_thread(self._push, record, payload)
        except Exception as exc:
            failure = _as_failure(record.id, exc)
            if failure.endpoint_gone:
                logger.info(
                    "push_endpoint_gone",
                    subscription_id=record.id,
                    status=failure.status_code,
                )
                await self._remove_gone(record.id)
            else:
                logger.warning(
                    "push_failed",
                    subscription_id=record.id,
                    status=failure.status_code,
                    error=str(exc),
                )
            raise failure from exc
        logger.debug("push_sent", subscription_id=record.id)

    def _push(self, record: SubscriptionRecord, payload: str) -> None:
        webpush(
            subscription_info=record.subscription.model_dump(),
            data=payload,
            vapid_private_key=self._private_key,
            # pywebpush writes aud/exp into the claims it is given
            vapid_claims=dict(self._claims),
            ttl=self._ttl,
        )

    async def _remove_gone(self, subscription_id: str) -> None:
        try:
            await self._subscriptions.remove(subscription_id)
        except PushRelayError as exc:
            logger.warning(
                "gone_subscription_delete_failed",
                subscription_id=subscription_id,
                error=str(exc),
            )


def _as_failure(subscription_id: str, exc: Exception) -> DeliveryFailure:
    status = None
    if isinstance(exc, WebPushException):
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    return DeliveryFailure(subscription_id, str(exc) or type(exc).__name__, status)
