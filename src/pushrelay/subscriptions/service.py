"""Subscription lifecycle on top of the store."""

import asyncio
from datetime import timedelta
from typing import Any

import structlog

from pushrelay.errors import PushRelayError, SubscriptionNotFound
from pushrelay.subscriptions.builder import build_record
from pushrelay.subscriptions.expiry import SUBSCRIPTION_HORIZON, is_expired, utcnow
from pushrelay.subscriptions.models import SubscriptionRecord
from pushrelay.subscriptions.store import SubscriptionStore

logger = structlog.get_logger()


class SubscriptionService:
    """Create, read and remove subscriptions.

    Expiry is enforced lazily: any read that meets an
    expired record deletes it and treats it as absent.
    Redis key TTLs expire the same records independently,
    so every delete here tolerates the key being gone.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        horizon: timedelta = SUBSCRIPTION_HORIZON,
    ) -> None:
        self._store = store
        self._horizon = horizon
        self._cleanup_tasks: set[asyncio.Task[None]] = set()

    @property
    def store(self) -> SubscriptionStore:
        return self._store

    async def subscribe(
        self,
        raw: Any,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> tuple[SubscriptionRecord, int]:
        """Validate and persist a new subscription.

        Returns:
            (record, total subscriptions after the write)

        Raises:
            InvalidSubscription: Before anything is written.
            StoreUnavailable: If Redis is down.
        """
        record = build_record(
            raw,
            user_agent=user_agent,
            ip_address=ip_address,
            horizon=self._horizon,
        )
        await self._store.put(record)
        total = await self._store.count()
        logger.info(
            "subscription_saved",
            subscription_id=record.id,
            user_agent=record.user_agent,
            ip_address=record.ip_address,
            total=total,
        )
        return record, total

    async def get(self, subscription_id: str) -> SubscriptionRecord:
        """Fetch a live record, deleting it if it has expired."""
        record = await self._store.get(subscription_id)
        if record is None:
            raise SubscriptionNotFound(subscription_id)
        if is_expired(record):
            logger.info("subscription_expired", subscription_id=subscription_id)
            await self._store.delete(subscription_id)
            raise SubscriptionNotFound(subscription_id, "not found or expired")
        return record

    async def list_live(self) -> list[SubscriptionRecord]:
        """All unexpired records.

        Expired records are dropped from the result and deleted
        in the background; a failed delete is only logged.
        """
        now = utcnow()
        live = []
        for record in await self._store.list_all():
            if is_expired(record, now):
                self._delete_in_background(record.id)
                continue
            live.append(record)
        return live

    def _delete_in_background(self, subscription_id: str) -> None:
        logger.info("subscription_expired", subscription_id=subscription_id)
        task = asyncio.create_task(self._delete_quietly(subscription_id))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def _delete_quietly(self, subscription_id: str) -> None:
        try:
            await self._store.delete(subscription_id)
        except PushRelayError as exc:
            logger.warning(
                "expired_subscription_delete_failed",
                subscription_id=subscription_id,
                error=str(exc),
            )

    async def drain(self) -> None:
        """Wait for pending background deletions."""
        if self._cleanup_tasks:
            await asyncio.gather(*self._cleanup_tasks, return_exceptions=True)

    async def unsubscribe(self, subscription_id: str) -> None:
        if not await self._store.delete(subscription_id):
            raise SubscriptionNotFound(subscription_id)
        logger.info("subscription_deleted", subscription_id=subscription_id)

    async def remove(self, subscription_id: str) -> bool:
        """Delete without caring whether the record still exists."""
        return await self._store.delete(subscription_id)

    async def sweep_expired(self) -> tuple[int, int]:
        """Delete every expired record.

        Safe to run alongside normal traffic; live records are
        never touched.

        Returns:
            (records removed, records examined)
        """
        now = utcnow()
        records = await self._store.list_all()
        removed = 0
        for record in records:
            if not is_expired(record, now):
                continue
            try:
                if await self._store.delete(record.id):
                    removed += 1
                    logger.info("subscription_swept", subscription_id=record.id)
            except PushRelayError as exc:
                logger.warning(
                    "sweep_delete_failed",
                    subscription_id=record.id,
                    error=str(exc),
                )
        logger.info("sweep_complete", removed=removed, processed=len(records))
        return removed, len(records)

    async def count(self) -> int:
        return await self._store.count()
