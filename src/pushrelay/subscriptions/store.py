"""Redis-backed subscription store."""

import asyncio
import time
from datetime import timedelta
from typing import Any

import redis.asyncio as redis
import structlog
from pydantic import ValidationError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from pushrelay.errors import StoreUnavailable
from pushrelay.subscriptions.expiry import SUBSCRIPTION_HORIZON
from pushrelay.subscriptions.models import SubscriptionRecord

logger = structlog.get_logger()

KEY_PREFIX = "subscription:"

_CONNECTION_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)


class SubscriptionStore:
    """Subscription records stored one key per id in Redis.

    Every key is written with a TTL equal to the subscription
    horizon, so Redis expires records on its own even if
    nothing ever reads them again. Reads are not atomic across
    keys: list_all may miss a concurrent put or return a
    record that is being deleted.

    Operations fail fast with StoreUnavailable until a
    connection round has succeeded. A dropped connection
    schedules a background reconnect.
    """

    def __init__(
        self,
        client: redis.Redis,
        *,
        ttl: timedelta = SUBSCRIPTION_HORIZON,
        max_attempts: int = 10,
        max_elapsed_s: float = 3600,
        backoff_step_s: float = 0.1,
        backoff_cap_s: float = 3.0,
        reconnect_interval_s: float = 5.0,
    ) -> None:
        self._client = client
        self._ttl_s = int(ttl.total_seconds())
        self._max_attempts = max_attempts
        self._max_elapsed_s = max_elapsed_s
        self._backoff_step_s = backoff_step_s
        self._backoff_cap_s = backoff_cap_s
        self._reconnect_interval_s = reconnect_interval_s
        self._connected = False
        self._connect_task: asyncio.Task[None] | None = None

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "SubscriptionStore":
        """Create a store with its own Redis connection pool."""
        return cls(redis.from_url(url, decode_responses=True), **kwargs)

    @property
    def is_connected(self) -> bool:
        return self._connected

    # -- lifecycle ----------------------------------------------------

    async def connect(self) -> bool:
        """Run one bounded connection round.

        Pings Redis up to max_attempts times with linear backoff
        capped at backoff_cap_s, stopping early once the round
        has run longer than max_elapsed_s.

        Returns:
            True if Redis answered.
        """
        started = time.monotonic()
        for attempt in range(1, self._max_attempts + 1):
            try:
                await self._client.ping()
            except _CONNECTION_ERRORS as exc:
                logger.warning(
                    "redis_connect_failed",
                    attempt=attempt,
                    error=str(exc),
                )
                elapsed = time.monotonic() - started
                if attempt == self._max_attempts or elapsed >= self._max_elapsed_s:
                    break
                delay = min(attempt * self._backoff_step_s, self._backoff_cap_s)
                await asyncio.sleep(delay)
                continue
            self._connected = True
            logger.info("redis_connected", attempt=attempt)
            return True
        return False

    def start(self) -> None:
        """Connect in the background, retrying rounds until one succeeds."""
        if self._connect_task is not None and not self._connect_task.done():
            return
        self._connect_task = asyncio.create_task(self._connect_loop())

    async def _connect_loop(self) -> None:
        while not await self.connect():
            logger.warning(
                "redis_reconnect_scheduled",
                delay_s=self._reconnect_interval_s,
            )
            await asyncio.sleep(self._reconnect_interval_s)

    async def close(self) -> None:
        """Stop reconnecting and release the connection pool."""
        if self._connect_task is not None:
            self._connect_task.cancel()
            try:
                await self._connect_task
            except asyncio.CancelledError:
                pass
            self._connect_task = None
        self._connected = False
        await self._client.aclose()

    def _mark_down(self, exc: Exception) -> None:
        if self._connected:
            logger.error("redis_connection_lost", error=str(exc))
        self._connected = False
        self.start()

    async def _execute(self, command: str, *args: Any, **kwargs: Any) -> Any:
        if not self._connected:
            raise StoreUnavailable("Redis client is not connected")
        try:
            return await getattr(self._client, command)(*args, **kwargs)
        except _CONNECTION_ERRORS as exc:
            self._mark_down(exc)
            raise StoreUnavailable(str(exc)) from exc
        except RedisError as exc:
            # Server-side refusals (READONLY, NOPERM) leave the connection up
            logger.warning("redis_command_failed", command=command, error=str(exc))
            raise StoreUnavailable(str(exc)) from exc

    # -- records ------------------------------------------------------

    @staticmethod
    def key_for(subscription_id: str) -> str:
        return f"{KEY_PREFIX}{subscription_id}"

    @staticmethod
    def _parse(key: str, raw: str | bytes | None) -> SubscriptionRecord | None:
        if raw is None:
            return None
        try:
            return SubscriptionRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("subscription_unparseable", key=key)
            return None

    async def put(self, record: SubscriptionRecord) -> None:
        """Write a record, (re)setting its key TTL."""
        await self._execute(
            "set",
            self.key_for(record.id),
            record.model_dump_json(by_alias=True),
            ex=self._ttl_s,
        )

    async def get(self, subscription_id: str) -> SubscriptionRecord | None:
        key = self.key_for(subscription_id)
        return self._parse(key, await self._execute("get", key))

    async def delete(self, subscription_id: str) -> bool:
        """Delete a record. Returns whether the key existed."""
        removed = await self._execute("delete", self.key_for(subscription_id))
        return removed > 0

    async def _keys(self) -> list[str]:
        keys: dict[str, None] = {}
        cursor = 0
        while True:
            cursor, batch = await self._execute(
                "scan",
                cursor=cursor,
                match=f"{KEY_PREFIX}*",
                count=500,
            )
            # SCAN may return a key more than once
            keys.update(dict.fromkeys(batch))
            if cursor == 0:
                break
        return list(keys)

    async def list_all(self) -> list[SubscriptionRecord]:
        """Every parseable record, expired or not."""
        keys = await self._keys()
        if not keys:
            return []
        values = await self._execute("mget", keys)
        records = []
        for key, raw in zip(keys, values, strict=True):
            record = self._parse(key, raw)
            if record is not None:
                records.append(record)
        return records

    async def count(self) -> int:
        return len(await self._keys())
