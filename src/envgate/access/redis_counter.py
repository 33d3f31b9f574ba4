"""Redis-backed access counter.

Hits are bucketed per minute inside one hash per subdomain:
``{prefix}:{subdomain}`` → ``{minute_epoch: hits}``. The proxy in front of
the environments calls ``record`` for each request; the purge engine asks
``count`` how busy a subdomain has been over a window.

Design:
  - Fully async using ``redis.asyncio``.
  - The key TTL is refreshed on every write, so idle subdomains disappear.
  - Buckets older than the retention are dropped lazily while counting.
"""
from __future__ import annotations

import logging
import time
from datetime import timedelta
from typing import Callable, Optional
from urllib.parse import urlparse

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from envgate.exceptions import AccessCounterError

from .base_counter import BaseAccessCounter

logger = logging.getLogger("envgate.access.redis")

BUCKET_SECONDS = 60


class RedisAccessCounter(BaseAccessCounter):
    """Per-minute access counts stored in Redis.

    Parameters:
        redis_url: Redis connection URL (``redis://host:port/db``).
        key_prefix: Prefix for all Redis keys (namespacing).
        retention: Seconds of history kept per subdomain.
        client: Pre-built async client (skips ``connect``).
        clock: Wall clock in epoch seconds.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        key_prefix: str = "envgate_access",
        retention: int = 86400 * 2,
        client: Optional[aioredis.Redis] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._redis_url = redis_url
        self._key_prefix = key_prefix
        self._retention = retention
        self._client = client
        self._clock = clock

    # -- Lifecycle ------------------------------------------------------------

    async def connect(self) -> None:
        """Initialize the Redis connection pool."""
        if self._client is not None:
            return
        self._client = aioredis.from_url(
            self._redis_url,
            decode_responses=True,
            max_connections=20,
        )
        # Redact credentials from URL before logging
        parsed = urlparse(self._redis_url)
        safe_url = f"{parsed.scheme}://{parsed.hostname}:{parsed.port}/{parsed.path.lstrip('/')}"
        logger.info("Access counter using %s", safe_url)

    async def disconnect(self) -> None:
        """Close the Redis connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Access counter disconnected")

    def _ensure_connected(self) -> aioredis.Redis:
        if self._client is None:
            raise AccessCounterError(
                "RedisAccessCounter not connected. Call await connect() first."
            )
        return self._client

    # -- Key helpers ----------------------------------------------------------

    def _key(self, subdomain: str) -> str:
        return f"{self._key_prefix}:{subdomain}"

    def _bucket(self, epoch: float) -> int:
        return int(epoch) // BUCKET_SECONDS * BUCKET_SECONDS

    # -- Operations -----------------------------------------------------------

    async def record(self, subdomain: str, hits: int = 1) -> None:
        """Add ``hits`` to the current minute's bucket."""
        client = self._ensure_connected()
        key = self._key(subdomain)
        try:
            pipe = client.pipeline(transaction=True)
            pipe.hincrby(key, str(self._bucket(self._clock())), hits)
            pipe.expire(key, self._retention)
            await pipe.execute()
        except RedisError as exc:
            raise AccessCounterError(f"record access for {subdomain} failed: {exc}") from exc

    async def count(self, subdomain: str, window: timedelta) -> int:
        client = self._ensure_connected()
        key = self._key(subdomain)
        now = self._clock()
        start = self._bucket(now - window.total_seconds())
        expired_before = self._bucket(now - self._retention)

        try:
            buckets = await client.hgetall(key)
        except RedisError as exc:
            raise AccessCounterError(f"access count for {subdomain} failed: {exc}") from exc

        total = 0
        stale: list[str] = []
        for field, value in buckets.items():
            try:
                bucket = int(field)
                hits = int(value)
            except ValueError:
                logger.warning("Ignoring malformed access bucket %s[%s]", key, field)
                continue
            if bucket < expired_before:
                stale.append(field)
            elif bucket >= start:
                total += hits

        if stale:
            try:
                await client.hdel(key, *stale)
            except RedisError as exc:
                logger.warning("Pruning access buckets for %s failed: %s", subdomain, exc)
        return total
