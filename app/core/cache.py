import logging
from datetime import datetime, timezone
from typing import Optional

from redis.asyncio import Redis

from app.core.constants import CRON_LAST_RUN_CACHE_KEY, CRON_RUN_LOCK_CACHE_KEY

logger = logging.getLogger(__name__)


class CacheService:
    """Thin wrapper around an async Redis client.

    If *redis_client* is ``None`` (Redis unavailable), every operation
    degrades to a no-op and callers never need to check for ``None``.
    """

    def __init__(self, redis_client: Optional[Redis] = None) -> None:
        self._redis: Optional[Redis] = redis_client

    # ------------------------------------------------------------------
    # Core get / set / delete
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Optional[str]:
        """Return the raw string value for *key*, or ``None``."""
        if self._redis is None:
            return None
        try:
            return await self._redis.get(key)
        except Exception:
            logger.warning("Redis GET failed for key %s", key)
            return None

    async def set(self, key: str, value: str) -> None:
        """Store a raw string value."""
        if self._redis is None:
            return
        try:
            await self._redis.set(key, value)
        except Exception:
            logger.warning("Redis SET failed for key %s", key)

    async def delete(self, key: str) -> None:
        """Remove *key* from the cache (best-effort)."""
        if self._redis is None:
            return
        try:
            await self._redis.delete(key)
        except Exception:
            logger.warning("Redis DELETE failed for key %s", key)

    # ------------------------------------------------------------------
    # Cron run lock and last-run marker
    # ------------------------------------------------------------------

    async def get_last_cron_run(self) -> Optional[datetime]:
        """Return the time of the last committed daily cron run, if known."""
        raw = await self.get(CRON_LAST_RUN_CACHE_KEY)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            value = datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("Invalid timestamp in cache key %s", CRON_LAST_RUN_CACHE_KEY)
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

    async def set_last_cron_run(self, when: datetime) -> None:
        await self.set(CRON_LAST_RUN_CACHE_KEY, when.isoformat())

    async def try_claim_cron_run(
        self, when: datetime, ttl: int, force: bool = False
    ) -> bool:
        """Atomically take the daily run lock for *ttl* seconds.

        Returns ``False`` when another run already holds it.  With
        *force* the lock is overwritten.  Without Redis (or on a Redis
        error) the claim always succeeds so the run is never blocked.
        """
        if self._redis is None:
            return True
        try:
            claimed = await self._redis.set(
                CRON_RUN_LOCK_CACHE_KEY, when.isoformat(), nx=not force, ex=ttl
            )
        except Exception:
            logger.warning("Redis SET failed for key %s", CRON_RUN_LOCK_CACHE_KEY)
            return True
        return bool(claimed)

    async def release_cron_run(self) -> None:
        await self.delete(CRON_RUN_LOCK_CACHE_KEY)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def is_available(self) -> bool:
        """Return ``True`` if a Redis client is configured."""
        return self._redis is not None
