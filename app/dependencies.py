import logging
from typing import Any, Iterable, Optional, Set

from fastapi import Depends, Header, Request
from redis.asyncio import Redis

from app.core.cache import CacheService
from app.core.config import settings
from app.core.exceptions import CronUnauthorizedError, InvalidAssignmentInputError
from app.services.lead_assignment import LeadAssignmentEngine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Redis client factory
# ---------------------------------------------------------------------------


async def get_redis_client(request: Request) -> Optional[Redis]:
    """Return the app's shared Redis client, or ``None`` if unreachable.

    The client (and its connection pool) is created and closed by the
    app lifespan; this only checks it is answering.
    """
    client: Optional[Redis] = getattr(request.app.state, "redis", None)
    if client is None:
        return None
    try:
        await client.ping()
        return client
    except Exception:
        logger.warning("Redis unavailable, cron run marker disabled for this request")
        return None


async def get_cache_service(
    redis_client: Optional[Redis] = Depends(get_redis_client),
) -> CacheService:
    """Build a :class:`CacheService` backed by the shared Redis client."""
    return CacheService(redis_client=redis_client)


# ---------------------------------------------------------------------------
# Service factory functions
# ---------------------------------------------------------------------------


async def get_assignment_engine() -> LeadAssignmentEngine:
    """Build the assignment engine; tests override this to inject a clock."""
    return LeadAssignmentEngine()


# ---------------------------------------------------------------------------
# Cron trigger guard
# ---------------------------------------------------------------------------


async def verify_cron_auth(
    authorization: Optional[str] = Header(None),
    x_vercel_cron: Optional[str] = Header(None),
) -> None:
    """Allow the scheduled trigger through.

    With no ``CRON_SECRET`` configured every caller is allowed (dev
    mode).  Otherwise the request needs ``Authorization: Bearer <secret>``
    or the hosting platform's cron header.
    """
    secret = settings.CRON_SECRET
    if not secret:
        return
    if authorization == f"Bearer {secret}":
        return
    if x_vercel_cron:
        return
    raise CronUnauthorizedError()


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class AssignmentInputValidator:
    """Checks the engine relies on but pydantic cannot express per-record."""

    @staticmethod
    def validate_unique_ids(records: Iterable[Any], kind: str) -> None:
        """Reject snapshots where two records share an id.

        Updated leads are matched back to their originals by id, so
        duplicates would make the returned list ambiguous.
        """
        seen: Set[str] = set()
        for record in records:
            if record.id in seen:
                raise InvalidAssignmentInputError(f"Duplicate {kind} id: {record.id}")
            seen.add(record.id)
