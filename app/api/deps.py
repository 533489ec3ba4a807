"""API-layer dependency functions.

Re-exports all dependency factories from ``app.dependencies`` so that
endpoint modules only need to import from ``app.api.deps``.
"""

from app.dependencies import (
    # Validation
    AssignmentInputValidator,
    # Service factories
    get_assignment_engine,
    get_cache_service,
    # Redis
    get_redis_client,
    # Guards
    verify_cron_auth,
)

__all__ = [
    "AssignmentInputValidator",
    "get_assignment_engine",
    "get_cache_service",
    "get_redis_client",
    "verify_cron_auth",
]
