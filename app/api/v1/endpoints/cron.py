import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from app.api.deps import (
    AssignmentInputValidator,
    get_assignment_engine,
    get_cache_service,
    verify_cron_auth,
)
from app.core.cache import CacheService
from app.core.config import settings
from app.core.exceptions import CronRecentlyRunError
from app.core.rate_limit import limiter
from app.schemas.cron import CronRequest, CronResponse, DailyCronOptions
from app.services.daily_cron import format_cron_summary, run_daily_cron, should_run_cron
from app.services.lead_assignment import LeadAssignmentEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"])


@router.post(
    "",
    response_model=CronResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(verify_cron_auth)],
)
@limiter.limit(settings.CRON_RATE_LIMIT)
async def run_cron(
    request: Request,
    request_body: CronRequest,
    engine: LeadAssignmentEngine = Depends(get_assignment_engine),
    cache: CacheService = Depends(get_cache_service),
) -> CronResponse:
    """Run the daily stale-lead sweep over the posted snapshot.

    A real (non-dry) run is refused when the previous one finished less
    than ``CRON_MIN_HOURS_BETWEEN_RUNS`` ago, unless ``force`` is set.
    The run lock is claimed before any work starts and released if the
    run fails.
    """
    AssignmentInputValidator.validate_unique_ids(request_body.leads, "lead")
    AssignmentInputValidator.validate_unique_ids(request_body.users, "user")

    options = request_body.options
    now = engine.current_time()

    if not options.dry_run:
        if not options.force:
            last_run = await cache.get_last_cron_run()
            if not should_run_cron(last_run, settings.CRON_MIN_HOURS_BETWEEN_RUNS, now):
                raise CronRecentlyRunError(
                    f"Daily cron already ran at {last_run.isoformat()}"
                )
        # Two triggers can both pass the check above; only one takes the lock
        claimed = await cache.try_claim_cron_run(
            now, settings.CRON_MIN_HOURS_BETWEEN_RUNS * 3600, force=options.force
        )
        if not claimed:
            raise CronRecentlyRunError("Daily cron is already running or ran recently")

    try:
        run = run_daily_cron(
            request_body.leads,
            request_body.users,
            DailyCronOptions(
                stale_days=(
                    options.stale_days
                    if options.stale_days is not None
                    else settings.DEFAULT_STALE_DAYS
                ),
                max_distance=options.max_distance or settings.DEFAULT_MAX_DISTANCE_MILES,
                dry_run=options.dry_run,
                send_notifications=options.send_notifications,
            ),
            engine=engine,
            now=now,
        )
    except Exception:
        if not options.dry_run:
            await cache.release_cron_run()
        raise

    summary = format_cron_summary(run.result)
    logger.info("Daily cron job completed:\n%s", summary)

    if not options.dry_run:
        await cache.set_last_cron_run(now)

    return CronResponse(
        result=run.result,
        summary=summary,
        updated_leads=run.leads,
    )


@router.get("")
async def cron_info(
    action: Optional[str] = Query(None, description="'status' or 'trigger'"),
    cache: CacheService = Depends(get_cache_service),
) -> dict:
    """Report cron status or how to trigger it manually."""
    if action == "status":
        last_run = await cache.get_last_cron_run()
        return {
            "name": "Daily Cron Job",
            "schedule": "6:00 AM daily",
            "tasks": [
                f"Find stale leads ({settings.DEFAULT_STALE_DAYS}+ days without disposition)",
                "Reassign stale leads to different setters",
                "Generate performance stats",
                "Build summary notifications",
            ],
            "lastRun": last_run.isoformat() if last_run else None,
        }

    if action == "trigger":
        return {
            "message": "Use POST /api/v1/cron with leads and users to trigger manually",
            "example": {
                "leads": "[...leads from storage]",
                "users": "[...users from storage]",
                "options": {"staleDays": settings.DEFAULT_STALE_DAYS, "dryRun": True},
            },
        }

    return {
        "endpoints": {
            "GET /api/v1/cron?action=status": "Check cron job status",
            "GET /api/v1/cron?action=trigger": "Get trigger instructions",
            "POST /api/v1/cron": "Run cron job with leads/users data",
        },
    }
