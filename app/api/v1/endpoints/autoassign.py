import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from app.api.deps import AssignmentInputValidator, get_assignment_engine
from app.core.config import settings
from app.core.rate_limit import limiter
from app.schemas.assignment import (
    AutoAssignOptions,
    AutoAssignRequest,
    AutoAssignResponse,
    ReassignOptions,
    StaleLeadInfo,
    StaleLeadsBlock,
)
from app.services.lead_assignment import LeadAssignmentEngine, days_stale

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/autoassign", tags=["Auto-Assignment"])


@router.post(
    "",
    response_model=AutoAssignResponse,
    response_model_exclude_none=True,
)
@limiter.limit(settings.AUTOASSIGN_RATE_LIMIT)
async def auto_assign(
    request: Request,
    request_body: AutoAssignRequest,
    engine: LeadAssignmentEngine = Depends(get_assignment_engine),
) -> AutoAssignResponse:
    """Distribute leads to setters, or move stale leads to new setters.

    With ``options.preview`` nothing is returned for the caller to save,
    only the summary of what would happen.
    """
    AssignmentInputValidator.validate_unique_ids(request_body.leads, "lead")
    AssignmentInputValidator.validate_unique_ids(request_body.users, "user")

    options = request_body.options
    max_distance = options.max_distance or settings.DEFAULT_MAX_DISTANCE_MILES
    stale_days = (
        options.stale_days
        if options.stale_days is not None
        else settings.DEFAULT_STALE_DAYS
    )
    now = engine.current_time()

    logger.info(
        "Auto-assign request: %d lead(s), %d user(s), %d with coordinates",
        len(request_body.leads),
        len(request_body.users),
        sum(1 for lead in request_body.leads if lead.has_coordinates),
    )

    stale = engine.get_stale_leads(request_body.leads, stale_days, now)
    stale_block = StaleLeadsBlock(
        count=len(stale),
        leads=[
            StaleLeadInfo(
                id=lead.id,
                name=lead.name,
                address=lead.display_address,
                days_stale=days_stale(lead, now),
            )
            for lead in stale
        ],
    )

    if options.reassign_stale and stale:
        result = engine.reassign_stale_leads(
            request_body.leads,
            request_body.users,
            ReassignOptions(
                stale_days=stale_days,
                max_distance=max_distance,
                dry_run=options.preview,
            ),
            now=now,
        )
    else:
        result = engine.auto_assign_leads(
            request_body.leads,
            request_body.users,
            AutoAssignOptions(
                max_distance=max_distance,
                only_categories=options.only_categories,
                only_unclaimed=True,
                dry_run=options.preview,
                order_by=options.order_by,
            ),
            now=now,
        )

    return AutoAssignResponse(
        leads=result.leads,
        users=result.users,
        summary=result.summary,
        stale_leads=stale_block,
    )


@router.get("")
async def auto_assign_info(
    action: Optional[str] = Query(None, description="Pass 'info' for API docs"),
) -> dict:
    """Describe the auto-assignment endpoint."""
    if action == "info":
        return {
            "name": "Auto-Assignment API",
            "version": "1.0.0",
            "endpoints": {
                "POST /api/v1/autoassign": {
                    "description": "Auto-assign leads to setters",
                    "body": {
                        "leads": "Lead[] - All leads from storage",
                        "users": "User[] - All setters",
                        "options": {
                            "maxDistance": "number (default: 50) - Max miles from setter home",
                            "onlyCategories": "['solid', 'good', 'great'] - Filter by solar category",
                            "reassignStale": "boolean - Reassign stale leads instead",
                            "staleDays": "number (default: 5) - Days until lead is stale",
                            "preview": "boolean - Preview only, no changes",
                            "orderBy": "'input' | 'knockability' - Lead processing order",
                        },
                    },
                },
            },
        }
    return {
        "message": "Use POST to trigger auto-assignment, or GET ?action=info for API docs",
    }
