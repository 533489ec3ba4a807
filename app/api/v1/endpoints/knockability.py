from fastapi import APIRouter, Depends

from app.api.deps import get_assignment_engine
from app.schemas.knockability import (
    KnockabilityRequest,
    KnockabilityResponse,
    RankedLead,
)
from app.services.knockability import (
    calculate_knockability_score,
    get_knockability_color,
    get_knockability_label,
    local_hour,
    sort_by_knockability,
)
from app.services.lead_assignment import LeadAssignmentEngine

router = APIRouter(prefix="/leads", tags=["Leads"])


@router.post(
    "/knockability",
    response_model=KnockabilityResponse,
    response_model_exclude_none=True,
)
async def rank_leads(
    request_body: KnockabilityRequest,
    engine: LeadAssignmentEngine = Depends(get_assignment_engine),
) -> KnockabilityResponse:
    """Return the posted leads ordered by knockability, best first."""
    now = engine.current_time()
    hour = (
        local_hour(now)
        if request_body.current_hour is None
        else request_body.current_hour
    )

    ranked = []
    for lead in sort_by_knockability(request_body.leads, hour, now):
        score = calculate_knockability_score(lead, hour, now)
        ranked.append(
            RankedLead(
                lead=lead,
                score=score,
                label=get_knockability_label(score.total),
                color=get_knockability_color(score.total),
            )
        )
    return KnockabilityResponse(current_hour=hour, leads=ranked)
