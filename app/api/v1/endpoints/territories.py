from fastapi import APIRouter, Depends

from app.api.deps import get_assignment_engine
from app.schemas.territory import (
    TerritoryMatchOut,
    TerritoryMatchRequest,
    TerritoryMatchResponse,
)
from app.services.lead_assignment import LeadAssignmentEngine
from app.services.territory_assignment import (
    apply_territory_matches,
    auto_assign_leads_by_territories,
)

router = APIRouter(prefix="/territories", tags=["Territories"])


@router.post(
    "/match",
    response_model=TerritoryMatchResponse,
    response_model_exclude_none=True,
)
async def match_territories(
    request_body: TerritoryMatchRequest,
    engine: LeadAssignmentEngine = Depends(get_assignment_engine),
) -> TerritoryMatchResponse:
    """Find leads sitting inside a territory owned by someone else.

    With ``apply`` the updated leads are returned for the caller to save.
    """
    matches = auto_assign_leads_by_territories(
        request_body.leads, request_body.territories
    )
    updated = None
    if request_body.apply:
        updated = apply_territory_matches(
            request_body.leads, matches, now=engine.current_time()
        )

    return TerritoryMatchResponse(
        matches=[
            TerritoryMatchOut(
                lead_id=m.lead.id,
                territory_id=m.territory.id,
                user_id=m.territory.user_id,
                user_name=m.territory.user_name,
            )
            for m in matches
        ],
        leads=updated,
    )
