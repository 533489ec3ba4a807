from typing import List, Optional

from pydantic import Field

from app.schemas.common import ApiModel, SuccessResponse
from app.schemas.lead import Lead, Territory


class TerritoryMatch(ApiModel):
    """A lead that falls inside a territory owned by someone else."""

    lead: Lead
    territory: Territory


class TerritoryMatchRequest(ApiModel):
    """Request body for POST /api/v1/territories/match."""

    leads: List[Lead]
    territories: List[Territory]
    apply: bool = False


class TerritoryMatchOut(ApiModel):
    lead_id: str
    territory_id: str
    user_id: str
    user_name: str


class TerritoryMatchResponse(SuccessResponse):
    matches: List[TerritoryMatchOut] = Field(default_factory=list)
    leads: Optional[List[Lead]] = None
