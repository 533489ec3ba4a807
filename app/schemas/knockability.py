from typing import List, Optional

from pydantic import Field

from app.schemas.common import ApiModel, SuccessResponse
from app.schemas.lead import Lead


class KnockabilityScore(ApiModel):
    total: int = Field(..., ge=0, le=100)
    solar_score: int
    freshness_score: int
    time_score: int
    cluster_score: int
    reasons: List[str] = Field(default_factory=list)


class KnockabilityRequest(ApiModel):
    """Request body for POST /api/v1/leads/knockability."""

    leads: List[Lead]
    current_hour: Optional[int] = Field(None, ge=0, le=23)


class RankedLead(ApiModel):
    lead: Lead
    score: KnockabilityScore
    label: str
    color: str


class KnockabilityResponse(SuccessResponse):
    current_hour: int
    leads: List[RankedLead] = Field(default_factory=list)
