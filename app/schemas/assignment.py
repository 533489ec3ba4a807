"""Auto-assignment options, results and API envelopes."""

from typing import Dict, List, Optional

from pydantic import Field

from app.core.constants import DEFAULT_MAX_DISTANCE_MILES, DEFAULT_STALE_DAYS
from app.schemas.common import ApiModel, AssignmentOrder, SolarCategory, SuccessResponse
from app.schemas.lead import Lead, User


# ---------------------------------------------------------------------------
# Engine options
# ---------------------------------------------------------------------------


class AutoAssignOptions(ApiModel):
    max_distance: float = Field(DEFAULT_MAX_DISTANCE_MILES, gt=0)
    only_categories: Optional[List[SolarCategory]] = None
    only_unclaimed: bool = True
    dry_run: bool = False
    order_by: AssignmentOrder = AssignmentOrder.input


class ReassignOptions(ApiModel):
    stale_days: int = Field(DEFAULT_STALE_DAYS, ge=0)
    max_distance: float = Field(DEFAULT_MAX_DISTANCE_MILES, gt=0)
    dry_run: bool = False


# ---------------------------------------------------------------------------
# Engine results
# ---------------------------------------------------------------------------


class AssignmentResult(ApiModel):
    """One lead-to-setter decision."""

    lead_id: str
    lead_name: str
    lead_address: str
    assigned_to_id: str
    assigned_to_name: str
    distance: float
    reason: str


class UserAssignmentBucket(ApiModel):
    count: int = 0
    leads: List[AssignmentResult] = Field(default_factory=list)


class AssignmentSummary(ApiModel):
    total_assigned: int = 0
    total_skipped: int = 0
    by_user: Dict[str, UserAssignmentBucket] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)


class AutoAssignResult(ApiModel):
    """Engine output; ``leads``/``users`` are ``None`` on a dry run."""

    leads: Optional[List[Lead]] = None
    users: Optional[List[User]] = None
    summary: AssignmentSummary


class UserAssignmentStats(ApiModel):
    total: int = 0
    claimed: int = 0
    dispositioned: int = 0
    stale: int = 0


# ---------------------------------------------------------------------------
# API envelopes
# ---------------------------------------------------------------------------


class AutoAssignRequestOptions(ApiModel):
    max_distance: Optional[float] = Field(None, gt=0)
    only_categories: Optional[List[SolarCategory]] = None
    reassign_stale: bool = False
    stale_days: Optional[int] = Field(None, ge=0)
    preview: bool = False
    order_by: AssignmentOrder = AssignmentOrder.input


class AutoAssignRequest(ApiModel):
    """Request body for POST /api/v1/autoassign."""

    leads: List[Lead]
    users: List[User]
    options: AutoAssignRequestOptions = Field(default_factory=AutoAssignRequestOptions)


class StaleLeadInfo(ApiModel):
    id: str
    name: str
    address: str
    days_stale: int


class StaleLeadsBlock(ApiModel):
    count: int = 0
    leads: List[StaleLeadInfo] = Field(default_factory=list)


class AutoAssignResponse(SuccessResponse):
    leads: Optional[List[Lead]] = None
    users: Optional[List[User]] = None
    summary: AssignmentSummary
    stale_leads: Optional[StaleLeadsBlock] = None
