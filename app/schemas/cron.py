from datetime import datetime
from typing import List, Optional

from pydantic import Field

from app.core.constants import DEFAULT_MAX_DISTANCE_MILES, DEFAULT_STALE_DAYS
from app.schemas.common import ApiModel, SuccessResponse
from app.schemas.lead import Lead, User


class DailyCronOptions(ApiModel):
    stale_days: int = Field(DEFAULT_STALE_DAYS, ge=0)
    max_distance: float = Field(DEFAULT_MAX_DISTANCE_MILES, gt=0)
    dry_run: bool = False
    send_notifications: bool = True


class StaleLeadDetail(ApiModel):
    lead_id: str
    lead_name: str
    from_setter: str
    to_setter: str
    days_stale: int


class StaleLeadsReport(ApiModel):
    count: int = 0
    reassigned: int = 0
    details: List[StaleLeadDetail] = Field(default_factory=list)


class UserStatsEntry(ApiModel):
    user_id: str
    user_name: str
    total_leads: int
    claimed: int
    dispositioned: int
    stale: int


class DailyCronResult(ApiModel):
    timestamp: datetime
    stale_leads: StaleLeadsReport = Field(default_factory=StaleLeadsReport)
    user_stats: List[UserStatsEntry] = Field(default_factory=list)
    notifications: List[str] = Field(default_factory=list)


class DailyCronRun(ApiModel):
    """Cron output plus the lead list the caller should persist.

    ``leads`` is ``None`` on a dry run.
    """

    result: DailyCronResult
    leads: Optional[List[Lead]] = None


# ---------------------------------------------------------------------------
# API envelopes
# ---------------------------------------------------------------------------


class CronRequestOptions(ApiModel):
    stale_days: Optional[int] = Field(None, ge=0)
    max_distance: Optional[float] = Field(None, gt=0)
    dry_run: bool = False
    send_notifications: bool = True
    force: bool = False


class CronRequest(ApiModel):
    """Request body for POST /api/v1/cron."""

    leads: List[Lead]
    users: List[User]
    options: CronRequestOptions = Field(default_factory=CronRequestOptions)


class CronResponse(SuccessResponse):
    result: Optional[DailyCronResult] = None
    summary: Optional[str] = None
    updated_leads: Optional[List[Lead]] = None
