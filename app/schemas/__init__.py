"""Pydantic schemas package; re-exports for convenience."""

# Common enums
from app.schemas.common import (
    LeadStatus as LeadStatus,
    SolarCategory as SolarCategory,
    AssignmentOrder as AssignmentOrder,
    SuccessResponse as SuccessResponse,
)

# Records
from app.schemas.lead import (
    Lead as Lead,
    User as User,
    Territory as Territory,
)
