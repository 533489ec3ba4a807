"""Lead, setter and territory records exchanged with the web client."""

from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import Field, field_validator

from app.schemas.common import CamelModel, LeadStatus, SolarCategory, ensure_utc


class Lead(CamelModel):
    """A sales prospect pinned on the map."""

    id: str
    name: str = ""
    address: str = ""
    city: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    status: str = LeadStatus.unclaimed.value

    # Ownership
    claimed_by: Optional[str] = None
    assigned_to: Optional[str] = None
    assigned_to_name: Optional[str] = None
    last_assigned_to: Optional[str] = None
    auto_assigned: bool = False

    # Solar data
    solar_score: Optional[float] = Field(None, ge=0, le=100)
    solar_category: Optional[SolarCategory] = None

    # Timestamps
    created_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    dispositioned_at: Optional[datetime] = None

    @field_validator(
        "created_at", "claimed_at", "assigned_at", "dispositioned_at", mode="after"
    )
    @classmethod
    def _timestamps_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    @property
    def owner_id(self) -> Optional[str]:
        """The user currently responsible for the lead."""
        return self.claimed_by or self.assigned_to

    @property
    def display_address(self) -> str:
        return f"{self.address}, {self.city}"


class User(CamelModel):
    """A setter who can receive leads."""

    id: str
    name: str = ""
    home_lat: Optional[float] = None
    home_lng: Optional[float] = None
    is_active: bool = True
    assigned_lead_count: int = 0

    @property
    def has_home_location(self) -> bool:
        return self.home_lat is not None and self.home_lng is not None


class Territory(CamelModel):
    """A manager-drawn polygon owned by a single user.

    ``polygon`` holds ``(lat, lng)`` vertices and is implicitly closed.
    """

    id: str
    user_id: str
    user_name: str = ""
    polygon: List[Tuple[float, float]] = Field(default_factory=list)
    lead_ids: List[str] = Field(default_factory=list)
