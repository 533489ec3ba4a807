from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class LeadStatus(str, Enum):
    """Disposition ids the core knows about.

    Lead status is a dynamic string (dispositions are configurable), so
    schemas store it as ``str`` and only compare against these values.
    """

    unclaimed = "unclaimed"
    claimed = "claimed"
    not_home = "not-home"
    interested = "interested"
    not_interested = "not-interested"
    appointment = "appointment"
    sale = "sale"
    go_back = "go-back"


class SolarCategory(str, Enum):
    poor = "poor"
    solid = "solid"
    good = "good"
    great = "great"


class AssignmentOrder(str, Enum):
    """Order in which eligible leads are handed to the allocator."""

    input = "input"
    knockability = "knockability"


class CamelModel(BaseModel):
    """Base for records exchanged with the web client.

    Attributes are snake_case, JSON keys camelCase; either spelling is
    accepted on input and unknown keys are carried through untouched.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class ApiModel(BaseModel):
    """Base for request/response envelopes (camelCase, no extras)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC so they compare with aware ones."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SuccessResponse(ApiModel):
    """Generic success response base."""

    success: bool = True
