import math
from datetime import datetime, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo

from app.core.config import settings
from app.core.constants import (
    CLUSTER_PLACEHOLDER_SCORE,
    KNOCKABILITY_BANDS,
    NO_SOLAR_DATA_SCORE,
    OFF_HOURS_SCORE,
    SOLAR_CATEGORY_SCORES,
    SOLAR_WEIGHT,
    TIME_OF_DAY_TIERS,
    UNKNOWN_CATEGORY_SCORE,
)
from app.schemas.common import ensure_utc
from app.schemas.knockability import KnockabilityScore
from app.schemas.lead import Lead


def local_hour(now: datetime, tz: Optional[str] = None) -> int:
    """Hour of *now* on the reps' wall clock (``settings.TIMEZONE`` by default)."""
    return ensure_utc(now).astimezone(ZoneInfo(tz or settings.TIMEZONE)).hour


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _solar_component(lead: Lead, reasons: List[str]) -> float:
    if lead.solar_score is not None:
        return (lead.solar_score / 100) * SOLAR_WEIGHT
    if lead.solar_category is not None:
        category = lead.solar_category.value
        reasons.append(f"{category} solar fit")
        return SOLAR_CATEGORY_SCORES.get(category, UNKNOWN_CATEGORY_SCORE)
    reasons.append("No solar data")
    return NO_SOLAR_DATA_SCORE


def _freshness_component(lead: Lead, now: datetime, reasons: List[str]) -> int:
    last_action = lead.dispositioned_at or lead.created_at
    if last_action is None:
        reasons.append("No activity date")
        return 5

    days = (now - last_action).days
    if days <= 2:
        reasons.append("Fresh lead")
        return 30
    elif days <= 7:
        reasons.append(f"{days} days old")
        return 20
    elif days <= 14:
        reasons.append("Needs follow-up")
        return 10
    else:
        reasons.append("Stale lead")
        return 5


def _time_component(hour: int, reasons: List[str]) -> int:
    for first, last, points, reason in TIME_OF_DAY_TIERS:
        if first <= hour <= last:
            reasons.append(reason)
            return points
    reasons.append("Outside peak hours")
    return OFF_HOURS_SCORE


def calculate_knockability_score(
    lead: Lead,
    current_hour: Optional[int] = None,
    now: Optional[datetime] = None,
) -> KnockabilityScore:
    """Score how worthwhile it is to knock on *lead* right now.

    Components (capped individually, summed, not re-normalised):
        - Solar fit        0-40
        - Freshness        0-30  (days since last disposition or creation)
        - Time of day      0-20  (local hour in ``settings.TIMEZONE``)
        - Clustering       fixed 5, no real clustering yet
    """
    now = ensure_utc(now) or datetime.now(timezone.utc)
    hour = local_hour(now) if current_hour is None else current_hour
    reasons: List[str] = []

    solar = _solar_component(lead, reasons)
    freshness = _freshness_component(lead, now, reasons)
    time_score = _time_component(hour, reasons)
    cluster = CLUSTER_PLACEHOLDER_SCORE
    reasons.append("Standard location")

    return KnockabilityScore(
        total=_round_half_up(solar + freshness + time_score + cluster),
        solar_score=_round_half_up(solar),
        freshness_score=freshness,
        time_score=time_score,
        cluster_score=cluster,
        reasons=reasons,
    )


def sort_by_knockability(
    leads: List[Lead],
    current_hour: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[Lead]:
    """Return a new list ordered by knockability, highest first.

    Ties keep their input order.
    """
    now = ensure_utc(now) or datetime.now(timezone.utc)
    hour = local_hour(now) if current_hour is None else current_hour
    totals = {
        id(lead): calculate_knockability_score(lead, hour, now).total for lead in leads
    }
    return sorted(leads, key=lambda lead: totals[id(lead)], reverse=True)


def _band(score: int):
    for floor, label, color in KNOCKABILITY_BANDS:
        if score >= floor:
            return label, color
    return KNOCKABILITY_BANDS[-1][1], KNOCKABILITY_BANDS[-1][2]


def get_knockability_label(score: int) -> str:
    return _band(score)[0]


def get_knockability_color(score: int) -> str:
    return _band(score)[1]
