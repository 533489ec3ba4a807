"""Territory lookup for map-pinned leads.

Polygons are drawn freehand on the map, so stored boundaries are often
"filled" zigzag scan patterns with many collinear or duplicate vertices
rather than clean outlines.  Strict ray casting misses points that sit
on or between those strokes, so a miss is re-checked against the
polygon's bounding box and its edges (~100 m tolerance).

Coordinates are treated as planar ``(lng, lat)`` pairs; distortion at
territory scale is negligible.  Overlapping territories are not
detected: the first match in input order wins.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from app.core.constants import (
    MIN_POLYGON_VERTICES,
    STATUS_CLAIMED,
    STATUS_UNCLAIMED,
    TERRITORY_EDGE_TOLERANCE_DEGREES,
)
from app.schemas.common import ensure_utc
from app.schemas.lead import Lead, Territory
from app.schemas.territory import TerritoryMatch

logger = logging.getLogger(__name__)

Vertex = Tuple[float, float]


def is_point_in_polygon(lat: float, lng: float, polygon: Sequence[Vertex]) -> bool:
    """Ray-casting containment test on ``(lat, lng)`` vertices.

    Raises ``ValueError`` on non-finite vertices.
    """
    inside = False
    j = len(polygon) - 1
    for i in range(len(polygon)):
        yi, xi = polygon[i]
        yj, xj = polygon[j]
        if not all(math.isfinite(v) for v in (xi, yi, xj, yj)):
            raise ValueError(f"non-finite vertex near index {i}")
        if (yi > lat) != (yj > lat):
            x_cross = (xj - xi) * (lat - yi) / (yj - yi) + xi
            if lng < x_cross:
                inside = not inside
        j = i
    return inside


def _bounding_box(polygon: Sequence[Vertex]) -> Optional[Tuple[float, float, float, float]]:
    """Return ``(min_lat, max_lat, min_lng, max_lng)`` over finite vertices."""
    finite = [(la, ln) for la, ln in polygon if math.isfinite(la) and math.isfinite(ln)]
    if not finite:
        return None
    lats = [la for la, _ in finite]
    lngs = [ln for _, ln in finite]
    return min(lats), max(lats), min(lngs), max(lngs)


def _in_bounding_box(lat: float, lng: float, polygon: Sequence[Vertex]) -> bool:
    box = _bounding_box(polygon)
    if box is None:
        return False
    min_lat, max_lat, min_lng, max_lng = box
    return min_lat <= lat <= max_lat and min_lng <= lng <= max_lng


def point_to_segment_distance(
    px: float, py: float, ax: float, ay: float, bx: float, by: float
) -> float:
    """Planar distance from point P to segment AB."""
    dx = bx - ax
    dy = by - ay
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(px - ax, py - ay)
    t = ((px - ax) * dx + (py - ay) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(px - (ax + t * dx), py - (ay + t * dy))


def _near_boundary(
    lat: float,
    lng: float,
    polygon: Sequence[Vertex],
    tolerance: float = TERRITORY_EDGE_TOLERANCE_DEGREES,
) -> bool:
    j = len(polygon) - 1
    for i in range(len(polygon)):
        a_lat, a_lng = polygon[j]
        b_lat, b_lng = polygon[i]
        if point_to_segment_distance(lng, lat, a_lng, a_lat, b_lng, b_lat) <= tolerance:
            return True
        j = i
    return False


def lead_in_territory(
    lead: Lead, territory: Territory, log: Optional[logging.Logger] = None
) -> bool:
    """Whether *lead* falls inside *territory*, using the lenient fallback."""
    log = log or logger
    polygon = territory.polygon
    if not lead.has_coordinates or len(polygon) < MIN_POLYGON_VERTICES:
        return False

    try:
        if is_point_in_polygon(lead.lat, lead.lng, polygon):
            return True
    except (ArithmeticError, ValueError):
        log.warning(
            "Malformed polygon for territory %s; using bounding box only",
            territory.id,
            exc_info=True,
        )
        return _in_bounding_box(lead.lat, lead.lng, polygon)

    if not _in_bounding_box(lead.lat, lead.lng, polygon):
        return False
    return _near_boundary(lead.lat, lead.lng, polygon)


def find_lead_territory(
    lead: Lead,
    territories: Sequence[Territory],
    log: Optional[logging.Logger] = None,
) -> Optional[Territory]:
    """Return the first territory containing *lead*, or ``None``.

    Territories with fewer than three vertices are skipped.
    """
    if not lead.has_coordinates:
        return None
    for territory in territories:
        if lead_in_territory(lead, territory, log):
            return territory
    return None


def auto_assign_leads_by_territories(
    leads: Sequence[Lead],
    territories: Sequence[Territory],
    log: Optional[logging.Logger] = None,
) -> List[TerritoryMatch]:
    """Match leads to territories whose owner is not already the assignee."""
    log = log or logger
    matches: List[TerritoryMatch] = []
    for lead in leads:
        territory = find_lead_territory(lead, territories, log)
        if territory is not None and lead.assigned_to != territory.user_id:
            matches.append(TerritoryMatch(lead=lead, territory=territory))

    log.info(
        "Territory matching: %d of %d lead(s) matched across %d territory(ies)",
        len(matches),
        len(leads),
        len(territories),
    )
    return matches


def apply_territory_matches(
    leads: Sequence[Lead],
    matches: Sequence[TerritoryMatch],
    now: Optional[datetime] = None,
) -> List[Lead]:
    """Return copies of *leads* handed to their matched territory owner.

    The owner becomes both assignee and claimer; unclaimed leads move to
    ``claimed`` so the status/claimer pairing stays consistent.
    """
    now = ensure_utc(now) or datetime.now(timezone.utc)
    by_lead: Dict[str, Territory] = {m.lead.id: m.territory for m in matches}

    updated: List[Lead] = []
    for lead in leads:
        territory = by_lead.get(lead.id)
        if territory is None:
            updated.append(lead)
            continue
        changes = {
            "assigned_to": territory.user_id,
            "assigned_to_name": territory.user_name,
            "assigned_at": now,
            "auto_assigned": False,
            "last_assigned_to": lead.owner_id,
            "claimed_by": territory.user_id,
            "claimed_at": now,
        }
        if lead.status == STATUS_UNCLAIMED:
            changes["status"] = STATUS_CLAIMED
        updated.append(lead.model_copy(update=changes))
    return updated
