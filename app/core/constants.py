from typing import Dict, FrozenSet, List, Tuple

from app.schemas.common import LeadStatus, SolarCategory

STATUS_UNCLAIMED: str = LeadStatus.unclaimed.value
STATUS_CLAIMED: str = LeadStatus.claimed.value

# Category assumed for filtering when a lead has none
DEFAULT_FILTER_CATEGORY: str = SolarCategory.solid.value

# Excluded from auto-assignment unless named in only_categories
EXCLUDED_BY_DEFAULT_CATEGORIES: FrozenSet[str] = frozenset({SolarCategory.poor.value})

EARTH_RADIUS_MILES: float = 3959.0

DEFAULT_MAX_DISTANCE_MILES: float = 50
DEFAULT_STALE_DAYS: int = 5

# ~100 m; tolerance for the territory edge-proximity fallback
TERRITORY_EDGE_TOLERANCE_DEGREES: float = 0.001

MIN_POLYGON_VERTICES: int = 3

# ---------------------------------------------------------------------------
# Knockability
# ---------------------------------------------------------------------------

SOLAR_WEIGHT: int = 40

SOLAR_CATEGORY_SCORES: Dict[str, int] = {
    "great": 40,
    "good": 30,
    "solid": 20,
    "poor": 5,
}
UNKNOWN_CATEGORY_SCORE: int = 10
NO_SOLAR_DATA_SCORE: int = 20

# (first hour, last hour, points, reason)
TIME_OF_DAY_TIERS: List[Tuple[int, int, int, str]] = [
    (9, 12, 20, "Morning (best time)"),
    (13, 17, 15, "Afternoon"),
    (18, 20, 10, "Evening"),
]
OFF_HOURS_SCORE: int = 5

# Placeholder until real clustering exists
CLUSTER_PLACEHOLDER_SCORE: int = 5

# (min score, label, color)
KNOCKABILITY_BANDS: List[Tuple[int, str, str]] = [
    (80, "Hot", "#10B981"),
    (60, "Good", "#3B82F6"),
    (40, "Fair", "#F59E0B"),
    (0, "Cold", "#EF4444"),
]

# ---------------------------------------------------------------------------
# Daily cron
# ---------------------------------------------------------------------------

OVERLOADED_SETTER_THRESHOLD: int = 20
TOP_PERFORMER_MIN_DISPOSITIONS: int = 5
TOP_PERFORMER_COUNT: int = 3
CRON_SUMMARY_DETAIL_LIMIT: int = 5
CRON_LAST_RUN_CACHE_KEY: str = "cron:daily:last_run"
# Held from the start of a run until CRON_MIN_HOURS_BETWEEN_RUNS expires
CRON_RUN_LOCK_CACHE_KEY: str = "cron:daily:lock"
