import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from app.core.constants import (
    DEFAULT_FILTER_CATEGORY,
    DEFAULT_STALE_DAYS,
    EXCLUDED_BY_DEFAULT_CATEGORIES,
    STATUS_CLAIMED,
    STATUS_UNCLAIMED,
)
from app.schemas.assignment import (
    AssignmentResult,
    AssignmentSummary,
    AutoAssignOptions,
    AutoAssignResult,
    ReassignOptions,
    UserAssignmentBucket,
    UserAssignmentStats,
)
from app.schemas.common import AssignmentOrder, ensure_utc
from app.schemas.lead import Lead, User
from app.services.geo import distance_miles
from app.services.knockability import sort_by_knockability

logger = logging.getLogger(__name__)

_AUTO_ASSIGN_REASON = "Best match by workload balance, then distance"
_REASSIGN_REASON = "Stale lead reassignment"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def days_stale(lead: Lead, now: datetime) -> int:
    """Whole days since the lead was assigned (or claimed); 0 if never."""
    since = lead.assigned_at or lead.claimed_at
    if since is None:
        return 0
    return (now - since).days


class LeadAssignmentEngine:
    """Greedy allocator that hands map-pinned leads to nearby setters.

    For each eligible lead every in-range setter is a candidate; the one
    with the lowest *running* workload wins and distance only breaks
    ties.  Workloads start from the number of undispositioned leads a
    setter already owns and are bumped immediately after each pick, so
    the outcome depends on the order leads are processed in.

    The engine never mutates its inputs.  Updated leads are returned as
    new pydantic copies and callers persist them; a dry run returns the
    summary only.

    Parameters:
        log: Any ``logging.Logger``-compatible object.  Defaults to
            this module's logger.
        clock: Zero-argument callable returning an aware ``datetime``;
            used for ``assigned_at``/``claimed_at`` and stale cutoffs.
    """

    def __init__(
        self,
        log: Optional[logging.Logger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._log = log or logger
        self._clock = clock or _utcnow

    def _now(self, now: Optional[datetime] = None) -> datetime:
        return ensure_utc(now) or ensure_utc(self._clock())

    def current_time(self) -> datetime:
        """Current reading of the engine clock."""
        return self._now()

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    @staticmethod
    def _eligible_setters(users: Iterable[User]) -> List[User]:
        return [u for u in users if u.is_active is not False and u.has_home_location]

    @staticmethod
    def _is_assignable(lead: Lead, options: AutoAssignOptions) -> bool:
        category = (
            lead.solar_category.value if lead.solar_category else DEFAULT_FILTER_CATEGORY
        )
        if options.only_categories is not None:
            if category not in {c.value for c in options.only_categories}:
                return False
        elif category in EXCLUDED_BY_DEFAULT_CATEGORIES:
            return False

        if options.only_unclaimed and lead.status != STATUS_UNCLAIMED:
            return False
        if lead.assigned_to:
            return False
        return lead.has_coordinates

    # ------------------------------------------------------------------
    # Allocation helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _current_workloads(leads: Iterable[Lead], users: Iterable[User]) -> Dict[str, int]:
        """Undispositioned leads owned by each user, recomputed from scratch."""
        workloads = {u.id: 0 for u in users}
        for lead in leads:
            owner = lead.owner_id
            if owner in workloads and lead.dispositioned_at is None:
                workloads[owner] += 1
        return workloads

    @staticmethod
    def _pick_setter(
        lead: Lead,
        setters: Sequence[User],
        workloads: Dict[str, int],
        max_distance: float,
        exclude: Set[str],
    ) -> Optional[Tuple[User, float]]:
        """Lowest workload wins; ties go to the closest, then input order."""
        best: Optional[Tuple[int, float, int]] = None
        best_setter: Optional[User] = None
        for index, setter in enumerate(setters):
            if setter.id in exclude:
                continue
            distance = distance_miles(lead.lat, lead.lng, setter.home_lat, setter.home_lng)
            if not distance <= max_distance:
                continue
            key = (workloads.get(setter.id, 0), distance, index)
            if best is None or key < best:
                best = key
                best_setter = setter
        if best_setter is None:
            return None
        return best_setter, best[1]

    @staticmethod
    def _summarise(
        results: List[AssignmentResult], skipped: int, errors: List[str]
    ) -> AssignmentSummary:
        by_user: Dict[str, UserAssignmentBucket] = {}
        for result in results:
            bucket = by_user.setdefault(result.assigned_to_id, UserAssignmentBucket())
            bucket.count += 1
            bucket.leads.append(result)
        return AssignmentSummary(
            total_assigned=len(results),
            total_skipped=skipped,
            by_user=by_user,
            errors=errors,
        )

    @staticmethod
    def _find_stale(
        leads: Iterable[Lead], stale_days: int, now: datetime
    ) -> List[Lead]:
        cutoff = now - timedelta(days=stale_days)
        stale = []
        for lead in leads:
            if lead.status == STATUS_UNCLAIMED or lead.dispositioned_at is not None:
                continue
            since = lead.assigned_at or lead.claimed_at
            if since is not None and since < cutoff:
                stale.append(lead)
        return stale

    def _recount_users(self, users: Sequence[User], leads: Sequence[Lead]) -> List[User]:
        workloads = self._current_workloads(leads, users)
        return [
            u.model_copy(update={"assigned_lead_count": workloads[u.id]}) for u in users
        ]

    @staticmethod
    def _merge(leads: Sequence[Lead], updates: Dict[str, Lead]) -> List[Lead]:
        return [updates.get(lead.id, lead) for lead in leads]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def auto_assign_leads(
        self,
        leads: Sequence[Lead],
        users: Sequence[User],
        options: Optional[AutoAssignOptions] = None,
        now: Optional[datetime] = None,
    ) -> AutoAssignResult:
        """Distribute unassigned leads across active setters.

        Leads without coordinates, already-assigned leads and (unless
        listed in ``only_categories``) ``poor`` solar leads are not
        considered.  A lead with no setter inside ``max_distance`` is
        skipped, never an error.
        """
        options = options or AutoAssignOptions()
        now = self._now(now)
        started = time.perf_counter()

        self._log.info(
            "Starting auto-assignment: %d lead(s), %d user(s), max_distance=%s, dry_run=%s",
            len(leads),
            len(users),
            options.max_distance,
            options.dry_run,
        )

        assignable = [lead for lead in leads if self._is_assignable(lead, options)]
        if options.order_by == AssignmentOrder.knockability:
            assignable = sort_by_knockability(assignable, now=now)
        setters = self._eligible_setters(users)

        self._log.info(
            "%d lead(s) eligible, %d active setter(s) with locations",
            len(assignable),
            len(setters),
        )

        results: List[AssignmentResult] = []
        errors: List[str] = []
        skipped = 0
        updates: Dict[str, Lead] = {}

        if not setters:
            if assignable:
                self._log.warning("No active setters found - cannot assign")
                errors.append("No active setters with home locations")
                skipped = len(assignable)
        else:
            workloads = self._current_workloads(leads, setters)
            for lead in assignable:
                pick = self._pick_setter(
                    lead, setters, workloads, options.max_distance, exclude=set()
                )
                if pick is None:
                    skipped += 1
                    errors.append(
                        f"No setter within {options.max_distance:g}mi of {lead.address}"
                    )
                    continue

                setter, distance = pick
                workloads[setter.id] += 1
                results.append(
                    AssignmentResult(
                        lead_id=lead.id,
                        lead_name=lead.name,
                        lead_address=lead.display_address,
                        assigned_to_id=setter.id,
                        assigned_to_name=setter.name,
                        distance=distance,
                        reason=_AUTO_ASSIGN_REASON,
                    )
                )
                updates[lead.id] = lead.model_copy(
                    update={
                        "assigned_to": setter.id,
                        "assigned_to_name": setter.name,
                        "assigned_at": now,
                        "auto_assigned": True,
                        "status": STATUS_CLAIMED,
                        "claimed_by": setter.id,
                        "claimed_at": now,
                    }
                )

        summary = self._summarise(results, skipped, errors)
        self._log.info(
            "Auto-assignment complete in %.1fms: assigned=%d skipped=%d setters=%d",
            (time.perf_counter() - started) * 1000,
            summary.total_assigned,
            summary.total_skipped,
            len(summary.by_user),
        )

        if options.dry_run:
            return AutoAssignResult(summary=summary)
        final_leads = self._merge(leads, updates)
        return AutoAssignResult(
            leads=final_leads,
            users=self._recount_users(users, final_leads),
            summary=summary,
        )

    def get_stale_leads(
        self,
        leads: Sequence[Lead],
        stale_days: int = DEFAULT_STALE_DAYS,
        now: Optional[datetime] = None,
    ) -> List[Lead]:
        """Leads claimed or assigned more than *stale_days* ago and never dispositioned.

        Any ``dispositioned_at`` value takes the lead out, whatever its age.
        """
        stale = self._find_stale(leads, stale_days, self._now(now))
        self._log.info(
            "Found %d stale lead(s) of %d (threshold=%d days)",
            len(stale),
            len(leads),
            stale_days,
        )
        return stale

    def reassign_stale_leads(
        self,
        leads: Sequence[Lead],
        users: Sequence[User],
        options: Optional[ReassignOptions] = None,
        now: Optional[datetime] = None,
    ) -> AutoAssignResult:
        """Move stale leads to a different setter.

        Runs the same greedy loop as :meth:`auto_assign_leads` over the
        stale leads only, never handing a lead back to its current owner.
        """
        options = options or ReassignOptions()
        now = self._now(now)
        started = time.perf_counter()

        stale = self.get_stale_leads(leads, options.stale_days, now)
        setters = self._eligible_setters(users)

        results: List[AssignmentResult] = []
        errors: List[str] = []
        skipped = 0
        updates: Dict[str, Lead] = {}
        workloads = self._current_workloads(leads, setters)

        for lead in stale:
            if not lead.has_coordinates:
                self._log.warning("Skipping stale lead %s without coordinates", lead.id)
                skipped += 1
                errors.append(f"No coordinates for {lead.name}")
                continue

            exclude = {owner for owner in (lead.assigned_to, lead.claimed_by) if owner}
            pick = self._pick_setter(
                lead, setters, workloads, options.max_distance, exclude
            )
            if pick is None:
                skipped += 1
                errors.append(
                    f"No alternate setter within {options.max_distance:g}mi "
                    f"of {lead.address}"
                )
                continue

            setter, distance = pick
            workloads[setter.id] += 1
            results.append(
                AssignmentResult(
                    lead_id=lead.id,
                    lead_name=lead.name,
                    lead_address=lead.display_address,
                    assigned_to_id=setter.id,
                    assigned_to_name=setter.name,
                    distance=distance,
                    reason=_REASSIGN_REASON,
                )
            )
            updates[lead.id] = lead.model_copy(
                update={
                    "assigned_to": setter.id,
                    "assigned_to_name": setter.name,
                    "assigned_at": now,
                    "auto_assigned": True,
                    "last_assigned_to": lead.owner_id,
                    "claimed_by": setter.id,
                    "claimed_at": now,
                }
            )

        summary = self._summarise(results, skipped, errors)
        self._log.info(
            "Reassignment complete in %.1fms: reassigned=%d skipped=%d",
            (time.perf_counter() - started) * 1000,
            summary.total_assigned,
            summary.total_skipped,
        )

        if options.dry_run:
            return AutoAssignResult(summary=summary)
        final_leads = self._merge(leads, updates)
        return AutoAssignResult(
            leads=final_leads,
            users=self._recount_users(users, final_leads),
            summary=summary,
        )

    def preview_assignments(
        self,
        leads: Sequence[Lead],
        users: Sequence[User],
        options: Optional[AutoAssignOptions] = None,
        now: Optional[datetime] = None,
    ) -> AssignmentSummary:
        """What :meth:`auto_assign_leads` would do, without the updated records."""
        self._log.info("Generating assignment preview")
        options = (options or AutoAssignOptions()).model_copy(update={"dry_run": True})
        return self.auto_assign_leads(leads, users, options, now).summary

    def get_user_assignment_stats(
        self,
        leads: Sequence[Lead],
        user_id: str,
        stale_days: int = DEFAULT_STALE_DAYS,
        now: Optional[datetime] = None,
    ) -> UserAssignmentStats:
        user_leads = [
            lead for lead in leads if user_id in (lead.assigned_to, lead.claimed_by)
        ]
        return UserAssignmentStats(
            total=len(user_leads),
            claimed=sum(1 for lead in user_leads if lead.status == STATUS_CLAIMED),
            dispositioned=sum(1 for lead in user_leads if lead.dispositioned_at),
            stale=len(self._find_stale(user_leads, stale_days, self._now(now))),
        )
