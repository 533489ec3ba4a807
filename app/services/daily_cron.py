"""Daily lead-management run.

Triggered once a day by the platform scheduler (see ``POST /api/v1/cron``):

1. find leads not dispositioned within ``stale_days``
2. hand them to a different setter
3. compute per-setter stats
4. build the notification lines an external sender delivers

Everything is computed from the snapshot passed in; nothing here talks
to storage or sends anything.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from app.core.constants import (
    CRON_SUMMARY_DETAIL_LIMIT,
    OVERLOADED_SETTER_THRESHOLD,
    TOP_PERFORMER_COUNT,
    TOP_PERFORMER_MIN_DISPOSITIONS,
)
from app.schemas.assignment import ReassignOptions
from app.schemas.common import ensure_utc
from app.schemas.cron import (
    DailyCronOptions,
    DailyCronResult,
    DailyCronRun,
    StaleLeadDetail,
    StaleLeadsReport,
    UserStatsEntry,
)
from app.schemas.lead import Lead, User
from app.services.lead_assignment import LeadAssignmentEngine, days_stale

logger = logging.getLogger(__name__)


def _build_notifications(
    stale_count: int,
    reassigned: int,
    stale_days: int,
    user_stats: List[UserStatsEntry],
) -> List[str]:
    notifications: List[str] = []

    if stale_count > 0:
        notifications.append(
            f"{stale_count} stale leads found ({stale_days}+ days without disposition)"
        )
        if reassigned > 0:
            notifications.append(f"{reassigned} leads reassigned to new setters")

    overloaded = [s for s in user_stats if s.claimed > OVERLOADED_SETTER_THRESHOLD]
    if overloaded:
        notifications.append(
            f"{len(overloaded)} setter(s) have {OVERLOADED_SETTER_THRESHOLD}+ active leads"
        )

    top = sorted(
        (s for s in user_stats if s.dispositioned > TOP_PERFORMER_MIN_DISPOSITIONS),
        key=lambda s: s.dispositioned,
        reverse=True,
    )[:TOP_PERFORMER_COUNT]
    if top:
        names = ", ".join(f"{s.user_name} ({s.dispositioned} closed)" for s in top)
        notifications.append(f"Top performers: {names}")

    return notifications


def run_daily_cron(
    leads: Sequence[Lead],
    users: Sequence[User],
    options: Optional[DailyCronOptions] = None,
    engine: Optional[LeadAssignmentEngine] = None,
    now: Optional[datetime] = None,
) -> DailyCronRun:
    """Run the daily stale-lead sweep over a snapshot of leads and users.

    The result is a pure function of the inputs and *now*: two dry runs
    over the same snapshot produce equal results.  On a real run the
    returned ``leads`` carry the reassignments for the caller to persist.
    """
    options = options or DailyCronOptions()
    engine = engine or LeadAssignmentEngine()
    now = ensure_utc(now) or datetime.now(timezone.utc)

    logger.info(
        "Daily cron starting: %d lead(s), %d user(s), stale_days=%d, dry_run=%s",
        len(leads),
        len(users),
        options.stale_days,
        options.dry_run,
    )

    stale = engine.get_stale_leads(leads, options.stale_days, now)
    report = StaleLeadsReport(count=len(stale))
    current_leads: List[Lead] = list(leads)

    if stale:
        reassign = engine.reassign_stale_leads(
            leads,
            users,
            ReassignOptions(
                stale_days=options.stale_days,
                max_distance=options.max_distance,
                dry_run=options.dry_run,
            ),
            now=now,
        )
        report.reassigned = reassign.summary.total_assigned

        new_owner: Dict[str, str] = {}
        for bucket in reassign.summary.by_user.values():
            for assignment in bucket.leads:
                new_owner[assignment.lead_id] = assignment.assigned_to_name
        names = {u.id: u.name for u in users}

        for lead in stale:
            report.details.append(
                StaleLeadDetail(
                    lead_id=lead.id,
                    lead_name=lead.name,
                    from_setter=names.get(lead.assigned_to or lead.claimed_by, "Unknown"),
                    to_setter=new_owner.get(lead.id, "Unassigned"),
                    days_stale=days_stale(lead, now),
                )
            )

        if not options.dry_run:
            current_leads = reassign.leads

    user_stats: List[UserStatsEntry] = []
    for user in users:
        if user.is_active is False:
            continue
        stats = engine.get_user_assignment_stats(
            current_leads, user.id, options.stale_days, now
        )
        user_stats.append(
            UserStatsEntry(
                user_id=user.id,
                user_name=user.name,
                total_leads=stats.total,
                claimed=stats.claimed,
                dispositioned=stats.dispositioned,
                stale=stats.stale,
            )
        )

    notifications: List[str] = []
    if options.send_notifications:
        notifications = _build_notifications(
            report.count, report.reassigned, options.stale_days, user_stats
        )

    result = DailyCronResult(
        timestamp=now,
        stale_leads=report,
        user_stats=user_stats,
        notifications=notifications,
    )
    logger.info(
        "Daily cron complete: stale=%d reassigned=%d notifications=%d",
        report.count,
        report.reassigned,
        len(notifications),
    )
    return DailyCronRun(
        result=result,
        leads=None if options.dry_run else current_leads,
    )


def format_cron_summary(result: DailyCronResult) -> str:
    """Render a cron result as a plain-text daily report."""
    lines = [f"Daily Lead Report - {result.timestamp.date().isoformat()}", ""]

    stale = result.stale_leads
    if stale.count > 0:
        lines.append(f"Stale Leads: {stale.count}")
        lines.append(f"   Reassigned: {stale.reassigned}")
        if stale.details:
            lines.append("   Details:")
            for detail in stale.details[:CRON_SUMMARY_DETAIL_LIMIT]:
                lines.append(
                    f"   - {detail.lead_name}: {detail.from_setter} -> "
                    f"{detail.to_setter} ({detail.days_stale} days)"
                )
            remaining = len(stale.details) - CRON_SUMMARY_DETAIL_LIMIT
            if remaining > 0:
                lines.append(f"   ... and {remaining} more")
        lines.append("")

    lines.append("Setter Stats:")
    for stat in result.user_stats:
        marker = "!" if stat.stale > 0 else "ok"
        lines.append(
            f"   [{marker}] {stat.user_name}: {stat.claimed} active, "
            f"{stat.dispositioned} closed, {stat.stale} stale"
        )
    lines.append("")

    if result.notifications:
        lines.append("Notifications:")
        for note in result.notifications:
            lines.append(f"   {note}")

    return "\n".join(lines)


def should_run_cron(
    last_run: Optional[datetime],
    min_hours_between_runs: float = 20,
    now: Optional[datetime] = None,
) -> bool:
    """Guard against double runs when the scheduler fires more than once."""
    if last_run is None:
        return True
    now = ensure_utc(now) or datetime.now(timezone.utc)
    return now - ensure_utc(last_run) >= timedelta(hours=min_hours_between_runs)
