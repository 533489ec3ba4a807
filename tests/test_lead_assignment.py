"""Tests for the greedy LeadAssignmentEngine."""

from datetime import timedelta

import pytest

from app.schemas.assignment import AutoAssignOptions, ReassignOptions
from app.schemas.lead import Lead, User
from app.services.geo import distance_miles
from app.services.lead_assignment import LeadAssignmentEngine, days_stale

# Two setters roughly ten miles apart
HOME_A = (33.4500, -112.0700)
HOME_B = (33.4500, -111.9000)


def _make_user(user_id="A", home=HOME_A, **kwargs) -> User:
    """Create an active setter with a home location."""
    return User(
        id=user_id,
        name=f"Setter {user_id}",
        home_lat=home[0] if home else None,
        home_lng=home[1] if home else None,
        **kwargs,
    )


def _make_lead(lead_id="L1", lat=33.4510, lng=-112.0690, **kwargs) -> Lead:
    """Create an unclaimed lead a few blocks from setter A."""
    return Lead(
        id=lead_id,
        name=f"Lead {lead_id}",
        address=f"{lead_id} Main St",
        city="Phoenix",
        lat=lat,
        lng=lng,
        **kwargs,
    )


class TestAutoAssignLeads:
    """Verify the workload-first, distance-second allocation."""

    def test_balances_three_leads_across_two_setters(self, engine, fixed_now):
        leads = [_make_lead("L1"), _make_lead("L2"), _make_lead("L3")]
        users = [_make_user("A", HOME_A), _make_user("B", HOME_B)]

        result = engine.auto_assign_leads(leads, users)

        assigned = {lead.id: lead.assigned_to for lead in result.leads}
        assert assigned == {"L1": "A", "L2": "B", "L3": "A"}
        assert result.summary.total_assigned == 3
        assert result.summary.by_user["A"].count == 2
        assert result.summary.by_user["B"].count == 1
        assert {u.id: u.assigned_lead_count for u in result.users} == {"A": 2, "B": 1}

    def test_assigned_lead_fields(self, engine, fixed_now):
        result = engine.auto_assign_leads([_make_lead()], [_make_user()])

        lead = result.leads[0]
        assert lead.assigned_to == "A"
        assert lead.assigned_to_name == "Setter A"
        assert lead.claimed_by == "A"
        assert lead.status == "claimed"
        assert lead.auto_assigned is True
        assert lead.assigned_at == fixed_now
        assert lead.claimed_at == fixed_now

        entry = result.summary.by_user["A"].leads[0]
        assert entry.lead_address == "L1 Main St, Phoenix"
        assert entry.distance == pytest.approx(
            distance_miles(33.4510, -112.0690, *HOME_A)
        )

    def test_existing_workload_outweighs_distance(self, engine):
        owned = [
            _make_lead("O1", status="claimed", claimed_by="A"),
            _make_lead("O2", status="claimed", claimed_by="A"),
        ]
        new = _make_lead("N1")
        users = [_make_user("A", HOME_A), _make_user("B", HOME_B)]

        result = engine.auto_assign_leads(owned + [new], users)

        assert result.summary.total_assigned == 1
        assert result.summary.by_user["B"].leads[0].lead_id == "N1"

    def test_dispositioned_leads_do_not_count_as_workload(self, engine, fixed_now):
        closed = _make_lead(
            "O1", status="sale", claimed_by="A", dispositioned_at=fixed_now
        )
        users = [_make_user("A", HOME_A), _make_user("B", HOME_B)]

        result = engine.auto_assign_leads([closed, _make_lead("N1")], users)

        assert "A" in result.summary.by_user

    def test_never_exceeds_max_distance(self, engine):
        far = _make_lead("FAR", lat=35.0, lng=-112.07)
        near = _make_lead("NEAR")
        result = engine.auto_assign_leads(
            [far, near], [_make_user()], AutoAssignOptions(max_distance=50)
        )

        assert result.summary.total_assigned == 1
        assert result.summary.total_skipped == 1
        assert result.summary.errors == ["No setter within 50mi of FAR Main St"]
        for bucket in result.summary.by_user.values():
            for entry in bucket.leads:
                assert entry.distance <= 50
        assert result.leads[0].assigned_to is None

    def test_poor_leads_excluded_by_default(self, engine):
        poor = _make_lead("P1", solar_category="poor")
        result = engine.auto_assign_leads([poor], [_make_user()])
        assert result.summary.total_assigned == 0
        assert result.summary.total_skipped == 0

    def test_poor_leads_included_when_requested(self, engine):
        poor = _make_lead("P1", solar_category="poor")
        result = engine.auto_assign_leads(
            [poor], [_make_user()], AutoAssignOptions(only_categories=["poor"])
        )
        assert result.summary.total_assigned == 1

    def test_category_filter_treats_missing_as_solid(self, engine):
        leads = [
            _make_lead("L1"),
            _make_lead("L2", solar_category="great"),
        ]
        result = engine.auto_assign_leads(
            leads, [_make_user()], AutoAssignOptions(only_categories=["solid"])
        )
        assigned = [e.lead_id for e in result.summary.by_user["A"].leads]
        assert assigned == ["L1"]

    def test_skips_already_assigned_and_uncoordinated(self, engine):
        leads = [
            _make_lead("L1", assigned_to="B"),
            Lead(id="L2", name="No pin"),
            _make_lead("L3", status="claimed", claimed_by="B"),
        ]
        result = engine.auto_assign_leads(leads, [_make_user()])
        assert result.summary.total_assigned == 0
        assert result.summary.total_skipped == 0

    def test_only_unclaimed_false_considers_claimed_leads(self, engine):
        lead = _make_lead("L1", status="not-home")
        result = engine.auto_assign_leads(
            [lead], [_make_user()], AutoAssignOptions(only_unclaimed=False)
        )
        assert result.summary.total_assigned == 1

    def test_no_active_setters(self, engine):
        users = [
            _make_user("A", is_active=False),
            _make_user("B", home=None),
        ]
        result = engine.auto_assign_leads([_make_lead("L1"), _make_lead("L2")], users)

        assert result.summary.total_assigned == 0
        assert result.summary.total_skipped == 2
        assert result.summary.errors == ["No active setters with home locations"]

    def test_empty_inputs(self, engine):
        result = engine.auto_assign_leads([], [])
        assert result.summary.total_assigned == 0
        assert result.summary.total_skipped == 0
        assert result.summary.errors == []
        assert result.leads == []

    def test_dry_run_returns_summary_only(self, engine):
        leads = [_make_lead("L1")]
        users = [_make_user()]

        result = engine.auto_assign_leads(leads, users, AutoAssignOptions(dry_run=True))

        assert result.summary.total_assigned == 1
        assert result.leads is None
        assert result.users is None
        assert leads[0].assigned_to is None
        assert leads[0].status == "unclaimed"

    def test_inputs_never_mutated(self, engine):
        leads = [_make_lead("L1")]
        users = [_make_user()]
        before = [lead.model_dump() for lead in leads]

        engine.auto_assign_leads(leads, users)

        assert [lead.model_dump() for lead in leads] == before
        assert users[0].assigned_lead_count == 0

    def test_knockability_order(self, engine, fixed_now):
        low = _make_lead("LOW", solar_score=0, created_at=fixed_now)
        high = _make_lead("HIGH", solar_score=100, created_at=fixed_now)

        by_input = engine.auto_assign_leads([low, high], [_make_user()])
        by_score = engine.auto_assign_leads(
            [low, high], [_make_user()], AutoAssignOptions(order_by="knockability")
        )

        assert [e.lead_id for e in by_input.summary.by_user["A"].leads] == ["LOW", "HIGH"]
        assert [e.lead_id for e in by_score.summary.by_user["A"].leads] == ["HIGH", "LOW"]
        # Returned lead list keeps input order either way
        assert [lead.id for lead in by_score.leads] == ["LOW", "HIGH"]


class TestPreviewAssignments:
    """Previews are side-effect free."""

    def test_preview_is_idempotent(self, engine):
        leads = [_make_lead("L1"), _make_lead("L2")]
        users = [_make_user("A", HOME_A), _make_user("B", HOME_B)]

        first = engine.preview_assignments(leads, users)
        second = engine.preview_assignments(leads, users)

        assert first == second
        assert first.total_assigned == 2
        assert all(lead.assigned_to is None for lead in leads)


class TestStaleLeads:
    """Stale detection and reassignment."""

    def test_stale_threshold(self, engine, fixed_now):
        stale = _make_lead(
            "S1", status="claimed", claimed_by="A",
            assigned_at=fixed_now - timedelta(days=6),
        )
        fresh = _make_lead(
            "F1", status="claimed", claimed_by="A",
            assigned_at=fixed_now - timedelta(days=4),
        )
        closed = _make_lead(
            "C1", status="sale", claimed_by="A",
            assigned_at=fixed_now - timedelta(days=10),
            dispositioned_at=fixed_now - timedelta(days=9),
        )
        unclaimed = _make_lead("U1", assigned_at=fixed_now - timedelta(days=10))

        result = engine.get_stale_leads([stale, fresh, closed, unclaimed], 5, fixed_now)

        assert [lead.id for lead in result] == ["S1"]

    def test_claimed_at_used_when_never_assigned(self, engine, fixed_now):
        lead = _make_lead(
            "S1", status="claimed", claimed_by="A",
            claimed_at=fixed_now - timedelta(days=8),
        )
        assert engine.get_stale_leads([lead], 5, fixed_now) == [lead]

    def test_any_disposition_excludes_claimed_lead(self, engine, fixed_now):
        """An old disposition still counts, even though the lead was claimed again since."""
        lead = _make_lead(
            "S1", status="claimed", claimed_by="A",
            assigned_at=fixed_now - timedelta(days=6),
            dispositioned_at=fixed_now - timedelta(days=20),
        )
        assert engine.get_stale_leads([lead], 5, fixed_now) == []

    def test_days_stale(self, fixed_now):
        lead = _make_lead(assigned_at=fixed_now - timedelta(days=6, hours=3))
        assert days_stale(lead, fixed_now) == 6
        assert days_stale(_make_lead(), fixed_now) == 0

    def test_reassign_excludes_current_owner(self, engine, fixed_now):
        lead = _make_lead(
            "S1", status="claimed", claimed_by="A", assigned_to="A",
            assigned_at=fixed_now - timedelta(days=6),
        )
        users = [_make_user("A", HOME_A), _make_user("B", HOME_B)]

        result = engine.reassign_stale_leads([lead], users, now=fixed_now)

        moved = result.leads[0]
        assert moved.assigned_to == "B"
        assert moved.claimed_by == "B"
        assert moved.last_assigned_to == "A"
        assert moved.assigned_at == fixed_now
        assert moved.status == "claimed"
        entry = result.summary.by_user["B"].leads[0]
        assert entry.reason == "Stale lead reassignment"

    def test_reassign_without_alternate_setter(self, engine, fixed_now):
        lead = _make_lead(
            "S1", status="claimed", claimed_by="A",
            assigned_at=fixed_now - timedelta(days=6),
        )
        result = engine.reassign_stale_leads(
            [lead], [_make_user("A")], ReassignOptions(max_distance=25), now=fixed_now
        )

        assert result.summary.total_assigned == 0
        assert result.summary.total_skipped == 1
        assert result.summary.errors == ["No alternate setter within 25mi of S1 Main St"]
        assert result.leads[0] is lead

    def test_reassign_skips_stale_lead_without_coordinates(self, engine, fixed_now):
        lead = Lead(
            id="S1", name="Unpinned", status="claimed", claimed_by="A",
            assigned_at=fixed_now - timedelta(days=6),
        )
        result = engine.reassign_stale_leads(
            [lead], [_make_user("A"), _make_user("B", HOME_B)], now=fixed_now
        )
        assert result.summary.total_skipped == 1
        assert result.summary.errors == ["No coordinates for Unpinned"]

    def test_reassign_dry_run(self, engine, fixed_now):
        lead = _make_lead(
            "S1", status="claimed", claimed_by="A",
            assigned_at=fixed_now - timedelta(days=6),
        )
        result = engine.reassign_stale_leads(
            [lead],
            [_make_user("A"), _make_user("B", HOME_B)],
            ReassignOptions(dry_run=True),
            now=fixed_now,
        )
        assert result.summary.total_assigned == 1
        assert result.leads is None
        assert lead.claimed_by == "A"


class TestUserAssignmentStats:
    """Per-setter counters."""

    def test_counts(self, engine, fixed_now):
        leads = [
            _make_lead("L1", status="claimed", claimed_by="A", assigned_at=fixed_now),
            _make_lead(
                "L2", status="claimed", claimed_by="A",
                assigned_at=fixed_now - timedelta(days=7),
            ),
            _make_lead(
                "L3", status="sale", claimed_by="A",
                assigned_at=fixed_now - timedelta(days=7),
                dispositioned_at=fixed_now - timedelta(days=1),
            ),
            _make_lead("L4", status="claimed", claimed_by="B"),
        ]

        stats = engine.get_user_assignment_stats(leads, "A", now=fixed_now)

        assert stats.total == 3
        assert stats.claimed == 2
        assert stats.dispositioned == 1
        assert stats.stale == 1
