"""Tests for the estimate version chain and revision history."""

from decimal import Decimal

import pytest

from conftest import area
from estimate_ledger.errors import InvalidStateError, ValidationError
from estimate_ledger.events import EstimateRevised


class TestReviseEstimate:
    async def test_revision_creates_new_current_row(self, ledger, make_estimate):
        original = await make_estimate("sent")

        result = await ledger.revise_estimate(
            original.id,
            {"markup_percentage": "20"},
            "price_adjustment",
            change_summary="Premium paint",
        )

        revised = result.estimate
        assert revised.id != original.id
        assert revised.estimate_number == "EST-0001-R2"
        assert revised.revision_number == 2
        assert revised.status == "sent"
        assert revised.is_current_version is True
        assert revised.parent_estimate_id == original.id
        assert revised.version_group_id == original.version_group_id
        # 2150.00 * 1.20
        assert revised.total_amount == Decimal("2580.00")

        old = await ledger.get_estimate(original.id)
        assert old.is_current_version is False
        assert old.superseded_by == revised.id
        assert old.superseded_at is not None
        assert old.total_amount == Decimal("2472.50")

    async def test_revision_record(self, ledger, make_estimate):
        original = await make_estimate("approved")

        result = await ledger.revise_estimate(
            original.id, {"title": "Full repaint"}, "scope_change", actor="alice"
        )

        revision = result.revision
        assert revision.estimate_id == result.estimate.id
        assert revision.source_estimate_id == original.id
        assert revision.revision_number == 2
        assert revision.revision_type == "scope_change"
        assert revision.approval_status == "pending"
        assert revision.created_by == "alice"
        assert revision.change_details == {
            "title": {"old": "Interior repaint", "new": "Full repaint"}
        }
        assert revision.total_delta == Decimal("0.00")

    async def test_area_changes_recompute_totals(self, ledger, make_estimate):
        original = await make_estimate("sent")

        result = await ledger.revise_estimate(
            original.id,
            {"project_areas": [{"position": 0, "labor_hours": "40"}]},
            "client_request",
        )

        # (40 * 50 + 350) * 1.15
        assert result.estimate.labor_cost == Decimal("2000.00")
        assert result.estimate.total_amount == Decimal("2702.50")
        assert result.revision.total_delta == Decimal("230.00")
        assert result.revision.change_details["project_areas"] == [
            {"position": 0, "changes": {"labor_hours": {"old": "36.00", "new": "40.00"}}}
        ]

        old = await ledger.get_estimate(original.id)
        assert old.project_areas[0].labor_hours == Decimal("36.00")

    async def test_numbers_follow_the_root(self, ledger, make_estimate):
        original = await make_estimate("sent")

        second = await ledger.revise_estimate(
            original.id, {"markup_percentage": "10"}, "correction"
        )
        third = await ledger.revise_estimate(
            second.estimate.id, {"markup_percentage": "12"}, "correction"
        )

        assert third.estimate.estimate_number == "EST-0001-R3"
        assert third.estimate.revision_number == 3

    async def test_exactly_one_current_version(self, ledger, make_estimate):
        original = await make_estimate("sent")
        second = await ledger.revise_estimate(
            original.id, {"markup_percentage": "10"}, "correction"
        )
        await ledger.revise_estimate(second.estimate.id, {"markup_percentage": "12"}, "correction")

        history = await ledger.version_history(original.id)

        assert [e.revision_number for e in history] == [1, 2, 3]
        assert [e.is_current_version for e in history] == [False, False, True]
        current = await ledger.list_estimates()
        assert [e.estimate_number for e in current] == ["EST-0001-R3"]

    async def test_superseded_version_is_frozen(self, ledger, make_estimate):
        original = await make_estimate("sent")
        await ledger.revise_estimate(original.id, {"markup_percentage": "10"}, "correction")

        with pytest.raises(InvalidStateError):
            await ledger.revise_estimate(original.id, {"markup_percentage": "11"}, "correction")
        with pytest.raises(InvalidStateError):
            await ledger.transition_estimate(original.id, "approved")

    @pytest.mark.parametrize("status", ["draft", "rejected"])
    async def test_only_sent_or_approved_can_be_revised(self, ledger, make_estimate, status):
        estimate = await make_estimate(status)

        with pytest.raises(InvalidStateError):
            await ledger.revise_estimate(estimate.id, {"markup_percentage": "10"}, "correction")

    async def test_converted_cannot_be_revised(self, ledger, make_estimate):
        estimate = await make_estimate("approved")
        await ledger.convert_estimate(estimate.id)

        with pytest.raises(InvalidStateError):
            await ledger.revise_estimate(estimate.id, {"markup_percentage": "10"}, "correction")

    async def test_no_op_revision_rejected(self, ledger, make_estimate):
        estimate = await make_estimate("sent")

        with pytest.raises(ValidationError):
            await ledger.revise_estimate(estimate.id, {"markup_percentage": "15"}, "correction")

        assert len(await ledger.version_history(estimate.id)) == 1

    @pytest.mark.parametrize(
        "changes,revision_type",
        [
            ({"total_amount": "1.00"}, "correction"),
            ({"status": "approved"}, "correction"),
            ({"markup_percentage": "10"}, "discount"),
            ({"project_areas": [{"position": 3, "labor_hours": "1"}]}, "correction"),
            ({"project_areas": [{"position": 0, "area_name": "Den"}]}, "correction"),
        ],
    )
    async def test_invalid_revision_input(self, ledger, make_estimate, changes, revision_type):
        estimate = await make_estimate("sent")

        with pytest.raises(ValidationError):
            await ledger.revise_estimate(estimate.id, changes, revision_type)

        assert (await ledger.get_estimate(estimate.id)).is_current_version is True

    async def test_emits_revised_event(self, ledger, make_estimate, recorder):
        estimate = await make_estimate("sent")
        result = await ledger.revise_estimate(
            estimate.id, {"markup_percentage": "20"}, "price_adjustment"
        )

        [event] = recorder.of_type(EstimateRevised)
        assert event.source_estimate_id == estimate.id
        assert event.estimate_id == result.estimate.id
        assert event.total_delta == Decimal("107.50")
        assert {c.field_name for c in event.changes} == {"markup_percentage", "total_amount"}


class TestRevisionHistory:
    async def test_list_revisions_across_the_chain(self, ledger, make_estimate):
        original = await make_estimate("sent")
        second = await ledger.revise_estimate(
            original.id, {"markup_percentage": "10"}, "correction"
        )
        await ledger.revise_estimate(
            second.estimate.id, {"title": "Repaint"}, "client_request"
        )

        from_first = await ledger.list_revisions(original.id)
        from_last = await ledger.list_revisions(second.estimate.id)

        assert [r.revision_number for r in from_first] == [2, 3]
        assert [r.id for r in from_first] == [r.id for r in from_last]

    async def test_timeline_without_revisions(self, ledger, make_estimate):
        estimate = await make_estimate()

        [snapshot] = await ledger.revision_timeline(estimate.id)
        assert snapshot.revision_number == 1
        assert snapshot.total_amount == Decimal("2472.50")

    async def test_timeline_replays_totals(self, ledger, make_estimate):
        original = await make_estimate("sent")
        second = await ledger.revise_estimate(
            original.id, {"markup_percentage": "20"}, "price_adjustment"
        )
        third = await ledger.revise_estimate(
            second.estimate.id, {"title": "Repaint"}, "client_request"
        )
        await ledger.revise_estimate(
            third.estimate.id,
            {"project_areas": [{"position": 0, "material_cost": "450"}]},
            "scope_change",
        )

        timeline = await ledger.revision_timeline(original.id)

        assert [s.revision_number for s in timeline] == [1, 2, 3, 4]
        assert [s.total_amount for s in timeline] == [
            Decimal("2472.50"),
            Decimal("2580.00"),
            Decimal("2580.00"),
            Decimal("2700.00"),
        ]
        # A revision that leaves money alone carries every value forward
        assert timeline[2].changed_fields == []
        assert timeline[2].markup_percentage == Decimal("20.00")
        assert timeline[3].material_cost == Decimal("450.00")
        assert timeline[3].changed_fields == ["material_cost", "total_amount"]

    async def test_timeline_matches_stored_versions(self, ledger, make_estimate):
        original = await make_estimate(
            "sent", project_areas=[area(), area(area_name="Bedroom", labor_hours="12")]
        )
        second = await ledger.revise_estimate(
            original.id,
            {"project_areas": [{"position": 1, "labor_rate": "55"}]},
            "price_adjustment",
        )
        await ledger.revise_estimate(
            second.estimate.id, {"markup_percentage": "5"}, "correction"
        )

        timeline = await ledger.revision_timeline(original.id)
        history = await ledger.version_history(original.id)

        assert [s.total_amount for s in timeline] == [e.total_amount for e in history]
        assert [s.labor_cost for s in timeline] == [e.labor_cost for e in history]
