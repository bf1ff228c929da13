"""
Tests for RequisitionService.

Covers:
- requisitionID allocation per month in the configured time zone
- Totals derived from items on create, update and approval
- Approval copies approved figures by position; rejection only stamps
- Disallowed approval actions
- Item replacement keeps fulfillment counters and protects added units
- Fulfillment ceiling: can_add and the atomic record_added
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.clock import DeterministicClock
from stock_kernel.domain.requisition import ApprovalLine, ItemSpec
from stock_kernel.domain.values import RequisitionAction, RequisitionStatus, TrackingMode
from stock_kernel.exceptions import (
    ApprovedQuantityExceededError,
    RequisitionInUseError,
    RequisitionItemNotFoundError,
    RequisitionNotApprovedError,
    RequisitionNotFoundError,
    RequisitionStateError,
    ValidationError,
)
from stock_kernel.services.requisition_service import RequisitionService

MID_AUGUST_2025 = datetime(2025, 8, 15, 4, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return DeterministicClock(MID_AUGUST_2025)


@pytest.fixture
def service(session, clock):
    return RequisitionService(session, clock)


@pytest.fixture
def paper(make_type):
    return make_type("Printer Paper", TrackingMode.CONSUMABLE)


def _spec(type_id, quantity=5, cost="100.00", **overrides) -> ItemSpec:
    values = {
        "type_id": type_id,
        "vendor_id": uuid4(),
        "quantity_requested": quantity,
        "estimated_cost": Decimal(cost),
    }
    values.update(overrides)
    return ItemSpec(**values)


class TestCreate:
    def test_identifiers_follow_month_counter(self, service, asset_type_id, test_actor_id):
        first = service.create("Phones", [_spec(asset_type_id)], test_actor_id)
        second = service.create("More phones", [_spec(asset_type_id)], test_actor_id)
        assert first.requisition_id == "REQ0825000001"
        assert second.requisition_id == "REQ0825000002"

    def test_new_month_restarts_counter(self, service, clock, asset_type_id, test_actor_id):
        service.create("August", [_spec(asset_type_id)], test_actor_id)
        # 20:00 UTC on Aug 31 is already September in Dhaka.
        clock.set_time(datetime(2025, 8, 31, 20, 0, tzinfo=timezone.utc))
        september = service.create("September", [_spec(asset_type_id)], test_actor_id)
        assert september.requisition_id == "REQ0925000001"

    def test_starts_requested_with_totals(self, service, asset_type_id, paper, test_actor_id):
        requisition = service.create(
            "Office",
            [_spec(asset_type_id, 3, "150.00"), _spec(paper, 20, "12.50")],
            test_actor_id,
        )
        assert requisition.status == RequisitionStatus.REQUESTED
        assert requisition.total_quantity_requested == 23
        assert requisition.total_estimated_cost == Decimal("162.50")
        assert requisition.total_quantity_approved == 0
        assert requisition.total_approved_cost == Decimal("0")
        assert all(item.added_to_inventory == 0 for item in requisition.items)

    def test_title_required(self, service, asset_type_id, test_actor_id):
        with pytest.raises(ValidationError, match="title is required"):
            service.create("", [_spec(asset_type_id)], test_actor_id)

    def test_invalid_items_create_nothing(self, service, asset_type_id, test_actor_id):
        with pytest.raises(ValidationError, match="Duplicate item type"):
            service.create("Dup", [_spec(asset_type_id), _spec(asset_type_id)], test_actor_id)
        with pytest.raises(RequisitionNotFoundError):
            service.get_by_code("REQ0825000001")


class TestAct:
    def test_approve_without_lines_copies_requested(self, service, asset_type_id, test_actor_id,
                                                    clock):
        spec = _spec(asset_type_id, 4, "80.00")
        created = service.create("Phones", [spec], test_actor_id)
        approved = service.act(created.id, RequisitionAction.APPROVE, test_actor_id,
                               comments="ok")

        item = approved.items[0]
        assert approved.status == RequisitionStatus.APPROVED
        assert item.approved_vendor_id == spec.vendor_id
        assert item.quantity_approved == 4
        assert item.approved_cost == Decimal("80.00")
        assert approved.total_quantity_approved == 4
        assert approved.total_approved_cost == Decimal("80.00")
        assert approved.action_by == test_actor_id
        assert approved.action_date is not None
        assert approved.comments == "ok"

    def test_approve_lines_by_position(self, service, asset_type_id, paper, test_actor_id):
        created = service.create(
            "Office", [_spec(asset_type_id, 3), _spec(paper, 20, "10.00")], test_actor_id,
        )
        vendor = uuid4()
        approved = service.act(
            created.id,
            "Approved",
            test_actor_id,
            lines=[ApprovalLine(vendor, 2, Decimal("90.00")), ApprovalLine(vendor, 15, Decimal("7.50"))],
        )
        assert [i.quantity_approved for i in approved.items] == [2, 15]
        assert approved.total_quantity_approved == 17
        assert approved.total_approved_cost == Decimal("97.50")

    def test_reject_leaves_items_untouched(self, service, asset_type_id, test_actor_id):
        created = service.create("Phones", [_spec(asset_type_id)], test_actor_id)
        rejected = service.act(created.id, RequisitionAction.REJECT, test_actor_id,
                               comments="Over budget")
        assert rejected.status == RequisitionStatus.REJECTED
        assert rejected.comments == "Over budget"
        assert rejected.items[0].quantity_approved == 0

    def test_approved_can_still_be_rejected(self, service, asset_type_id, test_actor_id):
        created = service.create("Phones", [_spec(asset_type_id)], test_actor_id)
        service.act(created.id, RequisitionAction.APPROVE, test_actor_id)
        rejected = service.act(created.id, RequisitionAction.REJECT, test_actor_id)
        assert rejected.status == RequisitionStatus.REJECTED

    def test_rejected_is_terminal(self, service, asset_type_id, test_actor_id):
        created = service.create("Phones", [_spec(asset_type_id)], test_actor_id)
        service.act(created.id, RequisitionAction.REJECT, test_actor_id)
        with pytest.raises(RequisitionStateError):
            service.act(created.id, RequisitionAction.APPROVE, test_actor_id)

    def test_unknown_requisition(self, service, test_actor_id):
        with pytest.raises(RequisitionNotFoundError):
            service.act(uuid4(), RequisitionAction.APPROVE, test_actor_id)


class TestUpdate:
    def test_replacing_items_recomputes_totals(self, service, asset_type_id, paper, test_actor_id):
        created = service.create("Phones", [_spec(asset_type_id, 2, "50.00")], test_actor_id)
        updated = service.update(
            created.id, test_actor_id,
            title="Phones and paper",
            items=[_spec(asset_type_id, 3, "60.00"), _spec(paper, 10, "5.00")],
        )
        assert updated.title == "Phones and paper"
        assert updated.total_quantity_requested == 13
        assert updated.total_estimated_cost == Decimal("65.00")
        assert [i.type_id for i in updated.items] == [asset_type_id, paper]

    def test_added_counts_carry_over(self, service, asset_type_id, test_actor_id):
        created = service.create("Phones", [_spec(asset_type_id, 5)], test_actor_id)
        service.act(created.id, RequisitionAction.APPROVE, test_actor_id)
        service.record_added(created, asset_type_id, 2)

        updated = service.update(created.id, test_actor_id, items=[_spec(asset_type_id, 6)])
        item = updated.item_for(asset_type_id)
        assert item.added_to_inventory == 2
        assert item.quantity_approved == 5
        assert item.quantity_requested == 6

    def test_cannot_remove_type_with_added_units(self, service, asset_type_id, paper,
                                                 test_actor_id):
        created = service.create("Phones", [_spec(asset_type_id, 5)], test_actor_id)
        service.act(created.id, RequisitionAction.APPROVE, test_actor_id)
        service.record_added(created, asset_type_id, 1)
        with pytest.raises(ValidationError, match="cannot be removed"):
            service.update(created.id, test_actor_id, items=[_spec(paper)])

    def test_cannot_lower_approval_below_added(self, service, asset_type_id, test_actor_id):
        created = service.create("Phones", [_spec(asset_type_id, 5)], test_actor_id)
        service.act(created.id, RequisitionAction.APPROVE, test_actor_id)
        service.record_added(created, asset_type_id, 3)
        with pytest.raises(ValidationError, match="cannot be lower"):
            service.update(created.id, test_actor_id,
                           items=[_spec(asset_type_id, 5, quantity_approved=2)])


class TestDelete:
    def test_delete_unused(self, service, asset_type_id, test_actor_id):
        created = service.create("Phones", [_spec(asset_type_id)], test_actor_id)
        service.delete(created.id)
        with pytest.raises(RequisitionNotFoundError):
            service.get(created.id)

    def test_delete_blocked_when_stock_added(self, service, asset_type_id, test_actor_id):
        created = service.create("Phones", [_spec(asset_type_id)], test_actor_id)
        service.act(created.id, RequisitionAction.APPROVE, test_actor_id)
        service.record_added(created, asset_type_id, 1)
        with pytest.raises(RequisitionInUseError) as exc_info:
            service.delete(created.id)
        assert exc_info.value.added == 1


class TestFulfillment:
    @pytest.fixture
    def approved(self, service, asset_type_id, test_actor_id):
        created = service.create("Phones", [_spec(asset_type_id, 5)], test_actor_id)
        return service.act(created.id, RequisitionAction.APPROVE, test_actor_id)

    def test_can_add(self, service, approved, asset_type_id, paper):
        assert service.can_add(approved.id, asset_type_id, 5)
        assert not service.can_add(approved.id, asset_type_id, 6)
        assert not service.can_add(approved.id, asset_type_id, 0)
        assert not service.can_add(approved.id, paper, 1)
        assert not service.can_add(uuid4(), asset_type_id, 1)

    def test_record_added_up_to_ceiling(self, service, approved, asset_type_id):
        assert service.record_added(approved, asset_type_id, 3).added_to_inventory == 3
        assert service.record_added(approved, asset_type_id, 2).added_to_inventory == 5
        assert not service.can_add(approved.id, asset_type_id, 1)

    def test_exceeding_ceiling_reports_addable(self, service, approved, asset_type_id,
                                               captured_logs):
        service.record_added(approved, asset_type_id, 3)
        with pytest.raises(ApprovedQuantityExceededError) as exc_info:
            service.record_added(approved, asset_type_id, 3)
        assert exc_info.value.addable == 2
        assert "You able to add 2 only" in str(exc_info.value)
        assert approved.item_for(asset_type_id).added_to_inventory == 3
        assert any(r["message"] == "requisition_ceiling_exceeded" for r in captured_logs())

    def test_non_positive_count(self, service, approved, asset_type_id):
        with pytest.raises(ValidationError, match="Valid quantity is required"):
            service.record_added(approved, asset_type_id, 0)

    def test_requires_approval(self, service, asset_type_id, test_actor_id):
        created = service.create("Phones", [_spec(asset_type_id)], test_actor_id)
        with pytest.raises(RequisitionNotApprovedError, match="must be approved"):
            service.record_added(created, asset_type_id, 1)

    def test_type_must_be_on_requisition(self, service, approved, paper):
        with pytest.raises(RequisitionItemNotFoundError):
            service.record_added(approved, paper, 1)
