"""
Tests for StockLedgerService.

Covers:
- Lazy record creation, exactly one record per type
- Default counter deltas per action and explicit deltas
- Clamping at zero instead of rejecting
- One history entry per movement, ordered
- Product list maintenance
- Consumable consumption guarded by remaining stock
"""

from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from stock_kernel.domain.values import CounterDelta, MovementAction, TrackingMode
from stock_kernel.exceptions import (
    InsufficientStockError,
    InventoryNotFoundError,
    ValidationError,
)
from stock_kernel.models.inventory import Inventory, InventoryMovement
from stock_kernel.models.product import Product
from stock_kernel.selectors.inventory_selector import InventorySelector
from stock_kernel.services.stock_ledger import StockLedgerService


@pytest.fixture
def ledger(session, deterministic_clock):
    return StockLedgerService(session, deterministic_clock)


@pytest.fixture
def paper(make_type):
    return make_type("Printer Paper", TrackingMode.CONSUMABLE)


class TestRecordCreation:
    def test_created_lazily_with_zero_counters(self, ledger, paper, test_actor_id):
        assert ledger.get_record(paper) is None
        record = ledger.ensure_record(paper, test_actor_id)
        assert (record.quantity, record.used_quantity,
                record.unusable_quantity, record.maintenance_quantity) == (0, 0, 0, 0)

    def test_ensure_is_idempotent(self, ledger, session, paper, test_actor_id):
        first = ledger.ensure_record(paper, test_actor_id)
        second = ledger.ensure_record(paper, test_actor_id)
        assert first.id == second.id
        assert session.query(Inventory).filter_by(type_id=paper).count() == 1


class TestApplyMovement:
    def test_in_adds_quantity(self, ledger, paper, test_actor_id):
        record = ledger.apply_movement(paper, MovementAction.IN, 20, test_actor_id)
        assert record.quantity == 20
        assert record.used_quantity == 0

    def test_used_moves_quantity_to_used(self, ledger, paper, test_actor_id):
        ledger.apply_movement(paper, MovementAction.IN, 20, test_actor_id)
        record = ledger.apply_movement(paper, MovementAction.USED, 5, test_actor_id)
        assert (record.quantity, record.used_quantity) == (15, 5)

    def test_out_and_return_adjust_used_only(self, ledger, asset_type_id, test_actor_id):
        ledger.apply_movement(asset_type_id, MovementAction.IN, 3, test_actor_id)
        ledger.apply_movement(asset_type_id, MovementAction.OUT, 1, test_actor_id)
        record = ledger.apply_movement(asset_type_id, MovementAction.OUT, 1, test_actor_id)
        assert (record.quantity, record.used_quantity) == (3, 2)
        record = ledger.apply_movement(asset_type_id, MovementAction.RETURN, 1, test_actor_id)
        assert (record.quantity, record.used_quantity) == (3, 1)

    def test_explicit_delta(self, ledger, asset_type_id, test_actor_id):
        ledger.apply_movement(asset_type_id, MovementAction.IN, 2, test_actor_id)
        record = ledger.apply_movement(
            asset_type_id, MovementAction.DISBURST, 1, test_actor_id,
            delta=CounterDelta(unusable=1),
        )
        assert record.unusable_quantity == 1
        assert record.quantity == 2

    def test_action_without_default_needs_delta(self, ledger, asset_type_id, test_actor_id):
        with pytest.raises(ValueError):
            ledger.apply_movement(asset_type_id, MovementAction.DELETED, 1, test_actor_id)

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_quantity_rejected(self, ledger, paper, test_actor_id, quantity):
        with pytest.raises(ValidationError):
            ledger.apply_movement(paper, MovementAction.IN, quantity, test_actor_id)

    def test_decrement_below_zero_is_clamped(self, ledger, asset_type_id, test_actor_id):
        record = ledger.apply_movement(asset_type_id, MovementAction.RETURN, 4, test_actor_id)
        assert record.used_quantity == 0

    def test_one_history_entry_per_call(self, ledger, session, paper, test_actor_id):
        requisition_id = uuid4()
        ledger.apply_movement(paper, MovementAction.IN, 10, test_actor_id,
                              requisition_id=requisition_id)
        ledger.apply_movement(paper, MovementAction.USED, 4, test_actor_id)

        history = InventorySelector(session).ledger_history(paper)
        assert [m.action for m in history] == [MovementAction.IN, MovementAction.USED]
        assert [m.quantity for m in history] == [10, 4]
        assert history[0].requisition_id == requisition_id
        assert history[1].requisition_id is None
        assert history[0].sequence < history[1].sequence
        assert all(m.user_id == test_actor_id for m in history)

    def test_history_sequence_is_per_record(self, ledger, session, paper, asset_type_id,
                                            test_actor_id):
        ledger.apply_movement(paper, MovementAction.IN, 10, test_actor_id)
        ledger.apply_movement(asset_type_id, MovementAction.IN, 1, test_actor_id)
        ledger.apply_movement(paper, MovementAction.USED, 2, test_actor_id)

        selector = InventorySelector(session)
        assert [m.sequence for m in selector.ledger_history(paper)] == [1, 2]
        assert [m.sequence for m in selector.ledger_history(asset_type_id)] == [1]

    def test_history_timestamp_from_clock(self, ledger, session, paper, test_actor_id,
                                          deterministic_clock):
        ledger.apply_movement(paper, MovementAction.IN, 1, test_actor_id)
        movement = session.query(InventoryMovement).one()
        assert movement.timestamp.replace(tzinfo=None) == \
            deterministic_clock.now().replace(tzinfo=None)


class TestProductList:
    def test_link_and_unlink(self, ledger, session, asset_type_id, test_actor_id):
        a, b = uuid4(), uuid4()
        for pk, code in ((a, "SPC000001"), (b, "SPC000002")):
            session.add(Product(id=pk, product_id=code, name="Case", description="Blue",
                                type_id=asset_type_id, price=0, created_by_id=test_actor_id))
        session.flush()

        record = ledger.apply_movement(asset_type_id, MovementAction.IN, 2, test_actor_id,
                                       add_product_ids=[a, b])
        selector = InventorySelector(session)
        assert set(selector.ledger_product_ids(record.id)) == {a, b}

        ledger.apply_movement(asset_type_id, MovementAction.DELETED, 1, test_actor_id,
                              delta=CounterDelta(quantity=-1), remove_product_ids=[a])
        assert selector.ledger_product_ids(record.id) == (b,)


class TestConsume:
    def test_consume_within_stock(self, ledger, paper, test_actor_id):
        ledger.apply_movement(paper, MovementAction.IN, 20, test_actor_id)
        record = ledger.consume(paper, 20, test_actor_id)
        assert (record.quantity, record.used_quantity) == (0, 20)

    def test_consume_more_than_available_rejected(self, ledger, session, paper, test_actor_id):
        ledger.apply_movement(paper, MovementAction.IN, 20, test_actor_id)
        with pytest.raises(InsufficientStockError, match="Not enough stock available") as exc_info:
            ledger.consume(paper, 30, test_actor_id)
        assert exc_info.value.available == 20

        record = ledger.get_record(paper)
        assert (record.quantity, record.used_quantity) == (20, 0)
        assert len(InventorySelector(session).ledger_history(paper)) == 1

    def test_consume_without_record(self, ledger, paper, test_actor_id):
        with pytest.raises(InventoryNotFoundError, match="Inventory not found for this type"):
            ledger.consume(paper, 1, test_actor_id)

    def test_consume_records_used_without_requisition(self, ledger, session, paper, test_actor_id):
        ledger.apply_movement(paper, MovementAction.IN, 5, test_actor_id, requisition_id=uuid4())
        ledger.consume(paper, 2, test_actor_id)
        last = InventorySelector(session).ledger_history(paper)[-1]
        assert last.action is MovementAction.USED
        assert last.requisition_id is None


@settings(max_examples=25, deadline=None,
          suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(
    deltas=st.lists(
        st.tuples(
            st.integers(min_value=-5, max_value=5),
            st.integers(min_value=-5, max_value=5),
            st.integers(min_value=-5, max_value=5),
            st.integers(min_value=-5, max_value=5),
        ),
        min_size=1,
        max_size=15,
    )
)
def test_counters_never_negative(session, deterministic_clock, make_type, test_actor_id, deltas):
    ledger = StockLedgerService(session, deterministic_clock)
    type_id = make_type(f"Type {uuid4().hex[:8]}")
    for q, u, x, m in deltas:
        record = ledger.apply_movement(
            type_id, MovementAction.DISBURST, 1, test_actor_id,
            delta=CounterDelta(quantity=q, used=u, unusable=x, maintenance=m),
        )
        assert record.quantity >= 0
        assert record.used_quantity >= 0
        assert record.unusable_quantity >= 0
        assert record.maintenance_quantity >= 0
