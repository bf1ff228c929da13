"""
StockLedgerService -- per-type stock counters and movement history.

Responsibility:
    Owns the Inventory record of every type: creates it lazily, applies
    counter deltas, appends movement history and maintains the record's
    product list.  The single source of truth for how much of a type
    exists and in what state.

Architecture position:
    Kernel > Services -- imperative shell.  Called by
    ProductLifecycleService for ASSET transitions and by
    InventoryOrchestrator for CONSUMABLE receipts and consumption.

Invariants enforced:
    Non-negative counters -- every delta is applied inside one UPDATE as
        ``max(column + delta, 0)``; a decrement below zero is clamped,
        not rejected.
    Atomic mutation -- counters are never read, modified in Python and
        written back.  Concurrent movements on one type cannot lose
        updates.
    Exactly one record per type -- lazy creation is an
        ``INSERT ... ON CONFLICT DO NOTHING`` on the unique type column.
    Append-only history -- one InventoryMovement per apply_movement call,
        ordered by a per-record sequence.

Failure modes:
    - InventoryNotFoundError when consuming from a type with no record.
    - InsufficientStockError when consumption exceeds remaining stock;
      counters are left unchanged.
    - ValidationError for a non-positive movement quantity.

Audit relevance:
    Every movement row records action, quantity, timestamp, acting user
    and (for receipts) the requisition the stock came from.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from stock_kernel.db.dialect import clamped_add, dialect_insert
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.values import DEFAULT_ACTION_DELTAS, CounterDelta, MovementAction
from stock_kernel.exceptions import (
    InsufficientStockError,
    InventoryNotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory import Inventory, InventoryMovement, inventory_products
from stock_kernel.services.base import BaseService
from stock_kernel.services.sequence_service import SequenceService

logger = get_logger("services.stock_ledger")


class StockLedgerService(BaseService[Inventory]):
    """
    Stock ledger for all types.

    Contract:
        ``apply_movement`` adjusts exactly the counters implied by the
        action (or the explicit delta) and appends one history entry.

    Non-goals:
        - Does NOT check product status; the lifecycle service decides
          which delta a transition implies.
        - Does NOT commit.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session, clock)
        self._sequences = sequence_service or SequenceService(session)

    # =========================================================================
    # Record access
    # =========================================================================

    def get_record(self, type_id: UUID) -> Inventory | None:
        """Fresh read of the ledger record for a type, or None."""
        return self.session.execute(
            select(Inventory)
            .where(Inventory.type_id == type_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def ensure_record(self, type_id: UUID, actor_id: UUID) -> Inventory:
        """Return the ledger record for a type, creating it with zero counters."""
        table = Inventory.__table__
        stmt = dialect_insert(self.session, table).values({
            table.c.type: type_id,
            table.c.quantity: 0,
            table.c.usedQuantity: 0,
            table.c.unUseableQuantity: 0,
            table.c.underMaintenanceQuantity: 0,
            table.c.createdBy: actor_id,
        })
        result = self.session.execute(
            stmt.on_conflict_do_nothing(index_elements=[table.c.type])
        )
        if result.rowcount:
            logger.info(
                "ledger_record_created",
                extra={"type_id": str(type_id), "actor_id": str(actor_id)},
            )
        return self.get_record(type_id)

    # =========================================================================
    # Counter mutation
    # =========================================================================

    def adjust_counters(
        self,
        type_id: UUID,
        delta: CounterDelta,
        actor_id: UUID,
    ) -> Inventory:
        """
        Apply a counter delta without writing history.

        Used for transitions that move counters silently, such as an
        assigned unit going into maintenance.
        """
        self.ensure_record(type_id, actor_id)
        self._apply_delta(type_id, delta, actor_id)
        record = self.get_record(type_id)
        logger.info(
            "ledger_counters_adjusted",
            extra={"type_id": str(type_id), **self._delta_fields(delta)},
        )
        return record

    def apply_movement(
        self,
        type_id: UUID,
        action: MovementAction,
        quantity: int,
        actor_id: UUID | None,
        *,
        requisition_id: UUID | None = None,
        delta: CounterDelta | None = None,
        add_product_ids: Iterable[UUID] = (),
        remove_product_ids: Iterable[UUID] = (),
        created_by: UUID | None = None,
    ) -> Inventory:
        """
        Apply one stock movement to a type's ledger record.

        Preconditions:
            - ``quantity`` > 0.
            - ``delta`` is given for actions without a default
              (DISBURST, DELETED).

        Postconditions:
            - The record exists; every counter equals
              ``max(previous + delta, 0)``.
            - Exactly one history entry was appended.
            - ``add_product_ids`` are listed on the record and
              ``remove_product_ids`` are not.

        Args:
            type_id: Type whose ledger is moved.
            action: History action to record.
            quantity: Units the movement covers.
            actor_id: Employee performing the movement (history ``user``).
            requisition_id: Requisition the stock came from, if any.
            delta: Explicit counter change; defaults to the action's
                standard delta scaled by ``quantity``.
            created_by: Creator recorded if the record must be created;
                defaults to ``actor_id``.

        Returns:
            The refreshed Inventory record.
        """
        action = MovementAction(action)
        if quantity is None or quantity <= 0:
            raise ValidationError("Quantity must be a positive number", field="quantity")
        if delta is None:
            if action not in DEFAULT_ACTION_DELTAS:
                raise ValueError(f"Action {action.value} requires an explicit counter delta")
            delta = DEFAULT_ACTION_DELTAS[action].scaled(quantity)

        record = self.ensure_record(type_id, created_by or actor_id)
        self._apply_delta(type_id, delta, actor_id)

        added = self._link_products(record.id, add_product_ids)
        removed = self._unlink_products(record.id, remove_product_ids)

        movement = InventoryMovement(
            inventory_id=record.id,
            sequence=self._sequences.next_value(SequenceService.movement(record.id)),
            action=action.value,
            quantity=quantity,
            timestamp=self.clock.now(),
            requisition_id=requisition_id,
            user_id=actor_id,
        )
        self.session.add(movement)
        self.session.flush()

        record = self.get_record(type_id)
        logger.info(
            "ledger_movement_applied",
            extra={
                "type_id": str(type_id),
                "action": action.value,
                "quantity": quantity,
                "sequence": movement.sequence,
                "requisition_id": str(requisition_id) if requisition_id else None,
                "products_added": added,
                "products_removed": removed,
                **self._delta_fields(delta),
            },
        )
        return record

    def consume(self, type_id: UUID, quantity: int, actor_id: UUID) -> Inventory:
        """
        Consume ``quantity`` units of CONSUMABLE stock.

        The decrement is a conditional UPDATE guarded by
        ``quantity >= n``, so two concurrent consumers can never take
        more than remains.  History records USED without a requisition.

        Raises:
            ValidationError: If quantity is not positive.
            InventoryNotFoundError: If the type has no ledger record.
            InsufficientStockError: If fewer than ``quantity`` units remain.
        """
        if quantity is None or quantity <= 0:
            raise ValidationError("Quantity must be a positive number", field="quantity")

        record = self.get_record(type_id)
        if record is None:
            raise InventoryNotFoundError(str(type_id))

        result = self.session.execute(
            update(Inventory)
            .where(Inventory.type_id == type_id, Inventory.quantity >= quantity)
            .values({
                Inventory.quantity: Inventory.quantity - quantity,
                Inventory.used_quantity: Inventory.used_quantity + quantity,
                Inventory.updated_by_id: actor_id,
            })
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            available = self.get_record(type_id).quantity
            logger.warning(
                "consumable_stock_insufficient",
                extra={
                    "type_id": str(type_id),
                    "requested": quantity,
                    "available": available,
                },
            )
            raise InsufficientStockError(str(type_id), quantity, available)

        movement = InventoryMovement(
            inventory_id=record.id,
            sequence=self._sequences.next_value(SequenceService.movement(record.id)),
            action=MovementAction.USED.value,
            quantity=quantity,
            timestamp=self.clock.now(),
            requisition_id=None,
            user_id=actor_id,
        )
        self.session.add(movement)
        self.session.flush()

        record = self.get_record(type_id)
        logger.info(
            "ledger_movement_applied",
            extra={
                "type_id": str(type_id),
                "action": MovementAction.USED.value,
                "quantity": quantity,
                "sequence": movement.sequence,
                "remaining": record.quantity,
            },
        )
        return record

    # =========================================================================
    # Internals
    # =========================================================================

    def _apply_delta(self, type_id: UUID, delta: CounterDelta, actor_id: UUID | None) -> None:
        if delta.is_zero:
            return
        values: dict = {Inventory.updated_by_id: actor_id}
        for column, change in (
            (Inventory.quantity, delta.quantity),
            (Inventory.used_quantity, delta.used),
            (Inventory.unusable_quantity, delta.unusable),
            (Inventory.maintenance_quantity, delta.maintenance),
        ):
            if change:
                values[column] = clamped_add(column, change)
        self.session.execute(
            update(Inventory)
            .where(Inventory.type_id == type_id)
            .values(values)
            .execution_options(synchronize_session=False)
        )

    def _link_products(self, inventory_id: UUID, product_ids: Iterable[UUID]) -> int:
        rows = [{"inventory": inventory_id, "product": pid} for pid in product_ids]
        if not rows:
            return 0
        stmt = dialect_insert(self.session, inventory_products).values(rows)
        self.session.execute(stmt.on_conflict_do_nothing())
        return len(rows)

    def _unlink_products(self, inventory_id: UUID, product_ids: Iterable[UUID]) -> int:
        ids = list(product_ids)
        if not ids:
            return 0
        self.session.execute(
            delete(inventory_products).where(
                inventory_products.c.inventory == inventory_id,
                inventory_products.c.product.in_(ids),
            )
        )
        return len(ids)

    @staticmethod
    def _delta_fields(delta: CounterDelta) -> dict[str, int]:
        return {
            "delta_quantity": delta.quantity,
            "delta_used": delta.used,
            "delta_unusable": delta.unusable,
            "delta_maintenance": delta.maintenance,
        }
