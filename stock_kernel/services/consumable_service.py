"""
ConsumableStockService -- receipts and consumption of CONSUMABLE stock.

CONSUMABLE types are tracked only in aggregate: ``quantity`` is the
remaining stock and ``usedQuantity`` the consumed total.  Receipts record
IN (with the requisition they came from, if any) and consumption records
USED without a requisition.  Consumption never drives ``quantity`` below
zero; the ledger's conditional update refuses instead.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.values import MovementAction, TrackingMode
from stock_kernel.exceptions import ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.inventory import Inventory
from stock_kernel.services.base import BaseService
from stock_kernel.services.catalog_service import CatalogService
from stock_kernel.services.custody_service import CustodyService
from stock_kernel.services.requisition_service import RequisitionService
from stock_kernel.services.stock_ledger import StockLedgerService

logger = get_logger("services.consumable")


class ConsumableStockService(BaseService[Inventory]):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        ledger: StockLedgerService | None = None,
        requisitions: RequisitionService | None = None,
        catalog: CatalogService | None = None,
        custody: CustodyService | None = None,
    ):
        super().__init__(session, clock)
        self._ledger = ledger or StockLedgerService(session, self.clock)
        self._requisitions = requisitions or RequisitionService(session, self.clock)
        self._catalog = catalog or CatalogService(session, self.clock)
        self._custody = custody or CustodyService(session, self.clock)

    def add_stock(
        self,
        type_id: UUID,
        quantity: int,
        actor_id: UUID,
        *,
        requisition_code: str | None = None,
    ) -> Inventory:
        """
        Receive ``quantity`` units.

        A referenced requisition only labels the movement; it is looked
        up by requisitionID and its fulfillment counters are not touched.
        """
        if quantity is None or quantity <= 0:
            raise ValidationError("Quantity must be a positive number", field="quantity")
        self._catalog.require_mode(type_id, TrackingMode.CONSUMABLE)
        self._custody.require_employee(actor_id, "Acting employee")

        requisition_pk = None
        if requisition_code:
            requisition_pk = self._requisitions.get_by_code(requisition_code).id

        record = self._ledger.apply_movement(
            type_id,
            MovementAction.IN,
            quantity,
            actor_id,
            requisition_id=requisition_pk,
        )
        logger.info(
            "consumable_stock_added",
            extra={
                "type_id": str(type_id),
                "quantity": quantity,
                "requisition_code": requisition_code,
                "remaining": record.quantity,
            },
        )
        return record

    def use(self, type_id: UUID, quantity: int, actor_id: UUID) -> Inventory:
        """Consume ``quantity`` units; rejects when fewer remain."""
        self._catalog.require_mode(type_id, TrackingMode.CONSUMABLE)
        self._custody.require_employee(actor_id, "Acting employee")
        return self._ledger.consume(type_id, quantity, actor_id)
