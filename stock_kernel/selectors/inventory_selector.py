"""
Module: stock_kernel.selectors.inventory_selector
Responsibility: Read-only queries over products, custody history, stock
    ledgers, held assets and requisitions, returned as frozen DTOs.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/dtos.py and selectors/base.py.

Invariants enforced:
    - Custody history is returned newest first, ordered by handover
      date, else return date, else the product's creation time.
    - Ledger history is returned in insertion (sequence) order.
    - Every read re-selects with ``populate_existing`` so counters moved
      by bulk UPDATEs in the same session are never served stale.

Failure modes:
    - Lookups return None for missing rows; raising is the caller's call.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import (
    CustodyEventInfo,
    LedgerInfo,
    MovementInfo,
    ProductInfo,
    RequisitionInfo,
    RequisitionItemInfo,
)
from stock_kernel.domain.values import (
    MovementAction,
    ProductOrigin,
    ProductStatus,
    RequisitionStatus,
)
from stock_kernel.models.employee import employee_assets
from stock_kernel.models.inventory import Inventory, InventoryMovement, inventory_products
from stock_kernel.models.product import CustodyEvent, Product
from stock_kernel.models.requisition import Requisition
from stock_kernel.selectors.base import BaseSelector

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _as_utc(value: datetime | None) -> datetime:
    # SQLite hands back naive values; they were written as UTC.
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class InventorySelector(BaseSelector[Product]):
    """Read access for the inventory kernel."""

    # =========================================================================
    # Products
    # =========================================================================

    def product(self, product_pk: UUID) -> ProductInfo | None:
        product = self._fresh(select(Product).where(Product.id == product_pk))
        return None if product is None else self.product_info(product)

    def product_by_code(self, product_code: str) -> ProductInfo | None:
        product = self._fresh(select(Product).where(Product.product_id == product_code))
        return None if product is None else self.product_info(product)

    def products_of_type(self, type_id: UUID) -> tuple[ProductInfo, ...]:
        products = self.session.execute(
            select(Product)
            .where(Product.type_id == type_id)
            .order_by(Product.product_id)
            .execution_options(populate_existing=True)
        ).scalars()
        return tuple(self.product_info(p) for p in products)

    def product_history(self, product_pk: UUID) -> tuple[CustodyEventInfo, ...] | None:
        """
        Custody history of a product, newest first.

        Returns None if the product does not exist.
        """
        product = self._fresh(select(Product).where(Product.id == product_pk))
        if product is None:
            return None
        events = self.session.execute(
            select(CustodyEvent)
            .where(CustodyEvent.product_id == product_pk)
            .execution_options(populate_existing=True)
        ).scalars()
        infos = [self.custody_info(event) for event in events]
        infos.sort(
            key=lambda e: (_as_utc(e.event_date(product.created_at)), e.sequence),
            reverse=True,
        )
        return tuple(infos)

    # =========================================================================
    # Ledger
    # =========================================================================

    def ledger(self, type_id: UUID) -> LedgerInfo | None:
        record = self._fresh(select(Inventory).where(Inventory.type_id == type_id))
        return None if record is None else self.ledger_info(record)

    def ledger_history(self, type_id: UUID) -> tuple[MovementInfo, ...]:
        movements = self.session.execute(
            select(InventoryMovement)
            .join(Inventory, Inventory.id == InventoryMovement.inventory_id)
            .where(Inventory.type_id == type_id)
            .order_by(InventoryMovement.sequence)
        ).scalars()
        return tuple(self.movement_info(m) for m in movements)

    def ledger_product_ids(self, inventory_pk: UUID) -> tuple[UUID, ...]:
        return tuple(
            self.session.execute(
                select(inventory_products.c.product)
                .where(inventory_products.c.inventory == inventory_pk)
                .order_by(inventory_products.c.product)
            ).scalars()
        )

    # =========================================================================
    # Custody
    # =========================================================================

    def held_asset_ids(self, employee_id: UUID) -> tuple[UUID, ...]:
        return tuple(
            self.session.execute(
                select(employee_assets.c.productId)
                .where(employee_assets.c.employeeId == employee_id)
                .order_by(employee_assets.c.productId)
            ).scalars()
        )

    def held_assets(self, employee_id: UUID) -> tuple[ProductInfo, ...]:
        products = self.session.execute(
            select(Product)
            .join(employee_assets, employee_assets.c.productId == Product.id)
            .where(employee_assets.c.employeeId == employee_id)
            .order_by(Product.product_id)
            .execution_options(populate_existing=True)
        ).scalars()
        return tuple(self.product_info(p) for p in products)

    # =========================================================================
    # Requisitions
    # =========================================================================

    def requisition(self, requisition_pk: UUID) -> RequisitionInfo | None:
        requisition = self._fresh(select(Requisition).where(Requisition.id == requisition_pk))
        return None if requisition is None else self.requisition_info(requisition)

    def requisition_by_code(self, requisition_code: str) -> RequisitionInfo | None:
        requisition = self._fresh(
            select(Requisition).where(Requisition.requisition_id == requisition_code)
        )
        return None if requisition is None else self.requisition_info(requisition)

    # =========================================================================
    # DTO conversion
    # =========================================================================

    def _fresh(self, stmt):
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    @staticmethod
    def custody_info(event: CustodyEvent) -> CustodyEventInfo:
        return CustodyEventInfo(
            sequence=event.sequence,
            employee_id=event.employee_id,
            handover_date=event.handover_date,
            handed_over_by=event.handed_over_by,
            return_date=event.return_date,
            returned_by=event.returned_by,
        )

    def product_info(self, product: Product) -> ProductInfo:
        return ProductInfo(
            id=product.id,
            product_id=product.product_id,
            name=product.name,
            description=product.description,
            type_id=product.type_id,
            price=Decimal(product.price),
            status=ProductStatus(product.status),
            current_owner_id=product.current_owner_id,
            origin=ProductOrigin(product.origin),
            requisition_id=product.requisition_id,
            documents=tuple(product.documents or ()),
            history=tuple(self.custody_info(e) for e in product.custody_events),
            created_at=product.created_at,
        )

    def ledger_info(self, record: Inventory) -> LedgerInfo:
        return LedgerInfo(
            id=record.id,
            type_id=record.type_id,
            quantity=record.quantity,
            used_quantity=record.used_quantity,
            unusable_quantity=record.unusable_quantity,
            maintenance_quantity=record.maintenance_quantity,
            product_ids=self.ledger_product_ids(record.id),
        )

    @staticmethod
    def movement_info(movement: InventoryMovement) -> MovementInfo:
        return MovementInfo(
            sequence=movement.sequence,
            action=MovementAction(movement.action),
            quantity=movement.quantity,
            timestamp=movement.timestamp,
            requisition_id=movement.requisition_id,
            user_id=movement.user_id,
        )

    @staticmethod
    def requisition_info(requisition: Requisition) -> RequisitionInfo:
        return RequisitionInfo(
            id=requisition.id,
            requisition_id=requisition.requisition_id,
            title=requisition.title,
            description=requisition.description,
            status=RequisitionStatus(requisition.status),
            requested_by=requisition.requested_by,
            items=tuple(
                RequisitionItemInfo(
                    type_id=item.type_id,
                    vendor_id=item.vendor_id,
                    description=item.description,
                    quantity_requested=item.quantity_requested,
                    estimated_cost=Decimal(item.estimated_cost),
                    approved_vendor_id=item.approved_vendor_id,
                    quantity_approved=item.quantity_approved,
                    approved_cost=Decimal(item.approved_cost),
                    added_to_inventory=item.added_to_inventory,
                    documents=tuple(item.documents or ()),
                )
                for item in requisition.items
            ),
            total_quantity_requested=requisition.total_quantity_requested,
            total_estimated_cost=Decimal(requisition.total_estimated_cost),
            total_quantity_approved=requisition.total_quantity_approved,
            total_approved_cost=Decimal(requisition.total_approved_cost),
            action_by=requisition.action_by,
            action_date=requisition.action_date,
            comments=requisition.comments,
            documents=tuple(requisition.documents or ()),
        )
