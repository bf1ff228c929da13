"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable snapshots of products, ledger records, movements and
    requisitions handed back across the orchestration boundary.  Callers
    never receive ORM entities, so nothing they do can leak writes into
    the session.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  InventorySelector builds these
    from ORM rows; domain logic never sees ORM rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from stock_kernel.domain.values import (
    MovementAction,
    ProductOrigin,
    ProductStatus,
    RequisitionStatus,
)


@dataclass(frozen=True)
class CustodyEventInfo:
    """One custody period of a product: handed over, later returned."""

    sequence: int
    employee_id: UUID
    handover_date: datetime | None
    handed_over_by: UUID | None
    return_date: datetime | None
    returned_by: UUID | None

    @property
    def is_open(self) -> bool:
        return self.return_date is None

    def event_date(self, fallback: datetime | None) -> datetime | None:
        """Date used to order history: handover, else return, else fallback."""
        return self.handover_date or self.return_date or fallback


@dataclass(frozen=True)
class ProductInfo:
    id: UUID
    product_id: str
    name: str
    description: str
    type_id: UUID
    price: Decimal
    status: ProductStatus
    current_owner_id: UUID | None
    origin: ProductOrigin
    requisition_id: UUID | None
    documents: tuple[str, ...] = ()
    history: tuple[CustodyEventInfo, ...] = ()
    created_at: datetime | None = None

    @property
    def is_assigned(self) -> bool:
        return self.status == ProductStatus.ASSIGNED


@dataclass(frozen=True)
class MovementInfo:
    """A stock ledger history entry."""

    sequence: int
    action: MovementAction
    quantity: int
    timestamp: datetime
    requisition_id: UUID | None
    user_id: UUID | None


@dataclass(frozen=True)
class LedgerInfo:
    """
    Per-type stock counters.

    ``quantity`` means total units ever added (less deletions) for ASSET
    types and remaining units for CONSUMABLE types.
    """

    id: UUID
    type_id: UUID
    quantity: int
    used_quantity: int
    unusable_quantity: int
    maintenance_quantity: int
    product_ids: tuple[UUID, ...] = ()

    @property
    def available_assets(self) -> int:
        """ASSET units neither assigned, unusable nor under maintenance."""
        return max(
            self.quantity - self.used_quantity
            - self.unusable_quantity - self.maintenance_quantity,
            0,
        )


@dataclass(frozen=True)
class RequisitionItemInfo:
    type_id: UUID
    vendor_id: UUID | None
    description: str | None
    quantity_requested: int
    estimated_cost: Decimal
    approved_vendor_id: UUID | None
    quantity_approved: int
    approved_cost: Decimal
    added_to_inventory: int
    documents: tuple[str, ...] = ()

    @property
    def addable(self) -> int:
        return max(self.quantity_approved - self.added_to_inventory, 0)


@dataclass(frozen=True)
class RequisitionInfo:
    id: UUID
    requisition_id: str
    title: str
    description: str | None
    status: RequisitionStatus
    requested_by: UUID | None
    items: tuple[RequisitionItemInfo, ...]
    total_quantity_requested: int
    total_estimated_cost: Decimal
    total_quantity_approved: int
    total_approved_cost: Decimal
    action_by: UUID | None = None
    action_date: datetime | None = None
    comments: str | None = None
    documents: tuple[str, ...] = ()

    def item_for(self, type_id: UUID) -> RequisitionItemInfo | None:
        for item in self.items:
            if item.type_id == type_id:
                return item
        return None
