"""
Module: stock_kernel.models.inventory
Responsibility: ORM persistence for the stock ledger: one counter record
    per type, its append-only movement history and its product list.
Architecture position: Kernel > Models.  May import from db/ and
    domain/values.py only.

Invariants enforced:
    - uq_inventory_type: exactly one ledger record per type.
    - Counter check constraints: no counter is ever negative.
    - Movements are append-only and ordered by a ``sequence`` that is
      monotonic per ledger record.
    - inventory_products has a composite primary key, so a product is
      listed at most once.

Failure modes:
    - IntegrityError if a counter update would go negative.  StockLedgerService
      clamps every delta inside the UPDATE, so this signals a bypass.

Audit relevance:
    inventory_history is the movement audit trail: every receipt,
    consumption, handover, return, write-off and deletion of stock.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString
from stock_kernel.domain.values import MovementAction

inventory_products = Table(
    "inventory_products",
    Base.metadata,
    Column(
        "inventory",
        UUIDString(),
        ForeignKey("inventories.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "product",
        UUIDString(),
        ForeignKey("products.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Inventory(TrackedBase):
    """
    Stock ledger record for one type.

    ``quantity`` is total units ever added (less deletions) for ASSET
    types and remaining units for CONSUMABLE types.
    """

    __tablename__ = "inventories"

    __table_args__ = (
        UniqueConstraint("type", name="uq_inventory_type"),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity"),
        CheckConstraint('"usedQuantity" >= 0', name="ck_inventory_used"),
        CheckConstraint('"unUseableQuantity" >= 0', name="ck_inventory_unusable"),
        CheckConstraint(
            '"underMaintenanceQuantity" >= 0', name="ck_inventory_maintenance"
        ),
    )

    type_id: Mapped[UUID] = mapped_column(
        "type",
        UUIDString(),
        ForeignKey("types.id"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(nullable=False, default=0)

    used_quantity: Mapped[int] = mapped_column("usedQuantity", nullable=False, default=0)

    unusable_quantity: Mapped[int] = mapped_column(
        "unUseableQuantity", nullable=False, default=0
    )

    maintenance_quantity: Mapped[int] = mapped_column(
        "underMaintenanceQuantity", nullable=False, default=0
    )

    movements: Mapped[list["InventoryMovement"]] = relationship(
        order_by="InventoryMovement.sequence",
        viewonly=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Inventory type={self.type_id} qty={self.quantity} "
            f"used={self.used_quantity} unusable={self.unusable_quantity} "
            f"maintenance={self.maintenance_quantity}>"
        )


class InventoryMovement(Base):
    """One append-only stock ledger history entry."""

    __tablename__ = "inventory_history"

    __table_args__ = (
        UniqueConstraint("inventory", "sequence", name="uq_inventory_history_sequence"),
        CheckConstraint("quantity >= 0", name="ck_inventory_history_quantity"),
        Index("idx_inventory_history_inventory", "inventory"),
    )

    inventory_id: Mapped[UUID] = mapped_column(
        "inventory",
        UUIDString(),
        ForeignKey("inventories.id"),
        nullable=False,
    )

    sequence: Mapped[int] = mapped_column(nullable=False)

    action: Mapped[MovementAction] = mapped_column(String(10), nullable=False)

    quantity: Mapped[int] = mapped_column(nullable=False, default=0)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Audit reference only; a requisition may later be deleted
    requisition_id: Mapped[UUID | None] = mapped_column(
        "requisitionId",
        UUIDString(),
        nullable=True,
    )

    user_id: Mapped[UUID | None] = mapped_column(
        "user",
        UUIDString(),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<InventoryMovement #{self.sequence} {self.action} x{self.quantity}>"
