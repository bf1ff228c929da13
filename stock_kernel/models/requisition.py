"""
Module: stock_kernel.models.requisition
Responsibility: ORM persistence for requisitions and their line items,
    including the per-item fulfillment counter.
Architecture position: Kernel > Models.  May import from db/ and
    domain/values.py only.

Invariants enforced:
    - requisitionID is unique and immutable after insert.
    - uq_requisition_item_type: a type appears at most once per requisition.
    - ck_requisition_item_fulfillment: addedToInventory never exceeds
      quantityApproved and is never negative.
    - Items are ordered by ``position``; approval matches lines by it.

Failure modes:
    - IntegrityError on duplicate requisitionID, duplicate type, or a
      fulfillment counter overflow.

Audit relevance:
    actionBy/actionDate/comments record who approved or rejected a
    requisition and when; addedToInventory shows how much of each
    approved line has entered stock.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString
from stock_kernel.domain.values import RequisitionStatus


class Requisition(TrackedBase):
    """An approval-gated purchase request."""

    __tablename__ = "requisitions"

    __table_args__ = (
        UniqueConstraint("requisitionID", name="uq_requisition_requisition_id"),
        Index("idx_requisition_status", "status"),
    )

    # REQ + MM + yy + 6-digit sequence, e.g. REQ0825000001
    requisition_id: Mapped[str] = mapped_column("requisitionID", String(32), nullable=False)

    title: Mapped[str] = mapped_column("requisitionTitle", String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    status: Mapped[RequisitionStatus] = mapped_column(
        String(20),
        nullable=False,
        default=RequisitionStatus.REQUESTED.value,
    )

    requested_by: Mapped[UUID] = mapped_column(
        "requestedBy",
        UUIDString(),
        ForeignKey("employees.id"),
        nullable=False,
    )

    action_by: Mapped[UUID | None] = mapped_column(
        "actionBy",
        UUIDString(),
        ForeignKey("employees.id"),
        nullable=True,
    )

    action_date: Mapped[datetime | None] = mapped_column(
        "actionDate",
        DateTime(timezone=True),
        nullable=True,
    )

    comments: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    documents: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    total_quantity_requested: Mapped[int] = mapped_column(
        "totalQuantityRequested", nullable=False, default=0
    )

    total_estimated_cost: Mapped[Decimal] = mapped_column(
        "totalEstimatedCost", nullable=False, default=Decimal("0")
    )

    total_quantity_approved: Mapped[int] = mapped_column(
        "totalQuantityApproved", nullable=False, default=0
    )

    total_approved_cost: Mapped[Decimal] = mapped_column(
        "totalApprovedCost", nullable=False, default=Decimal("0")
    )

    items: Mapped[list["RequisitionItem"]] = relationship(
        back_populates="requisition",
        cascade="all, delete-orphan",
        order_by="RequisitionItem.position",
        lazy="selectin",
    )

    def item_for(self, type_id: UUID) -> "RequisitionItem | None":
        for item in self.items:
            if item.type_id == type_id:
                return item
        return None

    def __repr__(self) -> str:
        return f"<Requisition {self.requisition_id} status={self.status}>"


class RequisitionItem(Base):
    """One requisition line: a type, its vendor and its counters."""

    __tablename__ = "requisition_items"

    __table_args__ = (
        UniqueConstraint("requisition", "type", name="uq_requisition_item_type"),
        CheckConstraint(
            '"addedToInventory" >= 0 AND "addedToInventory" <= "quantityApproved"',
            name="ck_requisition_item_fulfillment",
        ),
        CheckConstraint('"quantityRequested" > 0', name="ck_requisition_item_requested"),
    )

    requisition_pk: Mapped[UUID] = mapped_column(
        "requisition",
        UUIDString(),
        ForeignKey("requisitions.id", ondelete="CASCADE"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    type_id: Mapped[UUID] = mapped_column(
        "type",
        UUIDString(),
        ForeignKey("types.id"),
        nullable=False,
    )

    # Vendors live in an external catalog; no foreign key.
    vendor_id: Mapped[UUID | None] = mapped_column("vendor", UUIDString(), nullable=True)

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    quantity_requested: Mapped[int] = mapped_column("quantityRequested", nullable=False)

    estimated_cost: Mapped[Decimal] = mapped_column(
        "estimatedCost", nullable=False, default=Decimal("0")
    )

    approved_vendor_id: Mapped[UUID | None] = mapped_column(
        "approvedVendor", UUIDString(), nullable=True
    )

    quantity_approved: Mapped[int] = mapped_column(
        "quantityApproved", nullable=False, default=0
    )

    approved_cost: Mapped[Decimal] = mapped_column(
        "approvedCost", nullable=False, default=Decimal("0")
    )

    added_to_inventory: Mapped[int] = mapped_column(
        "addedToInventory", nullable=False, default=0
    )

    documents: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    requisition: Mapped[Requisition] = relationship(back_populates="items")

    @property
    def addable(self) -> int:
        return max(self.quantity_approved - self.added_to_inventory, 0)
