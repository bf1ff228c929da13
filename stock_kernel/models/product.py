"""
Module: stock_kernel.models.product
Responsibility: ORM persistence for individually tracked ASSET units and
    their custody history.
Architecture position: Kernel > Models.  May import from db/ and
    domain/values.py only.

Invariants enforced:
    - productId is unique and never updated after insert.
    - ck_product_custody: status = 'ASSIGNED' exactly when currentOwner
      is set.  A failed transition can never persist a half-assigned unit.
    - price is non-negative.
    - Custody events are ordered by a per-product ``sequence`` and deleted
      together with their product.

Failure modes:
    - IntegrityError on duplicate productId or custody check violation.

Audit relevance:
    product_history answers "who held this unit, from when to when, and
    who handed it over or took it back".
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString
from stock_kernel.domain.values import ProductOrigin, ProductStatus

if TYPE_CHECKING:
    from stock_kernel.models.catalog import ItemType


class Product(TrackedBase):
    """One physical unit of an ASSET type."""

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("productId", name="uq_product_product_id"),
        CheckConstraint(
            "(status = 'ASSIGNED' AND \"currentOwner\" IS NOT NULL) OR "
            "(status <> 'ASSIGNED' AND \"currentOwner\" IS NULL)",
            name="ck_product_custody",
        ),
        CheckConstraint("price >= 0", name="ck_product_price"),
        Index("idx_product_type", "type"),
        Index("idx_product_owner", "currentOwner"),
    )

    # <TYPE_CODE><6-digit serial>, e.g. SPC000001
    product_id: Mapped[str] = mapped_column("productId", String(32), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str] = mapped_column(String(4000), nullable=False)

    type_id: Mapped[UUID] = mapped_column(
        "type",
        UUIDString(),
        ForeignKey("types.id"),
        nullable=False,
    )

    current_owner_id: Mapped[UUID | None] = mapped_column(
        "currentOwner",
        UUIDString(),
        ForeignKey("employees.id"),
        nullable=True,
    )

    status: Mapped[ProductStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ProductStatus.AVAILABLE.value,
    )

    origin: Mapped[ProductOrigin] = mapped_column(
        String(20),
        nullable=False,
        default=ProductOrigin.MANUAL_ENTRY.value,
    )

    requisition_id: Mapped[UUID | None] = mapped_column(
        "requisitionId",
        UUIDString(),
        ForeignKey("requisitions.id"),
        nullable=True,
    )

    price: Mapped[Decimal] = mapped_column(nullable=False)

    documents: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    item_type: Mapped["ItemType"] = relationship(foreign_keys=[type_id])

    custody_events: Mapped[list["CustodyEvent"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="CustodyEvent.sequence",
        lazy="selectin",
    )

    @property
    def is_assigned(self) -> bool:
        return self.status == ProductStatus.ASSIGNED

    def __repr__(self) -> str:
        return f"<Product {self.product_id} status={self.status}>"


class CustodyEvent(Base):
    """
    One custody period of a product.

    ``return_date`` stays NULL while the period is open.  An entry with
    no ``handover_date`` is a synthetic record written when a product was
    returned without an open period.
    """

    __tablename__ = "product_history"

    __table_args__ = (
        UniqueConstraint("product", "sequence", name="uq_product_history_sequence"),
        Index("idx_product_history_product", "product"),
    )

    product_id: Mapped[UUID] = mapped_column(
        "product",
        UUIDString(),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )

    sequence: Mapped[int] = mapped_column(nullable=False)

    employee_id: Mapped[UUID] = mapped_column(
        "employeeId",
        UUIDString(),
        nullable=False,
    )

    handover_date: Mapped[datetime | None] = mapped_column(
        "handoverDate",
        DateTime(timezone=True),
        nullable=True,
    )

    handed_over_by: Mapped[UUID | None] = mapped_column(
        "handOverBy",
        UUIDString(),
        nullable=True,
    )

    return_date: Mapped[datetime | None] = mapped_column(
        "returnDate",
        DateTime(timezone=True),
        nullable=True,
    )

    returned_by: Mapped[UUID | None] = mapped_column(
        "returnBy",
        UUIDString(),
        nullable=True,
    )

    product: Mapped[Product] = relationship(back_populates="custody_events")

    @property
    def is_open(self) -> bool:
        return self.return_date is None
