"""
Module: stock_kernel.models.catalog
Responsibility: ORM persistence for item types, the catalog entries that
    decide how stock of a kind is tracked.
Architecture position: Kernel > Models.  May import from db/ and
    domain/values.py only.

Invariants enforced:
    - Type names are unique.
    - trackingMode is ASSET or CONSUMABLE and drives which ledger
      arithmetic applies to the type.

Audit relevance:
    Type CRUD is owned by the catalog administration surface; the kernel
    only reads types, so rows here change rarely.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString
from stock_kernel.domain.values import TrackingMode, TypeStatus


class ItemType(Base):
    """
    A catalog definition of an item kind.

    ``category_id`` references the external category catalog and carries
    no foreign key.
    """

    __tablename__ = "types"

    __table_args__ = (
        UniqueConstraint("name", name="uq_type_name"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    category_id: Mapped[UUID | None] = mapped_column(
        "categoryId",
        UUIDString(),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    logo: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    status: Mapped[TypeStatus] = mapped_column(
        String(20),
        nullable=False,
        default=TypeStatus.ACTIVE.value,
    )

    tracking_mode: Mapped[TrackingMode] = mapped_column(
        "trackingMode",
        String(20),
        nullable=False,
        default=TrackingMode.ASSET.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        "createdAt",
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    @property
    def is_asset(self) -> bool:
        return self.tracking_mode == TrackingMode.ASSET

    def __repr__(self) -> str:
        return f"<ItemType {self.name} ({self.tracking_mode})>"
