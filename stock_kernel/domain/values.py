"""
Value objects and enums for the stock kernel.

Responsibility:
    Names every persisted enum value (tracking modes, product statuses,
    movement actions, requisition statuses) exactly as stored, and the
    CounterDelta value object that describes a change to the four ledger
    counters.

Architecture position:
    Kernel > Domain -- pure values, zero I/O.

Invariants enforced:
    - Enum values are the persisted wire values; they never change.
    - CounterDelta is immutable and composable with ``+``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TrackingMode(str, Enum):
    """How a Type is counted: individually (ASSET) or in bulk (CONSUMABLE)."""

    ASSET = "ASSET"
    CONSUMABLE = "CONSUMABLE"


class TypeStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class ProductStatus(str, Enum):
    """Lifecycle status of one ASSET unit."""

    AVAILABLE = "AVAILABLE"
    ASSIGNED = "ASSIGNED"
    MAINTENANCE = "MAINTENANCE"
    UNUSABLE = "UNUSABLE"


class ProductOrigin(str, Enum):
    REQUISITION = "Requisition"
    MANUAL_ENTRY = "Manual Entry"


class MovementAction(str, Enum):
    """Action recorded on a stock ledger history entry."""

    IN = "IN"
    USED = "USED"
    OUT = "OUT"
    RETURN = "RETURN"
    DISBURST = "DISBURST"
    DELETED = "DELETED"


class RequisitionStatus(str, Enum):
    REQUESTED = "Requested"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class RequisitionAction(str, Enum):
    """Actions an approver may take; each maps onto a target status."""

    APPROVE = "Approved"
    REJECT = "Rejected"


@dataclass(frozen=True)
class CounterDelta:
    """
    Signed change to the four counters of a stock ledger record.

    Deltas are applied by the ledger with each counter floored at zero.
    """

    quantity: int = 0
    used: int = 0
    unusable: int = 0
    maintenance: int = 0

    def __add__(self, other: CounterDelta) -> CounterDelta:
        return CounterDelta(
            quantity=self.quantity + other.quantity,
            used=self.used + other.used,
            unusable=self.unusable + other.unusable,
            maintenance=self.maintenance + other.maintenance,
        )

    def __neg__(self) -> CounterDelta:
        return CounterDelta(-self.quantity, -self.used, -self.unusable, -self.maintenance)

    def scaled(self, n: int) -> CounterDelta:
        return CounterDelta(
            self.quantity * n, self.used * n, self.unusable * n, self.maintenance * n
        )

    @property
    def is_zero(self) -> bool:
        return not (self.quantity or self.used or self.unusable or self.maintenance)

    @classmethod
    def for_status(cls, status: ProductStatus, n: int = 1) -> CounterDelta:
        """Delta that adds ``n`` to the counter tracking ``status``.

        AVAILABLE has no counter of its own, so its delta is zero.
        """
        if status is ProductStatus.ASSIGNED:
            return cls(used=n)
        if status is ProductStatus.UNUSABLE:
            return cls(unusable=n)
        if status is ProductStatus.MAINTENANCE:
            return cls(maintenance=n)
        return cls()


# Counter changes implied by a ledger action of one unit when the caller does
# not supply an explicit delta. DISBURST and DELETED depend on the product's
# status and therefore have no default.
DEFAULT_ACTION_DELTAS: dict[MovementAction, CounterDelta] = {
    MovementAction.IN: CounterDelta(quantity=1),
    MovementAction.USED: CounterDelta(quantity=-1, used=1),
    MovementAction.OUT: CounterDelta(used=1),
    MovementAction.RETURN: CounterDelta(used=-1),
}
