"""
Requisition rules -- pure validation, totals and approval transitions.

Responsibility:
    Validates requisition line items, derives requisition-level totals
    from them, and decides which approval actions are legal from which
    status.  Also computes how many units of an item may still be added
    to inventory.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Totals are always sums over the items; never set independently.
    - A type appears at most once per requisition.
    - Approved/Rejected are terminal except Approved -> Rejected.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from stock_kernel.domain.values import RequisitionAction, RequisitionStatus
from stock_kernel.exceptions import RequisitionStateError, ValidationError

VALID_TRANSITIONS: dict[RequisitionStatus, frozenset[RequisitionStatus]] = {
    RequisitionStatus.REQUESTED: frozenset({
        RequisitionStatus.APPROVED,
        RequisitionStatus.REJECTED,
    }),
    RequisitionStatus.APPROVED: frozenset({RequisitionStatus.REJECTED}),
    RequisitionStatus.REJECTED: frozenset(),
}


@dataclass(frozen=True)
class ItemSpec:
    """Requested line item as supplied by the caller."""

    type_id: UUID
    vendor_id: UUID
    quantity_requested: int
    estimated_cost: Decimal = Decimal("0")
    description: str | None = None
    documents: tuple[str, ...] = ()
    # Only honoured on update; approval normally sets these.
    quantity_approved: int | None = None
    approved_cost: Decimal | None = None
    approved_vendor_id: UUID | None = None


@dataclass(frozen=True)
class ApprovalLine:
    """Approver's figures for one line, matched to items by position."""

    vendor_id: UUID | None
    quantity: int
    cost: Decimal = Decimal("0")
    documents: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RequisitionTotals:
    total_quantity_requested: int = 0
    total_estimated_cost: Decimal = Decimal("0")
    total_quantity_approved: int = 0
    total_approved_cost: Decimal = Decimal("0")


def validate_items(items: Sequence[ItemSpec]) -> None:
    """
    Reject an empty item list, missing type or vendor, non-positive
    requested quantity, negative costs and duplicate types.
    """
    if not items:
        raise ValidationError("At least one item is required", field="items")
    seen: set[UUID] = set()
    for item in items:
        if item.type_id is None:
            raise ValidationError("Type is required for every item", field="type")
        if item.type_id in seen:
            raise ValidationError(f"Duplicate item type found: {item.type_id}", field="type")
        if item.vendor_id is None:
            raise ValidationError("Vendor is required for every item", field="vendor")
        if not item.quantity_requested or item.quantity_requested <= 0:
            raise ValidationError(
                "Valid quantity requested is required for every item",
                field="quantityRequested",
            )
        if item.estimated_cost is not None and item.estimated_cost < 0:
            raise ValidationError("Estimated cost cannot be negative", field="estimatedCost")
        if item.quantity_approved is not None and item.quantity_approved < 0:
            raise ValidationError("Approved quantity cannot be negative", field="quantityApproved")
        seen.add(item.type_id)


def compute_totals(items: Iterable[Any]) -> RequisitionTotals:
    """Sum requested/approved quantities and costs over item rows."""
    total_qty_req = 0
    total_est = Decimal("0")
    total_qty_appr = 0
    total_appr = Decimal("0")
    for item in items:
        total_qty_req += item.quantity_requested or 0
        total_est += Decimal(item.estimated_cost or 0)
        total_qty_appr += item.quantity_approved or 0
        total_appr += Decimal(item.approved_cost or 0)
    return RequisitionTotals(total_qty_req, total_est, total_qty_appr, total_appr)


def check_action(
    requisition_ref: str,
    current: RequisitionStatus | str,
    action: RequisitionAction | str,
) -> RequisitionStatus:
    """
    Return the status an approval action leads to.

    Raises:
        ValidationError: If ``action`` is not a known action.
        RequisitionStateError: If the action is not allowed from ``current``.
    """
    try:
        target = RequisitionStatus(RequisitionAction(action).value)
    except ValueError:
        raise ValidationError(f"Unknown requisition action: {action}", field="action") from None
    current = RequisitionStatus(current)
    if target not in VALID_TRANSITIONS[current]:
        raise RequisitionStateError(requisition_ref, current.value, target.value)
    return target


def addable_quantity(quantity_approved: int, added_to_inventory: int) -> int:
    """Units that may still enter inventory for one item, never negative."""
    return max((quantity_approved or 0) - (added_to_inventory or 0), 0)
