"""
Product lifecycle state machine (``stock_kernel.domain.lifecycle``).

Responsibility
--------------
Declares, as data, every allowed product status change together with the
ledger counters it moves, the history action it records and what happens
to custody.  Services look transitions up here; they never branch on
status pairs themselves.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Any (previous, next) pair absent from ``TRANSITIONS`` is rejected with
  ``InvalidTransitionError``; nothing is silently skipped.
* A transition into ASSIGNED always sets an owner and a transition out of
  ASSIGNED always clears it, so ``status == ASSIGNED`` iff an owner exists.
* Handover is permitted only from AVAILABLE; deletion never from ASSIGNED.

Failure modes
-------------
* ``InvalidTransitionError`` for pairs outside the table and for handover
  of a MAINTENANCE or UNUSABLE product.
* ``ProductAssignedError`` for re-handover or deletion of an ASSIGNED
  product.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from stock_kernel.domain.values import CounterDelta, MovementAction, ProductStatus
from stock_kernel.exceptions import InvalidTransitionError, ProductAssignedError

AVAILABLE = ProductStatus.AVAILABLE
ASSIGNED = ProductStatus.ASSIGNED
MAINTENANCE = ProductStatus.MAINTENANCE
UNUSABLE = ProductStatus.UNUSABLE

INITIAL_STATUS = AVAILABLE


class CustodyEffect(str, Enum):
    """What a transition does to the product's current owner."""

    NONE = "none"
    SET_OWNER = "set_owner"
    CLEAR_OWNER = "clear_owner"
    MOVE_OWNER = "move_owner"


@dataclass(frozen=True)
class StatusTransition:
    """One row of the lifecycle table.

    ``action`` is None for transitions that move counters or custody
    without writing a ledger history entry.
    """

    from_status: ProductStatus
    to_status: ProductStatus
    delta: CounterDelta
    action: MovementAction | None
    custody: CustodyEffect

    @property
    def requires_owner(self) -> bool:
        return self.custody in (CustodyEffect.SET_OWNER, CustodyEffect.MOVE_OWNER)

    @property
    def key(self) -> tuple[ProductStatus, ProductStatus]:
        return (self.from_status, self.to_status)


def _t(
    from_status: ProductStatus,
    to_status: ProductStatus,
    delta: CounterDelta,
    action: MovementAction | None,
    custody: CustodyEffect = CustodyEffect.NONE,
) -> StatusTransition:
    return StatusTransition(from_status, to_status, delta, action, custody)


_ALL_TRANSITIONS: tuple[StatusTransition, ...] = (
    _t(AVAILABLE, ASSIGNED, CounterDelta(used=1), MovementAction.OUT, CustodyEffect.SET_OWNER),
    _t(ASSIGNED, AVAILABLE, CounterDelta(used=-1), MovementAction.IN, CustodyEffect.CLEAR_OWNER),
    _t(AVAILABLE, MAINTENANCE, CounterDelta(maintenance=1), MovementAction.OUT),
    _t(MAINTENANCE, AVAILABLE, CounterDelta(maintenance=-1), MovementAction.IN),
    # Moving an assigned unit into maintenance records no history entry.
    _t(
        ASSIGNED, MAINTENANCE,
        CounterDelta(used=-1, maintenance=1), None, CustodyEffect.CLEAR_OWNER,
    ),
    _t(
        MAINTENANCE, ASSIGNED,
        CounterDelta(used=1, maintenance=-1), MovementAction.OUT, CustodyEffect.SET_OWNER,
    ),
    _t(AVAILABLE, UNUSABLE, CounterDelta(unusable=1), MovementAction.DISBURST),
    _t(
        ASSIGNED, UNUSABLE,
        CounterDelta(used=-1, unusable=1), MovementAction.DISBURST, CustodyEffect.CLEAR_OWNER,
    ),
    _t(MAINTENANCE, UNUSABLE, CounterDelta(maintenance=-1, unusable=1), MovementAction.DISBURST),
    _t(UNUSABLE, AVAILABLE, CounterDelta(unusable=-1), MovementAction.IN),
    # Reassignment: custody moves between employees, counters stay put and
    # no ledger history is written.
    _t(ASSIGNED, ASSIGNED, CounterDelta(), None, CustodyEffect.MOVE_OWNER),
)

TRANSITIONS: dict[tuple[ProductStatus, ProductStatus], StatusTransition] = {
    t.key: t for t in _ALL_TRANSITIONS
}

# An explicit return records RETURN instead of the IN written by a plain
# status change back to AVAILABLE.
RETURN_TRANSITION = _t(
    ASSIGNED, AVAILABLE,
    CounterDelta(used=-1), MovementAction.RETURN, CustodyEffect.CLEAR_OWNER,
)

# Explanations for forbidden pairs callers are likely to try.
_REJECTION_REASONS: dict[tuple[ProductStatus, ProductStatus], str] = {
    (UNUSABLE, ASSIGNED): (
        "Cannot assign an UNUSABLE product; change it to AVAILABLE first"
    ),
    (UNUSABLE, MAINTENANCE): (
        "Product is unusable; move it to AVAILABLE before sending it to maintenance"
    ),
}


def resolve_transition(
    product_id: str,
    current: ProductStatus,
    requested: ProductStatus,
) -> StatusTransition | None:
    """
    Look up the transition from ``current`` to ``requested``.

    Returns None when the status does not change (other than ASSIGNED,
    whose self-transition is a reassignment and is decided by the owner).

    Raises:
        InvalidTransitionError: If the pair is not in the table.
    """
    current, requested = ProductStatus(current), ProductStatus(requested)
    if current == requested and current is not ASSIGNED:
        return None
    transition = TRANSITIONS.get((current, requested))
    if transition is None:
        raise InvalidTransitionError(
            product_id,
            current.value,
            requested.value,
            reason=_REJECTION_REASONS.get((current, requested)),
        )
    return transition


def check_handover(product_id: str, current: ProductStatus) -> StatusTransition:
    """
    Validate that a product may be handed over and return the
    AVAILABLE -> ASSIGNED transition.
    """
    current = ProductStatus(current)
    if current is ASSIGNED:
        raise ProductAssignedError(product_id, "Product is already assigned")
    if current is MAINTENANCE:
        raise InvalidTransitionError(
            product_id, current.value, ASSIGNED.value,
            reason="Product is under maintenance; return it to AVAILABLE before handover",
        )
    if current is UNUSABLE:
        raise InvalidTransitionError(
            product_id, current.value, ASSIGNED.value,
            reason="Product is unusable; return it to AVAILABLE before handover",
        )
    return TRANSITIONS[(AVAILABLE, ASSIGNED)]


def check_return(product_id: str, current: ProductStatus) -> StatusTransition:
    """Validate that a product may be returned and return the return transition."""
    current = ProductStatus(current)
    if current is not ASSIGNED:
        raise InvalidTransitionError(
            product_id, current.value, AVAILABLE.value,
            reason="Product is not currently assigned",
        )
    return RETURN_TRANSITION


def check_deletable(product_id: str, current: ProductStatus) -> None:
    """Deletion is allowed from every status except ASSIGNED."""
    current = ProductStatus(current)
    if current is ASSIGNED:
        raise ProductAssignedError(
            product_id, "Cannot delete an assigned product; return it first"
        )
