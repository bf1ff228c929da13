"""
Kernel Invariants Contract.

These invariants are structural law. They hold after every boundary
operation regardless of configuration or caller.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across the product lifecycle service, the
stock ledger, the requisition service, the sequence service and the
database check constraints.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    CUSTODY_CONSISTENCY = "custody_consistency"
    """A product is ASSIGNED exactly when it has a current owner, and the
    owner's held-asset set contains it. Enforced by ProductLifecycleService,
    CustodyService and the products check constraint."""

    NON_NEGATIVE_COUNTERS = "non_negative_counters"
    """Ledger counters never go below zero. Deltas are clamped inside a
    single UPDATE by StockLedgerService; check constraints back it up."""

    ASSET_CONSERVATION = "asset_conservation"
    """For ASSET types, quantity >= used + unusable + maintenance."""

    FULFILLMENT_CEILING = "fulfillment_ceiling"
    """addedToInventory never exceeds quantityApproved on any requisition
    item. Enforced by a conditional UPDATE in RequisitionService."""

    IDENTIFIER_MONOTONICITY = "identifier_monotonicity"
    """Serials per partition key are allocated by an atomic
    increment-and-read, never by scanning for a maximum."""

    ATOMIC_TRANSITION = "atomic_transition"
    """Product, ledger, custody and requisition writes of one boundary
    operation commit together or not at all. Enforced by
    InventoryOrchestrator."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The pure domain layer may not import from these packages.
# This is enforced by tests/architecture/test_layering.py.
FORBIDDEN_DOMAIN_IMPORTS: tuple[str, ...] = (
    "sqlalchemy",
    "stock_kernel.db",
    "stock_kernel.models",
    "stock_kernel.services",
    "stock_kernel.selectors",
)
