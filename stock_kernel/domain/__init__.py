"""Pure domain layer: values, rules and DTOs with zero I/O."""

from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.values import (
    CounterDelta,
    MovementAction,
    ProductOrigin,
    ProductStatus,
    RequisitionAction,
    RequisitionStatus,
    TrackingMode,
    TypeStatus,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "CounterDelta",
    "MovementAction",
    "ProductOrigin",
    "ProductStatus",
    "RequisitionAction",
    "RequisitionStatus",
    "TrackingMode",
    "TypeStatus",
]
