"""
Stock Kernel

Inventory and product lifecycle engine with:
- Atomic per-partition identifier allocation
- Per-type stock ledger with append-only movement history
- Explicit product state machine (available / assigned / maintenance / unusable)
- Employee custody synchronization
- Requisition-gated fulfillment counters
- Single-transaction orchestration with rollback on failure
"""

__version__ = "0.1.0"
