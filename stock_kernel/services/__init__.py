"""
Kernel services.

Every service except InventoryOrchestrator is flush-only; the
orchestrator owns commit and rollback.
"""

from stock_kernel.services.base import BaseService
from stock_kernel.services.catalog_service import CatalogService
from stock_kernel.services.consumable_service import ConsumableStockService
from stock_kernel.services.custody_service import CustodyService
from stock_kernel.services.identifier_service import IdentifierService
from stock_kernel.services.inventory_orchestrator import (
    InventoryOrchestrator,
    OperationResult,
    OperationStatus,
)
from stock_kernel.services.product_lifecycle import ProductDraft, ProductLifecycleService
from stock_kernel.services.requisition_service import RequisitionService
from stock_kernel.services.sequence_service import SequenceCounter, SequenceService
from stock_kernel.services.stock_ledger import StockLedgerService

__all__ = [
    "BaseService",
    "CatalogService",
    "ConsumableStockService",
    "CustodyService",
    "IdentifierService",
    "InventoryOrchestrator",
    "OperationResult",
    "OperationStatus",
    "ProductDraft",
    "ProductLifecycleService",
    "RequisitionService",
    "SequenceCounter",
    "SequenceService",
    "StockLedgerService",
]
