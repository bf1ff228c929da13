"""Read-only queries over products, ledgers, custody and requisitions."""

from stock_kernel.selectors.base import BaseSelector
from stock_kernel.selectors.inventory_selector import InventorySelector

__all__ = [
    "BaseSelector",
    "InventorySelector",
]
