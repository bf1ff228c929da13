"""ORM models for the stock kernel."""

from stock_kernel.models.catalog import ItemType
from stock_kernel.models.employee import Employee, employee_assets
from stock_kernel.models.inventory import Inventory, InventoryMovement, inventory_products
from stock_kernel.models.product import CustodyEvent, Product
from stock_kernel.models.requisition import Requisition, RequisitionItem

__all__ = [
    "ItemType",
    "Employee",
    "employee_assets",
    "Inventory",
    "InventoryMovement",
    "inventory_products",
    "Product",
    "CustodyEvent",
    "Requisition",
    "RequisitionItem",
]
