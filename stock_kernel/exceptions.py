"""
Typed exception hierarchy for the stock kernel.

Every error carries a class-level ``code`` (machine-readable, API-safe) and
its context as attributes, so callers catch by type and report structured
data instead of parsing messages.

    StockKernelError (base)
    |
    +-- ValidationError                   -- malformed/missing input, no mutation
    |
    +-- NotFoundError
    |   +-- TypeNotFoundError
    |   +-- ProductNotFoundError
    |   +-- EmployeeNotFoundError
    |   +-- RequisitionNotFoundError
    |   +-- InventoryNotFoundError
    |
    +-- ConflictError
    |   +-- InvalidTransitionError
    |   +-- ProductAssignedError
    |   +-- ApprovedQuantityExceededError
    |   +-- InsufficientStockError
    |   +-- RequisitionNotApprovedError
    |   +-- RequisitionItemNotFoundError
    |   +-- RequisitionStateError
    |   +-- RequisitionInUseError
    |   +-- TrackingModeMismatchError
    |
    +-- IdentifierGenerationError
    |
    +-- InternalError                     -- storage failure, reported generically

Error codes
-----------

Category    | Code                          | When raised
------------|-------------------------------|-----------------------------------------
Validation  | VALIDATION_ERROR              | Bad reference id, missing field, bad value
Not found   | TYPE_NOT_FOUND                | Type id does not resolve
            | PRODUCT_NOT_FOUND             | Product id does not resolve
            | EMPLOYEE_NOT_FOUND            | Employee id does not resolve
            | REQUISITION_NOT_FOUND         | Requisition id/code does not resolve
            | INVENTORY_NOT_FOUND           | No ledger record for a type yet
Conflict    | INVALID_TRANSITION            | (prev, next) status pair not allowed
            | PRODUCT_ASSIGNED              | Delete/handover of an assigned product
            | APPROVED_QUANTITY_EXCEEDED    | addedToInventory would pass approved
            | INSUFFICIENT_STOCK            | Consuming more than remains
            | REQUISITION_NOT_APPROVED      | Adding stock from unapproved requisition
            | REQUISITION_ITEM_NOT_FOUND    | Type absent from requisition items
            | REQUISITION_STATE             | Approve/reject from a disallowed status
            | REQUISITION_IN_USE            | Deleting a requisition with added stock
            | TRACKING_MODE_MISMATCH        | Asset op on consumable type or vice versa
Identifier  | IDENTIFIER_GENERATION_FAILED  | Type behind a product id cannot be read
Internal    | INTERNAL_ERROR                | Storage failure
"""


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Validation


class ValidationError(StockKernelError):
    """Malformed or missing input; nothing was mutated."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


# Not found


class NotFoundError(StockKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class TypeNotFoundError(NotFoundError):
    """Type with given ID was not found."""

    code: str = "TYPE_NOT_FOUND"

    def __init__(self, type_id: str):
        self.type_id = type_id
        super().__init__(f"Type not found: {type_id}")


class ProductNotFoundError(NotFoundError):
    """Product with given ID was not found."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class EmployeeNotFoundError(NotFoundError):
    """Employee with given ID was not found."""

    code: str = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: str, role: str = "Employee"):
        self.employee_id = employee_id
        self.role = role
        super().__init__(f"{role} not found: {employee_id}")


class RequisitionNotFoundError(NotFoundError):
    """Requisition with given ID or requisitionID was not found."""

    code: str = "REQUISITION_NOT_FOUND"

    def __init__(self, requisition_ref: str):
        self.requisition_ref = requisition_ref
        super().__init__(f"Requisition not found: {requisition_ref}")


class InventoryNotFoundError(NotFoundError):
    """No stock ledger record exists for the type yet."""

    code: str = "INVENTORY_NOT_FOUND"

    def __init__(self, type_id: str):
        self.type_id = type_id
        super().__init__(f"Inventory not found for this type: {type_id}")


# Conflict


class ConflictError(StockKernelError):
    """Base exception for requests that contradict current state."""

    code: str = "CONFLICT"


class InvalidTransitionError(ConflictError):
    """The (previous, next) product status pair is not in the transition table."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, product_id: str, from_status: str, to_status: str, reason: str | None = None):
        self.product_id = product_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            reason or f"Cannot move product {product_id} from {from_status} to {to_status}"
        )


class ProductAssignedError(ConflictError):
    """Operation is not allowed while the product is assigned to an employee."""

    code: str = "PRODUCT_ASSIGNED"

    def __init__(self, product_id: str, message: str):
        self.product_id = product_id
        super().__init__(message)


class ApprovedQuantityExceededError(ConflictError):
    """Adding units would push addedToInventory above quantityApproved."""

    code: str = "APPROVED_QUANTITY_EXCEEDED"

    def __init__(self, requisition_ref: str, type_id: str, requested: int, addable: int):
        self.requisition_ref = requisition_ref
        self.type_id = type_id
        self.requested = requested
        self.addable = max(addable, 0)
        super().__init__(
            "Cannot add more items than approved quantity. "
            f"You able to add {self.addable} only."
        )


class InsufficientStockError(ConflictError):
    """Consumable stock would go below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, type_id: str, requested: int, available: int):
        self.type_id = type_id
        self.requested = requested
        self.available = available
        super().__init__("Not enough stock available")


class RequisitionNotApprovedError(ConflictError):
    """Stock may only be added from an approved requisition."""

    code: str = "REQUISITION_NOT_APPROVED"

    def __init__(self, requisition_ref: str, status: str):
        self.requisition_ref = requisition_ref
        self.status = status
        super().__init__("Requisition must be approved")


class RequisitionItemNotFoundError(ConflictError):
    """The type does not appear among the requisition's items."""

    code: str = "REQUISITION_ITEM_NOT_FOUND"

    def __init__(self, requisition_ref: str, type_id: str):
        self.requisition_ref = requisition_ref
        self.type_id = type_id
        super().__init__("Type not found in requisition items")


class RequisitionStateError(ConflictError):
    """Requisition action is not allowed from the current status."""

    code: str = "REQUISITION_STATE"

    def __init__(self, requisition_ref: str, status: str, action: str):
        self.requisition_ref = requisition_ref
        self.status = status
        self.action = action
        super().__init__(
            f"Requisition {requisition_ref} cannot be {action.lower()} from status {status}"
        )


class RequisitionInUseError(ConflictError):
    """Requisition has stock added against it and cannot be deleted."""

    code: str = "REQUISITION_IN_USE"

    def __init__(self, requisition_ref: str, added: int):
        self.requisition_ref = requisition_ref
        self.added = added
        super().__init__(
            f"Requisition {requisition_ref} has {added} item(s) added to inventory "
            "and cannot be deleted"
        )


class TrackingModeMismatchError(ConflictError):
    """An ASSET operation hit a CONSUMABLE type, or the reverse."""

    code: str = "TRACKING_MODE_MISMATCH"

    def __init__(self, type_id: str, expected: str, actual: str):
        self.type_id = type_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Type {type_id} is tracked as {actual}; this operation requires {expected}"
        )


# Identifier allocation


class IdentifierGenerationError(StockKernelError):
    """A product identifier could not be generated."""

    code: str = "IDENTIFIER_GENERATION_FAILED"

    def __init__(self, type_id: str):
        self.type_id = type_id
        super().__init__("Invalid product type: not found")


# Internal


class InternalError(StockKernelError):
    """Storage or unexpected failure, reported to callers generically."""

    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str = "Internal error"):
        super().__init__(message)
