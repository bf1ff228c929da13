"""
InventoryOrchestrator -- the kernel's boundary and transaction owner.

Responsibility:
    Exposes every boundary operation (product creation, status updates,
    handover/return, deletion, consumable receipts and consumption,
    requisition lifecycle, reads) and runs each one as a single unit of
    work over the flush-only kernel services.

Architecture position:
    Kernel > Services -- imperative shell, owns transaction boundaries.
    The only module that calls ``session.commit()`` or
    ``session.rollback()``.

Operation flow:
    1. Bind correlation/actor/operation fields to the log context.
    2. Run the operation against the services (all writes flushed).
    3. Build the result DTO from fresh reads.
    4. Commit; on any failure roll back every write of the operation.
    5. Convert the outcome into an ``OperationResult``.

Invariants enforced:
    Atomic transition -- a product row, its ledger record, custody sets,
        requisition counters and sequence counters change together or
        not at all.  A failure partway never leaves partial state.
    No retries -- allocation races are settled by atomic counters.

Failure modes:
    - validation_failed: ValidationError, IdentifierGenerationError.
    - not_found: NotFoundError family.
    - conflict: ConflictError family.
    - internal_error: anything else, logged with its traceback and
      reported with a generic message.

Audit relevance:
    Every invocation logs ``inventory_operation_started`` and either
    ``inventory_operation_completed`` or ``inventory_operation_failed``
    with the status, error code and duration.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from stock_kernel.config import KernelConfig
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import (
    CustodyEventInfo,
    LedgerInfo,
    MovementInfo,
    ProductInfo,
    RequisitionInfo,
)
from stock_kernel.domain.requisition import ApprovalLine, ItemSpec
from stock_kernel.domain.values import ProductStatus, RequisitionAction
from stock_kernel.exceptions import (
    ConflictError,
    IdentifierGenerationError,
    InventoryNotFoundError,
    NotFoundError,
    ProductNotFoundError,
    RequisitionNotFoundError,
    StockKernelError,
    ValidationError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.selectors.inventory_selector import InventorySelector
from stock_kernel.services.catalog_service import CatalogService
from stock_kernel.services.consumable_service import ConsumableStockService
from stock_kernel.services.custody_service import CustodyService
from stock_kernel.services.identifier_service import IdentifierService
from stock_kernel.services.product_lifecycle import ProductDraft, ProductLifecycleService
from stock_kernel.services.requisition_service import RequisitionService
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.stock_ledger import StockLedgerService

logger = get_logger("services.inventory_orchestrator")

T = TypeVar("T")

GENERIC_FAILURE_MESSAGE = "Internal error"


class OperationStatus(str, Enum):
    """Outcome category of a boundary operation."""

    SUCCESS = "success"
    VALIDATION_FAILED = "validation_failed"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Structured success/failure indicator returned by every operation."""

    status: OperationStatus
    data: T | None = None
    code: str | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status is OperationStatus.SUCCESS

    @classmethod
    def ok(cls, data: T | None = None) -> OperationResult[T]:
        return cls(status=OperationStatus.SUCCESS, data=data)

    @classmethod
    def from_error(cls, exc: StockKernelError) -> OperationResult[T]:
        status = classify_error(exc)
        message = str(exc) if status is not OperationStatus.INTERNAL_ERROR else GENERIC_FAILURE_MESSAGE
        return cls(status=status, code=exc.code, message=message)

    @classmethod
    def internal_error(cls) -> OperationResult[T]:
        return cls(
            status=OperationStatus.INTERNAL_ERROR,
            code="INTERNAL_ERROR",
            message=GENERIC_FAILURE_MESSAGE,
        )


def classify_error(exc: StockKernelError) -> OperationStatus:
    if isinstance(exc, (ValidationError, IdentifierGenerationError)):
        return OperationStatus.VALIDATION_FAILED
    if isinstance(exc, NotFoundError):
        return OperationStatus.NOT_FOUND
    if isinstance(exc, ConflictError):
        return OperationStatus.CONFLICT
    return OperationStatus.INTERNAL_ERROR


class InventoryOrchestrator:
    """
    Boundary operations of the inventory kernel.

    Contract:
        Every public method returns an ``OperationResult``; none raises
        for a domain failure.  With ``auto_commit=True`` (default) each
        call commits on success and rolls back on failure.  With
        ``auto_commit=False`` the caller owns the transaction; failures
        still leave the session for the caller to roll back.

    Usage:
        orchestrator = InventoryOrchestrator(session, clock)
        result = orchestrator.hand_over_product(product_pk, employee_id, manager_id)
        if result.is_success:
            print(result.data.status)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        config: KernelConfig | None = None,
        auto_commit: bool = True,
        correlation_id: str | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or KernelConfig.with_defaults()
        self._auto_commit = auto_commit
        self._correlation_id = correlation_id

        sequences = SequenceService(session)
        self._identifiers = IdentifierService(
            session,
            self._clock,
            requisition_timezone=self._config.requisition_timezone,
            serial_width=self._config.serial_width,
            sequence_service=sequences,
        )
        self._ledger = StockLedgerService(session, self._clock, sequences)
        self._custody = CustodyService(session, self._clock)
        self._catalog = CatalogService(session, self._clock)
        self._requisitions = RequisitionService(session, self._clock, self._identifiers)
        self._products = ProductLifecycleService(
            session,
            self._clock,
            identifier_service=self._identifiers,
            ledger=self._ledger,
            custody=self._custody,
            requisitions=self._requisitions,
            catalog=self._catalog,
            sequence_service=sequences,
        )
        self._consumables = ConsumableStockService(
            session,
            self._clock,
            ledger=self._ledger,
            requisitions=self._requisitions,
            catalog=self._catalog,
            custody=self._custody,
        )
        self._selector = InventorySelector(session)

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock

    # =========================================================================
    # Products
    # =========================================================================

    def create_product(
        self,
        type_id: UUID,
        name: str,
        description: str,
        price: Decimal,
        acting_employee_id: UUID,
        *,
        requisition_code: str | None = None,
        documents: Sequence[str] = (),
    ) -> OperationResult[ProductInfo]:
        """Create one product, optionally against an approved requisition."""

        def op() -> ProductInfo:
            draft = ProductDraft(name, description, price, tuple(documents))
            (product,) = self._products.create_products(
                type_id, [draft], acting_employee_id, requisition_code=requisition_code,
            )
            return self._selector.product_info(product)

        return self._run(
            "create_product", op,
            actor_id=acting_employee_id, type_id=type_id, requisition_id=requisition_code,
        )

    def create_bulk_products(
        self,
        type_id: UUID,
        quantity: int,
        products: Sequence[ProductDraft],
        acting_employee_id: UUID,
        *,
        requisition_code: str | None = None,
    ) -> OperationResult[tuple[ProductInfo, ...]]:
        """
        Create ``quantity`` products in one unit of work.

        ``quantity`` must equal ``len(products)``; the requisition ceiling
        is checked against the whole batch.
        """

        def op() -> tuple[ProductInfo, ...]:
            if quantity is None or quantity <= 0:
                raise ValidationError("Quantity must be a positive number", field="quantity")
            if quantity != len(products):
                raise ValidationError(
                    "Quantity must match the number of products", field="quantity",
                )
            created = self._products.create_products(
                type_id, products, acting_employee_id, requisition_code=requisition_code,
            )
            return tuple(self._selector.product_info(p) for p in created)

        return self._run(
            "create_bulk_products", op,
            actor_id=acting_employee_id, type_id=type_id, requisition_id=requisition_code,
        )

    def update_product(
        self,
        product_pk: UUID,
        acting_employee_id: UUID,
        *,
        status: ProductStatus | str | None = None,
        current_owner: UUID | None = None,
        name: str | None = None,
        description: str | None = None,
        price: Decimal | None = None,
        documents: Sequence[str] | None = None,
    ) -> OperationResult[ProductInfo]:
        def op() -> ProductInfo:
            product = self._products.update_product(
                product_pk,
                acting_employee_id,
                status=status,
                owner_id=current_owner,
                name=name,
                description=description,
                price=price,
                documents=documents,
            )
            return self._selector.product_info(product)

        return self._run(
            "update_product", op, actor_id=acting_employee_id, product_id=product_pk,
        )

    def update_product_status(
        self,
        product_pk: UUID,
        next_status: ProductStatus | str,
        acting_employee_id: UUID,
        current_owner: UUID | None = None,
    ) -> OperationResult[ProductInfo]:
        """Status-only form of ``update_product``."""
        return self.update_product(
            product_pk, acting_employee_id, status=next_status, current_owner=current_owner,
        )

    def delete_product(self, product_pk: UUID, acting_employee_id: UUID) -> OperationResult[None]:
        def op() -> None:
            self._products.delete(product_pk, acting_employee_id)

        return self._run(
            "delete_product", op, actor_id=acting_employee_id, product_id=product_pk,
        )

    def hand_over_product(
        self,
        product_pk: UUID,
        employee_id: UUID,
        handed_over_by: UUID,
    ) -> OperationResult[ProductInfo]:
        def op() -> ProductInfo:
            product = self._products.hand_over(product_pk, employee_id, handed_over_by)
            return self._selector.product_info(product)

        return self._run(
            "hand_over_product", op, actor_id=handed_over_by, product_id=product_pk,
        )

    def return_product(self, product_pk: UUID, returned_by: UUID) -> OperationResult[ProductInfo]:
        def op() -> ProductInfo:
            product = self._products.return_product(product_pk, returned_by)
            return self._selector.product_info(product)

        return self._run("return_product", op, actor_id=returned_by, product_id=product_pk)

    # =========================================================================
    # Consumables
    # =========================================================================

    def add_consumable_stock(
        self,
        type_id: UUID,
        quantity: int,
        acting_employee_id: UUID,
        requisition_code: str | None = None,
    ) -> OperationResult[LedgerInfo]:
        def op() -> LedgerInfo:
            record = self._consumables.add_stock(
                type_id, quantity, acting_employee_id, requisition_code=requisition_code,
            )
            return self._selector.ledger_info(record)

        return self._run(
            "add_consumable_stock", op,
            actor_id=acting_employee_id, type_id=type_id, requisition_id=requisition_code,
        )

    def use_consumable(
        self,
        type_id: UUID,
        quantity: int,
        acting_employee_id: UUID,
    ) -> OperationResult[LedgerInfo]:
        def op() -> LedgerInfo:
            record = self._consumables.use(type_id, quantity, acting_employee_id)
            return self._selector.ledger_info(record)

        return self._run("use_consumable", op, actor_id=acting_employee_id, type_id=type_id)

    # =========================================================================
    # Requisitions
    # =========================================================================

    def create_requisition(
        self,
        title: str,
        items: Sequence[ItemSpec],
        requested_by: UUID,
        *,
        description: str | None = None,
        documents: Sequence[str] = (),
    ) -> OperationResult[RequisitionInfo]:
        def op() -> RequisitionInfo:
            self._custody.require_employee(requested_by, "Requesting employee")
            for item in items or ():
                if item.type_id is not None:
                    self._catalog.require_type(item.type_id)
            requisition = self._requisitions.create(
                title, items, requested_by, description=description, documents=documents,
            )
            return self._selector.requisition_info(requisition)

        return self._run("create_requisition", op, actor_id=requested_by)

    def update_requisition(
        self,
        requisition_pk: UUID,
        acting_employee_id: UUID,
        *,
        title: str | None = None,
        description: str | None = None,
        items: Sequence[ItemSpec] | None = None,
        documents: Sequence[str] | None = None,
    ) -> OperationResult[RequisitionInfo]:
        def op() -> RequisitionInfo:
            self._custody.require_employee(acting_employee_id, "Acting employee")
            for item in items or ():
                if item.type_id is not None:
                    self._catalog.require_type(item.type_id)
            requisition = self._requisitions.update(
                requisition_pk,
                acting_employee_id,
                title=title,
                description=description,
                items=items,
                documents=documents,
            )
            return self._selector.requisition_info(requisition)

        return self._run(
            "update_requisition", op,
            actor_id=acting_employee_id, requisition_id=requisition_pk,
        )

    def act_on_requisition(
        self,
        requisition_pk: UUID,
        action: RequisitionAction | str,
        action_by: UUID,
        *,
        comments: str | None = None,
        lines: Sequence[ApprovalLine] | None = None,
        documents: Sequence[str] | None = None,
    ) -> OperationResult[RequisitionInfo]:
        """Approve or reject a requisition."""

        def op() -> RequisitionInfo:
            self._custody.require_employee(action_by, "Approving employee")
            requisition = self._requisitions.act(
                requisition_pk,
                action,
                action_by,
                comments=comments,
                lines=lines,
                documents=documents,
            )
            return self._selector.requisition_info(requisition)

        return self._run(
            "act_on_requisition", op, actor_id=action_by, requisition_id=requisition_pk,
        )

    def delete_requisition(self, requisition_pk: UUID) -> OperationResult[None]:
        def op() -> None:
            self._requisitions.delete(requisition_pk)

        return self._run("delete_requisition", op, requisition_id=requisition_pk)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_product(self, product_pk: UUID) -> OperationResult[ProductInfo]:
        return self._read(
            "get_product",
            lambda: self._selector.product(product_pk),
            ProductNotFoundError(str(product_pk)),
        )

    def get_product_history(self, product_pk: UUID) -> OperationResult[tuple[CustodyEventInfo, ...]]:
        return self._read(
            "get_product_history",
            lambda: self._selector.product_history(product_pk),
            ProductNotFoundError(str(product_pk)),
        )

    def get_ledger(self, type_id: UUID) -> OperationResult[LedgerInfo]:
        return self._read(
            "get_ledger",
            lambda: self._selector.ledger(type_id),
            InventoryNotFoundError(str(type_id)),
        )

    def get_ledger_history(self, type_id: UUID) -> OperationResult[tuple[MovementInfo, ...]]:
        return self._read("get_ledger_history", lambda: self._selector.ledger_history(type_id))

    def get_held_assets(self, employee_id: UUID) -> OperationResult[tuple[ProductInfo, ...]]:
        def op() -> tuple[ProductInfo, ...]:
            self._custody.require_employee(employee_id)
            return self._selector.held_assets(employee_id)

        return self._read("get_held_assets", op)

    def get_requisition(self, requisition_pk: UUID) -> OperationResult[RequisitionInfo]:
        return self._read(
            "get_requisition",
            lambda: self._selector.requisition(requisition_pk),
            RequisitionNotFoundError(str(requisition_pk)),
        )

    def get_requisition_by_code(self, requisition_code: str) -> OperationResult[RequisitionInfo]:
        return self._read(
            "get_requisition_by_code",
            lambda: self._selector.requisition_by_code(requisition_code),
            RequisitionNotFoundError(requisition_code),
        )

    # =========================================================================
    # Unit of work
    # =========================================================================

    def _read(
        self,
        operation: str,
        fn: Callable[[], Any],
        missing: StockKernelError | None = None,
    ) -> OperationResult[Any]:
        def op() -> Any:
            value = fn()
            if value is None and missing is not None:
                raise missing
            return value

        return self._run(operation, op, commit=False)

    def _run(
        self,
        operation: str,
        fn: Callable[[], T],
        *,
        commit: bool = True,
        actor_id: UUID | None = None,
        product_id: UUID | None = None,
        type_id: UUID | None = None,
        requisition_id: UUID | str | None = None,
    ) -> OperationResult[T]:
        with LogContext.bind(
            correlation_id=self._correlation_id or str(uuid4()),
            operation=operation,
            actor_id=str(actor_id) if actor_id else None,
            product_id=str(product_id) if product_id else None,
            type_id=str(type_id) if type_id else None,
            requisition_id=str(requisition_id) if requisition_id else None,
        ):
            logger.info("inventory_operation_started")
            t0 = time.monotonic()
            try:
                data = fn()
                if commit and self._auto_commit:
                    self._session.commit()
            except StockKernelError as exc:
                self._rollback()
                result = OperationResult.from_error(exc)
                logger.warning(
                    "inventory_operation_failed",
                    extra={
                        "status": result.status.value,
                        "error_code": exc.code,
                        "error_message": str(exc),
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                return result
            except Exception:
                self._rollback()
                logger.error(
                    "inventory_operation_failed",
                    extra={
                        "status": OperationStatus.INTERNAL_ERROR.value,
                        "error_code": "INTERNAL_ERROR",
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                    exc_info=True,
                )
                return OperationResult.internal_error()

            logger.info(
                "inventory_operation_completed",
                extra={
                    "status": OperationStatus.SUCCESS.value,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return OperationResult.ok(data)

    def _rollback(self) -> None:
        if self._auto_commit:
            self._session.rollback()
