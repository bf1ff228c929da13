"""
ProductLifecycleService -- status, custody and ledger effects of ASSET units.

Responsibility:
    Creates, updates, hands over, returns and deletes products.  Each
    operation looks its transition up in ``domain/lifecycle.py`` and then
    drives the collaborators in a fixed order: product row first, then
    the stock ledger, then employee custody sets.  Creation from a
    requisition also advances that requisition's fulfillment counter.

Architecture position:
    Kernel > Services.  Called by InventoryOrchestrator, which owns the
    transaction; nothing here commits.

Invariants enforced:
    Custody consistency -- status and currentOwner change together on
        the product row (and the database CHECK rejects any mismatch);
        the custody sets follow via CustodyService after the product
        row is flushed.
    Asset conservation -- every transition applies exactly the counter
        delta of its table row, so for ASSET types
        quantity >= used + unusable + maintenance holds.
    Fulfillment ceiling -- requisition counters are incremented before
        any product row is written; a rejected increment creates nothing.
    Forbidden transitions fail loudly; none is silently ignored.

Failure modes:
    - ValidationError: missing name/description, negative price, no
      owner on assignment, unknown status, empty batch.
    - TypeNotFoundError / EmployeeNotFoundError / ProductNotFoundError /
      RequisitionNotFoundError.
    - TrackingModeMismatchError: product operation on a CONSUMABLE type.
    - InvalidTransitionError / ProductAssignedError from the state machine.
    - ApprovedQuantityExceededError and friends from RequisitionService.

Audit relevance:
    Every applied transition is logged as ``product_transition_applied``
    with the from/to status, owners and the ledger action recorded.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.lifecycle import (
    INITIAL_STATUS,
    CustodyEffect,
    StatusTransition,
    check_deletable,
    check_handover,
    check_return,
    resolve_transition,
)
from stock_kernel.domain.values import (
    CounterDelta,
    MovementAction,
    ProductOrigin,
    ProductStatus,
    TrackingMode,
)
from stock_kernel.exceptions import ProductNotFoundError, ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.product import CustodyEvent, Product
from stock_kernel.services.base import BaseService
from stock_kernel.services.catalog_service import CatalogService
from stock_kernel.services.custody_service import CustodyService
from stock_kernel.services.identifier_service import IdentifierService
from stock_kernel.services.requisition_service import RequisitionService
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.stock_ledger import StockLedgerService

logger = get_logger("services.product_lifecycle")


def _parse_price(value) -> Decimal:
    if value is None:
        raise ValidationError("Price is required", field="price")
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"Invalid price: {value}", field="price") from None
    if not price.is_finite() or price < 0:
        raise ValidationError("Price must be a non-negative number", field="price")
    return price


@dataclass(frozen=True)
class ProductDraft:
    """Caller-supplied details of one product to create."""

    name: str
    description: str
    price: Decimal | None
    documents: tuple[str, ...] = field(default_factory=tuple)


class ProductLifecycleService(BaseService[Product]):
    """
    Lifecycle operations on individually tracked units.

    Contract:
        Each public method leaves product status, currentOwner, ledger
        counters and custody sets mutually consistent once it returns.
        If it raises, the caller must roll back.

    Non-goals:
        - Does NOT commit or roll back.
        - Does NOT handle CONSUMABLE stock (see ConsumableStockService).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        identifier_service: IdentifierService | None = None,
        ledger: StockLedgerService | None = None,
        custody: CustodyService | None = None,
        requisitions: RequisitionService | None = None,
        catalog: CatalogService | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session, clock)
        self._sequences = sequence_service or SequenceService(session)
        self._identifiers = identifier_service or IdentifierService(
            session, self.clock, sequence_service=self._sequences,
        )
        self._ledger = ledger or StockLedgerService(session, self.clock, self._sequences)
        self._custody = custody or CustodyService(session, self.clock)
        self._requisitions = requisitions or RequisitionService(
            session, self.clock, self._identifiers,
        )
        self._catalog = catalog or CatalogService(session, self.clock)

    # =========================================================================
    # Lookup
    # =========================================================================

    def get(self, product_pk: UUID) -> Product:
        product = self.session.get(Product, product_pk)
        if product is None:
            raise ProductNotFoundError(str(product_pk))
        return product

    # =========================================================================
    # Creation
    # =========================================================================

    def create_products(
        self,
        type_id: UUID,
        drafts: Sequence[ProductDraft],
        actor_id: UUID,
        *,
        requisition_code: str | None = None,
    ) -> list[Product]:
        """
        Create one product per draft, all AVAILABLE.

        When ``requisition_code`` is given the requisition must be
        Approved, list the type, and have room for ``len(drafts)`` more
        units; its counter advances by exactly that many.  The ledger
        receives a single IN movement covering the whole batch.
        """
        if not drafts:
            raise ValidationError("At least one product is required", field="products")
        for draft in drafts:
            self._validate_draft(draft)

        self._catalog.require_mode(type_id, TrackingMode.ASSET)
        self._custody.require_employee(actor_id, "Acting employee")

        requisition_pk = None
        origin = ProductOrigin.MANUAL_ENTRY
        if requisition_code:
            requisition = self._requisitions.get_by_code(requisition_code)
            self._requisitions.record_added(requisition, type_id, len(drafts))
            requisition_pk = requisition.id
            origin = ProductOrigin.REQUISITION

        products = [
            Product(
                product_id=self._identifiers.next_product_id(type_id),
                name=draft.name,
                description=draft.description,
                type_id=type_id,
                price=_parse_price(draft.price),
                status=INITIAL_STATUS.value,
                current_owner_id=None,
                origin=origin.value,
                requisition_id=requisition_pk,
                documents=list(draft.documents or ()),
                created_by_id=actor_id,
            )
            for draft in drafts
        ]
        self.session.add_all(products)
        self.session.flush()

        self._ledger.apply_movement(
            type_id,
            MovementAction.IN,
            len(products),
            actor_id,
            requisition_id=requisition_pk,
            add_product_ids=[p.id for p in products],
        )

        logger.info(
            "products_created",
            extra={
                "type_id": str(type_id),
                "count": len(products),
                "origin": origin.value,
                "requisition_code": requisition_code,
                "product_codes": [p.product_id for p in products],
            },
        )
        return products

    # =========================================================================
    # Status and field updates
    # =========================================================================

    def update_product(
        self,
        product_pk: UUID,
        actor_id: UUID,
        *,
        status: ProductStatus | str | None = None,
        owner_id: UUID | None = None,
        name: str | None = None,
        description: str | None = None,
        price: Decimal | None = None,
        documents: Sequence[str] | None = None,
    ) -> Product:
        """
        Apply field updates and an optional status/owner transition.

        Leaving ``status`` unset keeps the current status; passing
        ASSIGNED for an ASSIGNED product with a different ``owner_id`` is
        a reassignment (custody moves, counters and history untouched).
        ASSIGNED echoed back without an ``owner_id`` keeps the owner.
        """
        product = self.get(product_pk)
        self._custody.require_employee(actor_id, "Acting employee")

        if name is not None:
            if not name:
                raise ValidationError("Product name is required", field="name")
            product.name = name
        if description is not None:
            if not description:
                raise ValidationError("Product description is required", field="description")
            product.description = description
        if price is not None:
            product.price = _parse_price(price)
        if documents is not None:
            product.documents = list(documents)

        current = ProductStatus(product.status)
        requested = current if status is None else self._coerce_status(status)
        if owner_id is None and (
            status is None
            or (current is ProductStatus.ASSIGNED and requested is ProductStatus.ASSIGNED)
        ):
            # Owner unchanged: field edits only.
            transition = None
        else:
            transition = resolve_transition(product.product_id, current, requested)

        if transition is not None and transition.requires_owner:
            if owner_id is None:
                raise ValidationError(
                    "Current owner is required when assigning a product",
                    field="currentOwner",
                )
            self._custody.require_employee(owner_id)
            if transition.custody is CustodyEffect.MOVE_OWNER and owner_id == product.current_owner_id:
                transition = None

        product.updated_by_id = actor_id
        if transition is None:
            self.session.flush()
            logger.info("product_updated", extra={"product_code": product.product_id})
            return product

        self._apply_transition(product, transition, actor_id, owner_id)
        return product

    # =========================================================================
    # Handover / return
    # =========================================================================

    def hand_over(self, product_pk: UUID, employee_id: UUID, handed_over_by: UUID) -> Product:
        """
        Hand an AVAILABLE product to an employee.

        Opens a custody period (return date empty) and records OUT.
        """
        product = self.get(product_pk)
        transition = check_handover(product.product_id, product.status)
        self._custody.require_employee(employee_id)
        self._custody.require_employee(handed_over_by, "Handover employee")

        product.custody_events.append(
            CustodyEvent(
                sequence=self._sequences.next_value(SequenceService.custody(product.id)),
                employee_id=employee_id,
                handover_date=self.clock.now(),
                handed_over_by=handed_over_by,
            )
        )
        product.updated_by_id = handed_over_by
        self._apply_transition(product, transition, handed_over_by, employee_id)
        return product

    def return_product(self, product_pk: UUID, returned_by: UUID) -> Product:
        """
        Take an ASSIGNED product back.

        Closes the most recent open custody period, or appends an
        already-closed one when the product was assigned without a
        handover, and records RETURN.
        """
        product = self.get(product_pk)
        transition = check_return(product.product_id, product.status)
        self._custody.require_employee(returned_by, "Returning employee")

        now = self.clock.now()
        open_event = next(
            (event for event in reversed(product.custody_events) if event.is_open),
            None,
        )
        if open_event is not None:
            open_event.return_date = now
            open_event.returned_by = returned_by
        else:
            product.custody_events.append(
                CustodyEvent(
                    sequence=self._sequences.next_value(SequenceService.custody(product.id)),
                    employee_id=product.current_owner_id,
                    handover_date=None,
                    handed_over_by=None,
                    return_date=now,
                    returned_by=returned_by,
                )
            )
        product.updated_by_id = returned_by
        self._apply_transition(product, transition, returned_by, None)
        return product

    # =========================================================================
    # Deletion
    # =========================================================================

    def delete(self, product_pk: UUID, actor_id: UUID) -> None:
        """
        Delete a product that is not ASSIGNED.

        The ledger loses one unit of quantity plus one of the counter for
        the product's status, and records DELETED.  The product is also
        removed from every employee's held-asset set.
        """
        product = self.get(product_pk)
        status = ProductStatus(product.status)
        check_deletable(product.product_id, status)
        self._custody.require_employee(actor_id, "Acting employee")

        released = self._custody.release_everywhere(product.id)
        delta = CounterDelta(quantity=-1) + -CounterDelta.for_status(status)
        self._ledger.apply_movement(
            product.type_id,
            MovementAction.DELETED,
            1,
            actor_id,
            delta=delta,
            remove_product_ids=[product.id],
        )

        product_code = product.product_id
        self.session.delete(product)
        self.session.flush()
        logger.info(
            "product_deleted",
            extra={
                "product_code": product_code,
                "status": status.value,
                "custody_rows_released": released,
            },
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _apply_transition(
        self,
        product: Product,
        transition: StatusTransition,
        actor_id: UUID,
        owner_id: UUID | None,
    ) -> None:
        previous_owner = product.current_owner_id
        if transition.custody in (CustodyEffect.SET_OWNER, CustodyEffect.MOVE_OWNER):
            next_owner = owner_id
        elif transition.custody is CustodyEffect.CLEAR_OWNER:
            next_owner = None
        else:
            next_owner = previous_owner

        if transition.custody in (CustodyEffect.CLEAR_OWNER, CustodyEffect.MOVE_OWNER):
            # A custody period left open by a handover ends with the custody.
            for event in product.custody_events:
                if event.is_open and event.handover_date is not None:
                    event.return_date = self.clock.now()
                    event.returned_by = actor_id

        product.status = transition.to_status.value
        product.current_owner_id = next_owner
        self.session.flush()

        if transition.action is not None:
            self._ledger.apply_movement(
                product.type_id,
                transition.action,
                1,
                actor_id,
                delta=transition.delta,
            )
        elif not transition.delta.is_zero:
            self._ledger.adjust_counters(product.type_id, transition.delta, actor_id)

        self._custody.synchronize(product.id, previous_owner, next_owner)

        logger.info(
            "product_transition_applied",
            extra={
                "product_code": product.product_id,
                "from_status": transition.from_status.value,
                "to_status": transition.to_status.value,
                "ledger_action": transition.action.value if transition.action else None,
                "previous_owner": str(previous_owner) if previous_owner else None,
                "next_owner": str(next_owner) if next_owner else None,
            },
        )

    @staticmethod
    def _coerce_status(status: ProductStatus | str) -> ProductStatus:
        try:
            return ProductStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown product status: {status}", field="status") from None

    @staticmethod
    def _validate_draft(draft: ProductDraft) -> None:
        if not draft.name:
            raise ValidationError("Product name is required", field="name")
        if not draft.description:
            raise ValidationError("Product description is required", field="description")
        _parse_price(draft.price)
