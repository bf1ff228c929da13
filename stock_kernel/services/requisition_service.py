"""
RequisitionService -- requisition lifecycle and fulfillment tracking.

Responsibility:
    Creates, updates, approves/rejects and deletes requisitions, and
    tracks per-item fulfillment: how many approved units of a type have
    already been added to inventory and how many more may be.

Architecture position:
    Kernel > Services.  Called by InventoryOrchestrator for requisition
    operations and by product/consumable creation for the fulfillment
    ceiling.

Invariants enforced:
    Fulfillment ceiling -- ``record_added`` is a single conditional
        UPDATE (``addedToInventory + n <= quantityApproved``).  If it
        matches no row the counter is unchanged and the exact remaining
        addable count is reported.
    Deterministic totals -- the four requisition totals are recomputed
        from the items on every create, update and approval.
    One item per type -- validated up front and backed by a unique
        constraint.
    Approval transitions -- only Requested -> Approved, Requested ->
        Rejected and Approved -> Rejected.

Failure modes:
    - ValidationError: empty items, missing type/vendor, bad quantities,
      duplicate types, approved quantity below units already added.
    - RequisitionNotFoundError: unknown id or requisitionID.
    - RequisitionNotApprovedError / RequisitionItemNotFoundError /
      ApprovedQuantityExceededError from ``record_added``.
    - RequisitionStateError: disallowed approval action.
    - RequisitionInUseError: deleting a requisition with added stock.

Audit relevance:
    Approval stamps actionBy/actionDate/comments.  Fulfillment increments
    are logged with requisition, type, count and the resulting counter.
"""

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.requisition import (
    ApprovalLine,
    ItemSpec,
    addable_quantity,
    check_action,
    compute_totals,
    validate_items,
)
from stock_kernel.domain.values import RequisitionAction, RequisitionStatus
from stock_kernel.exceptions import (
    ApprovedQuantityExceededError,
    RequisitionInUseError,
    RequisitionItemNotFoundError,
    RequisitionNotApprovedError,
    RequisitionNotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.requisition import Requisition, RequisitionItem
from stock_kernel.services.base import BaseService
from stock_kernel.services.identifier_service import IdentifierService

logger = get_logger("services.requisition")


class RequisitionService(BaseService[Requisition]):
    """
    Requisition lifecycle plus the fulfillment tracker.

    Non-goals:
        - Does NOT verify that referenced employees exist; the
          orchestrator validates references before calling in.
        - Does NOT commit.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        identifier_service: IdentifierService | None = None,
    ):
        super().__init__(session, clock)
        self._identifiers = identifier_service or IdentifierService(session, self.clock)

    # =========================================================================
    # Lookup
    # =========================================================================

    def get(self, requisition_pk: UUID) -> Requisition:
        requisition = self.session.get(Requisition, requisition_pk)
        if requisition is None:
            raise RequisitionNotFoundError(str(requisition_pk))
        return requisition

    def get_by_code(self, requisition_code: str) -> Requisition:
        requisition = self.session.execute(
            select(Requisition).where(Requisition.requisition_id == requisition_code)
        ).scalar_one_or_none()
        if requisition is None:
            raise RequisitionNotFoundError(requisition_code)
        return requisition

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create(
        self,
        title: str,
        items: Sequence[ItemSpec],
        requested_by: UUID,
        *,
        description: str | None = None,
        documents: Sequence[str] = (),
    ) -> Requisition:
        """
        Create a requisition in status Requested.

        Approved fields start at zero; totals are derived from the items
        and the requisitionID comes from the per-month counter.
        """
        if not title:
            raise ValidationError("Requisition title is required", field="requisitionTitle")
        if requested_by is None:
            raise ValidationError("Requested by is required", field="requestedBy")
        validate_items(items)

        requisition = Requisition(
            requisition_id=self._identifiers.next_requisition_id(),
            title=title,
            description=description,
            status=RequisitionStatus.REQUESTED.value,
            requested_by=requested_by,
            documents=list(documents or ()),
            created_by_id=requested_by,
        )
        for position, spec in enumerate(items):
            requisition.items.append(
                RequisitionItem(
                    position=position,
                    type_id=spec.type_id,
                    vendor_id=spec.vendor_id,
                    description=spec.description,
                    quantity_requested=spec.quantity_requested,
                    estimated_cost=Decimal(spec.estimated_cost or 0),
                    approved_vendor_id=None,
                    quantity_approved=0,
                    approved_cost=Decimal("0"),
                    added_to_inventory=0,
                    documents=list(spec.documents or ()),
                )
            )
        self._apply_totals(requisition)
        self.session.add(requisition)
        self.session.flush()

        logger.info(
            "requisition_created",
            extra={
                "requisition_code": requisition.requisition_id,
                "item_count": len(requisition.items),
                "total_quantity_requested": requisition.total_quantity_requested,
            },
        )
        return requisition

    def update(
        self,
        requisition_pk: UUID,
        actor_id: UUID,
        *,
        title: str | None = None,
        description: str | None = None,
        items: Sequence[ItemSpec] | None = None,
        documents: Sequence[str] | None = None,
    ) -> Requisition:
        """
        Update requisition fields and optionally replace its items.

        Items are matched to existing rows by type.  A matched row keeps
        its addedToInventory counter and, unless the new item says
        otherwise, its approved figures.  Rows whose type disappears are
        removed.
        """
        requisition = self.get(requisition_pk)

        if title is not None:
            if not title:
                raise ValidationError("Requisition title is required", field="requisitionTitle")
            requisition.title = title
        if description is not None:
            requisition.description = description
        if documents is not None:
            requisition.documents = list(documents)
        if items is not None:
            validate_items(items)
            self._replace_items(requisition, items)
            self._apply_totals(requisition)

        requisition.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "requisition_updated",
            extra={
                "requisition_code": requisition.requisition_id,
                "items_replaced": items is not None,
            },
        )
        return requisition

    def act(
        self,
        requisition_pk: UUID,
        action: RequisitionAction | str,
        action_by: UUID,
        *,
        comments: str | None = None,
        lines: Sequence[ApprovalLine] | None = None,
        documents: Sequence[str] | None = None,
    ) -> Requisition:
        """
        Approve or reject a requisition.

        Approval copies each supplied line's vendor, quantity, cost and
        documents into the approved fields of the item at the same
        position; without lines the requested figures are approved as-is.
        Rejection stamps the action metadata and leaves items untouched.
        """
        requisition = self.get(requisition_pk)
        target = check_action(requisition.requisition_id, requisition.status, action)

        if target is RequisitionStatus.APPROVED:
            self._approve_items(requisition, lines)
            self._apply_totals(requisition)

        requisition.status = target.value
        requisition.action_by = action_by
        requisition.action_date = self.clock.now()
        requisition.comments = comments
        if documents is not None:
            requisition.documents = list(documents)
        requisition.updated_by_id = action_by
        self.session.flush()

        logger.info(
            "requisition_action_applied",
            extra={
                "requisition_code": requisition.requisition_id,
                "status": target.value,
                "total_quantity_approved": requisition.total_quantity_approved,
            },
        )
        return requisition

    def delete(self, requisition_pk: UUID) -> None:
        """Delete a requisition that has had nothing added to inventory."""
        requisition = self.get(requisition_pk)
        added = sum(item.added_to_inventory for item in requisition.items)
        if added:
            raise RequisitionInUseError(requisition.requisition_id, added)
        code = requisition.requisition_id
        self.session.delete(requisition)
        self.session.flush()
        logger.info("requisition_deleted", extra={"requisition_code": code})

    # =========================================================================
    # Fulfillment tracking
    # =========================================================================

    def require_approved_item(self, requisition: Requisition, type_id: UUID) -> RequisitionItem:
        """
        Return the item for ``type_id`` on an approved requisition.

        Raises:
            RequisitionNotApprovedError: If the requisition is not Approved.
            RequisitionItemNotFoundError: If the type is not on it.
        """
        if requisition.status != RequisitionStatus.APPROVED:
            raise RequisitionNotApprovedError(requisition.requisition_id, requisition.status)
        item = requisition.item_for(type_id)
        if item is None:
            raise RequisitionItemNotFoundError(requisition.requisition_id, str(type_id))
        return item

    def can_add(self, requisition_pk: UUID, type_id: UUID, count: int) -> bool:
        """True iff ``count`` more units of the type fit under the approval."""
        requisition = self.session.get(Requisition, requisition_pk)
        if requisition is None or requisition.status != RequisitionStatus.APPROVED:
            return False
        item = requisition.item_for(type_id)
        if item is None or count <= 0:
            return False
        return count <= addable_quantity(item.quantity_approved, item.added_to_inventory)

    def record_added(self, requisition: Requisition, type_id: UUID, count: int) -> RequisitionItem:
        """
        Atomically add ``count`` to the item's addedToInventory.

        Raises:
            ValidationError: If count is not positive.
            ApprovedQuantityExceededError: If the increment would pass
                quantityApproved; reports the remaining addable count.
        """
        if count is None or count <= 0:
            raise ValidationError("Valid quantity is required", field="quantity")
        item = self.require_approved_item(requisition, type_id)

        result = self.session.execute(
            update(RequisitionItem)
            .where(
                RequisitionItem.id == item.id,
                RequisitionItem.added_to_inventory + count <= RequisitionItem.quantity_approved,
            )
            .values({RequisitionItem.added_to_inventory: RequisitionItem.added_to_inventory + count})
            .execution_options(synchronize_session=False)
        )
        item = self._reload_item(item.id)
        if result.rowcount == 0:
            addable = addable_quantity(item.quantity_approved, item.added_to_inventory)
            logger.warning(
                "requisition_ceiling_exceeded",
                extra={
                    "requisition_code": requisition.requisition_id,
                    "type_id": str(type_id),
                    "requested": count,
                    "addable": addable,
                },
            )
            raise ApprovedQuantityExceededError(
                requisition.requisition_id, str(type_id), count, addable,
            )

        logger.info(
            "requisition_fulfillment_recorded",
            extra={
                "requisition_code": requisition.requisition_id,
                "type_id": str(type_id),
                "count": count,
                "added_to_inventory": item.added_to_inventory,
                "quantity_approved": item.quantity_approved,
            },
        )
        return item

    # =========================================================================
    # Internals
    # =========================================================================

    def _reload_item(self, item_pk: UUID) -> RequisitionItem:
        return self.session.execute(
            select(RequisitionItem)
            .where(RequisitionItem.id == item_pk)
            .execution_options(populate_existing=True)
        ).scalar_one()

    def _replace_items(self, requisition: Requisition, specs: Sequence[ItemSpec]) -> None:
        existing = {item.type_id: item for item in requisition.items}
        kept: list[RequisitionItem] = []
        for position, spec in enumerate(specs):
            item = existing.pop(spec.type_id, None)
            if item is None:
                item = RequisitionItem(
                    type_id=spec.type_id,
                    quantity_approved=0,
                    approved_cost=Decimal("0"),
                    added_to_inventory=0,
                )
            item.position = position
            item.vendor_id = spec.vendor_id
            item.description = spec.description
            item.quantity_requested = spec.quantity_requested
            item.estimated_cost = Decimal(spec.estimated_cost or 0)
            item.documents = list(spec.documents or ())
            if spec.quantity_approved is not None:
                item.quantity_approved = spec.quantity_approved
            if spec.approved_cost is not None:
                item.approved_cost = Decimal(spec.approved_cost)
            if spec.approved_vendor_id is not None:
                item.approved_vendor_id = spec.approved_vendor_id
            if (item.added_to_inventory or 0) > (item.quantity_approved or 0):
                raise ValidationError(
                    f"Approved quantity for type {spec.type_id} cannot be lower than "
                    f"the {item.added_to_inventory} unit(s) already added to inventory",
                    field="quantityApproved",
                )
            kept.append(item)

        for item in existing.values():
            if item.added_to_inventory:
                raise ValidationError(
                    f"Type {item.type_id} cannot be removed; "
                    f"{item.added_to_inventory} unit(s) were already added to inventory",
                    field="items",
                )
        requisition.items = kept

    @staticmethod
    def _approve_items(requisition: Requisition, lines: Sequence[ApprovalLine] | None) -> None:
        items = requisition.items
        if lines is None:
            lines = [
                ApprovalLine(
                    vendor_id=item.vendor_id,
                    quantity=item.quantity_requested,
                    cost=item.estimated_cost,
                )
                for item in items
            ]
        for idx, line in enumerate(lines):
            if idx >= len(items):
                break
            if line.quantity is None or line.quantity < 0:
                raise ValidationError("Approved quantity cannot be negative", field="quantityApproved")
            item = items[idx]
            if line.quantity < item.added_to_inventory:
                raise ValidationError(
                    f"Approved quantity for type {item.type_id} cannot be lower than "
                    f"the {item.added_to_inventory} unit(s) already added to inventory",
                    field="quantityApproved",
                )
            item.approved_vendor_id = line.vendor_id
            item.quantity_approved = line.quantity
            item.approved_cost = Decimal(line.cost or 0)
            if line.documents:
                item.documents = list(line.documents)

    @staticmethod
    def _apply_totals(requisition: Requisition) -> None:
        totals = compute_totals(requisition.items)
        requisition.total_quantity_requested = totals.total_quantity_requested
        requisition.total_estimated_cost = totals.total_estimated_cost
        requisition.total_quantity_approved = totals.total_quantity_approved
        requisition.total_approved_cost = totals.total_approved_cost
