"""
CustodyService -- keeps employees' held-asset sets in step with products.

Responsibility:
    Given a product's previous and next owner, removes the product from
    the previous owner's set and adds it to the next owner's set.

Architecture position:
    Kernel > Services.  Called by ProductLifecycleService after the
    product row itself has been flushed.

Invariants enforced:
    Custody consistency -- an employee's held-asset set equals the set of
        products whose currentOwner is that employee.
    Idempotency -- adding a held asset or removing an absent one is a
        no-op (``ON CONFLICT DO NOTHING`` / plain DELETE), never an error.
    At most two membership statements per synchronisation.

Failure modes:
    - EmployeeNotFoundError from ``require_employee``.
"""

from uuid import UUID

from sqlalchemy import delete, select

from stock_kernel.db.dialect import dialect_insert
from stock_kernel.exceptions import EmployeeNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.employee import Employee, employee_assets
from stock_kernel.services.base import BaseService

logger = get_logger("services.custody")


class CustodyService(BaseService[Employee]):
    """Custody set maintenance."""

    def require_employee(self, employee_id: UUID, role: str = "Employee") -> Employee:
        employee = self.session.get(Employee, employee_id)
        if employee is None:
            raise EmployeeNotFoundError(str(employee_id), role)
        return employee

    def synchronize(
        self,
        product_pk: UUID,
        previous_owner: UUID | None,
        next_owner: UUID | None,
    ) -> None:
        """
        Move ``product_pk`` from ``previous_owner``'s set to ``next_owner``'s.

        Either owner may be None.  When both are the same the sets are
        already correct and nothing is written.
        """
        if previous_owner == next_owner:
            return
        if previous_owner is not None:
            self.release(product_pk, previous_owner)
        if next_owner is not None:
            self.grant(product_pk, next_owner)
        logger.info(
            "custody_synchronized",
            extra={
                "product_id": str(product_pk),
                "previous_owner": str(previous_owner) if previous_owner else None,
                "next_owner": str(next_owner) if next_owner else None,
            },
        )

    def grant(self, product_pk: UUID, employee_id: UUID) -> None:
        stmt = dialect_insert(self.session, employee_assets).values({
            employee_assets.c.employeeId: employee_id,
            employee_assets.c.productId: product_pk,
        })
        self.session.execute(stmt.on_conflict_do_nothing())

    def release(self, product_pk: UUID, employee_id: UUID) -> None:
        self.session.execute(
            delete(employee_assets).where(
                employee_assets.c.employeeId == employee_id,
                employee_assets.c.productId == product_pk,
            )
        )

    def release_everywhere(self, product_pk: UUID) -> int:
        """Remove a product from every employee's set (product deletion)."""
        result = self.session.execute(
            delete(employee_assets).where(employee_assets.c.productId == product_pk)
        )
        return result.rowcount or 0

    def held_assets(self, employee_id: UUID) -> tuple[UUID, ...]:
        return tuple(
            self.session.execute(
                select(employee_assets.c.productId)
                .where(employee_assets.c.employeeId == employee_id)
                .order_by(employee_assets.c.productId)
            ).scalars()
        )
