"""
Module: stock_kernel.models.employee
Responsibility: The slice of the employee record the kernel depends on:
    identity and the held-asset set.
Architecture position: Kernel > Models.

Invariants enforced:
    - employee_assets has a composite primary key, so an asset appears at
      most once in an employee's set.
    - The set always equals the products whose currentOwner is the
      employee (maintained by CustodyService, not by this model).
"""

from sqlalchemy import Column, ForeignKey, String, Table
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString

employee_assets = Table(
    "employee_assets",
    Base.metadata,
    Column(
        "employeeId",
        UUIDString(),
        ForeignKey("employees.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "productId",
        UUIDString(),
        ForeignKey("products.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Employee(Base):
    """An employee who may request stock, act on it or hold assets."""

    __tablename__ = "employees"

    first_name: Mapped[str] = mapped_column("firstName", String(100), nullable=False)

    last_name: Mapped[str | None] = mapped_column("lastName", String(100), nullable=True)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)

    def __repr__(self) -> str:
        return f"<Employee {self.id} {self.first_name}>"
