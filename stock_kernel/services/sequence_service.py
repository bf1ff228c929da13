"""
SequenceService -- monotonic sequence allocation via atomic counter rows.

Responsibility:
    Provides strictly increasing numbers per named partition: product
    serials per type code, requisition numbers per month, and the history
    order of each ledger record and each product.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by IdentifierService, StockLedgerService and
    ProductLifecycleService.

Invariants enforced:
    Identifier monotonicity -- each allocation is ONE statement,
        ``INSERT ... ON CONFLICT (name) DO UPDATE SET current_value =
        current_value + 1 RETURNING current_value``.  The counter row is
        created on first use with value 1.  Deriving the next value from
        an aggregate maximum over issued identifiers is FORBIDDEN.
    Transactional -- the increment is only visible after the caller's
        transaction commits.  A rollback after allocation may leave a gap,
        which is acceptable; a value is never handed out twice.

Failure modes:
    - ValueError for an empty sequence name.
    - ValueError when bound to a dialect without upsert support.

Audit relevance:
    Allocation is logged at DEBUG level with sequence_name and value.
"""

from uuid import UUID

from sqlalchemy import BigInteger, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from stock_kernel.db.base import Base
from stock_kernel.db.dialect import dialect_insert
from stock_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    # Sequence name (e.g., "product:SPC", "requisition:REQ0825")
    name: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
    )

    # Current sequence value
    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Guarantees:
        - Strictly monotonic values per name via a single atomic upsert.
        - Concurrency safety: concurrent callers serialize on the counter
          row inside the database; no read-then-write window exists.

    Non-goals:
        - Does NOT call ``session.commit()``; the caller controls boundaries.
        - Does NOT guarantee gapless sequences across rolled-back work.

    Usage:
        seq = sequence_service.next_value(SequenceService.product("SPC"))
    """

    def __init__(self, session: Session):
        self._session = session

    @staticmethod
    def product(type_code: str) -> str:
        """Counter name for product serials of a type code."""
        return f"product:{type_code}"

    @staticmethod
    def requisition(prefix: str) -> str:
        """Counter name for requisition numbers of a month prefix."""
        return f"requisition:{prefix}"

    @staticmethod
    def movement(inventory_id: UUID) -> str:
        """Counter name for the history order of one ledger record."""
        return f"movement:{inventory_id}"

    @staticmethod
    def custody(product_id: UUID) -> str:
        """Counter name for the custody history order of one product."""
        return f"custody:{product_id}"

    def next_value(self, sequence_name: str) -> int:
        """
        Allocate the next value for a named sequence.

        Preconditions:
            - ``sequence_name`` is a non-empty string.
        Postconditions:
            - Returns an integer > 0 that is strictly greater than any
              value previously returned for this name.

        Args:
            sequence_name: Name of the sequence.

        Returns:
            The next sequence value (always > 0).
        """
        if not sequence_name:
            raise ValueError("sequence_name must be non-empty")

        table = SequenceCounter.__table__
        stmt = dialect_insert(self._session, table).values(
            name=sequence_name,
            current_value=1,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.name],
            set_={"current_value": table.c.current_value + 1},
        ).returning(table.c.current_value)

        value = self._session.execute(stmt).scalar_one()
        assert value > 0, "sequence value must be strictly positive"
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": value},
        )
        return value

    def current_value(self, sequence_name: str) -> int | None:
        """
        Get the current value of a sequence without incrementing.

        Returns:
            Current value, or None if the sequence doesn't exist.
        """
        return self._session.execute(
            select(SequenceCounter.current_value)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

    def reset(self, sequence_name: str, value: int = 0) -> None:
        """
        Reset a sequence to a specific value.

        WARNING: Only for tests and data migrations.  Resetting below an
        issued value makes the next allocation collide with it.
        """
        table = SequenceCounter.__table__
        stmt = dialect_insert(self._session, table).values(
            name=sequence_name,
            current_value=value,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.name],
            set_={"current_value": value},
        )
        self._session.execute(stmt)
        logger.info(
            "sequence_reset",
            extra={"sequence_name": sequence_name, "value": value},
        )
