"""
IdentifierService -- allocates product and requisition identifiers.

Responsibility:
    Combines the pure identifier rules in ``domain/identifiers.py`` with
    the atomic counters of SequenceService.  Product ids are partitioned
    by the 3-letter type code, requisition ids by month and year in the
    configured time zone.

Architecture position:
    Kernel > Services.  Called by ProductLifecycleService on product
    creation and by RequisitionService on requisition creation.

Invariants enforced:
    Identifier monotonicity -- serials come only from
        ``SequenceService.next_value``; no identifier is ever derived by
        scanning existing rows.
    Identifiers are assigned once, before first flush, and never rewritten.

Failure modes:
    - IdentifierGenerationError if the type behind a product id does not
      exist.  Nothing is created.
"""

from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.identifiers import (
    PRODUCT_SERIAL_WIDTH,
    REQUISITION_SERIAL_WIDTH,
    product_identifier,
    requisition_identifier,
    requisition_prefix,
    type_code,
)
from stock_kernel.exceptions import IdentifierGenerationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.catalog import ItemType
from stock_kernel.services.sequence_service import SequenceService

logger = get_logger("services.identifier")

DEFAULT_REQUISITION_TIMEZONE = "Asia/Dhaka"


class IdentifierService:
    """
    Allocator for human-readable identifiers.

    Args:
        session: SQLAlchemy session in the caller's transaction.
        clock: Time source for the requisition month partition.
        requisition_timezone: IANA zone in which month/year are read.
        serial_width: Zero-padded width of both serial kinds.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        requisition_timezone: str = DEFAULT_REQUISITION_TIMEZONE,
        serial_width: int | None = None,
        sequence_service: SequenceService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._tz = ZoneInfo(requisition_timezone)
        self._product_width = serial_width or PRODUCT_SERIAL_WIDTH
        self._requisition_width = serial_width or REQUISITION_SERIAL_WIDTH
        self._sequences = sequence_service or SequenceService(session)

    def type_code_for(self, type_id: UUID) -> str:
        item_type = self._session.get(ItemType, type_id)
        if item_type is None:
            raise IdentifierGenerationError(str(type_id))
        return type_code(item_type.name)

    def next_product_id(self, type_id: UUID) -> str:
        """
        Allocate the next product identifier for a type.

        Raises:
            IdentifierGenerationError: If the type does not exist.
        """
        code = self.type_code_for(type_id)
        serial = self._sequences.next_value(SequenceService.product(code))
        product_id = product_identifier(code, serial, self._product_width)
        logger.info(
            "product_id_allocated",
            extra={"type_code": code, "serial": serial, "product_code": product_id},
        )
        return product_id

    def current_requisition_prefix(self) -> str:
        return requisition_prefix(self._clock.now(), self._tz)

    def next_requisition_id(self) -> str:
        """Allocate the next requisition identifier for the current month."""
        prefix = self.current_requisition_prefix()
        serial = self._sequences.next_value(SequenceService.requisition(prefix))
        requisition_code = requisition_identifier(prefix, serial, self._requisition_width)
        logger.info(
            "requisition_id_allocated",
            extra={"prefix": prefix, "serial": serial, "requisition_code": requisition_code},
        )
        return requisition_code
