"""
CatalogService -- type lookup and tracking-mode dispatch.

Types themselves are managed by an external catalog; the kernel only
reads them to decide which lifecycle rules apply.
"""

from uuid import UUID

from stock_kernel.domain.values import TrackingMode
from stock_kernel.exceptions import TrackingModeMismatchError, TypeNotFoundError
from stock_kernel.models.catalog import ItemType
from stock_kernel.services.base import BaseService


class CatalogService(BaseService[ItemType]):
    """Read access to item types."""

    def require_type(self, type_id: UUID) -> ItemType:
        item_type = self.session.get(ItemType, type_id)
        if item_type is None:
            raise TypeNotFoundError(str(type_id))
        return item_type

    def require_mode(self, type_id: UUID, mode: TrackingMode) -> ItemType:
        """
        Return the type if it is tracked in ``mode``.

        Raises:
            TypeNotFoundError: If the type does not exist.
            TrackingModeMismatchError: If it is tracked the other way.
        """
        item_type = self.require_type(type_id)
        actual = TrackingMode(item_type.tracking_mode)
        if actual is not mode:
            raise TrackingModeMismatchError(str(type_id), mode.value, actual.value)
        return item_type
