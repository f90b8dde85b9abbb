"""Inventory port — hands reserved stock back when an order will not ship."""

from abc import ABC, abstractmethod


class InventoryPort(ABC):
    @abstractmethod
    def release_reserved_stock(self, order_id: str, items: list[dict]) -> None:
        """Release the reservation held for ``items`` ({product_id, quantity}).

        Raises DownstreamFailure when the inventory service refuses.
        """
        ...
