"""Fake inventory adapter — remembers released reservations in memory."""

from dispatch.exceptions import DownstreamFailure
from dispatch.inventory.port import InventoryPort


class FakeInventory(InventoryPort):
    def __init__(self):
        self.released: dict[str, list[dict]] = {}
        self.should_succeed = True
        self.failure_reason = "Inventory service unavailable"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Inventory service unavailable"):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def release_reserved_stock(self, order_id: str, items: list[dict]) -> None:
        if not self.should_succeed:
            raise DownstreamFailure("inventory", self.failure_reason)
        self.released.setdefault(order_id, []).extend(items)
