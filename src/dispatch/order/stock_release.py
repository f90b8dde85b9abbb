"""Releases reserved stock when an order will not ship.

Reacts to OrderCancelled and OrderRejected. A failing inventory service is
logged and left for manual follow-up; the cancellation itself stands.
"""

import json

import structlog
from protean.utils.mixins import handle

from dispatch.domain import dispatch
from dispatch.inventory import get_inventory
from dispatch.order.events import OrderCancelled, OrderRejected
from dispatch.order.order import Order

logger = structlog.get_logger(__name__)


def _release(order_id: str, items_json: str) -> None:
    items = json.loads(items_json) if items_json else []
    try:
        get_inventory().release_reserved_stock(order_id, items)
    except Exception as exc:
        logger.error("Reserved stock release failed", order_id=order_id, error=str(exc))
        return
    logger.info("Reserved stock released", order_id=order_id, item_count=len(items))


@dispatch.event_handler(part_of=Order)
class StockReleaseHandler:
    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        _release(str(event.order_id), event.items)

    @handle(OrderRejected)
    def on_order_rejected(self, event: OrderRejected) -> None:
        _release(str(event.order_id), event.items)
