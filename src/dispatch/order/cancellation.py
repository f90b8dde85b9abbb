"""Order cancellation — command and handler.

Cancelling an order that already has a courier also closes the open
delivery and frees the courier, in the same unit of work.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from dispatch.courier.courier import Courier, ReleaseReason
from dispatch.courier.registry import CourierRegistry
from dispatch.delivery.delivery import Delivery
from dispatch.domain import dispatch
from dispatch.order.order import Order

logger = structlog.get_logger(__name__)


@dispatch.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    cancelled_by = String(max_length=100, default="customer")


@dispatch.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        released_courier_id = order.cancel(command.reason, actor=command.cancelled_by)
        repo.add(order)

        registry = CourierRegistry()
        delivery = registry.open_delivery_for_order(order.id)
        if delivery is not None:
            delivery.cancel(f"Order cancelled: {command.reason}")
            current_domain.repository_for(Delivery).add(delivery)

        if released_courier_id:
            courier_repo = current_domain.repository_for(Courier)
            courier = courier_repo.get(released_courier_id)
            courier.release(ReleaseReason.CANCELLED)
            courier_repo.add(courier)
            logger.info(
                "Courier released by order cancellation",
                order_id=str(order.id),
                courier_id=released_courier_id,
            )
