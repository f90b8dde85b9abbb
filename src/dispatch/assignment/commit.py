"""CommitAssignment command + handler — the atomic half of an assignment.

The handler re-reads the order and the courier, re-checks that both are
still free, then moves the order to ASSIGNED, opens the PENDING delivery
and engages the courier. All three saves share the handler's unit of work,
so they land together or not at all.
"""

import structlog
from protean import handle
from protean.fields import Boolean, DateTime, Float, Identifier
from protean.utils.globals import current_domain

from dispatch.courier.courier import Courier
from dispatch.courier.registry import CourierRegistry
from dispatch.delivery.delivery import HOLDING_STATUSES, Delivery
from dispatch.domain import dispatch
from dispatch.exceptions import AssignmentConflict
from dispatch.order.order import Order

logger = structlog.get_logger(__name__)


@dispatch.command(part_of="Order")
class CommitAssignment:
    """Bind a matched courier to an order waiting for pickup."""

    order_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    distance_km = Float()
    estimated_delivery_at = DateTime(required=True)
    manual = Boolean(default=False)


@dispatch.command_handler(part_of=Order)
class CommitAssignmentHandler:
    @handle(CommitAssignment)
    def commit_assignment(self, command):
        """Returns the new delivery id, or None when the courier turned out to be on a job."""
        order_repo = current_domain.repository_for(Order)
        courier_repo = current_domain.repository_for(Courier)

        order = order_repo.get(command.order_id)
        if not order.awaiting_courier:
            raise AssignmentConflict(f"Order {order.id} is no longer waiting for a courier ({order.status})")

        courier = courier_repo.get(command.courier_id)
        if not courier.is_available:
            raise AssignmentConflict(f"Courier {courier.id} is no longer available")

        # A running delivery under a cleared busy flag: restore the flag, skip this courier
        holding = CourierRegistry().current_delivery_of(courier.id, HOLDING_STATUSES)
        if holding is not None:
            courier.mark_busy()
            courier_repo.add(courier)
            logger.warning(
                "Courier flagged free while holding a delivery, busy flag restored",
                courier_id=str(courier.id),
                delivery_id=str(holding.id),
            )
            return None

        order.assign(str(courier.id), courier.name, command.distance_km, manual=bool(command.manual))
        delivery = Delivery.open(
            order_id=str(order.id),
            courier_id=str(courier.id),
            pickup_address=order.pickup_location.address if order.pickup_location else None,
            delivery_address=order.shipping_address,
            delivery_fee=order.delivery_fee,
            estimated_delivery_at=command.estimated_delivery_at,
        )
        courier.engage(str(order.id))

        order_repo.add(order)
        current_domain.repository_for(Delivery).add(delivery)
        courier_repo.add(courier)
        return str(delivery.id)
