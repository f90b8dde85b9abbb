"""Assignment rejection — a courier declines a pending delivery.

The delivery closes as Cancelled, the order goes back to ReadyForPickup
without a courier and the courier is freed, all in one unit of work.
Re-running assignment for the order happens after the commit, in
``operations.reject_assignment``.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from dispatch.courier.courier import Courier, ReleaseReason
from dispatch.delivery.delivery import DEFAULT_REJECTION_REASON, Delivery
from dispatch.domain import dispatch
from dispatch.order.order import Order

logger = structlog.get_logger(__name__)


@dispatch.command(part_of="Delivery")
class RejectAssignment:
    delivery_id = Identifier(required=True)
    reason = String(max_length=500)


def requeue_order(delivery: Delivery, reason: str, withdraw: bool = False) -> str:
    """Close ``delivery`` early and put its order back in the dispatch queue.

    ``withdraw`` covers a courier backing out after accepting; otherwise the
    delivery must still be pending. Returns the order id.
    """
    order_repo = current_domain.repository_for(Order)
    courier_repo = current_domain.repository_for(Courier)

    order = order_repo.get(delivery.order_id)
    courier = courier_repo.get(delivery.courier_id)

    if withdraw:
        delivery.cancel(reason)
    else:
        delivery.reject(reason)
    order.revert_assignment(courier.name, reason)
    courier.release(ReleaseReason.REJECTED)

    current_domain.repository_for(Delivery).add(delivery)
    order_repo.add(order)
    courier_repo.add(courier)

    logger.info(
        "Order returned to dispatch queue",
        order_id=str(order.id),
        courier_id=str(courier.id),
        delivery_id=str(delivery.id),
        reason=reason,
    )
    return str(order.id)


@dispatch.command_handler(part_of=Delivery)
class RejectAssignmentHandler:
    @handle(RejectAssignment)
    def reject_assignment(self, command):
        delivery = current_domain.repository_for(Delivery).get(command.delivery_id)
        return requeue_order(delivery, command.reason or DEFAULT_REJECTION_REASON)
