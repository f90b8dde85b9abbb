"""Delivery progress — the courier moves its delivery through the lifecycle.

Each step is mirrored onto the order in the same unit of work:

    Accepted   order unchanged (stays Assigned)
    PickedUp   order → PickedUp
    OnTheWay   order → OnTheWay
    Delivered  blocked until a COD order is settled; order → Delivered,
               courier freed
    Cancelled  while Pending: a rejection, the order is requeued
               while Accepted: the courier withdraws, the order is requeued
               after pickup: the goods are with the courier, the order is
               cancelled and the courier freed
"""

from dataclasses import dataclass

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from dispatch.courier.courier import Courier, ReleaseReason
from dispatch.delivery.delivery import DEFAULT_REJECTION_REASON, Delivery, DeliveryStatus
from dispatch.delivery.rejection import requeue_order
from dispatch.domain import dispatch
from dispatch.exceptions import SettlementRequired
from dispatch.order.order import Order

logger = structlog.get_logger(__name__)


@dispatch.command(part_of="Delivery")
class UpdateDeliveryStatus:
    delivery_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    reason = String(max_length=500)


@dataclass(frozen=True)
class ProgressResult:
    delivery_id: str
    order_id: str
    status: str
    courier_id: str | None = None
    requeued: bool = False


def _target(value: str) -> DeliveryStatus:
    try:
        return DeliveryStatus(value)
    except ValueError:
        raise ValidationError({"status": [f"Unknown delivery status: {value}"]}) from None


@dispatch.command_handler(part_of=Delivery)
class DeliveryProgressHandler:
    @handle(UpdateDeliveryStatus)
    def update_status(self, command):
        delivery_repo = current_domain.repository_for(Delivery)
        order_repo = current_domain.repository_for(Order)

        delivery = delivery_repo.get(command.delivery_id)
        target = _target(command.status)
        current = DeliveryStatus(delivery.status)

        if target == DeliveryStatus.CANCELLED and current in (DeliveryStatus.PENDING, DeliveryStatus.ACCEPTED):
            order_id = requeue_order(
                delivery,
                command.reason or DEFAULT_REJECTION_REASON,
                withdraw=current == DeliveryStatus.ACCEPTED,
            )
            return ProgressResult(
                str(delivery.id), order_id, delivery.status, courier_id=str(delivery.courier_id), requeued=True
            )

        order = order_repo.get(delivery.order_id)

        if target == DeliveryStatus.ACCEPTED:
            delivery.accept()
        elif target == DeliveryStatus.PICKED_UP:
            delivery.mark_picked_up()
            order.mark_picked_up()
        elif target == DeliveryStatus.ON_THE_WAY:
            delivery.mark_on_the_way()
            order.mark_on_the_way()
        elif target == DeliveryStatus.DELIVERED:
            delivery.assert_can_transition(DeliveryStatus.DELIVERED)
            if not order.is_settled:
                raise SettlementRequired({"payment_status": ["Collect COD payment before marking as Delivered"]})
            delivery.mark_delivered()
            order.mark_delivered()
            self._free_courier(delivery, ReleaseReason.DELIVERED)
        elif target == DeliveryStatus.CANCELLED:
            reason = command.reason or "Cancelled by delivery partner"
            delivery.cancel(reason)
            order.cancel(reason, actor=str(delivery.courier_id))
            self._free_courier(delivery, ReleaseReason.CANCELLED)
        else:
            delivery.assert_can_transition(target)

        delivery_repo.add(delivery)
        order_repo.add(order)
        logger.info(
            "Delivery status updated",
            delivery_id=str(delivery.id),
            order_id=str(order.id),
            status=delivery.status,
        )
        return ProgressResult(str(delivery.id), str(order.id), delivery.status, courier_id=str(delivery.courier_id))

    @staticmethod
    def _free_courier(delivery: Delivery, reason: ReleaseReason) -> None:
        repo = current_domain.repository_for(Courier)
        courier = repo.get(delivery.courier_id)
        courier.release(reason)
        repo.add(courier)
