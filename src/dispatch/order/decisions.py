"""Merchant decisions — accept, reject, prepare and release for pickup."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.order.order import Order


@dispatch.command(part_of="Order")
class AcceptOrder:
    order_id = Identifier(required=True)


@dispatch.command(part_of="Order")
class RejectOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)


@dispatch.command(part_of="Order")
class StartProcessing:
    order_id = Identifier(required=True)


@dispatch.command(part_of="Order")
class MarkReadyForPickup:
    """Release a prepared order to dispatch.

    Processing this command only moves the order; ``operations.mark_ready_for_pickup``
    follows it with one assignment attempt.
    """

    order_id = Identifier(required=True)


@dispatch.command_handler(part_of=Order)
class MerchantDecisionHandler:
    @handle(AcceptOrder)
    def accept_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.accept()
        repo.add(order)

    @handle(RejectOrder)
    def reject_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.reject(command.reason)
        repo.add(order)

    @handle(StartProcessing)
    def start_processing(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.start_processing()
        repo.add(order)

    @handle(MarkReadyForPickup)
    def mark_ready_for_pickup(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.mark_ready_for_pickup()
        repo.add(order)
