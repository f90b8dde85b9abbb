"""Delivery rating — command and handler."""

from protean import handle
from protean.fields import Identifier, Integer, Text
from protean.utils.globals import current_domain

from dispatch.delivery.delivery import Delivery
from dispatch.domain import dispatch


@dispatch.command(part_of="Delivery")
class RateDelivery:
    delivery_id = Identifier(required=True)
    rating = Integer(required=True)
    review = Text()


@dispatch.command_handler(part_of=Delivery)
class RateDeliveryHandler:
    @handle(RateDelivery)
    def rate_delivery(self, command):
        repo = current_domain.repository_for(Delivery)
        delivery = repo.get(command.delivery_id)
        delivery.rate(command.rating, command.review)
        repo.add(delivery)
