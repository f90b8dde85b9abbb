"""Delivery domain events — the courier-side record of each assignment."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from dispatch.domain import dispatch


@dispatch.event(part_of="Delivery")
class DeliveryCreated:
    """An assignment was committed and a delivery record opened."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    delivery_fee = Float()
    estimated_delivery_at = DateTime()
    created_at = DateTime(required=True)


@dispatch.event(part_of="Delivery")
class DeliveryAccepted:
    __version__ = 1

    delivery_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    accepted_at = DateTime(required=True)


@dispatch.event(part_of="Delivery")
class DeliveryPickedUp:
    __version__ = 1

    delivery_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    picked_up_at = DateTime(required=True)


@dispatch.event(part_of="Delivery")
class DeliveryOnTheWay:
    __version__ = 1

    delivery_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    departed_at = DateTime(required=True)


@dispatch.event(part_of="Delivery")
class DeliveryCompleted:
    """The courier handed the order to the customer."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    delivery_fee = Float()
    delivered_at = DateTime(required=True)


@dispatch.event(part_of="Delivery")
class DeliveryRejected:
    """The courier declined a pending assignment."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    reason = String(required=True)
    rejected_at = DateTime(required=True)


@dispatch.event(part_of="Delivery")
class DeliveryCancelled:
    """The delivery was called off because its order was cancelled."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    order_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    reason = String(required=True)
    cancelled_at = DateTime(required=True)


@dispatch.event(part_of="Delivery")
class DeliveryRated:
    """The customer rated a completed delivery."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    rating = Integer(required=True)
    rated_at = DateTime(required=True)
