"""Order domain events — facts about an order's progress through dispatch.

Events carry the order number and enough context for the courier
performance view, the inventory release handler and the notifier.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from dispatch.domain import dispatch


@dispatch.event(part_of="Order")
class OrderRecorded:
    """Checkout handed a new order over to dispatch."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    store_id = Identifier()
    payment_method = String(required=True)
    item_count = Integer(required=True)
    total_amount = Float(required=True)
    recorded_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderAccepted:
    """The merchant accepted the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    accepted_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderRejected:
    """The merchant turned the order down."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    reason = String(required=True)
    items = Text(required=True)  # JSON list of {product_id, quantity}
    rejected_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderProcessingStarted:
    """The merchant started preparing the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    started_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderReadyForPickup:
    """The order is packed and waiting for a courier."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    ready_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderAssigned:
    """A courier was bound to the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    distance_km = Float()
    assigned_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderAssignmentReverted:
    """The assigned courier declined; the order is back in the dispatch queue."""

    __version__ = 1

    order_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    reason = String(required=True)
    reverted_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderPickedUp:
    """The courier collected the order from the store."""

    __version__ = 1

    order_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    picked_up_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderOutForDelivery:
    """The courier is on the way to the delivery location."""

    __version__ = 1

    order_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    departed_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderDelivered:
    """The order reached the customer."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled before completion."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    previous_status = String(required=True)
    courier_id = Identifier()  # Set when a courier had to be released
    reason = String(required=True)
    items = Text(required=True)  # JSON list of {product_id, quantity}
    cancelled_at = DateTime(required=True)


@dispatch.event(part_of="Order")
class CashCollected:
    """Cash for a cash-on-delivery order was collected by the courier."""

    __version__ = 1

    order_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    amount = Float(required=True)
    collected_at = DateTime(required=True)
