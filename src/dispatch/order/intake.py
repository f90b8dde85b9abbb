"""Order intake — checkout hands a placed order over to dispatch."""

import json

from protean import handle
from protean.fields import DateTime, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.order.order import Order, PaymentMethod


@dispatch.command(part_of="Order")
class RecordOrder:
    """Record a placed order. Locations are optional; without them matching falls back to tie-breaks."""

    order_number = String(required=True, max_length=50)
    customer_id = Identifier(required=True)
    store_id = Identifier()
    items = Text(required=True)  # JSON list of {product_id, quantity, price}
    payment_method = String(max_length=20, default=PaymentMethod.PREPAID.value)
    shipping_address = String(max_length=500)
    items_total = Float(default=0.0)
    delivery_fee = Float(default=0.0)
    total_amount = Float()
    pickup_lat = Float()
    pickup_lng = Float()
    pickup_address = String(max_length=500)
    delivery_lat = Float()
    delivery_lng = Float()
    placed_at = DateTime()


def _location(lat, lng, address):
    if lat is None or lng is None:
        return None
    return {"lat": lat, "lng": lng, "address": address}


@dispatch.command_handler(part_of=Order)
class RecordOrderHandler:
    @handle(RecordOrder)
    def record_order(self, command):
        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        order = Order.record(
            order_number=command.order_number,
            customer_id=command.customer_id,
            store_id=command.store_id,
            items_data=items_data,
            payment_method=command.payment_method,
            shipping_address=command.shipping_address,
            items_total=command.items_total or 0.0,
            delivery_fee=command.delivery_fee or 0.0,
            total_amount=command.total_amount,
            pickup_location=_location(command.pickup_lat, command.pickup_lng, command.pickup_address),
            delivery_location=_location(command.delivery_lat, command.delivery_lng, command.shipping_address),
            created_at=command.placed_at,
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)
