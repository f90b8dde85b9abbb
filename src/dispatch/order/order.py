"""Order aggregate — the dispatch view of a customer purchase from one store.

Checkout owns the order contents; dispatch owns its progress from merchant
acceptance to the customer's door, the courier binding and the cash
settlement flag.

State Machine:
    PENDING → {ACCEPTED, REJECTED, CANCELLED}
    ACCEPTED → {PROCESSING, CANCELLED}
    PROCESSING → {READY_FOR_PICKUP, CANCELLED}
    READY_FOR_PICKUP → {ASSIGNED, CANCELLED}
    ASSIGNED → {PICKED_UP, CANCELLED}
    PICKED_UP → {ON_THE_WAY, DELIVERED, CANCELLED}
    ON_THE_WAY → {DELIVERED, CANCELLED}

A courier rejecting its assignment sends ASSIGNED back to READY_FOR_PICKUP
through ``revert_assignment``; that path is not a general transition.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from dispatch.domain import dispatch
from dispatch.exceptions import InvalidStateTransition, SettlementRequired
from dispatch.order.events import (
    CashCollected,
    OrderAccepted,
    OrderAssigned,
    OrderAssignmentReverted,
    OrderCancelled,
    OrderDelivered,
    OrderOutForDelivery,
    OrderPickedUp,
    OrderProcessingStarted,
    OrderReadyForPickup,
    OrderRecorded,
    OrderRejected,
)
from dispatch.shared.location import GeoLocation


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    PROCESSING = "Processing"
    READY_FOR_PICKUP = "ReadyForPickup"
    ASSIGNED = "Assigned"
    PICKED_UP = "PickedUp"
    ON_THE_WAY = "OnTheWay"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentMethod(Enum):
    CASH_ON_DELIVERY = "CashOnDelivery"
    PREPAID = "Prepaid"


class PaymentStatus(Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    REFUNDED = "Refunded"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.ACCEPTED, OrderStatus.REJECTED, OrderStatus.CANCELLED},
    OrderStatus.ACCEPTED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.READY_FOR_PICKUP, OrderStatus.CANCELLED},
    OrderStatus.READY_FOR_PICKUP: {OrderStatus.ASSIGNED, OrderStatus.CANCELLED},
    OrderStatus.ASSIGNED: {OrderStatus.PICKED_UP, OrderStatus.CANCELLED},
    OrderStatus.PICKED_UP: {OrderStatus.ON_THE_WAY, OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.ON_THE_WAY: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),  # terminal
    OrderStatus.CANCELLED: set(),  # terminal
    OrderStatus.REJECTED: set(),  # terminal
}

TERMINAL_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REJECTED}

# Statuses in which the order must reference its courier
COURIER_BOUND_STATUSES = {
    OrderStatus.ASSIGNED,
    OrderStatus.PICKED_UP,
    OrderStatus.ON_THE_WAY,
    OrderStatus.DELIVERED,
}

_CASH_COLLECTABLE_STATUSES = {
    OrderStatus.PICKED_UP,
    OrderStatus.ON_THE_WAY,
    OrderStatus.DELIVERED,
}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@dispatch.entity(part_of="Order")
class OrderItem:
    """A purchased product line, kept for stock release on cancellation."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    price = Float(min_value=0.0)


@dispatch.entity(part_of="Order")
class StatusHistoryEntry:
    """One append-only record of an accepted status change."""

    status = String(required=True, max_length=50)
    timestamp = DateTime(required=True)
    actor = String(max_length=100)
    note = String(max_length=500)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@dispatch.aggregate
class Order:
    order_number = String(required=True, max_length=50)
    customer_id = Identifier(required=True)
    store_id = Identifier()
    items = HasMany(OrderItem)
    shipping_address = String(max_length=500)
    items_total = Float(default=0.0)
    delivery_fee = Float(default=0.0)
    total_amount = Float(default=0.0)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.PREPAID.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    pickup_location = ValueObject(GeoLocation)
    delivery_location = ValueObject(GeoLocation)
    courier_id = Identifier()
    status_history = HasMany(StatusHistoryEntry)
    rejection_reason = String(max_length=500)
    cancellation_reason = String(max_length=500)
    ready_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    cash_collected_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def courier_reference_matches_status(self):
        bound = OrderStatus(self.status) in COURIER_BOUND_STATUSES
        if bound and not self.courier_id:
            raise ValidationError({"courier_id": [f"A {self.status} order must reference its courier"]})
        if not bound and self.courier_id:
            raise ValidationError({"courier_id": [f"A {self.status} order cannot reference a courier"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def record(
        cls,
        order_number: str,
        customer_id: str,
        items_data: list[dict],
        payment_method: str = PaymentMethod.PREPAID.value,
        store_id: str | None = None,
        shipping_address: str | None = None,
        items_total: float = 0.0,
        delivery_fee: float = 0.0,
        total_amount: float | None = None,
        pickup_location: dict | None = None,
        delivery_location: dict | None = None,
        created_at: datetime | None = None,
    ):
        """Record an order handed over by checkout. It starts in PENDING."""
        now = datetime.now(UTC)
        created_at = created_at or now
        if total_amount is None:
            total_amount = items_total + delivery_fee

        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            store_id=store_id,
            shipping_address=shipping_address,
            items_total=items_total,
            delivery_fee=delivery_fee,
            total_amount=total_amount,
            payment_method=payment_method,
            pickup_location=GeoLocation(**pickup_location) if pickup_location else None,
            delivery_location=GeoLocation(**delivery_location) if delivery_location else None,
            created_at=created_at,
            updated_at=created_at,
        )
        for item_data in items_data:
            order.add_items(OrderItem(**item_data))
        order._append_history(OrderStatus.PENDING, created_at, actor="customer", note="Order placed")

        order.raise_(
            OrderRecorded(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=customer_id,
                store_id=store_id,
                payment_method=order.payment_method,
                item_count=len(items_data),
                total_amount=total_amount,
                recorded_at=created_at,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidStateTransition.between(current.value, target_status.value)

    def _append_history(self, status: OrderStatus, at: datetime, actor: str | None = None, note: str | None = None):
        self.add_status_history(StatusHistoryEntry(status=status.value, timestamp=at, actor=actor, note=note))

    def _move_to(self, target_status: OrderStatus, actor: str | None, note: str | None = None) -> datetime:
        """Validate, apply and log a plain status change. Returns the change time."""
        self._assert_can_transition(target_status)
        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = target_status.value
            self.updated_at = now
            self._append_history(target_status, now, actor=actor, note=note)
        return now

    def _items_payload(self) -> str:
        return json.dumps([{"product_id": str(i.product_id), "quantity": i.quantity} for i in (self.items or [])])

    @property
    def is_terminal(self) -> bool:
        return OrderStatus(self.status) in TERMINAL_STATUSES

    @property
    def is_cash_on_delivery(self) -> bool:
        return self.payment_method == PaymentMethod.CASH_ON_DELIVERY.value

    @property
    def is_settled(self) -> bool:
        """True unless cash is still owed on a cash-on-delivery order."""
        return not self.is_cash_on_delivery or self.payment_status == PaymentStatus.COMPLETED.value

    @property
    def awaiting_courier(self) -> bool:
        return OrderStatus(self.status) == OrderStatus.READY_FOR_PICKUP and not self.courier_id

    def waiting_since(self) -> datetime | None:
        """Start of the order's wait for a courier."""
        return self.ready_at or self.created_at

    # -------------------------------------------------------------------
    # Merchant decisions
    # -------------------------------------------------------------------
    def accept(self, actor: str = "merchant") -> None:
        now = self._move_to(OrderStatus.ACCEPTED, actor, note="Order accepted by store")
        self.raise_(OrderAccepted(order_id=str(self.id), accepted_at=now))

    def reject(self, reason: str, actor: str = "merchant") -> None:
        """Turn down a pending order. A reason is mandatory."""
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["A rejection reason is required"]})
        self._assert_can_transition(OrderStatus.REJECTED)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.REJECTED.value
            self.rejection_reason = reason
            self.updated_at = now
            self._append_history(OrderStatus.REJECTED, now, actor=actor, note=f"Order rejected: {reason}")

        self.raise_(
            OrderRejected(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                reason=reason,
                items=self._items_payload(),
                rejected_at=now,
            )
        )

    def start_processing(self, actor: str = "merchant") -> None:
        now = self._move_to(OrderStatus.PROCESSING, actor, note="Order is being prepared")
        self.raise_(OrderProcessingStarted(order_id=str(self.id), started_at=now))

    def mark_ready_for_pickup(self, actor: str = "merchant") -> None:
        self._assert_can_transition(OrderStatus.READY_FOR_PICKUP)
        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.READY_FOR_PICKUP.value
            self.ready_at = now
            self.updated_at = now
            self._append_history(OrderStatus.READY_FOR_PICKUP, now, actor=actor, note="Order ready for pickup")

        self.raise_(
            OrderReadyForPickup(
                order_id=str(self.id),
                order_number=self.order_number,
                ready_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Courier binding
    # -------------------------------------------------------------------
    def assign(
        self, courier_id: str, courier_name: str, distance_km: float | None = None, manual: bool = False
    ) -> None:
        """Bind a courier to this order. ``manual`` marks a dispatcher's own pick."""
        self._assert_can_transition(OrderStatus.ASSIGNED)
        if self.courier_id:
            raise ValidationError({"courier_id": ["Order already has a courier assigned"]})

        if manual:
            note = f"Delivery partner {courier_name} manually assigned"
        elif distance_km is None:
            note = f"Auto-assigned to {courier_name} (distance unknown)"
        else:
            note = f"Auto-assigned to {courier_name} ({distance_km:.2f}km away)"

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.ASSIGNED.value
            self.courier_id = courier_id
            self.updated_at = now
            self._append_history(OrderStatus.ASSIGNED, now, actor="dispatcher" if manual else "system", note=note)

        self.raise_(
            OrderAssigned(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                courier_id=courier_id,
                distance_km=distance_km,
                assigned_at=now,
            )
        )

    def revert_assignment(self, courier_name: str, reason: str) -> None:
        """Return an ASSIGNED order to the dispatch queue after its courier declined."""
        if OrderStatus(self.status) != OrderStatus.ASSIGNED:
            raise InvalidStateTransition.between(self.status, OrderStatus.READY_FOR_PICKUP.value)

        courier_id = str(self.courier_id)
        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.READY_FOR_PICKUP.value
            self.courier_id = None
            self.updated_at = now
            self._append_history(
                OrderStatus.READY_FOR_PICKUP,
                now,
                actor=courier_id,
                note=f"Delivery rejected by {courier_name}: {reason}",
            )

        self.raise_(
            OrderAssignmentReverted(
                order_id=str(self.id),
                courier_id=courier_id,
                reason=reason,
                reverted_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Progress mirrored from the delivery record
    # -------------------------------------------------------------------
    def mark_picked_up(self) -> None:
        now = self._move_to(OrderStatus.PICKED_UP, str(self.courier_id), note="Order picked up by delivery partner")
        self.raise_(OrderPickedUp(order_id=str(self.id), courier_id=str(self.courier_id), picked_up_at=now))

    def mark_on_the_way(self) -> None:
        now = self._move_to(
            OrderStatus.ON_THE_WAY,
            str(self.courier_id),
            note="Delivery partner is on the way to delivery location",
        )
        self.raise_(OrderOutForDelivery(order_id=str(self.id), courier_id=str(self.courier_id), departed_at=now))

    def mark_delivered(self) -> None:
        if not self.is_settled:
            raise SettlementRequired({"payment_status": ["Collect COD payment before marking as Delivered"]})
        self._assert_can_transition(OrderStatus.DELIVERED)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.DELIVERED.value
            self.delivered_at = now
            self.updated_at = now
            self._append_history(
                OrderStatus.DELIVERED,
                now,
                actor=str(self.courier_id),
                note="Order delivered successfully",
            )

        self.raise_(
            OrderDelivered(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                courier_id=str(self.courier_id),
                delivered_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, reason: str, actor: str = "customer") -> str | None:
        """Cancel from any non-terminal state.

        Returns the id of the courier that was released, if any, so the
        caller can free the courier and cancel its delivery.
        """
        self._assert_can_transition(OrderStatus.CANCELLED)

        previous_status = self.status
        released_courier = str(self.courier_id) if self.courier_id else None
        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.CANCELLED.value
            self.courier_id = None
            self.cancellation_reason = reason
            self.cancelled_at = now
            self.updated_at = now
            self._append_history(OrderStatus.CANCELLED, now, actor=actor, note=f"Order cancelled: {reason}")

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                previous_status=previous_status,
                courier_id=released_courier,
                reason=reason,
                items=self._items_payload(),
                cancelled_at=now,
            )
        )
        return released_courier

    # -------------------------------------------------------------------
    # Settlement
    # -------------------------------------------------------------------
    def record_cash_collected(self, courier_id: str) -> None:
        """Record that the assigned courier collected cash for a COD order."""
        if not self.is_cash_on_delivery:
            raise ValidationError({"payment_method": ["This order is not a COD order"]})
        if str(self.courier_id or "") != str(courier_id):
            raise ValidationError({"courier_id": ["This order is not assigned to this courier"]})
        if OrderStatus(self.status) not in _CASH_COLLECTABLE_STATUSES:
            raise ValidationError({"status": ["Order must be picked up before marking COD as collected"]})
        if self.payment_status == PaymentStatus.COMPLETED.value:
            raise ValidationError({"payment_status": ["COD has already been collected"]})

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.COMPLETED.value
        self.cash_collected_at = now
        self.updated_at = now
        self.raise_(
            CashCollected(
                order_id=str(self.id),
                courier_id=str(courier_id),
                amount=self.total_amount,
                collected_at=now,
            )
        )
