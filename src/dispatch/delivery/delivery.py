"""Delivery aggregate — one courier's handling of one order.

A delivery is opened when an assignment commits and closes at DELIVERED or
CANCELLED. A closed delivery never blocks a fresh one for the same order.

State Machine:
    PENDING → {ACCEPTED, CANCELLED}
    ACCEPTED → {PICKED_UP, CANCELLED}
    PICKED_UP → {ON_THE_WAY, DELIVERED, CANCELLED}
    ON_THE_WAY → {DELIVERED, CANCELLED}

Cancelling while PENDING is the courier rejecting the assignment.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from dispatch.delivery.events import (
    DeliveryAccepted,
    DeliveryCancelled,
    DeliveryCompleted,
    DeliveryCreated,
    DeliveryOnTheWay,
    DeliveryPickedUp,
    DeliveryRated,
    DeliveryRejected,
)
from dispatch.domain import dispatch
from dispatch.exceptions import InvalidStateTransition

DEFAULT_REJECTION_REASON = "Rejected by delivery partner"
DEFAULT_PICKUP_ADDRESS = "Store address"


class DeliveryStatus(Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    PICKED_UP = "PickedUp"
    ON_THE_WAY = "OnTheWay"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


_VALID_TRANSITIONS = {
    DeliveryStatus.PENDING: {DeliveryStatus.ACCEPTED, DeliveryStatus.CANCELLED},
    DeliveryStatus.ACCEPTED: {DeliveryStatus.PICKED_UP, DeliveryStatus.CANCELLED},
    DeliveryStatus.PICKED_UP: {DeliveryStatus.ON_THE_WAY, DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED},
    DeliveryStatus.ON_THE_WAY: {DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED},
    DeliveryStatus.DELIVERED: set(),  # terminal
    DeliveryStatus.CANCELLED: set(),  # terminal
}

# A courier with a delivery in one of these cannot go offline
ACTIVE_STATUSES = {DeliveryStatus.ACCEPTED, DeliveryStatus.PICKED_UP, DeliveryStatus.ON_THE_WAY}

# A courier with a delivery in one of these is legitimately busy
HOLDING_STATUSES = ACTIVE_STATUSES | {DeliveryStatus.PENDING}


@dispatch.aggregate
class Delivery:
    order_id = Identifier(required=True)
    courier_id = Identifier(required=True)
    status = String(choices=DeliveryStatus, default=DeliveryStatus.PENDING.value)
    pickup_address = String(max_length=500)
    delivery_address = String(max_length=500)
    delivery_fee = Float(default=0.0)
    estimated_delivery_at = DateTime()
    accepted_at = DateTime()
    picked_up_at = DateTime()
    delivered_at = DateTime()
    cancellation_reason = String(max_length=500)
    was_rejected = Boolean(default=False)
    rating = Integer(min_value=1, max_value=5)
    review = Text()
    rated_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def open(
        cls,
        order_id: str,
        courier_id: str,
        delivery_address: str | None,
        delivery_fee: float,
        estimated_delivery_at: datetime,
        pickup_address: str | None = None,
    ):
        """Open a PENDING delivery for a freshly committed assignment."""
        now = datetime.now(UTC)
        delivery = cls(
            order_id=order_id,
            courier_id=courier_id,
            pickup_address=pickup_address or DEFAULT_PICKUP_ADDRESS,
            delivery_address=delivery_address,
            delivery_fee=delivery_fee or 0.0,
            estimated_delivery_at=estimated_delivery_at,
            created_at=now,
            updated_at=now,
        )
        delivery.raise_(
            DeliveryCreated(
                delivery_id=str(delivery.id),
                order_id=order_id,
                courier_id=courier_id,
                delivery_fee=delivery.delivery_fee,
                estimated_delivery_at=estimated_delivery_at,
                created_at=now,
            )
        )
        return delivery

    def assert_can_transition(self, target_status: DeliveryStatus) -> None:
        current = DeliveryStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidStateTransition.between(current.value, target_status.value)

    @property
    def is_active(self) -> bool:
        return DeliveryStatus(self.status) in ACTIVE_STATUSES

    @property
    def is_holding(self) -> bool:
        return DeliveryStatus(self.status) in HOLDING_STATUSES

    @property
    def is_pending(self) -> bool:
        return DeliveryStatus(self.status) == DeliveryStatus.PENDING

    # -------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------
    def accept(self) -> None:
        self.assert_can_transition(DeliveryStatus.ACCEPTED)
        now = datetime.now(UTC)
        self.status = DeliveryStatus.ACCEPTED.value
        self.accepted_at = now
        self.updated_at = now
        self.raise_(DeliveryAccepted(delivery_id=str(self.id), courier_id=str(self.courier_id), accepted_at=now))

    def mark_picked_up(self) -> None:
        self.assert_can_transition(DeliveryStatus.PICKED_UP)
        now = datetime.now(UTC)
        self.status = DeliveryStatus.PICKED_UP.value
        self.picked_up_at = now
        self.updated_at = now
        self.raise_(DeliveryPickedUp(delivery_id=str(self.id), courier_id=str(self.courier_id), picked_up_at=now))

    def mark_on_the_way(self) -> None:
        self.assert_can_transition(DeliveryStatus.ON_THE_WAY)
        now = datetime.now(UTC)
        self.status = DeliveryStatus.ON_THE_WAY.value
        self.updated_at = now
        self.raise_(DeliveryOnTheWay(delivery_id=str(self.id), courier_id=str(self.courier_id), departed_at=now))

    def mark_delivered(self) -> None:
        """Close the delivery. Settlement is checked by the caller, which can see the order."""
        self.assert_can_transition(DeliveryStatus.DELIVERED)
        now = datetime.now(UTC)
        self.status = DeliveryStatus.DELIVERED.value
        self.delivered_at = now
        self.updated_at = now
        self.raise_(
            DeliveryCompleted(
                delivery_id=str(self.id),
                order_id=str(self.order_id),
                courier_id=str(self.courier_id),
                delivery_fee=self.delivery_fee,
                delivered_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Ending early
    # -------------------------------------------------------------------
    def reject(self, reason: str | None = None) -> None:
        """The courier declines the assignment. Only allowed while PENDING."""
        if not self.is_pending:
            raise InvalidStateTransition({"status": [f"Only pending deliveries can be rejected, this one is {self.status}"]})

        reason = reason or DEFAULT_REJECTION_REASON
        now = datetime.now(UTC)
        self.status = DeliveryStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.was_rejected = True
        self.updated_at = now
        self.raise_(
            DeliveryRejected(
                delivery_id=str(self.id),
                order_id=str(self.order_id),
                courier_id=str(self.courier_id),
                reason=reason,
                rejected_at=now,
            )
        )

    def cancel(self, reason: str) -> None:
        self.assert_can_transition(DeliveryStatus.CANCELLED)
        now = datetime.now(UTC)
        self.status = DeliveryStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.updated_at = now
        self.raise_(
            DeliveryCancelled(
                delivery_id=str(self.id),
                order_id=str(self.order_id),
                courier_id=str(self.courier_id),
                reason=reason,
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Feedback
    # -------------------------------------------------------------------
    def rate(self, rating: int, review: str | None = None) -> None:
        if DeliveryStatus(self.status) != DeliveryStatus.DELIVERED:
            raise ValidationError({"status": ["Can only rate delivered orders"]})
        if self.rating:
            raise ValidationError({"rating": ["Delivery already rated"]})
        if rating is None or not 1 <= rating <= 5:
            raise ValidationError({"rating": ["Rating must be between 1 and 5"]})

        now = datetime.now(UTC)
        self.rating = rating
        self.review = review
        self.rated_at = now
        self.updated_at = now
        self.raise_(
            DeliveryRated(
                delivery_id=str(self.id),
                courier_id=str(self.courier_id),
                rating=rating,
                rated_at=now,
            )
        )
