"""Courier registry — the lookups dispatch makes over couriers and their deliveries.

Matching, reconciliation and the courier-facing operations all ask the same
questions ("who is free?", "is this courier really on a job?"), so they
are answered in one place. Results are ordered by registration time, which
is the iteration order tie-breaks rely on.
"""

from protean.utils.globals import current_domain

from dispatch.courier.courier import AccountRole, Courier
from dispatch.delivery.delivery import Delivery, DeliveryStatus
from dispatch.order.order import Order, OrderStatus


class CourierRegistry:
    def get(self, courier_id: str) -> Courier:
        return current_domain.repository_for(Courier).get(courier_id)

    def save(self, courier: Courier) -> None:
        current_domain.repository_for(Courier).add(courier)

    def available(self) -> list[Courier]:
        """Online, unengaged courier accounts."""
        repo = current_domain.repository_for(Courier)
        return (
            repo._dao.query.filter(role=AccountRole.COURIER.value, is_active=True, is_busy=False)
            .order_by("registered_at")
            .limit(None)
            .all()
            .items
        )

    def busy(self) -> list[Courier]:
        repo = current_domain.repository_for(Courier)
        return repo._dao.query.filter(is_busy=True).order_by("registered_at").limit(None).all().items

    # -------------------------------------------------------------------
    # Delivery-side lookups
    # -------------------------------------------------------------------
    def deliveries_of(self, courier_id: str, statuses) -> list[Delivery]:
        """The courier's deliveries in ``statuses``, newest first."""
        repo = current_domain.repository_for(Delivery)
        return (
            repo._dao.query.filter(courier_id=str(courier_id), status__in=[s.value for s in statuses])
            .order_by("-created_at")
            .limit(None)
            .all()
            .items
        )

    def current_delivery_of(self, courier_id: str, statuses) -> Delivery | None:
        found = self.deliveries_of(courier_id, statuses)
        return found[0] if found else None

    def open_delivery_for_order(self, order_id: str) -> Delivery | None:
        """The delivery of an order that has not yet been closed, if any."""
        repo = current_domain.repository_for(Delivery)
        closed = [DeliveryStatus.DELIVERED.value, DeliveryStatus.CANCELLED.value]
        open_ = repo._dao.query.filter(order_id=str(order_id)).exclude(status__in=closed).limit(None).all().items
        return open_[0] if open_ else None

    # -------------------------------------------------------------------
    # Order-side lookups
    # -------------------------------------------------------------------
    def unassigned_orders(self, limit: int) -> list[Order]:
        """Orders waiting for a courier, oldest first."""
        repo = current_domain.repository_for(Order)
        waiting = (
            repo._dao.query.filter(status=OrderStatus.READY_FOR_PICKUP.value)
            .order_by("created_at")
            .limit(None)
            .all()
            .items
        )
        return [o for o in waiting if not o.courier_id][:limit]
