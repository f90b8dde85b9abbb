"""Operations dispatch exposes to the rest of the marketplace.

Each operation processes its command first (one unit of work) and only then
runs the follow-up assignment through the scheduler's coordinator, so
every assignment, whatever triggered it, takes the same locked
re-verification path. Callers may pass their own scheduler; otherwise the
application's default one is used.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from dispatch.assignment import get_scheduler
from dispatch.assignment.coordinator import AssignmentResult
from dispatch.assignment.matcher import Candidate, Match, MatchTier
from dispatch.assignment.scheduler import ReconciliationScheduler, SweepSummary
from dispatch.courier.availability import GoOffline, GoOnline
from dispatch.courier.courier import Courier
from dispatch.delivery.delivery import Delivery, DeliveryStatus
from dispatch.delivery.progress import ProgressResult, UpdateDeliveryStatus
from dispatch.delivery.rejection import RejectAssignment
from dispatch.geo import haversine_km
from dispatch.notifier.announcements import announce, order_payload, order_recipients
from dispatch.notifier.port import NotificationType, RecipientRole
from dispatch.order.decisions import MarkReadyForPickup
from dispatch.order.order import Order

logger = structlog.get_logger(__name__)

_PROGRESS_NOTICES = {
    DeliveryStatus.PICKED_UP.value: NotificationType.ORDER_PICKED_UP,
    DeliveryStatus.DELIVERED.value: NotificationType.ORDER_DELIVERED,
}


@dataclass(frozen=True)
class StatusChange:
    """What an operation changed, plus the assignment it triggered (if any)."""

    subject_id: str
    status: str
    assignment: AssignmentResult | None = None


def _scheduler(scheduler: ReconciliationScheduler | None) -> ReconciliationScheduler:
    return scheduler or get_scheduler()


def mark_ready_for_pickup(order_id: str, scheduler: ReconciliationScheduler | None = None) -> StatusChange:
    """Release an order for pickup and make one assignment attempt."""
    current_domain.process(MarkReadyForPickup(order_id=order_id), asynchronous=False)
    result = _scheduler(scheduler).coordinator.attempt_assign(order_id)
    return StatusChange(order_id, "ReadyForPickup", assignment=result)


def toggle_courier_online(
    courier_id: str, online: bool, scheduler: ReconciliationScheduler | None = None
) -> StatusChange:
    """Flip a courier's availability. Coming online offers it the nearest waiting order."""
    if not online:
        current_domain.process(GoOffline(courier_id=courier_id), asynchronous=False)
        return StatusChange(courier_id, "offline")

    current_domain.process(GoOnline(courier_id=courier_id), asynchronous=False)
    result = _scheduler(scheduler).reconcile_courier(courier_id)
    return StatusChange(courier_id, "online", assignment=result)


def reject_assignment(
    delivery_id: str, reason: str | None = None, scheduler: ReconciliationScheduler | None = None
) -> StatusChange:
    """Courier declines a pending delivery; its order is retried immediately with another courier."""
    order_id = current_domain.process(RejectAssignment(delivery_id=delivery_id, reason=reason), asynchronous=False)
    delivery = current_domain.repository_for(Delivery).get(delivery_id)
    _announce_rejection(order_id, delivery)
    result = _scheduler(scheduler).reconcile_order(order_id, declined_by=delivery.courier_id)
    return StatusChange(delivery_id, "Cancelled", assignment=result)


def update_delivery_status(
    delivery_id: str,
    status: str,
    reason: str | None = None,
    scheduler: ReconciliationScheduler | None = None,
) -> StatusChange:
    """Move a delivery along its lifecycle, retrying assignment if its order was requeued."""
    progress: ProgressResult = current_domain.process(
        UpdateDeliveryStatus(delivery_id=delivery_id, status=status, reason=reason),
        asynchronous=False,
    )
    result = None
    if progress.requeued:
        delivery = current_domain.repository_for(Delivery).get(delivery_id)
        if delivery.was_rejected:
            _announce_rejection(progress.order_id, delivery)
        result = _scheduler(scheduler).reconcile_order(progress.order_id, declined_by=progress.courier_id)
    elif progress.status in _PROGRESS_NOTICES:
        order = current_domain.repository_for(Order).get(progress.order_id)
        announce(
            _PROGRESS_NOTICES[progress.status],
            order_recipients(order),
            order_payload(order, delivery_id=delivery_id, courier_id=progress.courier_id),
        )
    return StatusChange(delivery_id, progress.status, assignment=result)


def assign_courier(order_id: str, courier_id: str, scheduler: ReconciliationScheduler | None = None) -> StatusChange:
    """Dispatcher's manual pick: offer ``order_id`` to ``courier_id``.

    Goes through the coordinator's locked commit, so the order must still be
    waiting and the courier must be online and free; otherwise the result is
    Skipped.
    """
    order = current_domain.repository_for(Order).get(order_id)
    courier = current_domain.repository_for(Courier).get(courier_id)
    if not courier.is_courier:
        raise ValidationError({"courier_id": [f"Account {courier_id} is not a delivery partner"]})

    candidate = Candidate.from_courier(courier)
    distance = None
    if candidate.has_location and order.pickup_location is not None:
        distance = haversine_km(order.pickup_location.lat, order.pickup_location.lng, candidate.lat, candidate.lng)

    logger.info("Manual assignment requested", order_id=order_id, courier_id=courier_id, distance_km=distance)
    match = Match(candidate=candidate, tier=MatchTier.MANUAL, distance_km=distance)
    result = _scheduler(scheduler).coordinator.commit(order, match)
    status = current_domain.repository_for(Order).get(order_id).status
    return StatusChange(order_id, status, assignment=result)


def run_sweep_once(scheduler: ReconciliationScheduler | None = None) -> SweepSummary | None:
    """Force one periodic-sweep pass."""
    return _scheduler(scheduler).run_sweep_once()


def _announce_rejection(order_id: str, delivery: Delivery) -> None:
    order = current_domain.repository_for(Order).get(order_id)
    recipients = [(r, role) for r, role in order_recipients(order) if role == RecipientRole.STORE]
    announce(
        NotificationType.ASSIGNMENT_REJECTED,
        recipients,
        order_payload(
            order,
            delivery_id=str(delivery.id),
            courier_id=str(delivery.courier_id),
            reason=delivery.cancellation_reason,
        ),
    )
