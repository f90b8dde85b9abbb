"""Assignment coordinator — matches one order to a courier and commits it.

Every assignment in the system goes through ``attempt_assign`` (or
``commit`` when the caller already chose the pair): the periodic sweep,
the merchant's "ready for pickup", courier rejections, couriers coming
online and a dispatcher's manual pick. There is no second path that
touches order, courier and delivery together.

Outcome of one attempt:
    ASSIGNED                 committed; notifications sent best-effort
    SKIPPED                  re-verification lost a race; the next sweep retries
    NO_COURIER_AVAILABLE     nobody eligible; the order keeps waiting
"""

from collections.abc import Callable, Collection
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

import structlog
from protean.utils.globals import current_domain

from dispatch.assignment.commit import CommitAssignment
from dispatch.assignment.locks import KeyedLocks
from dispatch.assignment.matcher import Candidate, Match, MatchTier, ProximityMatcher
from dispatch.courier.registry import CourierRegistry
from dispatch.exceptions import AssignmentConflict
from dispatch.notifier import get_notifier
from dispatch.notifier.announcements import announce, order_payload, order_recipients
from dispatch.notifier.port import NotificationType
from dispatch.order.order import Order
from dispatch.settings import DispatchSettings, get_settings

logger = structlog.get_logger(__name__)


class AssignmentOutcome(Enum):
    ASSIGNED = "Assigned"
    SKIPPED = "Skipped"
    NO_COURIER_AVAILABLE = "NoCourierAvailable"


@dataclass(frozen=True)
class AssignmentResult:
    outcome: AssignmentOutcome
    order_id: str
    courier_id: str | None = None
    delivery_id: str | None = None
    distance_km: float | None = None
    reason: str | None = None

    @property
    def assigned(self) -> bool:
        return self.outcome == AssignmentOutcome.ASSIGNED


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AssignmentCoordinator:
    def __init__(
        self,
        settings: DispatchSettings | None = None,
        registry: CourierRegistry | None = None,
        matcher: ProximityMatcher | None = None,
        notifier=None,
        clock: Callable[[], datetime] = _utcnow,
        locks: KeyedLocks | None = None,
    ):
        self.settings = settings or get_settings()
        self.registry = registry or CourierRegistry()
        self.matcher = matcher or ProximityMatcher.from_settings(self.settings)
        self._notifier = notifier
        self.clock = clock
        self.locks = locks or KeyedLocks()

    @property
    def notifier(self):
        return self._notifier or get_notifier()

    # -------------------------------------------------------------------
    # Matching
    # -------------------------------------------------------------------
    def attempt_assign(self, order: Order | str, exclude: Collection[str] = ()) -> AssignmentResult:
        """Find the best courier for ``order`` and commit the assignment.

        Couriers in ``exclude`` are not considered; a retry after a rejection
        passes the courier that declined.
        """
        if not isinstance(order, Order):
            order = current_domain.repository_for(Order).get(order)
        order_id = str(order.id)
        if not order.awaiting_courier:
            return AssignmentResult(
                AssignmentOutcome.SKIPPED,
                order_id,
                reason=f"Order is {order.status}, not waiting for a courier",
            )

        couriers = [c for c in self.registry.available() if str(c.id) not in exclude]
        if not couriers:
            logger.info("No courier available", order_id=order_id)
            return AssignmentResult(AssignmentOutcome.NO_COURIER_AVAILABLE, order_id)

        pickup = (order.pickup_location.lat, order.pickup_location.lng) if order.pickup_location else None
        match = self.matcher.select(
            [Candidate.from_courier(c) for c in couriers],
            pickup=pickup,
            waiting_since=order.waiting_since(),
            now=self.clock(),
        )
        if match is None:
            logger.info("No courier matched", order_id=order_id)
            return AssignmentResult(AssignmentOutcome.NO_COURIER_AVAILABLE, order_id)

        return self.commit(order, match)

    # -------------------------------------------------------------------
    # Commit
    # -------------------------------------------------------------------
    def commit(self, order: Order, match: Match) -> AssignmentResult:
        """Re-verify and commit ``match`` for ``order`` under both keyed locks."""
        order_id = str(order.id)
        courier_id = match.courier_id
        eta = self.clock() + timedelta(minutes=self.settings.delivery_eta_minutes)

        with self.locks.hold(f"order:{order_id}", f"courier:{courier_id}"):
            try:
                delivery_id = current_domain.process(
                    CommitAssignment(
                        order_id=order_id,
                        courier_id=courier_id,
                        distance_km=match.distance_km,
                        estimated_delivery_at=eta,
                        manual=match.tier == MatchTier.MANUAL,
                    ),
                    asynchronous=False,
                )
            except AssignmentConflict as exc:
                logger.info("Assignment skipped", order_id=order_id, courier_id=courier_id, reason=str(exc))
                return AssignmentResult(AssignmentOutcome.SKIPPED, order_id, courier_id=courier_id, reason=str(exc))

        if delivery_id is None:
            return AssignmentResult(
                AssignmentOutcome.SKIPPED,
                order_id,
                courier_id=courier_id,
                reason="Courier is holding another delivery",
            )

        logger.info(
            "Order assigned",
            order_id=order_id,
            courier_id=courier_id,
            delivery_id=delivery_id,
            distance_km=match.distance_km,
            tier=match.tier.value,
        )
        self._announce(order, match, delivery_id)
        return AssignmentResult(
            AssignmentOutcome.ASSIGNED,
            order_id,
            courier_id=courier_id,
            delivery_id=delivery_id,
            distance_km=match.distance_km,
        )

    def _announce(self, order: Order, match: Match, delivery_id: str) -> None:
        payload = order_payload(
            order,
            delivery_id=delivery_id,
            courier_name=match.candidate.name,
            distance_km=match.distance_km,
        )
        announce(
            NotificationType.DELIVERY_ASSIGNED,
            order_recipients(order, courier_id=match.courier_id),
            payload,
            notifier=self.notifier,
        )
