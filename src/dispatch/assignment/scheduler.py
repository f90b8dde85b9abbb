"""Reconciliation scheduler — keeps unassigned orders and courier flags moving.

Periodic sweep (``run_sweep_once``, and every ``sweep_interval_seconds``
once started):
    1. clear busy flags of couriers that hold no delivery
    2. attempt assignment for up to ``sweep_batch_size`` ReadyForPickup
       orders without a courier, oldest first, one at a time

Event-triggered sweeps:
    ``reconcile_order``    an assignment was rejected; retry that order now
    ``reconcile_courier``  a courier came online; offer it the nearest
                           waiting order

Periodic sweeps never overlap: a tick that finds the previous sweep still
running is dropped. Event-triggered sweeps do not take that guard; they
target one order or courier and go through the coordinator's locked
re-verification like everything else.

The timer runs on a daemon thread which pushes its own domain context.
"""

import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from dispatch.assignment.coordinator import AssignmentCoordinator, AssignmentOutcome, AssignmentResult
from dispatch.assignment.matcher import Candidate, Match, MatchTier
from dispatch.courier.availability import FlagRepair, ReconcileCourierFlag
from dispatch.courier.courier import Courier
from dispatch.courier.registry import CourierRegistry
from dispatch.delivery.delivery import HOLDING_STATUSES
from dispatch.geo import haversine_km
from dispatch.settings import DispatchSettings, get_settings

logger = structlog.get_logger(__name__)


@dataclass
class SweepSummary:
    started_at: datetime
    finished_at: datetime | None = None
    scanned: int = 0
    assigned: int = 0
    skipped: int = 0
    unavailable: int = 0
    failed: int = 0
    healed: int = 0
    results: list[AssignmentResult] = field(default_factory=list)

    def record(self, result: AssignmentResult) -> None:
        self.results.append(result)
        if result.outcome == AssignmentOutcome.ASSIGNED:
            self.assigned += 1
        elif result.outcome == AssignmentOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.unavailable += 1

    def as_dict(self) -> dict:
        data = asdict(self)
        data.pop("results")
        return data


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ReconciliationScheduler:
    def __init__(
        self,
        domain=None,
        coordinator: AssignmentCoordinator | None = None,
        settings: DispatchSettings | None = None,
        registry: CourierRegistry | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.settings = settings or get_settings()
        self.registry = registry or CourierRegistry()
        self.coordinator = coordinator or AssignmentCoordinator(
            settings=self.settings, registry=self.registry, clock=clock
        )
        self.clock = clock
        self._domain = domain

        self._sweep_lock = threading.Lock()
        self._state_lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._runs = 0
        self._last_summary: SweepSummary | None = None

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def start(self, run_immediately: bool = True) -> None:
        """Start the periodic sweep on a background thread."""
        with self._state_lock:
            if self._thread is not None and self._thread.is_alive():
                logger.warning("Reconciliation scheduler already running")
                return
            if self._domain is None:
                raise ValueError("A domain is required to run the scheduler in the background")
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run,
                args=(run_immediately,),
                name="dispatch-reconciliation",
                daemon=True,
            )
            self._thread.start()
        logger.info("Reconciliation scheduler started", interval_seconds=self.settings.sweep_interval_seconds)

    def stop(self, timeout: float | None = 5.0) -> None:
        with self._state_lock:
            thread = self._thread
            self._thread = None
        if thread is None:
            return
        self._stop_event.set()
        thread.join(timeout)
        logger.info("Reconciliation scheduler stopped")

    def status(self) -> dict:
        with self._state_lock:
            running = self._thread is not None and self._thread.is_alive()
            last = self._last_summary.as_dict() if self._last_summary else None
            return {
                "running": running,
                "sweep_in_progress": self._sweep_lock.locked(),
                "interval_seconds": self.settings.sweep_interval_seconds,
                "runs": self._runs,
                "last_sweep": last,
            }

    def _run(self, run_immediately: bool) -> None:
        with self._domain.domain_context():
            if run_immediately:
                self._tick()
            while not self._stop_event.wait(self.settings.sweep_interval_seconds):
                self._tick()

    def _tick(self) -> None:
        try:
            self.run_sweep_once()
        except Exception as exc:
            # Keep the timer alive; the next tick retries
            logger.exception("Reconciliation sweep crashed", error=str(exc))

    # -------------------------------------------------------------------
    # Periodic sweep
    # -------------------------------------------------------------------
    def run_sweep_once(self) -> SweepSummary | None:
        """Run one full sweep. Returns None if a sweep is already in progress."""
        if not self._sweep_lock.acquire(blocking=False):
            logger.info("Sweep already in progress, skipping")
            return None
        try:
            summary = SweepSummary(started_at=self.clock())
            summary.healed = self.heal_stuck_couriers()

            orders = self.registry.unassigned_orders(self.settings.sweep_batch_size)
            summary.scanned = len(orders)
            for order in orders:
                try:
                    summary.record(self.coordinator.attempt_assign(order))
                except Exception as exc:
                    summary.failed += 1
                    logger.error("Assignment attempt failed", order_id=str(order.id), error=str(exc))

            summary.finished_at = self.clock()
            with self._state_lock:
                self._runs += 1
                self._last_summary = summary
            logger.info(
                "Reconciliation sweep finished",
                scanned=summary.scanned,
                assigned=summary.assigned,
                skipped=summary.skipped,
                unavailable=summary.unavailable,
                failed=summary.failed,
                healed=summary.healed,
            )
            return summary
        finally:
            self._sweep_lock.release()

    def heal_stuck_couriers(self) -> int:
        """Clear the busy flag of every courier that is not holding a delivery."""
        healed = 0
        for courier in self.registry.busy():
            if self.registry.current_delivery_of(courier.id, HOLDING_STATUSES) is not None:
                continue
            try:
                outcome = current_domain.process(ReconcileCourierFlag(courier_id=str(courier.id)), asynchronous=False)
            except Exception as exc:
                logger.error("Busy flag repair failed", courier_id=str(courier.id), error=str(exc))
                continue
            if outcome == FlagRepair.HEALED.value:
                healed += 1
        return healed

    # -------------------------------------------------------------------
    # Event-triggered sweeps
    # -------------------------------------------------------------------
    def reconcile_order(self, order_id: str, declined_by: str | None = None) -> AssignmentResult:
        """Retry assignment for one order right away (after a rejection).

        The courier that declined is passed over; if nobody else is free the
        order waits for the periodic sweep, which considers every courier.
        """
        exclude = (str(declined_by),) if declined_by else ()
        return self.coordinator.attempt_assign(order_id, exclude=exclude)

    def reconcile_courier(self, courier_id: str) -> AssignmentResult | None:
        """Offer a courier that just came online the nearest waiting order.

        Returns None when the courier cannot take an order or no waiting
        order has a pickup location.
        """
        courier = self.registry.get(courier_id)
        if not courier.is_courier or not courier.is_active:
            return None

        outcome = current_domain.process(ReconcileCourierFlag(courier_id=str(courier.id)), asynchronous=False)
        if outcome == FlagRepair.RESTORED.value:
            logger.info("Courier came online holding a delivery", courier_id=str(courier.id))
            return None
        if outcome == FlagRepair.HEALED.value:
            courier = self.registry.get(courier_id)
        if not courier.is_available or courier.current_location is None:
            return None

        picked = self._nearest_waiting_order(courier)
        if picked is None:
            logger.info("No nearby orders for courier", courier_id=str(courier.id))
            return None

        order, distance, tier = picked
        match = Match(candidate=Candidate.from_courier(courier), tier=tier, distance_km=distance)
        return self.coordinator.commit(order, match)

    def _nearest_waiting_order(self, courier: Courier):
        here = courier.current_location
        radius = self.settings.primary_radius_km

        best_near = best_any = None
        for order in self.registry.unassigned_orders(self.settings.online_scan_limit):
            if order.pickup_location is None:
                continue
            d = haversine_km(here.lat, here.lng, order.pickup_location.lat, order.pickup_location.lng)
            if d <= radius and (best_near is None or d < best_near[1]):
                best_near = (order, d)
            if best_any is None or d < best_any[1]:
                best_any = (order, d)

        if best_near is not None:
            return best_near[0], best_near[1], MatchTier.PRIMARY
        if best_any is not None:
            return best_any[0], best_any[1], MatchTier.GLOBAL
        return None
