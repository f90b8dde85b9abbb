"""Application tests for AssignmentCoordinator — matching, commit and re-verification."""

import threading
from datetime import UTC, datetime, timedelta

from dispatch.assignment.commit import CommitAssignment
from dispatch.assignment.coordinator import AssignmentCoordinator, AssignmentOutcome
from dispatch.assignment.matcher import Candidate, Match, MatchTier
from dispatch.courier.courier import Courier
from dispatch.delivery.delivery import Delivery, DeliveryStatus
from dispatch.domain import dispatch
from dispatch.order.order import Order, OrderStatus
from dispatch.settings import DispatchSettings
from protean import current_domain


def _deliveries_for(order_id):
    repo = current_domain.repository_for(Delivery)
    return repo._dao.query.filter(order_id=order_id).all().items


class TestAttemptAssign:
    def test_assigns_nearest_courier(self, ready_order, online_courier, notifier):
        near = online_courier(name="Asha", at=(12.91, 77.59))
        online_courier(name="Bala", at=(13.20, 77.90))
        order_id = ready_order(pickup=(12.90, 77.58))

        result = AssignmentCoordinator().attempt_assign(order_id)

        assert result.outcome == AssignmentOutcome.ASSIGNED
        assert result.courier_id == near
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.ASSIGNED.value
        assert order.courier_id == near
        courier = current_domain.repository_for(Courier).get(near)
        assert courier.is_busy
        assert courier.current_order_id == order_id

    def test_opens_pending_delivery(self, ready_order, online_courier):
        courier_id = online_courier(at=(12.97, 77.59))
        order_id = ready_order()

        result = AssignmentCoordinator().attempt_assign(order_id)

        delivery = current_domain.repository_for(Delivery).get(result.delivery_id)
        assert delivery.status == DeliveryStatus.PENDING.value
        assert delivery.courier_id == courier_id
        assert delivery.order_id == order_id
        assert delivery.pickup_address == "Store 1, Brigade Road"
        assert delivery.delivery_address == "12 MG Road, Bengaluru"
        assert delivery.delivery_fee == 40.0
        assert delivery.estimated_delivery_at is not None

    def test_eta_uses_clock_and_settings(self, ready_order, online_courier):
        fixed = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
        online_courier(at=(12.97, 77.59))
        order_id = ready_order()
        coordinator = AssignmentCoordinator(settings=DispatchSettings(delivery_eta_minutes=45), clock=lambda: fixed)

        result = coordinator.attempt_assign(order_id)

        delivery = current_domain.repository_for(Delivery).get(result.delivery_id)
        assert delivery.estimated_delivery_at == fixed + timedelta(minutes=45)

    def test_history_note_names_courier_and_distance(self, ready_order, online_courier):
        online_courier(name="Asha", at=(12.91, 77.59))
        order_id = ready_order(pickup=(12.90, 77.58))

        AssignmentCoordinator().attempt_assign(order_id)

        order = current_domain.repository_for(Order).get(order_id)
        notes = [h.note for h in order.status_history]
        assert any(n.startswith("Auto-assigned to Asha (") and n.endswith("km away)") for n in notes)

    def test_no_courier_available(self, ready_order):
        order_id = ready_order()

        result = AssignmentCoordinator().attempt_assign(order_id)

        assert result.outcome == AssignmentOutcome.NO_COURIER_AVAILABLE
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.READY_FOR_PICKUP.value
        assert _deliveries_for(order_id) == []

    def test_offline_courier_is_not_eligible(self, ready_order, online_courier):
        online_courier(at=(12.97, 77.59), online=False)
        order_id = ready_order()

        result = AssignmentCoordinator().attempt_assign(order_id)

        assert result.outcome == AssignmentOutcome.NO_COURIER_AVAILABLE

    def test_courier_without_location_gets_order_by_fallback(self, ready_order, online_courier):
        courier_id = online_courier()
        order_id = ready_order()

        result = AssignmentCoordinator().attempt_assign(order_id)

        assert result.assigned
        assert result.courier_id == courier_id
        assert result.distance_km is None

    def test_far_courier_still_assigned(self, ready_order, online_courier):
        courier_id = online_courier(at=(0.0, 0.2))
        order_id = ready_order(pickup=(0.0, 0.0))

        result = AssignmentCoordinator().attempt_assign(order_id)

        assert result.assigned
        assert result.courier_id == courier_id
        assert 22.0 < result.distance_km < 22.5


class TestIdempotence:
    def test_second_attempt_is_skipped(self, ready_order, online_courier):
        online_courier(name="Asha", at=(12.97, 77.59))
        online_courier(name="Bala", at=(12.98, 77.60))
        order_id = ready_order()
        coordinator = AssignmentCoordinator()

        first = coordinator.attempt_assign(order_id)
        second = coordinator.attempt_assign(order_id)

        assert first.outcome == AssignmentOutcome.ASSIGNED
        assert second.outcome == AssignmentOutcome.SKIPPED
        assert len(_deliveries_for(order_id)) == 1

    def test_order_not_ready_is_skipped(self, record_order, online_courier):
        online_courier(at=(12.97, 77.59))
        order_id = record_order()

        result = AssignmentCoordinator().attempt_assign(order_id)

        assert result.outcome == AssignmentOutcome.SKIPPED
        assert "Pending" in result.reason


class TestReverification:
    def test_stale_match_on_taken_order_is_skipped(self, ready_order, online_courier):
        first = online_courier(name="Asha", at=(12.97, 77.59))
        second = online_courier(name="Bala", at=(12.97, 77.59))
        order_id = ready_order()
        coordinator = AssignmentCoordinator()
        stale_order = current_domain.repository_for(Order).get(order_id)

        coordinator.attempt_assign(order_id)
        result = coordinator.commit(
            stale_order,
            Match(candidate=Candidate(second, "Bala", 12.97, 77.59), tier=MatchTier.PRIMARY, distance_km=0.0),
        )

        assert result.outcome == AssignmentOutcome.SKIPPED
        assert current_domain.repository_for(Order).get(order_id).courier_id == first
        assert not current_domain.repository_for(Courier).get(second).is_busy

    def test_stale_match_on_busy_courier_is_skipped(self, ready_order, online_courier):
        courier_id = online_courier(name="Asha", at=(12.97, 77.59))
        first_order = ready_order()
        second_order = ready_order()
        coordinator = AssignmentCoordinator()
        coordinator.attempt_assign(first_order)

        order = current_domain.repository_for(Order).get(second_order)
        result = coordinator.commit(
            order,
            Match(candidate=Candidate(courier_id, "Asha", 12.97, 77.59), tier=MatchTier.PRIMARY, distance_km=0.0),
        )

        assert result.outcome == AssignmentOutcome.SKIPPED
        order = current_domain.repository_for(Order).get(second_order)
        assert order.status == OrderStatus.READY_FOR_PICKUP.value
        assert _deliveries_for(second_order) == []

    def test_cleared_flag_on_working_courier_is_restored(self, ready_order, online_courier):
        courier_id = online_courier(at=(12.97, 77.59))
        first_order = ready_order()
        second_order = ready_order()
        AssignmentCoordinator().attempt_assign(first_order)

        repo = current_domain.repository_for(Courier)
        courier = repo.get(courier_id)
        courier.is_busy = False
        repo.add(courier)

        delivery_id = current_domain.process(
            CommitAssignment(
                order_id=second_order,
                courier_id=courier_id,
                distance_km=0.0,
                estimated_delivery_at=datetime.now(UTC),
            ),
            asynchronous=False,
        )

        assert delivery_id is None
        assert repo.get(courier_id).is_busy
        assert _deliveries_for(second_order) == []


class TestConcurrentAttempts:
    def _race(self, coordinator, order_id, runs=2):
        barrier = threading.Barrier(runs)
        results, errors = [], []

        def worker():
            with dispatch.domain_context():
                barrier.wait()
                try:
                    results.append(coordinator.attempt_assign(order_id))
                except Exception as exc:
                    errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(runs)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10.0)
        return results, errors

    def test_same_order_is_assigned_once(self, ready_order, online_courier):
        online_courier(name="Asha", at=(12.97, 77.59))
        online_courier(name="Bala", at=(12.97, 77.59))
        order_id = ready_order()

        results, errors = self._race(AssignmentCoordinator(), order_id)

        assert errors == []
        outcomes = sorted(r.outcome.value for r in results)
        assert outcomes == [AssignmentOutcome.ASSIGNED.value, AssignmentOutcome.SKIPPED.value]
        assert len(_deliveries_for(order_id)) == 1
        busy = current_domain.repository_for(Courier)._dao.query.filter(is_busy=True).all().items
        assert len(busy) == 1

    def test_locks_are_released_after_assignments(self, ready_order, online_courier):
        coordinator = AssignmentCoordinator()
        for n in range(5):
            online_courier(name=f"Courier {n}", at=(12.97, 77.59))
            coordinator.attempt_assign(ready_order())
        assert len(coordinator.locks) == 0


class TestLargeFleet:
    def test_nearest_courier_found_beyond_first_hundred(self, ready_order, online_courier):
        for n in range(100):
            online_courier(name=f"Far {n}", at=(13.5, 78.5))
        near = online_courier(name="Near", at=(12.9001, 77.5801))
        order_id = ready_order(pickup=(12.90, 77.58))

        result = AssignmentCoordinator().attempt_assign(order_id)

        assert result.courier_id == near
        assert result.distance_km < 0.1


class TestNotifications:
    def test_customer_and_courier_are_notified(self, ready_order, online_courier, notifier):
        courier_id = online_courier(at=(12.97, 77.59))
        order_id = ready_order()

        result = AssignmentCoordinator().attempt_assign(order_id)

        assert len(notifier.sent_to("cust-001")) == 1
        courier_note = notifier.sent_to(courier_id)[0]
        assert courier_note["type"] == "delivery_assigned"
        assert courier_note["role"] == "courier"
        assert courier_note["payload"]["delivery_id"] == result.delivery_id

    def test_notifier_failure_keeps_assignment(self, ready_order, online_courier, notifier):
        notifier.configure(should_succeed=False)
        online_courier(at=(12.97, 77.59))
        order_id = ready_order()

        result = AssignmentCoordinator().attempt_assign(order_id)

        assert result.assigned
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.ASSIGNED.value
        assert notifier.sent == []
