"""Application tests for courier commands via domain.process()."""

from datetime import UTC, datetime, timedelta

import pytest
from dispatch.courier.availability import FlagRepair, GoOffline, GoOnline, ReconcileCourierFlag
from dispatch.courier.courier import Courier
from dispatch.courier.location import UpdateCourierLocation
from dispatch.courier.registration import RegisterCourier
from dispatch.courier.registry import CourierRegistry
from dispatch.delivery.delivery import HOLDING_STATUSES, Delivery, DeliveryStatus
from protean import current_domain
from protean.exceptions import ValidationError


class TestRegistration:
    def test_register_returns_id(self):
        courier_id = current_domain.process(RegisterCourier(name="Ravi", phone="9000000000"), asynchronous=False)
        courier = current_domain.repository_for(Courier).get(courier_id)
        assert courier.name == "Ravi"
        assert courier.is_courier

    def test_customer_account_cannot_go_online(self):
        account_id = current_domain.process(RegisterCourier(name="Meera", role="Customer"), asynchronous=False)
        with pytest.raises(ValidationError):
            current_domain.process(GoOnline(courier_id=account_id), asynchronous=False)


class TestLocation:
    def test_update_location(self, online_courier):
        courier_id = online_courier()
        current_domain.process(
            UpdateCourierLocation(courier_id=courier_id, lat=12.93, lng=77.62, address="Koramangala"),
            asynchronous=False,
        )
        location = current_domain.repository_for(Courier).get(courier_id).current_location
        assert (location.lat, location.lng) == (12.93, 77.62)
        assert location.address == "Koramangala"


class TestAvailability:
    def test_go_online_and_offline(self, online_courier):
        courier_id = online_courier(online=False)
        current_domain.process(GoOnline(courier_id=courier_id), asynchronous=False)
        assert current_domain.repository_for(Courier).get(courier_id).is_active

        current_domain.process(GoOffline(courier_id=courier_id), asynchronous=False)
        assert not current_domain.repository_for(Courier).get(courier_id).is_active

    def test_going_online_heals_stale_busy_flag(self, online_courier):
        courier_id = online_courier(online=False)
        repo = current_domain.repository_for(Courier)
        courier = repo.get(courier_id)
        courier.engage("ord-ghost")
        repo.add(courier)

        current_domain.process(GoOnline(courier_id=courier_id), asynchronous=False)

        courier = repo.get(courier_id)
        assert courier.is_active
        assert not courier.is_busy


class TestReconcileCourierFlag:
    def test_consistent(self, online_courier):
        courier_id = online_courier()
        outcome = current_domain.process(ReconcileCourierFlag(courier_id=courier_id), asynchronous=False)
        assert outcome == FlagRepair.CONSISTENT.value

    def test_restores_flag_for_courier_holding_delivery(self, ready_order, online_courier, scheduler):
        courier_id = online_courier(at=(12.97, 77.59))
        scheduler.reconcile_order(ready_order())
        repo = current_domain.repository_for(Courier)
        courier = repo.get(courier_id)
        courier.is_busy = False
        repo.add(courier)

        outcome = current_domain.process(ReconcileCourierFlag(courier_id=courier_id), asynchronous=False)

        assert outcome == FlagRepair.RESTORED.value
        assert repo.get(courier_id).is_busy


class TestRegistry:
    def test_available_is_ordered_by_registration(self, online_courier):
        first = online_courier(name="First")
        second = online_courier(name="Second")
        online_courier(name="Offline", online=False)

        available = CourierRegistry().available()

        assert [str(c.id) for c in available] == [first, second]

    def test_unassigned_orders_oldest_first(self, ready_order):
        older = ready_order()
        newer = ready_order()

        orders = CourierRegistry().unassigned_orders(limit=10)

        assert [str(o.id) for o in orders] == [older, newer]

    def test_unassigned_orders_respects_limit(self, ready_order):
        for _ in range(3):
            ready_order()
        assert len(CourierRegistry().unassigned_orders(limit=2)) == 2


class TestRegistryBeyondDefaultPage:
    def test_all_waiting_orders_are_returned(self, ready_order):
        ids = [ready_order() for _ in range(105)]

        orders = CourierRegistry().unassigned_orders(limit=200)

        assert [str(o.id) for o in orders] == ids

    def test_live_delivery_found_among_many_closed_ones(self, online_courier):
        courier_id = online_courier()
        repo = current_domain.repository_for(Delivery)
        start = datetime(2026, 1, 1, tzinfo=UTC)
        for n in range(101):
            repo.add(
                Delivery(
                    order_id=f"old-{n}",
                    courier_id=courier_id,
                    status=DeliveryStatus.DELIVERED.value,
                    created_at=start + timedelta(minutes=n),
                )
            )
        live = Delivery(
            order_id="live",
            courier_id=courier_id,
            status=DeliveryStatus.PICKED_UP.value,
            created_at=start - timedelta(days=1),
        )
        repo.add(live)

        found = CourierRegistry().current_delivery_of(courier_id, HOLDING_STATUSES)

        assert found is not None
        assert str(found.id) == str(live.id)

    def test_every_busy_courier_is_healed(self, online_courier, scheduler):
        repo = current_domain.repository_for(Courier)
        for n in range(105):
            courier = repo.get(online_courier(name=f"Stuck {n}", online=False))
            courier.engage(f"ghost-{n}")
            repo.add(courier)

        assert scheduler.heal_stuck_couriers() == 105
        assert CourierRegistry().busy() == []
