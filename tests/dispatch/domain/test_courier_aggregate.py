"""Tests for the Courier aggregate — availability, location and engagement."""

import pytest
from dispatch.courier.courier import AccountRole, Courier, ReleaseReason
from dispatch.courier.events import (
    CourierEngaged,
    CourierLocationUpdated,
    CourierReleased,
    CourierWentOffline,
    CourierWentOnline,
)
from protean.exceptions import ValidationError


def _make_courier(role=AccountRole.COURIER.value):
    courier = Courier.register(name="Ravi", phone="9000000000", role=role)
    courier._events.clear()
    return courier


class TestRegistration:
    def test_registers_offline_and_free(self):
        courier = _make_courier()
        assert not courier.is_active
        assert not courier.is_busy
        assert courier.registered_at is not None
        assert not courier.is_available


class TestAvailability:
    def test_go_online(self):
        courier = _make_courier()
        courier.go_online()
        assert courier.is_active
        assert courier.is_available
        assert isinstance(courier._events[-1], CourierWentOnline)

    def test_go_online_is_idempotent(self):
        courier = _make_courier()
        courier.go_online()
        courier.go_online()
        assert len(courier._events) == 1

    def test_customer_account_cannot_go_online(self):
        courier = _make_courier(role=AccountRole.CUSTOMER.value)
        with pytest.raises(ValidationError) as exc:
            courier.go_online()
        assert "Only courier accounts" in str(exc.value)

    def test_go_offline(self):
        courier = _make_courier()
        courier.go_online()
        courier.go_offline()
        assert not courier.is_active
        assert isinstance(courier._events[-1], CourierWentOffline)

    def test_go_offline_when_offline_is_noop(self):
        courier = _make_courier()
        courier.go_offline()
        assert courier._events == []


class TestLocation:
    def test_update_location(self):
        courier = _make_courier()
        courier.update_location(12.91, 77.59, "Koramangala")
        assert courier.current_location.lat == 12.91
        assert courier.current_location.lng == 77.59
        assert courier.location_updated_at is not None
        assert isinstance(courier._events[-1], CourierLocationUpdated)

    @pytest.mark.parametrize("lat,lng", [(91.0, 0.0), (-91.0, 0.0), (0.0, 181.0), (0.0, -181.0)])
    def test_out_of_range_coordinates(self, lat, lng):
        courier = _make_courier()
        with pytest.raises(ValidationError):
            courier.update_location(lat, lng)


class TestEngagement:
    def test_engage_marks_busy(self):
        courier = _make_courier()
        courier.go_online()
        courier.engage("ord-001")
        assert courier.is_busy
        assert courier.current_order_id == "ord-001"
        assert not courier.is_available
        assert isinstance(courier._events[-1], CourierEngaged)

    def test_cannot_engage_twice(self):
        courier = _make_courier()
        courier.engage("ord-001")
        with pytest.raises(ValidationError):
            courier.engage("ord-002")

    def test_release_frees_courier(self):
        courier = _make_courier()
        courier.engage("ord-001")
        courier.release(ReleaseReason.DELIVERED)
        assert not courier.is_busy
        assert courier.current_order_id is None
        event = courier._events[-1]
        assert isinstance(event, CourierReleased)
        assert event.reason == "delivered"
        assert event.order_id == "ord-001"

    def test_release_when_free_is_noop(self):
        courier = _make_courier()
        courier.release(ReleaseReason.HEALED)
        assert courier._events == []
