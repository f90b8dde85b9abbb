"""Courier aggregate — a delivery account's availability and position.

Account details live with the identity service; dispatch keeps only what it
needs to match and track: whether the courier is online, whether it is
holding an order, and where it was last seen.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, String, ValueObject

from dispatch.courier.events import (
    CourierEngaged,
    CourierLocationUpdated,
    CourierRegistered,
    CourierReleased,
    CourierWentOffline,
    CourierWentOnline,
)
from dispatch.domain import dispatch
from dispatch.shared.location import GeoLocation


class AccountRole(Enum):
    COURIER = "Courier"
    CUSTOMER = "Customer"
    SELLER = "Seller"


class ReleaseReason(Enum):
    DELIVERED = "delivered"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    HEALED = "healed"


@dispatch.aggregate
class Courier:
    name = String(required=True, max_length=100)
    phone = String(max_length=20)
    role = String(choices=AccountRole, default=AccountRole.COURIER.value)
    is_active = Boolean(default=False)
    is_busy = Boolean(default=False)
    current_location = ValueObject(GeoLocation)
    current_order_id = Identifier()
    location_updated_at = DateTime()
    registered_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(cls, name: str, phone: str | None = None, role: str = AccountRole.COURIER.value):
        now = datetime.now(UTC)
        courier = cls(name=name, phone=phone, role=role, registered_at=now, updated_at=now)
        courier.raise_(
            CourierRegistered(
                courier_id=str(courier.id),
                name=name,
                role=role,
                registered_at=now,
            )
        )
        return courier

    @property
    def is_courier(self) -> bool:
        return self.role == AccountRole.COURIER.value

    @property
    def is_available(self) -> bool:
        """Eligible for a new assignment right now."""
        return self.is_courier and bool(self.is_active) and not self.is_busy

    # -------------------------------------------------------------------
    # Availability
    # -------------------------------------------------------------------
    def go_online(self) -> None:
        if not self.is_courier:
            raise ValidationError({"role": ["Only courier accounts can go online"]})
        if self.is_active:
            return
        now = datetime.now(UTC)
        self.is_active = True
        self.updated_at = now
        self.raise_(CourierWentOnline(courier_id=str(self.id), online_at=now))

    def go_offline(self) -> None:
        if not self.is_active:
            return
        now = datetime.now(UTC)
        self.is_active = False
        self.updated_at = now
        self.raise_(CourierWentOffline(courier_id=str(self.id), offline_at=now))

    def update_location(self, lat: float, lng: float, address: str | None = None) -> None:
        if lat is None or not -90 <= lat <= 90:
            raise ValidationError({"lat": ["Latitude must be between -90 and 90"]})
        if lng is None or not -180 <= lng <= 180:
            raise ValidationError({"lng": ["Longitude must be between -180 and 180"]})

        now = datetime.now(UTC)
        self.current_location = GeoLocation(lat=lat, lng=lng, address=address)
        self.location_updated_at = now
        self.updated_at = now
        self.raise_(CourierLocationUpdated(courier_id=str(self.id), lat=lat, lng=lng, updated_at=now))

    # -------------------------------------------------------------------
    # Engagement
    # -------------------------------------------------------------------
    def engage(self, order_id: str) -> None:
        """Take on an order. Only the assignment commit calls this."""
        if self.is_busy:
            raise ValidationError({"is_busy": ["Courier is already engaged with an order"]})
        now = datetime.now(UTC)
        self.is_busy = True
        self.current_order_id = order_id
        self.updated_at = now
        self.raise_(CourierEngaged(courier_id=str(self.id), order_id=order_id, engaged_at=now))

    def mark_busy(self) -> None:
        """Restore a busy flag that was lost while a delivery is still running."""
        self.is_busy = True
        self.updated_at = datetime.now(UTC)

    def release(self, reason: ReleaseReason) -> None:
        if not self.is_busy and not self.current_order_id:
            return
        now = datetime.now(UTC)
        order_id = str(self.current_order_id) if self.current_order_id else None
        self.is_busy = False
        self.current_order_id = None
        self.updated_at = now
        self.raise_(
            CourierReleased(
                courier_id=str(self.id),
                order_id=order_id,
                reason=reason.value,
                released_at=now,
            )
        )
