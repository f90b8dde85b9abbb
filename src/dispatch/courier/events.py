"""Courier domain events."""

from protean.fields import DateTime, Float, Identifier, String

from dispatch.domain import dispatch


@dispatch.event(part_of="Courier")
class CourierRegistered:
    """A delivery account was registered with dispatch."""

    __version__ = 1

    courier_id = Identifier(required=True)
    name = String(required=True)
    role = String(required=True)
    registered_at = DateTime(required=True)


@dispatch.event(part_of="Courier")
class CourierWentOnline:
    __version__ = 1

    courier_id = Identifier(required=True)
    online_at = DateTime(required=True)


@dispatch.event(part_of="Courier")
class CourierWentOffline:
    __version__ = 1

    courier_id = Identifier(required=True)
    offline_at = DateTime(required=True)


@dispatch.event(part_of="Courier")
class CourierLocationUpdated:
    __version__ = 1

    courier_id = Identifier(required=True)
    lat = Float(required=True)
    lng = Float(required=True)
    updated_at = DateTime(required=True)


@dispatch.event(part_of="Courier")
class CourierEngaged:
    """The courier took on an order and is no longer free."""

    __version__ = 1

    courier_id = Identifier(required=True)
    order_id = Identifier(required=True)
    engaged_at = DateTime(required=True)


@dispatch.event(part_of="Courier")
class CourierReleased:
    """The courier's busy flag was cleared.

    ``reason`` is one of ``delivered``, ``rejected``, ``cancelled`` or
    ``healed`` (a stale flag cleared by reconciliation).
    """

    __version__ = 1

    courier_id = Identifier(required=True)
    order_id = Identifier()
    reason = String(required=True)
    released_at = DateTime(required=True)
