"""GeoLocation value object shared by orders and couriers."""

from protean.fields import Float, String

from dispatch.domain import dispatch


@dispatch.value_object
class GeoLocation:
    """A point on the map, optionally labelled with a street address."""

    lat = Float(required=True, min_value=-90.0, max_value=90.0)
    lng = Float(required=True, min_value=-180.0, max_value=180.0)
    address = String(max_length=500)
