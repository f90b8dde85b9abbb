"""Courier location updates — command and handler."""

from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from dispatch.courier.courier import Courier
from dispatch.domain import dispatch


@dispatch.command(part_of="Courier")
class UpdateCourierLocation:
    courier_id = Identifier(required=True)
    lat = Float(required=True)
    lng = Float(required=True)
    address = String(max_length=500)


@dispatch.command_handler(part_of=Courier)
class CourierLocationHandler:
    @handle(UpdateCourierLocation)
    def update_location(self, command):
        repo = current_domain.repository_for(Courier)
        courier = repo.get(command.courier_id)
        courier.update_location(command.lat, command.lng, command.address)
        repo.add(courier)
