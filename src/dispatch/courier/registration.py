"""Courier registration — command and handler."""

from protean import handle
from protean.fields import String
from protean.utils.globals import current_domain

from dispatch.courier.courier import AccountRole, Courier
from dispatch.domain import dispatch


@dispatch.command(part_of="Courier")
class RegisterCourier:
    """Register a delivery account with dispatch. It starts offline and free."""

    name = String(required=True, max_length=100)
    phone = String(max_length=20)
    role = String(max_length=20, default=AccountRole.COURIER.value)


@dispatch.command_handler(part_of=Courier)
class RegisterCourierHandler:
    @handle(RegisterCourier)
    def register_courier(self, command):
        courier = Courier.register(name=command.name, phone=command.phone, role=command.role)
        current_domain.repository_for(Courier).add(courier)
        return str(courier.id)
