"""Courier availability — online/offline commands and busy-flag reconciliation."""

from enum import Enum

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier
from protean.utils.globals import current_domain

from dispatch.courier.courier import Courier, ReleaseReason
from dispatch.courier.registry import CourierRegistry
from dispatch.delivery.delivery import ACTIVE_STATUSES, HOLDING_STATUSES
from dispatch.domain import dispatch

logger = structlog.get_logger(__name__)


class FlagRepair(Enum):
    CONSISTENT = "consistent"
    HEALED = "healed"  # busy without a delivery, cleared
    RESTORED = "restored"  # free while holding a delivery, set


@dispatch.command(part_of="Courier")
class GoOnline:
    courier_id = Identifier(required=True)


@dispatch.command(part_of="Courier")
class GoOffline:
    courier_id = Identifier(required=True)


@dispatch.command(part_of="Courier")
class ReconcileCourierFlag:
    """Bring a courier's busy flag back in line with its deliveries."""

    courier_id = Identifier(required=True)


def _repair(courier: Courier, registry: CourierRegistry) -> FlagRepair:
    holding = registry.current_delivery_of(courier.id, HOLDING_STATUSES)
    if holding is None and courier.is_busy:
        courier.release(ReleaseReason.HEALED)
        logger.warning("Cleared stale busy flag", courier_id=str(courier.id))
        return FlagRepair.HEALED
    if holding is not None and not courier.is_busy:
        courier.mark_busy()
        logger.warning(
            "Restored busy flag for courier holding a delivery",
            courier_id=str(courier.id),
            delivery_id=str(holding.id),
        )
        return FlagRepair.RESTORED
    return FlagRepair.CONSISTENT


@dispatch.command_handler(part_of=Courier)
class CourierAvailabilityHandler:
    @handle(GoOnline)
    def go_online(self, command):
        repo = current_domain.repository_for(Courier)
        courier = repo.get(command.courier_id)
        courier.go_online()
        _repair(courier, CourierRegistry())
        repo.add(courier)

    @handle(GoOffline)
    def go_offline(self, command):
        repo = current_domain.repository_for(Courier)
        courier = repo.get(command.courier_id)
        active = CourierRegistry().current_delivery_of(courier.id, ACTIVE_STATUSES)
        if active is not None:
            raise ValidationError(
                {"is_active": [f"Cannot go offline with a delivery in progress ({active.status})"]}
            )
        courier.go_offline()
        repo.add(courier)

    @handle(ReconcileCourierFlag)
    def reconcile_flag(self, command):
        repo = current_domain.repository_for(Courier)
        courier = repo.get(command.courier_id)
        outcome = _repair(courier, CourierRegistry())
        if outcome != FlagRepair.CONSISTENT:
            repo.add(courier)
        return outcome.value
