"""BDD tests for couriers rejecting assignments."""

from dispatch import operations
from protean.exceptions import ValidationError
from pytest_bdd import parsers, scenarios, when

scenarios("features/assignment_rejection.feature")


@when(parsers.cfparse('courier "{name}" rejects the assignment with reason "{reason}"'))
def reject_assignment(world, scheduler, name, reason):
    operations.reject_assignment(world["delivery_id"], reason=reason, scheduler=scheduler)


@when(parsers.cfparse('courier "{name}" tries to reject the assignment'))
def try_reject_assignment(world, scheduler, error, name):
    try:
        operations.reject_assignment(world["delivery_id"], scheduler=scheduler)
    except ValidationError as exc:
        error["exc"] = exc
