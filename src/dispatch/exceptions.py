"""Dispatch error taxonomy.

Missing orders, couriers and deliveries surface as Protean's
``ObjectNotFoundError`` straight from ``repository.get``. The classes here
cover the remaining failure kinds and keep Protean's field-keyed message
shape so the FastAPI exception handlers render them unchanged.
"""

from protean.exceptions import InvalidOperationError, ValidationError


class InvalidStateTransition(ValidationError):
    """A status change that the lifecycle table does not allow."""

    @classmethod
    def between(cls, current: str, target: str) -> "InvalidStateTransition":
        return cls({"status": [f"Cannot transition from {current} to {target}"]})


class SettlementRequired(ValidationError):
    """Delivered was requested for a cash-on-delivery order whose cash is not collected."""


class AssignmentConflict(InvalidOperationError):
    """Re-verification before commit found the order or courier already taken.

    Raised inside the assignment commit so the unit of work rolls back; the
    coordinator converts it into a ``Skipped`` outcome.
    """


class DownstreamFailure(Exception):
    """A notification, inventory or payment collaborator failed.

    Never propagated past the port call site: the state change it was
    attached to stands.
    """

    def __init__(self, collaborator: str, reason: str):
        super().__init__(f"{collaborator}: {reason}")
        self.collaborator = collaborator
        self.reason = reason
