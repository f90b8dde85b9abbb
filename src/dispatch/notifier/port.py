"""Notifier port — where dispatch announces assignments and progress.

Delivery is best-effort: adapters raise ``DownstreamFailure`` when the
push/SMS provider refuses a message, and callers log it and move on.
"""

from abc import ABC, abstractmethod
from enum import Enum


class RecipientRole(Enum):
    CUSTOMER = "customer"
    COURIER = "courier"
    STORE = "store"


class NotificationType(Enum):
    DELIVERY_ASSIGNED = "delivery_assigned"
    ORDER_PICKED_UP = "order_picked_up"
    ORDER_DELIVERED = "order_delivered"
    ASSIGNMENT_REJECTED = "assignment_rejected"


class NotifierPort(ABC):
    @abstractmethod
    def notify(self, recipient_id: str, role: RecipientRole, notification_type: NotificationType, payload: dict) -> None:
        """Send one notification. Raises DownstreamFailure when the provider refuses it."""
        ...
