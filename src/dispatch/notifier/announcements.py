"""Shared helpers for announcing dispatch progress.

Every announcement is sent after the state change it describes has
committed. A recipient the notifier cannot reach is logged and skipped;
the rest still get theirs.
"""

import structlog

from dispatch.notifier import get_notifier
from dispatch.notifier.port import NotificationType, RecipientRole

logger = structlog.get_logger(__name__)


def order_recipients(order, courier_id: str | None = None) -> list[tuple[str, RecipientRole]]:
    """Customer and store of ``order``, plus the courier when given."""
    recipients = [(str(order.customer_id), RecipientRole.CUSTOMER)]
    if order.store_id:
        recipients.append((str(order.store_id), RecipientRole.STORE))
    if courier_id:
        recipients.append((str(courier_id), RecipientRole.COURIER))
    return recipients


def order_payload(order, **extra) -> dict:
    payload = {"order_id": str(order.id), "order_number": order.order_number}
    payload.update(extra)
    return payload


def announce(
    notification_type: NotificationType,
    recipients: list[tuple[str, RecipientRole]],
    payload: dict,
    notifier=None,
) -> int:
    """Send ``notification_type`` to each recipient. Returns how many were sent."""
    notifier = notifier or get_notifier()
    sent = 0
    for recipient_id, role in recipients:
        try:
            notifier.notify(recipient_id, role, notification_type, payload)
        except Exception as exc:
            logger.error(
                "Notification failed",
                notification_type=notification_type.value,
                order_id=payload.get("order_id"),
                recipient_id=recipient_id,
                role=role.value,
                error=str(exc),
            )
            continue
        sent += 1
    return sent
