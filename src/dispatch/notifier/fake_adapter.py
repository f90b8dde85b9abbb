"""Fake notifier — records notifications in memory for tests and local runs."""

from dispatch.exceptions import DownstreamFailure
from dispatch.notifier.port import NotificationType, NotifierPort, RecipientRole


class FakeNotifier(NotifierPort):
    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification provider unavailable"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification provider unavailable"):
        """Configure the fake notifier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(self, recipient_id: str, role: RecipientRole, notification_type: NotificationType, payload: dict) -> None:
        if not self.should_succeed:
            raise DownstreamFailure("notifier", self.failure_reason)
        self.sent.append(
            {
                "recipient_id": recipient_id,
                "role": role.value,
                "type": notification_type.value,
                "payload": dict(payload),
            }
        )

    def sent_to(self, recipient_id: str) -> list[dict]:
        return [n for n in self.sent if n["recipient_id"] == recipient_id]
