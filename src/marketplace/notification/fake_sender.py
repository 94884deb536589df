"""Fake notification sender — records delivered messages for testing."""

import threading
from uuid import uuid4

from marketplace.notification.port import NotificationSender


class FakeNotificationSender(NotificationSender):
    """Sender that records messages in memory for test assertions.

    Safe to call from the dispatcher's worker threads.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.sent: list[dict] = []
        self.should_succeed = True
        self.should_raise = False
        self.failure_reason = "Delivery failed"

    def configure(self, should_succeed: bool = True, should_raise: bool = False, failure_reason: str = "Delivery failed"):
        """Configure the fake sender behavior for testing."""
        self.should_succeed = should_succeed
        self.should_raise = should_raise
        self.failure_reason = failure_reason

    def send(self, to: str, subject: str, body: str, kind: str, correlation_id: str) -> dict:
        if self.should_raise:
            raise ConnectionError(self.failure_reason)
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"msg-{uuid4().hex[:12]}"
        with self._lock:
            self.sent.append(
                {
                    "message_id": message_id,
                    "to": to,
                    "subject": subject,
                    "body": body,
                    "kind": kind,
                    "correlation_id": correlation_id,
                }
            )
        return {"message_id": message_id, "status": "sent"}

    def messages(self, kind: str | None = None, to: str | None = None) -> list[dict]:
        with self._lock:
            return [
                message
                for message in self.sent
                if (kind is None or message["kind"] == kind) and (to is None or message["to"] == to)
            ]

    def reset(self):
        """Clear sent messages (useful between tests)."""
        with self._lock:
            self.sent.clear()
        self.should_succeed = True
        self.should_raise = False
        self.failure_reason = "Delivery failed"
