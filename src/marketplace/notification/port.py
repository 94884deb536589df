"""Notification sender port — abstract interface for message delivery."""

from abc import ABC, abstractmethod


class NotificationSender(ABC):
    """Abstract interface for notification delivery adapters."""

    @abstractmethod
    def send(self, to: str, subject: str, body: str, kind: str, correlation_id: str) -> dict:
        """Deliver one rendered message.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
