"""Fire-and-forget notification dispatch.

``dispatch`` snapshots the order on the caller's thread and hands delivery
to a bounded worker pool. Delivery is at-most-once: failures are logged with
the notification's correlation id and counted, never raised, and never
retried. When the number of in-flight deliveries reaches ``max_pending`` new
notifications are dropped.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from uuid import uuid4

import structlog

from marketplace.exceptions import NotificationFailure
from marketplace.notification.kinds import NotificationKind, RecipientRole
from marketplace.notification.payload import snapshot_order
from marketplace.notification.templates import get_template

logger = structlog.get_logger(__name__)


class NotificationDispatcher:
    def __init__(
        self,
        sender,
        seller_directory,
        max_workers: int = 4,
        max_pending: int = 256,
        synchronous: bool = False,
    ):
        self.sender = sender
        self.seller_directory = seller_directory
        self.synchronous = synchronous
        self._slots = threading.BoundedSemaphore(max_pending)
        self._executor = None if synchronous else ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="notify"
        )
        self._lock = threading.Lock()
        self.stats = {"sent": 0, "failed": 0, "dropped": 0}

    def _count(self, key: str):
        with self._lock:
            self.stats[key] += 1

    def dispatch(self, kind: NotificationKind, recipient_role: RecipientRole, order, extra: dict | None = None) -> str:
        """Queue one notification about ``order``. Never raises.

        Returns:
            The correlation id used in every log line about this notification.
        """
        correlation_id = uuid4().hex
        try:
            payload = snapshot_order(order, extra)
        except Exception as exc:
            self._count("failed")
            logger.error(
                "Notification payload could not be built",
                correlation_id=correlation_id,
                kind=kind.value,
                recipient_role=recipient_role.value,
                error=str(exc),
            )
            return correlation_id

        if self.synchronous:
            self._deliver(kind, recipient_role, payload, correlation_id)
            return correlation_id

        if not self._slots.acquire(blocking=False):
            self._count("dropped")
            logger.warning(
                "Notification dropped, dispatcher saturated",
                correlation_id=correlation_id,
                kind=kind.value,
                order_id=payload["order_id"],
            )
            return correlation_id

        try:
            self._executor.submit(self._deliver_and_release, kind, recipient_role, payload, correlation_id)
        except RuntimeError as exc:
            # Executor already shut down
            self._slots.release()
            self._count("dropped")
            logger.warning(
                "Notification dropped, dispatcher closed",
                correlation_id=correlation_id,
                kind=kind.value,
                error=str(exc),
            )
        return correlation_id

    def _deliver_and_release(self, kind, recipient_role, payload, correlation_id):
        try:
            self._deliver(kind, recipient_role, payload, correlation_id)
        finally:
            self._slots.release()

    def _recipient(self, recipient_role: RecipientRole, payload: dict) -> str | None:
        if recipient_role == RecipientRole.BUYER:
            return payload.get("buyer_email")
        return self.seller_directory.contact_email(payload["seller_id"])

    def _deliver(self, kind, recipient_role, payload, correlation_id):
        try:
            recipient = self._recipient(recipient_role, payload)
            if not recipient:
                raise NotificationFailure(f"No {recipient_role.value} address for order {payload['order_id']}")

            rendered = get_template(kind).render(payload)
            result = self.sender.send(
                to=recipient,
                subject=rendered["subject"],
                body=rendered["body"],
                kind=kind.value,
                correlation_id=correlation_id,
            )
            if result.get("status") != "sent":
                raise NotificationFailure(result.get("error") or "Delivery failed")
        except Exception as exc:
            self._count("failed")
            logger.error(
                "Notification delivery failed",
                correlation_id=correlation_id,
                kind=kind.value,
                recipient_role=recipient_role.value,
                order_id=payload.get("order_id"),
                error=str(exc),
            )
            return

        self._count("sent")
        logger.info(
            "Notification sent",
            correlation_id=correlation_id,
            kind=kind.value,
            recipient_role=recipient_role.value,
            order_id=payload["order_id"],
            message_id=result.get("message_id"),
        )

    def shutdown(self, wait: bool = True):
        """Stop accepting work; with ``wait`` drain in-flight deliveries first."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
