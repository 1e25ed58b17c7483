"""
contract_services.notifications -- NotificationDispatcher implementations.

Delivery mechanics (email, push) live outside this system.  These
dispatchers cover the in-process ends: structured logging for
deployments that ship logs to a delivery pipeline, and an in-memory
recorder for tests and demos.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from uuid import UUID

from contract_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


@dataclass(frozen=True)
class SentNotification:
    recipient_id: UUID
    type: str
    title: str
    message: str
    contract_id: UUID


class LoggingNotificationDispatcher:
    """Emits one ``notification_dispatched`` log record per notification."""

    def notify(
        self,
        recipient_id: UUID,
        type: str,
        title: str,
        message: str,
        contract_id: UUID,
    ) -> None:
        logger.info(
            "notification_dispatched",
            extra={
                "recipient_id": str(recipient_id),
                "notification_type": type,
                "title": title,
                "notified_contract_id": str(contract_id),
            },
        )


class InMemoryNotificationDispatcher:
    """Records notifications; safe to use from a dispatch executor."""

    def __init__(self) -> None:
        self._sent: list[SentNotification] = []
        self._lock = threading.Lock()

    def notify(
        self,
        recipient_id: UUID,
        type: str,
        title: str,
        message: str,
        contract_id: UUID,
    ) -> None:
        with self._lock:
            self._sent.append(
                SentNotification(recipient_id, type, title, message, contract_id)
            )

    @property
    def sent(self) -> list[SentNotification]:
        with self._lock:
            return list(self._sent)

    def for_recipient(self, recipient_id: UUID) -> list[SentNotification]:
        return [n for n in self.sent if n.recipient_id == recipient_id]

    def clear(self) -> None:
        with self._lock:
            self._sent.clear()
