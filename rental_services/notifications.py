"""
rental_services.notifications -- fire-and-forget notification seam.

Responsibility:
    Defines the ``NotificationDispatcher`` protocol invoked after commit for
    admin-visible events and by the reminder/overdue sweeps, plus three
    in-process implementations.  Delivery channels, queueing and retry live
    outside the kernel.

Event kinds:
    contract.created   recipient ADMINS
    payment.created    recipient ADMINS
    invoice.reminder   recipient tenant id
    invoice.overdue    recipient tenant id
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Protocol, runtime_checkable

from rental_kernel.logging_config import get_logger

logger = get_logger("notifications")

CONTRACT_CREATED = "contract.created"
PAYMENT_CREATED = "payment.created"
INVOICE_REMINDER = "invoice.reminder"
INVOICE_OVERDUE = "invoice.overdue"

ADMINS = "admins"


@dataclass(frozen=True)
class Notification:
    kind: str
    recipient_id: str
    payload: Mapping[str, Any]


@runtime_checkable
class NotificationDispatcher(Protocol):
    def dispatch(self, kind: str, recipient_id: str, payload: Mapping[str, Any]) -> None: ...


class NullDispatcher:
    def dispatch(self, kind: str, recipient_id: str, payload: Mapping[str, Any]) -> None:
        return None


class LoggingDispatcher:
    """Writes each notification as a structured log record."""

    def dispatch(self, kind: str, recipient_id: str, payload: Mapping[str, Any]) -> None:
        logger.info(
            "notification_dispatched",
            extra={"kind": kind, "recipient_id": recipient_id, "payload": dict(payload)},
        )


class RecordingDispatcher:
    """Keeps every notification in memory; thread-safe."""

    def __init__(self) -> None:
        self._sent: list[Notification] = []
        self._lock = threading.Lock()

    def dispatch(self, kind: str, recipient_id: str, payload: Mapping[str, Any]) -> None:
        with self._lock:
            self._sent.append(
                Notification(kind, str(recipient_id), MappingProxyType(dict(payload)))
            )

    @property
    def sent(self) -> tuple[Notification, ...]:
        with self._lock:
            return tuple(self._sent)

    def of_kind(self, kind: str) -> list[Notification]:
        return [n for n in self.sent if n.kind == kind]

    def clear(self) -> None:
        with self._lock:
            self._sent.clear()


def deliver(
    dispatcher: NotificationDispatcher,
    kind: str,
    recipient_id: str,
    payload: Mapping[str, Any],
) -> bool:
    """
    Dispatch one notification; a failing dispatcher is logged, never raised.

    Only call after the owning transaction has committed.

    Returns:
        True if the dispatcher accepted the notification.
    """
    try:
        dispatcher.dispatch(kind, str(recipient_id), payload)
        return True
    except Exception:
        logger.exception(
            "notification_failed",
            extra={"kind": kind, "recipient_id": str(recipient_id)},
        )
        return False
