"""Shipped EventSink implementations."""

import logging
import threading

from workflow_kernel.domain.events import NotificationKind, WorkflowNotification
from workflow_kernel.logging_config import get_logger


class InMemoryEventSink:
    """Collects published notifications in arrival order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._notifications: list[WorkflowNotification] = []

    def publish(self, notification: WorkflowNotification) -> None:
        with self._lock:
            self._notifications.append(notification)

    @property
    def notifications(self) -> list[WorkflowNotification]:
        with self._lock:
            return list(self._notifications)

    def of_kind(self, kind: NotificationKind) -> list[WorkflowNotification]:
        return [n for n in self.notifications if n.kind == kind]

    def clear(self) -> None:
        with self._lock:
            self._notifications.clear()


class LoggingEventSink:
    """Writes each notification as one structured log line."""

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.INFO):
        self._logger = logger or get_logger("events")
        self._level = level

    def publish(self, notification: WorkflowNotification) -> None:
        self._logger.log(
            self._level,
            notification.kind.value,
            extra={"notification": notification.to_dict()},
        )
