"""User-facing success/error notifications emitted by the sync layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Literal

from irrigation_app.utils.logger import get_logger

logger = get_logger(__name__)

NotificationKind = Literal["success", "error"]

_PAST_TENSE = {"create": "created", "update": "updated", "delete": "deleted", "load": "loaded"}


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    title: str
    message: str
    entity: str = ""
    operation: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "title": self.title,
            "message": self.message,
            "entity": self.entity,
            "operation": self.operation,
            "created_at": self.created_at.isoformat(),
        }


def success_message(label: str, operation: str, count: int = 1) -> str:
    """'Area created', 'Monitoring reading deleted', '3 alerts updated'"""
    done = _PAST_TENSE.get(operation, operation)
    if count != 1:
        return f"{count} {label.lower()}s {done}"
    return f"{label} {done}"


def failure_message(label: str, operation: str) -> str:
    """'Failed to create area', 'Failed to load monitoring reading data'"""
    noun = label.lower()
    if operation == "load":
        return f"Failed to load {noun} data"
    if operation == "subscribe":
        return f"Failed to subscribe to {noun} updates"
    return f"Failed to {operation} {noun}"


def denied_message(label: str, operation: str) -> str:
    """'Not allowed to delete gate'"""
    return f"Not allowed to {operation} {label.lower()}"


class Notifier:
    """Fan-out of notifications to registered sinks (toast queue, tests)"""

    def __init__(self):
        self._sinks: List[Callable[[Notification], None]] = []
        self.history: List[Notification] = []
        self.max_history = 50

    def add_sink(self, sink: Callable[[Notification], None]) -> Callable[[], None]:
        """Register a sink; returns a function that removes it"""
        self._sinks.append(sink)

        def remove():
            if sink in self._sinks:
                self._sinks.remove(sink)

        return remove

    def emit(self, notification: Notification):
        self.history.append(notification)
        del self.history[:-self.max_history]

        if notification.kind == "error":
            logger.warning(f"[{notification.entity}] {notification.message}")
        else:
            logger.info(f"[{notification.entity}] {notification.message}")

        for sink in list(self._sinks):
            try:
                sink(notification)
            except Exception as e:
                logger.error(f"Notification sink failed: {e}", exc_info=True)

    def success(self, label: str, operation: str, entity: str = "", count: int = 1) -> Notification:
        notification = Notification("success", "Success", success_message(label, operation, count), entity, operation)
        self.emit(notification)
        return notification

    def error(self, label: str, operation: str, entity: str = "", detail: str = "") -> Notification:
        message = failure_message(label, operation)
        if detail:
            message = f"{message}: {detail}"
        notification = Notification("error", "Error", message, entity, operation)
        self.emit(notification)
        return notification
