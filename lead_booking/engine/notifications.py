"""
Notification port.

The engine reports every operator-facing outcome as a Notification handed
to a Notifier. How it is shown (toast, terminal line, log entry) is the
Notifier's business.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)

# Server messages that signal an expected, refresh-recoverable conflict
CONFLICT_PATTERNS = ("unavailable", "already booked", "buffer period")


class Severity(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    message: str
    severity: Severity


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None:
        ...


def classify_failure(message: str) -> Severity:
    """Warning for known conflict messages, error for everything else."""
    lower = message.lower()
    if any(pattern in lower for pattern in CONFLICT_PATTERNS):
        return Severity.WARNING
    return Severity.ERROR


class LoggingNotifier:
    """Notifier that writes to the log. Default when nothing renders notifications."""

    _LEVELS = {
        Severity.SUCCESS: logging.INFO,
        Severity.WARNING: logging.WARNING,
        Severity.ERROR: logging.ERROR,
    }

    def notify(self, notification: Notification) -> None:
        logger.log(self._LEVELS[notification.severity], "%s", notification.message)


class RecordingNotifier:
    """Notifier that keeps every notification, newest last."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    @property
    def last(self) -> Notification:
        if not self.notifications:
            raise LookupError("No notifications recorded")
        return self.notifications[-1]

    def of(self, severity: Severity) -> list[Notification]:
        return [n for n in self.notifications if n.severity == severity]
