"""
Notifications and progress reporting.

The client never renders anything itself. State changes are pushed to a
Notifier and long operations report progress through a callback taking
``(percentage, message)``.
"""

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pagesync.logging import get_logger

logger = get_logger("events")

ProgressCallback = Callable[[float, str], None]


class EventKind(Enum):
    ENTERED_OFFLINE = "entered_offline"
    EXITED_OFFLINE = "exited_offline"
    CONFLICT_DETECTED = "conflict_detected"


@dataclass
class Event:
    """A state change pushed to the Notifier."""

    kind: EventKind
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


class Notifier(ABC):
    """Receiver for client events."""

    @abstractmethod
    def notify(self, event: Event) -> None:
        """
        Deliver an event.

        Called outside any internal lock. Implementations should return
        quickly.
        """
        pass


class NullNotifier(Notifier):
    """Notifier that only logs events."""

    def notify(self, event: Event) -> None:
        logger.info(f"{event.kind.value}: {event.message}")


class CallbackNotifier(Notifier):
    """Notifier forwarding every event to a plain callable."""

    def __init__(self, callback: Callable[[Event], None]) -> None:
        self.callback = callback

    def notify(self, event: Event) -> None:
        self.callback(event)


def report_progress(progress: ProgressCallback | None, percentage: float, message: str) -> None:
    """Invoke ``progress`` if given."""
    if progress is not None:
        progress(percentage, message)


__all__ = [
    "CallbackNotifier",
    "Event",
    "EventKind",
    "Notifier",
    "NullNotifier",
    "ProgressCallback",
    "report_progress",
]
