"""Event publishing for session lifecycle notifications."""

import logging
from dataclasses import dataclass
from typing import Protocol

from swipe_match.domain.events import SessionEvent

logger = logging.getLogger(__name__)


class EventPublisher(Protocol):
    """Hands lifecycle events to the notification collaborator."""

    def publish(self, event: SessionEvent) -> None:
        """Publish a single event."""


@dataclass
class LoggingEventPublisher(EventPublisher):
    """Publisher that records events in the application log."""

    def publish(self, event: SessionEvent) -> None:
        logger.info("Event %s", event.name, extra={"event": event.payload()})
