"""Booking event dispatch to the notification collaborator.

The mailer subscribes a callback; the booking orchestrator publishes one
event per successful operation.  Subscriber failures are logged and never
undo or fail the booking that triggered them.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from candilib.models.booking import BookingEvent

logger = logging.getLogger(__name__)

Subscriber = Callable[[BookingEvent], None]


class NotificationDispatcher:
    """Fan-out of booking events to registered subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def publish(self, event: BookingEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)

        logger.info(
            "booking_event",
            extra={
                "candidat_id": str(event.candidat_id),
                "type": event.type.value,
                "place_id": str(event.place.id) if event.place else None,
                "subscribers": len(subscribers),
            },
        )
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "booking_event_subscriber_failed",
                    extra={
                        "candidat_id": str(event.candidat_id),
                        "type": event.type.value,
                    },
                )


# Process-wide dispatcher
dispatcher = NotificationDispatcher()
