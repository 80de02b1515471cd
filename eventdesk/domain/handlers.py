"""Bus handlers that turn booking outcomes into user-facing toasts."""

from __future__ import annotations

from eventdesk.domain.bus import EventBus
from eventdesk.domain.events import BookingRejected, EventBooked
from eventdesk.domain.models import Notification, Severity, ValidationOutcome
from eventdesk.repos.memory import NotificationRepository

_REJECTION_TITLES = {
    ValidationOutcome.INVALID_INPUT: "Error",
    ValidationOutcome.BLACKOUT: "Location unavailable",
    ValidationOutcome.OVERLAP: "Room is already booked",
    ValidationOutcome.UNVERIFIED: "Could not verify booking",
}


class HandlerRegistry:
    """Wires domain-event handlers to the bus with access to the toast sink."""

    def __init__(self, bus: EventBus, notification_repo: NotificationRepository) -> None:
        self.bus = bus
        self.notification_repo = notification_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(EventBooked, self.on_event_booked)
        self.bus.subscribe(BookingRejected, self.on_booking_rejected)

    def on_event_booked(self, event: EventBooked) -> None:
        if event.updated:
            title, message = "Event updated", "Your event has been updated successfully"
        else:
            title, message = "Event created", "Your event has been created successfully"
        if event.instance_ids:
            message += f" ({len(event.instance_ids)} more occurrences scheduled)"
        self.notification_repo.add(Notification(title=title, message=message))

    def on_booking_rejected(self, event: BookingRejected) -> None:
        self.notification_repo.add(
            Notification(
                title=_REJECTION_TITLES.get(event.outcome, "Error"),
                message=event.reason,
                severity=Severity.DESTRUCTIVE,
            )
        )
