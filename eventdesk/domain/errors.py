"""Exception types raised by the booking and listing services."""

from __future__ import annotations

from eventdesk.domain.models import ValidationResult


class EventDeskError(Exception):
    """Base class for errors surfaced to API callers."""


class InvalidInput(EventDeskError):
    """A booking form failed validation before any conflict check ran."""


class NotFound(EventDeskError):
    pass


class Forbidden(EventDeskError):
    """The actor may not change this event or book this location."""


class StoreError(EventDeskError):
    """The data store failed to answer a query or write."""


class BookingConflict(EventDeskError):
    """A blackout, an overlapping booking, or an unverifiable check."""

    def __init__(self, result: ValidationResult) -> None:
        super().__init__(result.reason)
        self.result = result
