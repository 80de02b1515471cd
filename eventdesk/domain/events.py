"""Domain events published on the bus during booking."""

from __future__ import annotations

from pydantic import BaseModel

from eventdesk.domain.models import ValidationOutcome


class EventBooked(BaseModel):
    """Fired after an event (and any recurring instances) is written."""

    event_id: str
    title: str
    updated: bool = False
    instance_ids: list[str] = []


class BookingRejected(BaseModel):
    """Fired when a submission is blocked by validation or a conflict."""

    outcome: ValidationOutcome
    reason: str
    location_id: str | None = None
    conflicting_event_id: str | None = None
