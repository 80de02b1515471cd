"""Domain models for event booking and listing."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, Field, model_validator


class LocationType(StrEnum):
    MEETING_ROOM = "meeting_room"
    RESIDENTIAL_UNIT = "residential_unit"


class View(StrEnum):
    TODAY = "today"
    UPCOMING = "upcoming"
    GOING = "going"
    HOSTING = "hosting"
    PAST = "past"
    DEFAULT = "default"


class ValidationOutcome(StrEnum):
    OK = "ok"
    INVALID_INPUT = "invalid_input"
    BLACKOUT = "blackout"
    OVERLAP = "overlap"
    UNVERIFIED = "unverified"


class Severity(StrEnum):
    INFO = "info"
    DESTRUCTIVE = "destructive"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Stored rows
# ---------------------------------------------------------------------------


class Event(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    description: str | None = None
    start_date: datetime
    end_date: datetime
    is_all_day: bool = False
    location_id: str | None = None
    location_text: str | None = None
    timezone: str = "Europe/Zurich"
    created_by: str
    recurring_pattern_id: str | None = None
    is_recurring_instance: bool = False
    parent_event_id: str | None = None
    link: str | None = None
    av_needs: str | None = None
    speakers: str | None = None
    qa_enabled: bool = False
    qa_url: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _end_not_before_start(self) -> Event:
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class Location(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    building: str | None = None
    floor: str | None = None
    type: LocationType = LocationType.MEETING_ROOM
    anyone_can_book: bool = False
    max_occupancy: int | None = None
    description: str | None = None


class AvailabilityWindow(BaseModel):
    id: str = Field(default_factory=_new_id)
    location_id: str
    start_time: datetime
    end_time: datetime
    is_available: bool


class Tag(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str


class Profile(BaseModel):
    id: str = Field(default_factory=_new_id)
    username: str | None = None
    role: str = "attendee"


class RecurrencePattern(BaseModel):
    """An RRULE body (``FREQ=WEEKLY;BYDAY=TH``) bounded by ``until``."""

    id: str = Field(default_factory=_new_id)
    rule: str
    until: datetime


# ---------------------------------------------------------------------------
# Denormalized listing rows
# ---------------------------------------------------------------------------


class LocationSummary(BaseModel):
    name: str
    building: str | None = None
    floor: str | None = None


class TagSummary(BaseModel):
    id: str
    name: str


class ProfileSummary(BaseModel):
    id: str
    username: str | None = None


class EventRecord(Event):
    location: LocationSummary | None = None
    tags: list[TagSummary] = Field(default_factory=list)
    creator: ProfileSummary | None = None


class EventPage(BaseModel):
    events: list[EventRecord] = Field(default_factory=list)
    has_more: bool = False
    page: int = 0


class EventFilters(BaseModel):
    """Everything that, when changed, resets an event feed."""

    view: View = View.UPCOMING
    tags: frozenset[str] = frozenset()
    day: date | None = None


# ---------------------------------------------------------------------------
# Validation / notification
# ---------------------------------------------------------------------------


class ValidationResult(BaseModel):
    valid: bool
    outcome: ValidationOutcome
    reason: str | None = None
    conflicting_event_id: str | None = None
    conflicting_title: str | None = None

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(valid=True, outcome=ValidationOutcome.OK)

    @classmethod
    def rejected(
        cls, outcome: ValidationOutcome, reason: str, **conflict: str
    ) -> ValidationResult:
        return cls(valid=False, outcome=outcome, reason=reason, **conflict)


class Notification(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    message: str
    severity: Severity = Severity.INFO
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Request DTOs
# ---------------------------------------------------------------------------


class Actor(BaseModel):
    profile_id: str | None = None
    role: str | None = None


class EventDraft(BaseModel):
    """A booking form as submitted.

    ``start_date`` and ``end_date`` are wall-clock times in ``timezone``
    unless they carry their own offset. For all-day drafts only their
    calendar dates are used.
    """

    title: str = ""
    description: str | None = None
    start_date: datetime
    end_date: datetime
    is_all_day: bool = False
    location_id: str | None = None
    location_text: str | None = None
    timezone: str = "Europe/Zurich"
    link: str | None = None
    av_needs: str | None = None
    speakers: str | None = None
    qa_enabled: bool = False
    tag_ids: list[str] = Field(default_factory=list)
    recurrence_rule: str | None = None
    recurrence_until: datetime | None = None


class BookingCheckRequest(BaseModel):
    draft: EventDraft
    actor: Actor = Field(default_factory=Actor)
    exclude_event_id: str | None = None


class BookingRequest(BaseModel):
    draft: EventDraft
    actor: Actor


class AvailabilityToggleRequest(BaseModel):
    day: date
    hour: int = Field(ge=0, le=23)


class AvailabilityCell(BaseModel):
    day: date
    hour: int
    is_available: bool = True
    window_id: str | None = None
