"""Validating and writing room bookings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from pydantic import AnyUrl, TypeAdapter, ValidationError

from eventdesk.config import Settings
from eventdesk.domain.bus import EventBus
from eventdesk.domain.errors import (
    BookingConflict,
    Forbidden,
    InvalidInput,
    NotFound,
    StoreError,
)
from eventdesk.domain.events import BookingRejected, EventBooked
from eventdesk.domain.models import (
    Actor,
    Event,
    EventDraft,
    Location,
    LocationType,
    RecurrencePattern,
    ValidationOutcome,
    ValidationResult,
)
from eventdesk.logs import get_logger
from eventdesk.repos.normalize import normalize_event_row, normalize_location_row
from eventdesk.repos.store import DataStore, table
from eventdesk.services.availability import AvailabilityService, validate_availability
from eventdesk.services.conflicts import UNVERIFIED_REASON, OverlapChecker
from eventdesk.services.intervals import (
    all_day_bounds,
    check_interval,
    overlaps,
    to_utc,
    zone,
)
from eventdesk.services.recurrence import expand_series

logger = get_logger(__name__)

_url = TypeAdapter(AnyUrl)


def is_valid_url(value: str | None) -> bool:
    """Empty links are allowed; anything else must parse as an absolute URL."""
    if not value:
        return True
    try:
        _url.validate_python(value)
    except ValidationError:
        return False
    return True


def _self_overlapping(intervals: list[tuple[datetime, datetime]]) -> bool:
    """Whether any two intervals of one series overlap.

    Once sorted by start, an overlapping pair always shows up between
    neighbours.
    """
    ordered = sorted(intervals)
    return any(
        overlaps(a_start, a_end, b_start, b_end)
        for (a_start, a_end), (b_start, b_end) in zip(ordered, ordered[1:])
    )


@dataclass
class ResolvedDraft:
    """A draft after local validation: UTC bounds and looked-up rows."""

    start: datetime
    end: datetime
    role: str | None
    location: Location | None = None
    pattern: RecurrencePattern | None = None
    instances: list[tuple[datetime, datetime]] = field(default_factory=list)


class BookingService:
    """Runs the booking form's checks and writes accepted bookings.

    Checks run in order: local validation, blackout windows, overlapping
    events. The same checks run again right before every write; they are
    advisory and do not lock the room against concurrent bookings.
    """

    def __init__(self, store: DataStore, bus: EventBus, settings: Settings) -> None:
        self.store = store
        self.bus = bus
        self.settings = settings
        self.overlap = OverlapChecker(store)
        self.availability = AvailabilityService(store, zone(settings.default_timezone))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _role(self, actor: Actor) -> str | None:
        if not actor.profile_id:
            return actor.role
        rows = await self.store.select(
            table("profiles").eq("id", actor.profile_id).select("id", "role")
        )
        return rows[0].get("role") if rows else actor.role

    async def _location(self, location_id: str) -> Location | None:
        rows = await self.store.select(table("locations").eq("id", location_id))
        return normalize_location_row(rows[0]) if rows else None

    async def get_event(self, event_id: str) -> Event:
        rows = await self.store.select(table("events").eq("id", event_id))
        if not rows:
            raise NotFound(f"Event {event_id} not found")
        return normalize_event_row(rows[0])

    async def bookable_locations(self, actor: Actor) -> list[Location]:
        """Meeting rooms by name; non-privileged actors only see open rooms."""
        rows = await self.store.select(
            table("locations").eq("type", LocationType.MEETING_ROOM.value).order("name")
        )
        locations = [normalize_location_row(row) for row in rows]
        if self.settings.is_privileged(await self._role(actor)):
            return locations
        return [loc for loc in locations if loc.anyone_can_book]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def validate_draft(
        self, draft: EventDraft, actor: Actor, creating: bool = True
    ) -> ResolvedDraft:
        """Local checks plus resolving the chosen room; no conflict checks."""
        if not draft.title.strip():
            raise InvalidInput("Event title is required")
        if not draft.location_id and not (draft.location_text or "").strip():
            raise InvalidInput("Please select a location")
        if not is_valid_url(draft.link):
            raise InvalidInput("Please enter a valid URL")
        if creating and not actor.profile_id:
            raise InvalidInput("User profile not found. Please complete your profile setup.")

        if draft.is_all_day:
            start, end = all_day_bounds(
                draft.start_date.date(), draft.end_date.date(), draft.timezone
            )
        else:
            start = to_utc(draft.start_date, draft.timezone)
            end = to_utc(draft.end_date, draft.timezone)
        interval = check_interval(start, end)
        if not interval.valid:
            raise InvalidInput(interval.reason)

        resolved = ResolvedDraft(start=start, end=end, role=await self._role(actor))

        if draft.location_id:
            location = await self._location(draft.location_id)
            if location is None:
                raise InvalidInput("Selected location does not exist")
            if location.type != LocationType.MEETING_ROOM:
                raise InvalidInput("Only meeting rooms can be booked")
            if not location.anyone_can_book and not self.settings.is_privileged(resolved.role):
                raise InvalidInput("You are not allowed to book this location")
            resolved.location = location

        if draft.recurrence_rule:
            if draft.recurrence_until is None:
                raise InvalidInput("Recurring events need an end date")
            resolved.pattern = RecurrencePattern(
                rule=draft.recurrence_rule,
                until=to_utc(draft.recurrence_until, draft.timezone),
            )
            preview = Event(
                title=draft.title,
                start_date=start,
                end_date=end,
                timezone=draft.timezone,
                created_by=actor.profile_id or "",
            )
            resolved.instances = [
                (child.start_date, child.end_date)
                for child in expand_series(
                    preview, resolved.pattern, self.settings.max_recurrence_instances
                )
            ]
            if _self_overlapping([(start, end), *resolved.instances]):
                raise InvalidInput("Recurring occurrences must not overlap each other")
        return resolved

    async def _conflicts(
        self, resolved: ResolvedDraft, exclude_event_id: str | None
    ) -> ValidationResult:
        if resolved.location is None:
            return ValidationResult.ok()
        location_id = resolved.location.id
        intervals = [(resolved.start, resolved.end), *resolved.instances]

        try:
            windows = await self.availability.windows_for(location_id)
        except StoreError as exc:
            logger.error("availability_fetch_failed", location_id=location_id, error=str(exc))
            return ValidationResult.rejected(ValidationOutcome.UNVERIFIED, UNVERIFIED_REASON)

        for start, end in intervals:
            result = validate_availability(location_id, start, end, windows)
            if not result.valid:
                return result
        for start, end in intervals:
            result = await self.overlap.check_overlap(location_id, start, end, exclude_event_id)
            if not result.valid:
                return result
        return ValidationResult.ok()

    async def check(
        self, draft: EventDraft, actor: Actor, exclude_event_id: str | None = None
    ) -> ValidationResult:
        """Evaluate a draft without writing anything, for live form feedback."""
        try:
            resolved = await self.validate_draft(draft, actor, creating=exclude_event_id is None)
        except InvalidInput as exc:
            return ValidationResult.rejected(ValidationOutcome.INVALID_INPUT, str(exc))
        return await self._conflicts(resolved, exclude_event_id)

    async def _guard(
        self, draft: EventDraft, actor: Actor, exclude_event_id: str | None
    ) -> ResolvedDraft:
        try:
            resolved = await self.validate_draft(draft, actor, creating=exclude_event_id is None)
        except InvalidInput as exc:
            self._reject(ValidationResult.rejected(ValidationOutcome.INVALID_INPUT, str(exc)), draft)
            raise
        result = await self._conflicts(resolved, exclude_event_id)
        if not result.valid:
            self._reject(result, draft)
            raise BookingConflict(result)
        return resolved

    def _reject(self, result: ValidationResult, draft: EventDraft) -> None:
        logger.info(
            "booking_rejected",
            outcome=result.outcome.value,
            reason=result.reason,
            location_id=draft.location_id,
        )
        self.bus.publish(
            BookingRejected(
                outcome=result.outcome,
                reason=result.reason or "",
                location_id=draft.location_id,
                conflicting_event_id=result.conflicting_event_id,
            )
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _fields(self, draft: EventDraft, resolved: ResolvedDraft) -> dict:
        return {
            "title": draft.title.strip(),
            "description": draft.description or None,
            "start_date": resolved.start,
            "end_date": resolved.end,
            "is_all_day": draft.is_all_day,
            "location_id": resolved.location.id if resolved.location else None,
            "location_text": None if resolved.location else draft.location_text,
            "timezone": draft.timezone,
            "link": draft.link or None,
            "av_needs": draft.av_needs or None,
            "speakers": draft.speakers or None,
            "qa_enabled": draft.qa_enabled,
        }

    async def _write_tags(self, event_id: str, tag_ids: list[str]) -> None:
        for tag_id in dict.fromkeys(tag_ids):
            await self.store.insert(
                "event_tag_relations", {"event_id": event_id, "tag_id": tag_id}
            )

    async def create(self, draft: EventDraft, actor: Actor) -> Event:
        resolved = await self._guard(draft, actor, exclude_event_id=None)

        event = Event(created_by=actor.profile_id, **self._fields(draft, resolved))
        if resolved.pattern is not None:
            event.recurring_pattern_id = resolved.pattern.id

        # rows already written when a later insert fails; there is no rollback
        written: list[str] = []
        instance_ids: list[str] = []
        try:
            if resolved.pattern is not None:
                await self.store.insert(
                    "recurring_patterns", resolved.pattern.model_dump(mode="json")
                )
                written.append(f"recurring_patterns:{resolved.pattern.id}")

            row = await self.store.insert("events", event.model_dump(mode="json"))
            created = normalize_event_row(row)
            written.append(f"events:{created.id}")
            await self._write_tags(created.id, draft.tag_ids)

            if resolved.pattern is not None:
                for child in expand_series(
                    created, resolved.pattern, self.settings.max_recurrence_instances
                ):
                    await self.store.insert("events", child.model_dump(mode="json"))
                    written.append(f"events:{child.id}")
                    await self._write_tags(child.id, draft.tag_ids)
                    instance_ids.append(child.id)
        except StoreError as exc:
            logger.error(
                "booking_write_failed",
                title=event.title,
                location_id=event.location_id,
                partial=bool(written),
                written=written,
                error=str(exc),
            )
            raise

        logger.info(
            "event_booked",
            event_id=created.id,
            location_id=created.location_id,
            instances=len(instance_ids),
        )
        self.bus.publish(
            EventBooked(event_id=created.id, title=created.title, instance_ids=instance_ids)
        )
        return created

    async def update(self, event_id: str, draft: EventDraft, actor: Actor) -> Event:
        """Rewrite a single event. Recurring siblings are left untouched."""
        existing = await self.get_event(event_id)
        role = await self._role(actor)
        if existing.created_by != actor.profile_id and not self.settings.is_privileged(role):
            raise Forbidden("Only the creator or an admin can edit this event")

        # edits apply to this row only, never re-expand a series
        draft = draft.model_copy(update={"recurrence_rule": None, "recurrence_until": None})
        resolved = await self._guard(draft, actor, exclude_event_id=event_id)

        fields = self._fields(draft, resolved)
        values = Event(created_by=existing.created_by, **fields).model_dump(
            mode="json", include=set(fields)
        )
        try:
            row = await self.store.update("events", event_id, values)
            if draft.tag_ids:
                await self.store.delete(table("event_tag_relations").eq("event_id", event_id))
                await self._write_tags(event_id, draft.tag_ids)
        except StoreError as exc:
            logger.error("booking_write_failed", event_id=event_id, error=str(exc))
            raise

        updated = normalize_event_row(row)
        logger.info("event_updated", event_id=event_id, location_id=updated.location_id)
        self.bus.publish(EventBooked(event_id=event_id, title=updated.title, updated=True))
        return updated
