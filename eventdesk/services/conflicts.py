"""Detecting bookings that collide with other events in the same room."""

from __future__ import annotations

from datetime import datetime

from eventdesk.domain.errors import StoreError
from eventdesk.domain.models import Event, ValidationOutcome, ValidationResult
from eventdesk.logs import get_logger
from eventdesk.repos.normalize import normalize_event_row
from eventdesk.repos.store import DataStore, table
from eventdesk.services.intervals import check_interval, ensure_utc, overlaps

logger = get_logger(__name__)

UNVERIFIED_REASON = "Could not verify room availability, please try again"


def find_conflicts(
    new_start: datetime,
    new_end: datetime,
    existing_events: list[Event],
) -> list[Event]:
    """Return existing events that overlap with the given time range.

    Overlap rule: conflict if new_start < existing.end_date AND
    existing.start_date < new_end. Exact boundary touches (end == start) are
    NOT conflicts, so back-to-back bookings are allowed.
    """
    return [
        event
        for event in existing_events
        if overlaps(new_start, new_end, event.start_date, event.end_date)
    ]


class OverlapChecker:
    """Advisory read-then-decide check against events already in a room.

    Nothing here locks the room: two callers can both pass before either
    writes. The store's own constraints, if any, are the last word.
    """

    def __init__(self, store: DataStore) -> None:
        self.store = store

    async def check_overlap(
        self,
        location_id: str,
        start: datetime,
        end: datetime,
        exclude_event_id: str | None = None,
    ) -> ValidationResult:
        start, end = ensure_utc(start), ensure_utc(end)
        interval = check_interval(start, end)
        if not interval.valid:
            return interval

        query = table("events").eq("location_id", location_id).order("start_date")
        if exclude_event_id:
            query = query.neq("id", exclude_event_id)
        try:
            rows = await self.store.select(query)
        except StoreError as exc:
            logger.error("overlap_check_failed", location_id=location_id, error=str(exc))
            return ValidationResult.rejected(ValidationOutcome.UNVERIFIED, UNVERIFIED_REASON)

        existing = [normalize_event_row(row) for row in rows]
        conflicts = find_conflicts(start, end, existing)
        if not conflicts:
            return ValidationResult.ok()

        first = conflicts[0]
        logger.info(
            "overlap_detected",
            location_id=location_id,
            conflicting_event_id=first.id,
            conflicting_count=len(conflicts),
        )
        return ValidationResult.rejected(
            ValidationOutcome.OVERLAP,
            f'Room already booked for this time (conflict with "{first.title}")',
            conflicting_event_id=first.id,
            conflicting_title=first.title,
        )
