"""Blackout-window validation and the weekly availability grid."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable
from zoneinfo import ZoneInfo

from eventdesk.domain.models import (
    AvailabilityCell,
    AvailabilityWindow,
    ValidationOutcome,
    ValidationResult,
)
from eventdesk.logs import get_logger
from eventdesk.repos.normalize import normalize_window_row
from eventdesk.repos.store import DataStore, table
from eventdesk.services.intervals import check_interval, ensure_utc, hits_window

logger = get_logger(__name__)

BLACKOUT_REASON = "Selected location is not available during this time period"

HOURS = range(24)


def validate_availability(
    location_id: str,
    start: datetime,
    end: datetime,
    windows: Iterable[AvailabilityWindow],
) -> ValidationResult:
    """Check a candidate booking against a location's blackout windows.

    Pure: the caller fetches ``windows`` and must call again whenever the
    location, start or end changes. Windows flagged available, or belonging
    to another location, never block.
    """
    start, end = ensure_utc(start), ensure_utc(end)
    interval = check_interval(start, end)
    if not interval.valid:
        return interval

    for window in windows:
        if window.is_available or window.location_id != location_id:
            continue
        if hits_window(start, end, ensure_utc(window.start_time), ensure_utc(window.end_time)):
            return ValidationResult.rejected(ValidationOutcome.BLACKOUT, BLACKOUT_REASON)
    return ValidationResult.ok()


class AvailabilityService:
    """Reads and edits a location's hour-by-hour availability.

    Hours default to available. A window row is only written the first time
    an hour is toggled; after that the same row is flipped in place.
    """

    def __init__(self, store: DataStore, tz: ZoneInfo) -> None:
        self.store = store
        self.tz = tz

    async def windows_for(self, location_id: str) -> list[AvailabilityWindow]:
        rows = await self.store.select(
            table("location_availability").eq("location_id", location_id)
        )
        return [normalize_window_row(row) for row in rows]

    def _hour_start(self, day: date, hour: int) -> datetime:
        return datetime.combine(day, time(hour), tzinfo=self.tz).astimezone(timezone.utc)

    def _cell_key(self, instant: datetime) -> tuple[date, int]:
        local = instant.astimezone(self.tz)
        return local.date(), local.hour

    async def week(self, location_id: str, week_start: date) -> list[AvailabilityCell]:
        """Seven days of 24 cells starting at ``week_start``."""
        days = [week_start + timedelta(days=i) for i in range(7)]
        first = self._hour_start(days[0], 0)
        last = self._hour_start(days[-1] + timedelta(days=1), 0)
        rows = await self.store.select(
            table("location_availability")
            .eq("location_id", location_id)
            .gte("start_time", first)
            .lt("start_time", last)
        )

        cells = {
            (day, hour): AvailabilityCell(day=day, hour=hour)
            for day in days
            for hour in HOURS
        }
        for window in map(normalize_window_row, rows):
            key = self._cell_key(window.start_time)
            if key in cells:
                cells[key].is_available = window.is_available
                cells[key].window_id = window.id
        return list(cells.values())

    async def toggle(self, location_id: str, day: date, hour: int) -> AvailabilityWindow:
        start = self._hour_start(day, hour)
        existing = await self.store.select(
            table("location_availability")
            .eq("location_id", location_id)
            .eq("start_time", start)
        )
        if existing:
            window = normalize_window_row(existing[0])
            row = await self.store.update(
                "location_availability",
                window.id,
                {"is_available": not window.is_available},
            )
        else:
            window = AvailabilityWindow(
                location_id=location_id,
                start_time=start,
                end_time=start + timedelta(hours=1),
                is_available=False,
            )
            row = await self.store.insert(
                "location_availability", window.model_dump(mode="json")
            )
        toggled = normalize_window_row(row)
        logger.info(
            "availability_toggled",
            location_id=location_id,
            window_id=toggled.id,
            is_available=toggled.is_available,
            materialized=not existing,
        )
        return toggled
