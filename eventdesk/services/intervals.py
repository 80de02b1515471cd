"""Time-interval helpers shared by the validators and the query planner.

All comparisons happen on UTC-aware instants. Wall-clock values are only
ever converted here, never compared directly.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from eventdesk.domain.errors import InvalidInput
from eventdesk.domain.models import ValidationOutcome, ValidationResult


def zone(tz_name: str) -> ZoneInfo:
    """Resolve an IANA zone name, raising InvalidInput for unknown names."""
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidInput(f"Unknown timezone: {tz_name}") from exc


def ensure_utc(value: datetime) -> datetime:
    """Aware values are converted to UTC, naive ones are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_utc(local: datetime, tz_name: str) -> datetime:
    """Interpret ``local`` as wall-clock time in ``tz_name``.

    Values that already carry an offset are only normalized. A wall-clock
    time that does not exist in the zone (skipped by a DST jump) does not
    survive the round trip and is rejected.
    """
    tz = zone(tz_name)
    if local.tzinfo is not None:
        return local.astimezone(timezone.utc)
    aware = local.replace(tzinfo=tz)
    instant = aware.astimezone(timezone.utc)
    if instant.astimezone(tz).replace(tzinfo=None) != local:
        raise InvalidInput(f"{local.isoformat()} does not exist in {tz_name}")
    return instant


def day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """``[local midnight, next local midnight)`` of ``day`` as UTC instants."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def all_day_bounds(first: date, last: date, tz_name: str) -> tuple[datetime, datetime]:
    """Midnight before ``first`` to midnight after ``last``, local to ``tz_name``."""
    tz = zone(tz_name)
    start, _ = day_bounds(first, tz)
    _, end = day_bounds(last, tz)
    return start, end


def check_interval(start: datetime, end: datetime) -> ValidationResult:
    if end < start:
        return ValidationResult.rejected(
            ValidationOutcome.INVALID_INPUT, "End date must be after start date"
        )
    if end == start:
        return ValidationResult.rejected(
            ValidationOutcome.INVALID_INPUT, "Event must last longer than zero minutes"
        )
    return ValidationResult.ok()


def overlaps(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Half-open overlap. Touching endpoints do not overlap."""
    return a_start < b_end and b_start < a_end


def hits_window(
    start: datetime, end: datetime, w_start: datetime, w_end: datetime
) -> bool:
    """Whether a candidate booking enters a blackout window.

    Conflict if the candidate starts inside the window, ends inside it, or
    swallows it whole. A candidate ending exactly as the window opens, or
    starting exactly as it closes, is clear.
    """
    return (
        (w_start <= start < w_end)
        or (w_start < end <= w_end)
        or (start <= w_start and end >= w_end)
    )
