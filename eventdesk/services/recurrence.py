"""Expanding a recurring booking into its individual occurrences."""

from __future__ import annotations

import uuid
from itertools import islice
from zoneinfo import ZoneInfo

from dateutil.rrule import rrulestr

from eventdesk.domain.errors import InvalidInput
from eventdesk.domain.models import Event, RecurrencePattern
from eventdesk.services.intervals import ensure_utc, to_utc


def expand_series(parent: Event, pattern: RecurrencePattern, limit: int) -> list[Event]:
    """Expand a parent Event's recurrence pattern into instance Events.

    The parent's own occurrence is excluded (it is already an event). Each
    instance copies the parent's title, room and duration, points back via
    ``parent_event_id`` and is flagged ``is_recurring_instance``. Expansion
    runs in the event's own timezone so a weekly 10:00 meeting stays at
    10:00 local across DST changes; an occurrence whose wall-clock time is
    skipped by a DST jump is rejected. At most ``limit`` instances are built.
    """
    tz = ZoneInfo(parent.timezone)
    duration = parent.end_date - parent.start_date
    local_start = parent.start_date.astimezone(tz).replace(tzinfo=None)
    local_until = ensure_utc(pattern.until).astimezone(tz).replace(tzinfo=None)

    try:
        rule = rrulestr(pattern.rule, dtstart=local_start, ignoretz=True)
    except (ValueError, TypeError) as exc:
        raise InvalidInput(f"Invalid recurrence rule: {pattern.rule}") from exc

    occurrences = (
        dt for dt in rule.between(local_start, local_until, inc=True) if dt != local_start
    )
    children: list[Event] = []
    for dt in islice(occurrences, limit):
        start = to_utc(dt, parent.timezone)
        children.append(
            parent.model_copy(
                update={
                    "id": str(uuid.uuid4()),
                    "start_date": start,
                    "end_date": start + duration,
                    "parent_event_id": parent.id,
                    "is_recurring_instance": True,
                    "qa_url": None,
                }
            )
        )
    return children
