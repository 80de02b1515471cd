"""Turn loosely-typed store rows into strict models right after a fetch."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from dateutil.parser import isoparse

from eventdesk.domain.models import (
    AvailabilityWindow,
    Event,
    EventRecord,
    Location,
    LocationSummary,
    ProfileSummary,
    TagSummary,
)
from eventdesk.repos.store import Row

_EVENT_COLUMNS = set(Event.model_fields)


def _instant(value: Any) -> datetime:
    if isinstance(value, str):
        value = isoparse(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _with_instants(row: Row, *columns: str) -> Row:
    out = dict(row)
    for column in columns:
        if out.get(column) is not None:
            out[column] = _instant(out[column])
    return out


def normalize_event_row(row: Row) -> Event:
    data = _with_instants(row, "start_date", "end_date", "created_at")
    return Event.model_validate({k: v for k, v in data.items() if k in _EVENT_COLUMNS})


def normalize_event_record(row: Row) -> EventRecord:
    """Flatten an expanded events row into an :class:`EventRecord`.

    Missing or null relations become ``None`` / ``[]``; tag links whose tag
    row is gone are dropped.
    """
    event = normalize_event_row(row)
    location = row.get("locations")
    creator = row.get("profiles")
    links = row.get("event_tags")
    tags = [
        TagSummary.model_validate(link["tags"])
        for link in (links if isinstance(links, list) else [])
        if isinstance(link, dict) and link.get("tags")
    ]
    return EventRecord(
        **event.model_dump(),
        location=LocationSummary.model_validate(location) if location else None,
        tags=tags,
        creator=ProfileSummary.model_validate(creator) if creator else None,
    )


def normalize_window_row(row: Row) -> AvailabilityWindow:
    return AvailabilityWindow.model_validate(
        _with_instants(row, "start_time", "end_time")
    )


def normalize_location_row(row: Row) -> Location:
    return Location.model_validate(row)
