"""In-memory data store and the toast repository."""

from __future__ import annotations

import copy
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from dateutil.parser import isoparse

from eventdesk.domain.errors import StoreError
from eventdesk.domain.models import (
    AvailabilityWindow,
    Event,
    Location,
    LocationType,
    Notification,
    Profile,
    Tag,
)
from eventdesk.repos.store import AnyOf, Filter, Query, Row


def _comparable(value: Any) -> Any:
    """Datetimes stored as ISO strings compare as instants."""
    if isinstance(value, str):
        try:
            parsed = isoparse(value)
        except ValueError:
            return value
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return value


def _matches_filter(row: Row, f: Filter) -> bool:
    cell = _comparable(row.get(f.column))
    if f.op == "in":
        return cell in {_comparable(v) for v in f.value}
    value = _comparable(f.value)
    if f.op == "eq":
        return cell == value
    if f.op == "neq":
        return cell != value
    if cell is None or value is None:
        return False
    if f.op == "gt":
        return cell > value
    if f.op == "gte":
        return cell >= value
    if f.op == "lt":
        return cell < value
    return cell <= value


def _matches(row: Row, item: Filter | AnyOf) -> bool:
    if isinstance(item, AnyOf):
        return any(_matches_filter(row, f) for f in item.filters)
    return _matches_filter(row, item)


class InMemoryStore:
    """Dict-backed tables evaluating :class:`Query` objects.

    Every call is appended to ``calls`` as ``(operation, table)`` and tables
    listed in ``failing_tables`` raise :class:`StoreError`, which lets tests
    assert on I/O and exercise failure paths.
    """

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, Row]] = {}
        self.calls: list[tuple[str, str]] = []
        self.failing_tables: set[str] = set()

    def _record(self, operation: str, table: str) -> None:
        self.calls.append((operation, table))
        if table in self.failing_tables:
            raise StoreError(f"{operation} on {table} failed")

    def _rows(self, table: str) -> list[Row]:
        return list(self._tables.get(table, {}).values())

    def _filtered(self, query: Query) -> list[Row]:
        return [
            row
            for row in self._rows(query.table)
            if all(_matches(row, item) for item in query.filters)
        ]

    # ------------------------------------------------------------------
    # DataStore
    # ------------------------------------------------------------------

    async def select(self, query: Query) -> list[Row]:
        self._record("select", query.table)
        rows = self._filtered(query)
        for order in reversed(query.ordering):
            present = [r for r in rows if r.get(order.column) is not None]
            missing = [r for r in rows if r.get(order.column) is None]
            present.sort(
                key=lambda r: _comparable(r[order.column]), reverse=not order.ascending
            )
            rows = present + missing
        start = query.offset or 0
        end = start + query.limit if query.limit is not None else None
        rows = rows[start:end]

        result = []
        for row in rows:
            out = copy.deepcopy(row)
            if query.columns:
                out = {c: out.get(c) for c in query.columns}
            for relation in query.expand:
                out.update(self._expand(query.table, row, relation))
            result.append(out)
        return result

    async def count(self, query: Query) -> int:
        self._record("count", query.table)
        return len(self._filtered(query))

    async def insert(self, table: str, row: Row) -> Row:
        self._record("insert", table)
        stored = copy.deepcopy(row)
        stored.setdefault("id", str(uuid.uuid4()))
        self._tables.setdefault(table, {})[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def update(self, table: str, row_id: str, values: Row) -> Row:
        self._record("update", table)
        stored = self._tables.get(table, {}).get(row_id)
        if stored is None:
            raise StoreError(f"{table} row {row_id} not found")
        stored.update(copy.deepcopy(values))
        return copy.deepcopy(stored)

    async def delete(self, query: Query) -> int:
        self._record("delete", query.table)
        doomed = [row["id"] for row in self._filtered(query)]
        for row_id in doomed:
            del self._tables[query.table][row_id]
        return len(doomed)

    # ------------------------------------------------------------------
    # Related-table expansion
    # ------------------------------------------------------------------

    def _expand(self, table: str, row: Row, relation: str) -> Row:
        if table != "events":
            raise ValueError(f"no relation {relation!r} on {table}")
        if relation == "location":
            loc = self._tables.get("locations", {}).get(row.get("location_id"))
            summary = (
                {k: loc.get(k) for k in ("name", "building", "floor")} if loc else None
            )
            return {"locations": summary}
        if relation == "tags":
            tags = self._tables.get("event_tags", {})
            links = [
                rel
                for rel in self._rows("event_tag_relations")
                if rel["event_id"] == row["id"]
            ]
            return {
                "event_tags": [
                    {"tags": {"id": tags[rel["tag_id"]]["id"], "name": tags[rel["tag_id"]]["name"]}}
                    for rel in links
                    if rel["tag_id"] in tags
                ]
            }
        if relation == "creator":
            profile = self._tables.get("profiles", {}).get(row.get("created_by"))
            summary = (
                {"id": profile["id"], "username": profile.get("username")}
                if profile
                else None
            )
            return {"profiles": summary}
        raise ValueError(f"no relation {relation!r} on {table}")

    # ------------------------------------------------------------------
    # Synchronous seeding helpers
    # ------------------------------------------------------------------

    def put(self, table: str, row: Row) -> Row:
        """Insert without recording a call."""
        stored = copy.deepcopy(row)
        stored.setdefault("id", str(uuid.uuid4()))
        self._tables.setdefault(table, {})[stored["id"]] = stored
        return stored

    def put_model(self, table: str, model: Any) -> Row:
        return self.put(table, model.model_dump(mode="json"))

    def clear(self) -> None:
        self._tables.clear()
        self.calls.clear()
        self.failing_tables.clear()


class NotificationRepository:
    """List-backed sink for toasts."""

    def __init__(self) -> None:
        self._items: list[Notification] = []

    def add(self, notification: Notification) -> None:
        self._items.append(notification)

    def list_all(self) -> list[Notification]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()


# ---------------------------------------------------------------------------
# Seed data – a couple of rooms, tags and near-future events
# ---------------------------------------------------------------------------


def _seed(store: InMemoryStore) -> None:
    now = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)

    host = Profile(username="host", role="admin")
    store.put_model("profiles", host)

    library = Location(name="Library", building="Main", floor="1", anyone_can_book=True)
    studio = Location(name="Studio", building="Annex", floor="2")
    flat = Location(name="Flat 3B", type=LocationType.RESIDENTIAL_UNIT)
    for loc in (library, studio, flat):
        store.put_model("locations", loc)

    talks = Tag(name="Talks")
    social = Tag(name="Social")
    for tag in (talks, social):
        store.put_model("event_tags", tag)

    standup = Event(
        title="Standup",
        start_date=now + timedelta(hours=2),
        end_date=now + timedelta(hours=2, minutes=30),
        location_id=library.id,
        created_by=host.id,
    )
    lecture = Event(
        title="Guest lecture",
        start_date=now + timedelta(days=1, hours=3),
        end_date=now + timedelta(days=1, hours=5),
        location_id=studio.id,
        created_by=host.id,
    )
    for event in (standup, lecture):
        store.put_model("events", event)
    store.put("event_tag_relations", {"event_id": lecture.id, "tag_id": talks.id})
    store.put("event_tag_relations", {"event_id": standup.id, "tag_id": social.id})

    store.put_model(
        "location_availability",
        AvailabilityWindow(
            location_id=studio.id,
            start_time=now + timedelta(days=2),
            end_time=now + timedelta(days=2, hours=1),
            is_available=False,
        ),
    )


def create_store(seed: bool = True) -> InMemoryStore:
    """Return an InMemoryStore, optionally pre-loaded with sample data."""
    store = InMemoryStore()
    if seed:
        _seed(store)
    return store
