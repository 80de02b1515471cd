"""Composes filtered, ordered, paged event queries for the listing views."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Callable, Iterable
from zoneinfo import ZoneInfo

from eventdesk.domain.errors import StoreError
from eventdesk.domain.models import EventPage, View
from eventdesk.logs import get_logger
from eventdesk.repos.normalize import normalize_event_record
from eventdesk.repos.store import DataStore, Filter, Query, table
from eventdesk.services.intervals import day_bounds

logger = get_logger(__name__)

EVENTS_PER_PAGE = 5

_PROFILE_VIEWS = (View.GOING, View.HOSTING)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventQueryPlanner:
    """Builds the predicate set for a view and runs it against the store.

    Stages run in a fixed order: tags, date, view, ordering, page window.
    Any stage that proves the result empty stops before the events table is
    touched. Page fetches and counts share the same composition so badges
    never disagree with the list.
    """

    def __init__(
        self,
        store: DataStore,
        page_size: int = EVENTS_PER_PAGE,
        tz: ZoneInfo | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.page_size = page_size
        self.tz = tz or ZoneInfo("Europe/Zurich")
        self.clock = clock

    async def _ids(self, query: Query) -> list[str]:
        rows = await self.store.select(query.select("event_id"))
        return sorted({row["event_id"] for row in rows})

    async def _compose(
        self,
        view: View,
        tags: Iterable[str],
        day: date | None,
        actor_profile_id: str | None,
    ) -> Query | None:
        """Return the filtered events query, or None when nothing can match."""
        if view in _PROFILE_VIEWS and not actor_profile_id:
            return None

        query = table("events")

        tag_ids = sorted(set(tags))
        if tag_ids:
            event_ids = await self._ids(
                table("event_tag_relations").in_("tag_id", tag_ids)
            )
            if not event_ids:
                return None
            query = query.in_("id", event_ids)

        if day is not None:
            day_start, day_end = day_bounds(day, self.tz)
            query = query.lt("start_date", day_end).gt("end_date", day_start)

        now = self.clock()
        if view == View.TODAY:
            today_start, today_end = day_bounds(now.astimezone(self.tz).date(), self.tz)
            query = query.gte("start_date", today_start).lt("start_date", today_end)
        elif view == View.UPCOMING:
            query = query.gt("start_date", now)
        elif view == View.GOING:
            rsvp_ids = await self._ids(
                table("event_rsvps").eq("profile_id", actor_profile_id)
            )
            if not rsvp_ids:
                return None
            query = query.in_("id", rsvp_ids)
        elif view == View.HOSTING:
            co_host_ids = await self._ids(
                table("event_co_hosts").eq("profile_id", actor_profile_id)
            )
            if co_host_ids:
                query = query.any_of(
                    Filter("created_by", "eq", actor_profile_id),
                    Filter("id", "in", tuple(co_host_ids)),
                )
            else:
                query = query.eq("created_by", actor_profile_id)
        elif view == View.PAST:
            query = query.lt("end_date", now)

        return query

    async def plan_query(
        self,
        view: View,
        tags: Iterable[str] = (),
        day: date | None = None,
        actor_profile_id: str | None = None,
        is_privileged: bool = False,
        page: int = 0,
    ) -> EventPage:
        """Fetch one page of a view.

        ``has_more`` is true only when the page came back full. Privileged
        actors see the same listing as everyone else; the flag is carried
        for callers that log or audit it.
        """
        view = View(view)
        try:
            query = await self._compose(view, tags, day, actor_profile_id)
            if query is None:
                logger.debug("events_page_empty", view=view.value, page=page)
                return EventPage(events=[], has_more=False, page=page)

            ascending = view != View.PAST
            offset = page * self.page_size
            query = (
                query.order("start_date", ascending=ascending)
                .order("id", ascending=ascending)
                .range(offset, offset + self.page_size - 1)
                .with_related("location", "tags", "creator")
            )
            rows = await self.store.select(query)
        except StoreError as exc:
            logger.error("events_page_failed", view=view.value, page=page, error=str(exc))
            raise

        events = [normalize_event_record(row) for row in rows]
        logger.debug(
            "events_page",
            view=view.value,
            page=page,
            count=len(events),
            privileged=is_privileged,
        )
        return EventPage(events=events, has_more=len(events) == self.page_size, page=page)

    async def count_matching(
        self,
        view: View,
        tags: Iterable[str] = (),
        day: date | None = None,
        actor_profile_id: str | None = None,
    ) -> int:
        view = View(view)
        try:
            query = await self._compose(view, tags, day, actor_profile_id)
            if query is None:
                return 0
            return await self.store.count(query)
        except StoreError as exc:
            logger.error("events_count_failed", view=view.value, error=str(exc))
            raise
