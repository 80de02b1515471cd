"""Client-side infinite-scroll state for one event listing."""

from __future__ import annotations

from enum import StrEnum

from eventdesk.domain.models import EventFilters, EventRecord
from eventdesk.logs import get_logger
from eventdesk.services.planner import EventQueryPlanner

logger = get_logger(__name__)


class FeedState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    LOADING_MORE = "loading_more"
    EXHAUSTED = "exhausted"


_IN_FLIGHT = (FeedState.LOADING, FeedState.LOADING_MORE)


class EventFeed:
    """Accumulates pages of a view until the planner reports no more.

    ``reset`` may be called while a page is in flight. Each reset bumps
    ``epoch``; a response carrying an older epoch is dropped on arrival
    instead of being appended to the new listing.
    """

    def __init__(
        self,
        planner: EventQueryPlanner,
        filters: EventFilters | None = None,
        actor_profile_id: str | None = None,
        is_privileged: bool = False,
    ) -> None:
        self.planner = planner
        self.filters = filters or EventFilters()
        self.actor_profile_id = actor_profile_id
        self.is_privileged = is_privileged
        self.events: list[EventRecord] = []
        self.page = 0
        self.has_more = True
        self.state = FeedState.IDLE
        self.epoch = 0

    @property
    def is_loading(self) -> bool:
        return self.state in _IN_FLIGHT

    async def load_more(self) -> bool:
        """Fetch the next page. Returns False when the call was suppressed
        or its response turned out to be stale."""
        if self.state in _IN_FLIGHT or self.state == FeedState.EXHAUSTED:
            logger.debug("feed_load_suppressed", state=self.state.value, page=self.page)
            return False

        previous = self.state
        epoch = self.epoch
        page = self.page
        self.state = FeedState.LOADING if page == 0 else FeedState.LOADING_MORE
        try:
            result = await self.planner.plan_query(
                self.filters.view,
                self.filters.tags,
                self.filters.day,
                self.actor_profile_id,
                self.is_privileged,
                page=page,
            )
        except Exception:
            if epoch == self.epoch:
                self.state = previous
            raise

        if epoch != self.epoch:
            logger.debug("feed_stale_page_dropped", page=page, epoch=epoch, current=self.epoch)
            return False

        if page == 0:
            self.events = list(result.events)
        else:
            self.events.extend(result.events)
        self.page = page + 1
        self.has_more = result.has_more
        self.state = FeedState.LOADED if result.has_more else FeedState.EXHAUSTED
        return True

    def reset(self, filters: EventFilters | None = None) -> None:
        """Drop everything accumulated, optionally switching filters."""
        if filters is not None:
            self.filters = filters
        self.epoch += 1
        self.events = []
        self.page = 0
        self.has_more = True
        self.state = FeedState.IDLE

    async def refetch(self) -> bool:
        self.reset()
        return await self.load_more()
