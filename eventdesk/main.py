"""FastAPI application: entry point for the event desk service."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import NoReturn

from fastapi import FastAPI, HTTPException, Query

from eventdesk.config import settings
from eventdesk.domain.bus import EventBus
from eventdesk.domain.errors import (
    BookingConflict,
    EventDeskError,
    Forbidden,
    InvalidInput,
    NotFound,
    StoreError,
)
from eventdesk.domain.handlers import HandlerRegistry
from eventdesk.domain.models import (
    Actor,
    AvailabilityCell,
    AvailabilityToggleRequest,
    AvailabilityWindow,
    BookingCheckRequest,
    BookingRequest,
    Event,
    EventPage,
    Location,
    Notification,
    ValidationOutcome,
    ValidationResult,
    View,
)
from eventdesk.logs import configure_logging
from eventdesk.repos.memory import NotificationRepository, create_store
from eventdesk.services.availability import AvailabilityService
from eventdesk.services.booking import BookingService
from eventdesk.services.intervals import zone
from eventdesk.services.planner import EventQueryPlanner

configure_logging(settings.log_level, settings.log_json_format)

app = FastAPI(title="Event Desk")

# ── Singletons (created at import time for simplicity) ────────────────
local_tz = zone(settings.default_timezone)
store = create_store()
event_bus = EventBus()
notification_repo = NotificationRepository()
handler_registry = HandlerRegistry(bus=event_bus, notification_repo=notification_repo)

planner = EventQueryPlanner(store, page_size=settings.page_size, tz=local_tz)
booking_service = BookingService(store, event_bus, settings)
availability_service = AvailabilityService(store, local_tz)


def _raise_http(exc: EventDeskError) -> NoReturn:
    if isinstance(exc, NotFound):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, Forbidden):
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    if isinstance(exc, InvalidInput):
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if isinstance(exc, BookingConflict):
        status = 503 if exc.result.outcome == ValidationOutcome.UNVERIFIED else 409
        raise HTTPException(status_code=status, detail=exc.result.model_dump(mode="json")) from exc
    if isinstance(exc, StoreError):
        raise HTTPException(status_code=503, detail="Data store unavailable") from exc
    raise HTTPException(status_code=500, detail=str(exc)) from exc


# ── Listing ───────────────────────────────────────────────────────────


@app.get("/events", response_model=EventPage)
async def list_events(
    view: View = View.DEFAULT,
    tags: list[str] = Query(default=[]),
    day: date | None = Query(default=None, alias="date"),
    page: int = Query(default=0, ge=0),
    profile_id: str | None = None,
    privileged: bool = False,
) -> EventPage:
    """Return one page of a view. Tags are OR-ed together."""
    try:
        return await planner.plan_query(view, tags, day, profile_id, privileged, page=page)
    except EventDeskError as exc:
        _raise_http(exc)


@app.get("/events/count")
async def count_events(
    view: View = View.DEFAULT,
    tags: list[str] = Query(default=[]),
    day: date | None = Query(default=None, alias="date"),
    profile_id: str | None = None,
) -> dict:
    try:
        count = await planner.count_matching(view, tags, day, profile_id)
    except EventDeskError as exc:
        _raise_http(exc)
    return {"count": count}


@app.get("/events/{event_id}", response_model=Event)
async def get_event(event_id: str) -> Event:
    try:
        return await booking_service.get_event(event_id)
    except EventDeskError as exc:
        _raise_http(exc)


# ── Booking ───────────────────────────────────────────────────────────


@app.post("/bookings/check", response_model=ValidationResult)
async def check_booking(body: BookingCheckRequest) -> ValidationResult:
    """Live validation for an open booking form. Never writes."""
    try:
        return await booking_service.check(body.draft, body.actor, body.exclude_event_id)
    except EventDeskError as exc:
        _raise_http(exc)


@app.post("/events", response_model=Event)
async def create_event(body: BookingRequest) -> Event:
    try:
        return await booking_service.create(body.draft, body.actor)
    except EventDeskError as exc:
        _raise_http(exc)


@app.put("/events/{event_id}", response_model=Event)
async def update_event(event_id: str, body: BookingRequest) -> Event:
    try:
        return await booking_service.update(event_id, body.draft, body.actor)
    except EventDeskError as exc:
        _raise_http(exc)


# ── Locations ─────────────────────────────────────────────────────────


@app.get("/locations", response_model=list[Location])
async def list_locations(profile_id: str | None = None, role: str | None = None) -> list[Location]:
    """Meeting rooms the actor may pick in the booking form."""
    try:
        return await booking_service.bookable_locations(Actor(profile_id=profile_id, role=role))
    except EventDeskError as exc:
        _raise_http(exc)


@app.get("/locations/{location_id}/availability", response_model=list[AvailabilityCell])
async def location_week(location_id: str, week_start: date | None = None) -> list[AvailabilityCell]:
    """Hour grid for a week, Monday first unless ``week_start`` says otherwise."""
    if week_start is None:
        today = datetime.now(local_tz).date()
        week_start = today - timedelta(days=today.weekday())
    try:
        return await availability_service.week(location_id, week_start)
    except EventDeskError as exc:
        _raise_http(exc)


@app.post("/locations/{location_id}/availability/toggle", response_model=AvailabilityWindow)
async def toggle_availability(
    location_id: str, body: AvailabilityToggleRequest
) -> AvailabilityWindow:
    try:
        return await availability_service.toggle(location_id, body.day, body.hour)
    except EventDeskError as exc:
        _raise_http(exc)


# ── Notifications ─────────────────────────────────────────────────────


@app.get("/notifications", response_model=list[Notification])
def list_notifications() -> list[Notification]:
    """Return toasts raised by booking outcomes, oldest first."""
    return notification_repo.list_all()
