"""API tests for listing, booking and availability routes."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from eventdesk.domain.models import Event, Location, Profile, Tag
from eventdesk.main import app, notification_repo, store


@pytest.fixture(autouse=True)
def _clear_repos():
    """Reset the in-memory store and toasts before each test."""
    store.clear()
    notification_repo.clear()
    yield
    store.clear()
    notification_repo.clear()


@pytest.fixture()
def client():
    return TestClient(app)


_BASE = datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)


@pytest.fixture()
def people():
    admin = Profile(username="ada", role="admin")
    attendee = Profile(username="bo")
    for profile in (admin, attendee):
        store.put_model("profiles", profile)
    return admin, attendee


@pytest.fixture()
def library() -> Location:
    loc = Location(name="Library", building="Main", anyone_can_book=True)
    store.put_model("locations", loc)
    return loc


def _seed_events(location: Location, creator: Profile, count: int) -> list[Event]:
    events = []
    for i in range(count):
        event = Event(
            title=f"Session {i}",
            start_date=_BASE + timedelta(days=i),
            end_date=_BASE + timedelta(days=i, hours=1),
            location_id=location.id,
            created_by=creator.id,
        )
        store.put_model("events", event)
        events.append(event)
    return events


def _booking(location: Location, profile: Profile, start: str, end: str, **draft) -> dict:
    return {
        "draft": {
            "title": "Reading group",
            "start_date": start,
            "end_date": end,
            "location_id": location.id,
            "timezone": "Europe/Zurich",
            **draft,
        },
        "actor": {"profile_id": profile.id},
    }


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


def test_events_are_paged_in_fives(client, people, library):
    admin, _ = people
    seeded = _seed_events(library, admin, 7)

    first = client.get("/events").json()
    second = client.get("/events", params={"page": 1}).json()

    assert [e["id"] for e in first["events"]] == [e.id for e in seeded[:5]]
    assert first["has_more"] is True
    assert [e["id"] for e in second["events"]] == [e.id for e in seeded[5:]]
    assert second["has_more"] is False


def test_listing_rows_carry_related_data(client, people, library):
    admin, _ = people
    (event,) = _seed_events(library, admin, 1)
    talks = Tag(name="Talks")
    store.put_model("event_tags", talks)
    store.put("event_tag_relations", {"event_id": event.id, "tag_id": talks.id})

    (row,) = client.get("/events").json()["events"]

    assert row["location"] == {"name": "Library", "building": "Main", "floor": None}
    assert row["tags"] == [{"id": talks.id, "name": "Talks"}]
    assert row["creator"] == {"id": admin.id, "username": "ada"}


def test_tag_filter_is_any_of(client, people, library):
    admin, _ = people
    first, second, _ = _seed_events(library, admin, 3)
    store.put("event_tag_relations", {"event_id": first.id, "tag_id": "a"})
    store.put("event_tag_relations", {"event_id": second.id, "tag_id": "b"})

    body = client.get("/events", params={"tags": ["a", "b"]}).json()
    none = client.get("/events", params={"tags": ["zzz"]}).json()

    assert {e["id"] for e in body["events"]} == {first.id, second.id}
    assert none == {"events": [], "has_more": False, "page": 0}


def test_date_filter_uses_local_day(client, people, library):
    admin, _ = people
    events = _seed_events(library, admin, 3)

    body = client.get("/events", params={"date": "2025-06-03"}).json()

    assert [e["id"] for e in body["events"]] == [events[1].id]


def test_profile_views_without_profile_are_empty(client, people, library):
    admin, _ = people
    _seed_events(library, admin, 2)
    store.calls.clear()

    body = client.get("/events", params={"view": "hosting"}).json()

    assert body["events"] == []
    assert store.calls == []


def test_hosting_view_for_creator(client, people, library):
    admin, attendee = people
    _seed_events(library, admin, 2)

    mine = client.get("/events", params={"view": "hosting", "profile_id": admin.id}).json()
    theirs = client.get("/events", params={"view": "hosting", "profile_id": attendee.id}).json()

    assert len(mine["events"]) == 2
    assert theirs["events"] == []


def test_count_matches_listing(client, people, library):
    admin, _ = people
    _seed_events(library, admin, 7)

    assert client.get("/events/count").json() == {"count": 7}
    assert client.get("/events/count", params={"date": "2025-06-02"}).json() == {"count": 1}


def test_unknown_view_is_422(client):
    assert client.get("/events", params={"view": "someday"}).status_code == 422


def test_get_event_404(client):
    resp = client.get("/events/missing")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Event missing not found"


# ---------------------------------------------------------------------------
# Booking
# ---------------------------------------------------------------------------


def test_create_event_and_fetch_it(client, people, library):
    _, attendee = people

    resp = client.post(
        "/events", json=_booking(library, attendee, "2025-06-02T10:00:00", "2025-06-02T11:00:00")
    )

    assert resp.status_code == 200
    created = resp.json()
    fetched = client.get(f"/events/{created['id']}").json()
    assert fetched["title"] == "Reading group"
    assert datetime.fromisoformat(fetched["start_date"]) == datetime(
        2025, 6, 2, 8, 0, tzinfo=timezone.utc
    )
    assert client.get("/notifications").json()[0]["title"] == "Event created"


def test_invalid_draft_is_422_with_toast(client, people, library):
    _, attendee = people

    resp = client.post(
        "/events",
        json=_booking(library, attendee, "2025-06-02T10:00:00", "2025-06-02T11:00:00", title=""),
    )

    assert resp.status_code == 422
    assert resp.json()["detail"] == "Event title is required"
    (toast,) = client.get("/notifications").json()
    assert toast["severity"] == "destructive"


def test_overlap_is_409(client, people, library):
    admin, attendee = people
    _seed_events(library, admin, 1)

    resp = client.post(
        "/events", json=_booking(library, attendee, "2025-06-02T10:30:00", "2025-06-02T11:30:00")
    )

    assert resp.status_code == 409
    detail = resp.json()["detail"]
    assert detail["outcome"] == "overlap"
    assert detail["conflicting_title"] == "Session 0"


def test_unverifiable_booking_is_503(client, people, library):
    _, attendee = people
    store.failing_tables.add("location_availability")

    resp = client.post(
        "/events", json=_booking(library, attendee, "2025-06-02T10:00:00", "2025-06-02T11:00:00")
    )

    assert resp.status_code == 503
    assert resp.json()["detail"]["outcome"] == "unverified"


def test_check_booking_never_writes(client, people, library):
    admin, attendee = people
    _seed_events(library, admin, 1)
    body = _booking(library, attendee, "2025-06-02T10:00:00", "2025-06-02T11:00:00")

    resp = client.post("/bookings/check", json=body)

    assert resp.status_code == 200
    assert resp.json()["outcome"] == "overlap"
    assert not [c for c in store.calls if c[0] == "insert"]


def test_update_by_stranger_is_403(client, people, library):
    admin, attendee = people
    (event,) = _seed_events(library, admin, 1)

    resp = client.put(
        f"/events/{event.id}",
        json=_booking(library, attendee, "2025-06-02T10:00:00", "2025-06-02T11:00:00"),
    )

    assert resp.status_code == 403


def test_update_by_creator_moves_event(client, people, library):
    admin, _ = people
    (event,) = _seed_events(library, admin, 1)

    resp = client.put(
        f"/events/{event.id}",
        json=_booking(library, admin, "2025-06-02T10:30:00", "2025-06-02T11:30:00"),
    )

    assert resp.status_code == 200
    assert datetime.fromisoformat(resp.json()["start_date"]) == _BASE + timedelta(minutes=30)


# ---------------------------------------------------------------------------
# Locations and availability
# ---------------------------------------------------------------------------


def test_locations_filtered_by_role(client, people, library):
    admin, attendee = people
    store.put_model("locations", Location(name="Studio"))

    open_only = client.get("/locations", params={"profile_id": attendee.id}).json()
    everything = client.get("/locations", params={"profile_id": admin.id}).json()

    assert [loc["name"] for loc in open_only] == ["Library"]
    assert [loc["name"] for loc in everything] == ["Library", "Studio"]


def test_toggle_blacks_out_an_hour(client, people, library):
    _, attendee = people

    resp = client.post(
        f"/locations/{library.id}/availability/toggle", json={"day": "2025-06-02", "hour": 9}
    )
    assert resp.status_code == 200
    assert resp.json()["is_available"] is False

    week = client.get(
        f"/locations/{library.id}/availability", params={"week_start": "2025-06-02"}
    ).json()
    assert len(week) == 168
    blocked = [c for c in week if not c["is_available"]]
    assert [(c["day"], c["hour"]) for c in blocked] == [("2025-06-02", 9)]

    before = client.post(
        "/events", json=_booking(library, attendee, "2025-06-02T08:00:00", "2025-06-02T09:00:00")
    )
    inside = client.post(
        "/events", json=_booking(library, attendee, "2025-06-02T09:00:00", "2025-06-02T09:30:00")
    )
    assert before.status_code == 200
    assert inside.status_code == 409
    assert inside.json()["detail"]["outcome"] == "blackout"


def test_toggle_twice_restores_the_hour(client, library):
    url = f"/locations/{library.id}/availability/toggle"
    first = client.post(url, json={"day": "2025-06-02", "hour": 14}).json()
    second = client.post(url, json={"day": "2025-06-02", "hour": 14}).json()

    assert second["id"] == first["id"]
    assert second["is_available"] is True


def test_toggle_rejects_bad_hour(client, library):
    resp = client.post(
        f"/locations/{library.id}/availability/toggle", json={"day": "2025-06-02", "hour": 24}
    )
    assert resp.status_code == 422
