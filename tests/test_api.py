"""End-to-end tests for the HTTP surface: venues, bookings and rewards."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from campus_events.main import (
    app,
    catalog_repo,
    certificate_repo,
    committee_repo,
    event_repo,
    notification_repo,
    redemption_repo,
    reward_repo,
    user_repo,
    venue_repo,
)


@pytest.fixture(autouse=True)
def _clear_repos():
    """Reset in-memory repos before each test."""
    repos = (
        venue_repo,
        event_repo,
        user_repo,
        committee_repo,
        certificate_repo,
        reward_repo,
        catalog_repo,
        redemption_repo,
    )
    for repo in repos:
        repo._store.clear()
    notification_repo._items.clear()
    yield
    for repo in repos:
        repo._store.clear()
    notification_repo._items.clear()


@pytest.fixture()
def client():
    return TestClient(app)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _create_venue(client, name: str = "Main Hall") -> dict:
    resp = client.post(
        "/venues",
        json={"name": name, "location": "Block A", "capacity": 200, "type": "auditorium"},
    )
    assert resp.status_code == 201
    return resp.json()


def _event_payload(venue_id: str, **overrides) -> dict:
    payload = {
        "title": "Chess Open",
        "venue_id": venue_id,
        "start_date": "2026-06-01",
        "end_date": "2026-06-01",
        "start_time": "10:00",
        "end_time": "12:00",
        "status": "published",
    }
    payload.update(overrides)
    return payload


def _create_user(client, name: str = "Asha") -> dict:
    resp = client.post("/users", json={"name": name})
    assert resp.status_code == 201
    return resp.json()


def _availability(client, venue_id: str, start: str, end: str, **extra) -> dict:
    params = {
        "startDate": "2026-06-01",
        "endDate": "2026-06-01",
        "startTime": start,
        "endTime": end,
        **extra,
    }
    resp = client.get(f"/venues/{venue_id}/availability", params=params)
    assert resp.status_code == 200, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Venues and availability
# ---------------------------------------------------------------------------


def test_duplicate_venue_name_is_rejected(client):
    _create_venue(client)
    resp = client.post(
        "/venues",
        json={"name": "Main Hall", "location": "Block B", "capacity": 50, "type": "indoor"},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Venue with this name already exists"


def test_unknown_venue_returns_404(client):
    assert client.get("/venues/nope").status_code == 404
    resp = client.get(
        "/venues/nope/availability",
        params={"startDate": "2026-06-01", "endDate": "2026-06-01", "startTime": "10:00", "endTime": "11:00"},
    )
    assert resp.status_code == 404


def test_availability_reports_conflicts(client):
    venue = _create_venue(client)
    event = client.post("/events", json=_event_payload(venue["id"])).json()

    busy = _availability(client, venue["id"], "11:00", "13:00")
    assert busy["available"] is False
    assert [c["id"] for c in busy["conflicts"]] == [event["id"]]

    free = _availability(client, venue["id"], "12:00", "13:00")
    assert free == {"available": True}


def test_availability_excludes_the_event_being_edited(client):
    venue = _create_venue(client)
    event = client.post("/events", json=_event_payload(venue["id"])).json()

    result = _availability(client, venue["id"], "10:00", "12:00", eventId=event["id"])
    assert result["available"] is True


def test_availability_rejects_malformed_time(client):
    venue = _create_venue(client)
    resp = client.get(
        f"/venues/{venue['id']}/availability",
        params={"startDate": "2026-06-01", "endDate": "2026-06-01", "startTime": "9am", "endTime": "11:00"},
    )
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def test_conflicting_event_returns_409_with_conflicts(client):
    venue = _create_venue(client)
    first = client.post("/events", json=_event_payload(venue["id"])).json()

    resp = client.post(
        "/events",
        json=_event_payload(venue["id"], title="Hackathon", start_time="11:00", end_time="13:00"),
    )
    assert resp.status_code == 409
    body = resp.json()
    assert body["detail"] == "Venue is already booked for the requested time"
    assert [c["id"] for c in body["conflicts"]] == [first["id"]]
    assert len(client.get("/events").json()) == 1


def test_cancelled_event_frees_the_venue(client):
    venue = _create_venue(client)
    first = client.post("/events", json=_event_payload(venue["id"])).json()

    cancelled = client.post(f"/events/{first['id']}/cancel")
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    resp = client.post("/events", json=_event_payload(venue["id"], title="Replacement"))
    assert resp.status_code == 201


def test_update_event_does_not_conflict_with_itself(client):
    venue = _create_venue(client)
    event = client.post("/events", json=_event_payload(venue["id"])).json()

    resp = client.put(f"/events/{event['id']}", json={"end_time": "12:30"})
    assert resp.status_code == 200
    assert resp.json()["end_time"] == "12:30"


def test_update_event_into_another_booking_is_refused(client):
    venue = _create_venue(client)
    client.post("/events", json=_event_payload(venue["id"]))
    later = client.post(
        "/events", json=_event_payload(venue["id"], title="Later", start_time="13:00", end_time="14:00")
    ).json()

    resp = client.put(f"/events/{later['id']}", json={"start_time": "11:30"})
    assert resp.status_code == 409
    assert client.get(f"/events/{later['id']}").json()["start_time"] == "13:00"


def test_inverted_event_window_returns_400(client):
    venue = _create_venue(client)
    resp = client.post(
        "/events", json=_event_payload(venue["id"], start_time="12:00", end_time="10:00")
    )
    assert resp.status_code == 400


def test_missing_event_returns_404(client):
    assert client.get("/events/nope").status_code == 404
    assert client.put("/events/nope", json={"title": "x"}).status_code == 404
    assert client.post("/events/nope/cancel").status_code == 404


def test_list_events_filters_by_status(client):
    venue = _create_venue(client)
    client.post("/events", json=_event_payload(venue["id"]))
    client.post("/events", json=_event_payload(venue["id"], title="Draft", status="draft"))

    drafts = client.get("/events", params={"status": "draft"}).json()
    assert [e["title"] for e in drafts] == ["Draft"]


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------


def test_grant_points_reports_level(client):
    user = _create_user(client)
    resp = client.post(
        "/rewards/points",
        json={"user_id": user["id"], "amount": 175, "reason": "Organised Chess Open", "source": "event_organization"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["points"] == 175
    assert body["level_info"] == {"current_level": 2, "points_to_next_level": 150, "level_progress": 50}
    assert body["message"] == "175 points added to user's account"


def test_grant_zero_points_is_rejected(client):
    user = _create_user(client)
    resp = client.post(
        "/rewards/points",
        json={"user_id": user["id"], "amount": 0, "reason": "nothing", "source": "other"},
    )
    assert resp.status_code == 400


def test_grant_points_to_unknown_user_is_404(client):
    resp = client.post(
        "/rewards/points",
        json={"user_id": "ghost", "amount": 5, "reason": "x", "source": "other"},
    )
    assert resp.status_code == 404


def test_user_rewards_created_on_first_access(client):
    user = _create_user(client)
    resp = client.get(f"/rewards/user/{user['id']}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["user_info"]["name"] == "Asha"
    assert body["rewards"]["total"] == 0
    assert client.get("/rewards/user/ghost").status_code == 404


def test_duplicate_badge_returns_400(client):
    user = _create_user(client)
    badge = {"name": "Organiser", "description": "Ran an event", "category": "organization", "level": "silver"}

    assert client.post(f"/rewards/badges/{user['id']}", json=badge).status_code == 200
    resp = client.post(f"/rewards/badges/{user['id']}", json=badge)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "User already has this badge"


def test_achievement_flow(client):
    user = _create_user(client)
    base = f"/rewards/achievements/{user['id']}"

    bad = client.post(base, json={"title": "Broken", "description": "d", "category": "c", "target": 0})
    assert bad.status_code == 400

    created = client.post(
        base,
        json={"title": "Regular", "description": "Attend 2 events", "category": "participation", "target": 2, "points_awarded": 40},
    )
    assert created.status_code == 200

    first = client.put(f"{base}/Regular", json={"progress": 1})
    assert first.json()["achievement"]["progress"]["percentage"] == 50

    done = client.put(f"{base}/Regular", json={"progress": 1})
    assert done.json()["achievement"]["is_completed"] is True

    again = client.put(f"{base}/Regular", json={"progress": 1})
    assert again.status_code == 400

    rewards = client.get(f"/rewards/user/{user['id']}").json()["rewards"]
    assert rewards["total"] == 40

    titles = [n["title"] for n in client.get(f"/notifications/{user['id']}").json()]
    assert titles == ["Achievement Completed"]


def test_progress_unknown_achievement_is_404(client):
    user = _create_user(client)
    client.get(f"/rewards/user/{user['id']}")
    resp = client.put(f"/rewards/achievements/{user['id']}/Missing", json={"progress": 1})
    assert resp.status_code == 404


def test_points_history_with_event_source(client):
    venue = _create_venue(client)
    event = client.post("/events", json=_event_payload(venue["id"])).json()
    user = _create_user(client)
    client.post(
        "/rewards/points",
        json={
            "user_id": user["id"],
            "amount": 20,
            "reason": "Attended",
            "source": "event_participation",
            "source_kind": "Event",
            "source_id": event["id"],
        },
    )

    resp = client.get(f"/rewards/points/history/{user['id']}")
    assert resp.status_code == 200
    entry = resp.json()["history"][0]
    assert entry["source_data"] == {"id": event["id"], "name": "Chess Open"}

    assert client.get("/rewards/points/history/ghost").status_code == 404


def test_maintenance_sweep_expires_points(client):
    user = _create_user(client)
    client.post(
        "/rewards/points",
        json={
            "user_id": user["id"],
            "amount": 60,
            "reason": "Volunteering",
            "source": "committee_work",
            "expires_at": "2027-01-01T00:00:00Z",
        },
    )

    early = client.post("/rewards/maintenance/update-expired", params={"now": "2026-12-31T00:00:00Z"})
    assert early.json()["updates_performed"] == 0

    resp = client.post("/rewards/maintenance/update-expired", params={"now": "2027-01-02T00:00:00Z"})
    assert resp.json() == {
        "success": True,
        "updates_performed": 1,
        "message": "Updated expired points for 1 users",
    }
    assert client.get(f"/rewards/user/{user['id']}").json()["rewards"]["total"] == 0

    titles = [n["title"] for n in client.get(f"/notifications/{user['id']}").json()]
    assert titles == ["Points Expired", "Points Added"]


def test_leaderboard_and_stats(client):
    alice = _create_user(client, "Alice")
    bob = _create_user(client, "Bob")
    for user, amount in ((alice, 30), (bob, 120)):
        client.post(
            "/rewards/points",
            json={"user_id": user["id"], "amount": amount, "reason": "x", "source": "other"},
        )

    board = client.get("/rewards/leaderboard").json()
    assert [row["name"] for row in board["leaderboard"]] == ["Bob", "Alice"]
    assert board["leaderboard"][0]["level"] == 2

    stats = client.get("/rewards/user-stats").json()
    assert stats["user_coverage"]["percentage"] == 100
    assert stats["point_distribution"]["total_points"] == 150


# ---------------------------------------------------------------------------
# Venue maintenance
# ---------------------------------------------------------------------------


def test_rename_venue_to_taken_name_is_rejected(client):
    hall = _create_venue(client)
    _create_venue(client, name="Annex")

    resp = client.put(f"/venues/{hall['id']}", json={"name": "Annex"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Venue with this name already exists"

    resp = client.put(f"/venues/{hall['id']}", json={"capacity": 320, "status": "maintenance"})
    assert resp.status_code == 200
    assert resp.json()["name"] == "Main Hall"
    assert resp.json()["capacity"] == 320

    assert client.put("/venues/nope", json={"capacity": 5}).status_code == 404


def test_delete_venue_in_use_is_refused(client):
    venue = _create_venue(client)
    event = client.post("/events", json=_event_payload(venue["id"])).json()

    resp = client.delete(f"/venues/{venue['id']}")
    assert resp.status_code == 400
    assert resp.json() == {
        "detail": "Cannot delete venue as it is being used in active events",
        "events": [{"id": event["id"], "title": "Chess Open"}],
    }

    client.post(f"/events/{event['id']}/cancel")
    assert client.delete(f"/venues/{venue['id']}").status_code == 200
    assert client.get(f"/venues/{venue['id']}").status_code == 404
    assert client.delete(f"/venues/{venue['id']}").status_code == 404


def test_booking_notifies_organizer(client):
    venue = _create_venue(client)
    organizer = _create_user(client, "Organiser")
    client.post("/events", json=_event_payload(venue["id"], organizer_id=organizer["id"]))

    titles = [n["title"] for n in client.get(f"/notifications/{organizer['id']}").json()]
    assert titles == ["Venue Booked"]


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


def test_notification_read_state(client):
    user = _create_user(client)
    for amount in (10, 20, 30):
        client.post(
            "/rewards/points",
            json={"user_id": user["id"], "amount": amount, "reason": "x", "source": "other"},
        )
    notes = client.get(f"/notifications/{user['id']}").json()
    assert client.get(f"/notifications/{user['id']}/unread/count").json() == {"count": 3}

    assert client.put(f"/notifications/{notes[0]['id']}/read").json() == {"success": True}
    assert client.get(f"/notifications/{user['id']}/unread/count").json() == {"count": 2}
    assert client.get(f"/notifications/{user['id']}").json()[0]["read"] is True

    resp = client.put(f"/notifications/{user['id']}/read-all")
    assert resp.json() == {"success": True, "count": 2}
    assert client.get(f"/notifications/{user['id']}/unread/count").json() == {"count": 0}

    assert client.delete(f"/notifications/{notes[1]['id']}").json() == {"success": True}
    assert len(client.get(f"/notifications/{user['id']}").json()) == 2

    assert client.put("/notifications/nope/read").status_code == 404
    assert client.delete("/notifications/nope").status_code == 404


# ---------------------------------------------------------------------------
# Reward catalog
# ---------------------------------------------------------------------------


def _create_catalog_item(client, points: int = 50, quantity: int = 3) -> dict:
    resp = client.post(
        "/rewards/catalog",
        json={
            "title": "Library Late Pass",
            "description": "Stay after closing once",
            "image": "https://img.campus.test/pass.png",
            "points": points,
            "category": "Privilege",
            "quantity": quantity,
        },
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_redemption_flow(client):
    user = _create_user(client)
    client.post(
        "/rewards/points",
        json={"user_id": user["id"], "amount": 80, "reason": "Volunteering", "source": "committee_work"},
    )
    item = _create_catalog_item(client)

    resp = client.post(f"/rewards/catalog/{item['id']}/redeem", json={"user_id": user["id"]})
    assert resp.status_code == 200
    body = resp.json()
    assert body["remaining_points"] == 30
    assert body["redemption"]["status"] == "pending"

    again = client.post(f"/rewards/catalog/{item['id']}/redeem", json={"user_id": user["id"]})
    assert again.status_code == 400
    assert again.json()["detail"] == "Insufficient points"

    [listed] = client.get(f"/rewards/redemptions/{user['id']}").json()
    assert listed["reward"]["title"] == "Library Late Pass"

    redemption_id = body["redemption"]["id"]
    cancelled = client.put(f"/rewards/redemptions/{redemption_id}/status", json={"status": "cancelled"})
    assert cancelled.status_code == 200
    assert client.get(f"/rewards/user/{user['id']}").json()["rewards"]["total"] == 80
    assert client.get(f"/rewards/catalog/{item['id']}").json()["quantity"] == 3

    blocked = client.put(f"/rewards/redemptions/{redemption_id}/status", json={"status": "completed"})
    assert blocked.status_code == 400


def test_catalog_maintenance(client):
    item = _create_catalog_item(client)
    assert [r["id"] for r in client.get("/rewards/catalog").json()] == [item["id"]]

    hidden = client.put(f"/rewards/catalog/{item['id']}", json={"available": False})
    assert hidden.json()["available"] is False
    assert client.get("/rewards/catalog").json() == []

    assert client.delete(f"/rewards/catalog/{item['id']}").status_code == 200
    assert client.get(f"/rewards/catalog/{item['id']}").status_code == 404
    assert client.post("/rewards/catalog/nope/redeem", json={"user_id": "x"}).status_code == 404
    assert client.put("/rewards/redemptions/nope/status", json={"status": "completed"}).status_code == 404
