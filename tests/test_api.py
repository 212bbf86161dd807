from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from viewingdesk.app.main import create_app

from conftest import AGENT, PROPERTY


def booking_body(start="2026-10-19T10:00:00+00:00", duration=60, **overrides):
    body = {
        "agent_id": AGENT,
        "property_id": PROPERTY,
        "scheduled_start": start,
        "duration_minutes": duration,
        "attendee_count": 2,
        "client_contact": {"name": "Dana Client", "email": "dana@example.com"},
    }
    body.update(overrides)
    return body


@pytest.fixture
def client(runtime):
    return TestClient(create_app(runtime=runtime))


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"started": False, "appointments": 0}


def test_booking_lifecycle_over_http(client):
    created = client.post("/bookings", json=booking_body())
    assert created.status_code == 201
    appointment = created.json()
    assert appointment["status"] == "scheduled"
    assert appointment["version"] == 1

    clash = client.post("/bookings", json=booking_body("2026-10-19T10:30:00+00:00"))
    assert clash.status_code == 409
    assert clash.json()["error"]["code"] == "slot_unavailable"

    confirmed = client.post(
        f"/bookings/{appointment['id']}/transition",
        json={"expected_version": 1, "target_status": "confirmed"},
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["version"] == 2

    stale = client.post(
        f"/bookings/{appointment['id']}/transition",
        json={"expected_version": 1, "target_status": "cancelled"},
    )
    assert stale.status_code == 409
    assert stale.json()["error"] == {
        "code": "stale_version",
        "message": stale.json()["error"]["message"],
        "retryable": True,
        "details": {"current_version": 2, "expected_version": 1},
    }

    moved = client.post(
        f"/bookings/{appointment['id']}/reschedule",
        json={"expected_version": 2, "new_start": "2026-10-19T14:00:00+00:00"},
    )
    assert moved.status_code == 200
    assert moved.json()["duration_minutes"] == 60

    fetched = client.get(f"/bookings/{appointment['id']}")
    assert fetched.json()["version"] == 3
    assert client.get("/bookings", params={"agent_id": AGENT, "status": "confirmed"}).json()[0]["id"] == appointment["id"]
    stats = client.get("/bookings/stats").json()
    assert stats["total"] == 1
    assert stats["by_status"]["confirmed"] == 1


def test_availability_endpoint(client):
    client.post("/bookings", json=booking_body())
    response = client.get(
        "/availability",
        params={
            "agent_id": AGENT,
            "from": "2026-10-19T09:00:00+00:00",
            "to": "2026-10-19T12:00:00+00:00",
            "granularity": 60,
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["granularity_minutes"] == 60
    hours = [slot.replace("Z", "+00:00")[11:16] for slot in body["slots"]]
    assert hours == ["09:00", "11:00"]


@pytest.mark.parametrize(
    "method, path, payload, status, code",
    [
        ("get", "/bookings/missing", None, 404, "not_found"),
        ("post", "/bookings", booking_body(duration=5), 422, "validation_error"),
        ("post", "/bookings", booking_body(client_contact={"name": "Dana", "email": "nope"}), 422, "validation_error"),
        ("post", "/bookings", booking_body(property_id="prop-none"), 422, "validation_error"),
        ("post", "/bookings/missing/transition", {"expected_version": 1, "target_status": "confirmed"}, 404, "not_found"),
    ],
)
def test_error_mapping(client, method, path, payload, status, code):
    response = getattr(client, method)(path, json=payload) if payload is not None else getattr(client, method)(path)
    assert response.status_code == status
    assert response.json()["error"]["code"] == code


def test_invalid_transition_maps_to_conflict(client):
    appointment = client.post("/bookings", json=booking_body()).json()
    response = client.post(
        f"/bookings/{appointment['id']}/transition",
        json={"expected_version": 1, "target_status": "completed"},
    )
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "invalid_transition"


def test_zero_granularity_is_rejected(client):
    response = client.get(
        "/availability",
        params={
            "agent_id": AGENT,
            "from": "2026-10-19T09:00:00+00:00",
            "to": "2026-10-19T12:00:00+00:00",
            "granularity": 0,
        },
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"
