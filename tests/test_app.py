from __future__ import annotations

import time
from datetime import timedelta
from urllib.parse import urlencode

import pytest
from fastapi.testclient import TestClient

from conftest import NOW, StubCalendar, make_event
from envbook.commands import BookingController
from envbook.deps import get_controller
from envbook.main import create_app
from envbook.middleware import SIGNATURE_HEADER, TIMESTAMP_HEADER
from envbook.utils.signature import compute_signature

SECRET = "app-secret"
H = timedelta(hours=1)


@pytest.fixture
def calendar() -> StubCalendar:
    return StubCalendar([make_event(2 * H, 3 * H)])


@pytest.fixture
def client(calendar: StubCalendar) -> TestClient:
    app = create_app(signing_secret=SECRET)
    controller = BookingController(calendar, clock=lambda: NOW)
    app.dependency_overrides[get_controller] = lambda: controller
    return TestClient(app)


def _post(client: TestClient, path: str, form: dict[str, str], secret: str = SECRET):
    body = urlencode(form).encode()
    ts = str(int(time.time()))
    headers = {
        TIMESTAMP_HEADER: ts,
        SIGNATURE_HEADER: compute_signature(secret, ts, body),
        "Content-Type": "application/x-www-form-urlencoded",
    }
    return client.post(path, content=body, headers=headers)


def test_health_is_open(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_book_through_http(client: TestClient, calendar: StubCalendar) -> None:
    response = _post(client, "/slack/book", {"text": "qa web ABC-1 30m", "user_name": "alice"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["response_type"] == "ephemeral"
    assert payload["text"].startswith("Booked qa / web\n09:00 - 09:30")
    assert calendar.created[0].user == "alice"


def test_next_through_http(client: TestClient) -> None:
    response = _post(client, "/slack/next", {"text": "staging auth"})
    assert response.status_code == 200
    assert response.json()["text"].startswith("Next available slot for staging / auth (1h)")


def test_bookings_through_http(client: TestClient) -> None:
    response = _post(client, "/slack/bookings", {"text": "demo"})
    assert response.status_code == 200
    assert response.json() == {"text": "No bookings for demo today", "response_type": "ephemeral"}


def test_bad_signature_never_reaches_controller(client: TestClient, calendar: StubCalendar) -> None:
    response = _post(client, "/slack/book", {"text": "qa web ABC-1"}, secret="wrong")

    assert response.status_code == 401
    assert calendar.created == []
    assert calendar.list_calls == []
