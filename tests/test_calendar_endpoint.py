from dataclasses import replace

import httplib2
from fastapi.testclient import TestClient
from googleapiclient.errors import HttpError

from family_calendar.bot.main import build_application
from family_calendar.services.google_calendar import GoogleCalendarService


def test_missing_start_is_rejected_without_calling_google(client, calendar_client):
    response = client.post("/calendar/events", json={"title": "Dentist"})

    assert response.status_code == 400
    assert response.json() == {"error": "title and start_datetime are required"}
    assert calendar_client.inserted == []


def test_missing_title_is_rejected(client, calendar_client):
    response = client.post("/calendar/events", json={"start_datetime": "2026-10-19T15:00:00"})

    assert response.status_code == 400
    assert calendar_client.inserted == []


def test_non_object_body_is_rejected(client):
    response = client.post("/calendar/events", json=["Dentist"])

    assert response.status_code == 400
    assert "error" in response.json()


def test_invalid_start_returns_400(client, calendar_client):
    response = client.post(
        "/calendar/events", json={"title": "Dentist", "start_datetime": "next tuesday"}
    )

    assert response.status_code == 400
    assert response.json() == {"error": "start_datetime_invalid"}
    assert calendar_client.inserted == []


def test_creates_event_with_default_end(client, calendar_client):
    response = client.post(
        "/calendar/events",
        json={
            "title": "Parent-teacher meeting",
            "start_datetime": "2026-10-21T18:00:00",
            "location": "School",
        },
    )

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "event_id": "evt1",
        "html_link": "https://calendar.google.com/calendar/event?eid=evt1",
        "summary": "Parent-teacher meeting",
        "start": {"dateTime": "2026-10-21T18:00:00", "timeZone": "Asia/Jerusalem"},
        "end": {"dateTime": "2026-10-21T19:00:00", "timeZone": "Asia/Jerusalem"},
    }
    assert calendar_client.inserted[0][1]["location"] == "School"


def test_request_timezone_overrides_default(client, calendar_client):
    response = client.post(
        "/calendar/events",
        json={
            "title": "Flight to London",
            "start_datetime": "2026-12-20T08:00:00",
            "end_datetime": "2026-12-20T13:00:00",
            "timezone": "UTC",
        },
    )

    assert response.status_code == 200
    assert response.json()["end"] == {"dateTime": "2026-12-20T13:00:00", "timeZone": "UTC"}


def test_identical_requests_create_distinct_events(client, calendar_client):
    body = {"title": "Swimming", "start_datetime": "2026-10-22T16:00:00"}

    first = client.post("/calendar/events", json=body).json()
    second = client.post("/calendar/events", json=body).json()

    assert first["event_id"] != second["event_id"]
    assert len(calendar_client.inserted) == 2


def test_provider_status_is_passed_through(client, calendar_client):
    calendar_client.error = HttpError(httplib2.Response({"status": "409"}), b"The requested identifier already exists.")

    response = client.post(
        "/calendar/events", json={"title": "Swimming", "start_datetime": "2026-10-22T16:00:00"}
    )

    assert response.status_code == 409
    assert response.json() == {
        "error": "Google Calendar API error: The requested identifier already exists."
    }


def test_calendar_not_connected_is_service_unavailable(services):
    services.calendar = GoogleCalendarService(services.settings, services.session_factory)
    client = TestClient(build_application(services=services))

    response = client.post(
        "/calendar/events", json={"title": "Swimming", "start_datetime": "2026-10-22T16:00:00"}
    )

    assert response.status_code == 503
    assert response.json()["error"].startswith("Google Calendar API error:")


def test_provider_bad_request_keeps_api_error_prefix(client, calendar_client):
    calendar_client.error = HttpError(httplib2.Response({"status": "400"}), b"Invalid time zone definition")

    response = client.post(
        "/calendar/events", json={"title": "Swimming", "start_datetime": "2026-10-22T16:00:00"}
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Google Calendar API error: Invalid time zone definition"}


def test_endpoint_works_without_gemini_key(settings):
    client = TestClient(build_application(settings=replace(settings, gemini_api_key="")))

    response = client.post(
        "/calendar/events", json={"title": "Swimming", "start_datetime": "2026-10-22T16:00:00"}
    )

    # No stored Google credentials in a fresh database.
    assert response.status_code == 503
    assert response.json()["error"].startswith("Google Calendar API error:")
