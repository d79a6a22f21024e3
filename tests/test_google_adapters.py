"""
Tests for the Google Calendar client and authenticator using fake sessions.
"""

from typing import Any, Dict, List

import keyring
import pendulum
import pytest
import requests

from tutorbooking.adapters.google_authenticator import GoogleAuthenticator
from tutorbooking.adapters.google_calendar_client import GoogleCalendarClient
from tutorbooking.domain.exceptions import AuthenticationError, ProviderError
from tutorbooking.domain.models import Attendee, Reminder


class FakeResponse:
    """Just enough of requests.Response."""

    def __init__(self, payload: Dict[str, Any], status_code: int = 200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        return self._payload


class FakeSession:
    """Records requests and replays queued responses."""

    def __init__(self, responses: List[FakeResponse]):
        self._responses = list(responses)
        self.requests: List[Dict[str, Any]] = []

    def _next(self, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        return self._responses.pop(0)

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)


class StaticAuthenticator:
    def get_access_token(self, force_refresh=False):
        return "token-123"


@pytest.fixture
def memory_keyring(monkeypatch):
    """Replace the system keyring with a dict."""
    secrets: Dict[tuple, str] = {}

    monkeypatch.setattr(keyring, "get_password", lambda service, key: secrets.get((service, key)))
    monkeypatch.setattr(keyring, "set_password", lambda service, key, value: secrets.__setitem__((service, key), value))
    monkeypatch.setattr(keyring, "delete_password", lambda service, key: secrets.pop((service, key), None))
    return secrets


class TestGoogleAuthenticator:
    """Tests for GoogleAuthenticator."""

    def _build(self, tmp_path, session, refresh_token="refresh"):
        return GoogleAuthenticator(
            client_id="client",
            client_secret="secret",
            refresh_token=refresh_token,
            cache_file=tmp_path / "cache.json",
            session=session,
        )

    def test_refreshes_and_caches_token(self, tmp_path, memory_keyring):
        session = FakeSession([FakeResponse({"access_token": "abc", "expires_in": 3600})])
        authenticator = self._build(tmp_path, session)

        assert authenticator.get_access_token() == "abc"
        assert authenticator.get_access_token() == "abc"

        assert len(session.requests) == 1
        assert session.requests[0]["data"]["grant_type"] == "refresh_token"
        assert authenticator.cache_backend == "keyring"
        assert ("tutorbooking", "google:client") in memory_keyring

    def test_cached_token_survives_new_instance(self, tmp_path, memory_keyring):
        self._build(tmp_path, FakeSession([FakeResponse({"access_token": "abc", "expires_in": 3600})])).get_access_token()

        session = FakeSession([])
        assert self._build(tmp_path, session).get_access_token() == "abc"
        assert session.requests == []

    def test_force_refresh(self, tmp_path, memory_keyring):
        session = FakeSession([
            FakeResponse({"access_token": "abc", "expires_in": 3600}),
            FakeResponse({"access_token": "def", "expires_in": 3600}),
        ])
        authenticator = self._build(tmp_path, session)
        authenticator.get_access_token()

        assert authenticator.get_access_token(force_refresh=True) == "def"

    def test_missing_refresh_token(self, tmp_path, memory_keyring):
        authenticator = self._build(tmp_path, FakeSession([]), refresh_token="")

        with pytest.raises(AuthenticationError, match="No Google refresh token"):
            authenticator.get_access_token()

    def test_rejected_refresh(self, tmp_path, memory_keyring):
        authenticator = self._build(tmp_path, FakeSession([FakeResponse({"error": "invalid_grant"}, status_code=400)]))

        with pytest.raises(AuthenticationError, match="Token refresh failed"):
            authenticator.get_access_token()

    def test_clear_cache(self, tmp_path, memory_keyring):
        authenticator = self._build(tmp_path, FakeSession([FakeResponse({"access_token": "abc"})]))
        authenticator.get_access_token()

        authenticator.clear_cache()

        assert authenticator.cache == {}
        assert memory_keyring == {}


class TestGoogleCalendarClient:
    """Tests for GoogleCalendarClient."""

    def test_requires_credentials(self):
        with pytest.raises(ValueError):
            GoogleCalendarClient()

    def test_list_events_follows_pages(self):
        session = FakeSession([
            FakeResponse({"items": [{"id": "a"}], "nextPageToken": "p2"}),
            FakeResponse({"items": [{"id": "b"}]}),
        ])
        client = GoogleCalendarClient(api_key="key-1", session=session)

        items = client.list_events(
            "anna@example.com",
            time_min=pendulum.datetime(2024, 11, 1, tz="UTC"),
            time_max=pendulum.datetime(2024, 12, 1, tz="UTC"),
        )

        assert [item["id"] for item in items] == ["a", "b"]
        first, second = session.requests
        assert first["url"].endswith("/calendars/anna@example.com/events")
        assert first["params"]["key"] == "key-1"
        assert first["params"]["singleEvents"] == "true"
        assert first["params"]["timeMin"].startswith("2024-11-01T00:00:00")
        assert second["params"]["pageToken"] == "p2"
        assert first["timeout"] == 30

    def test_list_events_with_oauth(self):
        session = FakeSession([FakeResponse({"items": []})])
        client = GoogleCalendarClient(authenticator=StaticAuthenticator(), session=session)

        client.list_events("anna@example.com")

        assert session.requests[0]["headers"]["Authorization"] == "Bearer token-123"
        assert "key" not in session.requests[0]["params"]

    def test_list_events_failure(self):
        client = GoogleCalendarClient(api_key="key-1", session=FakeSession([FakeResponse({}, status_code=500)]))

        with pytest.raises(ProviderError, match="Failed to fetch events"):
            client.list_events("anna@example.com")

    def test_create_event_payload(self):
        session = FakeSession([FakeResponse({"id": "evt", "htmlLink": "https://calendar.google.com/event?eid=evt"})])
        client = GoogleCalendarClient(authenticator=StaticAuthenticator(), session=session)

        link = client.create_event(
            calendar_id="primary",
            summary="English lesson",
            description="<b>Student Name</b> Sam",
            location="Online",
            start=pendulum.datetime(2024, 11, 25, 9, tz="UTC"),
            end=pendulum.datetime(2024, 11, 25, 10, tz="UTC"),
            attendees=[Attendee("student@example.com"), Attendee("anna@example.com", organizer=True, resource=True)],
            reminders=[Reminder("email", 1440)],
            timezone="Europe/London",
        )

        assert link == "https://calendar.google.com/event?eid=evt"
        request = session.requests[0]
        assert request["params"] == {"conferenceDataVersion": 1, "sendUpdates": "all"}
        payload = request["json"]
        assert payload["start"] == {"dateTime": "2024-11-25T09:00:00Z", "timeZone": "Europe/London"}
        assert payload["attendees"] == [
            {"email": "student@example.com"},
            {"email": "anna@example.com", "organizer": True, "resource": True},
        ]
        assert payload["reminders"] == {"useDefault": False, "overrides": [{"method": "email", "minutes": 1440}]}
        assert payload["conferenceData"]["createRequest"]["conferenceSolutionKey"] == {"type": "hangoutsMeet"}

    def test_create_event_requires_oauth(self):
        client = GoogleCalendarClient(api_key="key-1", session=FakeSession([]))

        with pytest.raises(ProviderError, match="requires OAuth"):
            client.create_event(
                calendar_id="primary",
                summary="s",
                description="d",
                location="l",
                start=pendulum.datetime(2024, 11, 25, 9, tz="UTC"),
                end=pendulum.datetime(2024, 11, 25, 10, tz="UTC"),
                attendees=[],
                reminders=[],
            )

    def test_create_event_without_link_fails(self):
        session = FakeSession([FakeResponse({"id": "evt"})])
        client = GoogleCalendarClient(authenticator=StaticAuthenticator(), session=session)

        with pytest.raises(ProviderError, match="without a link"):
            client.create_event(
                calendar_id="primary",
                summary="s",
                description="d",
                location="l",
                start=pendulum.datetime(2024, 11, 25, 9, tz="UTC"),
                end=pendulum.datetime(2024, 11, 25, 10, tz="UTC"),
                attendees=[],
                reminders=[],
                conference_requested=False,
            )

        assert "conferenceData" not in session.requests[0]["json"]
