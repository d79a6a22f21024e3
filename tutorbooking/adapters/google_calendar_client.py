"""
Google Calendar API client for listing and creating events.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

import requests
from pendulum import DateTime

from ..domain.exceptions import ProviderError
from ..domain.models import Attendee, Reminder
from .google_authenticator import GoogleAuthenticator

logger = logging.getLogger(__name__)


class GoogleCalendarClient:
    """
    Client for Google Calendar v3 event operations.

    Reads use the API key when one is configured (public tutor calendars);
    writes always go through the OAuth authenticator.
    """

    CALENDAR_API_ENDPOINT = "https://www.googleapis.com/calendar/v3"

    def __init__(
        self,
        authenticator: GoogleAuthenticator | None = None,
        api_key: str = "",
        session: requests.Session | None = None
    ):
        """
        Initialize the Calendar API client.

        Args:
            authenticator: Provides OAuth access tokens
            api_key: Optional API key for reading public calendars
            session: Optional requests session
        """
        if authenticator is None and not api_key:
            raise ValueError("Either an authenticator or an API key is required")

        self.authenticator = authenticator
        self.api_key = api_key
        self.session = session or requests.Session()

    def _auth_headers(self) -> Dict[str, str]:
        if self.authenticator is None:
            raise ProviderError("Creating events requires OAuth credentials")
        access_token = self.authenticator.get_access_token()
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json"
        }

    def list_events(
        self,
        calendar_id: str,
        time_min: Optional[DateTime] = None,
        time_max: Optional[DateTime] = None
    ) -> List[Dict[str, Any]]:
        """
        Get raw event records of a calendar, following pagination.

        Args:
            calendar_id: Calendar to read (usually the tutor's email)
            time_min: Optional lower bound for event end
            time_max: Optional upper bound for event start

        Returns:
            List of event resources as returned by the API

        Raises:
            ProviderError: If API call fails
        """
        url = f"{self.CALENDAR_API_ENDPOINT}/calendars/{calendar_id}/events"

        params: Dict[str, Any] = {"singleEvents": "true", "maxResults": 2500}
        if time_min is not None:
            params["timeMin"] = time_min.to_iso8601_string()
        if time_max is not None:
            params["timeMax"] = time_max.to_iso8601_string()

        if self.api_key:
            params["key"] = self.api_key
            headers: Dict[str, str] = {}
        else:
            headers = self._auth_headers()

        items: List[Dict[str, Any]] = []

        while True:
            try:
                response = self.session.get(url, headers=headers, params=params, timeout=30)
                response.raise_for_status()
                data = response.json()
            except requests.exceptions.RequestException as exc:
                raise ProviderError(f"Failed to fetch events for {calendar_id}: {exc}") from exc

            items.extend(data.get("items", []))

            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token

        logger.debug("Fetched %d events for calendar %s", len(items), calendar_id)
        return items

    def create_event(
        self,
        *,
        calendar_id: str,
        summary: str,
        description: str,
        location: str,
        start: DateTime,
        end: DateTime,
        attendees: Sequence[Attendee],
        reminders: Sequence[Reminder],
        conference_requested: bool = True,
        timezone: str = "UTC"
    ) -> str:
        """
        Insert an event and return its calendar link.

        Attendees receive invitations (``sendUpdates=all``); with
        ``conference_requested`` a Google Meet link is attached.

        Raises:
            ProviderError: If API call fails
        """
        url = f"{self.CALENDAR_API_ENDPOINT}/calendars/{calendar_id}/events"

        payload = self._build_event_payload(
            summary=summary,
            description=description,
            location=location,
            start=start,
            end=end,
            attendees=attendees,
            reminders=reminders,
            conference_requested=conference_requested,
            timezone=timezone,
        )
        params = {
            "conferenceDataVersion": 1 if conference_requested else 0,
            "sendUpdates": "all",
        }

        try:
            response = self.session.post(
                url,
                headers=self._auth_headers(),
                params=params,
                json=payload,
                timeout=30
            )
            response.raise_for_status()
            event = response.json()
        except requests.exceptions.RequestException as exc:
            raise ProviderError(f"Failed to create calendar event: {exc}") from exc

        link = event.get("htmlLink")
        if not link:
            raise ProviderError(f"Calendar event {event.get('id')} was created without a link")

        logger.info("Calendar event created: %s", event.get("id"))
        return link

    @staticmethod
    def _build_event_payload(
        *,
        summary: str,
        description: str,
        location: str,
        start: DateTime,
        end: DateTime,
        attendees: Sequence[Attendee],
        reminders: Sequence[Reminder],
        conference_requested: bool,
        timezone: str
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "summary": summary,
            "location": location,
            "description": description,
            "start": {
                "dateTime": start.to_iso8601_string(),
                "timeZone": timezone
            },
            "end": {
                "dateTime": end.to_iso8601_string(),
                "timeZone": timezone
            },
            "attendees": [
                {
                    "email": attendee.email,
                    **({"organizer": True} if attendee.organizer else {}),
                    **({"resource": True} if attendee.resource else {}),
                }
                for attendee in attendees
            ],
            "guestsCanModify": True,
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": reminder.method, "minutes": reminder.minutes}
                    for reminder in reminders
                ]
            },
        }

        if conference_requested:
            payload["conferenceData"] = {
                "createRequest": {
                    "requestId": uuid.uuid4().hex,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"}
                }
            }

        return payload

    def test_connection(self) -> Dict[str, Any]:
        """
        Test the connection and authentication by reading the calendar list.

        Raises:
            ProviderError: If connection test fails
        """
        url = f"{self.CALENDAR_API_ENDPOINT}/users/me/calendarList"

        try:
            response = self.session.get(
                url,
                headers=self._auth_headers(),
                params={"maxResults": 10},
                timeout=10
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as exc:
            raise ProviderError(f"Connection test failed: {exc}") from exc
