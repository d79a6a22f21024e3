"""
Mock Google Calendar client for running without Google credentials.
"""

import json
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pendulum
from pendulum import DateTime

from ..domain.models import Attendee, Reminder


class MockCalendarClient:
    """
    Mock client that simulates Google Calendar API responses.

    Events are loaded from mock_calendar_events.json (records shaped like
    the API's event resources plus a ``calendarId`` key). Created events are
    kept in memory and show up in later listings.
    """

    def __init__(self, events: Optional[List[Dict[str, Any]]] = None, data_file: Path | None = None):
        """
        Initialize the mock client.

        Args:
            events: Optional event records; loaded from data_file otherwise
            data_file: Optional JSON file with event records
        """
        if events is not None:
            self.calendar_events = list(events)
        else:
            self.calendar_events = self._load_calendar_data(data_file)
        self.created_events: List[Dict[str, Any]] = []

    @staticmethod
    def _load_calendar_data(data_file: Path | None) -> List[Dict[str, Any]]:
        """Load mock calendar data from JSON file."""
        data_file = data_file or Path(__file__).parent / "mock_calendar_events.json"

        if data_file.exists():
            with open(data_file, "r", encoding="utf-8") as f:
                return json.load(f)

        return []

    @staticmethod
    def _event_bounds(event: Dict[str, Any]) -> tuple[DateTime, DateTime] | None:
        try:
            start = event["start"].get("dateTime") or event["start"]["date"]
            end = event["end"].get("dateTime") or event["end"]["date"]
            return pendulum.parse(start), pendulum.parse(end)
        except (KeyError, AttributeError, ValueError):
            return None

    def list_events(
        self,
        calendar_id: str,
        time_min: Optional[DateTime] = None,
        time_max: Optional[DateTime] = None
    ) -> List[Dict[str, Any]]:
        """Return stored records of a calendar overlapping the window."""
        items: List[Dict[str, Any]] = []

        for event in self.calendar_events:
            if event.get("calendarId") != calendar_id:
                continue

            bounds = self._event_bounds(event)
            if bounds is not None:
                event_start, event_end = bounds
                if time_max is not None and event_start >= time_max:
                    continue
                if time_min is not None and event_end <= time_min:
                    continue

            # Malformed records are passed through so extraction reports them
            items.append({k: v for k, v in event.items() if k != "calendarId"})

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
        """Store the event and return a fake calendar link."""
        event_id = uuid.uuid4().hex
        record = {
            "id": event_id,
            "calendarId": calendar_id,
            "summary": summary,
            "description": description,
            "location": location,
            "status": "confirmed",
            "start": {"dateTime": start.to_iso8601_string(), "timeZone": timezone},
            "end": {"dateTime": end.to_iso8601_string(), "timeZone": timezone},
            "attendees": [attendee.email for attendee in attendees],
            "reminders": [(reminder.method, reminder.minutes) for reminder in reminders],
            "conference": conference_requested,
        }
        self.created_events.append(record)

        # Booked lessons occupy every attendee's calendar
        for attendee in attendees:
            self.calendar_events.append({**record, "calendarId": attendee.email})

        return f"https://calendar.google.com/calendar/event?eid={event_id}"

    def test_connection(self) -> Dict[str, Any]:
        """Mock connection test."""
        return {"items": [{"id": "mock.tutor@example.com", "summary": "Mock Calendar"}]}
