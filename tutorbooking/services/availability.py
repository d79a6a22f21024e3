"""
Application service for tutor calendars and monthly occupancy grids.

The service fetches raw events via a calendar client adapter and delegates
extraction and grid building to the domain layer, which keeps the transport
layers thin and lets the calendar dependency be stubbed in tests.
"""

from __future__ import annotations

import logging
from typing import List

from ..domain.event_extraction import extract_events
from ..domain.exceptions import EmailNotFoundError
from ..domain.models import CalendarEvent, DayOccupancy, Tutor
from ..domain.occupancy import OccupancyGridBuilder, month_bounds
from .protocols import CalendarClientProtocol, LessonStoreProtocol

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Orchestrates event retrieval and occupancy grid calculation."""

    def __init__(
        self,
        calendar_client: CalendarClientProtocol,
        store: LessonStoreProtocol,
        timezone: str = "UTC",
    ) -> None:
        self._calendar_client = calendar_client
        self._store = store
        self._timezone = timezone
        self._grid_builder = OccupancyGridBuilder(timezone=timezone)

    def _get_tutor(self, tutor_email: str) -> Tutor:
        tutor = self._store.get_tutor(tutor_email)
        if tutor is None:
            raise EmailNotFoundError("Tutor", tutor_email)
        return tutor

    def get_events(self, tutor_email: str) -> List[CalendarEvent]:
        """All non-cancelled events of the tutor's calendar."""
        tutor = self._get_tutor(tutor_email)
        items = self._calendar_client.list_events(tutor.get_calendar_id())
        return extract_events(items, self._timezone)

    def get_month_occupancy(self, tutor_email: str, year: int, month: int) -> List[DayOccupancy]:
        """
        Busy/free hours of every day of a month for a tutor.

        Raises:
            EmailNotFoundError: If the tutor is not in the directory
            MalformedEventError: If the provider returned an unusable record
            ProviderError: If the calendar cannot be read
        """
        tutor = self._get_tutor(tutor_email)
        start_of_month, end_of_month = month_bounds(year, month, self._timezone)

        # Query up to the next month's midnight so the last day is covered
        items = self._calendar_client.list_events(
            tutor.get_calendar_id(),
            time_min=start_of_month,
            time_max=end_of_month.add(days=1),
        )
        events = extract_events(items, self._timezone)

        logger.info(
            "Building occupancy for %s %04d-%02d from %d events",
            tutor.email,
            year,
            month,
            len(events),
        )
        return self._grid_builder.build(events, start_of_month, end_of_month)
