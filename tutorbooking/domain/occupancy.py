"""
Core business logic for turning calendar events into an occupancy grid.

Pure domain logic without any external dependencies (no API calls, no
database, no I/O). The provider only reports busy intervals; callers need a
dense per-day, per-hour shape to render availability.
"""

from typing import Dict, Iterable, List, Tuple

import pendulum
from pendulum import DateTime

from .models import CalendarEvent, DayOccupancy, HourSlot

# local midnight (as UTC instant) -> {hour start (UTC) -> occupied}
OccupancyMap = Dict[DateTime, Dict[DateTime, bool]]

HOURS_PER_DAY = 24


def month_bounds(year: int, month: int, timezone: str) -> Tuple[DateTime, DateTime]:
    """
    Return the local midnights of the first and the last day of a month.

    Raises:
        ValueError: If month is not between 1 and 12
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")

    start_of_month = pendulum.datetime(year, month, 1, tz=timezone)
    end_of_month = start_of_month.end_of("month").start_of("day")
    return start_of_month, end_of_month


class OccupancyGridBuilder:
    """
    Builds the busy/free hour grid of a tutor for a range of days.

    Algorithm:
    1. Walk every event hour by hour, grouping UTC hour starts by local day
    2. Union the per-day hour sets of all events
    3. Emit 24 hourly slots per day of the window, busy where an event walked
    4. Return days ascending, hours ascending within a day
    """

    def __init__(self, timezone: str = "UTC"):
        self.timezone = timezone

    def build(
        self,
        events: Iterable[CalendarEvent],
        start_of_month: DateTime,
        end_of_month: DateTime
    ) -> List[DayOccupancy]:
        """
        Build one DayOccupancy per local day in [start_of_month, end_of_month].

        Args:
            events: Calendar events; cancelled ones are ignored
            start_of_month: First day of the window (any time on that day)
            end_of_month: Last day of the window, inclusive

        Returns:
            List of DayOccupancy ordered by date
        """
        occupancy: OccupancyMap = {}

        for event in events:
            if event.is_cancelled:
                continue
            self._merge(occupancy, self._walk_event(event))

        busy_hours = {
            timestamp
            for hours in occupancy.values()
            for timestamp, occupied in hours.items()
            if occupied
        }

        return [
            DayOccupancy(
                date=day.in_timezone("UTC"),
                hours=[
                    HourSlot(timestamp=timestamp, occupied=timestamp in busy_hours)
                    for timestamp in self._hours_of_day(day)
                ]
            )
            for day in self._window_days(start_of_month, end_of_month)
        ]

    def _day_key(self, moment: DateTime) -> DateTime:
        """Local midnight of the day a moment falls on."""
        return moment.in_timezone(self.timezone).start_of("day")

    def _walk_event(self, event: CalendarEvent) -> OccupancyMap:
        """
        Mark every hour an event touches, grouped by local day.

        The walk stops at the hour the event ends in, so an event ending at
        14:30 marks 14:00 as its last hour and an event ending at 15:00 does
        not mark 15:00.
        """
        current = event.start_date.in_timezone(self.timezone)
        end = event.end_date.in_timezone(self.timezone)
        end_hour = end.start_of("hour")

        walked: OccupancyMap = {}
        day = self._day_key(current)
        hours: Dict[DateTime, bool] = {}

        while current < end:
            if self._day_key(current) != day:
                # Crossed local midnight: commit the finished day
                walked[day] = hours
                day = self._day_key(current)
                hours = {}

            hour = current.start_of("hour")
            hours[hour.in_timezone("UTC")] = True

            if hour == end_hour:
                break

            current = hour.add(hours=1)

        if hours:
            walked[day] = hours

        return walked

    @staticmethod
    def _merge(target: OccupancyMap, source: OccupancyMap) -> None:
        """Union the occupied hours of source into target."""
        for day, hours in source.items():
            target.setdefault(day, {}).update(hours)

    def _window_days(self, start: DateTime, end: DateTime) -> List[DateTime]:
        """Local midnights of every day from start to end inclusive."""
        days: List[DateTime] = []
        current = self._day_key(start)
        last = self._day_key(end)

        while current <= last:
            days.append(current)
            current = current.add(days=1)

        return days

    @staticmethod
    def _hours_of_day(day: DateTime) -> List[DateTime]:
        """
        UTC starts of the HOURS_PER_DAY hours following a local midnight.

        On a daylight saving change day these end an hour before or after
        the next local midnight.
        """
        return [day.add(hours=offset).in_timezone("UTC") for offset in range(HOURS_PER_DAY)]
