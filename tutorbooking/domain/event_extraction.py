"""
Conversion of raw calendar provider records into domain events.

Provider records carry ``start``/``end`` objects shaped either as
``{"dateTime": "<ISO-8601 with offset>"}`` for timed events or
``{"date": "YYYY-MM-DD"}`` for all-day events.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping

import pendulum
from pendulum import DateTime

from .exceptions import MalformedEventError
from .models import CalendarEvent, EventStatus

logger = logging.getLogger(__name__)


def extract_datetime(value: Mapping[str, Any], timezone: str) -> DateTime:
    """
    Parse a provider ``start``/``end`` object.

    Args:
        value: Mapping with either a ``dateTime`` or a ``date`` key
        timezone: Zone used for all-day events (local midnight)

    Returns:
        Pendulum DateTime; timed values keep their own offset

    Raises:
        MalformedEventError: If neither key is usable
    """
    if not isinstance(value, Mapping):
        raise MalformedEventError(f"Expected an object with dateTime or date, got {value!r}")

    date_time = value.get("dateTime")
    if date_time:
        try:
            parsed = pendulum.parse(date_time)
        except (ValueError, TypeError) as exc:
            raise MalformedEventError(f"Could not parse dateTime {date_time!r}: {exc}") from exc
        if not isinstance(parsed, DateTime):
            raise MalformedEventError(f"dateTime {date_time!r} is not a timestamp")
        return parsed

    date = value.get("date")
    if date:
        try:
            return pendulum.from_format(date, "YYYY-MM-DD", tz=timezone)
        except (ValueError, TypeError) as exc:
            raise MalformedEventError(f"Could not parse date {date!r}: {exc}") from exc

    raise MalformedEventError(f"Event time has neither dateTime nor date: {dict(value)!r}")


def extract_status(item: Mapping[str, Any]) -> EventStatus:
    raw_status = item.get("status", EventStatus.CONFIRMED.value)
    try:
        return EventStatus(str(raw_status).lower())
    except ValueError as exc:
        raise MalformedEventError(f"Unknown event status {raw_status!r}") from exc


def extract_event(item: Mapping[str, Any], timezone: str) -> CalendarEvent:
    """
    Build a CalendarEvent from a single provider record.

    Raises:
        MalformedEventError: If start/end are missing or unparseable
    """
    if "start" not in item or "end" not in item:
        raise MalformedEventError(f"Event {item.get('id', '<no id>')} is missing start or end")

    status = extract_status(item)
    start = extract_datetime(item["start"], timezone)
    end = extract_datetime(item["end"], timezone)

    try:
        return CalendarEvent(start_date=start, end_date=end, status=status)
    except ValueError as exc:
        raise MalformedEventError(str(exc)) from exc


def extract_events(items: Iterable[Dict[str, Any]], timezone: str) -> List[CalendarEvent]:
    """
    Extract all non-cancelled events, in provider order.

    Cancelled records are dropped before their times are looked at, so a
    cancelled stub without start/end does not fail the whole list.
    """
    events: List[CalendarEvent] = []

    for item in items:
        if extract_status(item) is EventStatus.CANCELLED:
            continue
        events.append(extract_event(item, timezone))

    logger.debug("Extracted %d active events", len(events))
    return events
