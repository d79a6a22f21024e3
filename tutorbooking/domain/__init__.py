"""
Domain layer - Pure business logic without external dependencies.
"""

from .event_extraction import extract_event, extract_events
from .models import CalendarEvent, DayOccupancy, EventStatus, HourSlot, LessonCredit
from .occupancy import OccupancyGridBuilder, month_bounds
from .pricing import PriceCalculator

__all__ = [
    "CalendarEvent",
    "DayOccupancy",
    "EventStatus",
    "HourSlot",
    "LessonCredit",
    "OccupancyGridBuilder",
    "PriceCalculator",
    "extract_event",
    "extract_events",
    "month_bounds",
]
