"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import AvailabilityService
from .booking import BookingService
from .payments import PaymentService
from .protocols import CalendarClientProtocol, LessonStoreProtocol, PaymentClientProtocol, PaymentStoreProtocol

__all__ = [
    "AvailabilityService",
    "BookingService",
    "CalendarClientProtocol",
    "LessonStoreProtocol",
    "PaymentClientProtocol",
    "PaymentService",
    "PaymentStoreProtocol",
]
