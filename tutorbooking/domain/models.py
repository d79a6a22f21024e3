"""
Domain models for lessons, calendar events and occupancy grids.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pendulum import DateTime

DESCRIPTION_PATTERN = re.compile(r"Lesson quantity: (?P<quantity>\d+), user email: (?P<email>\S+)")


class EventStatus(str, Enum):
    """Status values reported by the calendar provider."""
    CONFIRMED = "confirmed"
    TENTATIVE = "tentative"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CalendarEvent:
    """
    An immutable calendar event extracted from a provider record.

    Invariant: start_date must not be after end_date.
    """
    start_date: DateTime
    end_date: DateTime
    status: EventStatus = EventStatus.CONFIRMED

    def __post_init__(self):
        if self.start_date > self.end_date:
            raise ValueError(
                f"Event start {self.start_date} must not be after end {self.end_date}"
            )

    @property
    def is_cancelled(self) -> bool:
        return self.status is EventStatus.CANCELLED

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end_date - self.start_date).total_seconds() / 60)


@dataclass(frozen=True)
class HourSlot:
    """One hour of a day, keyed by the UTC instant the hour starts at."""
    timestamp: DateTime
    occupied: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": int(self.timestamp.timestamp() * 1000),
            "occupied": self.occupied,
        }


@dataclass(frozen=True)
class DayOccupancy:
    """
    Busy/free hours of a single local calendar day.

    ``date`` is the local midnight expressed in UTC; ``hours`` are ordered
    by timestamp ascending.
    """
    date: DateTime
    hours: List[HourSlot]

    def occupied_hours(self) -> List[HourSlot]:
        return [slot for slot in self.hours if slot.occupied]

    def is_free(self) -> bool:
        return not any(slot.occupied for slot in self.hours)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using epoch milliseconds, the shape calendar widgets expect."""
        return {
            "date": int(self.date.timestamp() * 1000),
            "time": [slot.to_dict() for slot in self.hours],
        }


@dataclass
class LessonCredit:
    """
    A student's lesson balance.

    Invariant: available_lessons and all_paid_lessons are never negative.
    """
    email: str
    name: str = ""
    available_lessons: int = 0
    all_paid_lessons: int = 0
    used_trial: bool = False
    last_booking_date: Optional[DateTime] = None

    def __post_init__(self):
        if self.available_lessons < 0:
            raise ValueError(f"available_lessons must not be negative, got {self.available_lessons}")
        if self.all_paid_lessons < 0:
            raise ValueError(f"all_paid_lessons must not be negative, got {self.all_paid_lessons}")


@dataclass
class PaymentCredential:
    """Payment provider credentials of a tutor and the last executed payment."""
    tutor_email: str
    client_id: str = ""
    client_secret: str = ""
    payment_id: Optional[str] = None


@dataclass(frozen=True)
class Tutor:
    """Tutor directory entry."""
    name: str
    email: str
    calendar_id: str = ""

    def get_calendar_id(self) -> str:
        """The provider calendar id, falling back to the tutor's email."""
        return self.calendar_id or self.email


@dataclass
class SessionRequest:
    """A request to book a lesson with a tutor."""
    student_email: str
    tutor_email: str
    start_date: DateTime
    end_date: DateTime
    requested_service: str = ""
    student_name: str = ""

    def __post_init__(self):
        if self.start_date >= self.end_date:
            raise ValueError(
                f"Session start {self.start_date} must be before end {self.end_date}"
            )


@dataclass(frozen=True)
class SessionResponse:
    """Outcome of a successful booking."""
    student_email: str
    session_time: DateTime
    event_link: str
    requested_service: str = ""


@dataclass(frozen=True)
class Reminder:
    """Calendar reminder sent before the event starts."""
    method: str
    minutes: int


@dataclass(frozen=True)
class Attendee:
    """Calendar event attendee."""
    email: str
    organizer: bool = False
    resource: bool = False


@dataclass(frozen=True)
class PaymentMetadata:
    """Structured data travelling with a payment so it can be credited later."""
    quantity: int
    student_email: str

    def __post_init__(self):
        if self.quantity < 1:
            raise ValueError(f"quantity must be at least 1, got {self.quantity}")

    def describe(self) -> str:
        """Human-readable transaction description shown by the provider."""
        return f"Lesson quantity: {self.quantity}, user email: {self.student_email}"

    def to_custom(self) -> str:
        """Encode for the transaction's free-form ``custom`` field."""
        return json.dumps({"quantity": self.quantity, "student_email": self.student_email})

    @classmethod
    def from_transaction(cls, transaction: Mapping[str, Any]) -> "PaymentMetadata":
        """
        Recover the metadata of an executed transaction.

        Payments created before metadata was attached only carry the
        description, which is parsed as a fallback.

        Raises:
            ValueError: If neither field holds usable metadata
        """
        custom = transaction.get("custom")
        if custom:
            try:
                data = json.loads(custom)
                return cls(quantity=int(data["quantity"]), student_email=str(data["student_email"]))
            except (ValueError, KeyError, TypeError) as exc:
                raise ValueError(f"Invalid payment metadata {custom!r}") from exc

        description = transaction.get("description") or ""
        match = DESCRIPTION_PATTERN.fullmatch(description.strip())
        if match is None:
            raise ValueError(f"Payment carries no lesson metadata: {description!r}")
        return cls(quantity=int(match.group("quantity")), student_email=match.group("email"))


@dataclass(frozen=True)
class PaymentReceipt:
    """Result of an executed payment."""
    payment_id: str
    student_email: str
    quantity: int
    available_lessons: int
    all_paid_lessons: int
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)
