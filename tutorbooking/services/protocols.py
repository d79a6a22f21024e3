"""
Protocols describing the collaborators the services depend on.

The real Google/PayPal adapters, the mock adapters and test stubs all
satisfy these structurally.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol, Sequence

from pendulum import DateTime

from ..domain.models import (
    Attendee,
    LessonCredit,
    PaymentCredential,
    PaymentMetadata,
    Reminder,
    Tutor,
)


class CalendarClientProtocol(Protocol):
    """Calendar provider behaviour needed by the services."""

    def list_events(
        self,
        calendar_id: str,
        time_min: Optional[DateTime] = None,
        time_max: Optional[DateTime] = None,
    ) -> List[Dict[str, Any]]:
        """Return raw event records of a calendar."""

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
        timezone: str = "UTC",
    ) -> str:
        """Create an event and return its link."""


class PaymentClientProtocol(Protocol):
    """Payment provider behaviour needed by the payment service."""

    def create_payment(
        self,
        credential: PaymentCredential,
        *,
        amount: Decimal,
        currency: str,
        metadata: PaymentMetadata,
        return_url: str,
        cancel_url: str,
    ) -> Dict[str, Any]:
        """Create a payment; the result carries ``id`` and ``links``."""

    def execute_payment(
        self,
        credential: PaymentCredential,
        *,
        payment_id: str,
        payer_id: str,
    ) -> Dict[str, Any]:
        """Execute an approved payment; the result carries ``transactions``."""


class LessonStoreProtocol(Protocol):
    """Persistence of students' lesson credits and the tutor directory."""

    def get_lesson_credit(self, email: str) -> Optional[LessonCredit]: ...

    def consume_lesson(self, email: str, booked_at: DateTime) -> LessonCredit: ...

    def restore_lesson(self, email: str, previous: LessonCredit, booked_at: DateTime) -> None: ...

    def claim_trial(self, email: str, name: str, booked_at: DateTime) -> bool: ...

    def release_trial(self, email: str, created: bool) -> None: ...

    def credit_lessons(self, email: str, quantity: int) -> LessonCredit: ...

    def get_tutor(self, email: str) -> Optional[Tutor]: ...


class PaymentStoreProtocol(LessonStoreProtocol, Protocol):
    """Persistence needed by the payment service."""

    def get_payment_credential(self, tutor_email: str) -> Optional[PaymentCredential]: ...

    def save_payment_credential(self, credential: PaymentCredential) -> None: ...

    def record_payment(self, tutor_email: str, payment_id: str) -> None: ...
