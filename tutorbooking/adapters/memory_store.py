"""
In-memory persistence for lesson credits, tutors and payment credentials.

Every read-check-write sequence runs under one lock, so two requests for
the same student cannot both spend the last lesson credit.
"""

import threading
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from pendulum import DateTime

from ..domain.exceptions import (
    EmailNotFoundError,
    NoAvailableLessonsError,
    PaymentAlreadyCompletedError,
    TrialAlreadyUsedError,
)
from ..domain.models import LessonCredit, PaymentCredential, Tutor


def _key(email: str) -> str:
    return email.strip().lower()


class InMemoryStore:
    """
    Thread-safe store implementing the repository protocol of the services.

    Records handed out are copies; changes only happen through the
    store's methods.
    """

    def __init__(
        self,
        tutors: Iterable[Tutor] = (),
        payment_credentials: Iterable[PaymentCredential] = (),
        lesson_credits: Iterable[LessonCredit] = ()
    ):
        self._lock = threading.RLock()
        self._tutors: Dict[str, Tutor] = {_key(t.email): t for t in tutors}
        self._credentials: Dict[str, PaymentCredential] = {
            _key(c.tutor_email): replace(c) for c in payment_credentials
        }
        self._credits: Dict[str, LessonCredit] = {
            _key(c.email): replace(c) for c in lesson_credits
        }

    # Lesson credits

    def get_lesson_credit(self, email: str) -> Optional[LessonCredit]:
        with self._lock:
            credit = self._credits.get(_key(email))
            return replace(credit) if credit else None

    def save_lesson_credit(self, credit: LessonCredit) -> None:
        with self._lock:
            self._credits[_key(credit.email)] = replace(credit)

    def consume_lesson(self, email: str, booked_at: DateTime) -> LessonCredit:
        """
        Take one lesson from the student's balance.

        Raises:
            EmailNotFoundError: If the student has no credit record
            NoAvailableLessonsError: If the balance is zero (nothing is written)
        """
        with self._lock:
            credit = self._credits.get(_key(email))
            if credit is None:
                raise EmailNotFoundError("Student", email)
            if credit.available_lessons < 1:
                raise NoAvailableLessonsError(email)

            updated = replace(
                credit,
                available_lessons=credit.available_lessons - 1,
                last_booking_date=booked_at,
            )
            self._credits[_key(email)] = updated
            return replace(updated)

    def restore_lesson(self, email: str, previous: LessonCredit, booked_at: DateTime) -> None:
        """
        Give back a lesson taken by consume_lesson.

        The previous booking date is only put back while the stored date is
        still ``booked_at``, so a later booking keeps its own date.
        """
        with self._lock:
            credit = self._credits.get(_key(email))
            if credit is None:
                return
            last_booking_date = credit.last_booking_date
            if last_booking_date == booked_at:
                last_booking_date = previous.last_booking_date
            self._credits[_key(email)] = replace(
                credit,
                available_lessons=credit.available_lessons + 1,
                last_booking_date=last_booking_date,
            )

    def claim_trial(self, email: str, name: str, booked_at: DateTime) -> bool:
        """
        Mark the trial lesson as used.

        Returns:
            True if a new credit record was created

        Raises:
            TrialAlreadyUsedError: If the trial was used before
        """
        with self._lock:
            credit = self._credits.get(_key(email))
            if credit is None:
                self._credits[_key(email)] = LessonCredit(
                    email=email,
                    name=name,
                    used_trial=True,
                    last_booking_date=booked_at,
                )
                return True

            if credit.used_trial:
                raise TrialAlreadyUsedError(email)

            self._credits[_key(email)] = replace(
                credit,
                used_trial=True,
                name=name or credit.name,
            )
            return False

    def release_trial(self, email: str, created: bool) -> None:
        """
        Undo claim_trial after the booking could not be completed.

        A record created by the claim is removed only while it holds no
        lessons; lessons credited in the meantime are kept.
        """
        with self._lock:
            credit = self._credits.get(_key(email))
            if credit is None:
                return

            if created and credit.available_lessons == 0 and credit.all_paid_lessons == 0:
                del self._credits[_key(email)]
                return

            self._credits[_key(email)] = replace(credit, used_trial=False)

    def credit_lessons(self, email: str, quantity: int) -> LessonCredit:
        """Add purchased lessons, creating the student's record if needed."""
        if quantity < 1:
            raise ValueError(f"quantity must be at least 1, got {quantity}")

        with self._lock:
            credit = self._credits.get(_key(email))
            if credit is None:
                credit = LessonCredit(email=email, used_trial=False)

            updated = replace(
                credit,
                available_lessons=credit.available_lessons + quantity,
                all_paid_lessons=credit.all_paid_lessons + quantity,
            )
            self._credits[_key(email)] = updated
            return replace(updated)

    # Tutors

    def get_tutor(self, email: str) -> Optional[Tutor]:
        with self._lock:
            return self._tutors.get(_key(email))

    def list_tutors(self) -> List[Tutor]:
        with self._lock:
            return sorted(self._tutors.values(), key=lambda tutor: tutor.name.lower())

    def save_tutor(self, tutor: Tutor) -> None:
        with self._lock:
            self._tutors[_key(tutor.email)] = tutor

    # Payment credentials

    def get_payment_credential(self, tutor_email: str) -> Optional[PaymentCredential]:
        with self._lock:
            credential = self._credentials.get(_key(tutor_email))
            return replace(credential) if credential else None

    def save_payment_credential(self, credential: PaymentCredential) -> None:
        with self._lock:
            self._credentials[_key(credential.tutor_email)] = replace(credential)

    def record_payment(self, tutor_email: str, payment_id: str) -> None:
        """
        Remember payment_id as the tutor's last executed payment.

        Raises:
            EmailNotFoundError: If the tutor has no payment credentials
            PaymentAlreadyCompletedError: If payment_id is already recorded
        """
        with self._lock:
            credential = self._credentials.get(_key(tutor_email))
            if credential is None:
                raise EmailNotFoundError("Tutor", tutor_email)
            if credential.payment_id == payment_id:
                raise PaymentAlreadyCompletedError(payment_id)
            self._credentials[_key(tutor_email)] = replace(credential, payment_id=payment_id)
