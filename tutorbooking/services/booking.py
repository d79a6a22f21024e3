"""
Application service for booking trial and regular lessons.
"""

from __future__ import annotations

import html
import logging
from typing import Callable, List, Sequence

import pendulum
from pendulum import DateTime

from ..domain.exceptions import EmailNotFoundError, NoAvailableLessonsError, TrialAlreadyUsedError
from ..domain.models import Attendee, Reminder, SessionRequest, SessionResponse, Tutor
from .protocols import CalendarClientProtocol, LessonStoreProtocol

logger = logging.getLogger(__name__)

DEFAULT_REMINDERS = (
    Reminder(method="email", minutes=24 * 60),
    Reminder(method="popup", minutes=10),
)


class BookingService:
    """
    Books lessons in the tutor's calendar and keeps lesson credits in step.

    Credit changes are made atomically by the store before the calendar is
    called and are rolled back if the event cannot be created, so a failed
    booking never costs the student a lesson or their trial.
    """

    def __init__(
        self,
        calendar_client: CalendarClientProtocol,
        store: LessonStoreProtocol,
        *,
        organizer_calendar_id: str = "primary",
        summary: str = "English lesson",
        location: str = "Online",
        reminders: Sequence[Reminder] = DEFAULT_REMINDERS,
        timezone: str = "UTC",
        clock: Callable[[], DateTime] | None = None,
    ) -> None:
        self._calendar_client = calendar_client
        self._store = store
        self._organizer_calendar_id = organizer_calendar_id
        self._summary = summary
        self._location = location
        self._reminders = list(reminders)
        self._timezone = timezone
        self._clock = clock or (lambda: pendulum.now(timezone))

    def get_available_lesson_count(self, email: str) -> int:
        """
        Number of paid lessons the student can still book.

        Raises:
            EmailNotFoundError: If the student has no credit record
        """
        credit = self._store.get_lesson_credit(email)
        if credit is None:
            raise EmailNotFoundError("Student", email)
        return credit.available_lessons

    def is_trial_available(self, email: str) -> bool:
        credit = self._store.get_lesson_credit(email)
        return not (credit is not None and credit.used_trial)

    def book_trial_session(self, request: SessionRequest) -> SessionResponse:
        """
        Book the student's free trial lesson.

        Raises:
            TrialAlreadyUsedError: If the student already had a trial
            EmailNotFoundError: If the tutor is not in the directory
            ProviderError: If the calendar event cannot be created
        """
        if not self.is_trial_available(request.student_email):
            raise TrialAlreadyUsedError(request.student_email)

        tutor = self._get_tutor(request.tutor_email)
        created = self._store.claim_trial(request.student_email, request.student_name, self._clock())

        try:
            event_link = self._book_session(request, tutor, request.student_name)
        except Exception:
            logger.warning("Trial booking for %s failed, releasing trial", request.student_email)
            self._store.release_trial(request.student_email, created)
            raise

        return self._prepare_response(request, event_link)

    def book_regular_session(self, request: SessionRequest) -> SessionResponse:
        """
        Book a paid lesson, spending one lesson credit.

        Raises:
            EmailNotFoundError: If the student has no credit record or the
                tutor is not in the directory
            NoAvailableLessonsError: If the student has no lessons left
            ProviderError: If the calendar event cannot be created
        """
        credit = self._store.get_lesson_credit(request.student_email)
        if credit is None:
            raise EmailNotFoundError("Student", request.student_email)
        if credit.available_lessons < 1:
            raise NoAvailableLessonsError(request.student_email)

        tutor = self._get_tutor(request.tutor_email)
        booked_at = self._clock()
        updated = self._store.consume_lesson(request.student_email, booked_at)

        try:
            event_link = self._book_session(request, tutor, updated.name or request.student_name)
        except Exception:
            logger.warning("Regular booking for %s failed, restoring lesson", request.student_email)
            self._store.restore_lesson(request.student_email, credit, booked_at)
            raise

        return self._prepare_response(request, event_link)

    def _get_tutor(self, tutor_email: str) -> Tutor:
        tutor = self._store.get_tutor(tutor_email)
        if tutor is None:
            raise EmailNotFoundError("Tutor", tutor_email)
        return tutor

    def _book_session(self, request: SessionRequest, tutor: Tutor, student_name: str) -> str:
        logger.info("Attempting to create event for student: %s", student_name)

        event_link = self._calendar_client.create_event(
            calendar_id=self._organizer_calendar_id,
            summary=self._summary,
            description=self._prepare_description(request.requested_service, student_name),
            location=self._location,
            start=request.start_date,
            end=request.end_date,
            attendees=self._prepare_attendees(request, tutor),
            reminders=self._reminders,
            conference_requested=True,
            timezone=self._timezone,
        )

        logger.info("Event created successfully for student: %s", student_name)
        return event_link

    @staticmethod
    def _prepare_attendees(request: SessionRequest, tutor: Tutor) -> List[Attendee]:
        return [
            Attendee(email=request.student_email),
            Attendee(email=tutor.email, organizer=True, resource=True),
        ]

    @staticmethod
    def _prepare_description(requested_service: str, student_name: str) -> str:
        return (
            f"<b>Student Name</b> {html.escape(student_name)}<br>"
            f"<b>Requested Service</b> {html.escape(requested_service)}"
        )

    @staticmethod
    def _prepare_response(request: SessionRequest, event_link: str) -> SessionResponse:
        return SessionResponse(
            student_email=request.student_email,
            session_time=request.start_date,
            event_link=event_link,
            requested_service=request.requested_service,
        )
