"""
Tests for the in-memory store.
"""

import threading

import pendulum
import pytest

from tutorbooking.adapters.memory_store import InMemoryStore
from tutorbooking.domain.exceptions import (
    EmailNotFoundError,
    NoAvailableLessonsError,
    PaymentAlreadyCompletedError,
    TrialAlreadyUsedError,
)
from tutorbooking.domain.models import LessonCredit, PaymentCredential, Tutor

NOW = pendulum.parse("2024-11-20 12:00", tz="UTC")


class TestLessonCredits:
    """Tests for credit operations."""

    def test_emails_are_case_insensitive(self):
        store = InMemoryStore(lesson_credits=[LessonCredit(email="Student@Example.com", available_lessons=1)])

        assert store.get_lesson_credit("student@example.com").available_lessons == 1

    def test_returned_records_are_copies(self):
        store = InMemoryStore(lesson_credits=[LessonCredit(email="student@example.com", available_lessons=1)])

        store.get_lesson_credit("student@example.com").available_lessons = 99

        assert store.get_lesson_credit("student@example.com").available_lessons == 1

    def test_consume_lesson(self):
        store = InMemoryStore(lesson_credits=[LessonCredit(email="student@example.com", available_lessons=2)])

        updated = store.consume_lesson("student@example.com", NOW)

        assert updated.available_lessons == 1
        assert updated.last_booking_date == NOW

    def test_consume_without_record(self):
        with pytest.raises(EmailNotFoundError):
            InMemoryStore().consume_lesson("student@example.com", NOW)

    def test_consume_without_balance(self):
        store = InMemoryStore(lesson_credits=[LessonCredit(email="student@example.com")])

        with pytest.raises(NoAvailableLessonsError):
            store.consume_lesson("student@example.com", NOW)

        assert store.get_lesson_credit("student@example.com").last_booking_date is None

    def test_concurrent_consumers_never_overspend(self):
        """Only as many bookings succeed as there are lessons."""
        store = InMemoryStore(lesson_credits=[LessonCredit(email="student@example.com", available_lessons=3)])
        outcomes = []
        lock = threading.Lock()

        def consume():
            try:
                store.consume_lesson("student@example.com", NOW)
                result = "ok"
            except NoAvailableLessonsError:
                result = "rejected"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=consume) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("ok") == 3
        assert outcomes.count("rejected") == 7
        assert store.get_lesson_credit("student@example.com").available_lessons == 0

    def test_restore_lesson(self):
        previous = LessonCredit(email="student@example.com", available_lessons=1)
        store = InMemoryStore(lesson_credits=[previous])
        store.consume_lesson("student@example.com", NOW)

        store.restore_lesson("student@example.com", previous, NOW)

        credit = store.get_lesson_credit("student@example.com")
        assert credit.available_lessons == 1
        assert credit.last_booking_date is None

    def test_restore_lesson_keeps_later_booking_date(self):
        """A booking made after the failed one keeps its date."""
        previous = LessonCredit(email="student@example.com", available_lessons=2)
        store = InMemoryStore(lesson_credits=[previous])
        later = NOW.add(minutes=5)
        store.consume_lesson("student@example.com", NOW)
        store.consume_lesson("student@example.com", later)

        store.restore_lesson("student@example.com", previous, NOW)

        credit = store.get_lesson_credit("student@example.com")
        assert credit.available_lessons == 1
        assert credit.last_booking_date == later

    def test_claim_and_release_trial(self):
        store = InMemoryStore()

        created = store.claim_trial("student@example.com", "Sam", NOW)
        assert created is True
        with pytest.raises(TrialAlreadyUsedError):
            store.claim_trial("student@example.com", "Sam", NOW)

        store.release_trial("student@example.com", created)
        assert store.get_lesson_credit("student@example.com") is None

    def test_release_trial_keeps_lessons_credited_meanwhile(self):
        """Lessons paid for while the trial was pending survive the release."""
        store = InMemoryStore()
        created = store.claim_trial("new@example.com", "Sam", NOW)
        store.credit_lessons("new@example.com", 5)

        store.release_trial("new@example.com", created)

        credit = store.get_lesson_credit("new@example.com")
        assert credit is not None
        assert credit.available_lessons == 5
        assert credit.all_paid_lessons == 5
        assert credit.used_trial is False

    def test_credit_lessons_creates_record(self):
        store = InMemoryStore()

        credit = store.credit_lessons("student@example.com", 5)

        assert credit.available_lessons == 5
        assert credit.all_paid_lessons == 5
        assert credit.used_trial is False

    def test_credit_lessons_rejects_non_positive(self):
        with pytest.raises(ValueError):
            InMemoryStore().credit_lessons("student@example.com", 0)


class TestTutorsAndCredentials:
    """Tests for the tutor directory and payment credentials."""

    def test_list_tutors_sorted_by_name(self):
        store = InMemoryStore(tutors=[Tutor("ben", "ben@example.com"), Tutor("Anna", "anna@example.com")])
        store.save_tutor(Tutor("carl", "carl@example.com"))

        assert [tutor.name for tutor in store.list_tutors()] == ["Anna", "ben", "carl"]
        assert store.get_tutor("ANNA@example.com").name == "Anna"

    def test_record_payment_is_compare_and_set(self):
        store = InMemoryStore(payment_credentials=[PaymentCredential(tutor_email="anna@example.com")])

        store.record_payment("anna@example.com", "PAY-1")
        with pytest.raises(PaymentAlreadyCompletedError):
            store.record_payment("anna@example.com", "PAY-1")
        store.record_payment("anna@example.com", "PAY-2")

        assert store.get_payment_credential("anna@example.com").payment_id == "PAY-2"

    def test_record_payment_unknown_tutor(self):
        with pytest.raises(EmailNotFoundError):
            InMemoryStore().record_payment("ghost@example.com", "PAY-1")
