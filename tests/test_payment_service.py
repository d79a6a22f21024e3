"""
Tests for payment links and payment execution.
"""

import json
from decimal import Decimal

import pytest

from tutorbooking.adapters.memory_store import InMemoryStore
from tutorbooking.adapters.mock_payment_client import MockPaymentClient
from tutorbooking.domain.exceptions import (
    EmailNotFoundError,
    PaymentAlreadyCompletedError,
    ProviderError,
)
from tutorbooking.domain.models import LessonCredit, PaymentCredential
from tutorbooking.services.payments import PaymentService

TUTOR_EMAIL = "anna.tutor@example.com"
STUDENT_EMAIL = "student@example.com"


class FailingPaymentClient:
    """Payment client whose provider is down."""

    def create_payment(self, credential, **kwargs):
        raise ProviderError("PayPal unavailable")

    def execute_payment(self, credential, **kwargs):
        raise ProviderError("PayPal unavailable")


class StaticPaymentClient:
    """Payment client returning canned provider responses."""

    def __init__(self, created=None, executed=None):
        self.created = created or {}
        self.executed = executed or {}

    def create_payment(self, credential, **kwargs):
        return self.created

    def execute_payment(self, credential, **kwargs):
        return self.executed


def _build_service(payment_client=None, credits=()):
    store = InMemoryStore(
        payment_credentials=[PaymentCredential(tutor_email=TUTOR_EMAIL, client_id="id", client_secret="secret")],
        lesson_credits=credits,
    )
    service = PaymentService(
        payment_client=payment_client or MockPaymentClient(),
        store=store,
        base_url="https://lessons.example.com/",
    )
    return service, store


class TestQuote:
    """Tests for PaymentService.quote."""

    def test_new_student_gets_bundle_discount(self):
        service, _ = _build_service()

        assert service.quote(STUDENT_EMAIL, 5) == Decimal("71.25")

    def test_uses_paid_lesson_history(self):
        service, _ = _build_service(
            credits=[LessonCredit(email=STUDENT_EMAIL, all_paid_lessons=1)]
        )

        assert service.quote(STUDENT_EMAIL, 5) == Decimal("75.00")
        assert service.quote(STUDENT_EMAIL, 4) == Decimal("56.25")


class TestPreparePaymentLink:
    """Tests for PaymentService.prepare_payment_link."""

    def test_returns_approval_url(self):
        """The payment carries the price and the lesson metadata."""
        client = MockPaymentClient()
        service, _ = _build_service(payment_client=client)

        url = service.prepare_payment_link(TUTOR_EMAIL, STUDENT_EMAIL, quantity=5)

        assert url.startswith("https://www.sandbox.paypal.com/checkoutnow?token=EC-")
        payment = next(iter(client.payments.values()))
        transaction = payment["transactions"][0]
        assert transaction["amount"] == {"currency": "USD", "total": "71.25"}
        assert transaction["description"] == "Lesson quantity: 5, user email: student@example.com"
        assert json.loads(transaction["custom"]) == {"quantity": 5, "student_email": STUDENT_EMAIL}
        assert payment["redirect_urls"] == {
            "return_url": "https://lessons.example.com/payment/success",
            "cancel_url": "https://lessons.example.com/payment/cancel",
        }

    def test_explicit_redirect_urls(self):
        client = MockPaymentClient()
        service, _ = _build_service(payment_client=client)

        service.prepare_payment_link(
            TUTOR_EMAIL,
            STUDENT_EMAIL,
            success_url="https://shop.example.com/ok",
            cancel_url="https://shop.example.com/back",
        )

        payment = next(iter(client.payments.values()))
        assert payment["redirect_urls"]["return_url"] == "https://shop.example.com/ok"

    def test_unknown_tutor_returns_none(self):
        service, _ = _build_service()

        assert service.prepare_payment_link("ghost@example.com", STUDENT_EMAIL) is None

    def test_provider_failure_returns_none(self):
        service, _ = _build_service(payment_client=FailingPaymentClient())

        assert service.prepare_payment_link(TUTOR_EMAIL, STUDENT_EMAIL) is None

    def test_missing_approval_link_returns_none(self):
        client = StaticPaymentClient(created={"id": "PAY-1", "links": [{"rel": "self", "href": "x"}]})
        service, _ = _build_service(payment_client=client)

        assert service.prepare_payment_link(TUTOR_EMAIL, STUDENT_EMAIL) is None

    def test_invalid_quantity_returns_none(self):
        service, _ = _build_service()

        assert service.prepare_payment_link(TUTOR_EMAIL, STUDENT_EMAIL, quantity=0) is None


class TestExecutePayment:
    """Tests for PaymentService.execute_payment."""

    def _create_payment(self, service, client, quantity=5):
        service.prepare_payment_link(TUTOR_EMAIL, STUDENT_EMAIL, quantity=quantity)
        return list(client.payments)[-1]

    def test_credits_lessons_to_new_student(self):
        """A first purchase creates the student's record."""
        client = MockPaymentClient()
        service, store = _build_service(payment_client=client)
        payment_id = self._create_payment(service, client)

        receipt = service.execute_payment(payment_id, "PAYER-1", TUTOR_EMAIL)

        assert receipt.payment_id == payment_id
        assert receipt.student_email == STUDENT_EMAIL
        assert receipt.quantity == 5
        assert receipt.available_lessons == 5
        assert receipt.all_paid_lessons == 5

        credit = store.get_lesson_credit(STUDENT_EMAIL)
        assert credit.used_trial is False
        assert store.get_payment_credential(TUTOR_EMAIL).payment_id == payment_id

    def test_adds_to_existing_balance(self):
        client = MockPaymentClient()
        service, store = _build_service(
            payment_client=client,
            credits=[LessonCredit(email=STUDENT_EMAIL, available_lessons=1, all_paid_lessons=4, used_trial=True)],
        )
        payment_id = self._create_payment(service, client, quantity=2)

        receipt = service.execute_payment(payment_id, "PAYER-1", TUTOR_EMAIL)

        assert receipt.available_lessons == 3
        assert receipt.all_paid_lessons == 6
        assert store.get_lesson_credit(STUDENT_EMAIL).used_trial is True

    def test_same_payment_twice_is_rejected(self):
        """Lessons are credited only once per payment."""
        client = MockPaymentClient()
        service, store = _build_service(payment_client=client)
        payment_id = self._create_payment(service, client)
        service.execute_payment(payment_id, "PAYER-1", TUTOR_EMAIL)

        with pytest.raises(PaymentAlreadyCompletedError, match=payment_id):
            service.execute_payment(payment_id, "PAYER-1", TUTOR_EMAIL)

        assert store.get_lesson_credit(STUDENT_EMAIL).available_lessons == 5

    def test_unknown_tutor_is_rejected(self):
        service, _ = _build_service()

        with pytest.raises(EmailNotFoundError, match="Tutor"):
            service.execute_payment("PAY-1", "PAYER-1", "ghost@example.com")

    def test_description_only_payment_is_parsed(self):
        """Payments without custom metadata fall back to the description."""
        executed = {
            "id": "PAY-OLD",
            "transactions": [{"description": "Lesson quantity: 3, user email: old@example.com"}],
        }
        service, store = _build_service(payment_client=StaticPaymentClient(executed=executed))

        receipt = service.execute_payment("PAY-OLD", "PAYER-1", TUTOR_EMAIL)

        assert receipt.quantity == 3
        assert store.get_lesson_credit("old@example.com").available_lessons == 3

    def test_payment_without_metadata_fails(self):
        executed = {"id": "PAY-X", "transactions": [{"description": "Something else"}]}
        service, store = _build_service(payment_client=StaticPaymentClient(executed=executed))

        with pytest.raises(ProviderError, match="no lesson metadata"):
            service.execute_payment("PAY-X", "PAYER-1", TUTOR_EMAIL)

        assert store.get_payment_credential(TUTOR_EMAIL).payment_id is None

    def test_payment_without_transactions_fails(self):
        service, _ = _build_service(payment_client=StaticPaymentClient(executed={"id": "PAY-X"}))

        with pytest.raises(ProviderError, match="no transactions"):
            service.execute_payment("PAY-X", "PAYER-1", TUTOR_EMAIL)

    def test_provider_failure_propagates(self):
        service, store = _build_service(payment_client=FailingPaymentClient())

        with pytest.raises(ProviderError):
            service.execute_payment("PAY-1", "PAYER-1", TUTOR_EMAIL)

        assert store.get_lesson_credit(STUDENT_EMAIL) is None


class TestUpdatePaymentCredentials:
    """Tests for PaymentService.update_payment_credentials."""

    def test_replaces_client_credentials(self):
        service, store = _build_service()
        store.record_payment(TUTOR_EMAIL, "PAY-1")

        service.update_payment_credentials(TUTOR_EMAIL, "new-id", "new-secret")

        credential = store.get_payment_credential(TUTOR_EMAIL)
        assert credential.client_id == "new-id"
        assert credential.client_secret == "new-secret"
        assert credential.payment_id == "PAY-1"

    def test_unknown_tutor_is_rejected(self):
        service, _ = _build_service()

        with pytest.raises(EmailNotFoundError):
            service.update_payment_credentials("ghost@example.com", "id", "secret")
