"""
Application service for pricing lessons and reconciling PayPal payments.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from ..adapters.paypal_client import find_approval_url
from ..domain.exceptions import (
    BookingError,
    EmailNotFoundError,
    PaymentAlreadyCompletedError,
    ProviderError,
)
from ..domain.models import PaymentCredential, PaymentMetadata, PaymentReceipt
from ..domain.pricing import PriceCalculator
from .protocols import PaymentClientProtocol, PaymentStoreProtocol

logger = logging.getLogger(__name__)


class PaymentService:
    """
    Prices lesson purchases, creates payments and credits executed ones.

    The lesson quantity and student email travel with the payment as
    structured metadata, so executing a payment needs nothing but its id.
    """

    def __init__(
        self,
        payment_client: PaymentClientProtocol,
        store: PaymentStoreProtocol,
        *,
        price_calculator: PriceCalculator | None = None,
        currency: str = "USD",
        base_url: str = "http://localhost:8080",
    ) -> None:
        self._payment_client = payment_client
        self._store = store
        self._price_calculator = price_calculator or PriceCalculator()
        self._currency = currency
        self._base_url = base_url.rstrip("/")

    def quote(self, student_email: str, quantity: int = 1) -> Decimal:
        """Price of ``quantity`` lessons for the student, discount included."""
        credit = self._store.get_lesson_credit(student_email)
        all_paid_lessons = credit.all_paid_lessons if credit else 0
        return self._price_calculator.total_price(quantity, all_paid_lessons)

    def _get_credential(self, tutor_email: str) -> PaymentCredential:
        credential = self._store.get_payment_credential(tutor_email)
        if credential is None:
            raise EmailNotFoundError("Tutor", tutor_email)
        return credential

    def prepare_payment_link(
        self,
        tutor_email: str,
        student_email: str,
        *,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
        quantity: int = 1,
    ) -> Optional[str]:
        """
        Create a payment and return the URL where the student approves it.

        Returns:
            The approval URL, or None when the payment could not be created
        """
        try:
            credential = self._get_credential(tutor_email)
            metadata = PaymentMetadata(quantity=quantity, student_email=student_email)
            payment = self._payment_client.create_payment(
                credential,
                amount=self.quote(student_email, quantity),
                currency=self._currency,
                metadata=metadata,
                return_url=success_url or f"{self._base_url}/payment/success",
                cancel_url=cancel_url or f"{self._base_url}/payment/cancel",
            )
        except (BookingError, ValueError) as exc:
            logger.error("Could not create payment for %s: %s", student_email, exc)
            return None

        approval_url = find_approval_url(payment)
        if approval_url is None:
            logger.error("Payment %s has no approval_url link", payment.get("id"))
        return approval_url

    def execute_payment(self, payment_id: str, payer_id: str, tutor_email: str) -> PaymentReceipt:
        """
        Execute an approved payment and credit the purchased lessons.

        Raises:
            EmailNotFoundError: If the tutor has no payment credentials
            PaymentAlreadyCompletedError: If this payment was already executed
            ProviderError: If PayPal fails or the payment has no lesson metadata
        """
        credential = self._get_credential(tutor_email)
        if credential.payment_id == payment_id:
            raise PaymentAlreadyCompletedError(payment_id)

        executed = self._payment_client.execute_payment(
            credential,
            payment_id=payment_id,
            payer_id=payer_id,
        )

        transactions = executed.get("transactions") or []
        if not transactions:
            raise ProviderError(f"Executed payment {payment_id} has no transactions")
        try:
            metadata = PaymentMetadata.from_transaction(transactions[0])
        except ValueError as exc:
            raise ProviderError(f"Executed payment {payment_id}: {exc}") from exc

        self._store.record_payment(tutor_email, payment_id)
        credit = self._store.credit_lessons(metadata.student_email, metadata.quantity)

        logger.info(
            "Credited %d lesson(s) to %s for payment %s",
            metadata.quantity,
            metadata.student_email,
            payment_id,
        )
        return PaymentReceipt(
            payment_id=payment_id,
            student_email=metadata.student_email,
            quantity=metadata.quantity,
            available_lessons=credit.available_lessons,
            all_paid_lessons=credit.all_paid_lessons,
            raw=executed,
        )

    def update_payment_credentials(self, tutor_email: str, client_id: str, client_secret: str) -> PaymentCredential:
        """
        Replace the PayPal client id and secret of a tutor.

        Raises:
            EmailNotFoundError: If the tutor has no payment credentials yet
        """
        credential = self._get_credential(tutor_email)
        credential.client_id = client_id
        credential.client_secret = client_secret
        self._store.save_payment_credential(credential)
        return credential
