"""
Mock PayPal client for running without a PayPal account.
"""

import uuid
from decimal import Decimal
from typing import Any, Dict

from ..domain.exceptions import ProviderError
from ..domain.models import PaymentCredential, PaymentMetadata


class MockPaymentClient:
    """
    Mock client that mimics the PayPal payments API in memory.

    Every created payment is immediately approvable; executing an unknown
    payment id fails like the real API does.
    """

    def __init__(self, approval_base_url: str = "https://www.sandbox.paypal.com/checkoutnow"):
        self.approval_base_url = approval_base_url
        self.payments: Dict[str, Dict[str, Any]] = {}

    def create_payment(
        self,
        credential: PaymentCredential,
        *,
        amount: Decimal,
        currency: str,
        metadata: PaymentMetadata,
        return_url: str,
        cancel_url: str
    ) -> Dict[str, Any]:
        payment_id = f"PAYID-{uuid.uuid4().hex[:20].upper()}"
        token = f"EC-{uuid.uuid4().hex[:17].upper()}"
        payment = {
            "id": payment_id,
            "state": "created",
            "payee_client_id": credential.client_id,
            "transactions": [
                {
                    "amount": {"currency": currency, "total": f"{amount:.2f}"},
                    "description": metadata.describe(),
                    "custom": metadata.to_custom(),
                }
            ],
            "redirect_urls": {"return_url": return_url, "cancel_url": cancel_url},
            "links": [
                {"rel": "self", "href": f"https://api-m.sandbox.paypal.com/v1/payments/payment/{payment_id}"},
                {"rel": "approval_url", "href": f"{self.approval_base_url}?token={token}"},
                {"rel": "execute", "href": f"https://api-m.sandbox.paypal.com/v1/payments/payment/{payment_id}/execute"},
            ],
        }
        self.payments[payment_id] = payment
        return payment

    def execute_payment(
        self,
        credential: PaymentCredential,
        *,
        payment_id: str,
        payer_id: str
    ) -> Dict[str, Any]:
        payment = self.payments.get(payment_id)
        if payment is None:
            raise ProviderError(f"Failed to execute PayPal payment {payment_id}: INVALID_RESOURCE_ID")

        payment["state"] = "approved"
        payment["payer"] = {"payer_info": {"payer_id": payer_id}}
        return payment
