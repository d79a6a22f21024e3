"""
PayPal REST client for lesson payments (v1 payments API).
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Tuple

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import AuthenticationError, ProviderError
from ..domain.models import PaymentCredential, PaymentMetadata

logger = logging.getLogger(__name__)


class PayPalAuthenticator:
    """
    Client-credentials access tokens, one per tutor PayPal account.

    Tokens are held in memory and refreshed shortly before they expire.
    """

    EXPIRY_MARGIN_SECONDS = 60

    def __init__(self, api_base_url: str, session: requests.Session | None = None):
        self.api_base_url = api_base_url.rstrip("/")
        self.session = session or requests.Session()
        self._tokens: Dict[str, Tuple[str, DateTime]] = {}

    def get_access_token(self, credential: PaymentCredential, force_refresh: bool = False) -> str:
        """
        Get a valid access token for the tutor's PayPal account.

        Raises:
            AuthenticationError: If PayPal rejects the credentials
        """
        cached = self._tokens.get(credential.client_id)
        if cached and not force_refresh:
            token, expires_at = cached
            if pendulum.now("UTC").add(seconds=self.EXPIRY_MARGIN_SECONDS) < expires_at:
                return token

        if not credential.client_id or not credential.client_secret:
            raise AuthenticationError(
                f"PayPal credentials are not configured for tutor {credential.tutor_email}"
            )

        try:
            response = self.session.post(
                f"{self.api_base_url}/v1/oauth2/token",
                auth=(credential.client_id, credential.client_secret),
                data={"grant_type": "client_credentials"},
                headers={"Accept": "application/json"},
                timeout=30
            )
            response.raise_for_status()
            result = response.json()
        except requests.exceptions.RequestException as exc:
            raise AuthenticationError(f"PayPal token request failed: {exc}") from exc

        if "access_token" not in result:
            error = result.get("error_description", "Unknown error")
            raise AuthenticationError(f"PayPal authentication failed: {error}")

        expires_at = pendulum.now("UTC").add(seconds=int(result.get("expires_in", 32400)))
        self._tokens[credential.client_id] = (result["access_token"], expires_at)
        logger.info("Obtained PayPal access token for tutor %s", credential.tutor_email)

        return result["access_token"]

    def clear(self) -> None:
        self._tokens.clear()


class PayPalClient:
    """Creates and executes PayPal payments on behalf of a tutor."""

    def __init__(self, authenticator: PayPalAuthenticator):
        self.authenticator = authenticator
        self.session = authenticator.session
        self.api_base_url = authenticator.api_base_url

    def _headers(self, credential: PaymentCredential) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.authenticator.get_access_token(credential)}",
            "Content-Type": "application/json"
        }

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
        """
        Create a ``sale`` payment awaiting payer approval.

        Returns:
            Payment resource with ``id`` and HATEOAS ``links``

        Raises:
            ProviderError: If API call fails
        """
        payload = {
            "intent": "sale",
            "payer": {"payment_method": "paypal"},
            "transactions": [
                {
                    "amount": {"currency": currency, "total": f"{amount:.2f}"},
                    "description": metadata.describe(),
                    "custom": metadata.to_custom(),
                }
            ],
            "redirect_urls": {"return_url": return_url, "cancel_url": cancel_url},
        }

        try:
            response = self.session.post(
                f"{self.api_base_url}/v1/payments/payment",
                headers=self._headers(credential),
                json=payload,
                timeout=30
            )
            response.raise_for_status()
            payment = response.json()
        except requests.exceptions.RequestException as exc:
            raise ProviderError(f"Failed to create PayPal payment: {exc}") from exc

        logger.info("PayPal payment %s created for %s", payment.get("id"), metadata.student_email)
        return payment

    def execute_payment(
        self,
        credential: PaymentCredential,
        *,
        payment_id: str,
        payer_id: str
    ) -> Dict[str, Any]:
        """
        Execute an approved payment.

        Returns:
            Executed payment resource including ``transactions``

        Raises:
            ProviderError: If API call fails
        """
        try:
            response = self.session.post(
                f"{self.api_base_url}/v1/payments/payment/{payment_id}/execute",
                headers=self._headers(credential),
                json={"payer_id": payer_id},
                timeout=30
            )
            response.raise_for_status()
            payment = response.json()
        except requests.exceptions.RequestException as exc:
            raise ProviderError(f"Failed to execute PayPal payment {payment_id}: {exc}") from exc

        logger.info("PayPal payment %s executed", payment_id)
        return payment


def find_approval_url(payment: Dict[str, Any]) -> str | None:
    """Return the href of the link whose rel is ``approval_url``."""
    for link in payment.get("links", []):
        if link.get("rel") == "approval_url":
            return link.get("href")
    return None
