"""
Adapters layer - External integrations (Google Calendar, PayPal, storage).
"""

from .google_authenticator import GoogleAuthenticator
from .google_calendar_client import GoogleCalendarClient
from .memory_store import InMemoryStore
from .mock_calendar_client import MockCalendarClient
from .mock_payment_client import MockPaymentClient
from .paypal_client import PayPalAuthenticator, PayPalClient, find_approval_url

__all__ = [
    "GoogleAuthenticator",
    "GoogleCalendarClient",
    "InMemoryStore",
    "MockCalendarClient",
    "MockPaymentClient",
    "PayPalAuthenticator",
    "PayPalClient",
    "find_approval_url",
]
