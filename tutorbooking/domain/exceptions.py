"""
Domain-specific exception hierarchy for the lesson booking application.
"""


class BookingError(Exception):
    """Base class for all application-level errors."""


class EmailNotFoundError(BookingError):
    """Raised when a student or tutor email has no matching record."""

    def __init__(self, role: str, email: str):
        self.role = role
        self.email = email
        super().__init__(f"{role} with email {email} not found")


class TrialAlreadyUsedError(BookingError):
    """Raised when a student tries to book a second trial lesson."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Already used a trial lesson for email: {email}")


class NoAvailableLessonsError(BookingError):
    """Raised when a regular booking is requested without lesson credit."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(
            f"No available lessons have been found for a student with this email: {email}"
        )


class PaymentAlreadyCompletedError(BookingError):
    """Raised when the same payment is executed twice for a tutor."""

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment {payment_id} has been done already for this cart.")


class MalformedEventError(BookingError):
    """Raised when a raw calendar event cannot be turned into a CalendarEvent."""


class ProviderError(BookingError):
    """Raised when the calendar or payment provider cannot be reached or fails."""


class AuthenticationError(ProviderError):
    """Raised when authentication or token handling fails."""
