"""
Configuration management using Pydantic models loaded from YAML.
"""

from decimal import Decimal
from pathlib import Path
from typing import List, Literal

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.models import PaymentCredential, Reminder, Tutor


class ReminderConfig(BaseModel):
    """Reminder override attached to booked events."""
    method: Literal["email", "popup"] = "popup"
    minutes: int = 10

    @field_validator("minutes")
    @classmethod
    def validate_minutes(cls, value: int) -> int:
        """Google Calendar accepts reminders up to four weeks ahead."""
        if not 0 <= value <= 40320:
            raise ValueError(f"Reminder minutes must be between 0 and 40320, got {value}")
        return value

    def to_reminder(self) -> Reminder:
        return Reminder(method=self.method, minutes=self.minutes)


class EventConfig(BaseModel):
    """Defaults for booked lesson events."""
    summary: str = "English lesson"
    location: str = "Online"
    reminders: List[ReminderConfig] = Field(
        default_factory=lambda: [
            ReminderConfig(method="email", minutes=24 * 60),
            ReminderConfig(method="popup", minutes=10),
        ]
    )

    def get_reminders(self) -> List[Reminder]:
        return [reminder.to_reminder() for reminder in self.reminders]


class CalendarConfig(BaseModel):
    """Google Calendar access settings."""
    client_id: str = ""
    client_secret: str = ""
    refresh_token: str = ""
    api_key: str = ""
    organizer_calendar_id: str = "primary"
    token_cache_file: Path | None = None


class PaymentConfig(BaseModel):
    """PayPal and lesson pricing settings."""
    mode: Literal["sandbox", "live"] = "sandbox"
    currency: str = "USD"
    unit_price: Decimal = Decimal("15.00")
    bundle_size: int = 5
    discount_rate: Decimal = Decimal("0.05")
    base_url: str = "http://localhost:8080"

    @field_validator("unit_price")
    @classmethod
    def validate_unit_price(cls, value: Decimal) -> Decimal:
        """Ensure lessons cost something."""
        if value <= 0:
            raise ValueError("unit_price must be greater than zero")
        return value

    @field_validator("discount_rate")
    @classmethod
    def validate_discount_rate(cls, value: Decimal) -> Decimal:
        if not 0 <= value < 1:
            raise ValueError(f"discount_rate must be between 0 and 1, got {value}")
        return value

    @field_validator("bundle_size")
    @classmethod
    def validate_bundle_size(cls, value: int) -> int:
        if value < 1:
            raise ValueError("bundle_size must be at least 1")
        return value

    def get_api_base_url(self) -> str:
        """Get the PayPal REST endpoint for the configured mode."""
        if self.mode == "live":
            return "https://api-m.paypal.com"
        return "https://api-m.sandbox.paypal.com"


class TutorConfig(BaseModel):
    """Tutor directory entry."""
    name: str
    email: str
    calendar_id: str = ""  # Defaults to the email

    def to_tutor(self) -> Tutor:
        return Tutor(name=self.name, email=self.email.lower(), calendar_id=self.calendar_id)


class PaymentCredentialConfig(BaseModel):
    """Seed PayPal credentials of a tutor."""
    tutor_email: str
    client_id: str
    client_secret: str

    def to_credential(self) -> PaymentCredential:
        return PaymentCredential(
            tutor_email=self.tutor_email.lower(),
            client_id=self.client_id,
            client_secret=self.client_secret,
        )


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/London"
    calendar: CalendarConfig = Field(default_factory=CalendarConfig)
    payment: PaymentConfig = Field(default_factory=PaymentConfig)
    event: EventConfig = Field(default_factory=EventConfig)
    tutors: List[TutorConfig] = Field(default_factory=list)
    payment_credentials: List[PaymentCredentialConfig] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Reject zones pendulum does not know."""
        try:
            pendulum.timezone(value)
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("tutors")
    @classmethod
    def validate_tutors(cls, value: List[TutorConfig]) -> List[TutorConfig]:
        """Ensure tutor emails are unique."""
        seen_emails: set[str] = set()
        for tutor in value:
            email_key = tutor.email.lower()
            if email_key in seen_emails:
                raise ValueError(f"Duplicate tutor email detected: {tutor.email}")
            seen_emails.add(email_key)
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    def find_tutor_by_name(self, name: str) -> TutorConfig | None:
        """Find a tutor by their name."""
        for tutor in self.tutors:
            if tutor.name.lower() == name.lower():
                return tutor
        return None

    def resolve_tutor_email(self, identifier: str) -> str:
        """
        Resolve a tutor identifier (name or email) to an email address.

        Raises:
            ValueError: If identifier cannot be resolved
        """
        if "@" in identifier:
            return identifier.lower()

        tutor = self.find_tutor_by_name(identifier)
        if tutor:
            return tutor.email.lower()

        raise ValueError(
            f"Unknown tutor identifier: '{identifier}'. "
            f"Use an email address or a configured name."
        )


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
