"""
Operator CLI using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.google_authenticator import GoogleAuthenticator
from ..adapters.google_calendar_client import GoogleCalendarClient
from ..adapters.memory_store import InMemoryStore
from ..adapters.mock_calendar_client import MockCalendarClient
from ..adapters.mock_payment_client import MockPaymentClient
from ..adapters.paypal_client import PayPalAuthenticator, PayPalClient
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BookingError
from ..domain.models import DayOccupancy, SessionRequest
from ..domain.pricing import PriceCalculator
from ..services.availability import AvailabilityService
from ..services.booking import BookingService
from ..services.payments import PaymentService
from ..services.protocols import CalendarClientProtocol, PaymentClientProtocol

app = typer.Typer(
    name="tutorbooking",
    help="Tutor availability and lesson pricing tools",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show log output.")] = False,
):
    """
    Tutor availability and lesson pricing tools.
    """
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _build_authenticator(config: AppConfig) -> GoogleAuthenticator:
    return GoogleAuthenticator(
        client_id=config.calendar.client_id,
        client_secret=config.calendar.client_secret,
        refresh_token=config.calendar.refresh_token,
        cache_file=config.calendar.token_cache_file,
    )


def _build_store(config: AppConfig) -> InMemoryStore:
    return InMemoryStore(
        tutors=[tutor.to_tutor() for tutor in config.tutors],
        payment_credentials=[credential.to_credential() for credential in config.payment_credentials],
    )


def _build_calendar_client(config: AppConfig, mock: bool) -> CalendarClientProtocol:
    if mock:
        return MockCalendarClient()

    authenticator = None
    if config.calendar.refresh_token:
        authenticator = _build_authenticator(config)
    return GoogleCalendarClient(
        authenticator=authenticator,
        api_key=config.calendar.api_key,
    )


def _build_availability_service(config: AppConfig, mock: bool) -> AvailabilityService:
    return AvailabilityService(
        calendar_client=_build_calendar_client(config, mock),
        store=_build_store(config),
        timezone=config.timezone,
    )


def _build_booking_service(config: AppConfig, mock: bool) -> BookingService:
    return BookingService(
        calendar_client=_build_calendar_client(config, mock),
        store=_build_store(config),
        organizer_calendar_id=config.calendar.organizer_calendar_id,
        summary=config.event.summary,
        location=config.event.location,
        reminders=config.event.get_reminders(),
        timezone=config.timezone,
    )


def _build_price_calculator(config: AppConfig) -> PriceCalculator:
    return PriceCalculator(
        unit_price=config.payment.unit_price,
        bundle_size=config.payment.bundle_size,
        discount_rate=config.payment.discount_rate,
    )


def _build_payment_service(config: AppConfig, mock: bool) -> PaymentService:
    if mock:
        payment_client: PaymentClientProtocol = MockPaymentClient()
    else:
        payment_client = PayPalClient(PayPalAuthenticator(config.payment.get_api_base_url()))

    return PaymentService(
        payment_client=payment_client,
        store=_build_store(config),
        price_calculator=_build_price_calculator(config),
        currency=config.payment.currency,
        base_url=config.payment.base_url,
    )


def _render_day(day: DayOccupancy, timezone: str) -> tuple[str, str, str]:
    local_date = day.date.in_timezone(timezone)
    hours = "".join("[red]█[/red]" if slot.occupied else "[green]·[/green]" for slot in day.hours)
    return local_date.format("ddd DD.MM.YYYY"), hours, str(len(day.occupied_hours()))


@app.command()
def occupancy(
    tutor: Annotated[str, typer.Argument(help="Tutor name or email")],
    year: Annotated[Optional[int], typer.Option("--year", "-y", help="Year (defaults to the current one)")] = None,
    month: Annotated[Optional[int], typer.Option("--month", "-m", help="Month 1-12 (defaults to the current one)")] = None,
    config_file: ConfigOption = None,
    mock: Annotated[bool, typer.Option("--mock", help="Use mock calendar data and skip authentication.")] = False,
):
    """
    Show the busy/free hour grid of a tutor for a month.

    Examples:

        tutorbooking occupancy anna --year 2024 --month 11

        tutorbooking occupancy anna.tutor@example.com --mock
    """
    try:
        config = _load_config(config_file)
        tutor_email = config.resolve_tutor_email(tutor)

        now = pendulum.now(config.timezone)
        year = year or now.year
        month = month or now.month

        if mock:
            console.print("[yellow]⚠  MOCK MODE: using test data[/yellow]\n")

        service = _build_availability_service(config, mock)
        days = service.get_month_occupancy(tutor_email, year, month)

        table = Table(
            title=f"Occupancy of {tutor_email} - {year:04d}-{month:02d} ({config.timezone})",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Day", style="bold")
        table.add_column("00" + " " * 20 + "23")
        table.add_column("Busy", justify="right")

        for day in days:
            table.add_row(*_render_day(day, config.timezone))

        console.print()
        console.print(table)
        console.print()

    except (BookingError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def events(
    tutor: Annotated[str, typer.Argument(help="Tutor name or email")],
    config_file: ConfigOption = None,
    mock: Annotated[bool, typer.Option("--mock", help="Use mock calendar data and skip authentication.")] = False,
):
    """
    List the active events of a tutor's calendar.
    """
    try:
        config = _load_config(config_file)
        tutor_email = config.resolve_tutor_email(tutor)

        service = _build_availability_service(config, mock)
        tutor_events = service.get_events(tutor_email)

        if not tutor_events:
            console.print("[yellow]No events found.[/yellow]")
            return

        for event in tutor_events:
            start = event.start_date.in_timezone(config.timezone)
            end = event.end_date.in_timezone(config.timezone)
            console.print(
                f"  {start.format('DD.MM.YYYY HH:mm')} – {end.format('DD.MM.YYYY HH:mm')}"
                f"  [dim]{event.status.value}[/dim]"
            )

    except (BookingError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def quote(
    quantity: Annotated[int, typer.Argument(help="Number of lessons to buy")] = 1,
    paid: Annotated[int, typer.Option("--paid", help="Lessons the student has paid for so far")] = 0,
    config_file: ConfigOption = None,
):
    """
    Calculate the price of a lesson purchase, bundle discount included.
    """
    try:
        config = _load_config(config_file)
        calculator = _build_price_calculator(config)
        total = calculator.total_price(quantity, paid)

        discount_note = ""
        if calculator.completes_bundle(quantity, paid):
            discount_note = f" [green](bundle discount {calculator.bundle_discount():.2f})[/green]"

        console.print(
            f"\n[bold]{quantity}[/bold] lesson(s): "
            f"[bold]{total} {config.payment.currency}[/bold]{discount_note}\n"
        )

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def pay_link(
    tutor: Annotated[str, typer.Argument(help="Tutor name or email")],
    student: Annotated[str, typer.Argument(help="Student email")],
    quantity: Annotated[int, typer.Option("--quantity", "-q", help="Number of lessons to buy")] = 1,
    config_file: ConfigOption = None,
    mock: Annotated[bool, typer.Option("--mock", help="Use a mock PayPal client.")] = False,
):
    """
    Create a PayPal payment for lessons and print its approval URL.

    Examples:

        tutorbooking pay-link anna student@example.com --quantity 5 --mock
    """
    try:
        config = _load_config(config_file)
        tutor_email = config.resolve_tutor_email(tutor)

        if mock:
            console.print("[yellow]⚠  MOCK MODE: no real payment is created[/yellow]\n")

        service = _build_payment_service(config, mock)
        total = service.quote(student, quantity)
        approval_url = service.prepare_payment_link(tutor_email, student, quantity=quantity)
        if approval_url is None:
            console.print(f"[bold red]Error:[/bold red] Could not create a payment for {tutor_email}")
            raise typer.Exit(1)

        console.print(f"[bold]{quantity}[/bold] lesson(s): [bold]{total} {config.payment.currency}[/bold]")
        console.print("[bold]Approval URL:[/bold]")
        console.print(approval_url, soft_wrap=True, highlight=False)

    except (BookingError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def book_trial(
    tutor: Annotated[str, typer.Argument(help="Tutor name or email")],
    student: Annotated[str, typer.Argument(help="Student email")],
    start: Annotated[str, typer.Option("--start", "-s", help='Lesson start, e.g. "2024-11-04 10:00" (config timezone)')],
    minutes: Annotated[int, typer.Option("--minutes", help="Lesson length in minutes")] = 60,
    name: Annotated[str, typer.Option("--name", help="Student name")] = "",
    service_name: Annotated[str, typer.Option("--service", help="Requested service, e.g. IELTS Speaking")] = "",
    config_file: ConfigOption = None,
    mock: Annotated[bool, typer.Option("--mock", help="Use a mock calendar and skip authentication.")] = False,
):
    """
    Book a student's free trial lesson in the tutor's calendar.

    Examples:

        tutorbooking book-trial anna student@example.com --start "2024-11-04 10:00" --mock
    """
    try:
        config = _load_config(config_file)
        tutor_email = config.resolve_tutor_email(tutor)

        start_date = pendulum.parse(start, tz=config.timezone)
        if not isinstance(start_date, pendulum.DateTime):
            raise ValueError(f"Start must be a date and time, got '{start}'")
        request = SessionRequest(
            student_email=student,
            tutor_email=tutor_email,
            start_date=start_date,
            end_date=start_date.add(minutes=minutes),
            requested_service=service_name,
            student_name=name,
        )

        if mock:
            console.print("[yellow]⚠  MOCK MODE: no real event is created[/yellow]\n")

        response = _build_booking_service(config, mock).book_trial_session(request)

        console.print(
            f"[green]✓ Trial lesson booked[/green] for {response.student_email} at "
            f"{response.session_time.in_timezone(config.timezone).format('DD.MM.YYYY HH:mm')}"
        )
        console.print(response.event_link, soft_wrap=True, highlight=False)

    except (BookingError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def tutors(config_file: ConfigOption = None):
    """
    List all configured tutors.
    """
    try:
        config = _load_config(config_file)

        if not config.tutors:
            console.print("[yellow]No tutors defined in the config file.[/yellow]")
            return

        table = Table(
            title="Configured tutors",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Name", style="bold yellow")
        table.add_column("E-Mail", style="dim")
        table.add_column("Calendar", style="dim")

        for tutor in config.tutors:
            table.add_row(tutor.name, tutor.email, tutor.to_tutor().get_calendar_id())

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def test_auth(
    config_file: ConfigOption = None,
    force: Annotated[bool, typer.Option("--force", help="Force a token refresh")] = False,
    mock: Annotated[bool, typer.Option("--mock", help="Check the mock calendar and skip authentication.")] = False,
):
    """
    Test Google Calendar authentication.
    """
    try:
        config = _load_config(config_file)

        if mock:
            console.print("[yellow]⚠  MOCK MODE: authentication skipped[/yellow]\n")
            calendars = MockCalendarClient().test_connection().get("items", [])
            console.print(Panel.fit(
                f"[bold green]✓ Mock calendar reachable[/bold green]\n\n"
                f"[bold]Calendars:[/bold] {', '.join(c.get('id', '?') for c in calendars) or 'N/A'}",
                title="✓ Connection test"
            ))
            return

        console.print("\n[bold]Testing Google Calendar authentication...[/bold]\n")

        authenticator = _build_authenticator(config)
        authenticator.get_access_token(force_refresh=force)

        client = GoogleCalendarClient(authenticator=authenticator, api_key=config.calendar.api_key)
        calendars = client.test_connection().get("items", [])

        console.print(Panel.fit(
            f"[bold green]✓ Authentication successful![/bold green]\n\n"
            f"[bold]Calendars:[/bold] {', '.join(c.get('id', '?') for c in calendars) or 'N/A'}\n"
            f"[bold]Token cache:[/bold] {authenticator.cache_backend}",
            title="✓ Connection test"
        ))
        if authenticator.insecure_storage_warning:
            console.print(f"[yellow]{authenticator.insecure_storage_warning}[/yellow]")
        console.print()

    except (BookingError, FileNotFoundError, ValueError) as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)


@app.command()
def clear_cache(config_file: ConfigOption = None):
    """
    Clear the Google token cache.
    """
    try:
        config = _load_config(config_file)

        _build_authenticator(config).clear_cache()
        console.print("\n[green]✓ Token cache cleared.[/green]")
        console.print("A new access token will be requested on the next call.\n")

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]tutorbooking[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
