"""
Main CLI application using Typer.
"""

from pathlib import Path
from typing import Annotated, Optional, Tuple

import pendulum
import typer
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..adapters.clock import SystemClock
from ..adapters.notifiers import LoggingNotifier, WebhookNotifier
from ..adapters.sql_store import SqlBookingStore
from ..config import AppConfig
from ..domain.models import Booking, Service
from ..domain.result import Result
from ..domain.schedule import WEEKDAY_NAMES, WeeklySchedule
from ..logging_setup import setup_logging
from ..services.booking_coordinator import BookingCoordinator

app = typer.Typer(
    name="slotbook",
    help="Manage provider availability and bookings",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


def _build(config_file: Optional[Path]) -> Tuple[AppConfig, SqlBookingStore, BookingCoordinator]:
    """Load configuration and wire the coordinator with its collaborators."""
    try:
        config = AppConfig.load_or_default(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    setup_logging(config.log_level)

    store = SqlBookingStore(database_url=config.database_url, timezone=config.timezone)
    if config.notifications.webhook_url:
        notifier = WebhookNotifier(
            config.notifications.webhook_url,
            timeout_seconds=config.notifications.timeout_seconds,
        )
    else:
        notifier = LoggingNotifier()

    coordinator = BookingCoordinator(
        store=store,
        notifier=notifier,
        clock=SystemClock(config.timezone),
        settings=config.engine,
        timezone=config.timezone,
    )
    return config, store, coordinator


def _unwrap(result: Result):
    """Print the failure and exit, or print warnings and return the value."""
    if not result.is_ok:
        console.print(f"[bold red]Error:[/bold red] {result.error}")
        raise typer.Exit(1)
    for warning in result.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")
    return result.value


def _parse_date(value: str, tz: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Could not parse date '{value}': {e}[/red]")
        raise typer.Exit(1)


def _parse_start(value: str, tz: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD HH:mm", tz=tz)
    except ValueError as e:
        console.print(f"[red]Could not parse start '{value}' (expected YYYY-MM-DD HH:mm): {e}[/red]")
        raise typer.Exit(1)


def _print_booking(booking: Booking, title: str) -> None:
    console.print(Panel.fit(
        f"[bold]ID:[/bold] {booking.id}\n"
        f"[bold]Service:[/bold] {booking.service_id}\n"
        f"[bold]Customer:[/bold] {booking.customer_id}\n"
        f"[bold]When:[/bold] {booking.describe()}\n"
        f"[bold]Status:[/bold] {booking.status.label}"
        + (f"\n[bold]Notes:[/bold] {booking.notes}" if booking.notes else ""),
        title=title
    ))


@app.command()
def init_db(config_file: ConfigOption = None):
    """
    Create the database tables.
    """
    _, store, _ = _build(config_file)
    store.create_tables()
    console.print("[green]✓ Database tables created.[/green]")


@app.command()
def add_service(
    service_id: Annotated[str, typer.Argument(help="Service identifier")],
    provider_id: Annotated[str, typer.Argument(help="Provider owning the service")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="Duration in minutes")] = 60,
    name: Annotated[str, typer.Option("--name", help="Display name")] = "",
    inactive: Annotated[bool, typer.Option("--inactive", help="Register as not bookable")] = False,
    config_file: ConfigOption = None,
):
    """
    Register a bookable service for a provider.
    """
    _, _, coordinator = _build(config_file)
    service = _unwrap(coordinator.register_service(
        Service(
            id=service_id,
            provider_id=provider_id,
            duration_minutes=duration,
            name=name,
            is_active=not inactive,
        )
    ))
    console.print(f"[green]✓ Service {service.id} registered ({service.duration_minutes} min).[/green]")


@app.command()
def set_schedule(
    provider_id: Annotated[str, typer.Argument(help="Provider identifier")],
    schedule_file: Annotated[Path, typer.Argument(help="YAML file with the weekly schedule")],
    config_file: ConfigOption = None,
):
    """
    Replace a provider's weekly schedule from a YAML file.

    Example file:

        monday:
          segments: [["09:00", "12:00"], ["13:00", "17:00"]]
        saturday:
          closed: true
    """
    _, _, coordinator = _build(config_file)

    try:
        with open(schedule_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        schedule = WeeklySchedule.from_dict(data)
    except (OSError, yaml.YAMLError) as e:
        console.print(f"[bold red]Error:[/bold red] Could not read {schedule_file}: {e}")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] Invalid schedule: {e}")
        raise typer.Exit(1)

    _unwrap(coordinator.update_weekly_schedule(provider_id, schedule))
    console.print(f"[green]✓ Schedule for {provider_id} updated.[/green]")


@app.command()
def show_schedule(
    provider_id: Annotated[str, typer.Argument(help="Provider identifier")],
    config_file: ConfigOption = None,
):
    """
    Show a provider's weekly schedule.
    """
    _, _, coordinator = _build(config_file)
    schedule = _unwrap(coordinator.get_weekly_schedule(provider_id))

    table = Table(
        title=f"Weekly schedule of {provider_id}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Day", style="bold yellow")
    table.add_column("Hours")

    for weekday, day_name in enumerate(WEEKDAY_NAMES):
        day = schedule.day_for(weekday)
        if day is None or not day.is_bookable:
            hours = "[dim]closed[/dim]"
        else:
            hours = ", ".join(str(segment) for segment in day.segments)
        table.add_row(day_name.capitalize(), hours)

    console.print()
    console.print(table)
    console.print()


@app.command()
def slots(
    service_id: Annotated[str, typer.Argument(help="Service identifier")],
    date: Annotated[Optional[str], typer.Option("--date", help="Date (YYYY-MM-DD), defaults to today")] = None,
    config_file: ConfigOption = None,
):
    """
    List free start times for a service on a date.
    """
    config, _, coordinator = _build(config_file)
    day = _parse_date(date, config.timezone) if date else pendulum.today(config.timezone).date()

    times = _unwrap(coordinator.list_available_slots(service_id, day))

    if not times:
        console.print(f"[yellow]⚠ No free slots for {service_id} on {day.isoformat()}.[/yellow]")
        return

    console.print(f"[bold green]✓ {len(times)} free slot(s) on {day.isoformat()}:[/bold green]\n")
    for slot in times:
        console.print(f"  {slot.strftime('%H:%M')}")
    console.print()


@app.command()
def bookings(
    customer: Annotated[Optional[str], typer.Option("--customer", help="List this customer's bookings")] = None,
    provider: Annotated[Optional[str], typer.Option("--provider", help="List this provider's bookings")] = None,
    include_deleted: Annotated[bool, typer.Option("--include-deleted", help="Show soft-deleted bookings")] = False,
    config_file: ConfigOption = None,
):
    """
    List bookings of a customer or a provider.

    With both options, lists the provider's bookings for that customer.
    """
    if not customer and not provider:
        console.print("[red]Pass --customer, --provider or both.[/red]")
        raise typer.Exit(1)

    _, _, coordinator = _build(config_file)
    if provider:
        found = _unwrap(coordinator.bookings_for_provider(
            provider, customer_id=customer, include_deleted=include_deleted
        ))
    else:
        found = _unwrap(coordinator.bookings_for_customer(customer, include_deleted=include_deleted))

    if not found:
        console.print("[yellow]⚠ No bookings found.[/yellow]")
        return

    table = Table(
        title=f"Bookings of {provider or customer}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("ID", style="dim")
    table.add_column("Service")
    table.add_column("Customer")
    table.add_column("When", style="bold yellow")
    table.add_column("Status")

    for booking in found:
        table.add_row(
            booking.id,
            booking.service_id,
            booking.customer_id,
            booking.describe(),
            booking.status.label,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def book(
    service_id: Annotated[str, typer.Argument(help="Service identifier")],
    customer_id: Annotated[str, typer.Argument(help="Customer identifier")],
    start: Annotated[str, typer.Argument(help="Start (YYYY-MM-DD HH:mm)")],
    notes: Annotated[Optional[str], typer.Option("--notes", help="Notes for the provider")] = None,
    config_file: ConfigOption = None,
):
    """
    Book a slot.
    """
    config, _, coordinator = _build(config_file)
    booking = _unwrap(coordinator.create(
        service_id, customer_id, _parse_start(start, config.timezone), notes=notes
    ))
    _print_booking(booking, "✓ Booking created")


@app.command()
def reschedule(
    booking_id: Annotated[str, typer.Argument(help="Booking identifier")],
    start: Annotated[str, typer.Argument(help="New start (YYYY-MM-DD HH:mm)")],
    notes: Annotated[Optional[str], typer.Option("--notes", help="Replace the notes")] = None,
    config_file: ConfigOption = None,
):
    """
    Move a booking to another slot.
    """
    config, _, coordinator = _build(config_file)
    booking = _unwrap(coordinator.reschedule(
        booking_id, _parse_start(start, config.timezone), notes=notes
    ))
    _print_booking(booking, "✓ Booking rescheduled")


@app.command()
def confirm(
    booking_id: Annotated[str, typer.Argument(help="Booking identifier")],
    actor: Annotated[Optional[str], typer.Option("--actor", help="Confirming provider")] = None,
    config_file: ConfigOption = None,
):
    """
    Confirm a pending booking.
    """
    _, _, coordinator = _build(config_file)
    _print_booking(_unwrap(coordinator.confirm(booking_id, actor_id=actor)), "✓ Booking confirmed")


@app.command()
def cancel(
    booking_id: Annotated[str, typer.Argument(help="Booking identifier")],
    actor: Annotated[str, typer.Argument(help="Customer or provider cancelling")],
    config_file: ConfigOption = None,
):
    """
    Cancel a booking and notify the other party.
    """
    _, _, coordinator = _build(config_file)
    _print_booking(_unwrap(coordinator.cancel(booking_id, actor)), "✓ Booking cancelled")


@app.command()
def complete(
    booking_id: Annotated[str, typer.Argument(help="Booking identifier")],
    config_file: ConfigOption = None,
):
    """
    Mark a confirmed booking as completed once it has ended.
    """
    _, _, coordinator = _build(config_file)
    _print_booking(_unwrap(coordinator.complete(booking_id)), "✓ Booking completed")


@app.command()
def complete_due(config_file: ConfigOption = None):
    """
    Complete every confirmed booking that has already ended.

    Meant to be run periodically (cron, systemd timer).
    """
    _, _, coordinator = _build(config_file)
    completed = _unwrap(coordinator.complete_due())
    console.print(f"[green]✓ {len(completed)} booking(s) completed.[/green]")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotbook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
