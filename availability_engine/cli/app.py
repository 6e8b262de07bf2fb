"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.http_store import HttpAppointmentStore
from ..adapters.memory_store import InMemoryAppointmentStore
from ..config import EngineConfig, get_default_config_path
from ..domain.exceptions import AvailabilityError, InputError, SlotUnavailableError
from ..domain.models import ANY_PROVIDER
from ..domain.timezones import TimezoneOffset
from ..services.availability import AvailabilityService

app = typer.Typer(
    name="availability-engine",
    help="Compute bookable appointment slots and book them",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")
]
DataOption = Annotated[
    Optional[Path], typer.Option("--data", help="JSON data file for the in-memory store")
]
ProviderOption = Annotated[
    str, typer.Option("--provider", "-p", help=f"Provider id or '{ANY_PROVIDER}'")
]
TimezoneOptionType = Annotated[
    Optional[str], typer.Option("--timezone", "-t", help="Customer offset, e.g. +01:00")
]
NowOption = Annotated[
    Optional[str], typer.Option("--now", help="Override the current instant (ISO 8601)")
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> EngineConfig:
    """Load the config file, falling back to defaults when none exists."""
    if config_file is not None:
        return EngineConfig.load_from_yaml(config_file)

    config_path = get_default_config_path()
    if config_path.exists():
        return EngineConfig.load_from_yaml(config_path)

    return EngineConfig()


def _build_store(config: EngineConfig, data_file: Optional[Path]):
    """Create the configured store. Returns the store and its data file, if any."""
    store_config = config.store

    if store_config.backend == "http" and data_file is None:
        store = HttpAppointmentStore(
            base_url=store_config.base_url,
            api_token=store_config.api_token,
            timeout=store_config.timeout_seconds,
        )
        return store, None

    path = data_file or store_config.data_file
    if path is None:
        raise FileNotFoundError(
            "No data file configured. Pass --data or set store.data_file in config.yaml."
        )
    return InMemoryAppointmentStore.from_json_file(path), path


def _build_service(config: EngineConfig, store) -> AvailabilityService:
    """Wire the store and calculator into the service."""
    return AvailabilityService(store=store, slot_calculator=config.build_slot_calculator())


def _parse_now(now: Optional[str]) -> Optional[DateTime]:
    if now is None:
        return None
    try:
        parsed = pendulum.parse(now)
    except ValueError as e:
        raise InputError(f"Invalid --now value '{now}': {e}") from e
    if not isinstance(parsed, DateTime):
        raise InputError(f"Invalid --now value '{now}', expected a date and time")
    return parsed


def _setup(config_file: Optional[Path], verbose: bool) -> EngineConfig:
    config = _load_config(config_file)
    _configure_logging("DEBUG" if verbose else config.log_level)
    return config


@app.command()
def slots(
    service_id: Annotated[str, typer.Argument(help="Service id")],
    date: Annotated[str, typer.Option("--date", "-d", help="Date (YYYY-MM-DD)")],
    provider: ProviderOption = ANY_PROVIDER,
    timezone: TimezoneOptionType = None,
    exclude: Annotated[
        Optional[str], typer.Option("--exclude", help="Appointment id to ignore (rescheduling)")
    ] = None,
    now: NowOption = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
    verbose: VerboseOption = False,
):
    """
    List the bookable start times of a date.

    Examples:

        availability-engine slots 1 --date 2024-11-25 --provider 1 --timezone +01:00

        availability-engine slots 1 --date 2024-11-25 --data store.json
    """
    try:
        config = _setup(config_file, verbose)
        store, _ = _build_store(config, data_file)
        service = _build_service(config, store)
        tz = timezone or config.default_timezone

        result = service.find_slots(
            provider_id=provider,
            service_id=service_id,
            selected_date=date,
            timezone=tz,
            now=_parse_now(now),
            exclude_appointment_id=exclude,
        )

        console.print()
        if not result.slots:
            console.print(
                "[yellow]⚠ No bookable slots found.[/yellow]\n"
                "Try another date or provider."
            )
        else:
            console.print(
                f"[bold green]✓ {len(result.slots)} slot(s) with provider "
                f"{result.provider_id}:[/bold green]\n"
            )
            console.print(f"  {result.format_display()}")
        console.print()

    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def book(
    service_id: Annotated[str, typer.Argument(help="Service id")],
    date: Annotated[str, typer.Option("--date", "-d", help="Date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Option("--time", help="Start time (HH:MM)")],
    provider: ProviderOption = ANY_PROVIDER,
    timezone: TimezoneOptionType = None,
    customer: Annotated[Optional[str], typer.Option("--customer", help="Customer id")] = None,
    appointment: Annotated[
        Optional[str], typer.Option("--appointment", help="Appointment id to reschedule")
    ] = None,
    now: NowOption = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
    verbose: VerboseOption = False,
):
    """
    Re-validate a start time and book it.
    """
    try:
        config = _setup(config_file, verbose)
        store, store_path = _build_store(config, data_file)
        service = _build_service(config, store)
        offset = TimezoneOffset.parse(timezone or config.default_timezone)

        stored = service.book(
            provider_id=provider,
            service_id=service_id,
            selected_date=date,
            start_time=time,
            timezone=offset,
            customer_id=customer,
            now=_parse_now(now),
            appointment_id=appointment,
        )

        if store_path is not None:
            store.save_json_file(store_path)

        local_start = offset.to_local(stored.start_datetime)
        local_end = offset.to_local(stored.end_datetime)
        abbreviation = offset.abbreviation()

        console.print(Panel.fit(
            f"[bold green]✓ Appointment booked[/bold green]\n\n"
            f"[bold]Id:[/bold] {stored.id}\n"
            f"[bold]Provider:[/bold] {stored.provider_id}\n"
            f"[bold]Start:[/bold] {local_start.format('YYYY-MM-DD HH:mm')} ({abbreviation})\n"
            f"[bold]End:[/bold] {local_end.format('YYYY-MM-DD HH:mm')} ({abbreviation})",
            title="✓ Booking"
        ))

    except SlotUnavailableError as e:
        console.print(f"[yellow]⚠ {e}. Please choose another time.[/yellow]")
        raise typer.Exit(1)

    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def unavailable_dates(
    service_id: Annotated[str, typer.Argument(help="Service id")],
    date: Annotated[str, typer.Option("--date", "-d", help="Any date of the month (YYYY-MM-DD)")],
    provider: ProviderOption = ANY_PROVIDER,
    timezone: TimezoneOptionType = None,
    now: NowOption = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
    verbose: VerboseOption = False,
):
    """
    List the dates of a month without any bookable slot.
    """
    try:
        config = _setup(config_file, verbose)
        store, _ = _build_store(config, data_file)
        service = _build_service(config, store)

        dates = service.unavailable_dates(
            provider_id=provider,
            service_id=service_id,
            selected_date=date,
            timezone=timezone or config.default_timezone,
            now=_parse_now(now),
        )

        console.print()
        if not dates:
            console.print("[green]✓ Every date of the month has availability.[/green]")
        else:
            for day in dates:
                console.print(f"  {day}")
        console.print()

    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def providers(
    service_id: Annotated[str, typer.Argument(help="Service id")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
    verbose: VerboseOption = False,
):
    """
    List the providers offering a service.
    """
    try:
        config = _setup(config_file, verbose)
        store, _ = _build_store(config, data_file)
        service = _build_service(config, store)
        provider_list = service.providers_for_service(service_id)

        if not provider_list:
            console.print("[yellow]No provider offers this service.[/yellow]")
            return

        table = Table(
            title=f"Providers for service {service_id}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Id", style="bold yellow")
        table.add_column("Name")
        table.add_column("Timezone", style="dim")

        for item in provider_list:
            table.add_row(
                item.id,
                item.name,
                f"{item.timezone} ({item.offset.abbreviation()})"
            )

        console.print()
        console.print(table)
        console.print()

    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]availability-engine[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
