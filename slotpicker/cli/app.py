"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, List, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.graph_authenticator import GraphAuthenticator
from ..adapters.graph_client import GraphClient
from ..adapters.ics_feed import IcsFeedSource
from ..adapters.mock_graph_client import MockGraphClient
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SlotPickerError
from ..services.busy_sources import BusyIntervalSource, MultiCalendarSource
from ..services.slot_finder import compute_slots

app = typer.Typer(
    name="slotpicker",
    help="Find and sample available meeting slots from your calendars",
    add_completion=False
)

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    return AppConfig.load_from_yaml(config_file or get_default_config_path())


def _determine_time_range(
    *,
    tz: str,
    this_week: bool,
    next_week: bool,
    start_option: Optional[str],
    end_option: Optional[str]
):
    """
    Resolve the search window from shortcut flags or explicit dates.
    """
    if this_week and next_week:
        console.print("[red]Error: --this-week and --next-week cannot be combined.[/red]")
        raise typer.Exit(1)

    now = pendulum.now(tz)

    if this_week:
        return now, now.end_of("week")

    if next_week:
        next_monday = now.next(pendulum.MONDAY).start_of("day")
        return next_monday, next_monday.add(days=7)

    try:
        start_date = (
            pendulum.from_format(start_option, "YYYY-MM-DD", tz=tz)
            if start_option else now.start_of("day")
        )
        end_date = (
            pendulum.from_format(end_option, "YYYY-MM-DD", tz=tz).add(days=1)
            if end_option else start_date.add(days=7)
        )
    except ValueError as e:
        console.print(f"[red]Error parsing date: {e}[/red]")
        raise typer.Exit(1)

    return start_date, end_date


def _build_source(config: AppConfig, *, mock: bool, ics: Optional[str]) -> BusyIntervalSource:
    ics_location = ics or config.ics_url
    if ics_location:
        console.print(f"[dim]Reading busy times from ICS feed {ics_location}[/dim]")
        return IcsFeedSource(ics_location, timezone=config.timezone)

    if mock:
        console.print("[yellow]MOCK MODE: using bundled test calendars[/yellow]")
        return MultiCalendarSource(MockGraphClient(timezone=config.timezone), calendar_ids=config.calendars)

    authenticator = GraphAuthenticator(
        client_id=config.client_id,
        tenant_id=config.tenant_id,
        authority_url=config.get_authority_url()
    )
    client = GraphClient(access_token=authenticator.get_access_token())
    return MultiCalendarSource(client, calendar_ids=config.calendars)


@app.command()
def find(
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Last date to search, inclusive (YYYY-MM-DD)")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Slot length in minutes")] = None,
    count: Annotated[Optional[int], typer.Option("--count", "-n", help="Recommend this many slots")] = None,
    strategy: Annotated[Optional[List[str]], typer.Option("--strategy", "-s", help="Weighting strategy, repeatable")] = None,
    multiplier: Annotated[Optional[float], typer.Option("--multiplier", help="Weight multiplier for strategies")] = None,
    padding: Annotated[Optional[int], typer.Option("--padding", help="Buffer in minutes around busy times")] = None,
    identity: Annotated[Optional[str], typer.Option("--as", help="Colleague alias or email whose calendars to read")] = None,
    ics: Annotated[Optional[str], typer.Option("--ics", help="ICS feed URL or file instead of Microsoft Graph")] = None,
    mock: Annotated[bool, typer.Option("--mock", help="Use mock calendars and skip authentication.")] = False,
    this_week: Annotated[bool, typer.Option("--this-week", help="Search from now until the end of this week.")] = False,
    next_week: Annotated[bool, typer.Option("--next-week", help="Search next week (Monday-Sunday).")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show pipeline diagnostics.")] = False,
):
    """
    Find available meeting slots.

    Examples:

        slotpicker find --next-week

        slotpicker find --count 3 --strategy heavy-mornings --mock

        slotpicker find --as max --start 2024-01-15 --end 2024-01-19

        slotpicker find --ics https://example.com/calendar.ics
    """
    _configure_logging(verbose)

    try:
        config = _load_config(config_file)
        tz = config.timezone

        start_date, end_date = _determine_time_range(
            tz=tz,
            this_week=this_week,
            next_week=next_week,
            start_option=start,
            end_option=end
        )

        query = config.build_query(
            start_date,
            end_date,
            slot_duration=duration,
            count=count,
            strategies=strategy or None,
            weight_multiplier=multiplier,
            padding=padding,
        )
        resolved_identity = config.resolve_identity(identity)

        console.print("[bold cyan]Search summary:[/bold cyan]")
        console.print(f"   Calendars of: {resolved_identity or 'me'}")
        console.print(f"   Range: {start_date.format('YYYY-MM-DD HH:mm')} - {end_date.format('YYYY-MM-DD HH:mm')}")
        console.print(f"   Slot length: {query.slot_duration} minutes")
        console.print()

        source = _build_source(config, mock=mock, ics=ics)
        slots = compute_slots(query, busy_source=source, identity=resolved_identity)

    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    except (SlotPickerError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not slots:
        console.print(
            "[yellow]No available slots found.[/yellow]\n"
            "Try a longer range or a shorter slot length."
        )
        return

    table = Table(
        title=f"{len(slots)} available slot(s)",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("#", style="dim", justify="right")
    table.add_column("Slot", style="bold")

    for idx, slot in enumerate(slots, 1):
        table.add_row(str(idx), slot.format_display(tz))

    console.print(table)


@app.command()
def test_auth(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Path to config file"
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Force re-authentication"
    )
):
    """
    Test Microsoft Graph authentication.
    """
    try:
        config = _load_config(config_file)

        authenticator = GraphAuthenticator(
            client_id=config.client_id,
            tenant_id=config.tenant_id,
            authority_url=config.get_authority_url()
        )
        client = GraphClient(access_token=authenticator.get_access_token(force_refresh=force))
        user_info = client.test_connection()
        calendars = client.list_calendars()

        console.print(Panel.fit(
            f"[bold green]Authentication successful[/bold green]\n\n"
            f"[bold]User:[/bold] {user_info.get('displayName', 'N/A')}\n"
            f"[bold]Email:[/bold] {user_info.get('mail') or user_info.get('userPrincipalName', 'N/A')}\n"
            f"[bold]Calendars:[/bold] {len(calendars)}\n"
            f"[bold]Token cache:[/bold] {authenticator.cache_backend}",
            title="Connection test"
        ))

    except (FileNotFoundError, SlotPickerError, ValueError) as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}\n")
        raise typer.Exit(1)


@app.command()
def clear_cache(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Path to config file"
    )
):
    """
    Clear the authentication token cache.
    """
    try:
        config = _load_config(config_file)

        authenticator = GraphAuthenticator(
            client_id=config.client_id,
            tenant_id=config.tenant_id
        )
        authenticator.clear_cache()
        console.print("[green]Token cache cleared. You will be asked to sign in next time.[/green]")

    except (FileNotFoundError, SlotPickerError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"[bold cyan]slotpicker[/bold cyan] version [bold]{__version__}[/bold]")


if __name__ == "__main__":
    app()
