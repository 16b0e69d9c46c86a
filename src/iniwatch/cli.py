"""Click CLI entry point for iniwatch."""

import logging
import signal
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table
from rich.text import Text

from iniwatch.backend import IniBackend
from iniwatch.config import Config, load_config
from iniwatch.differ import ChangeEvent, ChangeKind
from iniwatch.errors import IniWatchError
from iniwatch.snapshot import Key

console = Console()


def _handle_sigint(_sig: int, _frame: object) -> None:
    """Handle Ctrl+C gracefully."""
    click.echo("\nInterrupted. Shutting down...", err=True)
    sys.exit(130)


signal.signal(signal.SIGINT, _handle_sigint)

logger = logging.getLogger(__name__)

_EVENT_STYLES = {
    ChangeKind.ADDED: ("+", "green"),
    ChangeKind.UPDATED: ("~", "yellow"),
    ChangeKind.DELETED: ("-", "red"),
}


def _setup_logging(verbose: bool) -> None:
    """Configure logging level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # Raw inotify chatter is only useful when debugging watchdog itself
    logging.getLogger("watchdog").setLevel(logging.WARNING)


def _get_config(ctx: click.Context) -> Config:
    """Load the config file and apply command-line overrides."""
    try:
        config = load_config(ctx.obj.get("config_path"))
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    return config.with_overrides(section=ctx.obj.get("section"))


def _format_event(event: ChangeEvent) -> Text:
    """Render one change event as a colored line."""
    if event.is_error:
        return Text.assemble(("error: ", "bold red"), str(event.cause))
    symbol, style = _EVENT_STYLES[event.kind]
    return Text.assemble(
        (f"{symbol} ", style),
        (str(event.key), f"bold {style}"),
        " = ",
        repr(event.value),
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to config file.",
)
@click.option(
    "--section",
    "-s",
    default=None,
    help="Root section to read keys from (overrides config).",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: Path | None, section: str | None) -> None:
    """iniwatch: live-reloading, read-only INI configuration source."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path
    ctx.obj["section"] = section


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("name")
@click.option("--group", "-g", default="", help="Group (section) of the key.")
@click.pass_context
def get(ctx: click.Context, file: Path, name: str, group: str) -> None:
    """Print the value of one key."""
    config = _get_config(ctx)
    backend = IniBackend.from_file(file, config.section)
    try:
        pair = backend.get(Key(group, name))
    except IniWatchError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(pair.value)


@main.command("list")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--group", "-g", default="", help="Only list keys in this group.")
@click.pass_context
def list_keys(ctx: click.Context, file: Path, group: str) -> None:
    """List keys and values."""
    config = _get_config(ctx)
    backend = IniBackend.from_file(file, config.section)
    try:
        pairs = backend.list(group)
    except IniWatchError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not pairs:
        click.echo("No keys found.")
        return

    table = Table(title=str(file))
    table.add_column("Group", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Value")
    for pair in pairs:
        table.add_row(pair.key.group or "[dim](root)[/dim]", pair.key.name, Text(pair.value))
    console.print(table)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--group", "-g", default="", help="Only report changes in this group.")
@click.option(
    "--interval",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Debounce tick in seconds (overrides config).",
)
@click.pass_context
def watch(ctx: click.Context, file: Path, group: str, interval: float | None) -> None:
    """Stream change events until interrupted."""
    config = _get_config(ctx).with_overrides(tick_interval=interval)
    click.echo(f"Watching {file} (Ctrl+C to stop)...", err=True)

    with IniBackend.from_file(file, config.section) as backend:
        session = backend.watch(
            Key(group=group),
            tick_interval=config.tick_interval,
            reconnect_interval=config.reconnect_interval,
        )
        for event in session:
            console.print(_format_event(event))
