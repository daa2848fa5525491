#!/usr/bin/env python3
"""
Availability CLI - inspect stored availabilities without starting the bot

Usage:
    availability-cli list                  - Latest availability of every user
    availability-cli history USER_ID       - A user's stored history
    availability-cli skipped               - Files that could not be read

Options:
    --config PATH                          - Config file to read
    --directory PATH                       - Read this directory instead of the configured one
    --json                                 - Output in JSON format for scripting
    --help                                 - Show help message
"""
import json
import sys
from pathlib import Path
from typing import Any, Dict, Iterable
from zoneinfo import ZoneInfo

import click
from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from discord_availability.config import load_config
from discord_availability.errors import ConfigError, CorruptRecordError
from discord_availability.models import AvailabilityRecord, SortOrder
from discord_availability.store import AvailabilityStore

console = Console()


# =============================================================================
# OUTPUT HELPERS
# =============================================================================

def output_json(data: Any) -> None:
    """Output data as JSON."""
    click.echo(json.dumps(data, indent=2, default=str))


def format_intent(record: AvailabilityRecord) -> Text:
    if record.is_available:
        return Text("AVAILABLE", style="bold green")
    return Text("UNAVAILABLE", style="bold red")


def create_records_table(title: str, records: Iterable[AvailabilityRecord], tz: ZoneInfo) -> Table:
    """Create a table of availability records."""
    table = Table(
        title=title,
        box=box.SIMPLE,
        show_header=True,
        header_style="bold magenta",
    )

    table.add_column("User", style="cyan")
    table.add_column("User ID", style="dim")
    table.add_column("Status", width=12)
    table.add_column("Day", width=10)
    table.add_column("Time", width=5)

    for record in records:
        local = record.availability_time.astimezone(tz)
        table.add_row(
            record.user_name,
            record.user_id,
            format_intent(record),
            local.strftime("%d.%m.%Y"),
            local.strftime("%H:%M"),
        )

    return table


def open_store(ctx: click.Context) -> AvailabilityStore:
    """Build the store from --directory or the config file."""
    directory = ctx.obj.get('directory')
    if directory:
        ctx.obj['tz'] = ZoneInfo("UTC")
        return AvailabilityStore(Path(directory))

    try:
        settings = load_config(ctx.obj.get('config'))
    except ConfigError as e:
        raise click.ClickException(str(e))

    ctx.obj['tz'] = settings.tzinfo
    return AvailabilityStore(settings.directory_availabilities, settings.max_availabilities_per_user)


def record_dicts(records: Iterable[AvailabilityRecord]) -> list:
    return [record.to_dict() for record in records]


# =============================================================================
# CLI GROUP AND COMMANDS
# =============================================================================

@click.group()
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), help='Config file to read')
@click.option('--directory', type=click.Path(file_okay=False), help='Availabilities directory to read')
@click.option('--json', 'json_output', is_flag=True, help='Output in JSON format')
@click.pass_context
def cli(ctx: click.Context, config_path: str, directory: str, json_output: bool) -> None:
    """Inspect the availabilities recorded by the bot."""
    ctx.ensure_object(dict)
    ctx.obj['config'] = config_path
    ctx.obj['directory'] = directory
    ctx.obj['json'] = json_output


@cli.command(name="list")
@click.option('--order', type=click.Choice(['asc', 'desc']), default='asc', show_default=True)
@click.pass_context
def list_command(ctx: click.Context, order: str) -> None:
    """Show the latest availability of every user."""
    store = open_store(ctx)
    records = store.list_all(SortOrder(order))

    if ctx.obj['json']:
        output_json(record_dicts(records))
        return

    if not records:
        console.print("[dim]No availabilities recorded.[/dim]")
        return

    console.print(create_records_table("Availabilities", records, ctx.obj['tz']))


@cli.command()
@click.argument('user_id')
@click.option('--order', type=click.Choice(['asc', 'desc']), default='asc', show_default=True)
@click.pass_context
def history(ctx: click.Context, user_id: str, order: str) -> None:
    """Show every stored record of USER_ID."""
    store = open_store(ctx)

    try:
        collection = store.history(user_id, SortOrder(order))
    except CorruptRecordError as e:
        raise click.ClickException(str(e))

    if ctx.obj['json']:
        output_json(record_dicts(collection))
        return

    if not collection:
        console.print(f"[dim]No records for user {user_id}.[/dim]")
        return

    title = f"History of {collection.latest().user_name or user_id} ({len(collection)}/{store.max_per_user})"
    console.print(create_records_table(title, collection, ctx.obj['tz']))


@cli.command()
@click.pass_context
def skipped(ctx: click.Context) -> None:
    """List availability files that could not be read."""
    store = open_store(ctx)
    bad: Dict[str, str] = {str(path): reason for path, reason in store.scan().skipped.items()}

    if ctx.obj['json']:
        output_json(bad)
        return

    if not bad:
        console.print("[green]All availability files are readable.[/green]")
        return

    for path, reason in bad.items():
        console.print(f"[red]{path}[/red]: {reason}")
    sys.exit(1)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def main():
    """Main entry point for the availability CLI."""
    cli(obj={})


if __name__ == '__main__':
    main()
