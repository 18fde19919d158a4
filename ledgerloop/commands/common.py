"""Helpers shared by command implementations."""

import sqlite3
import sys
import tomllib
from datetime import date
from decimal import Decimal

import pandas as pd
from rich.console import Console

from ledgerloop.config import Settings, get_config_path, load_settings
from ledgerloop.dates import parse_iso_date
from ledgerloop.processor import CatchUpProcessor
from ledgerloop.store.definitions import RecurringDefinitionStore
from ledgerloop.store.kv import SqliteKeyValueStore
from ledgerloop.store.ledger import SqliteLedger
from ledgerloop.store.schema import database_exists

console = Console()


def settings_or_exit() -> Settings:
    """Load settings, exiting with a message if the config is broken."""
    try:
        return load_settings()
    except (tomllib.TOMLDecodeError, ValueError) as e:
        console.print(f"[red]Invalid config file {get_config_path()}: {e}[/red]", style="bold")
        sys.exit(1)


def open_store(settings: Settings) -> RecurringDefinitionStore:
    """Open the definition store, exiting if the database is missing."""
    if not database_exists(settings.db_path):
        console.print("[red]Database not found. Run 'ledgerloop init' first.[/red]", style="bold")
        sys.exit(1)
    return RecurringDefinitionStore(
        SqliteKeyValueStore(settings.db_path),
        key=settings.storage_key,
        lease_seconds=settings.lease_seconds,
    )


def open_processor(settings: Settings) -> CatchUpProcessor:
    """Wire the store and the SQLite ledger into a processor."""
    return CatchUpProcessor(open_store(settings), SqliteLedger(settings.db_path))


def parse_user_date(value: str) -> date:
    """Normalize a user supplied date (YYYY-MM-DD, DD/MM/YYYY, ...).

    Raises:
        ValueError: If pandas cannot parse the value.
    """
    # ISO first; dayfirst would otherwise read 2024-03-01 as 3 January
    try:
        return parse_iso_date(value.strip())
    except ValueError:
        pass

    try:
        parsed = pd.to_datetime(value, dayfirst=True)
    except (ValueError, pd.errors.ParserError) as e:
        raise ValueError(f"Could not parse date '{value}': {e}") from e
    if pd.isna(parsed):
        raise ValueError(f"Could not parse date '{value}'")
    return parsed.date()


def date_or_exit(value: str | None) -> date | None:
    """Parse an optional date option, exiting on bad input."""
    if value is None:
        return None
    try:
        return parse_user_date(value)
    except ValueError as e:
        console.print(f"[red]Invalid date format: {e}[/red]")
        console.print("[dim]Accepted formats: YYYY-MM-DD, DD/MM/YYYY, DD-MM-YYYY, etc.[/dim]")
        sys.exit(1)


def format_amount(amount: Decimal, kind: str) -> str:
    """Render an amount in rich markup, red for expenses and green for income."""
    if kind == "expense":
        return f"[red]-{amount:,.2f}[/red]"
    return f"[green]+{amount:,.2f}[/green]"


def database_error(e: sqlite3.Error) -> None:
    """Report a database error and exit."""
    console.print(f"[red]Database error: {e}[/red]", style="bold")
    sys.exit(1)
