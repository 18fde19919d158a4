"""Ledger listing command."""

import sqlite3
import sys

from rich.table import Table

from ledgerloop.commands.common import console, database_error, format_amount, settings_or_exit
from ledgerloop.domain.definitions import TransactionKind
from ledgerloop.store.ledger import SqliteLedger
from ledgerloop.store.schema import database_exists


def ledger_command(
    limit: int = 50,
    all: bool = False,
    kind: str | None = None,
) -> None:
    """List ledger entries."""
    settings = settings_or_exit()
    if not database_exists(settings.db_path):
        console.print("[red]Database not found. Run 'ledgerloop init' first.[/red]", style="bold")
        sys.exit(1)

    try:
        kind_filter = TransactionKind(kind.lower()) if kind else None
    except ValueError:
        console.print(f"[red]Unknown kind '{kind}' (expected expense or income)[/red]")
        sys.exit(1)

    try:
        actual_limit = None if all else limit
        entries = SqliteLedger(settings.db_path).list_entries(actual_limit, kind_filter)
    except sqlite3.Error as e:
        database_error(e)
        return

    if not entries:
        console.print("[yellow]No transactions found[/yellow]")
        return

    title = f"Transactions (showing all {len(entries)})" if all else f"Transactions (showing {len(entries)})"
    table = Table(title=title)
    table.add_column("Date", style="cyan")
    table.add_column("Description", style="white")
    table.add_column("Amount", justify="right")
    table.add_column("Category", style="magenta")
    table.add_column("ID", style="dim")

    for entry in entries:
        table.add_row(
            entry["date"],
            entry["description"],
            format_amount(entry["amount"], entry["kind"]),
            entry["category_id"],
            entry["id"],
        )

    console.print(table)
