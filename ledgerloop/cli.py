"""CLI entry point for ledgerloop."""

import typer

from ledgerloop.commands.admin import backup_command, init_command, migrate_legacy_command
from ledgerloop.commands.common import settings_or_exit
from ledgerloop.commands.ledger import ledger_command
from ledgerloop.commands.recurring import (
    add_command,
    delete_command,
    edit_command,
    list_command,
    process_command,
    toggle_command,
)
from ledgerloop.log import configure_logging

app = typer.Typer(
    name="ledgerloop",
    help="Recurring transactions that catch up whenever you open the app",
    add_completion=False,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show informational log messages"),
) -> None:
    """Recurring transactions that catch up whenever you open the app."""
    configure_logging("INFO" if verbose else settings_or_exit().log_level)


@app.command(name="init")
def init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing database and config"),
    migrate: bool = typer.Option(False, "--migrate", help="Update the database schema only"),
) -> None:
    """Initialize ledgerloop database and configuration."""
    init_command(force, migrate)


@app.command(name="backup")
def backup(
    output_dir: str = typer.Option(None, "--output", "-o", help="Backup directory (default: next to the database)"),
) -> None:
    """Backup your database and configuration files."""
    backup_command(output_dir)


@app.command()
def add(
    description: str,
    amount: str,
    category: str = typer.Option(..., "--category", "-c", help="Category id"),
    kind: str = typer.Option("expense", "--kind", "-k", help="'expense' or 'income'"),
    frequency: str = typer.Option(
        "monthly", "--frequency", "-f", help="daily, weekly, biweekly, monthly or yearly"
    ),
    start: str = typer.Option(None, "--start", help="First occurrence (default: today)"),
    end: str = typer.Option(None, "--end", help="Last possible occurrence"),
) -> None:
    """Add a recurring transaction."""
    add_command(kind, category, amount, description, frequency, start, end)


@app.command()
def edit(
    definition_id: str,
    description: str = typer.Option(None, "--description", "-d", help="New description"),
    amount: str = typer.Option(None, "--amount", "-a", help="New amount"),
    category: str = typer.Option(None, "--category", "-c", help="New category id"),
    kind: str = typer.Option(None, "--kind", "-k", help="'expense' or 'income'"),
    frequency: str = typer.Option(None, "--frequency", "-f", help="New frequency"),
    start: str = typer.Option(None, "--start", help="New start date"),
    end: str = typer.Option(None, "--end", help="New end date"),
    clear_end: bool = typer.Option(False, "--clear-end", help="Remove the end date"),
) -> None:
    """Edit a recurring transaction."""
    edit_command(definition_id, kind, category, amount, description, frequency, start, end, clear_end)


@app.command(name="list")
def list_definitions(
    no_process: bool = typer.Option(False, "--no-process", help="Do not create due transactions first"),
) -> None:
    """List your recurring transactions (catching up on due ones first)."""
    list_command(catch_up=not no_process)


@app.command()
def toggle(definition_id: str) -> None:
    """Pause or resume a recurring transaction."""
    toggle_command(definition_id)


@app.command()
def delete(definition_id: str) -> None:
    """Delete a recurring transaction (created transactions are kept)."""
    delete_command(definition_id)


@app.command()
def process() -> None:
    """Create transactions for every due occurrence."""
    process_command()


@app.command()
def ledger(
    limit: int = typer.Option(50, help="Maximum transactions to show"),
    all: bool = typer.Option(False, "--all", "-a", help="Show all transactions"),
    kind: str = typer.Option(None, "--kind", "-k", help="Only 'expense' or 'income'"),
) -> None:
    """List transactions in the ledger."""
    ledger_command(limit, all, kind)


@app.command(name="migrate-legacy")
def migrate_legacy(
    key: str = typer.Option(None, "--key", help="Legacy storage key (default from config)"),
) -> None:
    """Import recurring expenses from the older expense-only format."""
    migrate_legacy_command(key)


if __name__ == "__main__":
    app()
