"""Recurring definition commands (add, edit, list, toggle, delete, process)."""

import sqlite3
import sys
from datetime import date

from rich.table import Table

from ledgerloop.commands.common import (
    console,
    database_error,
    date_or_exit,
    format_amount,
    open_processor,
    open_store,
    settings_or_exit,
)
from ledgerloop.domain.catchup import ProcessResult, next_due
from ledgerloop.domain.definitions import DefinitionPatch, DefinitionSpec, RecurringError
from ledgerloop.domain.recurrence import frequency_label


def add_command(
    kind: str,
    category: str,
    amount: str,
    description: str,
    frequency: str,
    start: str | None = None,
    end: str | None = None,
) -> None:
    """Create a recurring definition."""
    settings = settings_or_exit()
    start_date = date_or_exit(start) or date.today()
    end_date = date_or_exit(end)

    try:
        store = open_store(settings)
        definition_id = store.create(
            DefinitionSpec(
                kind=kind.lower(),
                category_id=category,
                amount=amount,
                description=description,
                frequency=frequency.lower(),
                start_date=start_date,
                end_date=end_date,
            )
        )
    except RecurringError as e:
        console.print(f"[red]Could not add recurring transaction: {e}[/red]")
        sys.exit(1)
    except sqlite3.Error as e:
        database_error(e)
        return

    console.print("[green]✓[/green] Recurring transaction added:")
    console.print(f"  ID: {definition_id}")
    console.print(f"  Description: {description.strip()}")
    console.print(f"  Starts: {start_date.isoformat()}")
    console.print("[dim]Due occurrences are created by 'ledgerloop process'[/dim]")


def edit_command(
    definition_id: str,
    kind: str | None = None,
    category: str | None = None,
    amount: str | None = None,
    description: str | None = None,
    frequency: str | None = None,
    start: str | None = None,
    end: str | None = None,
    clear_end: bool = False,
) -> None:
    """Edit fields of a recurring definition."""
    settings = settings_or_exit()
    patch = DefinitionPatch(
        kind=kind.lower() if kind else None,
        category_id=category,
        amount=amount,
        description=description,
        frequency=frequency.lower() if frequency else None,
        start_date=date_or_exit(start),
        end_date=date_or_exit(end),
        clear_end_date=clear_end,
    )

    try:
        updated = open_store(settings).update(definition_id, patch)
    except RecurringError as e:
        console.print(f"[red]Could not update recurring transaction: {e}[/red]")
        sys.exit(1)
    except sqlite3.Error as e:
        database_error(e)
        return

    console.print(f"[green]✓[/green] Updated {updated.id}: {updated.description}")
    if updated.anchor:
        console.print(f"  [dim]Last processed: {updated.anchor.isoformat()}[/dim]")


def toggle_command(definition_id: str) -> None:
    """Pause or resume a recurring definition."""
    settings = settings_or_exit()
    try:
        updated = open_store(settings).toggle_active(definition_id, date.today())
    except RecurringError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    except sqlite3.Error as e:
        database_error(e)
        return

    if updated.is_active:
        console.print(f"[green]✓[/green] Resumed {updated.description}")
        console.print("[dim]Occurrences missed while paused are skipped[/dim]")
    else:
        console.print(f"[yellow]⏸[/yellow] Paused {updated.description}")


def delete_command(definition_id: str) -> None:
    """Delete a recurring definition."""
    settings = settings_or_exit()
    try:
        open_store(settings).delete(definition_id)
    except RecurringError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    except sqlite3.Error as e:
        database_error(e)
        return

    console.print(f"[green]✓[/green] Deleted {definition_id}")
    console.print("[dim]Transactions it already created are kept[/dim]")


def print_process_result(result: ProcessResult) -> None:
    """Summarize a catch-up pass."""
    if result.materialized:
        console.print(f"[green]✓[/green] Processed {len(result.materialized)} recurring transaction(s)")
        for occurrence in result.materialized:
            amount = format_amount(occurrence.amount, occurrence.kind.value)
            console.print(f"  {occurrence.date.isoformat()}  {occurrence.description}  {amount}")

    for failure in result.failures:
        when = failure.date.isoformat() if failure.date else "-"
        console.print(f"[yellow]! {failure.definition_id} on {when}: {failure.reason}[/yellow]")
    if result.failures:
        console.print("[dim]Failed occurrences will be retried next time[/dim]")


def process_command() -> None:
    """Create ledger entries for every due occurrence."""
    settings = settings_or_exit()
    try:
        result = open_processor(settings).process(date.today())
    except sqlite3.Error as e:
        database_error(e)
        return

    if not result.materialized and not result.failures:
        console.print("[dim]Nothing due[/dim]")
        return
    print_process_result(result)


def list_command(catch_up: bool = True) -> None:
    """Show recurring definitions, catching up first."""
    settings = settings_or_exit()
    today = date.today()

    try:
        if catch_up:
            result = open_processor(settings).process(today)
            if result.materialized or result.failures:
                print_process_result(result)
                console.print()

        store = open_store(settings)
        loaded = store.load()
    except sqlite3.Error as e:
        database_error(e)
        return

    if loaded.corrupt:
        console.print(f"[red]Stored recurring transactions are unreadable ({loaded.error})[/red]")
        console.print(f"[dim]They will be copied to '{store.corrupt_backup_key}' on the next change[/dim]")

    if not loaded.definitions:
        console.print("[yellow]No recurring transactions found[/yellow]")
        return

    table = Table(title=f"Recurring transactions ({len(loaded.definitions)})")
    table.add_column("ID", style="dim")
    table.add_column("Description", style="white")
    table.add_column("Category", style="magenta")
    table.add_column("Amount", justify="right")
    table.add_column("Frequency", style="cyan")
    table.add_column("Next", style="cyan")
    table.add_column("Status", justify="center")

    for definition in loaded.definitions:
        upcoming = next_due(definition)
        if not definition.is_active:
            next_display = "[dim]paused[/dim]"
        elif upcoming is None:
            next_display = "[dim]ended[/dim]"
        else:
            next_display = upcoming.strftime("%b %d, %Y")

        table.add_row(
            definition.id,
            definition.description,
            definition.category_id,
            format_amount(definition.amount, definition.kind.value),
            frequency_label(definition.frequency),
            next_display,
            "✓" if definition.is_active else "⏸",
        )

    console.print(table)
