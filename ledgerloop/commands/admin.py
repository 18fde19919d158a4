"""Admin commands for backup, init, and legacy migration."""

import shutil
import sqlite3
import sys
from datetime import datetime
from pathlib import Path

from ledgerloop.commands.common import console, database_error, open_store, settings_or_exit
from ledgerloop.config import create_default_config, get_config_path
from ledgerloop.store.schema import init_database


def backup_command(
    output_dir: str | None = None,
) -> None:
    """Backup database and configuration files."""
    settings = settings_or_exit()
    db_path = settings.db_path
    config_path = get_config_path()

    if not db_path.exists():
        console.print("[red]Database not found. Run 'ledgerloop init' first.[/red]", style="bold")
        sys.exit(1)

    if output_dir:
        backup_dir = Path(output_dir).expanduser()
    else:
        backup_dir = db_path.parent / "backups"

    backup_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    db_backup = backup_dir / f"ledgerloop_{timestamp}.db"
    config_backup = backup_dir / f"config_{timestamp}.toml"

    try:
        shutil.copy2(db_path, db_backup)
        console.print(f"[green]✓[/green] Database backed up to: {db_backup}")

        # Config is optional; defaults apply without one
        if config_path.exists():
            shutil.copy2(config_path, config_backup)
            console.print(f"[green]✓[/green] Config backed up to: {config_backup}")

        console.print("\n[green]Backup complete![/green]", style="bold")
        console.print(f"[dim]Backup directory: {backup_dir}[/dim]")

    except OSError as e:
        console.print(f"[red]Backup failed: {e}[/red]", style="bold")
        sys.exit(1)


def run_migration(db_path: Path) -> None:
    """Run database migrations on existing database."""
    console.print(f"[cyan]Running migrations on {db_path}...[/cyan]")
    init_database(db_path)
    console.print("[green]✓[/green] Migrations complete")
    console.print("[dim]Database schema is up to date[/dim]")


def run_full_init(db_path: Path, config_path: Path) -> None:
    """Initialize new database and config."""
    console.print(f"[cyan]Initializing database at {db_path}...[/cyan]")
    init_database(db_path)
    console.print("[green]✓[/green] Database initialized")

    console.print(f"[cyan]Creating config file at {config_path}...[/cyan]")
    create_default_config(config_path)
    console.print("[green]✓[/green] Config file created (permissions: 600)")

    console.print("\n[green]Initialization complete![/green]", style="bold")
    console.print(f"[dim]Database: {db_path}[/dim]")
    console.print(f"[dim]Config: {config_path}[/dim]")


def init_command(force: bool = False, migrate: bool = False) -> None:
    """Initialize ledgerloop database and configuration."""
    db_path = settings_or_exit().db_path
    config_path = get_config_path()

    db_exists = db_path.exists()
    config_exists = config_path.exists()

    try:
        # Migration path: update existing database only
        if migrate:
            if not db_exists:
                console.print("[red]No database found to migrate[/red]", style="bold")
                console.print(f"[dim]Expected location: {db_path}[/dim]")
                sys.exit(1)
            run_migration(db_path)
            return

        # Guard: refuse to overwrite without force flag
        if not force and (db_exists or config_exists):
            console.print("[red]Initialization failed:[/red]", style="bold")
            if db_exists:
                console.print(f"  Database already exists: {db_path}")
            if config_exists:
                console.print(f"  Config already exists: {config_path}")
            console.print("\n[yellow]Use 'ledgerloop init --force' to overwrite[/yellow]")
            console.print("[yellow]Or 'ledgerloop init --migrate' to update database schema only[/yellow]")
            sys.exit(1)

        if force and db_exists:
            db_path.unlink()

        run_full_init(db_path, config_path)

    except sqlite3.Error as e:
        database_error(e)
    except OSError as e:
        console.print(f"[red]Filesystem error: {e}[/red]", style="bold")
        sys.exit(1)


def migrate_legacy_command(legacy_key: str | None = None) -> None:
    """Import definitions from the older expense-only repeater."""
    settings = settings_or_exit()
    key = legacy_key or settings.legacy_key

    try:
        report = open_store(settings).migrate_legacy(key)
    except sqlite3.Error as e:
        database_error(e)
        return

    if not report.imported and not report.skipped:
        console.print(f"[dim]No legacy recurring expenses under '{key}'[/dim]")
        return

    console.print(f"[green]✓[/green] Imported {len(report.imported)} recurring expense(s)")
    for record_id, reason in report.skipped:
        console.print(f"  [yellow]Skipped {record_id}: {reason}[/yellow]")
