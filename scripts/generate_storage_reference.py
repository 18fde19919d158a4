#!/usr/bin/env python3
"""Generate storage reference documentation from the actual schema and record layout."""

import json
import sqlite3
import sys
import tempfile
from datetime import date, datetime, timezone
from pathlib import Path

# Add parent directory to path to import ledgerloop
sys.path.insert(0, str(Path(__file__).parent.parent))

from ledgerloop.domain.definitions import DefinitionSpec, build_definition, to_record
from ledgerloop.domain.models import DefinitionId
from ledgerloop.store.definitions import DEFAULT_STORAGE_KEY
from ledgerloop.store.schema import init_database

TABLE_DESCRIPTIONS = {
    "kv_store": "Client-side key-value store. Recurring definitions live under one key as a JSON array.",
    "transactions": "Ledger entries created by catch-up processing (and anything else writing to the ledger).",
}

FIELD_DESCRIPTIONS = {
    "id": "Opaque id (`rt_<hex>`), immutable",
    "kind": "`expense` or `income`",
    "categoryId": "Externally owned category reference",
    "amount": "Positive decimal, stored as a string",
    "description": "Non-empty display text",
    "frequency": "`daily`, `weekly`, `biweekly`, `monthly` or `yearly`",
    "startDate": "First occurrence (YYYY-MM-DD)",
    "endDate": "Last possible occurrence, or null",
    "lastProcessed": "Anchor: most recent materialized occurrence, or null",
    "isActive": "Paused definitions are skipped",
    "createdAt": "Creation timestamp (ISO 8601, UTC)",
}


def table_columns(db_path: Path) -> dict[str, list[tuple[str, str, str]]]:
    """Read (name, type, constraints) for every table via PRAGMA table_info."""
    conn = sqlite3.connect(db_path)
    try:
        tables = [
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'")
        ]
        result = {}
        for table in tables:
            columns = []
            for _, name, col_type, notnull, default, pk in conn.execute(f"PRAGMA table_info({table})"):
                constraints = []
                if pk:
                    constraints.append("PRIMARY KEY")
                if notnull:
                    constraints.append("NOT NULL")
                if default is not None:
                    constraints.append(f"DEFAULT {default}")
                columns.append((name, col_type, " ".join(constraints) or "—"))
            result[table] = columns
        return result
    finally:
        conn.close()


def sample_record() -> dict:
    """Build a representative persisted record."""
    definition = build_definition(
        DefinitionSpec(
            kind="expense",
            category_id="subscriptions",
            amount="15.99",
            description="Streaming service",
            frequency="monthly",
            start_date=date(2024, 1, 31),
        ),
        definition_id=DefinitionId("rt_0123456789abcdef"),
        created_at=datetime(2024, 1, 20, 9, 30, tzinfo=timezone.utc),
    )
    return to_record(definition)


def generate_storage_reference() -> str:
    """Generate complete storage reference documentation."""
    with tempfile.TemporaryDirectory() as tmp:
        db_path = Path(tmp) / "schema.db"
        init_database(db_path)
        tables = table_columns(db_path)

    lines = [
        "---",
        "tags: [reference]",
        "---",
        "",
        "# Storage Reference",
        "",
        "ledgerloop keeps everything in one local SQLite file.",
        "",
        "## Database Location",
        "",
        "Default: `$XDG_DATA_HOME/ledgerloop/ledgerloop.db` (override with `db_path` in config.toml)",
        "",
        "## Tables",
        "",
    ]

    for table, columns in tables.items():
        lines.extend([f"### {table}", "", TABLE_DESCRIPTIONS.get(table, ""), ""])
        lines.extend(["| Column | Type | Constraints |", "|--------|------|-------------|"])
        lines.extend(f"| {name} | {col_type} | {constraints} |" for name, col_type, constraints in columns)
        lines.append("")

    record = sample_record()
    lines.extend(
        [
            "## Recurring Definitions",
            "",
            f"Stored under key `{DEFAULT_STORAGE_KEY}` as a JSON array, one object per definition:",
            "",
            "| Field | Description |",
            "|-------|-------------|",
        ]
    )
    lines.extend(f"| {name} | {FIELD_DESCRIPTIONS.get(name, '')} |" for name in record)
    lines.extend(["", "Example:", "", "```json", json.dumps([record], indent=2), "```", ""])

    lines.extend(
        [
            "## Auxiliary Keys",
            "",
            f"- `{DEFAULT_STORAGE_KEY}.lease.<id>`: processing lease held by a running catch-up pass",
            f"- `{DEFAULT_STORAGE_KEY}.corrupt`: copy of unreadable data, written before it is replaced",
            "",
        ]
    )

    return "\n".join(lines)


def main() -> None:
    """Generate and write storage reference documentation."""
    output_path = Path(__file__).parent.parent / "docs" / "reference" / "storage.md"
    output_path.parent.mkdir(parents=True, exist_ok=True)

    output_path.write_text(generate_storage_reference())
    print(f"Generated storage reference at {output_path}")


if __name__ == "__main__":
    main()
