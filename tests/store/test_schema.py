"""Tests for ledgerloop.store.schema."""

import sqlite3
from pathlib import Path

from ledgerloop.store.schema import init_database


def columns(db_path: Path, table: str) -> list[str]:
    conn = sqlite3.connect(db_path)
    try:
        return [row[1] for row in conn.execute(f"PRAGMA table_info({table})")]
    finally:
        conn.close()


class TestInitDatabase:
    """Tests for init_database."""

    def test_creates_tables_with_timestamp_columns(self, tmp_path: Path) -> None:
        """Should create both tables with their timestamp columns."""
        db_path = tmp_path / "nested" / "ledgerloop.db"

        init_database(db_path)

        assert columns(db_path, "kv_store") == ["key", "value", "updated_at"]
        assert columns(db_path, "transactions") == [
            "id",
            "kind",
            "category_id",
            "amount",
            "description",
            "date",
            "created_at",
        ]

    def test_is_safe_to_rerun(self, tmp_path: Path) -> None:
        """Should leave existing data in place when run again."""
        db_path = tmp_path / "ledgerloop.db"
        init_database(db_path)
        conn = sqlite3.connect(db_path)
        conn.execute("INSERT INTO kv_store (key, value) VALUES ('k', 'v')")
        conn.commit()
        conn.close()

        init_database(db_path)

        conn = sqlite3.connect(db_path)
        try:
            assert conn.execute("SELECT value FROM kv_store WHERE key = 'k'").fetchone() == ("v",)
        finally:
            conn.close()
