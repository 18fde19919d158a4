"""Tests for the ledgerloop command line."""

import json
from datetime import date
from pathlib import Path

import pytest
from typer.testing import CliRunner

from ledgerloop.cli import app
from ledgerloop.commands.common import parse_user_date
from ledgerloop.config import load_settings
from ledgerloop.store.kv import SqliteKeyValueStore
from ledgerloop.store.ledger import SqliteLedger

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_dirs(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    return tmp_path


def init() -> None:
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0, result.output


class TestInit:
    """Tests for `ledgerloop init`."""

    def test_creates_database_and_config(self, isolated_dirs: Path) -> None:
        """Should create both files."""
        init()

        assert (isolated_dirs / "data" / "ledgerloop" / "ledgerloop.db").exists()
        assert (isolated_dirs / "config" / "ledgerloop" / "config.toml").exists()

    def test_refuses_to_overwrite(self) -> None:
        """Should fail without --force when files exist."""
        init()

        result = runner.invoke(app, ["init"])

        assert result.exit_code == 1
        assert "already exists" in result.output


class TestRecurringCommands:
    """Tests for add, process, list and ledger."""

    def test_requires_init(self) -> None:
        """Should tell the user to run init first."""
        result = runner.invoke(app, ["process"])

        assert result.exit_code == 1
        assert "ledgerloop init" in result.output

    def test_add_then_process(self) -> None:
        """Should create due ledger entries once, then report nothing due."""
        init()
        added = runner.invoke(
            app, ["add", "Phone", "15.99", "--category", "bills", "--start", "2024-01-01", "--end", "2024-03-01"]
        )
        assert added.exit_code == 0, added.output

        first = runner.invoke(app, ["process"])
        second = runner.invoke(app, ["process"])

        assert first.exit_code == 0, first.output
        assert "Processed 3" in first.output
        assert "Nothing due" in second.output

        entries = SqliteLedger(load_settings().db_path).list_entries()
        assert [e["date"] for e in entries] == ["2024-03-01", "2024-02-01", "2024-01-01"]
        assert runner.invoke(app, ["ledger", "--all"]).exit_code == 0

    def test_add_rejects_bad_amount(self) -> None:
        """Should exit with an error for a zero amount."""
        init()

        result = runner.invoke(app, ["add", "Phone", "0", "--category", "bills"])

        assert result.exit_code == 1
        assert "Could not add" in result.output

    def test_add_rejects_bad_date(self) -> None:
        """Should exit with an error for an unparseable date."""
        init()

        result = runner.invoke(app, ["add", "Phone", "9", "--category", "bills", "--start", "someday"])

        assert result.exit_code == 1
        assert "Invalid date" in result.output

    def test_toggle_and_delete_unknown(self) -> None:
        """Should report unknown ids."""
        init()

        assert runner.invoke(app, ["toggle", "rt_missing"]).exit_code == 1
        assert runner.invoke(app, ["delete", "rt_missing"]).exit_code == 1

    def test_list_empty(self) -> None:
        """Should say when there is nothing to list."""
        init()

        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "No recurring transactions" in result.output

    def test_migrate_legacy(self) -> None:
        """Should import legacy expense repeaters from the database."""
        init()
        kv = SqliteKeyValueStore(load_settings().db_path)
        kv.set(
            "recurring_expenses",
            json.dumps(
                [
                    {
                        "id": "rec_1",
                        "categoryId": "fitness",
                        "amount": 30,
                        "description": "Gym",
                        "frequency": "monthly",
                        "startDate": "2024-01-15",
                        "nextDueDate": "2024-02-15",
                        "isActive": True,
                    }
                ]
            ),
        )

        result = runner.invoke(app, ["migrate-legacy"])

        assert result.exit_code == 0, result.output
        assert "Imported 1" in result.output
        assert kv.get("recurring_expenses") is None
        assert "rec_1" in kv.get("recurring_transactions")


class TestParseUserDate:
    """Tests for parse_user_date."""

    def test_iso_dates_are_not_day_first(self) -> None:
        """Should read YYYY-MM-DD as year, month, day."""
        assert parse_user_date("2024-03-01") == date(2024, 3, 1)

    def test_day_first_formats(self) -> None:
        """Should read slash dates day first."""
        assert parse_user_date("15/01/2024") == date(2024, 1, 15)
        assert parse_user_date("01/03/2024") == date(2024, 3, 1)

    def test_garbage_raises(self) -> None:
        """Should raise ValueError for unparseable input."""
        with pytest.raises(ValueError):
            parse_user_date("someday")
