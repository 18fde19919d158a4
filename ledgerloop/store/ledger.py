"""Ledger sink: where materialized occurrences become transactions.

The processor only depends on the `LedgerSink` protocol. `SqliteLedger`
is the implementation used by the command line; it appends to the
`transactions` table of the application database.
"""

import sqlite3
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Protocol
from uuid import uuid4

from ledgerloop.dates import format_iso_date
from ledgerloop.domain.definitions import TransactionKind
from ledgerloop.domain.models import Amount, CategoryId, TransactionId
from ledgerloop.store.schema import get_db_path


class LedgerError(Exception):
    """The ledger could not record an entry."""


@dataclass(frozen=True)
class LedgerEntry:
    """Fields handed to the ledger for one occurrence."""

    category_id: CategoryId
    amount: Amount
    description: str
    date: date


class LedgerSink(Protocol):
    """Accepts materialized occurrences. Both methods raise LedgerError on failure."""

    def create_expense(self, entry: LedgerEntry) -> TransactionId:
        ...

    def create_income(self, entry: LedgerEntry) -> TransactionId:
        ...


def _connect(db_path: Path | None = None) -> sqlite3.Connection:
    """Create a database connection with row factory.

    Args:
        db_path: Path to the database file. If None, uses default location.

    Returns:
        Database connection with row_factory configured.
    """
    if db_path is None:
        db_path = get_db_path()
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


class SqliteLedger:
    """Ledger stored in the `transactions` table."""

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path

    def create_expense(self, entry: LedgerEntry) -> TransactionId:
        return self._insert(TransactionKind.EXPENSE, entry)

    def create_income(self, entry: LedgerEntry) -> TransactionId:
        return self._insert(TransactionKind.INCOME, entry)

    def _insert(self, kind: TransactionKind, entry: LedgerEntry) -> TransactionId:
        """Insert one transaction and return its new id.

        Raises:
            LedgerError: If the database rejects the insert.
        """
        prefix = "exp" if kind is TransactionKind.EXPENSE else "inc"
        txn_id = TransactionId(f"{prefix}_{uuid4().hex}")
        try:
            with _connect(self.db_path) as conn:
                try:
                    conn.execute(
                        """
                        INSERT INTO transactions (id, kind, category_id, amount, description, date)
                        VALUES (?, ?, ?, ?, ?, ?)
                    """,
                        (
                            txn_id,
                            kind.value,
                            entry.category_id,
                            str(entry.amount),
                            entry.description,
                            format_iso_date(entry.date),
                        ),
                    )
                    conn.commit()
                except sqlite3.Error:
                    conn.rollback()
                    raise
        except sqlite3.Error as e:
            raise LedgerError(f"Could not record {kind.value} on {entry.date}: {e}") from e
        return txn_id

    def list_entries(self, limit: int | None = None, kind: TransactionKind | None = None) -> list[dict[str, Any]]:
        """List ledger entries, newest first.

        Args:
            limit: Maximum number of entries. If None, returns all.
            kind: Only return this kind of entry.

        Returns:
            List of entry dictionaries with `amount` as Decimal.

        Raises:
            sqlite3.Error: If database operation fails.
        """
        query = "SELECT id, kind, category_id, amount, description, date FROM transactions"
        params: list[Any] = []
        if kind is not None:
            query += " WHERE kind = ?"
            params.append(kind.value)
        query += " ORDER BY date DESC, created_at DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with _connect(self.db_path) as conn:
            rows = conn.execute(query, params).fetchall()
            return [{**dict(row), "amount": Decimal(row["amount"])} for row in rows]
