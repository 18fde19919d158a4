"""Store layer - provides persistence for the application.

This module re-exports the public store types for easy importing.
"""

from ledgerloop.store.definitions import (
    AnchorConflict,
    AnchorError,
    AnchorRegression,
    LoadResult,
    MigrationReport,
    RecurringDefinitionStore,
    StoreContention,
)
from ledgerloop.store.kv import KeyValueStore, MemoryKeyValueStore, SqliteKeyValueStore
from ledgerloop.store.ledger import LedgerEntry, LedgerError, LedgerSink, SqliteLedger
from ledgerloop.store.schema import database_exists, get_db_path, init_database

__all__ = [
    # Schema
    "database_exists",
    "get_db_path",
    "init_database",
    # Key-value repository
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqliteKeyValueStore",
    # Definitions
    "AnchorConflict",
    "AnchorError",
    "AnchorRegression",
    "LoadResult",
    "MigrationReport",
    "RecurringDefinitionStore",
    "StoreContention",
    # Ledger
    "LedgerEntry",
    "LedgerError",
    "LedgerSink",
    "SqliteLedger",
]
