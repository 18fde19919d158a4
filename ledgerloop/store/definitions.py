"""Persisted collection of recurring definitions.

The whole collection is one JSON array stored under a single key of a
KeyValueStore. Every mutation is a read-modify-write cycle committed with
compare-and-swap, retried when an unrelated writer got there first.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from typing import Any, TypeVar

from ledgerloop.domain.definitions import (
    DefinitionPatch,
    DefinitionSpec,
    NotFound,
    RecurringDefinition,
    RecurringError,
    apply_patch,
    build_definition,
    from_legacy_record,
    from_record,
    to_record,
    toggle,
)
from ledgerloop.domain.models import DefinitionId
from ledgerloop.log import get_logger
from ledgerloop.store.kv import KeyValueStore

logger = get_logger(__name__)

DEFAULT_STORAGE_KEY = "recurring_transactions"
DEFAULT_LEGACY_KEY = "recurring_expenses"
DEFAULT_LEASE_SECONDS = 300
MAX_WRITE_ATTEMPTS = 5

T = TypeVar("T")


class AnchorError(RecurringError):
    """An anchor write was rejected."""


class AnchorConflict(AnchorError):
    """The anchor changed since the caller read it."""


class AnchorRegression(AnchorError):
    """The new anchor is earlier than the current one."""


class StoreContention(RecurringError):
    """Concurrent writers kept winning; the write was abandoned."""


@dataclass(frozen=True)
class LoadResult:
    """Definitions read from the store, plus corruption status."""

    definitions: list[RecurringDefinition]
    corrupt: bool = False
    error: str | None = None


@dataclass
class MigrationReport:
    """Outcome of importing legacy expense-only repeaters."""

    imported: list[DefinitionId] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)


def parse_collection(raw: str | None) -> LoadResult:
    """Parse the stored JSON array.

    Missing data is an ordinary empty collection. Anything unreadable is an
    empty collection flagged as corrupt, with the reason.
    """
    if raw is None:
        return LoadResult(definitions=[])

    try:
        records = json.loads(raw)
    except json.JSONDecodeError as e:
        return LoadResult(definitions=[], corrupt=True, error=f"invalid JSON: {e}")

    if not isinstance(records, list):
        return LoadResult(definitions=[], corrupt=True, error=f"expected a list, got {type(records).__name__}")

    definitions: list[RecurringDefinition] = []
    for index, record in enumerate(records):
        try:
            definitions.append(from_record(record))
        except (ValueError, KeyError, TypeError) as e:
            return LoadResult(definitions=[], corrupt=True, error=f"record {index}: {e!r}")
    return LoadResult(definitions=definitions)


def serialize_collection(definitions: list[RecurringDefinition]) -> str:
    """Serialize definitions to the stored JSON array."""
    return json.dumps([to_record(d) for d in definitions], separators=(",", ":"))


def _find(definitions: list[RecurringDefinition], definition_id: str) -> int:
    for index, definition in enumerate(definitions):
        if definition.id == definition_id:
            return index
    raise NotFound(definition_id)


class RecurringDefinitionStore:
    """CRUD, anchor advancement and leases for recurring definitions."""

    def __init__(
        self,
        kv: KeyValueStore,
        key: str = DEFAULT_STORAGE_KEY,
        lease_seconds: int = DEFAULT_LEASE_SECONDS,
    ) -> None:
        self.kv = kv
        self.key = key
        self.lease_seconds = lease_seconds

    @property
    def corrupt_backup_key(self) -> str:
        return f"{self.key}.corrupt"

    def lease_key(self, definition_id: str) -> str:
        return f"{self.key}.lease.{definition_id}"

    # Reads

    def load(self) -> LoadResult:
        """Read all definitions, reporting corruption instead of raising."""
        result = parse_collection(self.kv.get(self.key))
        if result.corrupt:
            logger.error(
                "Recurring definitions under '%s' are corrupt (%s); treating store as empty",
                self.key,
                result.error,
            )
        return result

    def list_definitions(self) -> list[RecurringDefinition]:
        """All definitions in stored order."""
        return self.load().definitions

    def get(self, definition_id: str) -> RecurringDefinition:
        """Fetch one definition.

        Raises:
            NotFound: If no definition has this id.
        """
        definitions = self.list_definitions()
        return definitions[_find(definitions, definition_id)]

    # Writes

    def _mutate(self, change: Callable[[list[RecurringDefinition]], T]) -> T:
        """Apply `change` to the collection and commit it with CAS.

        `change` edits the list in place and returns the caller's result. It
        is re-run on a fresh read if another writer committed first.

        Raises:
            StoreContention: If every attempt lost the race.
        """
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            raw = self.kv.get(self.key)
            result = parse_collection(raw)
            if result.corrupt:
                self._preserve_corrupt(raw, result.error)

            definitions = list(result.definitions)
            outcome = change(definitions)
            if self.kv.compare_and_swap(self.key, raw, serialize_collection(definitions)):
                return outcome
            logger.debug("Write to '%s' lost a race (attempt %d), retrying", self.key, attempt)

        raise StoreContention(f"Could not update '{self.key}' after {MAX_WRITE_ATTEMPTS} attempts")

    def _preserve_corrupt(self, raw: str | None, error: str | None) -> None:
        if raw is None or self.kv.get(self.corrupt_backup_key) == raw:
            return
        self.kv.set(self.corrupt_backup_key, raw)
        logger.warning(
            "Corrupt recurring definitions (%s) copied to '%s' before being replaced",
            error,
            self.corrupt_backup_key,
        )

    def create(self, spec: DefinitionSpec) -> DefinitionId:
        """Validate and append a new definition.

        Raises:
            ValidationError: If the spec is invalid (InvalidAmount, ...).
        """
        definition = build_definition(spec)

        def append(definitions: list[RecurringDefinition]) -> DefinitionId:
            definitions.append(definition)
            return definition.id

        return self._mutate(append)

    def update(self, definition_id: str, patch: DefinitionPatch) -> RecurringDefinition:
        """Apply a partial update.

        Raises:
            NotFound: If the id is unknown.
            ValidationError: If the patched definition is invalid.
        """

        def edit(definitions: list[RecurringDefinition]) -> RecurringDefinition:
            index = _find(definitions, definition_id)
            definitions[index] = apply_patch(definitions[index], patch)
            return definitions[index]

        return self._mutate(edit)

    def toggle_active(self, definition_id: str, today: date) -> RecurringDefinition:
        """Pause an active definition or resume a paused one.

        Resuming does not catch up the paused window.

        Raises:
            NotFound: If the id is unknown.
        """

        def flip(definitions: list[RecurringDefinition]) -> RecurringDefinition:
            index = _find(definitions, definition_id)
            definitions[index] = toggle(definitions[index], today)
            return definitions[index]

        return self._mutate(flip)

    def delete(self, definition_id: str) -> None:
        """Remove a definition. Ledger entries it produced are untouched.

        Raises:
            NotFound: If the id is unknown.
        """

        def remove(definitions: list[RecurringDefinition]) -> None:
            del definitions[_find(definitions, definition_id)]

        self._mutate(remove)

    def advance_anchor(self, definition_id: str, expected: date | None, new: date) -> RecurringDefinition:
        """Move a definition's anchor forward, keyed on its expected value.

        Raises:
            NotFound: If the id is unknown.
            AnchorConflict: If the current anchor differs from `expected`.
            AnchorRegression: If `new` is earlier than the current anchor.
        """

        def advance(definitions: list[RecurringDefinition]) -> RecurringDefinition:
            index = _find(definitions, definition_id)
            current = definitions[index]
            if current.anchor != expected:
                raise AnchorConflict(
                    f"Anchor of {definition_id} is {current.anchor}, expected {expected}"
                )
            if current.anchor is not None and new < current.anchor:
                raise AnchorRegression(
                    f"Refusing to move anchor of {definition_id} back from {current.anchor} to {new}"
                )
            definitions[index] = replace(current, anchor=new)
            return definitions[index]

        return self._mutate(advance)

    # Leases

    def acquire_lease(self, definition_id: str, token: str, now: datetime | None = None) -> bool:
        """Claim a definition for one catch-up pass.

        Returns:
            True if the lease is now held by `token`, False if another live
            lease exists.
        """
        now = _as_utc(now or datetime.now(timezone.utc))
        key = self.lease_key(definition_id)
        raw = self.kv.get(key)
        if raw is not None:
            holder = _parse_lease(raw)
            if holder is not None and holder["token"] != token and holder["expires"] > now:
                return False

        lease = json.dumps({"token": token, "expires": (now + timedelta(seconds=self.lease_seconds)).isoformat()})
        return self.kv.compare_and_swap(key, raw, lease)

    def release_lease(self, definition_id: str, token: str) -> None:
        """Drop a lease if `token` still holds it."""
        key = self.lease_key(definition_id)
        raw = self.kv.get(key)
        if raw is None:
            return
        holder = _parse_lease(raw)
        if holder is None or holder["token"] == token:
            self.kv.compare_and_swap(key, raw, None)

    # Legacy data

    def migrate_legacy(self, legacy_key: str = DEFAULT_LEGACY_KEY) -> MigrationReport:
        """Import records of the older expense-only repeater.

        Records whose id already exists are skipped. The legacy key is
        removed once the import has been committed.
        """
        report = MigrationReport()
        raw = self.kv.get(legacy_key)
        if raw is None:
            return report

        try:
            records = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Legacy recurring expenses under '%s' are corrupt: %s", legacy_key, e)
            report.skipped.append((legacy_key, f"invalid JSON: {e}"))
            return report
        if not isinstance(records, list):
            logger.error("Legacy recurring expenses under '%s' are not a list", legacy_key)
            report.skipped.append((legacy_key, "not a list"))
            return report

        def merge(definitions: list[RecurringDefinition]) -> MigrationReport:
            merged = MigrationReport()
            existing = {d.id for d in definitions}
            for record in records:
                record_id = str(record.get("id", "?")) if isinstance(record, dict) else "?"
                if record_id in existing:
                    merged.skipped.append((record_id, "already imported"))
                    continue
                try:
                    definition = from_legacy_record(record)
                except (ValueError, KeyError, TypeError, AttributeError) as e:
                    merged.skipped.append((record_id, str(e)))
                    continue
                definitions.append(definition)
                existing.add(definition.id)
                merged.imported.append(definition.id)
            return merged

        report = self._mutate(merge)
        self.kv.compare_and_swap(legacy_key, raw, None)
        logger.info("Imported %d legacy recurring expense(s), skipped %d", len(report.imported), len(report.skipped))
        return report


def _parse_lease(raw: str) -> dict[str, Any] | None:
    """Decode a stored lease; unreadable leases count as expired."""
    try:
        data = json.loads(raw)
        return {"token": str(data["token"]), "expires": _as_utc(datetime.fromisoformat(data["expires"]))}
    except (ValueError, KeyError, TypeError):
        return None


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so they compare with stored expiries."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
