"""Pure functions for recurring definitions.

This module contains the functional core for definition records:
- No I/O operations (no database, no console, no files)
- No side effects
- Validation, patching and (de)serialization of the persisted layout
- Easy to test

Persisted records use the camelCase keys of the stored JSON array:
id, kind, categoryId, amount, description, frequency, startDate, endDate,
lastProcessed, isActive, createdAt.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import uuid4

from ledgerloop.dates import format_iso_date, parse_iso_date
from ledgerloop.domain.models import Amount, CategoryId, DefinitionId
from ledgerloop.domain.recurrence import Frequency, latest_occurrence_on_or_before, step


class RecurringError(Exception):
    """Base class for recurring-definition errors."""


class ValidationError(RecurringError, ValueError):
    """A definition failed validation."""


class InvalidAmount(ValidationError):
    """Amount is missing, not a number, or not greater than zero."""


class InvalidDescription(ValidationError):
    """Description is empty."""


class InvalidCategory(ValidationError):
    """Category reference is empty."""


class InvalidDateRange(ValidationError):
    """End date lies before the start date."""


class InvalidFrequency(ValidationError):
    """Frequency is not one of the supported values."""


class InvalidKind(ValidationError):
    """Kind is neither expense nor income."""


class NotFound(RecurringError, KeyError):
    """No definition with the requested id."""

    def __str__(self) -> str:
        return f"Recurring definition not found: {self.args[0]}"


class TransactionKind(str, Enum):
    """Which ledger sink a definition feeds."""

    EXPENSE = "expense"
    INCOME = "income"


@dataclass(frozen=True)
class RecurringDefinition:
    """Immutable recurring transaction definition."""

    id: DefinitionId
    kind: TransactionKind
    category_id: CategoryId
    amount: Amount
    description: str
    frequency: Frequency
    start_date: date
    end_date: date | None = None
    anchor: date | None = None  # last materialized occurrence ("lastProcessed")
    is_active: bool = True
    created_at: datetime | None = None


@dataclass(frozen=True)
class DefinitionSpec:
    """Fields supplied when creating a definition."""

    kind: TransactionKind | str
    category_id: str
    amount: Decimal | str | float | int
    description: str
    frequency: Frequency | str
    start_date: date
    end_date: date | None = None


@dataclass(frozen=True)
class DefinitionPatch:
    """Partial update; None leaves a field unchanged."""

    kind: TransactionKind | str | None = None
    category_id: str | None = None
    amount: Decimal | str | float | int | None = None
    description: str | None = None
    frequency: Frequency | str | None = None
    start_date: date | None = None
    end_date: date | None = None
    clear_end_date: bool = False


def new_definition_id() -> DefinitionId:
    """Generate a fresh opaque definition id."""
    return DefinitionId(f"rt_{uuid4().hex}")


def parse_amount(value: Decimal | str | float | int) -> Amount:
    """Convert user or stored input to a positive Decimal amount.

    Raises:
        InvalidAmount: If the value is not a finite number greater than zero.
    """
    if isinstance(value, bool):
        raise InvalidAmount(f"Invalid amount: {value!r}")
    try:
        # str() first so floats like 15.99 keep their printed value
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Invalid amount: {value!r}") from None
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmount(f"Amount must be greater than zero, got {value}")
    return Amount(amount)


def parse_kind(value: TransactionKind | str) -> TransactionKind:
    """Parse an expense/income tag.

    Raises:
        InvalidKind: If the tag is unknown.
    """
    try:
        return TransactionKind(value)
    except ValueError:
        raise InvalidKind(f"Kind must be 'expense' or 'income', got {value!r}") from None


def parse_definition_frequency(value: Frequency | str) -> Frequency:
    """Parse a frequency tag.

    Raises:
        InvalidFrequency: If the tag is unknown.
    """
    try:
        return Frequency(value)
    except ValueError:
        raise InvalidFrequency(f"Unknown frequency: {value!r}") from None


def _check_text(description: str, category_id: str) -> None:
    if not description or not description.strip():
        raise InvalidDescription("Description cannot be empty")
    if not category_id or not category_id.strip():
        raise InvalidCategory("Category cannot be empty")


def _check_range(start_date: date, end_date: date | None) -> None:
    if end_date is not None and end_date < start_date:
        raise InvalidDateRange(
            f"End date {format_iso_date(end_date)} is before start date {format_iso_date(start_date)}"
        )


def build_definition(
    spec: DefinitionSpec,
    definition_id: DefinitionId | None = None,
    created_at: datetime | None = None,
) -> RecurringDefinition:
    """Validate a spec and build a new, never-processed definition.

    Args:
        spec: Creation fields.
        definition_id: Id to use. A fresh one is generated if None.
        created_at: Creation timestamp. Defaults to now (UTC).

    Returns:
        The new definition.

    Raises:
        ValidationError: If any field is invalid.
    """
    amount = parse_amount(spec.amount)
    _check_text(spec.description, spec.category_id)
    _check_range(spec.start_date, spec.end_date)

    return RecurringDefinition(
        id=definition_id or new_definition_id(),
        kind=parse_kind(spec.kind),
        category_id=CategoryId(spec.category_id.strip()),
        amount=amount,
        description=spec.description.strip(),
        frequency=parse_definition_frequency(spec.frequency),
        start_date=spec.start_date,
        end_date=spec.end_date,
        anchor=None,
        is_active=True,
        created_at=created_at or datetime.now(timezone.utc),
    )


def rebase_anchor(
    anchor: date | None,
    start_date: date,
    frequency: Frequency,
) -> date | None:
    """Move an anchor onto a (possibly changed) schedule.

    The result is the latest occurrence of the schedule that is on or
    before the old anchor, so dates already covered are not produced again.
    """
    if anchor is None:
        return None
    return latest_occurrence_on_or_before(start_date, frequency, anchor)


def apply_patch(definition: RecurringDefinition, patch: DefinitionPatch) -> RecurringDefinition:
    """Apply a validated partial update to a definition.

    When the start date or frequency changes the anchor is re-based onto
    the new schedule (see `rebase_anchor`).

    Raises:
        ValidationError: If the patched definition is invalid.
    """
    kind = parse_kind(patch.kind) if patch.kind is not None else definition.kind
    amount = parse_amount(patch.amount) if patch.amount is not None else definition.amount
    frequency = (
        parse_definition_frequency(patch.frequency) if patch.frequency is not None else definition.frequency
    )
    description = patch.description if patch.description is not None else definition.description
    category_id = patch.category_id if patch.category_id is not None else definition.category_id
    start_date = patch.start_date or definition.start_date
    end_date = None if patch.clear_end_date else (patch.end_date or definition.end_date)

    _check_text(description, category_id)
    _check_range(start_date, end_date)

    anchor = definition.anchor
    if start_date != definition.start_date or frequency != definition.frequency:
        anchor = rebase_anchor(anchor, start_date, frequency)

    return replace(
        definition,
        kind=kind,
        category_id=CategoryId(category_id.strip()),
        amount=amount,
        description=description.strip(),
        frequency=frequency,
        start_date=start_date,
        end_date=end_date,
        anchor=anchor,
    )


def toggle(definition: RecurringDefinition, today: date) -> RecurringDefinition:
    """Flip a definition between paused and active.

    Reactivation skips the paused window: the anchor moves to the latest
    occurrence on or before `today`, and never backwards.
    """
    if definition.is_active:
        return replace(definition, is_active=False)

    anchor = definition.anchor
    resumed = latest_occurrence_on_or_before(definition.start_date, definition.frequency, today)
    if resumed is not None and (anchor is None or resumed > anchor):
        anchor = resumed
    return replace(definition, is_active=True, anchor=anchor)


def to_record(definition: RecurringDefinition) -> dict[str, Any]:
    """Serialize a definition to its persisted JSON shape."""
    return {
        "id": definition.id,
        "kind": definition.kind.value,
        "categoryId": definition.category_id,
        "amount": str(definition.amount),
        "description": definition.description,
        "frequency": definition.frequency.value,
        "startDate": format_iso_date(definition.start_date),
        "endDate": format_iso_date(definition.end_date) if definition.end_date else None,
        "lastProcessed": format_iso_date(definition.anchor) if definition.anchor else None,
        "isActive": definition.is_active,
        "createdAt": definition.created_at.isoformat() if definition.created_at else None,
    }


def _optional_date(value: Any) -> date | None:
    if value in (None, ""):
        return None
    return parse_iso_date(str(value))


def _active_flag(record: dict[str, Any]) -> bool:
    value = record.get("isActive", True)
    if not isinstance(value, bool):
        raise ValueError(f"isActive must be true or false, got {value!r}")
    return value


def from_record(record: dict[str, Any]) -> RecurringDefinition:
    """Deserialize one persisted record.

    Accepts the older `type` key in place of `kind` and numeric amounts.

    Raises:
        ValueError: If the record is malformed or fails validation.
        KeyError: If a required key is missing.
    """
    if not isinstance(record, dict):
        raise ValueError(f"Expected an object, got {type(record).__name__}")

    kind = record.get("kind", record.get("type"))
    start_date = parse_iso_date(str(record["startDate"]))
    end_date = _optional_date(record.get("endDate"))
    _check_text(str(record.get("description", "")), str(record.get("categoryId", "")))
    _check_range(start_date, end_date)

    created_raw = record.get("createdAt")
    created_at = datetime.fromisoformat(str(created_raw).replace("Z", "+00:00")) if created_raw else None

    return RecurringDefinition(
        id=DefinitionId(str(record["id"])),
        kind=parse_kind(kind),
        category_id=CategoryId(str(record["categoryId"])),
        amount=parse_amount(record["amount"]),
        description=str(record["description"]),
        frequency=parse_definition_frequency(record["frequency"]),
        start_date=start_date,
        end_date=end_date,
        anchor=_optional_date(record.get("lastProcessed")),
        is_active=_active_flag(record),
        created_at=created_at,
    )


def from_legacy_record(record: dict[str, Any]) -> RecurringDefinition:
    """Convert a record of the older expense-only repeater.

    Legacy records carry `nextDueDate` instead of an anchor. The anchor
    becomes the occurrence just before `nextDueDate`, or None when the
    first occurrence is still pending.

    Raises:
        ValueError: If the record is malformed.
        KeyError: If a required key is missing.
    """
    start_date = parse_iso_date(str(record["startDate"]))
    frequency = parse_definition_frequency(record["frequency"])
    next_due = _optional_date(record.get("nextDueDate")) or start_date

    anchor = _previous_occurrence(start_date, frequency, next_due)

    description = str(record.get("description") or "").strip() or "Recurring Expense"
    definition = build_definition(
        DefinitionSpec(
            kind=TransactionKind.EXPENSE,
            category_id=str(record.get("categoryId", "")),
            amount=record["amount"],
            description=description,
            frequency=frequency,
            start_date=start_date,
        ),
        definition_id=DefinitionId(str(record["id"])),
    )
    return replace(definition, anchor=anchor, is_active=_active_flag(record))


def _previous_occurrence(start_date: date, frequency: Frequency, before: date) -> date | None:
    """Last chained occurrence strictly before `before`."""
    previous = None
    current = start_date
    while current < before:
        previous = current
        current = step(current, frequency, start_date.day)
    return previous
