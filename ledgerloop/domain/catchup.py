"""Pure functions for catch-up planning.

This module contains the functional core for working out which
occurrences of a definition are due:
- No I/O operations (no database, no console, no files)
- No side effects
- Easy to test

The processor materializes what `due_dates` returns; nothing here touches
the ledger or the store.
"""

from dataclasses import dataclass, field
from datetime import date

from ledgerloop.domain.definitions import RecurringDefinition, TransactionKind
from ledgerloop.domain.models import Amount, CategoryId, DefinitionId, TransactionId
from ledgerloop.domain.recurrence import step


@dataclass(frozen=True)
class Occurrence:
    """One materialized occurrence of a recurring definition."""

    definition_id: DefinitionId
    kind: TransactionKind
    category_id: CategoryId
    amount: Amount
    description: str
    date: date
    transaction_id: TransactionId


@dataclass(frozen=True)
class Failure:
    """An occurrence that could not be materialized in this pass."""

    definition_id: DefinitionId
    date: date | None
    reason: str


@dataclass
class ProcessResult:
    """Outcome of one catch-up pass."""

    materialized: list[Occurrence] = field(default_factory=list)
    failures: list[Failure] = field(default_factory=list)


def first_pending(definition: RecurringDefinition) -> date:
    """Return the first occurrence not yet materialized, ignoring end date."""
    if definition.anchor is None:
        return definition.start_date
    return step(definition.anchor, definition.frequency, definition.start_date.day)


def next_due(definition: RecurringDefinition) -> date | None:
    """Return the next occurrence to be materialized.

    Returns:
        The date, or None if the schedule has ended.
    """
    candidate = first_pending(definition)
    if definition.end_date is not None and candidate > definition.end_date:
        return None
    return candidate


def due_dates(definition: RecurringDefinition, now: date) -> list[date]:
    """List every unmaterialized occurrence due on or before `now`.

    A definition that was never processed starts with its start date. Each
    following candidate is one step after the previous; the walk stops at
    `now` or at the end date, whichever comes first.

    Args:
        definition: The definition to plan for.
        now: Current date; occurrences after it are not due yet.

    Returns:
        Due dates in ascending order. Empty for inactive definitions.
    """
    if not definition.is_active:
        return []

    limit = now
    if definition.end_date is not None and definition.end_date < limit:
        limit = definition.end_date

    dates: list[date] = []
    candidate = first_pending(definition)
    while candidate <= limit:
        dates.append(candidate)
        candidate = step(candidate, definition.frequency, definition.start_date.day)
    return dates
