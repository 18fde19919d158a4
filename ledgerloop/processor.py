"""Catch-up processing of recurring definitions.

`CatchUpProcessor.process(now)` is called whenever the application is
activated. For each active definition it materializes every occurrence
due on or before `now` that has not been materialized yet, then moves the
definition's anchor to the last one that succeeded.

Guarantees:
- Idempotent: a second call with the same `now` materializes nothing.
- Nothing is lost: a ledger failure stops that definition's pass and the
  anchor stays on the last successful date, so the next call retries.
- At most once: a per-definition lease plus a compare-and-swap on the
  anchor keep two concurrent passes from producing the same occurrence.
"""

from datetime import date, datetime, timezone
from uuid import uuid4

from ledgerloop.dates import as_date
from ledgerloop.domain.catchup import Failure, Occurrence, ProcessResult, due_dates
from ledgerloop.domain.definitions import NotFound, RecurringDefinition, RecurringError, TransactionKind
from ledgerloop.log import get_logger
from ledgerloop.store.definitions import MAX_WRITE_ATTEMPTS, AnchorConflict, RecurringDefinitionStore
from ledgerloop.store.ledger import LedgerEntry, LedgerError, LedgerSink

logger = get_logger(__name__)


class CatchUpProcessor:
    """Turns due occurrences into ledger entries."""

    def __init__(self, store: RecurringDefinitionStore, ledger: LedgerSink) -> None:
        self.store = store
        self.ledger = ledger

    def process(self, now: date | datetime) -> ProcessResult:
        """Materialize every due occurrence of every active definition.

        Args:
            now: Current date (a datetime is truncated to its date).

        Returns:
            The occurrences materialized and the failures encountered.
        """
        today = as_date(now)
        token = uuid4().hex
        result = ProcessResult()

        for definition in self.store.list_definitions():
            if not definition.is_active:
                continue
            self._process_one(definition.id, today, token, result)

        logger.info(
            "Catch-up for %s: %d materialized, %d failed",
            today.isoformat(),
            len(result.materialized),
            len(result.failures),
        )
        return result

    def _process_one(self, definition_id: str, today: date, token: str, result: ProcessResult) -> None:
        if not self.store.acquire_lease(definition_id, token, datetime.now(timezone.utc)):
            logger.info("Definition %s is being processed elsewhere; skipping", definition_id)
            return

        try:
            # Re-read under the lease; the definition may have changed meanwhile
            try:
                definition = self.store.get(definition_id)
            except NotFound:
                return

            materialized: list[Occurrence] = []
            for due in due_dates(definition, today):
                try:
                    materialized.append(self._materialize(definition, due))
                except LedgerError as e:
                    logger.warning("Ledger rejected %s on %s: %s", definition.id, due.isoformat(), e)
                    result.failures.append(Failure(definition.id, due, str(e)))
                    break

            if not materialized:
                return

            try:
                self._advance_anchor(definition, materialized[-1].date)
            except RecurringError as e:
                logger.error("Could not advance anchor of %s: %s", definition.id, e)
                result.failures.append(Failure(definition.id, materialized[-1].date, str(e)))
            result.materialized.extend(materialized)
        finally:
            self.store.release_lease(definition_id, token)

    def _advance_anchor(self, definition: RecurringDefinition, last: date) -> None:
        """Move the anchor to `last`, following writes made by others meanwhile.

        Raises:
            AnchorConflict: If the anchor already reached `last` elsewhere.
        """
        expected = definition.anchor
        for _ in range(MAX_WRITE_ATTEMPTS):
            try:
                self.store.advance_anchor(definition.id, expected, last)
                return
            except AnchorConflict:
                current = self.store.get(definition.id).anchor
                if current is not None and current >= last:
                    raise
                logger.warning(
                    "Anchor of %s moved to %s during the pass; advancing it to %s",
                    definition.id,
                    current,
                    last.isoformat(),
                )
                expected = current

        raise AnchorConflict(f"Anchor of {definition.id} kept changing; gave up after {MAX_WRITE_ATTEMPTS} attempts")

    def _materialize(self, definition: RecurringDefinition, due: date) -> Occurrence:
        entry = LedgerEntry(
            category_id=definition.category_id,
            amount=definition.amount,
            description=definition.description,
            date=due,
        )
        if definition.kind is TransactionKind.EXPENSE:
            transaction_id = self.ledger.create_expense(entry)
        else:
            transaction_id = self.ledger.create_income(entry)

        return Occurrence(
            definition_id=definition.id,
            kind=definition.kind,
            category_id=definition.category_id,
            amount=definition.amount,
            description=definition.description,
            date=due,
            transaction_id=transaction_id,
        )
