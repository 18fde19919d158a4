"""Tests for ledgerloop.processor.CatchUpProcessor."""

from datetime import date, datetime, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

from ledgerloop.domain.definitions import DefinitionPatch, DefinitionSpec, TransactionKind
from ledgerloop.domain.models import TransactionId
from ledgerloop.processor import CatchUpProcessor
from ledgerloop.store.definitions import RecurringDefinitionStore
from ledgerloop.store.kv import MemoryKeyValueStore, SqliteKeyValueStore
from ledgerloop.store.ledger import LedgerEntry, LedgerError, SqliteLedger
from ledgerloop.store.schema import init_database


class RecordingLedger:
    """In-memory ledger that can be told to fail on specific dates."""

    def __init__(self) -> None:
        self.entries: list[tuple[str, LedgerEntry]] = []
        self.fail_on: set[date] = set()
        self.before_create = None

    def create_expense(self, entry: LedgerEntry) -> TransactionId:
        return self._record("expense", entry)

    def create_income(self, entry: LedgerEntry) -> TransactionId:
        return self._record("income", entry)

    def _record(self, kind: str, entry: LedgerEntry) -> TransactionId:
        if self.before_create is not None:
            self.before_create(entry)
        if entry.date in self.fail_on:
            raise LedgerError(f"disk full on {entry.date}")
        self.entries.append((kind, entry))
        return TransactionId(f"{kind[:3]}_{len(self.entries)}")

    @property
    def dates(self) -> list[date]:
        return [entry.date for _, entry in self.entries]


def make_spec(**overrides) -> DefinitionSpec:
    fields = {
        "kind": "expense",
        "category_id": "subscriptions",
        "amount": "15.99",
        "description": "Streaming",
        "frequency": "monthly",
        "start_date": date(2024, 1, 1),
    }
    fields.update(overrides)
    return DefinitionSpec(**fields)


@pytest.fixture
def store() -> RecurringDefinitionStore:
    return RecurringDefinitionStore(MemoryKeyValueStore())


@pytest.fixture
def ledger() -> RecordingLedger:
    return RecordingLedger()


@pytest.fixture
def processor(store: RecurringDefinitionStore, ledger: RecordingLedger) -> CatchUpProcessor:
    return CatchUpProcessor(store, ledger)


class TestProcess:
    """Tests for process."""

    def test_monthly_subscription_scenario(self, store, ledger, processor) -> None:
        """Should create Jan, Feb and Mar entries for a 15.99 monthly expense."""
        definition_id = store.create(make_spec())

        result = processor.process(date(2024, 3, 15))

        assert [o.date for o in result.materialized] == [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1)]
        assert result.failures == []
        assert all(o.amount == Decimal("15.99") for o in result.materialized)
        assert all(o.kind is TransactionKind.EXPENSE for o in result.materialized)
        assert [kind for kind, _ in ledger.entries] == ["expense"] * 3
        assert store.get(definition_id).anchor == date(2024, 3, 1)

    def test_month_end_clamp(self, store, ledger, processor) -> None:
        """Should materialize Jan 31, Feb 29 and Mar 31 in a leap year."""
        definition_id = store.create(make_spec(start_date=date(2024, 1, 31)))

        processor.process(date(2024, 4, 1))

        assert ledger.dates == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)]
        assert store.get(definition_id).anchor == date(2024, 3, 31)

    def test_idempotent(self, store, ledger, processor) -> None:
        """Should materialize nothing on a second call with the same now."""
        store.create(make_spec(frequency="daily"))
        processor.process(date(2024, 1, 10))

        second = processor.process(date(2024, 1, 10))

        assert second.materialized == []
        assert len(ledger.entries) == 10

    def test_catches_up_incrementally(self, store, ledger, processor) -> None:
        """Should only add the newly due occurrences on later calls."""
        store.create(make_spec(frequency="weekly"))
        processor.process(date(2024, 1, 10))

        result = processor.process(date(2024, 1, 31))

        assert [o.date for o in result.materialized] == [date(2024, 1, 15), date(2024, 1, 22), date(2024, 1, 29)]

    def test_end_date_bound(self, store, ledger, processor) -> None:
        """Should stop one day before the third weekly occurrence."""
        store.create(make_spec(frequency="weekly", end_date=date(2024, 1, 14)))

        result = processor.process(date(2024, 3, 1))

        assert [o.date for o in result.materialized] == [date(2024, 1, 1), date(2024, 1, 8)]

    def test_future_start_does_nothing(self, store, ledger, processor) -> None:
        """Should not materialize anything before the start date."""
        definition_id = store.create(make_spec(start_date=date(2024, 6, 1)))

        result = processor.process(date(2024, 5, 31))

        assert result.materialized == []
        assert store.get(definition_id).anchor is None

    def test_income_uses_income_sink(self, store, ledger, processor) -> None:
        """Should route income definitions to create_income."""
        store.create(make_spec(kind="income", amount="2500", description="Salary"))

        processor.process(date(2024, 1, 1))

        assert ledger.entries[0][0] == "income"
        assert ledger.entries[0][1].description == "Salary"

    def test_accepts_datetime(self, store, ledger, processor) -> None:
        """Should treat a datetime as its date."""
        store.create(make_spec())

        result = processor.process(datetime(2024, 2, 1, 23, 30))

        assert [o.date for o in result.materialized] == [date(2024, 1, 1), date(2024, 2, 1)]

    def test_inactive_definitions_are_skipped(self, store, ledger, processor) -> None:
        """Should ignore paused definitions entirely."""
        definition_id = store.create(make_spec())
        store.toggle_active(definition_id, date(2024, 1, 1))

        assert processor.process(date(2024, 6, 1)).materialized == []

    def test_definitions_are_independent(self, store, ledger, processor) -> None:
        """Should process every active definition in one pass."""
        store.create(make_spec(description="A"))
        store.create(make_spec(description="B", frequency="yearly", start_date=date(2023, 2, 1)))

        result = processor.process(date(2024, 2, 1))

        descriptions = sorted(o.description for o in result.materialized)
        assert descriptions == ["A", "A", "B", "B"]


class TestPauseResume:
    """Tests for pausing and resuming a definition."""

    def test_paused_window_is_not_caught_up(self, store, ledger, processor) -> None:
        """Should produce nothing for the 30 days a definition was paused."""
        definition_id = store.create(make_spec(frequency="daily"))
        paused_on = date(2024, 1, 10)
        processor.process(paused_on)
        store.toggle_active(definition_id, paused_on)

        resumed_on = paused_on + timedelta(days=30)
        store.toggle_active(definition_id, resumed_on)
        result = processor.process(resumed_on)

        assert result.materialized == []
        assert store.get(definition_id).anchor == resumed_on

    def test_resumed_definition_continues(self, store, ledger, processor) -> None:
        """Should pick up again with the first occurrence after resuming."""
        definition_id = store.create(make_spec())
        processor.process(date(2024, 1, 5))
        store.toggle_active(definition_id, date(2024, 1, 5))
        store.toggle_active(definition_id, date(2024, 4, 10))

        result = processor.process(date(2024, 5, 2))

        assert [o.date for o in result.materialized] == [date(2024, 5, 1)]


class TestPartialFailure:
    """Tests for ledger failures during catch-up."""

    def test_failure_stops_definition_and_retries_later(self, store, ledger, processor) -> None:
        """Should keep the anchor on the last success and retry the rest next time."""
        definition_id = store.create(make_spec())
        ledger.fail_on = {date(2024, 2, 1)}

        first = processor.process(date(2024, 3, 15))

        assert [o.date for o in first.materialized] == [date(2024, 1, 1)]
        assert [(f.definition_id, f.date) for f in first.failures] == [(definition_id, date(2024, 2, 1))]
        assert store.get(definition_id).anchor == date(2024, 1, 1)

        ledger.fail_on = set()
        second = processor.process(date(2024, 3, 15))

        assert [o.date for o in second.materialized] == [date(2024, 2, 1), date(2024, 3, 1)]
        assert second.failures == []
        assert ledger.dates == [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1)]

    def test_failure_on_first_occurrence_leaves_anchor_empty(self, store, ledger, processor) -> None:
        """Should not touch the anchor if nothing succeeded."""
        definition_id = store.create(make_spec())
        ledger.fail_on = {date(2024, 1, 1)}

        result = processor.process(date(2024, 3, 15))

        assert result.materialized == []
        assert len(result.failures) == 1
        assert store.get(definition_id).anchor is None

    def test_failure_does_not_block_other_definitions(self, store, ledger, processor) -> None:
        """Should carry on with the next definition after a failure."""
        store.create(make_spec(description="Broken", start_date=date(2024, 3, 1)))
        store.create(make_spec(description="Fine", frequency="daily", start_date=date(2024, 3, 2)))
        ledger.fail_on = {date(2024, 3, 1)}

        result = processor.process(date(2024, 3, 3))

        assert [o.date for o in result.materialized] == [date(2024, 3, 2), date(2024, 3, 3)]
        assert len(result.failures) == 1


class TestConcurrency:
    """Tests for leases and anchor compare-and-swap."""

    def test_leased_definition_is_skipped(self, store, ledger, processor) -> None:
        """Should leave a definition alone while another pass holds its lease."""
        definition_id = store.create(make_spec())
        assert store.acquire_lease(definition_id, "other-pass")

        result = processor.process(date(2024, 3, 15))

        assert result.materialized == []
        assert ledger.entries == []

    def test_lease_released_after_pass(self, store, ledger, processor) -> None:
        """Should release its lease so later passes can run."""
        definition_id = store.create(make_spec())
        processor.process(date(2024, 1, 1))

        assert store.acquire_lease(definition_id, "next-pass")

    def test_anchor_moved_behind_pass_is_followed(self, store, ledger, processor) -> None:
        """Should advance past a concurrent anchor write and never repeat a date."""
        definition_id = store.create(make_spec())

        def concurrent_writer(entry: LedgerEntry) -> None:
            ledger.before_create = None
            store.advance_anchor(definition_id, None, date(2024, 1, 1))

        ledger.before_create = concurrent_writer

        first = processor.process(date(2024, 2, 15))
        second = processor.process(date(2024, 2, 15))

        assert [o.date for o in first.materialized] == [date(2024, 1, 1), date(2024, 2, 1)]
        assert first.failures == []
        assert store.get(definition_id).anchor == date(2024, 2, 1)
        assert second.materialized == []
        assert ledger.dates.count(date(2024, 2, 1)) == 1

    def test_anchor_already_past_pass_is_reported(self, store, ledger, processor) -> None:
        """Should report a failure and keep the newer anchor when another writer got further."""
        definition_id = store.create(make_spec())

        def concurrent_writer(entry: LedgerEntry) -> None:
            ledger.before_create = None
            store.advance_anchor(definition_id, None, date(2024, 2, 1))

        ledger.before_create = concurrent_writer

        result = processor.process(date(2024, 1, 15))

        assert len(result.failures) == 1
        assert "Anchor" in result.failures[0].reason
        assert store.get(definition_id).anchor == date(2024, 2, 1)

    def test_edit_during_pass_does_not_repeat_dates(self, store, ledger, processor) -> None:
        """Should keep its progress when an edit rebases the anchor mid-pass."""
        definition_id = store.create(make_spec(frequency="weekly"))
        processor.process(date(2024, 1, 8))

        def concurrent_edit(entry: LedgerEntry) -> None:
            ledger.before_create = None
            store.update(definition_id, DefinitionPatch(frequency="biweekly"))

        ledger.before_create = concurrent_edit

        processor.process(date(2024, 1, 22))
        again = processor.process(date(2024, 1, 22))

        assert again.materialized == []
        assert len(ledger.dates) == len(set(ledger.dates))
        assert store.get(definition_id).anchor == date(2024, 1, 22)

    def test_two_processors_share_a_database(self, tmp_path: Path) -> None:
        """Should materialize each occurrence once across two processors on one file."""
        db_path = tmp_path / "shared.db"
        init_database(db_path)
        first = CatchUpProcessor(RecurringDefinitionStore(SqliteKeyValueStore(db_path)), SqliteLedger(db_path))
        second = CatchUpProcessor(RecurringDefinitionStore(SqliteKeyValueStore(db_path)), SqliteLedger(db_path))
        first.store.create(make_spec())

        a = first.process(date(2024, 3, 15))
        b = second.process(date(2024, 3, 15))

        assert len(a.materialized) == 3
        assert b.materialized == []
        assert len(SqliteLedger(db_path).list_entries()) == 3
