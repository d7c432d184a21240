"""Tests for the mutation flow (validate → store → re-list → re-aggregate)."""

import asyncio
import pytest
from datetime import date, datetime
from decimal import Decimal

from src.ledger import NothingToExportError
from src.models.audit import AuditEventType
from src.models.transaction import Category, TransactionDraft, TransactionType
from src.orchestrator import MutationCoordinator
from src.services.storage import (
    InMemoryTransactionStorage,
    NotFoundError,
    StorageError,
)
from src.validation import TransactionValidationError


class RecordingStorage(InMemoryTransactionStorage):
    """In-memory store that records the order of calls."""

    def __init__(self, transactions=None):
        super().__init__(transactions)
        self.calls: list[str] = []
        self.fail_listing = False

    async def list_transactions(self):
        self.calls.append("list")
        if self.fail_listing:
            raise StorageError("listing unavailable")
        return await super().list_transactions()

    async def create_transaction(self, fields):
        self.calls.append("create")
        return await super().create_transaction(fields)

    async def update_transaction(self, transaction_id, fields):
        self.calls.append("update")
        return await super().update_transaction(transaction_id, fields)

    async def delete_transaction(self, transaction_id):
        self.calls.append("delete")
        return await super().delete_transaction(transaction_id)

    async def delete_all_transactions(self):
        self.calls.append("delete_all")
        return await super().delete_all_transactions()


class HeldListingStorage(InMemoryTransactionStorage):
    """In-memory store whose next listing waits until released."""

    def __init__(self, transactions=None):
        super().__init__(transactions)
        self.release = asyncio.Event()
        self.hold_next = False

    async def list_transactions(self):
        listing = await super().list_transactions()
        if self.hold_next:
            self.hold_next = False
            await self.release.wait()
        return listing


@pytest.fixture
def recording_store(make_transaction):
    return RecordingStorage([
        make_transaction("75.50", "Food & Dining", datetime(2024, 3, 2), id="food"),
        make_transaction("2000", "Income", datetime(2024, 3, 1), id="salary"),
    ])


@pytest.fixture
def recording_coordinator(recording_store, validator, audit_logger):
    return MutationCoordinator(
        storage=recording_store,
        validator=validator,
        audit_logger=audit_logger,
    )


def event_types(audit_storage) -> list[AuditEventType]:
    return [e.event_type for e in audit_storage.events]


class TestRefresh:
    """Tests for listing and aggregation."""

    async def test_initial_snapshot_is_empty(self, coordinator):
        """Test the state before the first listing."""
        assert coordinator.snapshot.is_empty
        assert coordinator.summary.totals.balance == 0

    async def test_refresh_rebuilds_summary(self, recording_coordinator):
        """Test that a listing replaces the snapshot and its aggregates."""
        snapshot = await recording_coordinator.refresh()

        assert snapshot.count == 2
        assert [t.id for t in snapshot.transactions] == ["food", "salary"]
        assert recording_coordinator.summary.totals.balance == Decimal("1924.50")

    async def test_failed_refresh_keeps_snapshot(self, recording_coordinator, recording_store):
        """Test that a failed listing leaves the previous snapshot in place."""
        before = await recording_coordinator.refresh()
        recording_store.fail_listing = True

        with pytest.raises(StorageError):
            await recording_coordinator.refresh()

        assert recording_coordinator.snapshot is before

    async def test_stale_listing_discarded(self, make_transaction, validator):
        """Test that an overtaken listing is never applied."""
        store = HeldListingStorage([make_transaction("10", "Travel", id="old")])
        coordinator = MutationCoordinator(storage=store, validator=validator)

        store.hold_next = True
        slow = asyncio.create_task(coordinator.refresh())
        await asyncio.sleep(0)  # slow listing is now waiting

        await store.create_transaction(
            make_transaction("20", "Shopping", id="new").to_fields()
        )
        fresh = await coordinator.refresh()
        assert fresh.count == 2

        store.release.set()
        result = await slow

        assert result is fresh
        assert coordinator.snapshot.count == 2


class TestCreate:
    """Tests for adding transactions."""

    async def test_create_then_relist(self, recording_coordinator, recording_store, audit_storage):
        """Test store create followed by exactly one full listing."""
        draft = TransactionDraft(
            amount="120",
            category="Shopping",
            date=datetime(2024, 3, 5),
            note="Shoes",
        )

        transaction = await recording_coordinator.create(draft)

        assert recording_store.calls == ["create", "list"]
        assert transaction.id
        assert transaction.type == TransactionType.EXPENSE
        assert recording_coordinator.snapshot.count == 3
        assert recording_coordinator.snapshot.transactions[0].id == transaction.id
        assert recording_coordinator.summary.totals.expense == Decimal("195.50")
        assert AuditEventType.TRANSACTION_CREATED in event_types(audit_storage)

    async def test_create_from_dict(self, coordinator):
        """Test that a plain dict is accepted as a draft."""
        transaction = await coordinator.create(
            {"amount": "2000", "category": "Income", "date": date(2024, 3, 1)}
        )
        assert transaction.type == TransactionType.INCOME
        assert coordinator.summary.totals.income == Decimal("2000")

    async def test_invalid_draft_never_reaches_store(
        self, recording_coordinator, recording_store, audit_storage
    ):
        """Test that validation runs before any store call."""
        for amount in ("-5", "0", "abc", "", "NaN"):
            with pytest.raises(TransactionValidationError):
                await recording_coordinator.create(
                    TransactionDraft(amount=amount, category="Shopping")
                )

        with pytest.raises(TransactionValidationError):
            await recording_coordinator.create(TransactionDraft(amount="5", category=""))

        assert recording_store.calls == []
        assert AuditEventType.VALIDATION_FAILED in event_types(audit_storage)

    async def test_store_failure_keeps_snapshot(self, recording_coordinator, recording_store):
        """Test that a failed create leaves the snapshot untouched."""
        before = await recording_coordinator.refresh()
        recording_store.available = False

        with pytest.raises(StorageError):
            await recording_coordinator.create(
                TransactionDraft(amount="5", category="Travel")
            )

        assert recording_coordinator.snapshot is before

    async def test_relist_failure_after_create(
        self, recording_coordinator, recording_store, audit_storage
    ):
        """Test that a failed re-list surfaces and keeps the old snapshot."""
        before = await recording_coordinator.refresh()
        recording_store.fail_listing = True

        with pytest.raises(StorageError):
            await recording_coordinator.create(
                TransactionDraft(amount="5", category="Travel")
            )

        assert recording_coordinator.snapshot is before
        assert AuditEventType.MUTATION_FAILED in event_types(audit_storage)


class TestUpdate:
    """Tests for editing transactions."""

    async def test_update_rederives_type(self, recording_coordinator, recording_store):
        """Test full replace with the type derived from the new category."""
        await recording_coordinator.refresh()
        recording_store.calls.clear()

        updated = await recording_coordinator.update(
            "food",
            TransactionDraft(amount="80", category="Income", date=datetime(2024, 3, 2)),
        )

        assert recording_store.calls == ["update", "list"]
        assert updated.id == "food"
        assert updated.type == TransactionType.INCOME
        assert recording_coordinator.summary.totals.income == Decimal("2080")
        assert recording_coordinator.summary.totals.expense == 0

    async def test_update_keeps_unknown_label(self, make_transaction, validator):
        """Test that re-saving a non-standard category leaves it as stored."""
        store = InMemoryTransactionStorage([make_transaction("40", "Pets", id="pet")])
        coordinator = MutationCoordinator(storage=store, validator=validator)
        original = (await coordinator.refresh()).transactions[0]

        updated = await coordinator.update(
            "pet",
            TransactionDraft(
                amount="45",
                category=Category.choices(original.category)[-1],
                date=original.date,
            ),
        )

        assert updated.category == "Pets"
        assert coordinator.summary.totals.expense == Decimal("45")
        assert coordinator.summary.breakdown == ()

    async def test_update_unknown_id(self, recording_coordinator, recording_store):
        """Test that updating a missing transaction fails without re-listing."""
        before = await recording_coordinator.refresh()
        recording_store.calls.clear()

        with pytest.raises(NotFoundError):
            await recording_coordinator.update(
                "missing",
                TransactionDraft(amount="80", category="Travel"),
            )

        assert recording_store.calls == ["update"]
        assert recording_coordinator.snapshot is before


class TestDelete:
    """Tests for deleting transactions."""

    async def test_delete_then_relist(self, recording_coordinator, recording_store, audit_storage):
        """Test that a confirmed delete is followed by a listing."""
        await recording_coordinator.refresh()
        recording_store.calls.clear()

        snapshot = await recording_coordinator.delete("food")

        assert recording_store.calls == ["delete", "list"]
        assert [t.id for t in snapshot.transactions] == ["salary"]
        assert recording_coordinator.summary.breakdown == ()
        assert AuditEventType.TRANSACTION_DELETED in event_types(audit_storage)

    async def test_delete_unknown_id_keeps_snapshot(
        self, recording_coordinator, recording_store, audit_storage
    ):
        """Test that deleting a missing id fails and never re-lists."""
        before = await recording_coordinator.refresh()
        recording_store.calls.clear()

        with pytest.raises(StorageError):
            await recording_coordinator.delete("missing")

        assert recording_store.calls == ["delete"]
        assert recording_coordinator.snapshot is before
        assert AuditEventType.MUTATION_FAILED in event_types(audit_storage)

    async def test_delete_store_unavailable(self, recording_coordinator, recording_store):
        """Test that a store failure keeps the snapshot."""
        before = await recording_coordinator.refresh()
        recording_store.available = False

        with pytest.raises(StorageError):
            await recording_coordinator.delete("food")

        assert recording_coordinator.snapshot is before


class TestClearAll:
    """Tests for deleting every transaction."""

    async def test_declined_confirmation_makes_no_store_call(
        self, recording_coordinator, recording_store, audit_storage
    ):
        """Test that nothing is dispatched without confirmation."""
        before = await recording_coordinator.refresh()
        recording_store.calls.clear()

        result = await recording_coordinator.clear_all(confirm=lambda: False)

        assert result is None
        assert recording_store.calls == []
        assert recording_coordinator.snapshot is before
        assert AuditEventType.CLEAR_DECLINED in event_types(audit_storage)

    async def test_confirmed_clear(self, recording_coordinator, recording_store, audit_storage):
        """Test delete-all followed by a listing."""
        await recording_coordinator.refresh()
        recording_store.calls.clear()

        result = await recording_coordinator.clear_all(confirm=lambda: True)

        assert result == 2
        assert recording_store.calls == ["delete_all", "list"]
        assert recording_coordinator.snapshot.is_empty
        assert recording_coordinator.summary.totals.balance == 0
        assert AuditEventType.LEDGER_CLEARED in event_types(audit_storage)

    async def test_async_confirmation(self, recording_coordinator, recording_store):
        """Test that an async confirm callback is awaited."""
        async def confirm():
            return True

        result = await recording_coordinator.clear_all(confirm=confirm)
        assert result == 2
        assert "delete_all" in recording_store.calls


class TestExport:
    """Tests for exporting the current snapshot."""

    async def test_export_snapshot(self, recording_coordinator, audit_storage):
        """Test CSV text and file name for the current snapshot."""
        await recording_coordinator.refresh()

        text, filename = await recording_coordinator.export_csv(today=date(2024, 3, 5))

        assert filename == "expense-tracker-2024-03-05.csv"
        assert text.splitlines()[1] == "2024-03-02,Food & Dining,Expense,75.50,"
        assert AuditEventType.EXPORT_GENERATED in event_types(audit_storage)

    async def test_export_empty_snapshot(self, coordinator):
        """Test that an empty ledger has nothing to export."""
        with pytest.raises(NothingToExportError, match="No transactions to export"):
            await coordinator.export_csv()


class TestCategoryDetailQuery:
    """Tests for the drill-down on the current snapshot."""

    async def test_detail(self, recording_coordinator):
        """Test the drill-down uses the current snapshot."""
        await recording_coordinator.refresh()
        detail = recording_coordinator.detail("Food & Dining")
        assert detail.count == 1
        assert detail.percent_of_total_expense == 100
