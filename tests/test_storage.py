"""Tests for the storage adapters (no real Google API calls)."""

import pytest
from datetime import datetime
from decimal import Decimal

from src.models.audit import AuditEventBuilder
from src.models.transaction import TransactionFields, TransactionType
from src.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsTransactionStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    StorageError,
)
from src.services.storage.google_sheets import AUDIT_COLUMNS, TRANSACTION_COLUMNS


class FakeWorksheet:
    """Worksheet double holding rows as lists of strings."""

    def __init__(self, header: list[str]):
        self.rows: list[list[str]] = [list(header)]
        self.broken = False

    def _check(self):
        if self.broken:
            raise RuntimeError("API quota exceeded")

    def get_all_values(self) -> list[list[str]]:
        self._check()
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self._check()
        self.rows.append([str(v) for v in row])

    def update(self, range_name=None, values=None, value_input_option=None):
        self._check()
        row_number = int(range_name.split(":")[0][1:])
        self.rows[row_number - 1] = [str(v) for v in values[0]]

    def delete_rows(self, start_index, end_index=None):
        self._check()
        del self.rows[start_index - 1:(end_index or start_index)]


class FakeSheetsClient:
    """Stands in for GoogleSheetsClient."""

    def __init__(self):
        self.transactions = FakeWorksheet(TRANSACTION_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_transactions_sheet(self):
        return self.transactions

    def get_audit_sheet(self):
        return self.audit


def fields(amount: str, category: str, day: int, note=None) -> TransactionFields:
    return TransactionFields(
        amount=Decimal(amount),
        category=category,
        date=datetime(2024, 3, day),
        note=note,
    )


@pytest.fixture
def sheets_client() -> FakeSheetsClient:
    return FakeSheetsClient()


@pytest.fixture
def sheets_storage(sheets_client) -> GoogleSheetsTransactionStorage:
    return GoogleSheetsTransactionStorage(sheets_client)


class TestGoogleSheetsTransactionStorage:
    """Tests for the row ↔ Transaction mapping."""

    async def test_create_and_list(self, sheets_storage, sheets_client):
        """Test that created rows come back newest first."""
        older = await sheets_storage.create_transaction(fields("75.50", "Food & Dining", 1))
        newer = await sheets_storage.create_transaction(fields("2000", "Income", 2, "Salary"))

        listed = await sheets_storage.list_transactions()

        assert [t.id for t in listed] == [newer.id, older.id]
        assert listed[0].type == TransactionType.INCOME
        assert listed[0].note == "Salary"
        assert listed[1].amount == Decimal("75.50")
        assert len(sheets_client.transactions.rows) == 3  # header + 2

    async def test_ids_are_unique(self, sheets_storage):
        """Test that the store assigns a fresh id on each create."""
        a = await sheets_storage.create_transaction(fields("1", "Travel", 1))
        b = await sheets_storage.create_transaction(fields("1", "Travel", 1))
        assert a.id != b.id

    async def test_get_transaction(self, sheets_storage):
        """Test lookup by id."""
        created = await sheets_storage.create_transaction(fields("5", "Travel", 3))
        assert (await sheets_storage.get_transaction(created.id)) == created
        assert (await sheets_storage.get_transaction("missing")) is None

    async def test_update_replaces_fields(self, sheets_storage, sheets_client):
        """Test full replace keyed by id, keeping created_at."""
        created = await sheets_storage.create_transaction(fields("5", "Travel", 3))
        created_at = sheets_client.transactions.rows[1][1]

        updated = await sheets_storage.update_transaction(
            created.id, fields("8", "Income", 4)
        )

        assert updated.id == created.id
        assert updated.type == TransactionType.INCOME
        row = sheets_client.transactions.rows[1]
        assert row[0] == created.id
        assert row[1] == created_at
        assert row[6] == "8"

    async def test_update_missing(self, sheets_storage):
        """Test that updating an unknown id raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await sheets_storage.update_transaction("missing", fields("8", "Travel", 4))

    async def test_delete(self, sheets_storage):
        """Test deleting one row."""
        keep = await sheets_storage.create_transaction(fields("1", "Travel", 1))
        drop = await sheets_storage.create_transaction(fields("2", "Travel", 2))

        assert await sheets_storage.delete_transaction(drop.id) is True
        assert await sheets_storage.delete_transaction(drop.id) is False
        assert [t.id for t in await sheets_storage.list_transactions()] == [keep.id]

    async def test_delete_all_keeps_header(self, sheets_storage, sheets_client):
        """Test clearing every row below the header."""
        await sheets_storage.create_transaction(fields("1", "Travel", 1))
        await sheets_storage.create_transaction(fields("2", "Travel", 2))

        assert await sheets_storage.delete_all_transactions() == 2
        assert sheets_client.transactions.rows == [TRANSACTION_COLUMNS]
        assert await sheets_storage.delete_all_transactions() == 0

    async def test_malformed_rows_skipped(self, sheets_storage, sheets_client):
        """Test that hand-edited junk rows don't break the listing."""
        await sheets_storage.create_transaction(fields("1", "Travel", 1))
        sheets_client.transactions.rows.append(["bad", "", "", "not-a-date", "Travel", "", "x", ""])
        sheets_client.transactions.rows.append([])

        listed = await sheets_storage.list_transactions()

        assert len(listed) == 1

    async def test_api_errors_become_storage_errors(self, sheets_storage, sheets_client):
        """Test that gspread failures surface as StorageError."""
        sheets_client.transactions.broken = True

        with pytest.raises(StorageError):
            await sheets_storage.list_transactions()
        with pytest.raises(StorageError):
            await sheets_storage.create_transaction(fields("1", "Travel", 1))
        with pytest.raises(StorageError):
            await sheets_storage.delete_transaction("x")


class TestGoogleSheetsAuditStorage:
    """Tests for the append-only audit sheet."""

    async def test_append_and_read(self, sheets_client):
        """Test that events round-trip through rows."""
        storage = GoogleSheetsAuditStorage(sheets_client)
        first = AuditEventBuilder.transaction_deleted("abc")
        second = AuditEventBuilder.ledger_cleared(3, correlation_id=first.event_id)

        assert await storage.append_event(first) is True
        assert await storage.append_event(second) is True

        recent = await storage.get_recent_events(limit=10)
        assert {e.event_id for e in recent} == {first.event_id, second.event_id}
        related = await storage.get_events_by_correlation_id(first.event_id)
        assert [e.event_id for e in related] == [second.event_id]
        assert related[0].details == {"deleted_count": 3}


class TestInMemoryTransactionStorage:
    """Tests for the dict-backed store."""

    async def test_crud(self):
        """Test the full lifecycle."""
        storage = InMemoryTransactionStorage()
        created = await storage.create_transaction(fields("5", "Travel", 1))

        assert (await storage.get_transaction(created.id)) == created
        updated = await storage.update_transaction(created.id, fields("6", "Travel", 1))
        assert updated.amount == Decimal("6")
        assert await storage.delete_transaction(created.id) is True
        assert await storage.list_transactions() == []

    async def test_unavailable(self):
        """Test the failure switch used by coordinator tests."""
        storage = InMemoryTransactionStorage()
        storage.available = False
        with pytest.raises(StorageError):
            await storage.list_transactions()
