"""
In-Memory Storage Implementation

Dict-backed implementations of the storage interfaces. Used by the
test suite, and by the app when Google Sheets is not configured so
the ledger still works for a single session.

Nothing here survives a restart.
"""

from typing import Optional
from uuid import UUID, uuid4

from src.models.audit import AuditEvent
from src.models.transaction import Transaction, TransactionFields
from src.services.storage.interface import (
    AuditStorageInterface,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """
    Transaction storage kept in a dict keyed by id.

    Insertion order is kept so that listings of transactions sharing a
    date are stable.
    """

    def __init__(self, transactions: Optional[list[Transaction]] = None):
        self._transactions: dict[str, Transaction] = {}
        self.available = True
        for transaction in transactions or []:
            self._transactions[transaction.id] = transaction

    def _ensure_available(self) -> None:
        if not self.available:
            raise StorageError("In-memory store is unavailable")

    async def list_transactions(self) -> list[Transaction]:
        self._ensure_available()
        return sorted(
            self._transactions.values(),
            key=lambda t: t.date,
            reverse=True,
        )

    async def create_transaction(self, fields: TransactionFields) -> Transaction:
        self._ensure_available()
        transaction = Transaction(id=uuid4().hex, **fields.model_dump())
        self._transactions[transaction.id] = transaction
        return transaction

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        self._ensure_available()
        return self._transactions.get(transaction_id)

    async def update_transaction(
        self,
        transaction_id: str,
        fields: TransactionFields,
    ) -> Transaction:
        self._ensure_available()
        if transaction_id not in self._transactions:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        transaction = Transaction(id=transaction_id, **fields.model_dump())
        self._transactions[transaction_id] = transaction
        return transaction

    async def delete_transaction(self, transaction_id: str) -> bool:
        self._ensure_available()
        return self._transactions.pop(transaction_id, None) is not None

    async def delete_all_transactions(self) -> int:
        self._ensure_available()
        count = len(self._transactions)
        self._transactions.clear()
        return count


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
