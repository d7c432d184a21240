"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the ledger logic decoupled from storage implementation

The interface is intentionally simple - a CRUD record store plus a
sorted listing. Aggregation never happens here; the ledger always
aggregates over a full listing.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from src.models.audit import AuditEvent
from src.models.transaction import Transaction, TransactionFields


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction storage operations.

    Any storage implementation (Google Sheets, MongoDB, in-memory, etc.)
    must implement these methods. Every method may raise StorageError
    when the backend is unavailable.
    """

    @abstractmethod
    async def list_transactions(self) -> list[Transaction]:
        """
        List every stored transaction.

        Returns:
            All transactions, newest date first
        """
        pass

    @abstractmethod
    async def create_transaction(self, fields: TransactionFields) -> Transaction:
        """
        Store a new transaction.

        Args:
            fields: Every field except the id

        Returns:
            The stored transaction with its newly assigned id

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """
        Retrieve a transaction by its ID.

        Returns:
            The transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def update_transaction(
        self,
        transaction_id: str,
        fields: TransactionFields,
    ) -> Transaction:
        """
        Replace every field of an existing transaction except its id.

        Returns:
            The updated transaction

        Raises:
            NotFoundError: If the transaction doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> bool:
        """
        Delete a transaction by ID.

        Returns:
            True if a transaction was deleted, False if none had that id
        """
        pass

    @abstractmethod
    async def delete_all_transactions(self) -> int:
        """
        Delete every transaction.

        Returns:
            Number of transactions deleted
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one mutation and its re-list).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations (the store is unavailable or refused)."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
