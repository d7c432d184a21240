"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. Users can view their transactions directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for a personal ledger)
- No transactions (the ledger re-lists after every write instead)
- Limited query capabilities (we sort in Python)

Only the connection is retried. Reads and writes fail once and the
error goes back to the caller, who decides whether to try again.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.config import get_settings
from src.models.audit import AuditEvent, AuditEventType, AuditSeverity
from src.models.transaction import Transaction, TransactionFields, TransactionType
from src.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "created_at",
    "updated_at",
    "date",
    "category",
    "type",
    "amount",
    "note",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        retry=retry_if_exception_type(ConnectionError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name,
            TRANSACTION_COLUMNS,
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of transaction storage.

    Transactions are stored as rows in a worksheet with one transaction per row.
    Row 1 holds the column headers.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _to_row(
        self,
        transaction: Transaction,
        created_at: datetime,
        updated_at: datetime,
    ) -> list:
        """Convert a Transaction to a spreadsheet row."""
        return [
            transaction.id,
            created_at.isoformat(),
            updated_at.isoformat(),
            transaction.date.isoformat(),
            transaction.category,
            transaction.type.value,
            str(transaction.amount),
            transaction.note or "",
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        """Convert a spreadsheet row to a Transaction."""
        # Handle missing columns gracefully
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return Transaction(
            id=safe_get(0),
            date=datetime.fromisoformat(safe_get(3)),
            category=safe_get(4),
            type=TransactionType(safe_get(5)) if safe_get(5) else None,
            amount=Decimal(safe_get(6)),
            note=safe_get(7) or None,
        )

    def _find_row(self, all_rows: list[list], transaction_id: str) -> Optional[int]:
        """1-based sheet row number of a transaction, or None."""
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
            if row and row[0] == transaction_id:
                return idx
        return None

    async def list_transactions(self) -> list[Transaction]:
        """List every transaction, newest first."""
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

        transactions = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                transactions.append(self._row_to_transaction(row))
            except Exception:
                continue  # Skip malformed rows

        # Sort by date descending (newest first); stable for equal dates
        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions

    async def create_transaction(self, fields: TransactionFields) -> Transaction:
        """Append a new transaction row with a fresh id."""
        transaction = Transaction(id=uuid4().hex, **fields.model_dump())
        now = datetime.utcnow()
        try:
            sheet = self._client.get_transactions_sheet()
            sheet.append_row(
                self._to_row(transaction, now, now),
                value_input_option="RAW",
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")
        return transaction

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """Retrieve a transaction by its ID."""
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

        idx = self._find_row(all_rows, transaction_id)
        if idx is None:
            return None
        return self._row_to_transaction(all_rows[idx - 1])

    async def update_transaction(
        self,
        transaction_id: str,
        fields: TransactionFields,
    ) -> Transaction:
        """Overwrite every column of an existing row except id and created_at."""
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()

            idx = self._find_row(all_rows, transaction_id)
            if idx is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")

            existing = all_rows[idx - 1]
            created_at = (
                datetime.fromisoformat(existing[1])
                if len(existing) > 1 and existing[1]
                else datetime.utcnow()
            )
            transaction = Transaction(id=transaction_id, **fields.model_dump())
            new_row = self._to_row(transaction, created_at, datetime.utcnow())

            last_column = gspread.utils.rowcol_to_a1(idx, len(TRANSACTION_COLUMNS))
            sheet.update(
                range_name=f"A{idx}:{last_column}",
                values=[new_row],
                value_input_option="RAW",
            )
            return transaction
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

    async def delete_transaction(self, transaction_id: str) -> bool:
        """Delete a transaction row by ID."""
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()

            idx = self._find_row(all_rows, transaction_id)
            if idx is None:
                return False

            sheet.delete_rows(idx)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    async def delete_all_transactions(self) -> int:
        """Delete every row below the header."""
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()
            count = sum(1 for row in all_rows[1:] if row and row[0])

            if len(all_rows) > 1:
                sheet.delete_rows(2, len(all_rows))
            return count
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete all transactions: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [
            e for e in self._read_events()
            if e.correlation_id == correlation_id
        ]
        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._read_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
