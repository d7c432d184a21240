"""
Main Orchestrator for the Expense Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Mutation (validate → store → re-list → re-aggregate)
2. Insight (transactions → prompt → AI service → reply)
3. Export (snapshot → CSV text + file name)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No draft reaches storage without passing validation
- Aggregates are never patched; they are rebuilt from a fresh listing
- A failed store call leaves the current snapshot untouched
- Every step is audited

This is the "glue" that ensures the dashboard always shows exactly what
the store holds, even when individual components fail.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Sequence
from datetime import date
from typing import Optional, Union
from uuid import UUID

import structlog

from src.agents import (
    EMPTY_LEDGER_MESSAGE,
    InsightAgent,
    InsightResponse,
    InsightServiceError,
    build_general_insight_prompt,
    build_insight_prompt,
    parse_insight_response,
)
from src.agents.prompts import InsightPrompt
from src.audit import AuditLogger, create_correlation_id
from src.export import export_filename, to_delimited_text
from src.ledger import EmptyLedgerError, category_detail, summarize
from src.models.transaction import (
    Category,
    CategoryDetail,
    LedgerSnapshot,
    LedgerSummary,
    Transaction,
    TransactionDraft,
    TransactionFields,
)
from src.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)
from src.validation import TransactionValidationError, TransactionValidator


logger = structlog.get_logger()

NOT_CONFIGURED_MESSAGE = (
    "AI insights aren't available because the Gemini API key isn't configured. "
    "Set GEMINI_API_KEY and restart the app."
)

ConfirmCallback = Callable[[], Union[bool, Awaitable[bool]]]


class MutationCoordinator:
    """
    Owns the ledger snapshot and applies every change to it.

    Flow for each mutation:
    1. Validate → reject before any store call
    2. Store → exactly one create/update/delete/delete-all call
    3. Re-list → only after the store call returned successfully
    4. Re-aggregate → summarize the fresh listing

    Mutations run one at a time. A listing that completes after a newer
    listing was issued is discarded, so the snapshot never moves backwards.
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger

        self._snapshot = LedgerSnapshot()
        self._summary = summarize(self._snapshot)
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> LedgerSnapshot:
        return self._snapshot

    @property
    def summary(self) -> LedgerSummary:
        return self._summary

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return self._snapshot.transactions

    @property
    def validator(self) -> TransactionValidator:
        return self._validator

    def detail(self, category: "Category | str") -> CategoryDetail:
        """Drill-down for one category of the current snapshot."""
        return category_detail(self._snapshot.transactions, category)

    async def refresh(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerSnapshot:
        """
        Re-list every transaction and rebuild the aggregates.

        Returns:
            The current snapshot (unchanged if this listing was overtaken)

        Raises:
            StorageError: If the listing fails; the snapshot is untouched
        """
        self._generation += 1
        generation = self._generation

        transactions = await self._storage.list_transactions()

        if generation != self._generation:
            # A newer listing was issued while this one was in flight
            logger.debug(
                "stale_listing_discarded",
                generation=generation,
                current=self._generation,
            )
            return self._snapshot

        snapshot = LedgerSnapshot(transactions=tuple(transactions))
        self._summary = summarize(snapshot)
        self._snapshot = snapshot

        if self._audit_logger:
            await self._audit_logger.log_ledger_refreshed(
                transaction_count=snapshot.count,
                correlation_id=correlation_id,
            )

        return snapshot

    async def _validate(
        self,
        operation: str,
        draft: Union[TransactionDraft, dict],
        correlation_id: UUID,
    ) -> TransactionFields:
        """
        Validate a draft.

        Raises:
            TransactionValidationError: If the draft has error-level issues
        """
        if isinstance(draft, dict):
            draft = TransactionDraft(**draft)

        result = self._validator.validate(draft)
        if not result.is_valid:
            if self._audit_logger:
                issues = [
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in result.issues
                ]
                await self._audit_logger.log_validation_failed(
                    operation=operation,
                    issues=issues,
                    correlation_id=correlation_id,
                )
            raise TransactionValidationError(result)

        return result.normalized

    async def _mutation_failed(
        self,
        operation: str,
        error: Exception,
        correlation_id: UUID,
        transaction_id: Optional[str] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_mutation_failed(
                operation=operation,
                error_message=str(error),
                transaction_id=transaction_id,
                correlation_id=correlation_id,
            )

    async def _relist(self, operation: str, correlation_id: UUID) -> LedgerSnapshot:
        """Re-list after a successful store call."""
        try:
            return await self.refresh(correlation_id)
        except StorageError as e:
            await self._mutation_failed(f"{operation} (re-list)", e, correlation_id)
            raise

    async def create(
        self,
        draft: Union[TransactionDraft, dict],
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Validate and store a new transaction, then re-list.

        Returns:
            The stored transaction with its new id

        Raises:
            TransactionValidationError: Draft rejected; storage untouched
            StorageError: Store call or re-list failed; snapshot untouched
        """
        correlation_id = correlation_id or create_correlation_id()
        fields = await self._validate("create", draft, correlation_id)

        async with self._lock:
            try:
                transaction = await self._storage.create_transaction(fields)
            except StorageError as e:
                await self._mutation_failed("create", e, correlation_id)
                raise

            if self._audit_logger:
                await self._audit_logger.log_transaction_created(
                    transaction_id=transaction.id,
                    category=transaction.category,
                    amount=str(transaction.amount),
                    correlation_id=correlation_id,
                )

            await self._relist("create", correlation_id)

        return transaction

    async def update(
        self,
        transaction_id: str,
        draft: Union[TransactionDraft, dict],
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Validate and replace every field of a transaction except its id,
        then re-list.

        Raises:
            TransactionValidationError: Draft rejected; storage untouched
            NotFoundError: No transaction has that id
            StorageError: Store call or re-list failed; snapshot untouched
        """
        correlation_id = correlation_id or create_correlation_id()
        fields = await self._validate("update", draft, correlation_id)

        async with self._lock:
            try:
                transaction = await self._storage.update_transaction(
                    transaction_id, fields
                )
            except StorageError as e:
                await self._mutation_failed("update", e, correlation_id, transaction_id)
                raise

            if self._audit_logger:
                await self._audit_logger.log_transaction_updated(
                    transaction_id=transaction.id,
                    category=transaction.category,
                    amount=str(transaction.amount),
                    correlation_id=correlation_id,
                )

            await self._relist("update", correlation_id)

        return transaction

    async def delete(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerSnapshot:
        """
        Delete one transaction, then re-list.

        The re-list happens only once the store confirms the delete.

        Raises:
            NotFoundError: No transaction has that id; snapshot untouched
            StorageError: Store call or re-list failed; snapshot untouched
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._lock:
            try:
                deleted = await self._storage.delete_transaction(transaction_id)
                if not deleted:
                    raise NotFoundError(f"Transaction not found: {transaction_id}")
            except StorageError as e:
                await self._mutation_failed("delete", e, correlation_id, transaction_id)
                raise

            if self._audit_logger:
                await self._audit_logger.log_transaction_deleted(
                    transaction_id=transaction_id,
                    correlation_id=correlation_id,
                )

            return await self._relist("delete", correlation_id)

    async def clear_all(
        self,
        confirm: ConfirmCallback,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[int]:
        """
        Delete every transaction, then re-list.

        CRITICAL: `confirm` must return True before anything is deleted.
        A declined confirmation makes no store call.

        Args:
            confirm: Sync or async callable asking the user to confirm

        Returns:
            Number of deleted transactions, or None if declined

        Raises:
            StorageError: Store call or re-list failed; snapshot untouched
        """
        correlation_id = correlation_id or create_correlation_id()

        confirmed = confirm()
        if inspect.isawaitable(confirmed):
            confirmed = await confirmed

        if not confirmed:
            if self._audit_logger:
                await self._audit_logger.log_clear_declined(correlation_id)
            return None

        async with self._lock:
            try:
                deleted_count = await self._storage.delete_all_transactions()
            except StorageError as e:
                await self._mutation_failed("clear all", e, correlation_id)
                raise

            if self._audit_logger:
                await self._audit_logger.log_ledger_cleared(
                    deleted_count=deleted_count,
                    correlation_id=correlation_id,
                )

            await self._relist("clear all", correlation_id)

        return deleted_count

    async def export_csv(
        self,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[str, str]:
        """
        Export the current snapshot as CSV.

        Returns:
            (csv_text, file_name)

        Raises:
            NothingToExportError: If the snapshot is empty
        """
        text = to_delimited_text(self._snapshot.transactions)
        filename = export_filename(today)

        if self._audit_logger:
            await self._audit_logger.log_export_generated(
                row_count=self._snapshot.count,
                filename=filename,
                correlation_id=correlation_id,
            )

        return text, filename


class InsightFlow:
    """
    Orchestrates the insight flow.

    CRITICAL BOUNDARIES:
    1. Transactions + question → prompt (deterministic)
    2. Prompt → AI service (the only external call)
    3. Reply → user, unmodified

    An empty ledger never reaches the AI service.
    A failing AI service never reaches the user as an error; the user
    sees a fixed fallback message instead.
    """

    def __init__(
        self,
        agent: Optional[InsightAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
        max_records: Optional[int] = None,
    ):
        self._agent = agent
        self._audit_logger = audit_logger
        self._max_records = max_records

    @property
    def is_configured(self) -> bool:
        return self._agent is not None

    async def ask(
        self,
        transactions: Sequence[Transaction],
        question: str,
        correlation_id: Optional[UUID] = None,
    ) -> InsightResponse:
        """
        Answer a free-text question about the transactions.

        Raises:
            TransactionValidationError: If the question is blank
        """
        return await self._run(
            lambda: build_insight_prompt(transactions, question, self._max_records),
            correlation_id,
        )

    async def general_insights(
        self,
        transactions: Sequence[Transaction],
        correlation_id: Optional[UUID] = None,
    ) -> InsightResponse:
        """One-click spending analysis with saving tips."""
        return await self._run(
            lambda: build_general_insight_prompt(transactions, self._max_records),
            correlation_id,
        )

    async def _run(
        self,
        build: Callable[[], InsightPrompt],
        correlation_id: Optional[UUID],
    ) -> InsightResponse:
        correlation_id = correlation_id or create_correlation_id()

        try:
            prompt = build()
        except EmptyLedgerError:
            return InsightResponse(text=EMPTY_LEDGER_MESSAGE, used_fallback=True)

        if self._agent is None:
            return InsightResponse(
                text=NOT_CONFIGURED_MESSAGE,
                used_fallback=True,
                record_count=prompt.included_count,
            )

        if self._audit_logger:
            await self._audit_logger.log_insight_requested(
                question=prompt.question,
                record_count=prompt.included_count,
                correlation_id=correlation_id,
            )

        try:
            reply = await self._agent.complete(prompt.text)
        except InsightServiceError as e:
            if self._audit_logger:
                await self._audit_logger.log_insight_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            reply = None

        text = parse_insight_response(reply)
        used_fallback = reply is None or not reply.strip()

        if self._audit_logger and not used_fallback:
            await self._audit_logger.log_insight_generated(
                response_length=len(text),
                correlation_id=correlation_id,
            )

        return InsightResponse(
            text=text,
            used_fallback=used_fallback,
            record_count=prompt.included_count,
        )


def create_app_components(
    use_storage: bool = True,
) -> tuple[MutationCoordinator, InsightFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to keep transactions in memory.

    Returns:
        (mutation_coordinator, insight_flow, sheets_client)
    """
    sheets_client = None
    transaction_storage: TransactionStorageInterface
    audit_logger = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            transaction_storage = GoogleSheetsTransactionStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
            audit_logger = AuditLogger(audit_storage)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            transaction_storage = InMemoryTransactionStorage()
            audit_logger = AuditLogger()  # Local-only logging
    else:
        transaction_storage = InMemoryTransactionStorage()
        audit_logger = AuditLogger()  # Local-only logging

    try:
        agent = InsightAgent()
    except Exception as e:
        # Gemini not configured - insights answer with a fixed message
        logger.warning("insight_agent_not_configured", error=str(e))
        agent = None

    coordinator = MutationCoordinator(
        storage=transaction_storage,
        audit_logger=audit_logger,
    )

    insight_flow = InsightFlow(
        agent=agent,
        audit_logger=audit_logger,
    )

    return coordinator, insight_flow, sheets_client
