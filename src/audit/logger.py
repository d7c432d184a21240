"""
Audit Logger

DESIGN DECISION: Every ledger mutation and every AI call is logged.
This provides:
1. Traceability of what the user changed and when
2. Debugging capability when the store or the AI service fails
3. A record that survives "delete all transactions"

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from src.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit store, e.g. the AuditLog worksheet (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_created(
        self,
        transaction_id: str,
        category: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        """Log a new transaction."""
        event = AuditEventBuilder.transaction_created(
            transaction_id=transaction_id,
            category=category,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_updated(
        self,
        transaction_id: str,
        category: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        """Log an edited transaction."""
        event = AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            category=category,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_deleted(
        self,
        transaction_id: str,
        correlation_id: UUID,
    ) -> None:
        """Log a deleted transaction."""
        event = AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_ledger_cleared(
        self,
        deleted_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log deletion of every transaction."""
        event = AuditEventBuilder.ledger_cleared(
            deleted_count=deleted_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_clear_declined(
        self,
        correlation_id: UUID,
    ) -> None:
        """Log a declined clear-all confirmation."""
        event = AuditEventBuilder.clear_declined(
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_mutation_failed(
        self,
        operation: str,
        error_message: str,
        correlation_id: UUID,
        transaction_id: Optional[str] = None,
    ) -> None:
        """Log a store failure during a mutation."""
        event = AuditEventBuilder.mutation_failed(
            operation=operation,
            error_message=error_message,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        operation: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log validation failure."""
        event = AuditEventBuilder.validation_failed(
            operation=operation,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_ledger_refreshed(
        self,
        transaction_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a fresh listing."""
        event = AuditEventBuilder.ledger_refreshed(
            transaction_count=transaction_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_insight_requested(
        self,
        question: str,
        record_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log an insight request."""
        event = AuditEventBuilder.insight_requested(
            question=question,
            record_count=record_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_insight_generated(
        self,
        response_length: int,
        correlation_id: UUID,
    ) -> None:
        """Log a successful insight reply."""
        event = AuditEventBuilder.insight_generated(
            response_length=response_length,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_insight_failed(
        self,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log an insight failure."""
        event = AuditEventBuilder.insight_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_export_generated(
        self,
        row_count: int,
        filename: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a CSV export."""
        event = AuditEventBuilder.export_generated(
            row_count=row_count,
            filename=filename,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., adding a transaction).
    Pass it through all subsequent operations.
    """
    return uuid4()
