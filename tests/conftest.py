"""
Shared fixtures.

No real API calls in tests: the in-memory store stands in for Google
Sheets and StubInsightAgent stands in for Gemini.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

import pytest

from src.agents import InsightServiceError
from src.audit import AuditLogger
from src.models.transaction import Transaction
from src.orchestrator import InsightFlow, MutationCoordinator
from src.services.storage import InMemoryAuditStorage, InMemoryTransactionStorage
from src.validation import TransactionValidator


def make_transaction(
    amount: str,
    category: str,
    when: datetime = datetime(2024, 3, 1),
    note: Optional[str] = None,
    id: Optional[str] = None,
) -> Transaction:
    """Build a stored transaction; the type is derived from the category."""
    return Transaction(
        id=id or f"{category}-{amount}-{when.isoformat()}",
        amount=Decimal(amount),
        category=category,
        date=when,
        note=note,
    )


class StubInsightAgent:
    """Completion service double that records every prompt it receives."""

    def __init__(self, reply: Optional[str] = "Spend less on dining out.", error: bool = False):
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise InsightServiceError("quota exceeded")
        return self.reply


@pytest.fixture
def scenario_records() -> list[Transaction]:
    """One Food & Dining expense and one income."""
    return [
        make_transaction("75.50", "Food & Dining", datetime(2024, 3, 2), id="food"),
        make_transaction("2000", "Income", datetime(2024, 3, 1), id="salary"),
    ]


@pytest.fixture
def mixed_records() -> list[Transaction]:
    return [
        make_transaction("120.00", "Shopping", datetime(2024, 3, 5), id="t1"),
        make_transaction("30.25", "Food & Dining", datetime(2024, 3, 4), id="t2"),
        make_transaction("45.75", "Food & Dining", datetime(2024, 3, 3), id="t3"),
        make_transaction("120.00", "Transportation", datetime(2024, 3, 2), id="t4"),
        make_transaction("3000", "Income", datetime(2024, 3, 1), id="t5"),
        make_transaction("10", "Travel", datetime(2024, 2, 28), id="t6"),
    ]


@pytest.fixture
def validator() -> TransactionValidator:
    return TransactionValidator(max_amount=Decimal("1000000"), future_tolerance_days=7)


@pytest.fixture
def store() -> InMemoryTransactionStorage:
    return InMemoryTransactionStorage()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def coordinator(store, validator, audit_logger) -> MutationCoordinator:
    return MutationCoordinator(
        storage=store,
        validator=validator,
        audit_logger=audit_logger,
    )


@pytest.fixture
def stub_agent() -> StubInsightAgent:
    return StubInsightAgent()


@pytest.fixture
def insight_flow(stub_agent, audit_logger) -> InsightFlow:
    return InsightFlow(agent=stub_agent, audit_logger=audit_logger, max_records=500)


@pytest.fixture(name="make_transaction")
def make_transaction_fixture():
    return make_transaction


@pytest.fixture
def failing_agent() -> StubInsightAgent:
    return StubInsightAgent(error=True)


@pytest.fixture
def blank_agent() -> StubInsightAgent:
    return StubInsightAgent(reply="   ")
