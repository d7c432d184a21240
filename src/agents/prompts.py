"""
Insight Prompt Building

DESIGN DECISION: Prompt building is DETERMINISTIC and has no I/O.
The builder turns the transaction list and a question into one text
payload. The AI service only ever sees what this module serializes.

CRITICAL BOUNDARIES:
- An empty ledger never reaches the AI service (EmptyLedgerError)
- A blank question never reaches the AI service (TransactionValidationError)
- At most `max_records` transactions are serialized, most recent first

The reply is relayed to the user unmodified.
"""

import json
from collections.abc import Sequence
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from src.ledger.exceptions import EmptyLedgerError
from src.models.transaction import Transaction, ValidationIssue, ValidationResult
from src.validation.validator import TransactionValidationError


EMPTY_LEDGER_MESSAGE = (
    "You have no transactions to analyze. "
    "Please add some expenses and try again."
)

GENERAL_INSIGHT_QUESTION = (
    "Based on all the transactions, provide some analysis and insights "
    "into my spending habits. Give me some tips to save money."
)

FALLBACK_MESSAGE = (
    "Sorry, I couldn't generate insights at the moment. "
    "Please try again later."
)

PROMPT_REQUIRED_MESSAGE = "Prompt is required"

INSTRUCTION = (
    "You are an expert financial assistant. Analyze the following expense "
    "data and answer the user's question. Provide a concise and helpful "
    "response. Do not use markdown and don't give long texts, just simple "
    "English. Give insights in points that are easy to read."
)


class InsightPrompt(BaseModel):
    """The text sent to the AI service, plus what went into it."""
    model_config = ConfigDict(frozen=True)

    text: str = Field(
        ...,
        description="Full prompt text"
    )
    question: str
    included_count: int = Field(
        ...,
        ge=1,
        description="Transactions serialized into the prompt"
    )
    total_count: int = Field(
        ...,
        ge=1,
        description="Transactions in the ledger"
    )

    @property
    def truncated(self) -> bool:
        return self.included_count < self.total_count


def _transaction_to_dict(transaction: Transaction) -> dict:
    """Convert a transaction to a dictionary for the prompt."""
    return {
        "id": transaction.id,
        "amount": str(transaction.amount),
        "category": transaction.category,
        "type": transaction.type.value,
        "date": transaction.date.isoformat(),
        "note": transaction.note,
    }


def _resolve_max_records(max_records: Optional[int]) -> int:
    if max_records is None:
        from src.config import get_settings
        max_records = get_settings().app.insight_max_records
    if max_records < 1:
        raise ValueError("max_records must be at least 1")
    return max_records


def build_insight_prompt(
    records: Sequence[Transaction],
    question: str,
    max_records: Optional[int] = None,
) -> InsightPrompt:
    """
    Build the prompt for a free-text question about the ledger.

    Args:
        records: The full transaction list
        question: The user's question
        max_records: Bound on serialized transactions
                     (defaults to AppSettings.insight_max_records)

    Raises:
        TransactionValidationError: If the question is blank
        EmptyLedgerError: If there are no transactions
    """
    question = (question or "").strip()
    if not question:
        raise TransactionValidationError(ValidationResult(
            is_valid=False,
            issues=[ValidationIssue(
                field="question",
                issue_type="missing",
                message=PROMPT_REQUIRED_MESSAGE,
                severity="error",
                suggested_fix="Type a question about your spending",
            )],
        ))

    if not records:
        raise EmptyLedgerError(EMPTY_LEDGER_MESSAGE)

    limit = _resolve_max_records(max_records)
    # Most recent first; sorted() keeps equal dates in listing order
    ordered = sorted(records, key=lambda r: r.date, reverse=True)
    included = ordered[:limit]

    data = json.dumps(
        [_transaction_to_dict(t) for t in included],
        indent=2,
    )

    parts = [INSTRUCTION, ""]
    if len(included) < len(records):
        parts.append(
            f"Expense Data ({len(included)} most recent of "
            f"{len(records)} transactions):"
        )
    else:
        parts.append("Expense Data:")
    parts.extend([data, "", "User Question:", question])

    return InsightPrompt(
        text="\n".join(parts),
        question=question,
        included_count=len(included),
        total_count=len(records),
    )


def build_general_insight_prompt(
    records: Sequence[Transaction],
    max_records: Optional[int] = None,
) -> InsightPrompt:
    """Build the one-click "analyze my spending" prompt."""
    return build_insight_prompt(records, GENERAL_INSIGHT_QUESTION, max_records)


def parse_insight_response(reply: Optional[str]) -> str:
    """
    Relay the AI reply to the user.

    The text is returned as-is; only a missing or blank reply is
    replaced by the fallback message.
    """
    if reply is None or not reply.strip():
        return FALLBACK_MESSAGE
    return reply
