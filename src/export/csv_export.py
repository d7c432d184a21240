"""
CSV Export

DESIGN DECISION: The export is DETERMINISTIC.
The same transaction list always produces byte-identical text:
- rows are stably sorted newest first
- amounts always carry two decimals
- rows are joined by "\\n" with no trailing newline

Quoting is left to the csv module (QUOTE_MINIMAL): a value is quoted only
when it contains a comma, a double quote or a line break, and inner
quotes are doubled. parse_delimited_text reads the result back.
"""

import csv
from collections.abc import Sequence
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from io import StringIO
from typing import Optional

from src.ledger.exceptions import NothingToExportError
from src.models.transaction import ExportRow, Transaction, TransactionType


EXPORT_HEADER = ["Date", "Category", "Type", "Amount", "Note"]

CENTS = Decimal("0.01")


def format_amount(amount: Decimal) -> str:
    """Two decimals, half-up, at any magnitude."""
    with localcontext() as ctx:
        # room for every integer digit plus the two decimals
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        return str(amount.quantize(CENTS, rounding=ROUND_HALF_UP))


def _to_csv_row(record: Transaction) -> list[str]:
    return [
        record.date.strftime("%Y-%m-%d"),
        record.category,
        record.type.label,
        format_amount(record.amount),
        record.note or "",
    ]


def to_delimited_text(records: Sequence[Transaction]) -> str:
    """
    Serialize transactions to CSV text.

    Raises:
        NothingToExportError: If there are no transactions
    """
    if not records:
        raise NothingToExportError()

    # Newest first; sorted() keeps equal dates in their listing order
    ordered = sorted(records, key=lambda r: r.date, reverse=True)

    output = StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    for record in ordered:
        writer.writerow(_to_csv_row(record))

    return output.getvalue().removesuffix("\n")


def parse_delimited_text(text: str) -> list[ExportRow]:
    """
    Read exported CSV text back into rows.

    Raises:
        ValueError: If the header doesn't match or a row is malformed
    """
    reader = csv.DictReader(StringIO(text))
    if reader.fieldnames != EXPORT_HEADER:
        raise ValueError(f"Unexpected CSV header: {reader.fieldnames}")

    rows: list[ExportRow] = []
    for idx, raw in enumerate(reader, start=1):
        try:
            rows.append(
                ExportRow(
                    date=datetime.strptime(raw["Date"].strip(), "%Y-%m-%d").date(),
                    category=raw["Category"],
                    type=TransactionType(raw["Type"].strip().lower()),
                    amount=Decimal(raw["Amount"].strip()),
                    note=raw["Note"] or "",
                )
            )
        except (KeyError, AttributeError, ValueError, InvalidOperation) as exc:
            raise ValueError(f"Row {idx}: {exc}") from exc
    return rows


def export_filename(today: Optional[date] = None, prefix: Optional[str] = None) -> str:
    """Download name, e.g. expense-tracker-2024-03-01.csv"""
    if prefix is None:
        from src.config import get_settings
        prefix = get_settings().app.export_filename_prefix
    today = today or date.today()
    return f"{prefix}-{today.isoformat()}.csv"
