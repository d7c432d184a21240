"""
Ledger Package

Pure aggregation over a transaction list: totals, category breakdown,
chart series and per-category detail.
"""

from src.ledger.aggregator import (
    CHART_PALETTE,
    category_breakdown,
    category_detail,
    chart_series,
    short_label,
    summarize,
    totals,
)
from src.ledger.exceptions import (
    EmptyLedgerError,
    LedgerError,
    NothingToExportError,
)

__all__ = [
    "CHART_PALETTE",
    "category_breakdown",
    "category_detail",
    "chart_series",
    "short_label",
    "summarize",
    "totals",
    # Exceptions
    "EmptyLedgerError",
    "LedgerError",
    "NothingToExportError",
]
