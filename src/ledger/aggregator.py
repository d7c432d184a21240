"""
Ledger Aggregation

DESIGN DECISION: Aggregation is PURE and SYNCHRONOUS.
Every function here takes a full list of transactions (or the output of
another function here) and returns a new immutable value. Nothing reads
storage, nothing caches, nothing patches a previous result.

The coordinator calls summarize() on every fresh listing, so the
dashboard always shows aggregates of exactly what the store returned.

Amounts stay Decimal end to end; no rounding happens here. Formatting
to two decimals is a presentation concern.
"""

from collections.abc import Iterable, Sequence
from decimal import Decimal

from src.models.transaction import (
    Category,
    CategoryAmount,
    CategoryDetail,
    ChartPoint,
    LedgerSnapshot,
    LedgerSummary,
    LedgerTotals,
    Transaction,
    TransactionType,
)


# Chart colors, assigned by rank in the breakdown
CHART_PALETTE = (
    "#E76E50",
    "#2A9D90",
    "#274754",
    "#E8C468",
    "#F4A462",
    "#82CA9D",
    "#FFC658",
    "#FF7C7C",
    "#8DD1E1",
    "#D084D0",
)

SHORT_LABEL_LENGTH = 12

ZERO = Decimal("0")


def short_label(category: str, max_length: int = SHORT_LABEL_LENGTH) -> str:
    """Axis label: names longer than max_length are cut and suffixed with '...'."""
    if len(category) > max_length:
        return category[:max_length] + "..."
    return category


def totals(records: Iterable[Transaction]) -> LedgerTotals:
    """
    Income, expense and balance over a list of transactions.

    Every record counts by its type, including records whose category
    label is not one of the standard categories.
    """
    income = ZERO
    expense = ZERO
    for record in records:
        if record.type == TransactionType.INCOME:
            income += record.amount
        else:
            expense += record.amount

    return LedgerTotals(
        income=income,
        expense=expense,
        balance=income - expense,
    )


def category_breakdown(records: Iterable[Transaction]) -> list[CategoryAmount]:
    """
    Expense total per standard category, largest first.

    Categories whose sum is exactly zero are left out. Equal sums keep
    the Category declaration order.
    """
    sums = {category: ZERO for category in Category}
    for record in records:
        if record.type != TransactionType.EXPENSE:
            continue
        category = Category.from_label(record.category)
        if category is None:
            continue  # unknown label
        sums[category] += record.amount

    breakdown = [
        CategoryAmount(category=category, amount=amount)
        for category, amount in sums.items()
        if amount != ZERO
    ]
    # sorted() is stable, so ties stay in declaration order
    return sorted(breakdown, key=lambda item: item.amount, reverse=True)


def chart_series(
    breakdown: Sequence[CategoryAmount],
    palette: Sequence[str] = CHART_PALETTE,
) -> list[ChartPoint]:
    """
    Attach a color and a short label to each breakdown entry.

    The color depends only on the entry's rank, wrapping around the palette.
    """
    if not palette:
        raise ValueError("palette must contain at least one color")

    return [
        ChartPoint(
            category=item.category,
            amount=item.amount,
            color=palette[rank % len(palette)],
            label=short_label(item.category.value),
        )
        for rank, item in enumerate(breakdown)
    ]


def category_detail(
    records: Sequence[Transaction],
    category: "Category | str",
) -> CategoryDetail:
    """
    Drill-down for one category: its expense records and their share.

    Args:
        records: The full transaction list
        category: A Category or a raw label

    Returns:
        CategoryDetail; average and percent are 0 when there is nothing
        to divide by
    """
    label = category.value if isinstance(category, Category) else category
    matching = tuple(
        record for record in records
        if record.type == TransactionType.EXPENSE and record.category == label
    )

    amount = sum((record.amount for record in matching), ZERO)
    count = len(matching)
    total_expense = totals(records).expense

    average = amount / count if count else ZERO
    percent = amount / total_expense * 100 if total_expense else ZERO

    return CategoryDetail(
        category=label,
        records=matching,
        amount=amount,
        count=count,
        average=average,
        percent_of_total_expense=percent,
    )


def summarize(
    snapshot: LedgerSnapshot,
    palette: Sequence[str] = CHART_PALETTE,
) -> LedgerSummary:
    """Totals, breakdown and chart series for one snapshot."""
    records = snapshot.transactions
    breakdown = category_breakdown(records)
    return LedgerSummary(
        totals=totals(records),
        breakdown=tuple(breakdown),
        series=tuple(chart_series(breakdown, palette)),
        transaction_count=len(records),
    )
