"""
Core Data Models for the Expense Tracker

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and export
4. Stay immutable once built, so a snapshot can be shared safely

DESIGN DECISION: Amounts are Decimal, never float.
Totals are compared for exact equality (balance == income - expense),
which only holds with exact decimal arithmetic.
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Category(str, Enum):
    """
    Supported transaction categories.

    The declaration order is significant: it is the tie-break order
    of the category breakdown.
    """
    FOOD_AND_DINING = "Food & Dining"
    TRANSPORTATION = "Transportation"
    SHOPPING = "Shopping"
    ENTERTAINMENT = "Entertainment"
    BILLS_AND_UTILITIES = "Bills & Utilities"
    HEALTHCARE = "Healthcare"
    TRAVEL = "Travel"
    EDUCATION = "Education"
    INCOME = "Income"
    OTHER = "Other"

    @classmethod
    def from_label(cls, label: str) -> Optional["Category"]:
        """Return the category for a label, or None if the label is unknown."""
        try:
            return cls(label)
        except ValueError:
            return None

    @classmethod
    def choices(cls, current: Optional[str] = None) -> list[str]:
        """
        Labels offered when picking a category.

        A stored label outside the enumeration is appended, so editing
        such a transaction keeps its category unless the user changes it.
        """
        labels = [category.value for category in cls]
        if current and current not in labels:
            labels.append(current)
        return labels


class TransactionType(str, Enum):
    """Direction of a transaction. Amounts are always positive."""
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def label(self) -> str:
        """Display label ("Income" / "Expense")."""
        return self.value.capitalize()


def category_to_type(category: "Category | str") -> TransactionType:
    """
    Derive the transaction type from its category.

    "Income" is the only income category; every other label,
    including labels outside the enumeration, is an expense.
    """
    label = category.value if isinstance(category, Category) else category
    if label == Category.INCOME.value:
        return TransactionType.INCOME
    return TransactionType.EXPENSE


# =============================================================================
# TRANSACTION MODELS
# =============================================================================

PositiveAmount = Annotated[
    Decimal,
    Field(gt=0, allow_inf_nan=False, description="Positive amount, currency-agnostic"),
]


class TransactionDraft(BaseModel):
    """
    Raw user input for a new or edited transaction.

    CRITICAL: This is UNVERIFIED data straight from a form.
    It MUST go through TransactionValidator before reaching storage,
    which is why every field is lenient here.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Any = Field(
        default=None,
        description="Amount as typed by the user (string or number)"
    )
    category: Optional[str] = Field(
        default=None,
        description="Category label"
    )
    date: datetime = Field(
        default_factory=datetime.now,
        description="When the transaction happened"
    )
    note: Optional[str] = Field(
        default=None,
        description="Free-text note"
    )

    @field_validator('category', mode='before')
    @classmethod
    def unwrap_category(cls, v: Any) -> Any:
        if isinstance(v, Category):
            return v.value
        return v

    @field_validator('date', mode='before')
    @classmethod
    def promote_date(cls, v: Any) -> Any:
        """Date pickers hand back a plain date; treat it as midnight."""
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime.combine(v, time())
        return v


class TransactionFields(BaseModel):
    """
    Every field of a transaction except its id.

    This is what the coordinator hands to storage on create and update.
    The type is derived from the category when it is not given.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    amount: PositiveAmount
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category label"
    )
    date: datetime
    note: Optional[str] = Field(
        default=None,
        description="Free-text note"
    )
    type: TransactionType = Field(
        ...,
        description="Income or expense, derived from the category"
    )

    @model_validator(mode='before')
    @classmethod
    def derive_type(cls, data: Any) -> Any:
        """Fill in the type from the category when it is missing."""
        if isinstance(data, dict):
            category = data.get("category")
            if isinstance(category, Category):
                data = {**data, "category": category.value}
            if data.get("type") is None and data.get("category"):
                data = {**data, "type": category_to_type(data["category"])}
        return data

    @property
    def day(self) -> date:
        """Calendar day of the transaction."""
        return self.date.date()

    @property
    def known_category(self) -> Optional[Category]:
        """The category enum member, or None for an unknown label."""
        return Category.from_label(self.category)


class Transaction(TransactionFields):
    """
    A stored transaction.

    The id is assigned by the store on creation and never changes.
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Store-assigned unique identifier"
    )

    def to_fields(self) -> TransactionFields:
        """Everything except the id."""
        return TransactionFields(**self.model_dump(exclude={"id"}))


# =============================================================================
# SNAPSHOT AND AGGREGATE MODELS
# =============================================================================

class LedgerSnapshot(BaseModel):
    """
    Immutable view of the full transaction list as last returned by storage.

    Only the MutationCoordinator replaces the snapshot; everything else
    reads it.
    """
    model_config = ConfigDict(frozen=True)

    transactions: tuple[Transaction, ...] = Field(default_factory=tuple)
    fetched_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_empty(self) -> bool:
        return not self.transactions

    @property
    def count(self) -> int:
        return len(self.transactions)


class LedgerTotals(BaseModel):
    """Income, expense and balance over a snapshot."""
    model_config = ConfigDict(frozen=True)

    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")


class CategoryAmount(BaseModel):
    """Expense total for one category."""
    model_config = ConfigDict(frozen=True)

    category: Category
    amount: Decimal


class ChartPoint(BaseModel):
    """One bar / pie slice, colored by its rank."""
    model_config = ConfigDict(frozen=True)

    category: Category
    amount: Decimal
    color: str
    label: str = Field(
        ...,
        description="Short axis label"
    )


class CategoryDetail(BaseModel):
    """Drill-down for one category, as shown when a chart element is selected."""
    model_config = ConfigDict(frozen=True)

    category: str
    records: tuple[Transaction, ...] = Field(default_factory=tuple)
    amount: Decimal = Decimal("0")
    count: int = Field(default=0, ge=0)
    average: Decimal = Decimal("0")
    percent_of_total_expense: Decimal = Decimal("0")


class LedgerSummary(BaseModel):
    """The three canonical aggregates of one snapshot."""
    model_config = ConfigDict(frozen=True)

    totals: LedgerTotals
    breakdown: tuple[CategoryAmount, ...] = Field(default_factory=tuple)
    series: tuple[ChartPoint, ...] = Field(default_factory=tuple)
    transaction_count: int = Field(default=0, ge=0)


class ExportRow(BaseModel):
    """One data row of the CSV export, as read back."""
    model_config = ConfigDict(frozen=True)

    date: date
    category: str
    type: TransactionType
    amount: Decimal
    note: str = ""


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of validating a TransactionDraft.

    When valid, `normalized` holds the normalized TransactionFields
    ready to be sent to storage.
    """

    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )
    normalized: Optional[TransactionFields] = Field(
        default=None,
        description="Normalized fields, present only when valid"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
