"""
Two-Stage Transaction Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Amount is a positive, finite number
- Category is non-empty
- Failures here are errors and block the mutation

STAGE 2 - SEMANTIC VALIDATION:
- Category label outside the known list
- Unusually large amounts
- Dates far in the future
- Failures here are warnings; the user may still save

IMPORTANT: Validation runs before ANY store call. A draft that fails
stage 1 never reaches storage.
"""

from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import ValidationError

from src.config import get_settings
from src.models.transaction import (
    Category,
    TransactionDraft,
    TransactionFields,
    ValidationIssue,
    ValidationResult,
    category_to_type,
)


class TransactionValidationError(ValueError):
    """
    A draft was rejected before reaching storage.

    Carries the full ValidationResult so the UI can show every issue.
    """

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = [i.message for i in result.issues if i.severity == "error"]
        super().__init__("; ".join(messages) or "Invalid transaction")


def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Parse a user-supplied amount into a Decimal.

    Returns None when the value is missing or not a number.
    Non-finite values (NaN, Infinity) are returned as-is so the caller
    can report them distinctly.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return Decimal(text)
    except InvalidOperation:
        return None


class TransactionValidator:
    """
    Validates transaction drafts through a two-stage pipeline.

    Stage 1: Schema validation (blocking)
    Stage 2: Semantic validation (warnings only)
    """

    def __init__(
        self,
        max_amount: Optional[Decimal] = None,
        future_tolerance_days: Optional[int] = None,
    ):
        """
        Initialize validator.

        Args:
            max_amount: Amount above which a warning is raised.
                        Defaults to AppSettings.max_transaction_amount.
            future_tolerance_days: Days into the future a date may be
                        before a warning is raised.
        """
        if max_amount is None or future_tolerance_days is None:
            settings = get_settings().app
            if max_amount is None:
                max_amount = Decimal(str(settings.max_transaction_amount))
            if future_tolerance_days is None:
                future_tolerance_days = settings.future_date_tolerance_days
        self._max_amount = max_amount
        self._future_tolerance_days = future_tolerance_days

    def _validate_schema(
        self,
        draft: TransactionDraft,
    ) -> tuple[Optional[Decimal], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (parsed_amount_or_None, list_of_issues)
        """
        issues = []
        amount = parse_amount(draft.amount)

        if draft.amount is None or (isinstance(draft.amount, str) and not draft.amount.strip()):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
                suggested_fix="Enter the transaction amount",
            ))
            amount = None
        elif amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message=f"Amount ({draft.amount}) is not a number",
                severity="error",
                suggested_fix="Enter digits only, e.g. 75.50",
            ))
        elif not amount.is_finite():
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be a finite number",
                severity="error",
            ))
            amount = None
        elif amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
                suggested_fix="Amounts are always positive; pick the Income category for money received",
            ))
            amount = None

        if not draft.category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
                suggested_fix="Pick a category from the list",
            ))

        return amount, issues

    def _validate_semantic(
        self,
        draft: TransactionDraft,
        amount: Decimal,
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation.

        Returns: list_of_issues (warnings only)
        """
        issues = []

        if Category.from_label(draft.category) is None:
            issues.append(ValidationIssue(
                field="category",
                issue_type="unknown_category",
                message=f"Category '{draft.category}' is not one of the standard categories",
                severity="warning",
                suggested_fix="It will count toward totals but not the category charts",
            ))

        if amount > self._max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        max_future_date = datetime.now() + timedelta(days=self._future_tolerance_days)
        if draft.date > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date ({draft.date.date()}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        return issues

    def validate(self, draft: TransactionDraft) -> ValidationResult:
        """
        Run the full two-stage validation pipeline.

        Args:
            draft: Raw user input

        Returns:
            ValidationResult; when valid, `normalized` holds the
            TransactionFields to send to storage
        """
        amount, all_issues = self._validate_schema(draft)

        # Only run stage 2 if stage 1 passes
        if amount is not None and not all_issues:
            all_issues.extend(self._validate_semantic(draft, amount))

        is_valid = not any(issue.severity == "error" for issue in all_issues)
        warnings = [i.message for i in all_issues if i.severity == "warning"]

        normalized = None
        if is_valid:
            try:
                normalized = TransactionFields(
                    amount=amount,
                    category=draft.category,
                    date=draft.date,
                    note=draft.note or None,
                    type=category_to_type(draft.category),
                )
            except ValidationError as e:
                for error in e.errors():
                    all_issues.append(ValidationIssue(
                        field=".".join(str(p) for p in error["loc"]) or "transaction",
                        issue_type="invalid_value",
                        message=error["msg"],
                        severity="error",
                    ))
                is_valid = False

        return ValidationResult(
            is_valid=is_valid,
            issues=all_issues,
            warnings=warnings,
            normalized=normalized,
        )

    def validate_or_raise(self, draft: TransactionDraft) -> TransactionFields:
        """Validate and return the normalized fields, or raise TransactionValidationError."""
        result = self.validate(draft)
        if not result.is_valid:
            raise TransactionValidationError(result)
        return result.normalized

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show next to the transaction form.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed!"

        lines = []

        if result.has_errors:
            lines.append("❌ This transaction can't be saved yet:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        if result.is_valid:
            lines.append("")
            lines.append("The transaction was saved, but please review it.")
        else:
            lines.append("")
            lines.append("Please fix the issues above before saving.")

        return "\n".join(lines)
