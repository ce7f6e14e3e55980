"""
Two-Stage Expense Validation

This is the caller-facing check that runs BEFORE anything reaches the
ledger repository. The repository itself only refuses prices that are not
numbers; the business rules live here.

STAGE 1 - SCHEMA VALIDATION:
- Date present and readable
- At least one item
- Every item has a name and a positive numeric price

STAGE 2 - SEMANTIC VALIDATION (warnings only):
- Date too far in the future
- Unusually large item price

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; the caller decides what to show.
"""

from collections.abc import Mapping
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Iterable, Optional

from expense_ledger.config import AppSettings, get_settings
from expense_ledger.ledger import InvalidAmountError, parse_amount
from expense_ledger.models import ItemInput, ValidationIssue, ValidationResult


class ExpenseValidator:
    """
    Validates an expense payload (date + items) through a two-stage pipeline.

    Stage 2 only runs when stage 1 found no errors.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _validate_schema(
        self,
        expense_date: Any,
        items: list[Any],
    ) -> tuple[Optional[date], list[tuple[str, Decimal]], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (parsed_date, parsed_items, list_of_issues)
        """
        issues = []

        parsed_date = self._parse_date(expense_date)
        if expense_date in (None, ""):
            issues.append(ValidationIssue(
                field="date",
                issue_type="missing",
                message="Date is required",
                severity="error",
            ))
        elif parsed_date is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message=f"Date ({expense_date}) is not a valid date",
                severity="error",
                suggested_fix="Use the YYYY-MM-DD format",
            ))

        if not items:
            issues.append(ValidationIssue(
                field="items",
                issue_type="missing",
                message="At least one item is required",
                severity="error",
                suggested_fix="Add an item with a name and a price",
            ))

        parsed_items = []
        for index, raw in enumerate(items):
            name, price = self._item_fields(raw)

            if not isinstance(name, str) or not name.strip():
                issues.append(ValidationIssue(
                    field=f"items[{index}].name",
                    issue_type="missing",
                    message="Item name is required",
                    severity="error",
                ))

            if price is None or (isinstance(price, str) and not price.strip()):
                issues.append(ValidationIssue(
                    field=f"items[{index}].price",
                    issue_type="missing",
                    message="Price is required",
                    severity="error",
                ))
                continue

            try:
                amount = parse_amount(price)
            except InvalidAmountError:
                amount = None

            if amount is None or amount <= 0:
                issues.append(ValidationIssue(
                    field=f"items[{index}].price",
                    issue_type="invalid_value",
                    message="Price must be a positive number",
                    severity="error",
                    suggested_fix="Enter the amount without currency symbols",
                ))
                continue

            if isinstance(name, str):
                parsed_items.append((name.strip(), amount))

        return parsed_date, parsed_items, issues

    def _validate_semantic(
        self,
        expense_date: date,
        items: list[tuple[str, Decimal]],
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation.

        Only warnings: the user may really have a future-dated or large
        expense.
        """
        issues = []
        today = date.today()

        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if expense_date > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Expense date ({expense_date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        max_price = Decimal(str(self._settings.max_item_price))
        for index, (name, price) in enumerate(items):
            if price > max_price:
                issues.append(ValidationIssue(
                    field=f"items[{index}].price",
                    issue_type="suspicious_value",
                    message=f"Price of {name} ({price:,.2f}) seems unusually high",
                    severity="warning",
                    suggested_fix="Please verify this amount is correct",
                ))

        return issues

    def validate(
        self,
        expense_date: Any,
        items: Iterable[Any],
    ) -> ValidationResult:
        """
        Run the full validation pipeline.

        Args:
            expense_date: date, datetime or ISO string
            items: ItemInput objects or {"name", "price"} mappings

        Returns:
            ValidationResult with all issues found
        """
        items = list(items)

        parsed_date, parsed_items, issues = self._validate_schema(expense_date, items)

        if not any(issue.severity == "error" for issue in issues):
            issues.extend(self._validate_semantic(parsed_date, parsed_items))

        return ValidationResult(
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Plain-text summary of a validation result for display."""
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []

        if result.has_errors:
            lines.append("Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   - {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     ({issue.suggested_fix})")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   - {warning}")

        return "\n".join(lines)

    @staticmethod
    def _item_fields(raw: Any) -> tuple[Any, Any]:
        if isinstance(raw, ItemInput):
            return raw.name, raw.price
        if isinstance(raw, Mapping):
            return raw.get("name"), raw.get("price")
        return None, None

    @staticmethod
    def _parse_date(value: Any) -> Optional[date]:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str) and value.strip():
            try:
                return datetime.fromisoformat(value.strip()).date()
            except ValueError:
                return None
        return None
