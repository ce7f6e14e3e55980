"""
Core Data Models for Expense Ledger

These models define the schemas for everything flowing in and out of the
ledger core. They are designed to:
1. Enforce type safety at runtime
2. Map cleanly onto the flat records kept by the record store
3. Keep the expense total a derived value

DESIGN DECISION: Python attribute names are snake_case, persisted field
names are the camelCase names of the `expenses` / `expenseItems` record sets.
The mapping is done with pydantic aliases, so `to_record()` and
`from_record()` are the only place the two naming schemes meet.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


# Record set names in the store
EXPENSES = "expenses"
EXPENSE_ITEMS = "expenseItems"


def utc_now() -> datetime:
    """Timezone-aware timestamp used for createdAt / updatedAt."""
    return datetime.now(timezone.utc)


class _Record(BaseModel):
    """Base for models persisted as flat records."""

    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_record(self) -> dict[str, Any]:
        """Flat record keyed by persisted field names."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_record(cls, record: dict[str, Any]):
        return cls.model_validate(record)


# =============================================================================
# PERSISTED MODELS
# =============================================================================

class ExpenseItem(_Record):
    """
    One priced line within an expense.

    `expense_id` is an association, not ownership: items only disappear when
    the parent expense is deleted or its item set is replaced.
    """

    id: str = Field(..., min_length=1)
    expense_id: str = Field(
        ...,
        alias="expenseId",
        min_length=1,
        description="ID of the owning expense"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Item name (trimmed)"
    )
    price: Decimal = Field(
        ...,
        allow_inf_nan=False,
        description="Item price"
    )
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")


class Expense(_Record):
    """
    A dated spending event with an owner and a derived total.

    CRITICAL: `total_amount` is written only by the ledger repository,
    always as the sum of the item prices in the same atomic write.
    """

    id: str = Field(..., min_length=1)
    owner_id: str = Field(
        ...,
        alias="ownerId",
        min_length=1,
        description="Identity of the owning user"
    )
    expense_date: date = Field(
        ...,
        alias="date",
        description="Calendar date of the expense"
    )
    total_amount: Decimal = Field(
        ...,
        alias="totalAmount",
        allow_inf_nan=False,
        description="Sum of item prices at the last write"
    )
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")


class ExpenseWithItems(Expense):
    """An expense enriched with its current items."""

    items: list[ExpenseItem] = Field(default_factory=list)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"items"})

    @property
    def items_total(self) -> Decimal:
        """Sum of the attached item prices."""
        return sum((item.price for item in self.items), Decimal("0"))


# =============================================================================
# CALLER PAYLOADS
# =============================================================================

class ItemInput(BaseModel):
    """
    One item as supplied by the caller.

    `price` is kept exactly as given; the repository decides whether it is
    a number.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str
    price: Any = None


class ItemUpdate(BaseModel):
    """Partial update for a single item. Only fields that are set change."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = None
    price: Any = None


# =============================================================================
# SUMMARY MODELS
# =============================================================================

class YearTotal(BaseModel):
    """Total spending for one calendar year."""

    year: int
    total: Decimal = Decimal("0")


class DashboardSummary(BaseModel):
    """Figures shown together on the spending dashboard."""

    year: int
    monthly: list[Decimal] = Field(
        ...,
        min_length=12,
        max_length=12,
        description="Totals per month of `year`, index 0 = January"
    )
    annual: list[YearTotal] = Field(default_factory=list)
    current_month_total: Decimal = Decimal("0")
    year_total: Decimal = Decimal("0")
    today_total: Decimal = Decimal("0")
    recent_expenses: list[ExpenseWithItems] = Field(
        default_factory=list,
        max_length=5,
        description="Most recent expenses, newest first"
    )

    @property
    def has_spending(self) -> bool:
        return any(amount > 0 for amount in self.monthly)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue, e.g. 'date' or 'items[2].price'"
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
    """Result of validating an expense payload before it is written."""

    validated_at: datetime = Field(default_factory=utc_now)

    is_valid: bool = Field(
        ...,
        description="True when there are no error-level issues"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        """Messages of the non-blocking issues."""
        return [issue.message for issue in self.issues if issue.severity == "warning"]
