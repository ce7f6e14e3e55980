"""
Main Orchestrator for Expense Ledger

Ties the components together and defines the flows the presentation layer
calls:
1. Add / edit / remove an expense (validate -> atomic write)
2. History (expenses with items, newest first, optionally this month or year)
3. Dashboard (monthly + annual spending, today, recent expenses)

DESIGN DECISION: The record store handle is built exactly once here and
passed down explicitly. No component looks up a global connection.

The owner id handed to every flow comes from the identity provider and is
trusted as given. Authorization belongs to that layer, not this one.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional

from expense_ledger.config import Settings, get_settings
from expense_ledger.ledger import LedgerRepository
from expense_ledger.logs import configure_logging, configure_root_logging, get_logger
from expense_ledger.models import (
    DashboardSummary,
    Expense,
    ExpenseWithItems,
    ValidationResult,
)
from expense_ledger.queries import SummaryEngine
from expense_ledger.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    RecordStore,
)
from expense_ledger.validation import ExpenseValidator


logger = get_logger(__name__)

# History periods
PERIOD_ALL = "all"
PERIOD_MONTH = "month"
PERIOD_YEAR = "year"

HISTORY_PERIODS = (PERIOD_ALL, PERIOD_MONTH, PERIOD_YEAR)

# How many expenses the dashboard lists
RECENT_EXPENSES_LIMIT = 5


class ExpenseValidationError(ValueError):
    """The payload failed validation; nothing was written."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(
            issue.message for issue in result.issues if issue.severity == "error"
        )
        super().__init__(f"Expense is not valid: {messages}")


class ExpenseFlow:
    """
    Caller-facing expense operations.

    Flow for writes:
    1. Validate → business rules (positive prices, at least one item)
    2. Write → one atomic ledger operation
    3. Return → plain models; failures are typed exceptions

    A validation failure means nothing was written.
    """

    def __init__(
        self,
        ledger: LedgerRepository,
        summaries: Optional[SummaryEngine] = None,
        validator: Optional[ExpenseValidator] = None,
        annual_summary_years: int = 5,
    ):
        self._ledger = ledger
        self._summaries = summaries or SummaryEngine(ledger)
        self._validator = validator or ExpenseValidator()
        self._annual_summary_years = annual_summary_years

    @property
    def ledger(self) -> LedgerRepository:
        return self._ledger

    @property
    def summaries(self) -> SummaryEngine:
        return self._summaries

    def _check(self, expense_date: Any, items: list[Any]) -> ValidationResult:
        result = self._validator.validate(expense_date, items)
        if not result.is_valid:
            logger.info(
                "expense_validation_failed",
                error_count=result.error_count,
                fields=[issue.field for issue in result.issues if issue.severity == "error"],
            )
            raise ExpenseValidationError(result)
        return result

    async def add_expense(
        self,
        owner_id: str,
        expense_date: Any,
        items: Iterable[Any],
    ) -> tuple[Expense, ValidationResult]:
        """
        Validate and create an expense.

        Returns:
            (created_expense, validation_result) - the result may carry warnings

        Raises:
            ExpenseValidationError: If the payload has errors
        """
        items = list(items)
        result = self._check(expense_date, items)
        expense = await self._ledger.create_expense(owner_id, expense_date, items)
        return expense, result

    async def edit_expense(
        self,
        expense_id: str,
        expense_date: Any,
        items: Iterable[Any],
    ) -> tuple[ExpenseWithItems, ValidationResult]:
        """Validate and fully replace an expense's date and items."""
        items = list(items)
        result = self._check(expense_date, items)
        expense = await self._ledger.update_expense(expense_id, expense_date, items)
        return expense, result

    async def remove_expense(self, expense_id: str) -> bool:
        return await self._ledger.delete_expense(expense_id)

    async def history(
        self,
        owner_id: str,
        period: str = PERIOD_ALL,
        today: Optional[date] = None,
    ) -> list[ExpenseWithItems]:
        """
        Expenses with items, newest first.

        `period` is "all", "month" (dated on or after the 1st of the current
        month) or "year" (on or after Jan 1 of the current year).
        """
        if period not in HISTORY_PERIODS:
            raise ValueError(f"Unknown history period: {period}")

        expenses = await self._ledger.get_user_expenses(owner_id)
        if period == PERIOD_ALL:
            return expenses

        today = today or date.today()
        if period == PERIOD_MONTH:
            start = today.replace(day=1)
        else:
            start = date(today.year, 1, 1)
        return [expense for expense in expenses if expense.expense_date >= start]

    async def dashboard(
        self,
        owner_id: str,
        year: Optional[int] = None,
        today: Optional[date] = None,
    ) -> DashboardSummary:
        """
        Monthly totals for `year` plus annual totals for the last few years,
        today's spending and the most recent expenses.

        `today` anchors the annual range, the current-month figure and the
        today total (defaults to the real date).
        """
        today = today or date.today()
        year = year or today.year

        monthly = await self._summaries.monthly_summary(owner_id, year)
        annual = await self._summaries.annual_summary(
            owner_id,
            today.year - self._annual_summary_years + 1,
            today.year,
        )
        current_month = (
            monthly[today.month - 1]
            if year == today.year
            else await self._summaries.current_month_total(owner_id, today)
        )

        expenses = await self._ledger.get_user_expenses(owner_id)
        today_total = sum(
            (e.total_amount for e in expenses if e.expense_date == today),
            Decimal("0"),
        )

        return DashboardSummary(
            year=year,
            monthly=monthly,
            annual=annual,
            current_month_total=current_month,
            year_total=sum(monthly, Decimal("0")),
            today_total=today_total,
            recent_expenses=expenses[:RECENT_EXPENSES_LIMIT],
        )


def create_record_store(settings: Optional[Settings] = None) -> RecordStore:
    """Build the record store selected by `LEDGER_STORE_BACKEND`."""
    settings = settings or get_settings()
    backend = settings.app.store_backend

    if backend == "google_sheets":
        client = GoogleSheetsClient(settings.google_sheets)
        return GoogleSheetsRecordStore(client)

    return InMemoryRecordStore()


def create_ledger_components(
    settings: Optional[Settings] = None,
    store: Optional[RecordStore] = None,
) -> tuple[ExpenseFlow, RecordStore]:
    """
    Factory function to create all ledger components.

    Args:
        settings: Settings to use (defaults to the cached settings)
        store: Pre-built record store; built from settings when omitted

    Returns:
        (expense_flow, record_store)
    """
    settings = settings or get_settings()
    logging_settings = settings.logging
    configure_logging(logging_settings)
    configure_root_logging(logging_settings)

    app_settings = settings.app
    store = store or create_record_store(settings)

    ledger = LedgerRepository(store)
    flow = ExpenseFlow(
        ledger=ledger,
        summaries=SummaryEngine(ledger),
        validator=ExpenseValidator(app_settings),
        annual_summary_years=app_settings.annual_summary_years,
    )

    logger.info(
        "ledger_components_created",
        store=type(store).__name__,
        environment=app_settings.app_environment,
    )
    return flow, store
