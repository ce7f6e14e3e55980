"""
Spending Summary Engine

DESIGN DECISION: Summaries are computed DETERMINISTICALLY from stored data
on every call. There is no cache and no server-side aggregation: the engine
asks the ledger for the owner's expenses in a date range (oldest first) and
folds each expense's stored total into fixed buckets.

Items are never read here. The per-expense `totalAmount` is trusted, which
is why the ledger must keep it equal to the sum of the items.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from expense_ledger.ledger import LedgerRepository
from expense_ledger.logs import get_logger
from expense_ledger.models import YearTotal


logger = get_logger(__name__)


MONTHS_PER_YEAR = 12


class SummaryEngine:
    """
    Monthly and annual spending totals for one owner.

    GUARANTEES:
    - Read-only, safe to call repeatedly
    - Periods with no expenses report 0, never missing
    - Bucket count is fixed by the requested period, not by the data
    """

    def __init__(self, ledger: LedgerRepository):
        self._ledger = ledger

    async def monthly_summary(self, owner_id: str, year: int) -> list[Decimal]:
        """
        Totals per calendar month of `year`.

        Returns:
            12 amounts, index 0 = January
        """
        expenses = await self._ledger.expenses_in_range(
            owner_id,
            date(year, 1, 1),
            date(year, 12, 31),
        )

        buckets = [Decimal("0")] * MONTHS_PER_YEAR
        for expense in expenses:
            buckets[expense.expense_date.month - 1] += expense.total_amount

        logger.debug(
            "monthly_summary_computed",
            owner_id=owner_id,
            year=year,
            expense_count=len(expenses),
        )
        return buckets

    async def annual_summary(
        self,
        owner_id: str,
        start_year: int,
        end_year: int,
    ) -> list[YearTotal]:
        """
        Totals per calendar year for every year in [start_year, end_year].

        A reversed range yields an empty list rather than an error.
        """
        if start_year > end_year:
            return []

        expenses = await self._ledger.expenses_in_range(
            owner_id,
            date(start_year, 1, 1),
            date(end_year, 12, 31),
        )

        buckets = [Decimal("0")] * (end_year - start_year + 1)
        for expense in expenses:
            buckets[expense.expense_date.year - start_year] += expense.total_amount

        logger.debug(
            "annual_summary_computed",
            owner_id=owner_id,
            start_year=start_year,
            end_year=end_year,
            expense_count=len(expenses),
        )
        return [
            YearTotal(year=start_year + index, total=total)
            for index, total in enumerate(buckets)
        ]

    async def current_month_total(
        self,
        owner_id: str,
        today: Optional[date] = None,
    ) -> Decimal:
        """Spending so far in the month containing `today`."""
        today = today or date.today()
        monthly = await self.monthly_summary(owner_id, today.year)
        return monthly[today.month - 1]

    async def year_total(self, owner_id: str, year: int) -> Decimal:
        """Spending across the whole of `year`."""
        monthly = await self.monthly_summary(owner_id, year)
        return sum(monthly, Decimal("0"))
