"""Spending summary package."""

from expense_ledger.queries.summary import SummaryEngine

__all__ = ["SummaryEngine"]
