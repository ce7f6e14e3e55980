"""
Data Models Package

This package contains all Pydantic models used by the expense ledger.
All data flowing through the core must conform to these schemas.
"""

from expense_ledger.models.expense import (
    EXPENSE_ITEMS,
    EXPENSES,
    DashboardSummary,
    Expense,
    ExpenseItem,
    ExpenseWithItems,
    ItemInput,
    ItemUpdate,
    ValidationIssue,
    ValidationResult,
    YearTotal,
    utc_now,
)

__all__ = [
    # Record set names
    "EXPENSE_ITEMS",
    "EXPENSES",
    # Persisted models
    "Expense",
    "ExpenseItem",
    "ExpenseWithItems",
    # Caller payloads
    "ItemInput",
    "ItemUpdate",
    # Summaries
    "DashboardSummary",
    "YearTotal",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    "utc_now",
]
