"""Ledger repository package."""

from expense_ledger.ledger.repository import (
    InvalidAmountError,
    LedgerRepository,
    parse_amount,
)

__all__ = ["InvalidAmountError", "LedgerRepository", "parse_amount"]
