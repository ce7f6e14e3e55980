"""Structured logging package."""

from expense_ledger.logs.logger import (
    configure_logging,
    configure_root_logging,
    get_logger,
)

__all__ = ["configure_logging", "configure_root_logging", "get_logger"]
