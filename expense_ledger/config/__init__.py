"""Configuration package."""

from expense_ledger.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    LoggingSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "LoggingSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
