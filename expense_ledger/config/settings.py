"""
Configuration Management for Expense Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The store backend is chosen by configuration, but the store handle itself
is built explicitly by the orchestrator and passed to the repository.
Nothing in the core reaches for a process-wide connection.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets record store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # One worksheet per record set
    expenses_sheet_name: str = Field(
        default="expenses",
        description="Worksheet holding expense records"
    )
    expense_items_sheet_name: str = Field(
        default="expenseItems",
        description="Worksheet holding expense item records"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class LoggingSettings(BaseSettings):
    """structlog output configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_LOG_",
        extra="ignore"
    )

    level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    json_output: bool = Field(
        default=True,
        description="Render JSON lines instead of console output"
    )
    configure_root: bool = Field(
        default=False,
        description="Install a stdout handler on the root logger if it has none"
    )

    @field_validator('level')
    @classmethod
    def normalize_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )

    store_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Record store implementation to construct"
    )

    # Validation thresholds (warnings only, never block a write)
    max_item_price: float = Field(
        default=1000000.0,
        gt=0,
        description="Item price above which the validator warns"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="How many days in the future an expense date can be"
    )

    # Dashboard defaults
    annual_summary_years: int = Field(
        default=5,
        ge=1,
        le=50,
        description="How many years the dashboard annual summary covers"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration
    # (the Sheets settings are only required for the google_sheets backend)

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def logging(self) -> LoggingSettings:
        return LoggingSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("app", "logging", "google_sheets"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
