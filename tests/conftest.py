"""Shared fixtures: every test runs against a fresh in-memory record store."""

from datetime import date

import pytest

from expense_ledger.config import AppSettings
from expense_ledger.ledger import LedgerRepository
from expense_ledger.queries import SummaryEngine
from expense_ledger.services.storage import CommitConflictError, InMemoryRecordStore
from expense_ledger.validation import ExpenseValidator


class FailingCommitStore(InMemoryRecordStore):
    """In-memory store whose commits are always rejected."""

    async def _apply(self, operations):
        raise CommitConflictError("simulated conflict")


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def ledger(store) -> LedgerRepository:
    return LedgerRepository(store)


@pytest.fixture
def summaries(ledger) -> SummaryEngine:
    return SummaryEngine(ledger)


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(
        store_backend="memory",
        max_item_price=10000.0,
        future_date_tolerance_days=7,
    )


@pytest.fixture
def validator(app_settings) -> ExpenseValidator:
    return ExpenseValidator(app_settings)


@pytest.fixture
def today() -> date:
    return date(2024, 6, 15)


@pytest.fixture
def failing_store() -> FailingCommitStore:
    return FailingCommitStore()
