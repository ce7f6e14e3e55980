"""
Tests for the orchestrator: component wiring and the caller-facing flows.
"""

import pytest
import pytest_asyncio
from datetime import date
from decimal import Decimal

from expense_ledger.config import Settings
from expense_ledger.orchestrator import (
    ExpenseFlow,
    ExpenseValidationError,
    create_ledger_components,
    create_record_store,
)
from expense_ledger.services.storage import (
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    NotFoundError,
)


OWNER = "user-123"


@pytest.fixture
def components(store):
    flow, built_store = create_ledger_components(Settings(), store=store)
    return flow, built_store


@pytest.fixture
def flow(components) -> ExpenseFlow:
    return components[0]


class TestComponentFactory:
    """Tests for create_ledger_components / create_record_store."""

    def test_injected_store_is_used(self, components, store):
        flow, built_store = components
        assert built_store is store
        assert flow.ledger.store is store

    def test_memory_backend_by_default(self, monkeypatch):
        monkeypatch.delenv("LEDGER_STORE_BACKEND", raising=False)
        assert isinstance(create_record_store(Settings()), InMemoryRecordStore)

    def test_google_sheets_backend(self, monkeypatch, tmp_path):
        credentials = tmp_path / "credentials.json"
        credentials.write_text("{}")
        monkeypatch.setenv("LEDGER_STORE_BACKEND", "google_sheets")
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(credentials))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "spreadsheet-1")

        store = create_record_store(Settings())

        assert isinstance(store, GoogleSheetsRecordStore)

    def test_unknown_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("LEDGER_STORE_BACKEND", "postgres")
        with pytest.raises(ValueError):
            create_record_store(Settings())


class TestExpenseFlow:
    """Tests for validated writes and reads."""

    @pytest.mark.asyncio
    async def test_add_expense(self, flow, store):
        expense, result = await flow.add_expense(
            OWNER, date(2024, 2, 10), [{"name": "Bread", "price": "2.50"}]
        )

        assert result.is_valid is True
        assert expense.total_amount == Decimal("2.50")
        assert store.count("expenses") == 1
        assert store.count("expenseItems") == 1

    @pytest.mark.asyncio
    async def test_invalid_payload_writes_nothing(self, flow, store):
        """Test that validation errors stop the write."""
        with pytest.raises(ExpenseValidationError) as exc_info:
            await flow.add_expense(OWNER, date(2024, 2, 10), [])

        assert exc_info.value.result.error_count == 1
        assert "At least one item is required" in str(exc_info.value)
        assert store.count("expenses") == 0

    @pytest.mark.asyncio
    async def test_warnings_do_not_block(self, flow):
        expense, result = await flow.add_expense(
            OWNER, date(2024, 2, 10), [{"name": "Boat", "price": 5_000_000}]
        )
        assert result.is_valid is True
        assert len(result.warnings) == 1
        assert expense.total_amount == 5_000_000

    @pytest.mark.asyncio
    async def test_edit_expense(self, flow):
        created, _ = await flow.add_expense(
            OWNER, date(2024, 2, 10), [{"name": "Bread", "price": 2}]
        )
        edited, _ = await flow.edit_expense(
            created.id,
            date(2024, 2, 11),
            [{"name": "Bread", "price": 2}, {"name": "Jam", "price": 3}],
        )

        assert edited.id == created.id
        assert edited.total_amount == 5
        assert len(edited.items) == 2

    @pytest.mark.asyncio
    async def test_edit_invalid_leaves_expense_unchanged(self, flow):
        created, _ = await flow.add_expense(
            OWNER, date(2024, 2, 10), [{"name": "Bread", "price": 2}]
        )
        with pytest.raises(ExpenseValidationError):
            await flow.edit_expense(created.id, date(2024, 2, 11), [{"name": "Bread", "price": -1}])

        stored = await flow.ledger.get_expense_with_items(created.id)
        assert stored.total_amount == 2
        assert stored.expense_date == date(2024, 2, 10)

    @pytest.mark.asyncio
    async def test_remove_and_history(self, flow):
        first, _ = await flow.add_expense(OWNER, date(2024, 1, 1), [{"name": "A", "price": 1}])
        second, _ = await flow.add_expense(OWNER, date(2024, 3, 1), [{"name": "B", "price": 2}])

        history = await flow.history(OWNER)
        assert [expense.id for expense in history] == [second.id, first.id]

        assert await flow.remove_expense(first.id) is True
        assert [expense.id for expense in await flow.history(OWNER)] == [second.id]
        with pytest.raises(NotFoundError):
            await flow.ledger.get_expense_with_items(first.id)


class TestDashboard:
    """Tests for the dashboard summary."""

    @pytest.mark.asyncio
    async def test_dashboard(self, flow, today):
        await flow.add_expense(OWNER, date(2024, 6, 1), [{"name": "A", "price": 20}])
        await flow.add_expense(OWNER, date(2024, 1, 5), [{"name": "B", "price": 10}])
        await flow.add_expense(OWNER, date(2022, 8, 8), [{"name": "C", "price": 7}])

        dashboard = await flow.dashboard(OWNER, today=today)

        assert dashboard.year == 2024
        assert len(dashboard.monthly) == 12
        assert dashboard.monthly[0] == 10
        assert dashboard.monthly[5] == 20
        assert dashboard.current_month_total == 20
        assert dashboard.year_total == 30
        assert [entry.year for entry in dashboard.annual] == [2020, 2021, 2022, 2023, 2024]
        assert [entry.total for entry in dashboard.annual] == [0, 0, 7, 0, 30]
        assert dashboard.has_spending is True

    @pytest.mark.asyncio
    async def test_dashboard_for_past_year(self, flow, today):
        """Test that the current month figure still refers to 'today'."""
        await flow.add_expense(OWNER, date(2024, 6, 1), [{"name": "A", "price": 20}])
        await flow.add_expense(OWNER, date(2023, 6, 1), [{"name": "B", "price": 4}])

        dashboard = await flow.dashboard(OWNER, year=2023, today=today)

        assert dashboard.year_total == 4
        assert dashboard.current_month_total == 20

    @pytest.mark.asyncio
    async def test_empty_dashboard(self, flow, today):
        dashboard = await flow.dashboard(OWNER, today=today)
        assert dashboard.has_spending is False
        assert dashboard.year_total == 0

    @pytest.mark.asyncio
    async def test_today_total(self, flow, today):
        """Test that only expenses dated today count towards today's total."""
        await flow.add_expense(OWNER, today, [{"name": "A", "price": "3.25"}])
        await flow.add_expense(OWNER, today, [{"name": "B", "price": 2}, {"name": "C", "price": 1}])
        await flow.add_expense(OWNER, date(2024, 6, 14), [{"name": "D", "price": 50}])

        dashboard = await flow.dashboard(OWNER, today=today)

        assert dashboard.today_total == Decimal("6.25")

    @pytest.mark.asyncio
    async def test_recent_expenses(self, flow, today):
        """Test that the five newest expenses are listed, newest first."""
        for day in range(1, 8):
            await flow.add_expense(OWNER, date(2024, 6, day), [{"name": "A", "price": day}])

        dashboard = await flow.dashboard(OWNER, today=today)

        assert [e.expense_date.day for e in dashboard.recent_expenses] == [7, 6, 5, 4, 3]
        assert all(len(e.items) == 1 for e in dashboard.recent_expenses)


class TestHistoryPeriods:
    """Tests for filtering history by period."""

    @pytest_asyncio.fixture
    async def spread(self, flow):
        for day in (date(2023, 12, 31), date(2024, 1, 1), date(2024, 5, 31),
                    date(2024, 6, 1), date(2024, 6, 20)):
            await flow.add_expense(OWNER, day, [{"name": "A", "price": 1}])
        return flow

    @pytest.mark.asyncio
    async def test_all(self, spread, today):
        history = await spread.history(OWNER, "all", today=today)
        assert len(history) == 5

    @pytest.mark.asyncio
    async def test_month(self, spread, today):
        """Test that 'month' starts on the 1st and has no upper bound."""
        history = await spread.history(OWNER, "month", today=today)
        assert [e.expense_date for e in history] == [date(2024, 6, 20), date(2024, 6, 1)]

    @pytest.mark.asyncio
    async def test_year(self, spread, today):
        history = await spread.history(OWNER, "year", today=today)
        assert [e.expense_date for e in history] == [
            date(2024, 6, 20), date(2024, 6, 1), date(2024, 5, 31), date(2024, 1, 1),
        ]

    @pytest.mark.asyncio
    async def test_unknown_period(self, flow):
        with pytest.raises(ValueError):
            await flow.history(OWNER, "week")
