"""
Tests for the record store contract, exercised through InMemoryRecordStore.

Covers:
    - Batches are invisible until commit, then visible as a whole
    - A batch commits once
    - Filters and ordering
    - Point lookups and NotFoundError
"""

import pytest
import pytest_asyncio
from datetime import date

from expense_ledger.services.storage import (
    CommitConflictError,
    FieldFilter,
    NotFoundError,
    OrderBy,
    StoreUnavailableError,
)


class TestFieldFilter:
    """Tests for FieldFilter predicates."""

    def test_unknown_operator_rejected(self):
        with pytest.raises(ValueError):
            FieldFilter("date", "!=", 1)

    @pytest.mark.parametrize("op, value, expected", [
        ("==", 5, True),
        ("<", 6, True),
        ("<=", 5, True),
        (">", 5, False),
        (">=", 5, True),
    ])
    def test_operators(self, op, value, expected):
        assert FieldFilter("n", op, value).matches(5) is expected

    def test_missing_field_never_matches(self):
        assert FieldFilter("n", "==", None).matches(None) is False


class TestWriteBatch:
    """Tests for atomic write batches."""

    @pytest.mark.asyncio
    async def test_nothing_visible_before_commit(self, store):
        """Test that put only records intent."""
        batch = store.begin_atomic_write()
        batch.put("things", {"id": "a", "n": 1})

        assert await store.query("things") == []

        await batch.commit()
        assert await store.get("things", "a") == {"id": "a", "n": 1}

    @pytest.mark.asyncio
    async def test_multi_set_commit(self, store):
        """Test that one batch can span record sets."""
        batch = store.begin_atomic_write()
        batch.put("parents", {"id": "p"})
        batch.put("children", {"id": "c1", "parent": "p"})
        batch.put("children", {"id": "c2", "parent": "p"})
        await batch.commit()

        assert store.count("parents") == 1
        assert store.count("children") == 2

    @pytest.mark.asyncio
    async def test_put_then_delete_in_one_batch(self, store):
        """Test that operations apply in order."""
        batch = store.begin_atomic_write()
        batch.put("things", {"id": "a"})
        batch.delete("things", "a")
        await batch.commit()

        assert store.count("things") == 0

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, store):
        """Test that deleting an unknown id does not fail."""
        await store.begin_atomic_write().delete("things", "ghost").commit()

    @pytest.mark.asyncio
    async def test_batch_commits_once(self, store):
        """Test that a committed batch cannot be reused."""
        batch = store.begin_atomic_write()
        batch.put("things", {"id": "a"})
        await batch.commit()

        with pytest.raises(CommitConflictError):
            await batch.commit()
        with pytest.raises(CommitConflictError):
            batch.put("things", {"id": "b"})

    def test_put_requires_id(self, store):
        with pytest.raises(ValueError):
            store.begin_atomic_write().put("things", {"n": 1})

    @pytest.mark.asyncio
    async def test_committed_records_are_copies(self, store):
        """Test that mutating a record after put does not leak into the store."""
        record = {"id": "a", "n": 1}
        batch = store.begin_atomic_write()
        batch.put("things", record)
        record["n"] = 2
        await batch.commit()

        assert (await store.get("things", "a"))["n"] == 1

    @pytest.mark.asyncio
    async def test_unavailable_store(self, store):
        store.available = False
        batch = store.begin_atomic_write()
        batch.put("things", {"id": "a"})

        with pytest.raises(StoreUnavailableError):
            await batch.commit()
        with pytest.raises(StoreUnavailableError):
            await store.query("things")


class TestQueries:
    """Tests for get and query."""

    @pytest_asyncio.fixture
    async def seeded(self, store):
        batch = store.begin_atomic_write()
        batch.put("expenses", {"id": "1", "ownerId": "u", "date": date(2024, 3, 1)})
        batch.put("expenses", {"id": "2", "ownerId": "u", "date": date(2024, 1, 1)})
        batch.put("expenses", {"id": "3", "ownerId": "v", "date": date(2024, 2, 1)})
        batch.put("expenses", {"id": "4", "ownerId": "u", "date": None})
        await batch.commit()
        return store

    @pytest.mark.asyncio
    async def test_get_missing_raises(self, store):
        with pytest.raises(NotFoundError):
            await store.get("expenses", "nope")

    @pytest.mark.asyncio
    async def test_equality_and_range(self, seeded):
        records = await seeded.query(
            "expenses",
            [
                FieldFilter("ownerId", "==", "u"),
                FieldFilter("date", ">=", date(2024, 2, 1)),
            ],
        )
        assert [r["id"] for r in records] == ["1"]

    @pytest.mark.asyncio
    async def test_order_descending_missing_last(self, seeded):
        records = await seeded.query(
            "expenses",
            [FieldFilter("ownerId", "==", "u")],
            OrderBy("date", descending=True),
        )
        assert [r["id"] for r in records] == ["1", "2", "4"]

    @pytest.mark.asyncio
    async def test_unknown_set_is_empty(self, store):
        assert await store.query("nothing-here") == []
