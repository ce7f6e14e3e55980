"""
In-Memory Record Store

Default local backend and the store used throughout the test suite.

Records live in a dict per record set. A commit is staged against a copy
of the affected record sets and swapped in under a lock, so a reader either
sees none of a batch or all of it.
"""

import asyncio
import copy
from typing import Optional, Sequence
from uuid import uuid4

from expense_ledger.logs import get_logger
from expense_ledger.services.storage.interface import (
    DeleteOp,
    FieldFilter,
    NotFoundError,
    OrderBy,
    PutOp,
    RecordStore,
    StoreUnavailableError,
    WriteBatch,
)


logger = get_logger(__name__)


class InMemoryWriteBatch(WriteBatch):
    """Write batch applied to an InMemoryRecordStore."""

    def __init__(self, store: "InMemoryRecordStore"):
        super().__init__()
        self._store = store

    async def _apply(self, operations: list[PutOp | DeleteOp]) -> None:
        await self._store._apply(operations)


class InMemoryRecordStore(RecordStore):
    """
    Dict-backed implementation of the record store.

    `available` can be switched off to simulate an unreachable backend.
    """

    def __init__(self):
        self._sets: dict[str, dict[str, dict]] = {}
        self._lock = asyncio.Lock()
        self.available = True

    def new_id(self) -> str:
        return uuid4().hex

    def begin_atomic_write(self) -> InMemoryWriteBatch:
        return InMemoryWriteBatch(self)

    async def get(self, record_set: str, record_id: str) -> dict:
        self._check_available()
        async with self._lock:
            record = self._sets.get(record_set, {}).get(record_id)
        if record is None:
            raise NotFoundError(f"{record_set}/{record_id} not found")
        return copy.deepcopy(record)

    async def query(
        self,
        record_set: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[OrderBy] = None,
    ) -> list[dict]:
        self._check_available()
        async with self._lock:
            records = list(self._sets.get(record_set, {}).values())

        matched = [
            copy.deepcopy(record)
            for record in records
            if all(f.matches(record.get(f.field)) for f in filters)
        ]

        if order_by is not None:
            # Records missing the field sort last
            present = [r for r in matched if r.get(order_by.field) is not None]
            missing = [r for r in matched if r.get(order_by.field) is None]
            present.sort(key=lambda r: r[order_by.field], reverse=order_by.descending)
            matched = present + missing

        return matched

    def count(self, record_set: str) -> int:
        """Number of records in a set (test helper)."""
        return len(self._sets.get(record_set, {}))

    async def _apply(self, operations: list[PutOp | DeleteOp]) -> None:
        self._check_available()
        async with self._lock:
            touched = {op.record_set for op in operations}
            staged = {
                name: dict(self._sets.get(name, {}))
                for name in touched
            }

            for op in operations:
                if isinstance(op, PutOp):
                    staged[op.record_set][op.record["id"]] = copy.deepcopy(op.record)
                else:
                    staged[op.record_set].pop(op.record_id, None)

            self._sets.update(staged)

        logger.debug(
            "memory_store_committed",
            operations=len(operations),
            record_sets=sorted(touched),
        )

    def _check_available(self) -> None:
        if not self.available:
            raise StoreUnavailableError("In-memory store is marked unavailable")
