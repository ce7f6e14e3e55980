"""
Abstract Record Store Interface

DESIGN DECISION: The ledger core is written against this contract, never
against a specific storage product. This allows us to:
1. Keep Google Sheets as a backend users can open and read
2. Use in-memory storage for testing
3. Swap in a real database later without touching the ledger

The contract is deliberately small:
- atomic multi-record commit
- point lookup by id
- filtered, ordered queries over one record set

There are no joins and no server-side aggregation. Folding totals is the
job of the summary engine.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Sequence


# Operators a FieldFilter may use
EQ = "=="
LT = "<"
LE = "<="
GT = ">"
GE = ">="

FILTER_OPERATORS = (EQ, LT, LE, GT, GE)


@dataclass(frozen=True)
class FieldFilter:
    """Equality or range predicate on a single named field."""

    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in FILTER_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")

    def matches(self, candidate: Any) -> bool:
        """Evaluate the predicate against a field value (None never matches)."""
        if candidate is None:
            return False
        if self.op == EQ:
            return candidate == self.value
        if self.op == LT:
            return candidate < self.value
        if self.op == LE:
            return candidate <= self.value
        if self.op == GT:
            return candidate > self.value
        return candidate >= self.value


@dataclass(frozen=True)
class OrderBy:
    """Ordering by a single field."""

    field: str
    descending: bool = False


@dataclass(frozen=True)
class PutOp:
    record_set: str
    record: dict


@dataclass(frozen=True)
class DeleteOp:
    record_set: str
    record_id: str


class WriteBatch(ABC):
    """
    Scoped write accumulator.

    `put` and `delete` only record intent. Nothing is visible to readers
    until `commit()` succeeds, and then everything is visible at once.
    A batch can be committed only once.
    """

    def __init__(self):
        self._operations: list[PutOp | DeleteOp] = []
        self._committed = False

    @property
    def operations(self) -> list[PutOp | DeleteOp]:
        return list(self._operations)

    def put(self, record_set: str, record: dict) -> "WriteBatch":
        """Insert or fully overwrite a record. The record must carry an 'id'."""
        self._check_open()
        if not record.get("id"):
            raise ValueError("Record must have an 'id' to be written")
        self._operations.append(PutOp(record_set, dict(record)))
        return self

    def delete(self, record_set: str, record_id: str) -> "WriteBatch":
        """Delete a record by id. Deleting a missing record is a no-op."""
        self._check_open()
        self._operations.append(DeleteOp(record_set, record_id))
        return self

    def __len__(self) -> int:
        return len(self._operations)

    async def commit(self) -> None:
        """
        Apply all accumulated operations as one indivisible unit.

        Raises:
            StoreUnavailableError: If the backend cannot be reached
            CommitConflictError: If the batch cannot be applied as a whole
        """
        self._check_open()
        self._committed = True
        await self._apply(self.operations)

    def _check_open(self) -> None:
        if self._committed:
            raise CommitConflictError("Write batch has already been committed")

    @abstractmethod
    async def _apply(self, operations: list[PutOp | DeleteOp]) -> None:
        """Backend-specific all-or-nothing application of the operations."""
        pass


class RecordStore(ABC):
    """
    Abstract interface for the durable record store.

    Any storage implementation (in-memory, Google Sheets, a database)
    must implement these methods.
    """

    @abstractmethod
    def new_id(self) -> str:
        """Generate a fresh opaque record identifier."""
        pass

    @abstractmethod
    def begin_atomic_write(self) -> WriteBatch:
        """Start a new write batch."""
        pass

    @abstractmethod
    async def get(self, record_set: str, record_id: str) -> dict:
        """
        Retrieve a record by its ID.

        Args:
            record_set: Name of the record set (e.g. 'expenses')
            record_id: The record's unique identifier

        Returns:
            The record

        Raises:
            NotFoundError: If no such record exists
            StoreUnavailableError: If the backend cannot be reached
        """
        pass

    @abstractmethod
    async def query(
        self,
        record_set: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[OrderBy] = None,
    ) -> list[dict]:
        """
        List records matching every filter.

        Args:
            record_set: Name of the record set
            filters: Equality / range predicates, all of which must hold
            order_by: Optional single-field ordering

        Returns:
            Matching records (empty list if none)

        Raises:
            StoreUnavailableError: If the backend cannot be reached
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Referenced record not found in storage."""
    pass


class StoreUnavailableError(StorageError):
    """Could not reach the storage backend."""
    pass


class CommitConflictError(StorageError):
    """An atomic write could not be applied; none of it is visible."""
    pass
