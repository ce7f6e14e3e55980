"""
Storage Services Package

Provides the record store contract and its implementations.
Ships an in-memory store and a Google Sheets store; the ledger core only
ever sees the RecordStore interface.
"""

from expense_ledger.services.storage.interface import (
    CommitConflictError,
    FieldFilter,
    NotFoundError,
    OrderBy,
    RecordStore,
    StorageError,
    StoreUnavailableError,
    WriteBatch,
)
from expense_ledger.services.storage.memory import InMemoryRecordStore
from expense_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
)

__all__ = [
    # Interfaces
    "FieldFilter",
    "OrderBy",
    "RecordStore",
    "WriteBatch",
    # Exceptions
    "CommitConflictError",
    "NotFoundError",
    "StorageError",
    "StoreUnavailableError",
    # Implementations
    "InMemoryRecordStore",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
]
