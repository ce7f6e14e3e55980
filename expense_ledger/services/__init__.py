"""Services package."""

from expense_ledger.services.storage import (
    CommitConflictError,
    FieldFilter,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    NotFoundError,
    OrderBy,
    RecordStore,
    StorageError,
    StoreUnavailableError,
    WriteBatch,
)

__all__ = [
    "CommitConflictError",
    "FieldFilter",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    "InMemoryRecordStore",
    "NotFoundError",
    "OrderBy",
    "RecordStore",
    "StorageError",
    "StoreUnavailableError",
    "WriteBatch",
]
