"""
Google Sheets Record Store

DESIGN DECISION: Google Sheets remains a supported backend because:
1. Non-technical users can view their expenses directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

Each record set is one worksheet: a header row of field names, then one
record per row. Every cell is written as a raw string; the ledger models
parse them back on read.

ATOMICITY: a whole write batch is translated into a single
`spreadsheets.batchUpdate` call. Sheets applies a batchUpdate all-or-nothing,
so an expense and its items either all land or none do.

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- Limited query capabilities (we filter in Python)
- Row positions are resolved just before the batch is sent; there is no
  compare-and-swap, so concurrent writers are last-writer-wins
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Sequence
from uuid import uuid4

import gspread
import requests
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from expense_ledger.config import GoogleSheetsSettings, get_settings
from expense_ledger.logs import get_logger
from expense_ledger.models import EXPENSE_ITEMS, EXPENSES
from expense_ledger.services.storage.interface import (
    CommitConflictError,
    DeleteOp,
    FieldFilter,
    NotFoundError,
    OrderBy,
    PutOp,
    RecordStore,
    StorageError,
    StoreUnavailableError,
    WriteBatch,
)


logger = get_logger(__name__)


# Column mappings per record set
EXPENSE_COLUMNS = [
    "id",
    "ownerId",
    "date",
    "totalAmount",
    "createdAt",
    "updatedAt",
]

EXPENSE_ITEM_COLUMNS = [
    "id",
    "expenseId",
    "name",
    "price",
    "createdAt",
    "updatedAt",
]

DEFAULT_COLUMNS = {
    EXPENSES: EXPENSE_COLUMNS,
    EXPENSE_ITEMS: EXPENSE_ITEM_COLUMNS,
}

# HTTP statuses that mean "try again later" rather than "bad batch"
_UNAVAILABLE_STATUSES = {429, 500, 502, 503, 504}


def to_cell(value: Any) -> str:
    """Serialize a record value into a raw cell string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return str(value)


def row_to_record(columns: list[str], row: list[str]) -> dict:
    """Convert a worksheet row to a record; empty cells become None."""
    record = {}
    for index, column in enumerate(columns):
        value = row[index] if index < len(row) else ""
        record[column] = value if value != "" else None
    return record


def record_to_row(columns: list[str], record: dict) -> list[str]:
    """Convert a record to a worksheet row in column order."""
    return [to_cell(record.get(column)) for column in columns]


def _row_data(values: list[str]) -> dict:
    return {
        "values": [
            {"userEnteredValue": {"stringValue": value}} for value in values
        ]
    }


def _map_api_error(error: gspread.exceptions.APIError, action: str) -> StorageError:
    status = getattr(getattr(error, "response", None), "status_code", None)
    if status in _UNAVAILABLE_STATUSES:
        return StoreUnavailableError(f"Google Sheets unavailable while {action}: {error}")
    if status == 404:
        return NotFoundError(f"Google Sheets resource not found while {action}: {error}")
    return CommitConflictError(f"Google Sheets rejected request while {action}: {error}")


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for establishing the
    connection. Individual reads and commits are never retried here.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        retry=retry_if_exception_type(StoreUnavailableError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                raise StorageError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise StoreUnavailableError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise StoreUnavailableError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
            logger.info("worksheet_created", title=title, columns=columns)
        return sheet


class GoogleSheetsWriteBatch(WriteBatch):
    """Write batch sent to Sheets as one batchUpdate."""

    def __init__(self, store: "GoogleSheetsRecordStore"):
        super().__init__()
        self._store = store

    async def _apply(self, operations: list[PutOp | DeleteOp]) -> None:
        await asyncio.to_thread(self._store._commit_sync, operations)


class GoogleSheetsRecordStore(RecordStore):
    """
    Google Sheets implementation of the record store.

    Records are stored as rows with one record per row.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        columns: Optional[dict[str, list[str]]] = None,
        sheet_names: Optional[dict[str, str]] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._columns = columns or DEFAULT_COLUMNS
        settings = self._client.settings
        self._sheet_names = sheet_names or {
            EXPENSES: settings.expenses_sheet_name,
            EXPENSE_ITEMS: settings.expense_items_sheet_name,
        }

    def new_id(self) -> str:
        return uuid4().hex

    def begin_atomic_write(self) -> GoogleSheetsWriteBatch:
        return GoogleSheetsWriteBatch(self)

    async def get(self, record_set: str, record_id: str) -> dict:
        records = await asyncio.to_thread(self._read_records, record_set)
        for record in records:
            if record.get("id") == record_id:
                return record
        raise NotFoundError(f"{record_set}/{record_id} not found")

    async def query(
        self,
        record_set: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[OrderBy] = None,
    ) -> list[dict]:
        records = await asyncio.to_thread(self._read_records, record_set)

        # Cells are strings; compare against the filter value serialized the
        # same way (ISO dates order correctly as text)
        cell_filters = [FieldFilter(f.field, f.op, to_cell(f.value)) for f in filters]
        matched = [
            record for record in records
            if all(f.matches(record.get(f.field)) for f in cell_filters)
        ]

        if order_by is not None:
            present = [r for r in matched if r.get(order_by.field) is not None]
            missing = [r for r in matched if r.get(order_by.field) is None]
            present.sort(key=lambda r: r[order_by.field], reverse=order_by.descending)
            matched = present + missing

        return matched

    # -------------------------------------------------------------------------
    # Sync helpers (run in a worker thread)
    # -------------------------------------------------------------------------

    def _columns_for(self, record_set: str) -> list[str]:
        try:
            return self._columns[record_set]
        except KeyError:
            raise StorageError(f"Unknown record set: {record_set}") from None

    def _worksheet(self, record_set: str) -> gspread.Worksheet:
        title = self._sheet_names.get(record_set, record_set)
        return self._client.get_worksheet(title, self._columns_for(record_set))

    def _read_rows(self, record_set: str) -> tuple[gspread.Worksheet, list[list[str]]]:
        try:
            sheet = self._worksheet(record_set)
            return sheet, sheet.get_all_values()[1:]  # Skip header
        except gspread.exceptions.APIError as e:
            raise _map_api_error(e, f"reading {record_set}") from e
        except requests.exceptions.RequestException as e:
            raise StoreUnavailableError(
                f"Google Sheets unreachable while reading {record_set}: {e}"
            ) from e

    def _read_records(self, record_set: str) -> list[dict]:
        columns = self._columns_for(record_set)
        _, rows = self._read_rows(record_set)
        return [
            row_to_record(columns, row)
            for row in rows
            if row and row[0]  # Skip empty rows
        ]

    def build_requests(self, operations: list[PutOp | DeleteOp]) -> list[dict]:
        """
        Translate batch operations into batchUpdate requests.

        Order matters: cell updates use the current row positions, so they
        go first; row deletions follow bottom-up; appends go last.
        """
        # Last operation on an id wins within one batch
        final: dict[str, dict[str, Optional[dict]]] = {}
        for op in operations:
            per_set = final.setdefault(op.record_set, {})
            if isinstance(op, PutOp):
                per_set[op.record["id"]] = op.record
            else:
                per_set[op.record_id] = None

        updates: list[dict] = []
        deletions: list[tuple[int, int]] = []
        appends: list[dict] = []

        for record_set, outcome in final.items():
            columns = self._columns_for(record_set)
            sheet, rows = self._read_rows(record_set)
            # Grid row 0 is the header, so data row i sits at grid row i + 1
            positions = {
                row[0]: index + 1 for index, row in enumerate(rows) if row and row[0]
            }
            new_rows = []

            for record_id, record in outcome.items():
                position = positions.get(record_id)
                if record is None:
                    if position is not None:
                        deletions.append((sheet.id, position))
                elif position is not None:
                    updates.append({
                        "updateCells": {
                            "rows": [_row_data(record_to_row(columns, record))],
                            "fields": "userEnteredValue",
                            "start": {
                                "sheetId": sheet.id,
                                "rowIndex": position,
                                "columnIndex": 0,
                            },
                        }
                    })
                else:
                    new_rows.append(_row_data(record_to_row(columns, record)))

            if new_rows:
                appends.append({
                    "appendCells": {
                        "sheetId": sheet.id,
                        "rows": new_rows,
                        "fields": "userEnteredValue",
                    }
                })

        deletions.sort(key=lambda item: item[1], reverse=True)
        delete_requests = [
            {
                "deleteDimension": {
                    "range": {
                        "sheetId": sheet_id,
                        "dimension": "ROWS",
                        "startIndex": position,
                        "endIndex": position + 1,
                    }
                }
            }
            for sheet_id, position in deletions
        ]

        return updates + delete_requests + appends

    def _commit_sync(self, operations: list[PutOp | DeleteOp]) -> None:
        batch_requests = self.build_requests(operations)
        if not batch_requests:
            return

        try:
            self._client.get_spreadsheet().batch_update({"requests": batch_requests})
        except gspread.exceptions.APIError as e:
            logger.error("sheets_commit_failed", requests=len(batch_requests), error=str(e))
            raise _map_api_error(e, "committing batch") from e
        except requests.exceptions.RequestException as e:
            logger.error("sheets_commit_failed", requests=len(batch_requests), error=str(e))
            raise StoreUnavailableError(
                f"Google Sheets unreachable while committing batch: {e}"
            ) from e

        logger.info("sheets_batch_committed", requests=len(batch_requests))
