"""
Google Sheets Document Store

DESIGN DECISION: Google Sheets is the hosted backend because:
1. Trip organisers can inspect their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

Every document lives in a single worksheet, one row per document:
    [collection_path, doc_id, fields_json, updated_at]

TRADEOFFS:
- Not suitable for high-volume data (fine for short trips)
- No multi-row transactions (cascades are NOT atomic)
- Queries filter in Python after reading the whole sheet
- Sheets has no change feed, so subscriptions poll
"""

import asyncio
import json
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from tripledger.config import GoogleSheetsSettings, get_settings
from tripledger.services.storage.interface import (
    DocumentStore,
    NotFoundError,
    SnapshotCallback,
    StorageError,
    StoredDocument,
    StoreUnavailableError,
    Subscription,
    matches,
)


logger = structlog.get_logger(__name__)

DOCUMENT_COLUMNS = [
    "collection_path",
    "doc_id",
    "fields_json",
    "updated_at",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
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
            except FileNotFoundError:
                raise StoreUnavailableError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StoreUnavailableError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StoreUnavailableError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_documents_sheet(self) -> gspread.Worksheet:
        """Get or create the Documents worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.documents_sheet_name)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=self._settings.documents_sheet_name,
                rows=2000,
                cols=len(DOCUMENT_COLUMNS),
            )
            sheet.append_row(DOCUMENT_COLUMNS)
        return sheet


class GoogleSheetsDocumentStore(DocumentStore):
    """
    Google Sheets implementation of the document store.

    Field maps are JSON-serialized into a single cell.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        poll_interval_seconds: Optional[float] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._poll_interval = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else get_settings().store.poll_interval_seconds
        )
        self._sheet: Optional[gspread.Worksheet] = None
        self._pollers: dict[int, asyncio.Task] = {}

    @property
    def is_ready(self) -> bool:
        return self._sheet is not None

    async def connect(self) -> None:
        if self._sheet is None:
            try:
                self._sheet = self._client.get_documents_sheet()
            except StoreUnavailableError:
                raise
            except Exception as e:
                raise StoreUnavailableError(f"Failed to open documents sheet: {e}")

    def _require_sheet(self) -> gspread.Worksheet:
        if self._sheet is None:
            raise StoreUnavailableError("Google Sheets store is not connected")
        return self._sheet

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read_rows(self) -> list[list[str]]:
        """All data rows (header excluded)."""
        return self._require_sheet().get_all_values()[1:]

    def _row_to_document(self, row: list[str]) -> Optional[StoredDocument]:
        """Convert a spreadsheet row to a document. Malformed rows are skipped."""
        try:
            fields = json.loads(row[2]) if len(row) > 2 and row[2] else {}
        except json.JSONDecodeError:
            logger.warning(
                "malformed_document_row",
                path=row[0],
                doc_id=row[1] if len(row) > 1 else None,
            )
            return None
        if not isinstance(fields, dict):
            return None
        return StoredDocument(id=row[1], fields=fields)

    def _find_row(self, rows: list[list[str]], path: str, doc_id: str) -> Optional[int]:
        """Sheet row number (1-based, header is row 1) of a document."""
        for idx, row in enumerate(rows, start=2):
            if len(row) > 1 and row[0] == path and row[1] == doc_id:
                return idx
        return None

    async def insert(self, path: str, fields: dict[str, Any]) -> str:
        sheet = self._require_sheet()
        doc_id = uuid4().hex
        try:
            sheet.append_row(
                [path, doc_id, json.dumps(fields), datetime.utcnow().isoformat()],
                value_input_option="RAW",
            )
        except Exception as e:
            raise StorageError(f"Failed to insert into {path}: {e}")
        return doc_id

    async def get(self, path: str, doc_id: str) -> StoredDocument:
        self._require_sheet()
        try:
            rows = self._read_rows()
        except Exception as e:
            raise StorageError(f"Failed to read {path}: {e}")

        idx = self._find_row(rows, path, doc_id)
        if idx is None:
            raise NotFoundError(path, doc_id)
        document = self._row_to_document(rows[idx - 2])
        if document is None:
            raise StorageError(f"Malformed document: {path}/{doc_id}")
        return document

    async def query(
        self,
        path: str,
        where: Optional[dict[str, Any]] = None,
    ) -> list[StoredDocument]:
        self._require_sheet()
        try:
            rows = self._read_rows()
        except Exception as e:
            raise StorageError(f"Failed to query {path}: {e}")

        documents = []
        for row in rows:
            if not row or row[0] != path:
                continue
            document = self._row_to_document(row)
            if document is not None and matches(document.fields, where):
                documents.append(document)
        return documents

    async def update(self, path: str, doc_id: str, fields: dict[str, Any]) -> None:
        sheet = self._require_sheet()
        try:
            rows = self._read_rows()
        except Exception as e:
            raise StorageError(f"Failed to read {path}: {e}")

        idx = self._find_row(rows, path, doc_id)
        if idx is None:
            raise NotFoundError(path, doc_id)

        current = self._row_to_document(rows[idx - 2])
        merged = dict(current.fields if current else {})
        merged.update(fields)
        try:
            sheet.update_cell(idx, 3, json.dumps(merged))
            sheet.update_cell(idx, 4, datetime.utcnow().isoformat())
        except Exception as e:
            raise StorageError(f"Failed to update {path}/{doc_id}: {e}")

    async def delete(self, path: str, doc_id: str) -> None:
        sheet = self._require_sheet()
        try:
            rows = self._read_rows()
        except Exception as e:
            raise StorageError(f"Failed to read {path}: {e}")

        idx = self._find_row(rows, path, doc_id)
        if idx is None:
            raise NotFoundError(path, doc_id)
        try:
            sheet.delete_rows(idx)
        except Exception as e:
            raise StorageError(f"Failed to delete {path}/{doc_id}: {e}")

    async def list_children(self, path: str) -> list[str]:
        self._require_sheet()
        try:
            rows = self._read_rows()
        except Exception as e:
            raise StorageError(f"Failed to list {path}: {e}")

        prefix = path.rstrip("/") + "/"
        children = []
        for row in rows:
            if not row or not row[0].startswith(prefix):
                continue
            child = row[0][len(prefix):].split("/", 1)[0]
            if child and child not in children:
                children.append(child)
        return children

    def subscribe(
        self,
        path: str,
        where: Optional[dict[str, Any]],
        on_snapshot: SnapshotCallback,
    ) -> Subscription:
        """
        Poll a query and deliver a snapshot whenever its content changes.

        Must be called from a running event loop.
        """
        self._require_sheet()
        subscription = Subscription(
            path,
            where,
            on_snapshot,
            on_cancel=self._stop_polling,
        )
        task = asyncio.get_running_loop().create_task(self._poll(subscription))
        self._pollers[id(subscription)] = task
        return subscription

    async def _poll(self, subscription: Subscription) -> None:
        last_signature: Optional[str] = None
        while subscription.active:
            try:
                documents = await self.query(subscription.path, subscription.where)
            except StorageError as e:
                logger.error(
                    "subscription_poll_failed",
                    path=subscription.path,
                    error=str(e),
                )
            else:
                signature = json.dumps(
                    sorted((d.id, d.fields) for d in documents),
                    sort_keys=True,
                    default=str,
                )
                if signature != last_signature:
                    last_signature = signature
                    subscription.deliver(documents)
            await asyncio.sleep(self._poll_interval)

    def _stop_polling(self, subscription: Subscription) -> None:
        task = self._pollers.pop(id(subscription), None)
        if task is not None and not task.done():
            task.cancel()
