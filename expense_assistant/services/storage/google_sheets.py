"""
Google Sheets Storage Implementation

The persistent ledger is a spreadsheet the owner can open and edit by
hand. Each insert or delete is one API call; filtering happens in Python
after reading the whole sheet, which is fine at personal-ledger sizes.

Owner scoping is enforced here, row by row: the user_id column must match
the caller's owner_id for a row to be listed or deleted.
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from expense_assistant.config import GoogleSheetsSettings, get_settings
from expense_assistant.models.audit import AuditEvent, AuditEventType, AuditSeverity
from expense_assistant.models.expense import (
    ExpenseCategory,
    ExpenseEntry,
    NewExpense,
)
from expense_assistant.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


# Header row of the expenses worksheet
EXPENSE_COLUMNS = [
    "id",
    "user_id",
    "amount",
    "category",
    "date",
    "description",
    "created_at",
]

# Header row of the audit worksheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "owner_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]


class GoogleSheetsClient:
    """Lazily authorized gspread handle shared by the ledger and the audit store."""

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
        """Authorize with the service account key; retried on failure."""
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
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        """Expenses worksheet, created with its header row on first use."""
        return self._get_or_create_sheet(
            self._settings.expenses_sheet_name, EXPENSE_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Audit worksheet, created with its header row on first use."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


def _safe_get(row: list, index: int, default: str = "") -> str:
    """gspread drops trailing empty cells, so short rows are normal."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsLedger(LedgerInterface):
    """
    Google Sheets implementation of the expense ledger.

    Expenses are stored one per row. Every read filters on the user_id
    column before anything else.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _entry_to_row(self, entry: ExpenseEntry) -> list:
        """Convert an ExpenseEntry to a spreadsheet row."""
        return [
            entry.id,
            entry.owner_id,
            str(entry.amount),
            entry.category.value,
            entry.date.isoformat(),
            entry.description or "",
            entry.created_at.isoformat(),
        ]

    def _row_to_entry(self, row: list) -> ExpenseEntry:
        """Convert a spreadsheet row to an ExpenseEntry."""
        created_at = _safe_get(row, 6)
        return ExpenseEntry(
            id=_safe_get(row, 0),
            owner_id=_safe_get(row, 1),
            amount=Decimal(_safe_get(row, 2)),
            category=ExpenseCategory(_safe_get(row, 3)),
            date=date.fromisoformat(_safe_get(row, 4)),
            description=_safe_get(row, 5) or None,
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(timezone.utc),
        )

    async def add_expense(
        self,
        owner_id: str,
        expense: NewExpense,
    ) -> ExpenseEntry:
        """Append one expense row."""
        entry = ExpenseEntry.from_new(owner_id, expense)
        try:
            sheet = self._client.get_expenses_sheet()
            sheet.append_row(self._entry_to_row(entry), value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}") from e
        return entry

    async def list_expenses(
        self,
        owner_id: str,
        category: Optional[ExpenseCategory] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> list[ExpenseEntry]:
        """List an owner's expenses with optional filters."""
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}") from e

        entries = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            if _safe_get(row, 1) != owner_id:
                continue

            try:
                entry = self._row_to_entry(row)
            except (ValueError, ArithmeticError) as e:
                logger.warning("malformed_expense_row", expense_id=row[0], error=str(e))
                continue

            if category and entry.category != category:
                continue
            if start_date and entry.date < start_date:
                continue
            if end_date and entry.date > end_date:
                continue

            entries.append(entry)

        entries.sort(key=lambda e: (e.date, e.created_at), reverse=True)

        if limit is not None:
            entries = entries[:limit]
        return entries

    async def delete_expense(
        self,
        owner_id: str,
        expense_id: str,
    ) -> bool:
        """Delete the row matching both id and owner."""
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
                if row and row[0] == expense_id and _safe_get(row, 1) == owner_id:
                    sheet.delete_rows(idx)
                    return True

            return False
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}") from e


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """Audit trail kept in its own worksheet, append only."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            owner_id=_safe_get(row, 4) or None,
            correlation_id=UUID(_safe_get(row, 5)) if _safe_get(row, 5) else None,
            description=_safe_get(row, 6),
            details=json.loads(_safe_get(row, 7)) if _safe_get(row, 7) else {},
            error_message=_safe_get(row, 8) or None,
        )

    def _read_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError as e:
                logger.warning("malformed_audit_row", event_id=row[0], error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}") from e

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID, oldest first."""
        events = [
            e for e in self._read_events()
            if e.correlation_id == correlation_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events, newest first."""
        events = self._read_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
