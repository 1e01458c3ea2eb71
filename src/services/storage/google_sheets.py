"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the document store because:
1. Users can view and correct their records directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for a small lender)
- No transactions (we handle this with careful ordering)
- No queries and no push notifications (we filter in Python, and the
  polling feed re-reads the sheet to detect changes)

The implementation follows the abstract interfaces, so we can swap
to another store later without changing the ledger logic.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from src.config import GoogleSheetsSettings, get_settings
from src.models.audit import AuditEvent, AuditEventType, AuditSeverity
from src.models.loan import Loan, LoanStatus, LoanType
from src.models.transaction import Transaction
from src.services.storage.filters import filter_loans, filter_transactions
from src.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LoanStorageInterface,
    StorageError,
    TransactionStorageInterface,
)

logger = structlog.get_logger(__name__)


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "transactionType",
    "amount",
    "date",
    "createdAt",
    "description",
    "status",
]

# Column mappings for Loans sheet
LOAN_COLUMNS = [
    "id",
    "loanType",
    "loanAmount",
    "interestRate",
    "repaymentDate",
    "borrowerName",
    "aging",
    "status",
    "createdAt",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Cell value, tolerating short rows and empty cells."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _parse_datetime(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

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
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

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
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
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

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS
        )

    def get_loans_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.loans_sheet_name, LOAN_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_worksheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of transaction storage.

    One transaction per row. IDs are assigned here on save.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(self, transaction: Transaction) -> list:
        doc = transaction.to_document()
        return [transaction.id or ""] + [
            doc[column] or "" for column in TRANSACTION_COLUMNS[1:]
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        # Amount is coerced by the model: a blank or garbled cell becomes 0
        return Transaction(
            id=_safe_get(row, 0) or None,
            transaction_type=_safe_get(row, 1),
            amount=_safe_get(row, 2),
            date=_parse_datetime(_safe_get(row, 3)),
            created_at=_parse_datetime(_safe_get(row, 4)),
            description=_safe_get(row, 5),
            status=_safe_get(row, 6, "completed"),
        )

    def _read_all(self) -> list[Transaction]:
        sheet = self._client.get_transactions_sheet()
        transactions = []
        for row in sheet.get_all_values()[1:]:  # Skip header
            if not row or not row[0]:
                continue
            try:
                transactions.append(self._row_to_transaction(row))
            except ValidationError as e:
                # One unreadable row must not hide the rest of the ledger
                logger.warning(
                    "transaction_row_skipped",
                    transaction_id=row[0],
                    error_count=e.error_count(),
                )
        return transactions

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_transaction(self, transaction: Transaction) -> Transaction:
        """Append a transaction row."""
        stored = transaction if transaction.id else transaction.model_copy(
            update={"id": str(uuid4())}
        )
        try:
            sheet = self._client.get_transactions_sheet()
            sheet.append_row(self._transaction_to_row(stored), value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")
        return stored

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        try:
            for transaction in self._read_all():
                if transaction.id == transaction_id:
                    return transaction
            return None
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

    async def delete_transaction(self, transaction_id: str) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()

            # Row 1 is the header
            for idx, row in enumerate(all_rows[1:], start=2):
                if row and row[0] == transaction_id:
                    sheet.delete_rows(idx)
                    return True

            return False
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    async def list_transactions(
        self,
        transaction_type: Optional[str] = None,
        search: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Transaction]:
        try:
            transactions = self._read_all()
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

        return filter_transactions(
            transactions,
            transaction_type=transaction_type,
            search=search,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=offset,
        )

    async def list_all_transactions(self) -> list[Transaction]:
        try:
            return self._read_all()
        except Exception as e:
            raise StorageError(f"Failed to read transactions: {e}")


class GoogleSheetsLoanStorage(LoanStorageInterface):
    """Google Sheets implementation of loan storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _loan_to_row(self, loan: Loan) -> list:
        doc = loan.to_document()
        return [loan.id or ""] + [doc[column] for column in LOAN_COLUMNS[1:]]

    def _row_to_loan(self, row: list) -> Loan:
        return Loan(
            id=_safe_get(row, 0),
            loan_type=LoanType(_safe_get(row, 1)),
            loan_amount=Decimal(_safe_get(row, 2)),
            interest_rate=Decimal(_safe_get(row, 3, "0")),
            repayment_date=datetime.fromisoformat(_safe_get(row, 4)),
            borrower_name=_safe_get(row, 5),
            aging=_safe_get(row, 6) or None,
            status=LoanStatus(_safe_get(row, 7, "active")),
            created_at=datetime.fromisoformat(_safe_get(row, 8)),
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_loan(self, loan: Loan) -> Loan:
        stored = loan if loan.id else loan.model_copy(update={"id": str(uuid4())})
        try:
            sheet = self._client.get_loans_sheet()
            sheet.append_row(self._loan_to_row(stored), value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save loan: {e}")
        return stored

    async def list_loans(
        self,
        borrower: Optional[str] = None,
        status: Optional[LoanStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Loan]:
        try:
            sheet = self._client.get_loans_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list loans: {e}")

        loans = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                loans.append(self._row_to_loan(row))
            except Exception:
                continue  # Skip malformed rows

        return filter_loans(
            loans, borrower=borrower, status=status, limit=limit, offset=offset
        )


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=_safe_get(row, 5) or None,
            correlation_id=UUID(_safe_get(row, 6)) if _safe_get(row, 6) else None,
            description=_safe_get(row, 7),
            details=json.loads(_safe_get(row, 8)) if _safe_get(row, 8) else {},
            error_message=_safe_get(row, 9) or None,
            is_user_action=_safe_get(row, 10).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception:
                continue
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow; AuditLogger logs the failure
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._read_events() if e.correlation_id == correlation_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
