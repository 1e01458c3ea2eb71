"""
Tests for storage backends.

The Google Sheets backends run against a FakeWorksheet that keeps rows
as lists of strings, the way gspread returns them.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from src.ledger import BalanceSheetService
from src.models.audit import AuditEventBuilder
from src.models.balance import LedgerStatus
from src.models.loan import Loan, LoanStatus, LoanType
from src.models.transaction import Transaction
from src.services.feed import PollingTransactionFeed
from src.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsLoanStorage,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryLoanStorage,
    InMemoryTransactionStorage,
)
from src.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    LOAN_COLUMNS,
    TRANSACTION_COLUMNS,
)


BASE = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def txn(kind: str, amount, description: str = "", days: int = 0) -> Transaction:
    return Transaction(
        transaction_type=kind,
        amount=Decimal(str(amount)),
        description=description,
        date=BASE + timedelta(days=days),
    )


def loan(borrower: str, days: int = 0, **overrides) -> Loan:
    data = dict(
        loan_type=LoanType.PERSONAL,
        loan_amount=Decimal("100000"),
        interest_rate=Decimal("10"),
        repayment_date=BASE + timedelta(days=60),
        borrower_name=borrower,
        created_at=BASE + timedelta(days=days),
    )
    data.update(overrides)
    return Loan(**data)


class FakeWorksheet:

    def __init__(self, header: list[str]):
        self.rows: list[list[str]] = [list(header)]

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append(["" if cell is None else str(cell) for cell in row])

    def delete_rows(self, index: int):
        del self.rows[index - 1]


class FakeSheetsClient:

    def __init__(self):
        self.transactions = FakeWorksheet(TRANSACTION_COLUMNS)
        self.loans = FakeWorksheet(LOAN_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_transactions_sheet(self):
        return self.transactions

    def get_loans_sheet(self):
        return self.loans

    def get_audit_sheet(self):
        return self.audit


class TestInMemoryTransactionStorage:
    """Tests for the in-memory transaction store."""

    def test_save_assigns_id(self):
        storage = InMemoryTransactionStorage()
        saved = asyncio.run(storage.save_transaction(txn("Income", 1)))
        assert saved.id
        assert asyncio.run(storage.get_transaction(saved.id)) == saved

    def test_duplicate_id_rejected(self):
        storage = InMemoryTransactionStorage()
        saved = asyncio.run(storage.save_transaction(txn("Income", 1)))
        with pytest.raises(DuplicateError):
            asyncio.run(storage.save_transaction(saved))

    def test_delete(self):
        storage = InMemoryTransactionStorage()
        saved = asyncio.run(storage.save_transaction(txn("Income", 1)))
        assert asyncio.run(storage.delete_transaction(saved.id)) is True
        assert asyncio.run(storage.delete_transaction(saved.id)) is False
        assert asyncio.run(storage.list_all_transactions()) == []

    def test_list_newest_first_with_limit(self):
        storage = InMemoryTransactionStorage([
            txn("Income", 1, days=0),
            txn("Income", 2, days=2),
            txn("Income", 3, days=1),
        ])
        listed = asyncio.run(storage.list_transactions(limit=2))
        assert [t.amount for t in listed] == [Decimal("2"), Decimal("3")]

    def test_search_is_case_insensitive(self):
        storage = InMemoryTransactionStorage([
            txn("Income", 1, "Repayment from Amina"),
            txn("Expense", 2, "Office rent"),
        ])
        listed = asyncio.run(storage.list_transactions(search="AMINA"))
        assert [t.description for t in listed] == ["Repayment from Amina"]

    def test_type_and_date_filters(self):
        storage = InMemoryTransactionStorage([
            txn("Income", 1, days=0),
            txn("Expense", 2, days=1),
            txn("Income", 3, days=5),
        ])
        listed = asyncio.run(storage.list_transactions(
            transaction_type="Income",
            date_from=BASE + timedelta(days=1),
        ))
        assert [t.amount for t in listed] == [Decimal("3")]

    def test_change_callback(self):
        storage = InMemoryTransactionStorage()
        seen = []
        remove = storage.on_change(lambda transactions: seen.append(len(transactions)))
        asyncio.run(storage.save_transaction(txn("Income", 1)))
        remove()
        asyncio.run(storage.save_transaction(txn("Income", 1)))
        assert seen == [1]


class TestInMemoryLoanStorage:
    """Tests for the in-memory loan store."""

    def test_borrower_search_and_status(self):
        storage = InMemoryLoanStorage()
        asyncio.run(storage.save_loan(loan("Amina Nakato", days=0)))
        asyncio.run(storage.save_loan(loan("Joseph Okello", days=1)))
        asyncio.run(storage.save_loan(loan("Aminata Diallo", days=2, status=LoanStatus.REPAID)))

        found = asyncio.run(storage.list_loans(borrower="amina"))
        assert [l.borrower_name for l in found] == ["Aminata Diallo", "Amina Nakato"]

        active = asyncio.run(storage.list_loans(borrower="amina", status=LoanStatus.ACTIVE))
        assert [l.borrower_name for l in active] == ["Amina Nakato"]


class TestInMemoryAuditStorage:
    """Tests for the in-memory audit log."""

    def test_events_by_correlation_id(self):
        storage = InMemoryAuditStorage()
        correlation_id = uuid4()
        asyncio.run(storage.append_event(
            AuditEventBuilder.transaction_deleted("a", correlation_id)
        ))
        asyncio.run(storage.append_event(
            AuditEventBuilder.transaction_deleted("b", uuid4())
        ))
        events = asyncio.run(storage.get_events_by_correlation_id(correlation_id))
        assert [e.entity_id for e in events] == ["a"]


class TestGoogleSheetsTransactionStorage:
    """Tests for the Sheets transaction store against a fake worksheet."""

    def test_save_and_read_back(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsTransactionStorage(client)

        saved = asyncio.run(storage.save_transaction(txn("Income", "1000.50", "Grant")))
        loaded = asyncio.run(storage.list_all_transactions())

        assert len(client.transactions.rows) == 2
        assert loaded[0].id == saved.id
        assert loaded[0].amount == Decimal("1000.50")
        assert loaded[0].date == saved.date
        assert loaded[0].description == "Grant"

    def test_garbled_amount_reads_as_zero(self):
        client = FakeSheetsClient()
        client.transactions.rows.append(["t1", "Income", "oops", "", "", "", ""])
        storage = GoogleSheetsTransactionStorage(client)

        loaded = asyncio.run(storage.list_all_transactions())

        assert loaded[0].amount == Decimal("0")
        assert loaded[0].status == "completed"

    def test_long_description_is_loaded(self):
        client = FakeSheetsClient()
        client.transactions.rows.append(["t1", "Income", "100", "", "", "y" * 501, ""])
        storage = GoogleSheetsTransactionStorage(client)

        loaded = asyncio.run(storage.list_all_transactions())

        assert len(loaded[0].description) == 501

    def test_unreadable_row_is_skipped(self):
        class StrictStorage(GoogleSheetsTransactionStorage):
            def _row_to_transaction(self, row):
                if row[0] == "bad":
                    return Transaction(date="not a date")
                return super()._row_to_transaction(row)

        client = FakeSheetsClient()
        client.transactions.rows.append(["good", "Income", "100"])
        client.transactions.rows.append(["bad", "Income", "5"])
        storage = StrictStorage(client)

        loaded = asyncio.run(storage.list_all_transactions())

        assert [t.id for t in loaded] == ["good"]

    def test_balance_sheet_survives_odd_rows(self):
        client = FakeSheetsClient()
        client.transactions.rows.append(["t1", "Income", "1000", "", "", "Grant", ""])
        client.transactions.rows.append(["t2", "Expense", "200", "", "", "z" * 501, ""])
        client.transactions.rows.append(["t3", "Income", "1e1000000", "", "", "Typo", ""])
        feed = PollingTransactionFeed(GoogleSheetsTransactionStorage(client), interval_seconds=0)
        service = BalanceSheetService()
        service.attach(feed)

        assert asyncio.run(feed.poll_once()) is True

        state = service.state
        assert state.has_snapshot
        assert state.status is LedgerStatus.FRESH
        assert state.transaction_count == 3
        assert state.snapshot.assets.cash_at_hand == Decimal("800")

    def test_rows_without_id_are_skipped(self):
        client = FakeSheetsClient()
        client.transactions.rows.append(["", "Income", "5"])
        storage = GoogleSheetsTransactionStorage(client)
        assert asyncio.run(storage.list_all_transactions()) == []

    def test_delete_removes_row(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsTransactionStorage(client)
        first = asyncio.run(storage.save_transaction(txn("Income", 1)))
        second = asyncio.run(storage.save_transaction(txn("Income", 2)))

        assert asyncio.run(storage.delete_transaction(first.id)) is True

        remaining = asyncio.run(storage.list_all_transactions())
        assert [t.id for t in remaining] == [second.id]

    def test_search(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsTransactionStorage(client)
        asyncio.run(storage.save_transaction(txn("Income", 1, "School fees")))
        asyncio.run(storage.save_transaction(txn("Expense", 2, "Fuel")))

        found = asyncio.run(storage.list_transactions(search="school"))
        assert [t.description for t in found] == ["School fees"]


class TestGoogleSheetsLoanStorage:
    """Tests for the Sheets loan store against a fake worksheet."""

    def test_save_and_list(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsLoanStorage(client)
        saved = asyncio.run(storage.save_loan(loan("Amina Nakato", aging="30 days")))

        loaded = asyncio.run(storage.list_loans())

        assert loaded[0].id == saved.id
        assert loaded[0].loan_amount == Decimal("100000")
        assert loaded[0].aging == "30 days"
        assert loaded[0].repayment_date == saved.repayment_date

    def test_malformed_rows_skipped(self):
        client = FakeSheetsClient()
        client.loans.rows.append(["l1", "Mortgage", "x"])
        storage = GoogleSheetsLoanStorage(client)
        assert asyncio.run(storage.list_loans()) == []


class TestGoogleSheetsAuditStorage:
    """Tests for the Sheets audit log against a fake worksheet."""

    def test_append_and_read_back(self):
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client)
        correlation_id = uuid4()
        event = AuditEventBuilder.transaction_recorded("t1", "Income", "100", correlation_id)

        assert asyncio.run(storage.append_event(event)) is True

        events = asyncio.run(storage.get_events_by_correlation_id(correlation_id))
        assert len(events) == 1
        assert events[0].event_id == event.event_id
        assert events[0].details == {"transaction_type": "Income", "amount": "100"}
        assert events[0].is_user_action
