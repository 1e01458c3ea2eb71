"""
In-Memory Storage Implementation

Implements the storage interfaces on plain dicts. Used by the tests
and for running the ledger without a spreadsheet configured.

Change listeners let the in-memory transaction feed push a new
complete set whenever a transaction is saved or deleted, the way a
live document store subscription would.
"""

from typing import Callable, Optional
from uuid import UUID, uuid4

from src.models.audit import AuditEvent
from src.models.loan import Loan, LoanStatus
from src.models.transaction import Transaction
from src.services.storage.filters import filter_loans, filter_transactions
from src.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LoanStorageInterface,
    TransactionStorageInterface,
)


ChangeCallback = Callable[[list[Transaction]], None]


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Transactions kept in insertion order in a dict."""

    def __init__(self, transactions: Optional[list[Transaction]] = None):
        self._transactions: dict[str, Transaction] = {}
        self._callbacks: list[ChangeCallback] = []
        for transaction in transactions or []:
            stored = self._assign_id(transaction)
            self._transactions[stored.id] = stored

    @staticmethod
    def _assign_id(transaction: Transaction) -> Transaction:
        if transaction.id:
            return transaction
        return transaction.model_copy(update={"id": str(uuid4())})

    def current(self) -> list[Transaction]:
        """The full set, synchronously."""
        return list(self._transactions.values())

    def on_change(self, callback: ChangeCallback) -> Callable[[], None]:
        """Register a callback receiving the full set after each change."""
        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    def _notify(self) -> None:
        current = list(self._transactions.values())
        for callback in list(self._callbacks):
            callback(list(current))

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        stored = self._assign_id(transaction)
        if stored.id in self._transactions:
            raise DuplicateError(f"Transaction already exists: {stored.id}")
        self._transactions[stored.id] = stored
        self._notify()
        return stored

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._transactions.get(transaction_id)

    async def delete_transaction(self, transaction_id: str) -> bool:
        if self._transactions.pop(transaction_id, None) is None:
            return False
        self._notify()
        return True

    async def list_transactions(
        self,
        transaction_type: Optional[str] = None,
        search: Optional[str] = None,
        date_from=None,
        date_to=None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Transaction]:
        return filter_transactions(
            self._transactions.values(),
            transaction_type=transaction_type,
            search=search,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=offset,
        )

    async def list_all_transactions(self) -> list[Transaction]:
        return list(self._transactions.values())


class InMemoryLoanStorage(LoanStorageInterface):

    def __init__(self):
        self._loans: dict[str, Loan] = {}

    async def save_loan(self, loan: Loan) -> Loan:
        stored = loan if loan.id else loan.model_copy(update={"id": str(uuid4())})
        if stored.id in self._loans:
            raise DuplicateError(f"Loan already exists: {stored.id}")
        self._loans[stored.id] = stored
        return stored

    async def list_loans(
        self,
        borrower: Optional[str] = None,
        status: Optional[LoanStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Loan]:
        return filter_loans(
            self._loans.values(),
            borrower=borrower,
            status=status,
            limit=limit,
            offset=offset,
        )


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        matched = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(matched, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
