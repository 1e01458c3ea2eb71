"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for another document store later
2. Use in-memory storage for testing
3. Keep the ledger logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just the operations the ledger needs.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from src.models.audit import AuditEvent
from src.models.loan import Loan, LoanStatus
from src.models.transaction import Transaction


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction storage.

    The store assigns transaction IDs on save.
    """

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> Transaction:
        """
        Save a transaction.

        Returns:
            The stored transaction, with its store-assigned id

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """Retrieve a transaction by id, or None if it doesn't exist."""
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> bool:
        """
        Delete a transaction.

        Returns:
            True if a transaction was deleted
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        transaction_type: Optional[str] = None,
        search: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Transaction]:
        """
        List transactions with optional filters, newest first.

        Args:
            transaction_type: Exact type tag to match
            search: Case-insensitive substring of the description
            date_from: Only transactions on or after this moment
            date_to: Only transactions on or before this moment
            limit: Maximum number of results
            offset: Number of results to skip
        """
        pass

    @abstractmethod
    async def list_all_transactions(self) -> list[Transaction]:
        """
        Return the complete transaction set, unfiltered and unpaginated.

        This is what feeds the balance sheet.
        """
        pass


class LoanStorageInterface(ABC):
    """Abstract interface for loan storage."""

    @abstractmethod
    async def save_loan(self, loan: Loan) -> Loan:
        """
        Save a loan.

        Returns:
            The stored loan, with its store-assigned id

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def list_loans(
        self,
        borrower: Optional[str] = None,
        status: Optional[LoanStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Loan]:
        """
        List loans with optional filters, newest first.

        Args:
            borrower: Case-insensitive substring of the borrower name
            status: Loan status to match
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All events for one correlation id, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
