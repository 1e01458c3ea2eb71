"""Services package."""

from src.services.feed import (
    FeedClosedError,
    FeedError,
    InMemoryTransactionFeed,
    PollingTransactionFeed,
    Subscription,
    TransactionFeed,
    TransactionSetListener,
)
from src.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLoanStorage,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryLoanStorage,
    InMemoryTransactionStorage,
    LoanStorageInterface,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)

__all__ = [
    # Transaction feeds
    "FeedClosedError",
    "FeedError",
    "InMemoryTransactionFeed",
    "PollingTransactionFeed",
    "Subscription",
    "TransactionFeed",
    "TransactionSetListener",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLoanStorage",
    "GoogleSheetsTransactionStorage",
    "InMemoryAuditStorage",
    "InMemoryLoanStorage",
    "InMemoryTransactionStorage",
    "LoanStorageInterface",
    "NotFoundError",
    "StorageError",
    "TransactionStorageInterface",
]
