"""Transaction feed package."""

from src.services.feed.interface import (
    FeedClosedError,
    FeedError,
    Subscription,
    TransactionFeed,
    TransactionSetListener,
)
from src.services.feed.memory import InMemoryTransactionFeed
from src.services.feed.polling import PollingTransactionFeed

__all__ = [
    "FeedClosedError",
    "FeedError",
    "InMemoryTransactionFeed",
    "PollingTransactionFeed",
    "Subscription",
    "TransactionFeed",
    "TransactionSetListener",
]
