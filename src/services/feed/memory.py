"""
In-Memory Transaction Feed

Emits synchronously to its listeners. A new subscriber immediately
receives the current set, like a document store snapshot listener
firing on attach.

Can be driven by hand (publish / fail) or bound to an
InMemoryTransactionStorage so every save or delete emits.
"""

from typing import Callable, Optional

import structlog

from src.models.transaction import Transaction
from src.services.feed.interface import (
    FeedClosedError,
    Subscription,
    TransactionFeed,
    TransactionSetListener,
)
from src.services.storage.memory import InMemoryTransactionStorage


logger = structlog.get_logger(__name__)


class InMemoryTransactionFeed(TransactionFeed):

    name = "memory"

    def __init__(self, transactions: Optional[list[Transaction]] = None):
        self._current: list[Transaction] = list(transactions or [])
        self._listeners: list[TransactionSetListener] = []
        self._closed = False
        self._detach_storage: Optional[Callable[[], None]] = None

    @classmethod
    def from_storage(cls, storage: InMemoryTransactionStorage) -> "InMemoryTransactionFeed":
        """A feed that emits whenever the storage changes."""
        feed = cls(storage.current())
        feed._detach_storage = storage.on_change(feed.publish)
        return feed

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: TransactionSetListener) -> Subscription:
        if self._closed:
            raise FeedClosedError("Feed is closed")

        self._listeners.append(listener)
        self._deliver([listener], self._current)

        def cancel() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(cancel)

    def publish(self, transactions: list[Transaction]) -> None:
        """Replace the current set and emit it to every listener."""
        if self._closed:
            return
        self._current = list(transactions)
        self._deliver(self._listeners, self._current)

    def fail(self, error: Exception) -> None:
        """Report a feed failure to every listener."""
        logger.warning("feed_failed", feed=self.name, error=str(error))
        self._deliver_error(self._listeners, error)

    def close(self) -> None:
        self._closed = True
        self._listeners.clear()
        if self._detach_storage:
            self._detach_storage()
            self._detach_storage = None
