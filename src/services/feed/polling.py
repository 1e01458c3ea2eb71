"""
Polling Transaction Feed

Google Sheets has no change notifications, so this feed re-reads the
whole transaction set on an interval and emits when it differs from
the previous emission.

The feed owns the I/O and the failure policy:
- A failed read is reported to listeners as a feed error and the
  next successful read is emitted even if nothing changed, so the
  listeners can leave their stale state.
- No retries here beyond the next poll; storage writes have their
  own tenacity retries.
"""

import asyncio
from typing import Optional

import structlog

from src.config import get_settings
from src.models.transaction import Transaction
from src.services.feed.interface import (
    FeedClosedError,
    Subscription,
    TransactionFeed,
    TransactionSetListener,
)
from src.services.storage.interface import TransactionStorageInterface


logger = structlog.get_logger(__name__)


def _fingerprint(transactions: list[Transaction]) -> tuple[str, ...]:
    # Order-insensitive: the store may return rows in any order
    return tuple(sorted(t.model_dump_json() for t in transactions))


class PollingTransactionFeed(TransactionFeed):
    """Feed backed by periodic reads of a TransactionStorageInterface."""

    name = "polling"

    def __init__(
        self,
        storage: TransactionStorageInterface,
        interval_seconds: Optional[float] = None,
    ):
        self._storage = storage
        self._interval = (
            interval_seconds
            if interval_seconds is not None
            else get_settings().app.feed_poll_interval_seconds
        )
        self._listeners: list[TransactionSetListener] = []
        self._current: Optional[list[Transaction]] = None
        self._fingerprint: Optional[tuple[str, ...]] = None
        self._failed = False
        self._closed = False

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: TransactionSetListener) -> Subscription:
        if self._closed:
            raise FeedClosedError("Feed is closed")

        self._listeners.append(listener)
        if self._current is not None:
            self._deliver([listener], self._current)

        def cancel() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(cancel)

    async def poll_once(self) -> bool:
        """
        Read the store once.

        Returns True if an emission was sent.
        """
        if self._closed:
            return False

        try:
            transactions = await self._storage.list_all_transactions()
        except Exception as e:
            self._failed = True
            logger.warning("feed_poll_failed", feed=self.name, error=str(e))
            self._deliver_error(self._listeners, e)
            return False

        fingerprint = _fingerprint(transactions)
        if fingerprint == self._fingerprint and not self._failed:
            return False

        self._current = list(transactions)
        self._fingerprint = fingerprint
        self._failed = False

        logger.debug("feed_emit", feed=self.name, transaction_count=len(transactions))
        self._deliver(self._listeners, self._current)
        return True

    async def run(self) -> None:
        """Poll until close() is called."""
        while not self._closed:
            try:
                await self.poll_once()
            except Exception:
                logger.exception("feed_poll_crashed", feed=self.name)
            await asyncio.sleep(self._interval)

    def close(self) -> None:
        self._closed = True
        self._listeners.clear()
