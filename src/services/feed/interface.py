"""
Transaction Feed Interface

A feed pushes the COMPLETE current transaction set to its listeners
every time any transaction changes. It never sends deltas.

Lifecycle of one subscription:
    subscribed -> emitting -> unsubscribed

Retry and reconnect policy belong to the feed implementation.
Listeners only hear "here is the new set" or "the feed failed".
"""

from abc import ABC, abstractmethod
from typing import Callable

import structlog

from src.models.transaction import Transaction


logger = structlog.get_logger(__name__)


class TransactionSetListener(ABC):
    """Receiver of feed emissions."""

    @abstractmethod
    def on_transaction_set_changed(self, transactions: list[Transaction]) -> None:
        """Called with the complete, self-consistent transaction set."""
        pass

    @abstractmethod
    def on_feed_error(self, error: Exception) -> None:
        """Called when the feed could not deliver an update."""
        pass


class Subscription:
    """Handle returned by subscribe(); call unsubscribe() to stop emissions."""

    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Stop receiving emissions. Safe to call more than once."""
        if self._active:
            self._active = False
            self._cancel()


class TransactionFeed(ABC):
    """Source of complete transaction sets."""

    name: str = "feed"

    @abstractmethod
    def subscribe(self, listener: TransactionSetListener) -> Subscription:
        """
        Start delivering emissions to a listener.

        Raises:
            FeedClosedError: If the feed has been closed
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Unsubscribe everyone and refuse new subscriptions."""
        pass

    def _deliver(
        self,
        listeners: list[TransactionSetListener],
        transactions: list[Transaction],
    ) -> None:
        # A failing listener is logged and skipped; the others still receive
        for listener in list(listeners):
            try:
                listener.on_transaction_set_changed(list(transactions))
            except Exception:
                logger.exception("feed_listener_failed", feed=self.name)

    def _deliver_error(
        self,
        listeners: list[TransactionSetListener],
        error: Exception,
    ) -> None:
        for listener in list(listeners):
            try:
                listener.on_feed_error(error)
            except Exception:
                logger.exception("feed_listener_failed", feed=self.name)


class FeedError(Exception):
    """Base exception for feed operations."""
    pass


class FeedClosedError(FeedError):
    """Subscribing to a feed that has been closed."""
    pass
