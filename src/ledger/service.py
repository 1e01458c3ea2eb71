"""
Balance Sheet Service

Keeps the latest balance sheet for the presentation layer.

It listens to a transaction feed and replays the aggregation on
every emission. It owns three guarantees:

1. LAST WRITE WINS: every rebuild request takes a generation number.
   A result is applied only if nothing newer has been applied, so a
   slow background rebuild can never overwrite a newer one.
2. STALE, NOT EMPTY: a feed error keeps the last good snapshot and
   flips the state to STALE. Only a new emission makes it FRESH again.
3. READ-ONLY OUTPUT: consumers get a frozen LedgerState and an
   optional "snapshot updated" callback; they never touch the
   aggregation.
"""

import asyncio
from typing import Callable, Iterable, Optional

import structlog

from src.audit import AuditLogger
from src.ledger.aggregator import LedgerAggregator
from src.models.balance import (
    BalanceSnapshot,
    FinancialMetrics,
    LedgerState,
    LedgerStatus,
)
from src.models.transaction import Transaction, utc_now
from src.services.feed.interface import (
    Subscription,
    TransactionFeed,
    TransactionSetListener,
)


logger = structlog.get_logger(__name__)

StateCallback = Callable[[LedgerState], None]


class BalanceSheetService(TransactionSetListener):
    """
    Observer that turns feed emissions into LedgerState updates.

    Usage:
        service = BalanceSheetService()
        service.add_listener(render)
        service.attach(feed)
    """

    def __init__(
        self,
        aggregator: Optional[LedgerAggregator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._aggregator = aggregator or LedgerAggregator()
        self._audit_logger = audit_logger
        self._state = LedgerState()
        self._listeners: list[StateCallback] = []
        self._issued_generation = 0
        self._applied_generation = 0
        self._subscription: Optional[Subscription] = None
        self._feed_name = "unattached"
        self._audit_tasks: set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def state(self) -> LedgerState:
        """The latest state. Frozen; replaced, never mutated."""
        return self._state

    def add_listener(self, callback: StateCallback) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: StateCallback) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    # -------------------------------------------------------------------------
    # Feed wiring
    # -------------------------------------------------------------------------

    def attach(self, feed: TransactionFeed) -> Subscription:
        """Subscribe to a feed, replacing any previous subscription."""
        self.detach()
        self._feed_name = feed.name
        self._subscription = feed.subscribe(self)
        logger.info("ledger_attached", feed=feed.name)
        return self._subscription

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
            logger.info("ledger_detached", feed=self._feed_name)

    def on_transaction_set_changed(self, transactions: list[Transaction]) -> None:
        """Rebuild synchronously from a complete transaction set."""
        generation = self._next_generation()
        try:
            snapshot, metrics = self._aggregator.build(transactions)
        except ArithmeticError as e:
            logger.exception("ledger_rebuild_failed", generation=generation)
            self.on_feed_error(e)
            return
        self._apply(generation, snapshot, metrics, len(transactions))

    def on_feed_error(self, error: Exception) -> None:
        """Keep the last good snapshot and mark it stale."""
        self._state = self._state.model_copy(update={
            "status": LedgerStatus.STALE,
            "last_error": str(error) or type(error).__name__,
            "updated_at": utc_now(),
        })
        logger.warning(
            "ledger_stale",
            feed=self._feed_name,
            error=str(error),
            generation=self._applied_generation,
            has_snapshot=self._state.has_snapshot,
        )
        if self._audit_logger:
            self._schedule_audit(self._audit_logger.log_feed_error(
                feed=self._feed_name,
                error_message=str(error),
                generation=self._applied_generation,
            ))
        self._notify()

    # -------------------------------------------------------------------------
    # Background rebuilds
    # -------------------------------------------------------------------------

    async def refresh(self, transactions: Iterable[Transaction]) -> bool:
        """
        Rebuild in a worker thread.

        Returns True if the result was applied, False if a newer
        rebuild had already been applied and this one was discarded.
        """
        generation = self._next_generation()
        batch = list(transactions)
        snapshot, metrics = await asyncio.to_thread(self._aggregator.build, batch)
        return self._apply(generation, snapshot, metrics, len(batch))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _next_generation(self) -> int:
        self._issued_generation += 1
        return self._issued_generation

    def _apply(
        self,
        generation: int,
        snapshot: BalanceSnapshot,
        metrics: FinancialMetrics,
        transaction_count: int,
    ) -> bool:
        if generation <= self._applied_generation:
            logger.debug(
                "ledger_rebuild_discarded",
                generation=generation,
                applied_generation=self._applied_generation,
            )
            return False

        self._applied_generation = generation
        self._state = LedgerState(
            status=LedgerStatus.FRESH,
            snapshot=snapshot,
            metrics=metrics,
            transaction_count=transaction_count,
            generation=generation,
            updated_at=utc_now(),
        )
        logger.info(
            "ledger_rebuilt",
            generation=generation,
            transaction_count=transaction_count,
            total_assets=str(snapshot.assets.total_assets),
        )
        if self._audit_logger:
            self._schedule_audit(self._audit_logger.log_snapshot_rebuilt(
                generation=generation,
                transaction_count=transaction_count,
                total_assets=str(snapshot.assets.total_assets),
            ))
        self._notify()
        return True

    def _notify(self) -> None:
        state = self._state
        for callback in list(self._listeners):
            try:
                callback(state)
            except Exception:
                logger.exception("ledger_listener_failed", generation=state.generation)

    def _schedule_audit(self, coro) -> None:
        # Feed callbacks are synchronous; audit writes ride on the running loop if any
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(
                "audit_event_dropped",
                audit_call=coro.__qualname__,
                reason="no running event loop",
                generation=self._applied_generation,
            )
            coro.close()
            return
        task = loop.create_task(coro)
        self._audit_tasks.add(task)
        task.add_done_callback(self._audit_tasks.discard)

    async def flush_audit(self) -> None:
        """Wait for scheduled audit writes to finish."""
        if self._audit_tasks:
            await asyncio.gather(*list(self._audit_tasks), return_exceptions=True)
