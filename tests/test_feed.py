"""
Tests for transaction feeds.

Listeners here are small recorders; the polling feed is driven one
poll at a time with poll_once() so no test sleeps.
"""

import asyncio
from decimal import Decimal

import pytest

from src.models.transaction import Transaction
from src.services.feed import (
    FeedClosedError,
    InMemoryTransactionFeed,
    PollingTransactionFeed,
    TransactionSetListener,
)
from src.services.storage import InMemoryTransactionStorage, StorageError


def txn(kind: str, amount) -> Transaction:
    return Transaction(transaction_type=kind, amount=Decimal(str(amount)))


class Recorder(TransactionSetListener):

    def __init__(self):
        self.sets: list[list[Transaction]] = []
        self.errors: list[Exception] = []

    def on_transaction_set_changed(self, transactions):
        self.sets.append(transactions)

    def on_feed_error(self, error):
        self.errors.append(error)


class BrokenListener(TransactionSetListener):

    def on_transaction_set_changed(self, transactions):
        raise ArithmeticError("cannot fold")

    def on_feed_error(self, error):
        raise RuntimeError("cannot render")


class FlakyStorage(InMemoryTransactionStorage):
    """In-memory storage whose reads can be made to fail."""

    def __init__(self, transactions=None):
        super().__init__(transactions)
        self.failing = False

    async def list_all_transactions(self):
        if self.failing:
            raise StorageError("sheet unavailable")
        return await super().list_all_transactions()


class TestInMemoryFeed:
    """Tests for the push-driven in-memory feed."""

    def test_subscribe_emits_current_set(self):
        feed = InMemoryTransactionFeed([txn("Income", 1)])
        recorder = Recorder()
        feed.subscribe(recorder)
        assert len(recorder.sets) == 1
        assert recorder.sets[0][0].amount == Decimal("1")

    def test_publish_emits_complete_set(self):
        feed = InMemoryTransactionFeed()
        recorder = Recorder()
        feed.subscribe(recorder)
        feed.publish([txn("Income", 1), txn("Expense", 2)])
        assert [len(s) for s in recorder.sets] == [0, 2]

    def test_unsubscribe_is_idempotent(self):
        feed = InMemoryTransactionFeed()
        recorder = Recorder()
        subscription = feed.subscribe(recorder)
        subscription.unsubscribe()
        subscription.unsubscribe()
        feed.publish([txn("Income", 1)])
        assert not subscription.active
        assert len(recorder.sets) == 1

    def test_fail_reaches_listeners(self):
        feed = InMemoryTransactionFeed()
        recorder = Recorder()
        feed.subscribe(recorder)
        feed.fail(ConnectionError("offline"))
        assert len(recorder.errors) == 1

    def test_closed_feed_refuses_subscribers(self):
        feed = InMemoryTransactionFeed()
        feed.close()
        with pytest.raises(FeedClosedError):
            feed.subscribe(Recorder())

    def test_bound_to_storage(self):
        storage = InMemoryTransactionStorage([txn("Income", 1)])
        feed = InMemoryTransactionFeed.from_storage(storage)
        recorder = Recorder()
        feed.subscribe(recorder)

        saved = asyncio.run(storage.save_transaction(txn("Income", 2)))
        asyncio.run(storage.delete_transaction(saved.id))

        assert [len(s) for s in recorder.sets] == [1, 2, 1]

    def test_close_unbinds_storage(self):
        storage = InMemoryTransactionStorage()
        feed = InMemoryTransactionFeed.from_storage(storage)
        recorder = Recorder()
        feed.subscribe(recorder)
        feed.close()

        asyncio.run(storage.save_transaction(txn("Income", 2)))

        assert len(recorder.sets) == 1


    def test_failing_listener_does_not_block_others(self):
        storage = InMemoryTransactionStorage()
        feed = InMemoryTransactionFeed.from_storage(storage)
        feed.subscribe(BrokenListener())
        recorder = Recorder()
        feed.subscribe(recorder)

        asyncio.run(storage.save_transaction(txn("Income", 1)))
        feed.fail(ConnectionError("offline"))

        assert len(recorder.sets) == 2
        assert len(recorder.errors) == 1


class TestPollingFeed:
    """Tests for the storage-polling feed."""

    def test_first_poll_emits(self):
        storage = FlakyStorage([txn("Income", 1)])
        feed = PollingTransactionFeed(storage, interval_seconds=0.01)
        recorder = Recorder()
        feed.subscribe(recorder)

        assert asyncio.run(feed.poll_once()) is True
        assert len(recorder.sets) == 1

    def test_unchanged_set_is_not_re_emitted(self):
        storage = FlakyStorage([txn("Income", 1)])
        feed = PollingTransactionFeed(storage, interval_seconds=0.01)
        recorder = Recorder()
        feed.subscribe(recorder)

        asyncio.run(feed.poll_once())
        assert asyncio.run(feed.poll_once()) is False
        assert len(recorder.sets) == 1

    def test_change_is_emitted(self):
        storage = FlakyStorage([txn("Income", 1)])
        feed = PollingTransactionFeed(storage, interval_seconds=0.01)
        recorder = Recorder()
        feed.subscribe(recorder)

        asyncio.run(feed.poll_once())
        asyncio.run(storage.save_transaction(txn("Expense", 1)))
        assert asyncio.run(feed.poll_once()) is True
        assert len(recorder.sets[-1]) == 2

    def test_read_failure_reports_error_then_recovers(self):
        storage = FlakyStorage([txn("Income", 1)])
        feed = PollingTransactionFeed(storage, interval_seconds=0.01)
        recorder = Recorder()
        feed.subscribe(recorder)
        asyncio.run(feed.poll_once())

        storage.failing = True
        assert asyncio.run(feed.poll_once()) is False
        assert isinstance(recorder.errors[0], StorageError)

        # Same data as before the failure is still re-emitted once
        storage.failing = False
        assert asyncio.run(feed.poll_once()) is True
        assert len(recorder.sets) == 2

    def test_late_subscriber_gets_last_set(self):
        storage = FlakyStorage([txn("Income", 1)])
        feed = PollingTransactionFeed(storage, interval_seconds=0.01)
        asyncio.run(feed.poll_once())

        recorder = Recorder()
        feed.subscribe(recorder)
        assert len(recorder.sets) == 1

    def test_interval_defaults_from_settings(self):
        feed = PollingTransactionFeed(FlakyStorage())
        assert feed.interval_seconds == 5.0

    def test_run_stops_when_closed(self):
        storage = FlakyStorage([txn("Income", 1)])
        feed = PollingTransactionFeed(storage, interval_seconds=0.01)
        recorder = Recorder()
        feed.subscribe(recorder)

        async def scenario():
            task = asyncio.create_task(feed.run())
            await asyncio.sleep(0.05)
            feed.close()
            await asyncio.wait_for(task, timeout=1)

        asyncio.run(scenario())
        assert feed.closed
        assert len(recorder.sets) == 1

    def test_failing_listener_does_not_block_others(self):
        storage = FlakyStorage([txn("Income", 1)])
        feed = PollingTransactionFeed(storage, interval_seconds=0.01)
        feed.subscribe(BrokenListener())
        recorder = Recorder()
        feed.subscribe(recorder)

        assert asyncio.run(feed.poll_once()) is True
        storage.failing = True
        assert asyncio.run(feed.poll_once()) is False

        assert len(recorder.sets) == 1
        assert len(recorder.errors) == 1

    def test_run_keeps_polling_after_a_crash(self):
        class CrashOnceFeed(PollingTransactionFeed):
            crashed = False

            async def poll_once(self):
                if not self.crashed:
                    self.crashed = True
                    raise RuntimeError("unexpected")
                return await super().poll_once()

        storage = FlakyStorage([txn("Income", 1)])
        feed = CrashOnceFeed(storage, interval_seconds=0.01)
        feed.subscribe(BrokenListener())
        recorder = Recorder()
        feed.subscribe(recorder)

        async def scenario():
            task = asyncio.create_task(feed.run())
            await asyncio.sleep(0.1)
            feed.close()
            await asyncio.wait_for(task, timeout=1)

        asyncio.run(scenario())
        assert feed.crashed
        assert len(recorder.sets) == 1
