import queue
import threading
from concurrent.futures import CancelledError

import pytest

from ethgo.store.inmem import InmemStore
from ethgo.testutil.compare import compare_logs
from ethgo.testutil.mock import MockClient, MockList, mock
from ethgo.tracking.config import (
    TOO_MUCH_DATA_MESSAGE,
    BlockEvent,
    EventType,
    FilterConfig,
    ProviderError,
)
from ethgo.tracking.tracker import Tracker


class _BlockTracker:
    """Keeps the last ``backlog`` blocks (block 0 excluded) of the provider."""

    def __init__(self, provider, backlog=10):
        self._provider = provider
        self._backlog = backlog
        self._blocks = []
        self._lock = threading.Lock()
        self._sub = queue.Queue()

    def init(self):
        head = self._provider.block_number()
        start = max(1, head - self._backlog + 1)
        self._blocks = [
            self._provider.get_block_by_number(n, False) for n in range(start, head + 1)
        ]

    def start(self):
        return None

    def close(self):
        return None

    def subscribe(self):
        return self._sub

    def acquire_lock(self):
        return self._lock

    def max_block_backlog(self):
        return self._backlog

    def blocks_blocked(self):
        return list(self._blocks)

    def add_block_locked(self, block):
        self._blocks.append(block)

    def last_blocked(self):
        return self._blocks[-1] if self._blocks else None

    def handle_block_event(self, block):
        self._blocks.append(block)
        return BlockEvent(added=[block])

    def len(self):
        return len(self._blocks)


def _tracker(client, store=None, backlog=10, batch_size=10, **options):
    options.setdefault("filter", FilterConfig(async_=True))
    blocks = _BlockTracker(client, backlog)
    tracker = Tracker(
        client,
        store=store if store is not None else InmemStore(),
        batch_size=batch_size,
        block_tracker=blocks,
        **options,
    )
    return tracker, blocks


def _drain(q):
    items = []
    while True:
        try:
            items.append(q.get_nowait())
        except queue.Empty:
            return items


def _chain(end, callback=lambda b: None):
    chain = MockList()
    chain.create(0, end, callback)
    client = MockClient()
    client.add_scenario(chain)
    return chain, client


def test_preflight():
    store = InmemStore()
    chain, client = _chain(100)

    Tracker(client, store=store, batch_size=10).pre_sync_check()
    assert store.get("genesis") == str(mock(0).hash())
    assert store.get("chainID") == "1337"

    forked = MockList()
    forked.create(0, 100, lambda b: b.extra("1"))
    client.add_scenario(forked)
    with pytest.raises(ValueError, match="bad genesis"):
        Tracker(client, store=store, batch_size=10).pre_sync_check()

    client.add_scenario(chain)
    client.set_chain_id(1)
    with pytest.raises(ValueError, match="bad genesis"):
        Tracker(client, store=store, batch_size=10).pre_sync_check()


def test_syncer_restarts():
    store = InmemStore()
    client = MockClient()
    chain = MockList()

    def advance(first, last, extend=True):
        if extend:
            chain.create(first, last, lambda b: b.log("0x1") if b.get_num() % 5 == 0 else None)
            client.add_scenario(chain)
        tracker, blocks = _tracker(client, store)
        tracker.batch_sync()
        tracker.wait_duration(2)
        assert tracker.is_synced()
        assert blocks.blocks_blocked()[0].number == last - 10
        assert blocks.blocks_blocked()[9].number == last - 1
        assert compare_logs(chain.get_logs(), tracker.entry().logs())
        assert tracker.get_last_block().hash == mock(last - 1).hash()

    advance(0, 100)
    advance(0, 100, extend=False)
    advance(100, 105)
    advance(105, 150)


@pytest.mark.parametrize("ini_len, fork_num, end_len", [(50, 45, 55), (50, 45, 100)])
def test_syncer_reconcile(ini_len, fork_num, end_len):
    chain, client = _chain(ini_len, lambda b: b.log("0x01"))
    store = InmemStore()

    tracker0, _ = _tracker(client, store)
    tracker0.batch_sync()
    assert len(tracker0.entry().logs()) == ini_len

    def fork(b):
        if b.get_num() < fork_num:
            b.log("0x01")
        else:
            b.log("0x02" if b.get_num() == fork_num else "0x03")
            b.extra("123")

    forked = MockList()
    forked.create(0, end_len, fork)
    client1 = MockClient()
    client1.add_scenario(chain)
    client1.add_scenario(forked)

    tracker1, _ = _tracker(client1, store)
    tracker1.batch_sync()

    logs = tracker1.entry().logs()
    assert compare_logs(forked.get_logs(), logs)
    assert all(log.data[0] == 0x1 for log in logs[:fork_num])
    assert logs[fork_num].data[0] == 0x2
    assert all(log.data[0] == 0x3 for log in logs[fork_num + 1 : end_len])

    first_event = tracker1.event_ch.get_nowait()
    assert first_event.type == EventType.DEL
    assert len(first_event.removed) == ini_len - fork_num


class _LimitedClient(MockClient):
    def __init__(self, limit):
        super().__init__()
        self.limit = limit

    def get_logs(self, log_filter):
        if log_filter.block_hash is None:
            start, end = int(log_filter.from_block), int(log_filter.to_block)
            if end - start > self.limit:
                raise ProviderError(TOO_MUCH_DATA_MESSAGE)
        return super().get_logs(log_filter)


def test_too_much_data_requested():
    count = 0
    chain = MockList()

    def fill(b):
        nonlocal count
        for _ in range(2 if b.get_num() % 2 == 0 else 5):
            count += 1
            b.log("0x1")

    chain.create(0, 100, fill)
    client = _LimitedClient(3)
    client.add_scenario(chain)

    tracker, _ = _tracker(client, batch_size=100)
    tracker.batch_sync()
    assert len(tracker.entry().logs()) == count


def _synced_history(history):
    client = MockClient()
    client.add_scenario(history)
    tracker, blocks = _tracker(client)
    tracker.batch_sync()
    _drain(tracker.event_ch)
    return client, tracker


def test_handle_block_event_new_head():
    history = MockList([mock(0), mock(1).log("0x1"), mock(2)])
    client, tracker = _synced_history(history)

    head = mock(3).log("0x3")
    client.add_logs(head.get_logs())
    block_event = BlockEvent(added=[head.block()])
    tracker.handle_block_event(block_event)

    event = tracker.event_ch.get(timeout=1)
    assert compare_logs(event.added, head.get_logs())
    assert event.removed == []
    assert tracker.block_ch.get(timeout=1) is block_event
    assert compare_logs(tracker.entry().logs(), MockList([*history, head]).get_logs())
    assert tracker.get_last_block().hash == head.hash()


def test_handle_block_event_multi_roll_back():
    history = MockList(
        [mock(0), mock(1).log("0x1"), mock(2), mock(3).log("0x3"), mock(4).log("0x4")]
    )
    client, tracker = _synced_history(history)

    replacement = mock(0x30).parent(0x2).log("0x30")
    client.add_logs(replacement.get_logs())
    tracker.handle_block_event(
        BlockEvent(added=[replacement.block()], removed=[mock(3).block(), mock(4).block()])
    )

    event = tracker.event_ch.get(timeout=1)
    assert compare_logs(event.added, replacement.get_logs())
    expected_removed = MockList([mock(3).log("0x3"), mock(4).log("0x4")]).get_logs()
    assert compare_logs(event.removed, expected_removed)
    expected = MockList([mock(0), mock(1).log("0x1"), mock(2), replacement]).get_logs()
    assert compare_logs(tracker.entry().logs(), expected)


def test_handle_block_event_backfills():
    history = MockList([mock(0), mock(1).log("0x1"), mock(2)])
    client, tracker = _synced_history(history)

    new_blocks = MockList([mock(3), mock(4).log("0x2"), mock(5).log("0x3")])
    client.add_logs(new_blocks.get_logs())
    tracker.handle_block_event(BlockEvent(added=new_blocks.to_blocks()))

    event = tracker.event_ch.get(timeout=1)
    assert compare_logs(event.added, new_blocks.get_logs())
    assert compare_logs(tracker.entry().logs(), MockList([*history, *new_blocks]).get_logs())
    assert tracker.get_last_block().number == 5


def test_handle_block_event_ignored_before_sync():
    history = MockList([mock(0), mock(1).log("0x1")])
    client = MockClient()
    client.add_scenario(history)
    tracker, _ = _tracker(client)
    block_event = BlockEvent(added=[mock(2).log("0x2").block()])
    tracker.handle_block_event(block_event)
    assert tracker.block_ch.get_nowait() is block_event
    assert tracker.entry().logs() == []


def test_wait_duration_times_out_before_sync():
    _, client = _chain(5)
    tracker, _ = _tracker(client)
    assert tracker.is_synced() is False
    with pytest.raises(TimeoutError):
        tracker.wait_duration(0.01)


def test_batch_sync_requires_block_tracker():
    _, client = _chain(5)
    tracker = Tracker(client, batch_size=10)
    with pytest.raises(ValueError, match="no block tracker"):
        tracker.batch_sync()


def test_last_block_is_none_before_sync():
    _, client = _chain(5)
    tracker, _ = _tracker(client)
    assert tracker.get_last_block() is None


def test_start_block_skips_earlier_logs():
    chain, client = _chain(100, lambda b: b.log("0x1"))
    tracker, _ = _tracker(client, filter=FilterConfig(start=50, async_=True))
    tracker.batch_sync()
    expected = [log for log in chain.get_logs() if log.block_number > 50]
    assert compare_logs(tracker.entry().logs(), expected)


def test_cancelled_bulk_sync_raises():
    _, client = _chain(100, lambda b: b.log("0x1"))
    tracker, _ = _tracker(client)
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(CancelledError):
        tracker.batch_sync(cancel)
    assert tracker.is_synced() is False


def test_sync_follows_subscription_until_cancelled():
    chain, client = _chain(6, lambda b: b.log("0x1"))
    tracker, blocks = _tracker(client)
    cancel = threading.Event()
    errors = []

    def run():
        try:
            tracker.sync(cancel)
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    tracker.wait_duration(2)
    assert tracker.ready.is_set()
    _drain(tracker.event_ch)

    head = mock(6).log("0x6")
    client.add_logs(head.get_logs())
    blocks.subscribe().put(BlockEvent(added=[head.block()]))

    event = tracker.event_ch.get(timeout=2)
    assert compare_logs(event.added, head.get_logs())

    cancel.set()
    thread.join(2)
    assert len(errors) == 1
    assert isinstance(errors[0], CancelledError)
    assert compare_logs(tracker.entry().logs(), MockList([*chain, head]).get_logs())