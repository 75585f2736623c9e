"""Log tracker: follows the logs of a filter and keeps them in a store."""

from __future__ import annotations

import dataclasses
import json
import queue
import threading
import time
from concurrent.futures import CancelledError
from typing import Any

from ..decoding import decode_block
from ..primitives import Hash
from ..store.base import Entry
from ..structs import Block, Log
from .config import (
    TOO_MUCH_DATA_MESSAGE,
    BlockEvent,
    Config,
    Event,
    EventType,
    FilterConfig,
    Provider,
    ProviderError,
    default_config,
)

_DB_GENESIS = "genesis"
_DB_CHAIN_ID = "chainID"
_DB_LAST_BLOCK = "lastBlock"
_DB_FILTER = "filter"

_GET_LOGS_RETRIES = 5
_RETRY_DELAY = 0.5
_SUBSCRIPTION_POLL = 0.1


class _HeldLock:
    """Wraps a lock and remembers whether this holder owns it."""

    def __init__(self, lock: Any) -> None:
        self._lock = lock
        self.held = False

    def acquire(self) -> None:
        self._lock.acquire()
        self.held = True

    def release(self) -> None:
        if self.held:
            self.held = False
            self._lock.release()


def _check_cancelled(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise CancelledError("context canceled")


def _too_much_data_requested(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.message == TOO_MUCH_DATA_MESSAGE


def _filter_json(filter_config: FilterConfig) -> str:
    topics = [
        None if group is None else [None if t is None else str(t) for t in group]
        for group in filter_config.topics
    ]
    return json.dumps(
        {
            "address": [str(address) for address in filter_config.address],
            "topics": topics,
            "Start": filter_config.start,
            "Hash": filter_config.hash,
            "Async": filter_config.async_,
        },
        separators=(",", ":"),
    )


class Tracker:
    """Tracks the logs matching a filter, following reorgs of the chain.

    Channels are queues: ``block_ch`` receives block events, ``sync_ch`` the
    last block of each bulk batch, ``event_ch`` log events and ``done_ch`` a
    marker once the initial sync finished. ``ready`` is set once the block
    tracker is initialised.
    """

    def __init__(self, provider: Provider, config: Config | None = None, **options: Any):
        config = default_config() if config is None else config
        if options:
            config = dataclasses.replace(config, **options)
        if config.filter is None:
            config.filter = FilterConfig()

        self.provider = provider
        self.config = config
        self.store = config.store
        self.block_tracker = config.block_tracker

        self.block_ch: queue.Queue = queue.Queue(maxsize=1)
        self.sync_ch: queue.Queue = queue.Queue(maxsize=1)
        self.event_ch: queue.Queue = queue.Queue(maxsize=1)
        self.done_ch: queue.Queue = queue.Queue(maxsize=1)
        self.ready = threading.Event()

        self._synced = threading.Event()
        self._pre_sync_lock = threading.Lock()
        self._pre_sync_done = False
        self._entry = self._setup_filter()

    # -- setup and storage -------------------------------------------------

    def _setup_filter(self) -> Entry:
        filter_config = self.config.filter
        if not filter_config.hash:
            filter_config.build_hash()

        entry = self.store.get_entry(filter_config.hash)

        filter_key = self._key(_DB_FILTER)
        if not self.store.get(filter_key):
            raw = _filter_json(filter_config).encode("utf-8")
            self.store.set(filter_key, raw.hex())
        return entry

    def _key(self, prefix: str) -> str:
        return f"{prefix}_{self.config.filter.hash}"

    def entry(self) -> Entry:
        """Return the store entry holding this filter's logs."""
        return self._entry

    def get_last_block(self) -> Block | None:
        """Return the last block processed for this filter, if any."""
        raw = self.store.get(self._key(_DB_LAST_BLOCK))
        if not raw:
            return None
        return decode_block(bytes.fromhex(raw))

    def _store_last_block(self, block: Block) -> None:
        if block.difficulty is None:
            block = dataclasses.replace(block, difficulty=0)
        encoded = block.to_json().encode("utf-8")
        self.store.set(self._key(_DB_LAST_BLOCK), encoded.hex())

    # -- events ------------------------------------------------------------

    def _emit_event(self, event: Event | None) -> None:
        if event is None:
            return
        if self.config.filter.async_:
            try:
                self.event_ch.put_nowait(event)
            except queue.Full:
                pass
        else:
            self.event_ch.put(event)

    def _emit_logs(self, event_type: EventType, logs: list[Log]) -> None:
        event = Event(type=event_type)
        if event_type == EventType.ADD:
            event.added = list(logs)
        else:
            event.removed = list(logs)
        self._emit_event(event)

    # -- state -------------------------------------------------------------

    def is_synced(self) -> bool:
        """Return whether the filter has caught up with the head."""
        return self._synced.is_set()

    def wait(self) -> None:
        """Block until the initial sync finished."""
        self.wait_duration(None)

    def wait_duration(self, timeout: float | None) -> None:
        """Wait for the initial sync; a falsy timeout waits indefinitely."""
        if self._synced.is_set():
            return
        if not self._synced.wait(timeout or None):
            raise TimeoutError("timeout")

    # -- chain access ------------------------------------------------------

    def _get_block_by_number(self, number: int) -> Block:
        block = self.provider.get_block_by_number(number, False)
        if block is None:
            raise LookupError(f"block with number {number} not found")
        return block

    def _get_block_by_hash(self, block_hash: Hash) -> Block:
        block = self.provider.get_block_by_hash(block_hash, False)
        if block is None:
            raise LookupError(f"block with hash {block_hash} not found")
        return block

    def _find_ancestor(self, block: Block, pivot: Block) -> int:
        """Walk back two equal-height blocks until they share a hash."""
        backlog = self.block_tracker.max_block_backlog()
        for _ in range(backlog):
            if block.number != pivot.number:
                raise ValueError("block numbers do not match")
            if block.hash == pivot.hash:
                return block.number
            block = self._get_block_by_hash(block.parent_hash)
            pivot = self._get_block_by_hash(pivot.parent_hash)
        raise ValueError(f"the reorg is bigger than maxBlockBacklog {backlog}")

    # -- syncing -----------------------------------------------------------

    def pre_sync_check(self) -> None:
        """Check the stored genesis and chain id against the chain, once."""
        with self._pre_sync_lock:
            if self._pre_sync_done:
                return
            self._pre_sync_done = True
            self._pre_sync_check()

    def _pre_sync_check(self) -> None:
        genesis_hash = str(self._get_block_by_number(0).hash)
        chain_id = str(self.provider.chain_id())

        stored_genesis = self.store.get(_DB_GENESIS)
        stored_chain_id = self.store.get(_DB_CHAIN_ID)
        if stored_genesis:
            if stored_genesis != genesis_hash or stored_chain_id != chain_id:
                raise ValueError("bad genesis")
        else:
            self.store.set(_DB_GENESIS, genesis_hash)
            self.store.set(_DB_CHAIN_ID, chain_id)

    def _sync_batch(self, cancel: threading.Event | None, start: int, end: int) -> None:
        query = self.config.filter.get_filter_search()
        max_batch = self.config.batch_size
        batch_size = max_batch
        additive = int(max_batch * 0.10)

        current = start
        while True:
            dst = min(end, current + batch_size)
            query.set_from_block(current)
            query.set_to_block(dst)
            try:
                logs = self.provider.get_logs(query)
            except Exception as exc:
                if _too_much_data_requested(exc) and batch_size > 0:
                    # multiplicative decrease
                    batch_size //= 2
                    continue
                raise

            try:
                self.sync_ch.put_nowait(dst)
            except queue.Full:
                pass

            self._entry.store_logs(logs)
            self._emit_logs(EventType.ADD, logs)
            self._store_last_block(self._get_block_by_number(dst))

            _check_cancelled(cancel)

            current += batch_size + 1
            if batch_size < max_batch:
                # additive increase
                batch_size = min(max_batch, batch_size + additive)
            if current > end:
                return

    def _fast_track(self, filter_config: FilterConfig) -> Block | None:
        if filter_config.start != 0:
            return self._get_block_by_number(filter_config.start)
        return None

    def batch_sync(self, cancel: threading.Event | None = None) -> None:
        """Sync the filter up to the head of the chain."""
        self.pre_sync_check()
        if self.block_tracker is None:
            raise ValueError("no block tracker configured")
        self.block_tracker.init()
        self.ready.set()

        self._sync_impl(cancel)

        try:
            self.done_ch.put_nowait(True)
        except queue.Full:
            pass
        self._synced.set()

    def sync(self, cancel: threading.Event | None = None) -> None:
        """Sync, then follow new block events until ``cancel`` is set."""
        self.batch_sync(cancel)
        subscription = self.block_tracker.subscribe()
        while True:
            _check_cancelled(cancel)
            try:
                block_event = subscription.get(timeout=_SUBSCRIPTION_POLL)
            except queue.Empty:
                continue
            self.handle_block_event(block_event)

    def _sync_impl(self, cancel: threading.Event | None) -> None:
        self.pre_sync_check()
        tracker = self.block_tracker
        lock = _HeldLock(tracker.acquire_lock())

        # The lock is held while syncing the head so it does not move; it is
        # only released during bulk syncs, which may move the target block.
        lock.acquire()
        try:
            if tracker.len() == 0:
                return
            target = tracker.last_blocked()
            if target is None:
                return
            target_num = target.number

            last = self.get_last_block()
            if last is None:
                try:
                    last = self._fast_track(self.config.filter)
                except Exception as exc:
                    raise RuntimeError(f"failed to fasttrack: {exc}") from exc
                if last is not None:
                    self._store_last_block(last)
            elif last.hash == target.hash:
                return

            # A reorg may have happened since the last run: make sure the
            # stored block is still canonical and roll back otherwise.
            origin = 0
            if last is not None:
                if last.number > target_num:
                    raise ValueError("store is more advanced than the chain")
                pivot = self._get_block_by_number(last.number)
                origin = last.number if last.number == target_num else last.number + 1
                if pivot.hash != last.hash:
                    ancestor = self._find_ancestor(last, pivot)
                    origin = ancestor + 1
                    removed = self._remove_logs(ancestor + 1, None)
                    self._emit_logs(EventType.DEL, removed)

            backlog = tracker.max_block_backlog()
            if target_num - origin + 1 > backlog:
                while True:
                    if origin > target_num:
                        raise ValueError(f"from ({origin}) higher than to ({target_num})")
                    if target_num - origin + 1 <= backlog:
                        break
                    lock.release()
                    limit = target_num - backlog
                    self._sync_batch(cancel, origin, limit)
                    origin = limit + 1
                    lock.acquire()
                    target_num = tracker.last_blocked().number

            blocks = tracker.blocks_blocked()
            start = max(0, len(blocks) - 1 - (target_num - origin))
            event = self._do_filter(blocks[start:], [])
            self._emit_event(event)
        finally:
            lock.release()

    def _remove_logs(self, number: int, block_hash: Hash | None) -> list[Log]:
        """Remove stored logs from block ``number`` on, newest first."""
        index = self._entry.last_index()
        if index == 0:
            return []
        removed: list[Log] = []
        while index > 0:
            log = self._entry.get_log(index - 1)
            if log.block_number == number and block_hash is not None:
                if log.block_hash != block_hash:
                    break
            if log.block_number < number:
                break
            removed.append(log)
            index -= 1
        self._entry.remove_logs(index)
        return removed

    def handle_block_event(self, block_event: BlockEvent | None) -> None:
        """Forward a block event and, once synced, apply its logs."""
        if block_event is None:
            return
        try:
            self.block_ch.put_nowait(block_event)
        except queue.Full:
            pass
        if self.is_synced():
            self._emit_event(self._do_filter(block_event.added, block_event.removed))

    def _logs_for_block(self, block: Block) -> list[Log]:
        query = self.config.filter.get_filter_search()
        query.block_hash = block.hash
        # unsynced nodes may not know the block yet, so retry a few times
        for attempt in range(_GET_LOGS_RETRIES):
            try:
                return self.provider.get_logs(query)
            except Exception:
                if attempt == _GET_LOGS_RETRIES - 1:
                    raise
                time.sleep(_RETRY_DELAY)
        raise RuntimeError("unreachable")

    def _do_filter(self, added: list[Block], removed: list[Block]) -> Event:
        event = Event()
        if removed:
            pivot = removed[0]
            logs = self._remove_logs(pivot.number, pivot.hash)
            event.removed.extend(reversed(logs))

        for block in added:
            logs = self._logs_for_block(block)
            self._entry.store_logs(logs)
            event.added.extend(logs)

        if added:
            self._store_last_block(added[-1])
        return event