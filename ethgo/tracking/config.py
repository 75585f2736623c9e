"""Configuration, interfaces and events of the log tracker."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Protocol, runtime_checkable

from ..primitives import Address, Hash
from ..store.base import Store
from ..store.inmem import InmemStore
from ..structs import Block, Log, LogFilter

DEFAULT_BATCH_SIZE = 100
TOO_MUCH_DATA_MESSAGE = "query returned more than 10000 results"

_UINT64_MAX = (1 << 64) - 1
_DECIMAL = re.compile(r"[0-9]+")
_HEX = re.compile(r"[0-9a-fA-F]+")


@runtime_checkable
class BlockTracking(Protocol):
    """What the tracker needs from a block tracker."""

    def blocks_blocked(self) -> list[Block]: ...

    def add_block_locked(self, block: Block) -> None: ...

    def max_block_backlog(self) -> int: ...

    def init(self) -> None: ...

    def start(self) -> None: ...

    def close(self) -> None: ...

    def subscribe(self) -> Any: ...

    def acquire_lock(self) -> Any: ...

    def last_blocked(self) -> Block | None: ...

    def handle_block_event(self, block: Block) -> Any: ...

    def len(self) -> int: ...


@runtime_checkable
class Provider(Protocol):
    """The chain queries the tracker makes."""

    def block_number(self) -> int: ...

    def get_block_by_hash(self, block_hash: Hash, full: bool) -> Block | None: ...

    def get_block_by_number(self, number: int | str, full: bool) -> Block | None: ...

    def get_logs(self, log_filter: LogFilter) -> list[Log]: ...

    def chain_id(self) -> int: ...


class ProviderError(Exception):
    """An error object returned by a node."""

    def __init__(self, message: str, code: int = 0, data: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data


@dataclass
class FilterConfig:
    """Which logs a tracker follows."""

    address: list[Address] = field(default_factory=list)
    topics: list[list[Hash | None] | None] = field(default_factory=list)
    start: int = 0
    hash: str = ""
    async_: bool = False

    def build_hash(self) -> str:
        """Derive the filter's identifying hash, store it and return it."""
        digest = hashlib.sha256()
        for address in self.address:
            digest.update(str(address).encode())
        for group in self.topics:
            if group is None:
                digest.update(b"empty")
                continue
            for topic in group:
                digest.update(b"empty" if topic is None else str(topic).encode())
        self.hash = digest.hexdigest()
        return self.hash

    def get_filter_search(self) -> LogFilter:
        """Return a fresh log query matching this filter."""
        return LogFilter(address=list(self.address), topics=list(self.topics))


@dataclass
class Config:
    """Tracker configuration."""

    batch_size: int = DEFAULT_BATCH_SIZE
    block_tracker: BlockTracking | None = None
    etherscan_api_key: str | None = None
    filter: FilterConfig = field(default_factory=FilterConfig)
    store: Store = field(default_factory=InmemStore)


def default_config() -> Config:
    """Return the default tracker configuration."""
    return Config(
        batch_size=DEFAULT_BATCH_SIZE,
        store=InmemStore(),
        filter=FilterConfig(),
    )


class EventType(IntEnum):
    ADD = 0
    DEL = 1


@dataclass
class Event:
    """Logs added to or removed from the chain."""

    type: EventType = EventType.ADD
    added: list[Log] = field(default_factory=list)
    removed: list[Log] = field(default_factory=list)


@dataclass
class BlockEvent:
    """Blocks added to or removed from the chain."""

    type: EventType = EventType.ADD
    added: list[Block] = field(default_factory=list)
    removed: list[Block] = field(default_factory=list)


def parse_uint64_or_hex(text: str) -> int:
    """Parse a decimal or 0x-prefixed hex unsigned 64-bit integer."""
    if text.startswith("0x"):
        digits, pattern, base = text[2:], _HEX, 16
    else:
        digits, pattern, base = text, _DECIMAL, 10
    if not pattern.fullmatch(digits):
        raise ValueError(f"invalid syntax: {text!r}")
    value = int(digits, base)
    if value > _UINT64_MAX:
        raise ValueError(f"value out of range: {text!r}")
    return value