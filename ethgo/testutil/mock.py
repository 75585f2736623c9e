"""An in-memory chain that serves blocks and logs for tracker tests."""

from __future__ import annotations

import threading
from collections.abc import Callable

from ..primitives import Hash, parse_hash
from ..structs import Block, Log, LogFilter

_LATEST_TAGS = ("latest", -1)
_DEFAULT_CHAIN_ID = 1337


def _must_decode_hash(text: str) -> bytes:
    if text.startswith("0x"):
        text = text[2:]
    if len(text) % 2 == 1:
        text = text + "0"
    return bytes.fromhex(text)


def _encode_hash(text: str) -> Hash:
    return parse_hash("0x" + text.rjust(64, "0"))


class MockBlock:
    """Description of a block whose hash is derived from short strings."""

    def __init__(self, hash_text: str, number: int, parent: str) -> None:
        self._hash = hash_text
        self._extra = ""
        self._parent = parent
        self._num = number
        self._logs: list[str] = []

    def extra(self, data: str) -> "MockBlock":
        """Prefix the hash text with ``data`` (used to build forks)."""
        self._extra = data
        return self

    def get_logs(self) -> list[Log]:
        block_hash = self.hash()
        return [
            Log(data=_must_decode_hash(data), block_number=self._num, block_hash=block_hash)
            for data in self._logs
        ]

    def log(self, data: str) -> "MockBlock":
        self._logs.append(data)
        return self

    def get_num(self) -> int:
        return self._num

    def num(self, number: int) -> "MockBlock":
        self._num = number
        return self

    def parent(self, number: int) -> "MockBlock":
        """Set the parent to block ``number`` and move this block right after it."""
        self._parent = str(number)
        self._num = number + 1
        return self

    def hash(self) -> Hash:
        return _encode_hash(self._extra + self._hash)

    def block(self) -> Block:
        block = Block(hash=self.hash(), number=self._num)
        if self._num != 0:
            block.parent_hash = _encode_hash(self._parent)
        return block

    def __repr__(self) -> str:
        return f"MockBlock(num={self._num}, hash={self.hash()})"


def mock(number: int) -> MockBlock:
    """Return a mock block at ``number`` whose parent is ``number - 1``."""
    return MockBlock(str(number), number, str(number - 1))


class MockList(list):
    """A list of mock blocks."""

    def create(self, start: int, end: int, callback: Callable[[MockBlock], object]) -> None:
        """Append mock blocks ``start`` up to ``end`` (exclusive), each passed to ``callback``."""
        for number in range(start, end):
            block = mock(number)
            callback(block)
            self.append(block)

    def get_logs(self) -> list[Log]:
        return [log for block in self for log in block.get_logs()]

    def to_blocks(self) -> list[Block]:
        return [block.block() for block in self]


class MockClient:
    """A provider answering from blocks and logs added to it."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._num = 0
        self._block_num: dict[int, Hash] = {}
        self._blocks: dict[Hash, Block] = {}
        self._logs: dict[Hash, list[Log]] = {}
        self._chain_id: int | None = None

    def set_chain_id(self, chain_id: int) -> None:
        self._chain_id = chain_id

    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = _DEFAULT_CHAIN_ID
        return self._chain_id

    def get_last_blocks(self, n: int) -> list[Block]:
        """Return the last ``n`` blocks of the canonical chain, oldest first."""
        with self._lock:
            if self._num == 0:
                return []
            count = min(n, self._num + 1)
            return [
                self._blocks[self._block_num[self._num - back]]
                for back in range(count - 1, -1, -1)
            ]

    def get_all_logs(self) -> list[Log]:
        """Return the logs of every canonical block, in block order."""
        with self._lock:
            if self._num == 0:
                return []
            return [
                log
                for number in range(self._num + 1)
                for log in self._logs.get(self._blocks[self._block_num[number]].hash, [])
            ]

    def add_scenario(self, blocks: list[MockBlock]) -> None:
        """Add blocks (and their logs), replacing any block at the same height."""
        with self._lock:
            for item in blocks:
                block = Block(hash=item.hash(), number=item.get_num())
                if item.get_num() != 0:
                    try:
                        block.parent_hash = self._block_by_number(item.get_num() - 1).hash
                    except LookupError:
                        # partial scenarios do not hold every ancestor
                        block.parent_hash = _encode_hash(str(item.get_num() - 1))
                self._add_blocks(block)
                self._logs.pop(block.hash, None)
                self.add_logs(item.get_logs())

    def add_logs(self, logs: list[Log]) -> None:
        with self._lock:
            for log in logs:
                self._logs.setdefault(log.block_hash, []).append(log)

    def _add_blocks(self, *blocks: Block) -> None:
        for block in blocks:
            self._num = max(self._num, block.number)
            self._blocks[block.hash] = block
            self._block_num[block.number] = block.hash

    def block_number(self) -> int:
        with self._lock:
            return self._num

    def get_block_by_hash(self, block_hash: Hash, full: bool) -> Block:
        with self._lock:
            block = self._blocks.get(block_hash)
        if block is None:
            raise LookupError(f"hash {block_hash} not found")
        return block

    def _block_by_number(self, number: int) -> Block:
        block_hash = self._block_num.get(number)
        if block_hash is None:
            raise LookupError(f"number {number} not found")
        return self._blocks[block_hash]

    def get_block_by_number(self, number: int | str, full: bool) -> Block:
        with self._lock:
            if isinstance(number, str) or number < 0:
                if number in _LATEST_TAGS:
                    if self._num == 0:
                        return Block(number=0)
                    return self._block_by_number(self._num)
                raise ValueError("getBlockByNumber query not supported")
            return self._block_by_number(number)

    def get_logs(self, log_filter: LogFilter) -> list[Log]:
        with self._lock:
            if log_filter.block_hash is not None:
                return list(self._logs.get(log_filter.block_hash, []))

            start, end = int(log_filter.from_block), int(log_filter.to_block)
            if start > end:
                raise ValueError("from higher than to")
            if end > len(self._blocks):
                raise IndexError("out of bounds")

            logs: list[Log] = []
            for number in range(start, end + 1):
                block = self._block_by_number(number)
                logs.extend(self._logs.get(block.hash, []))
            return logs