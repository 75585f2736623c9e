"""In-memory tracker store."""

from __future__ import annotations

import copy
import threading

from ..structs import Log
from .base import Entry, Store


class InmemEntry(Entry):
    """Log entry held in a list."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._logs: list[Log] = []

    def last_index(self) -> int:
        with self._lock:
            return len(self._logs)

    def logs(self) -> list[Log]:
        return self._logs

    def store_logs(self, logs: list[Log]) -> None:
        with self._lock:
            self._logs.extend(logs)

    def remove_logs(self, index: int) -> None:
        with self._lock:
            if index > len(self._logs):
                raise IndexError(f"index {index} beyond {len(self._logs)} logs")
            del self._logs[index:]

    def get_log(self, index: int) -> Log:
        with self._lock:
            return copy.copy(self._logs[index])


class InmemStore(Store):
    """Store kept entirely in memory."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, InmemEntry] = {}
        self._kv: dict[str, str] = {}

    def get(self, key: str) -> str:
        with self._lock:
            return self._kv.get(key, "")

    def list_prefix(self, prefix: str) -> list[str]:
        with self._lock:
            return [v for k, v in self._kv.items() if k.startswith(prefix)]

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._kv[key] = value

    def close(self) -> None:
        return None

    def get_entry(self, name: str) -> InmemEntry:
        with self._lock:
            return self._entries.setdefault(name, InmemEntry())