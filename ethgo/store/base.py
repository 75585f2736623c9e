"""Storage interfaces used by the log tracker."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..structs import Log


class Entry(ABC):
    """Ordered log storage for one filter."""

    @abstractmethod
    def last_index(self) -> int:
        """Return the index one past the last stored log."""

    @abstractmethod
    def store_logs(self, logs: list[Log]) -> None:
        """Append logs at the end."""

    @abstractmethod
    def remove_logs(self, index: int) -> None:
        """Remove every log from ``index`` onwards."""

    @abstractmethod
    def get_log(self, index: int) -> Log:
        """Return the log stored at ``index``."""


class Store(ABC):
    """Key-value storage plus per-filter log entries."""

    @abstractmethod
    def get(self, key: str) -> str:
        """Return the value for ``key``, or an empty string if unset."""

    @abstractmethod
    def list_prefix(self, prefix: str) -> list[str]:
        """Return the values of all keys starting with ``prefix``."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""

    @abstractmethod
    def close(self) -> None:
        """Release resources held by the store."""

    @abstractmethod
    def get_entry(self, name: str) -> Entry:
        """Return the log entry named ``name``, creating it if needed."""

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()