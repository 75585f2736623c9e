"""Tracker store backed by an SQL database (SQLite through the standard library)."""

from __future__ import annotations

import re
import sqlite3
import threading
from os import PathLike

from ..primitives import parse_address, parse_hash
from ..structs import Log
from .base import Entry, Store

_TABLE_NAME = re.compile(r"[A-Za-z0-9_]+")

_KV_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key text unique,
    val text
)
"""

_LOG_SCHEMA = """
CREATE TABLE IF NOT EXISTS {table} (
    indx        numeric,
    tx_index    numeric,
    tx_hash     text,
    block_num   numeric,
    block_hash  text,
    address     text,
    topics      text,
    data        text
)
"""


class SQLEntry(Entry):
    """Log entry stored as rows of one table."""

    def __init__(self, connection: sqlite3.Connection, table: str, lock: threading.RLock):
        self._conn = connection
        self._table = table
        self._lock = lock

    def _last_index(self) -> int:
        row = self._conn.execute(
            f"SELECT indx FROM {self._table} ORDER BY indx DESC LIMIT 1"
        ).fetchone()
        return 0 if row is None else int(row[0]) + 1

    def last_index(self) -> int:
        with self._lock:
            return self._last_index()

    def store_logs(self, logs: list[Log]) -> None:
        with self._lock, self._conn:
            start = self._last_index()
            rows = [
                (
                    start + offset,
                    log.transaction_index,
                    str(log.transaction_hash),
                    log.block_number,
                    str(log.block_hash),
                    str(log.address),
                    ",".join(str(topic) for topic in log.topics),
                    "0x" + bytes(log.data).hex() if log.data else "",
                )
                for offset, log in enumerate(logs)
            ]
            self._conn.executemany(
                f"INSERT INTO {self._table} "
                "(indx, tx_index, tx_hash, block_num, block_hash, address, topics, data) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )

    def remove_logs(self, index: int) -> None:
        with self._lock, self._conn:
            self._conn.execute(f"DELETE FROM {self._table} WHERE indx >= ?", (index,))

    def get_log(self, index: int) -> Log:
        with self._lock:
            row = self._conn.execute(
                "SELECT tx_index, tx_hash, block_num, block_hash, address, topics, data "
                f"FROM {self._table} WHERE indx = ?",
                (index,),
            ).fetchone()
        if row is None:
            raise IndexError(f"no log stored at index {index}")
        tx_index, tx_hash, block_num, block_hash, address, topics, data = row

        payload = b""
        if data:
            if not data.startswith("0x"):
                raise ValueError("0x prefix not found in data")
            payload = bytes.fromhex(data[2:])

        return Log(
            transaction_index=int(tx_index),
            transaction_hash=parse_hash(tx_hash),
            block_number=int(block_num),
            block_hash=parse_hash(block_hash),
            address=parse_address(address),
            topics=[parse_hash(item) for item in topics.split(",")] if topics else [],
            data=payload,
        )


class SQLStore(Store):
    """Key-value table plus one log table per entry."""

    def __init__(self, connection: sqlite3.Connection):
        self._conn = connection
        self._lock = threading.RLock()
        with self._lock, self._conn:
            self._conn.execute(_KV_SCHEMA)

    def get(self, key: str) -> str:
        with self._lock:
            row = self._conn.execute("SELECT val FROM kv WHERE key = ?", (key,)).fetchone()
        return "" if row is None else row[0]

    def list_prefix(self, prefix: str) -> list[str]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT val FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        return [row[0] for row in rows]

    def set(self, key: str, value: str) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO kv (key, val) VALUES (?, ?) "
                "ON CONFLICT (key) DO UPDATE SET val = excluded.val",
                (key, value),
            )

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def get_entry(self, name: str) -> SQLEntry:
        if not _TABLE_NAME.fullmatch(name):
            raise ValueError(f"invalid entry name {name!r}")
        table = "logs_" + name
        with self._lock, self._conn:
            self._conn.execute(_LOG_SCHEMA.format(table=table))
        return SQLEntry(self._conn, table, self._lock)


def open_sqlite_store(path: str | PathLike) -> SQLStore:
    """Open (or create) an SQLite database at ``path`` as a tracker store."""
    return SQLStore(sqlite3.connect(str(path), check_same_thread=False))