"""Tracker store backed by an LMDB file."""

from __future__ import annotations

from os import PathLike

import lmdb

from ..decoding import decode_log
from ..structs import Log
from .base import Entry, Store

_CONF_DB = b"conf"
_LOGS_DB = b"logs"


def _index_key(index: int) -> bytes:
    return index.to_bytes(8, "big")


class LMDBEntry(Entry):
    """Log entry stored in its own named database, keyed by big-endian index."""

    def __init__(self, env: lmdb.Environment, db) -> None:
        self._env = env
        self._db = db

    @staticmethod
    def _last_index_in(txn, db) -> int:
        cursor = txn.cursor(db=db)
        if cursor.last():
            return int.from_bytes(cursor.key(), "big") + 1
        return 0

    def last_index(self) -> int:
        with self._env.begin(db=self._db) as txn:
            return self._last_index_in(txn, self._db)

    def store_log(self, log: Log) -> None:
        self.store_logs([log])

    def store_logs(self, logs: list[Log]) -> None:
        with self._env.begin(db=self._db, write=True) as txn:
            start = self._last_index_in(txn, self._db)
            for offset, log in enumerate(logs):
                txn.put(_index_key(start + offset), log.to_json().encode("utf-8"), db=self._db)

    def remove_logs(self, index: int) -> None:
        key = _index_key(index)
        with self._env.begin(db=self._db, write=True) as txn:
            cursor = txn.cursor(db=self._db)
            while cursor.set_range(key):
                cursor.delete()

    def get_log(self, index: int) -> Log:
        with self._env.begin(db=self._db) as txn:
            raw = txn.get(_index_key(index), db=self._db)
        if raw is None:
            raise IndexError(f"no log stored at index {index}")
        return decode_log(bytes(raw))


class LMDBStore(Store):
    """Store kept in a single LMDB file."""

    def __init__(self, path: str | PathLike, map_size: int = 1 << 26, max_dbs: int = 128):
        self._env = lmdb.open(str(path), subdir=False, map_size=map_size, max_dbs=max_dbs)
        try:
            self._conf = self._env.open_db(_CONF_DB)
        except lmdb.Error:
            self._env.close()
            raise

    def get(self, key: str) -> str:
        with self._env.begin(db=self._conf) as txn:
            value = txn.get(key.encode("utf-8"), db=self._conf)
        return "" if value is None else bytes(value).decode("utf-8")

    def list_prefix(self, prefix: str) -> list[str]:
        raw_prefix = prefix.encode("utf-8")
        result = []
        with self._env.begin(db=self._conf) as txn:
            cursor = txn.cursor(db=self._conf)
            if cursor.set_range(raw_prefix):
                for key, value in cursor.iternext():
                    if not bytes(key).startswith(raw_prefix):
                        break
                    result.append(bytes(value).decode("utf-8"))
        return result

    def set(self, key: str, value: str) -> None:
        with self._env.begin(db=self._conf, write=True) as txn:
            txn.put(key.encode("utf-8"), value.encode("utf-8"), db=self._conf)

    def close(self) -> None:
        self._env.close()

    def get_entry(self, name: str) -> LMDBEntry:
        db = self._env.open_db(_LOGS_DB + name.encode("utf-8"))
        return LMDBEntry(self._env, db)