"""
SQLite-backed KeyValue store for the broker.

Features
--------
- Single table (key BLOB PRIMARY KEY, value BLOB NOT NULL)
- All-or-nothing writes via ``with kv.transaction(): ...``
- Ordered, lazily paged prefix iteration using range scans (lower/upper bound)
- WAL journal with synchronous=NORMAL

Prefix iteration relies on lexicographic ordering of BLOBs: to iterate a
prefix `p` we select ``key >= p AND key < next_prefix(p)``. The commitment
sequence keys embed big-endian slot numbers, so this order is also the
oldest-to-newest order of the sequence.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Generator, Iterable, List, Optional, Tuple

log = logging.getLogger(__name__)


def _ensure_dir(path: str) -> None:
    d = os.path.dirname(os.path.abspath(path))
    if d and not os.path.exists(d):
        os.makedirs(d, exist_ok=True)


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA temp_store=MEMORY;")


def _init_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv (
            key   BLOB PRIMARY KEY,
            value BLOB NOT NULL
        );
        """
    )


def _next_prefix(prefix: bytes) -> Optional[bytes]:
    """
    Smallest byte-string strictly greater than every key starting with
    `prefix`; None when the prefix is empty or all 0xFF (no upper bound).
    """
    if not prefix:
        return None
    b = bytearray(prefix)
    for i in range(len(b) - 1, -1, -1):
        if b[i] != 0xFF:
            b[i] += 1
            return bytes(b[: i + 1])
    return None


@dataclass
class SQLiteKeyValue:
    """
    Example
    -------
    >>> kv = SQLiteKeyValue("/tmp/randbroker.db")
    >>> with kv.transaction():
    ...     kv.put(b"hello", b"world")
    >>> kv.get(b"hello")
    b'world'
    >>> kv.close()
    """

    path: str
    page_size: int = 256
    _conn: sqlite3.Connection = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.path != ":memory:":
            _ensure_dir(self.path)
        # isolation_level=None -> autocommit; transactions are explicit.
        # Callers serialize access, so the connection may cross threads.
        self._conn = sqlite3.connect(self.path, isolation_level=None, timeout=30.0, check_same_thread=False)
        _apply_pragmas(self._conn)
        _init_schema(self._conn)
        log.debug("opened sqlite store at %s", self.path)

    def __enter__(self) -> "SQLiteKeyValue":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- KV API --------------------------------------------------------------

    def put(self, key: bytes, value: bytes) -> None:
        if not isinstance(key, (bytes, bytearray)) or not isinstance(value, (bytes, bytearray)):
            raise TypeError("key and value must be bytes")
        self._conn.execute("INSERT OR REPLACE INTO kv(key, value) VALUES(?, ?)", (bytes(key), bytes(value)))

    def get(self, key: bytes) -> Optional[bytes]:
        row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (bytes(key),)).fetchone()
        return bytes(row[0]) if row else None

    def has(self, key: bytes) -> bool:
        row = self._conn.execute("SELECT 1 FROM kv WHERE key = ?", (bytes(key),)).fetchone()
        return row is not None

    def delete(self, key: bytes) -> None:
        self._conn.execute("DELETE FROM kv WHERE key = ?", (bytes(key),))

    def iter_prefix(self, prefix: bytes) -> Iterable[Tuple[bytes, bytes]]:
        """
        Keyset-paged range scan: each page is one bounded SELECT resumed after
        the last key seen, so a caller that stops early never reads the rest
        of the range and no statement stays open between yields.
        """
        prefix = bytes(prefix)
        upper = _next_prefix(prefix)
        after: Optional[bytes] = None
        while True:
            lower_sql, lower = ("key > ?", after) if after is not None else ("key >= ?", prefix)
            if upper is not None:
                rows: List[Tuple[bytes, bytes]] = self._conn.execute(
                    f"SELECT key, value FROM kv WHERE {lower_sql} AND key < ? ORDER BY key ASC LIMIT ?",
                    (lower, upper, self.page_size),
                ).fetchall()
            else:
                rows = self._conn.execute(
                    f"SELECT key, value FROM kv WHERE {lower_sql} ORDER BY key ASC LIMIT ?",
                    (lower, self.page_size),
                ).fetchall()
            for k, v in rows:
                k = bytes(k)
                if not k.startswith(prefix):
                    return
                yield k, bytes(v)
            if len(rows) < self.page_size:
                return
            after = bytes(rows[-1][0])

    # --- Transactions --------------------------------------------------------

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """BEGIN IMMEDIATE; COMMIT on success, ROLLBACK if the block raises."""
        self._conn.execute("BEGIN IMMEDIATE;")
        try:
            yield
        except BaseException:
            self._conn.execute("ROLLBACK;")
            raise
        else:
            self._conn.execute("COMMIT;")

    def close(self) -> None:
        self._conn.close()


__all__ = ["SQLiteKeyValue"]
