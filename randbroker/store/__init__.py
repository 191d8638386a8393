"""
randbroker.store
================

Byte-oriented storage for the broker: a small ``KeyValue`` protocol plus
backends (in-memory, SQLite), the :class:`~randbroker.store.kv.Buckets` key
layout and a write-staging :class:`~randbroker.store.overlay.Overlay`.

Every execute call runs against an Overlay; the staged writes reach the
backend in one transaction only if the call succeeds.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Iterable, Optional, Protocol, Tuple


class KeyValue(Protocol):
    """Minimal byte-oriented KV interface.

    Keys and values are raw bytes. Namespaces are handled by the caller via
    prefixed keys (see :mod:`randbroker.store.kv`).
    """

    def get(self, key: bytes) -> Optional[bytes]:
        """Return value for key, or None if missing."""
        ...

    def put(self, key: bytes, value: bytes) -> None:
        """Insert or replace key with value."""
        ...

    def delete(self, key: bytes) -> None:
        """Remove key if present (no-op if absent)."""
        ...

    def has(self, key: bytes) -> bool:
        """Return True if key exists."""
        ...

    def iter_prefix(self, prefix: bytes) -> Iterable[Tuple[bytes, bytes]]:
        """Yield (key, value) pairs whose keys start with prefix, ascending by key."""
        ...


class TransactionalKeyValue(KeyValue, Protocol):
    def transaction(self) -> AbstractContextManager[None]:
        """Commit every write made inside the block, or none of them."""
        ...


def open_store(uri: str) -> TransactionalKeyValue:
    """
    Open a backend from a URI:
      memory://             -> MemoryKeyValue
      sqlite:///path/db     -> SQLiteKeyValue(path)
    """
    if uri == "memory://":
        from .memory import MemoryKeyValue

        return MemoryKeyValue()
    if uri.startswith("sqlite://"):
        from .sqlite import SQLiteKeyValue

        path = uri[len("sqlite://"):]
        if path.startswith("/./"):
            path = path[1:]
        if not path:
            raise ValueError("sqlite URI requires a path: sqlite:///path/to/db")
        return SQLiteKeyValue(path)
    raise ValueError(f"unsupported store URI: {uri!r}")


__all__ = ["KeyValue", "TransactionalKeyValue", "open_store"]
