"""
In-memory KeyValue backend. Used by tests and by `memory://` service hosts.

Keys are also kept in a sorted list so prefix iteration starts with a
bisect and yields lazily; a caller that stops early pays only for what it
read. Transactions keep an undo log of the keys they touch rather than a
copy of the whole map.
"""

from __future__ import annotations

import bisect
from contextlib import contextmanager
from typing import Dict, Generator, Iterable, List, Optional, Tuple


class MemoryKeyValue:
    def __init__(self) -> None:
        self._data: Dict[bytes, bytes] = {}
        self._keys: List[bytes] = []
        self._undo: Optional[List[Tuple[bytes, Optional[bytes]]]] = None

    def get(self, key: bytes) -> Optional[bytes]:
        return self._data.get(bytes(key))

    def put(self, key: bytes, value: bytes) -> None:
        if not isinstance(key, (bytes, bytearray)) or not isinstance(value, (bytes, bytearray)):
            raise TypeError("key and value must be bytes")
        self._set(bytes(key), bytes(value))

    def delete(self, key: bytes) -> None:
        self._set(bytes(key), None)

    def has(self, key: bytes) -> bool:
        return bytes(key) in self._data

    def iter_prefix(self, prefix: bytes) -> Iterable[Tuple[bytes, bytes]]:
        # Re-bisect after every yield so writes between steps are tolerated.
        i = bisect.bisect_left(self._keys, prefix)
        while i < len(self._keys):
            k = self._keys[i]
            if not k.startswith(prefix):
                return
            yield k, self._data[k]
            i = bisect.bisect_right(self._keys, k)

    def _set(self, key: bytes, value: Optional[bytes]) -> None:
        old = self._data.get(key)
        if self._undo is not None:
            self._undo.append((key, old))
        if value is None:
            if old is not None:
                del self._data[key]
                del self._keys[bisect.bisect_left(self._keys, key)]
            return
        if old is None:
            bisect.insort(self._keys, key)
        self._data[key] = value

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """Record prior values on entry; put them back if the block raises."""
        if self._undo is not None:
            raise RuntimeError("nested transactions are not supported")
        self._undo = []
        try:
            yield
        except BaseException:
            undo, self._undo = self._undo, None
            for key, old in reversed(undo):
                self._set(key, old)
            raise
        self._undo = None

    def __len__(self) -> int:
        return len(self._data)


__all__ = ["MemoryKeyValue"]
