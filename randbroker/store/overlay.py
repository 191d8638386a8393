"""
Write-staging overlay over a KeyValue backend.

Reads see staged writes first, then the backend. Nothing reaches the backend
until :meth:`Overlay.flush`, which applies every staged put/delete inside a
single backend transaction. Dropping the overlay discards the call's effects.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Tuple

from . import TransactionalKeyValue

log = logging.getLogger(__name__)

_DELETED = None


class Overlay:
    def __init__(self, backend: TransactionalKeyValue) -> None:
        self._backend = backend
        self._staged: Dict[bytes, Optional[bytes]] = {}

    # --- KV API --------------------------------------------------------------

    def get(self, key: bytes) -> Optional[bytes]:
        key = bytes(key)
        if key in self._staged:
            return self._staged[key]
        return self._backend.get(key)

    def has(self, key: bytes) -> bool:
        return self.get(key) is not None

    def put(self, key: bytes, value: bytes) -> None:
        if not isinstance(key, (bytes, bytearray)) or not isinstance(value, (bytes, bytearray)):
            raise TypeError("key and value must be bytes")
        self._staged[bytes(key)] = bytes(value)

    def delete(self, key: bytes) -> None:
        self._staged[bytes(key)] = _DELETED

    def iter_prefix(self, prefix: bytes) -> Iterable[Tuple[bytes, bytes]]:
        """Merge staged writes into the backend's ordered scan, lazily."""
        staged = sorted((k, v) for k, v in self._staged.items() if k.startswith(prefix))
        i = 0
        for k, v in self._backend.iter_prefix(prefix):
            while i < len(staged) and staged[i][0] < k:
                sk, sv = staged[i]
                i += 1
                if sv is not _DELETED:
                    yield sk, sv
            if i < len(staged) and staged[i][0] == k:
                sk, sv = staged[i]
                i += 1
                if sv is not _DELETED:
                    yield sk, sv
                continue
            yield k, v
        for sk, sv in staged[i:]:
            if sv is not _DELETED:
                yield sk, sv

    # --- Staging -------------------------------------------------------------

    @property
    def dirty(self) -> bool:
        return bool(self._staged)

    def flush(self) -> int:
        """Apply staged writes atomically; returns the number of keys touched."""
        n = len(self._staged)
        if not n:
            return 0
        with self._backend.transaction():
            for k, v in self._staged.items():
                if v is _DELETED:
                    self._backend.delete(k)
                else:
                    self._backend.put(k, v)
        self._staged.clear()
        log.debug("overlay flushed %d key(s)", n)
        return n

    def discard(self) -> None:
        self._staged.clear()


__all__ = ["Overlay"]
