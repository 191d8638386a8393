"""
Per-owner nonces and commitment id derivation.

    id = hex(SHA-256(owner || decimal(nonce)))

The nonce starts at 0 on an owner's first request and is incremented in the
same call that consumes it, so two requests from one owner never share an id.
"""

from __future__ import annotations

import hashlib

from ..store.kv import Buckets


def make_commit_id(owner: str, nonce: int) -> str:
    """
    >>> make_commit_id("aabbccddee", 0)
    '3a904b5371a39495ed468856437d3ffc598edf9b36d1a4dcf710f9840bb8135b'
    """
    return hashlib.sha256((owner + str(int(nonce))).encode("utf-8")).hexdigest()


class NonceTable:
    def __init__(self, buckets: Buckets) -> None:
        self._b = buckets

    def current(self, owner: str) -> int:
        n = self._b.get_nonce(owner)
        return 0 if n is None else n

    def increment(self, owner: str) -> int:
        n = self.current(owner) + 1
        self._b.put_nonce(owner, n)
        return n


__all__ = ["make_commit_id", "NonceTable"]
