"""
randbroker.expand: derive many per-request outputs from one 32-byte seed.

Design
------
- The diversification key (the commitment id) is hashed under its own domain
  tag and XOR-ed into the seed, giving a keyed base seed per request.
- Child seeds are SHA-256 blocks over (domain, base, BE64(index)): a pure
  counter-mode stream, so value `i` depends only on (seed, key, i).
- Hex outputs are the child seeds hex-encoded (64 chars each).
- Integer outputs use rejection sampling over the full 256-bit width, so
  every value in [min, max] is equally likely.

No state and no OS randomness: identical inputs always give identical outputs,
which is what makes fulfillments replayable and auditable.

Typical usage
-------------
from randbroker import expand

hexes = expand.generate_hex_randomness(seed, commitment.id, 3)
ints  = expand.generate_int_randomness(seed, commitment.id, 1, 6, 10)
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import List

from .constants import (
    DOMAIN_INT_REDRAW,
    DOMAIN_SUB_RANDOMNESS,
    DOMAIN_SUB_RANDOMNESS_BLOCK,
    SEED_LEN,
)

_WIDTH = 1 << 256


def _sha256(*parts: bytes) -> bytes:
    h = hashlib.sha256()
    for p in parts:
        h.update(p)
    return h.digest()


def _ensure_seed(seed: object) -> bytes:
    if not isinstance(seed, (bytes, bytearray, memoryview)):
        raise TypeError(f"seed must be bytes-like, got {type(seed).__name__}")
    seed_b = bytes(seed)
    if len(seed_b) != SEED_LEN:
        raise ValueError(f"seed must be exactly {SEED_LEN} bytes (got {len(seed_b)})")
    return seed_b


@dataclass
class SubRandomnessProvider:
    """
    Counter-mode stream of 32-byte child seeds.

    base    = seed XOR SHA-256(DOMAIN_SUB_RANDOMNESS || key)
    child_i = SHA-256(DOMAIN_SUB_RANDOMNESS_BLOCK || base || BE64(i))
    """

    _base: bytes
    _counter: int = 0

    def provide(self) -> bytes:
        child = _sha256(DOMAIN_SUB_RANDOMNESS_BLOCK, self._base, self._counter.to_bytes(8, "big"))
        self._counter += 1
        return child


def sub_randomness_with_key(seed: bytes, key: str) -> SubRandomnessProvider:
    seed_b = _ensure_seed(seed)
    hashed_key = _sha256(DOMAIN_SUB_RANDOMNESS, key.encode("utf-8"))
    base = bytes(a ^ b for a, b in zip(seed_b, hashed_key))
    return SubRandomnessProvider(_base=base)


def int_in_range(child: bytes, min_value: int, max_value: int) -> int:
    """
    Map a 32-byte child seed uniformly into [min_value, max_value].

    Values at or above the largest multiple of the range size are rejected and
    redrawn from SHA-256(DOMAIN_INT_REDRAW || child); the first accepted draw
    is reduced modulo the range size.
    """
    if min_value > max_value:
        raise ValueError(f"empty range [{min_value}, {max_value}]")
    n = max_value - min_value + 1
    t = (_WIDTH // n) * n
    draw = bytes(child)
    while True:
        x = int.from_bytes(draw, "big")
        if x < t:
            return min_value + x % n
        draw = _sha256(DOMAIN_INT_REDRAW, draw)


def generate_hex_randomness(seed: bytes, key: str, num: int) -> List[str]:
    provider = sub_randomness_with_key(seed, key)
    return [provider.provide().hex() for _ in range(num)]


def generate_int_randomness(seed: bytes, key: str, min_value: int, max_value: int, num: int) -> List[int]:
    if min_value > max_value:
        raise ValueError(f"empty range [{min_value}, {max_value}]")
    provider = sub_randomness_with_key(seed, key)
    return [int_in_range(provider.provide(), min_value, max_value) for _ in range(num)]


__all__ = [
    "SubRandomnessProvider",
    "sub_randomness_with_key",
    "int_in_range",
    "generate_hex_randomness",
    "generate_int_randomness",
]
