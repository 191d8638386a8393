"""
Logical buckets over a raw byte-oriented KeyValue backend.

Buckets
-------
- META:     singleton records (configs, time/beacon policy, owner, contract info,
            sequence head/last/tail/len counters)
- NONCES:   per-owner request counter
- BOTS:     per-address bot record
- SEQ:      commitment sequence nodes (commitment + prev/next slot links)
- PENDING:  id-indexed pending commitments

Structured records are stored as canonical JSON (sorted keys, compact).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from . import KeyValue

# --- Bucket prefix constants (single-byte, domain-separated) -----------------

META_PREFIX    = b"\x01"  # META:    \x01 | len(name) | name
NONCES_PREFIX  = b"\x02"  # NONCES:  \x02 | len(owner) | owner
BOTS_PREFIX    = b"\x03"  # BOTS:    \x03 | len(addr) | addr
SEQ_PREFIX     = b"\x04"  # SEQ:     \x04 | u64_be(slot)
PENDING_PREFIX = b"\x05"  # PENDING: \x05 | len(id) | id

# --- META names ---------------------------------------------------------------

META_CONFIGS = b"configs"
META_TIME_CONFIGS = b"time_configs"
META_NOIS_CONFIGS = b"nois_configs"
META_OWNER = b"owner"
META_CONTRACT = b"contract_info"
META_SEQ_HEAD = b"seq.head"
META_SEQ_LAST = b"seq.last"
META_SEQ_TAIL = b"seq.tail"
META_SEQ_LEN = b"seq.len"


def _be_u32(n: int) -> bytes:
    if n < 0 or n > 0xFFFFFFFF:
        raise ValueError("length out of range for u32")
    return n.to_bytes(4, "big")


def _k(prefix: bytes, *parts: bytes) -> bytes:
    """Prefix + 4-byte len for each part to avoid accidental collisions."""
    return prefix + b"".join(_be_u32(len(p)) + p for p in parts)


def _utf8(s: str | bytes) -> bytes:
    return s if isinstance(s, bytes) else s.encode("utf-8")


def encode_json(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":")).encode("utf-8")


def decode_json(raw: bytes) -> Any:
    return json.loads(raw.decode("utf-8"))


@dataclass(frozen=True)
class Buckets:
    """
    Namespaced view over a byte KV store.

      key = PREFIX || concat(u32_be(len(part)) || part for part in parts)

    except SEQ, whose keys are PREFIX || u64_be(slot); slot numbers only grow,
    so ordered prefix iteration yields the sequence oldest first.
    """

    kv: KeyValue

    # --- Meta ----------------------------------------------------------------

    def key_meta(self, name: bytes) -> bytes:
        return _k(META_PREFIX, name)

    def get_meta(self, name: bytes) -> Optional[Any]:
        raw = self.kv.get(self.key_meta(name))
        return decode_json(raw) if raw is not None else None

    def put_meta(self, name: bytes, value: Any) -> None:
        self.kv.put(self.key_meta(name), encode_json(value))

    # --- Nonces --------------------------------------------------------------

    def key_nonce(self, owner: str) -> bytes:
        return _k(NONCES_PREFIX, _utf8(owner))

    def get_nonce(self, owner: str) -> Optional[int]:
        raw = self.kv.get(self.key_nonce(owner))
        return int.from_bytes(raw, "big") if raw is not None else None

    def put_nonce(self, owner: str, nonce: int) -> None:
        self.kv.put(self.key_nonce(owner), int(nonce).to_bytes(8, "big"))

    # --- Bots ----------------------------------------------------------------

    def key_bot(self, address: str) -> bytes:
        return _k(BOTS_PREFIX, _utf8(address))

    def get_bot(self, address: str) -> Optional[dict]:
        raw = self.kv.get(self.key_bot(address))
        return decode_json(raw) if raw is not None else None

    def put_bot(self, address: str, record: dict) -> None:
        self.kv.put(self.key_bot(address), encode_json(record))

    def has_bot(self, address: str) -> bool:
        return self.kv.has(self.key_bot(address))

    def del_bot(self, address: str) -> None:
        self.kv.delete(self.key_bot(address))

    # --- Sequence ------------------------------------------------------------

    def key_seq(self, slot: int) -> bytes:
        return SEQ_PREFIX + int(slot).to_bytes(8, "big")

    def get_seq(self, slot: int) -> Optional[dict]:
        raw = self.kv.get(self.key_seq(slot))
        return decode_json(raw) if raw is not None else None

    def put_seq(self, slot: int, record: dict) -> None:
        self.kv.put(self.key_seq(slot), encode_json(record))

    def del_seq(self, slot: int) -> None:
        self.kv.delete(self.key_seq(slot))

    # --- Pending index -------------------------------------------------------

    def key_pending(self, commit_id: str) -> bytes:
        return _k(PENDING_PREFIX, _utf8(commit_id))

    def get_pending(self, commit_id: str) -> Optional[dict]:
        raw = self.kv.get(self.key_pending(commit_id))
        return decode_json(raw) if raw is not None else None

    def put_pending(self, commit_id: str, record: dict) -> None:
        self.kv.put(self.key_pending(commit_id), encode_json(record))

    def del_pending(self, commit_id: str) -> None:
        self.kv.delete(self.key_pending(commit_id))

    def iter_pending(self) -> Iterable[dict]:
        """Pending records in ascending key order (length-prefixed id)."""
        for _, v in self.kv.iter_prefix(PENDING_PREFIX):
            yield decode_json(v)


__all__ = [
    "META_PREFIX",
    "NONCES_PREFIX",
    "BOTS_PREFIX",
    "SEQ_PREFIX",
    "PENDING_PREFIX",
    "META_CONFIGS",
    "META_TIME_CONFIGS",
    "META_NOIS_CONFIGS",
    "META_OWNER",
    "META_CONTRACT",
    "META_SEQ_HEAD",
    "META_SEQ_LAST",
    "META_SEQ_TAIL",
    "META_SEQ_LEN",
    "Buckets",
    "encode_json",
    "decode_json",
]
