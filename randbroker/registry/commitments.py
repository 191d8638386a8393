"""
Commitment registry: the ordered sequence of outstanding requests plus the
id-indexed pending table, always mutated together.

Layout
------
The sequence is a doubly linked list of slots in the store. Each slot record
holds the commitment and the slot numbers of its live neighbours; ``head``
and ``last`` point at the oldest and newest live slots, ``tail`` is the next
slot number to assign and ``len`` the number of live entries. Each pending
entry remembers its slot, so a beacon-path removal unlinks its node in place
and no scan ever steps over a removed entry.

Because commit_time is derived from a non-decreasing clock, the list holds
commitments in non-decreasing commit_time order; :meth:`push` refuses an
insertion that would break that order.

Selection
---------
Given an oracle report's completion time ``t`` and a batch cap, entries are
taken from the oldest end:

  1. commit_time >= t   -> the window has not opened; leave it and stop
  2. expired_time < t   -> the window has closed; drop it (no output, no refund)
  3. otherwise          -> match it; stop once the cap is reached

Work per call is bounded by the cap plus the expired entries it clears.
Push, take and the newest-entry check touch a constant number of records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..store.kv import META_SEQ_HEAD, META_SEQ_LAST, META_SEQ_LEN, META_SEQ_TAIL, Buckets
from ..types.core import Commitment

log = logging.getLogger(__name__)


@dataclass
class Selection:
    matched: List[Commitment] = field(default_factory=list)
    expired: List[Commitment] = field(default_factory=list)


@dataclass
class _Cursor:
    head: Optional[int]
    last: Optional[int]
    tail: int
    n: int


class CommitmentRegistry:
    def __init__(self, buckets: Buckets) -> None:
        self._b = buckets

    # ---- counters ------------------------------------------------------------

    def _cursor(self) -> _Cursor:
        head = self._b.get_meta(META_SEQ_HEAD)
        last = self._b.get_meta(META_SEQ_LAST)
        return _Cursor(
            head=None if head is None else int(head),
            last=None if last is None else int(last),
            tail=int(self._b.get_meta(META_SEQ_TAIL) or 0),
            n=int(self._b.get_meta(META_SEQ_LEN) or 0),
        )

    def _save(self, cur: _Cursor) -> None:
        self._b.put_meta(META_SEQ_HEAD, cur.head)
        self._b.put_meta(META_SEQ_LAST, cur.last)
        self._b.put_meta(META_SEQ_TAIL, cur.tail)
        self._b.put_meta(META_SEQ_LEN, cur.n)

    def _node(self, slot: int) -> Dict[str, Any]:
        node = self._b.get_seq(slot)
        if node is None:
            raise RuntimeError(f"commitment sequence is missing linked slot {slot}")
        return node

    def _unlink(self, cur: _Cursor, slot: int, node: Dict[str, Any]) -> None:
        prev, nxt = node["prev"], node["next"]
        if prev is None:
            cur.head = nxt
        else:
            p = self._node(prev)
            p["next"] = nxt
            self._b.put_seq(prev, p)
        if nxt is None:
            cur.last = prev
        else:
            q = self._node(nxt)
            q["prev"] = prev
            self._b.put_seq(nxt, q)
        self._b.del_seq(slot)
        cur.n -= 1

    def _walk(self, start: Optional[int]) -> Iterator[Tuple[int, Dict[str, Any]]]:
        slot = start
        while slot is not None:
            node = self._node(slot)
            yield slot, node
            slot = node["next"]

    # ---- mutation ------------------------------------------------------------

    def push(self, c: Commitment) -> int:
        """Append `c` at the newest end and index it by id. Returns its slot."""
        if self._b.get_pending(c.id) is not None:
            raise ValueError(f"commitment id already pending: {c.id}")
        cur = self._cursor()
        slot = cur.tail
        if cur.last is not None:
            newest = self._node(cur.last)
            newest_time = int(newest["commitment"]["commit_time"])
            if c.commit_time < newest_time:
                raise ValueError(
                    f"commit_time {c.commit_time} precedes newest entry ({newest_time}); sequence must stay sorted"
                )
            newest["next"] = slot
            self._b.put_seq(cur.last, newest)
        record = c.to_dict()
        self._b.put_seq(slot, {"commitment": record, "prev": cur.last, "next": None})
        self._b.put_pending(c.id, {"slot": slot, "commitment": record})
        if cur.head is None:
            cur.head = slot
        cur.last = slot
        cur.tail = slot + 1
        cur.n += 1
        self._save(cur)
        return slot

    def take(self, commit_id: str) -> Optional[Commitment]:
        """
        Remove and return the pending commitment `commit_id`, or None if it is
        not pending (already fulfilled, dropped, or never admitted).
        """
        entry = self._b.get_pending(commit_id)
        if entry is None:
            return None
        cur = self._cursor()
        slot = int(entry["slot"])
        self._unlink(cur, slot, self._node(slot))
        self._b.del_pending(commit_id)
        self._save(cur)
        return Commitment.from_dict(entry["commitment"])

    def select(self, completion_time: int, max_batch: int) -> Selection:
        """Run the time-window eviction for one oracle report."""
        if max_batch < 1:
            raise ValueError("max_batch must be >= 1")
        cur = self._cursor()
        out = Selection()
        for slot, node in self._walk(cur.head):
            c = Commitment.from_dict(node["commitment"])
            if c.commit_time >= completion_time:
                break
            self._unlink(cur, slot, node)
            self._b.del_pending(c.id)
            if c.expired_time < completion_time:
                out.expired.append(c)
                log.debug("commitment %s expired at %d (report t=%d)", c.id, c.expired_time, completion_time)
                continue
            out.matched.append(c)
            if len(out.matched) >= max_batch:
                break
        if out.matched or out.expired:
            self._save(cur)
        return out

    # ---- reads ---------------------------------------------------------------

    def get(self, commit_id: str) -> Optional[Commitment]:
        entry = self._b.get_pending(commit_id)
        return Commitment.from_dict(entry["commitment"]) if entry is not None else None

    def __len__(self) -> int:
        return self._cursor().n

    def sequence(self, limit: int) -> List[Commitment]:
        """Up to `limit` live entries, oldest first."""
        out: List[Commitment] = []
        if limit <= 0:
            return out
        for _, node in self._walk(self._cursor().head):
            out.append(Commitment.from_dict(node["commitment"]))
            if len(out) >= limit:
                break
        return out

    def pending(self, limit: int) -> List[Commitment]:
        """Up to `limit` pending entries in ascending id order."""
        out: List[Commitment] = []
        if limit <= 0:
            return out
        for entry in self._b.iter_pending():
            out.append(Commitment.from_dict(entry["commitment"]))
            if len(out) >= limit:
                break
        return out

    def is_sorted(self) -> bool:
        """True if live entries are in non-decreasing commit_time order."""
        prev: Optional[int] = None
        for _, node in self._walk(self._cursor().head):
            t = int(node["commitment"]["commit_time"])
            if prev is not None and t < prev:
                return False
            prev = t
        return True


__all__ = ["Selection", "CommitmentRegistry"]
