import pytest

from randbroker.registry import CommitmentRegistry
from randbroker.store.kv import Buckets
from randbroker.store.memory import MemoryKeyValue
from randbroker.types import Commitment, DataRequest

from .conftest import USER


def mk_registry() -> CommitmentRegistry:
    return CommitmentRegistry(Buckets(MemoryKeyValue()))


def mk(cid: str, commit: int, expired: int, owner: str = USER) -> Commitment:
    return Commitment(
        id=cid,
        request_id=f"req-{cid}",
        owner=owner,
        commit_time=commit,
        expired_time=expired,
        data_request=DataRequest.of_hex(1),
    )


def ids(cs):
    return [c.id for c in cs]


def assert_lockstep(reg: CommitmentRegistry) -> None:
    seq = reg.sequence(1000)
    pend = reg.pending(1000)
    assert sorted(ids(seq)) == ids(pend)
    assert len(reg) == len(seq)
    assert reg.is_sorted()


def test_push_indexes_both_structures():
    reg = mk_registry()
    reg.push(mk("b", 0, 5))
    reg.push(mk("a", 5, 10))
    assert ids(reg.sequence(10)) == ["b", "a"]
    assert ids(reg.pending(10)) == ["a", "b"]
    assert reg.get("a").commit_time == 5
    assert len(reg) == 2


def test_push_rejects_duplicate_and_out_of_order():
    reg = mk_registry()
    reg.push(mk("a", 10, 15))
    with pytest.raises(ValueError):
        reg.push(mk("a", 10, 15))
    with pytest.raises(ValueError):
        reg.push(mk("b", 9, 15))
    reg.push(mk("c", 10, 20))  # equal commit_time is fine
    assert_lockstep(reg)


def test_select_single_in_window():
    reg = mk_registry()
    reg.push(mk("a", 0, 5))
    sel = reg.select(4, 5)
    assert ids(sel.matched) == ["a"]
    assert sel.expired == []
    assert len(reg) == 0
    assert reg.pending(10) == []


def test_select_drops_expired_then_matches_next():
    reg = mk_registry()
    reg.push(mk("a", 0, 5))
    reg.push(mk("b", 5, 10))
    sel = reg.select(6, 5)
    assert ids(sel.expired) == ["a"]
    assert ids(sel.matched) == ["b"]
    assert len(reg) == 0
    assert reg.pending(10) == []


def test_select_stops_at_future_commitment():
    reg = mk_registry()
    reg.push(mk("a", 0, 5))
    reg.push(mk("b", 10, 15))
    sel = reg.select(4, 5)
    assert ids(sel.matched) == ["a"]
    assert ids(reg.sequence(10)) == ["b"]
    assert_lockstep(reg)


def test_select_nothing_when_window_not_open():
    reg = mk_registry()
    reg.push(mk("a", 10, 15))
    sel = reg.select(10, 5)  # commit_time == t is not yet open
    assert sel.matched == [] and sel.expired == []
    assert len(reg) == 1
    assert_lockstep(reg)


@pytest.mark.parametrize(
    "t,matched,expired",
    [
        (10, 0, 0),
        (11, 1, 0),
        (15, 1, 0),  # expired_time == t still matches
        (16, 0, 1),
    ],
)
def test_window_boundaries(t, matched, expired):
    reg = mk_registry()
    reg.push(mk("a", 10, 15))
    sel = reg.select(t, 5)
    assert (len(sel.matched), len(sel.expired)) == (matched, expired)
    assert_lockstep(reg)


def test_select_respects_batch_cap():
    reg = mk_registry()
    for i in range(7):
        reg.push(mk(f"c{i}", i, i + 100))
    sel = reg.select(50, 3)
    assert ids(sel.matched) == ["c0", "c1", "c2"]
    assert ids(reg.sequence(10)) == ["c3", "c4", "c5", "c6"]
    sel = reg.select(50, 3)
    assert ids(sel.matched) == ["c3", "c4", "c5"]
    assert_lockstep(reg)


def test_expired_entries_do_not_count_toward_cap():
    reg = mk_registry()
    for i in range(4):
        reg.push(mk(f"old{i}", 0, 1))
    reg.push(mk("live", 5, 100))
    sel = reg.select(10, 1)
    assert len(sel.expired) == 4
    assert ids(sel.matched) == ["live"]
    assert len(reg) == 0


def test_select_rejects_zero_cap():
    with pytest.raises(ValueError):
        mk_registry().select(10, 0)


def test_take_removes_from_both_and_is_idempotent():
    reg = mk_registry()
    reg.push(mk("a", 0, 5))
    reg.push(mk("b", 1, 6))
    reg.push(mk("c", 2, 7))
    assert reg.take("b").id == "b"
    assert reg.take("b") is None
    assert ids(reg.sequence(10)) == ["a", "c"]
    assert_lockstep(reg)

    # scans skip the cleared slot
    sel = reg.select(4, 5)
    assert ids(sel.matched) == ["a", "c"]
    assert len(reg) == 0


def test_take_head_advances_past_cleared_slots():
    reg = mk_registry()
    for cid, t in (("a", 0), ("b", 1), ("c", 2)):
        reg.push(mk(cid, t, t + 5))
    reg.take("b")
    reg.take("a")
    assert ids(reg.sequence(10)) == ["c"]
    reg.push(mk("d", 3, 8))
    assert ids(reg.sequence(10)) == ["c", "d"]
    assert_lockstep(reg)


def test_take_unknown_returns_none():
    assert mk_registry().take("nope") is None


def test_fulfilled_by_oracle_then_beacon_is_noop():
    reg = mk_registry()
    reg.push(mk("a", 0, 5))
    assert ids(reg.select(3, 5).matched) == ["a"]
    assert reg.take("a") is None


def test_sequence_and_pending_limits():
    reg = mk_registry()
    for cid in ("e", "d", "c", "b", "a"):
        reg.push(mk(cid, 0, 5))
    assert ids(reg.sequence(2)) == ["e", "d"]
    assert ids(reg.pending(2)) == ["a", "b"]
    assert reg.sequence(0) == []


def test_full_window_batch_leaves_remainder():
    reg = mk_registry()
    for i in range(6):
        reg.push(mk(f"c{i}", 0, 5))
    sel = reg.select(4, 5)
    assert ids(sel.matched) == ["c0", "c1", "c2", "c3", "c4"]
    assert sel.expired == []
    assert len(reg) == 1
    assert ids(reg.sequence(10)) == ["c5"]
    assert_lockstep(reg)


def test_taken_entries_never_reappear_behind_head():
    reg = mk_registry()
    reg.push(mk("head", 0, 500))
    for i in range(300):
        reg.push(mk(f"x{i:03d}", i, i + 500))
        if i % 3:
            reg.take(f"x{i:03d}")
    live = ids(reg.sequence(1000))
    assert live[0] == "head"
    assert live[1:] == [f"x{i:03d}" for i in range(0, 300, 3)]
    assert len(reg) == len(live) == 101
    assert_lockstep(reg)

    reg.take("head")
    assert ids(reg.sequence(2)) == ["x000", "x003"]
    sel = reg.select(1_000, 5)
    assert sel.matched == []
    assert len(sel.expired) == 100
    assert len(reg) == 0
    assert reg.pending(10) == []


class CountingKV(MemoryKeyValue):
    def __init__(self) -> None:
        super().__init__()
        self.gets = 0
        self.scanned = 0

    def get(self, key):
        self.gets += 1
        return super().get(key)

    def iter_prefix(self, prefix):
        for item in super().iter_prefix(prefix):
            self.scanned += 1
            yield item

    def reset(self) -> None:
        self.gets = self.scanned = 0


def test_push_cost_does_not_grow_with_history():
    kv = CountingKV()
    reg = CommitmentRegistry(Buckets(kv))
    reg.push(mk("head", 0, 10_000))
    for i in range(2_000):
        reg.push(mk(f"h{i}", 1, 10_000))
        reg.take(f"h{i}")

    kv.reset()
    reg.push(mk("new", 2, 10_000))
    assert kv.gets < 50
    assert kv.scanned == 0
    assert ids(reg.sequence(10)) == ["head", "new"]


def test_sequence_reads_only_what_it_returns():
    kv = CountingKV()
    reg = CommitmentRegistry(Buckets(kv))
    for i in range(500):
        reg.push(mk(f"c{i:03d}", i, i + 5))
    kv.reset()
    assert ids(reg.sequence(3)) == ["c000", "c001", "c002"]
    assert kv.gets < 20
    assert kv.scanned == 0


def test_pending_stops_scanning_at_limit():
    kv = CountingKV()
    reg = CommitmentRegistry(Buckets(kv))
    for i in range(500):
        reg.push(mk(f"c{i:03d}", i, i + 5))
    kv.reset()
    assert ids(reg.pending(4)) == ["c000", "c001", "c002", "c003"]
    assert kv.scanned == 4
