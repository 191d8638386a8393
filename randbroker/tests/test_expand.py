import hashlib

import pytest

from randbroker.constants import DOMAIN_INT_REDRAW, DOMAIN_SUB_RANDOMNESS, DOMAIN_SUB_RANDOMNESS_BLOCK
from randbroker.expand import (
    generate_hex_randomness,
    generate_int_randomness,
    int_in_range,
    sub_randomness_with_key,
)

SEED = bytes(range(32))


def test_first_child_matches_construction():
    key = "job test"
    hk = hashlib.sha256(DOMAIN_SUB_RANDOMNESS + key.encode()).digest()
    base = bytes(a ^ b for a, b in zip(SEED, hk))
    expected = hashlib.sha256(DOMAIN_SUB_RANDOMNESS_BLOCK + base + (0).to_bytes(8, "big")).digest()

    provider = sub_randomness_with_key(SEED, key)
    assert provider.provide() == expected
    assert provider.provide() != expected


def test_hex_output_shape_and_determinism():
    a = generate_hex_randomness(SEED, "k1", 5)
    b = generate_hex_randomness(SEED, "k1", 5)
    assert a == b
    assert len(a) == 5
    assert all(len(v) == 64 and int(v, 16) >= 0 for v in a)
    assert len(set(a)) == 5


def test_distinct_keys_diverge():
    assert generate_hex_randomness(SEED, "k1", 3) != generate_hex_randomness(SEED, "k2", 3)
    assert generate_int_randomness(SEED, "k1", 0, 1 << 40, 3) != generate_int_randomness(SEED, "k2", 0, 1 << 40, 3)


def test_prefix_stable_across_counts():
    # asking for more values only extends the list
    assert generate_hex_randomness(SEED, "k", 8)[:3] == generate_hex_randomness(SEED, "k", 3)


@pytest.mark.parametrize("lo,hi", [(-10, 10), (1, 6), (0, 0), (-(2**31), 2**31 - 1), (7, 8)])
def test_ints_stay_in_range(lo, hi):
    values = generate_int_randomness(SEED, "range", lo, hi, 64)
    assert len(values) == 64
    assert all(lo <= v <= hi for v in values)


def test_single_value_range():
    assert generate_int_randomness(SEED, "x", 42, 42, 4) == [42, 42, 42, 42]


def test_rejection_redraws_top_of_space():
    # 2**256 - 1 lies above the last full multiple of 3, so it is redrawn.
    child = b"\xff" * 32
    redraw = hashlib.sha256(DOMAIN_INT_REDRAW + child).digest()
    assert int_in_range(child, 0, 2) == int.from_bytes(redraw, "big") % 3


def test_accepted_draw_is_reduced_modulo_range():
    child = (10).to_bytes(32, "big")
    assert int_in_range(child, 100, 103) == 100 + 10 % 4


def test_empty_range_rejected():
    with pytest.raises(ValueError):
        generate_int_randomness(SEED, "x", 5, 4, 1)


@pytest.mark.parametrize("seed", [b"", b"\x00" * 31, b"\x00" * 33])
def test_seed_must_be_32_bytes(seed):
    with pytest.raises(ValueError):
        generate_hex_randomness(seed, "k", 1)


def test_seed_must_be_bytes():
    with pytest.raises(TypeError):
        sub_randomness_with_key("00" * 32, "k")  # type: ignore[arg-type]
