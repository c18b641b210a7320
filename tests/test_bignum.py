# tests/test_bignum.py
"""
Tests for the limb engine, checked against Python ints.

Run: pytest -v
"""

from __future__ import annotations

import itertools
import random
import re

import pytest

from fibhex.bignum import (
    WORD_BITS,
    Allocator,
    BignumError,
    Magnitude,
    OutOfMemory,
    PreconditionViolation,
    add,
    from_int,
    greater,
    mul,
    shl,
    shr,
    sub,
    to_hex,
    to_int,
)

WORD = 1 << WORD_BITS

VALUES = [
    0,
    1,
    2,
    0xF,
    WORD - 1,
    WORD,
    WORD + 1,
    2 * WORD - 1,
    WORD**2 - 1,
    WORD**2,
    0xDEADBEEF << 130,
    3**200,
]

SHIFTS = [0, 1, 3, 4, 63, 64, 65, 127, 128, 200]


def _ids(values):
    return [hex(v) if v < 1 << 70 else f"{v.bit_length()}bits" for v in values]


def _canonical(m: Magnitude) -> bool:
    """length >= 1, within capacity, and no zero top limb unless the value is zero."""
    if not 1 <= m.length <= m.capacity:
        return False
    return m.length == 1 or m.limbs[m.length - 1] != 0


# ---------- comparator --------------------------------------------------------


@pytest.mark.parametrize("x,y", list(itertools.product(VALUES, repeat=2)))
def test_greater_matches_int_and_is_antisymmetric(alloc, x, y):
    a, b = from_int(x, alloc), from_int(y, alloc)
    assert greater(a, b) == (x > y)
    assert not (greater(a, b) and greater(b, a))
    if not greater(a, b) and not greater(b, a):
        assert x == y


def test_greater_treats_both_zero_conventions_as_equal(alloc):
    empty = Magnitude(alloc)
    zero = Magnitude(alloc)
    zero.assign_small(0)
    assert not greater(empty, zero)
    assert not greater(zero, empty)
    one = from_int(1, alloc)
    assert greater(one, empty)
    assert not greater(empty, one)


# ---------- add / sub ---------------------------------------------------------


@pytest.mark.parametrize("x,y", list(itertools.combinations_with_replacement(VALUES, 2)))
def test_add_is_correct_and_commutative(alloc, x, y):
    a, b = from_int(x, alloc), from_int(y, alloc)
    r1, r2 = Magnitude(alloc), Magnitude(alloc)
    add(r1, a, b)
    add(r2, b, a)
    assert to_int(r1) == to_int(r2) == x + y
    assert _canonical(r1)


def test_add_carry_extends_length_by_one(alloc):
    r = Magnitude(alloc)
    add(r, from_int(WORD - 1, alloc), from_int(1, alloc))
    assert r.length == 2
    assert r.limbs[:2] == [0, 1]


def test_add_carry_ripples_through_longer_operand(alloc):
    r = Magnitude(alloc)
    add(r, from_int(WORD**3 - 1, alloc), from_int(1, alloc))
    assert to_int(r) == WORD**3
    assert r.length == 4


def test_add_into_operand(alloc):
    a = from_int(WORD - 1, alloc)
    add(a, a, a)
    assert to_int(a) == 2 * (WORD - 1)

    b = from_int(5, alloc)
    c = from_int(WORD**2, alloc)
    add(c, b, c)
    assert to_int(c) == WORD**2 + 5


@pytest.mark.parametrize("x,y", [(x, y) for x, y in itertools.product(VALUES, repeat=2) if x >= y])
def test_sub_inverts_add(alloc, x, y):
    a, b = from_int(x, alloc), from_int(y, alloc)
    s = Magnitude(alloc)
    add(s, a, b)
    sub(s, s, b)
    assert to_int(s) == x
    assert _canonical(s)


def test_sub_strips_every_cancelled_limb(alloc):
    r = Magnitude(alloc)
    sub(r, from_int(WORD**2 + 5, alloc), from_int(WORD**2, alloc))
    assert r.length == 1
    assert to_int(r) == 5


def test_sub_to_zero_keeps_one_limb(alloc):
    a = from_int(3**200, alloc)
    sub(a, a, a)
    assert a.length == 1
    assert a.is_zero()
    assert to_hex(a) == "0"


def test_sub_borrow_across_limbs(alloc):
    r = Magnitude(alloc)
    sub(r, from_int(WORD**2, alloc), from_int(1, alloc))
    assert to_int(r) == WORD**2 - 1
    assert r.length == 2


def test_sub_rejects_larger_subtrahend(alloc):
    with pytest.raises(PreconditionViolation):
        sub(Magnitude(alloc), from_int(1, alloc), from_int(2, alloc))
    with pytest.raises(ValueError):  # PreconditionViolation is a ValueError
        sub(Magnitude(alloc), from_int(WORD, alloc), from_int(WORD**2, alloc))


# ---------- shifts ------------------------------------------------------------


@pytest.mark.parametrize("x", VALUES, ids=_ids(VALUES))
@pytest.mark.parametrize("shift", SHIFTS)
def test_shl_matches_int_and_round_trips(alloc, x, shift):
    a = from_int(x, alloc)
    r = Magnitude(alloc)
    shl(r, a, shift)
    assert to_int(r) == x << shift
    assert _canonical(r)

    if x:
        back = Magnitude(alloc)
        shr(back, r, shift)
        assert to_int(back) == x


@pytest.mark.parametrize("x", [v for v in VALUES if v], ids=_ids([v for v in VALUES if v]))
@pytest.mark.parametrize("shift", SHIFTS)
def test_shr_matches_int(alloc, x, shift):
    if shift > x.bit_length():
        pytest.skip("shift beyond bit length is rejected")
    r = Magnitude(alloc)
    shr(r, from_int(x, alloc), shift)
    assert to_int(r) == x >> shift
    assert _canonical(r)


def test_shl_adds_a_limb_only_when_bits_spill(alloc):
    r = Magnitude(alloc)
    shl(r, from_int(1 << 62, alloc), 1)
    assert r.length == 1
    shl(r, from_int(1 << 63, alloc), 1)
    assert r.length == 2
    shl(r, from_int(1, alloc), 64)
    assert r.length == 2
    assert r.limbs[:2] == [0, 1]


def test_shl_of_zero_stays_canonical(alloc):
    r = Magnitude(alloc)
    shl(r, from_int(0, alloc), 130)
    assert r.length == 1
    assert r.is_zero()


def test_shr_drops_the_emptied_top_limb(alloc):
    r = Magnitude(alloc)
    shr(r, from_int(WORD, alloc), 1)
    assert r.length == 1
    assert to_int(r) == 1 << 63


def test_shr_by_full_bit_length_gives_zero(alloc):
    r = Magnitude(alloc)
    shr(r, from_int(0xABC, alloc), 12)
    assert r.is_zero()
    assert r.length == 1


def test_shift_preconditions_are_checked(alloc):
    a = from_int(0xFF, alloc)
    with pytest.raises(PreconditionViolation):
        shr(Magnitude(alloc), a, 9)
    with pytest.raises(PreconditionViolation):
        shr(Magnitude(alloc), a, -1)
    with pytest.raises(PreconditionViolation):
        shl(Magnitude(alloc), a, -1)


def test_shifts_in_place(alloc):
    a = from_int(0x1234_5678_9ABC_DEF0_1122, alloc)
    shl(a, a, 70)
    assert to_int(a) == 0x1234_5678_9ABC_DEF0_1122 << 70
    shr(a, a, 75)
    assert to_int(a) == 0x1234_5678_9ABC_DEF0_1122 >> 5


# ---------- mul ---------------------------------------------------------------


@pytest.mark.parametrize("x,y", list(itertools.combinations_with_replacement(VALUES, 2)))
def test_mul_matches_int(alloc, x, y):
    r = Magnitude(alloc)
    mul(r, from_int(x, alloc), from_int(y, alloc))
    assert to_int(r) == x * y
    assert _canonical(r)


@pytest.mark.parametrize("x", VALUES, ids=_ids(VALUES))
def test_mul_identity_and_zero(alloc, x):
    a = from_int(x, alloc)
    r = Magnitude(alloc)
    mul(r, a, from_int(1, alloc))
    assert to_int(r) == x
    mul(r, a, from_int(0, alloc))
    assert r.is_zero()
    assert to_hex(r) == "0"


def test_mul_square_in_place_gets_a_fresh_buffer(alloc):
    a = from_int(3**100, alloc)
    old = a.limbs
    mul(a, a, a)
    assert to_int(a) == 3**200
    assert a.limbs is not old
    assert old == []  # released by the allocator


def test_mul_into_second_operand(alloc):
    a = from_int(WORD + 3, alloc)
    b = from_int(WORD - 7, alloc)
    mul(b, a, b)
    assert to_int(b) == (WORD + 3) * (WORD - 7)
    assert to_int(a) == WORD + 3


# ---------- storage invariants ------------------------------------------------


def test_capacity_never_shrinks_and_bounds_length(alloc):
    r = from_int(3**300, alloc)
    small = from_int(7, alloc)
    caps = [r.capacity]
    for op in (
        lambda: sub(r, r, r),
        lambda: add(r, small, small),
        lambda: mul(r, small, small),
        lambda: shl(r, small, 3),
        lambda: shr(r, r, 2),
    ):
        op()
        assert r.length <= r.capacity
        caps.append(r.capacity)
    assert caps == sorted(caps)
    assert to_int(r) == (7 << 3) >> 2


def test_live_limbs_match_owned_capacity(alloc):
    a = from_int(3**150, alloc)
    b = from_int(5**90, alloc)
    r = Magnitude(alloc)
    mul(r, a, b)
    add(a, a, r)
    shl(b, b, 77)
    sub(a, a, b)
    assert alloc.live == a.capacity + b.capacity + r.capacity
    for m in (a, b, r):
        m.release()
    assert alloc.live == 0


def test_assign_small_bounds(alloc):
    m = Magnitude(alloc)
    m.assign_small(WORD - 1)
    assert to_int(m) == WORD - 1
    with pytest.raises(PreconditionViolation):
        m.assign_small(WORD)
    with pytest.raises(PreconditionViolation):
        m.assign_small(-1)


def test_magnitude_context_manager_releases(alloc):
    with from_int(3**100, alloc) as m:
        assert alloc.live == m.capacity
    assert alloc.live == 0
    assert m.limbs is None
    assert m.capacity == 0


# ---------- allocator ---------------------------------------------------------


def test_allocator_limit_raises_out_of_memory():
    alloc = Allocator(limit=3)
    m = from_int(WORD**2, alloc)  # 3 limbs
    assert alloc.live == 3
    with pytest.raises(OutOfMemory):
        m.ensure_capacity(4)
    assert m.capacity == 3
    assert to_int(m) == WORD**2
    with pytest.raises(MemoryError):
        from_int(1, alloc)


def test_allocator_reallocate_preserves_contents(alloc):
    buf = alloc.allocate(2)
    buf[:] = [7, 9]
    buf = alloc.reallocate(buf, 5)
    assert buf == [7, 9, 0, 0, 0]
    buf = alloc.reallocate(buf, 1)
    assert buf == [7]
    assert alloc.live == 1
    assert alloc.peak == 5


def test_allocator_rejects_double_release(alloc):
    buf = alloc.allocate(4)
    alloc.release(buf)
    with pytest.raises(BignumError):
        alloc.release(buf)
    alloc.release(None)
    assert alloc.live == 0


def test_mul_out_of_memory_leaves_nothing_allocated():
    alloc = Allocator(limit=40)
    a = from_int(3**400, alloc)   # 10 limbs
    r = Magnitude(alloc)
    with pytest.raises(OutOfMemory):
        mul(r, a, a)
    assert alloc.live == a.capacity


# ---------- renderer ----------------------------------------------------------


@pytest.mark.parametrize("x", VALUES, ids=_ids(VALUES))
def test_to_hex_matches_format(alloc, x):
    s = to_hex(from_int(x, alloc))
    assert s == format(x, "X")
    assert re.fullmatch(r"0|[1-9A-F][0-9A-F]*", s)


def test_to_hex_of_empty_magnitude_is_zero(alloc):
    assert to_hex(Magnitude(alloc)) == "0"


def test_to_hex_keeps_inner_zero_limbs(alloc):
    assert to_hex(from_int(WORD**2 + 1, alloc)) == "1" + "0" * 31 + "1"


# ---------- randomized cross-check --------------------------------------------


def test_random_operations_agree_with_int(alloc):
    rng = random.Random(20240611)
    for _ in range(150):
        x = rng.getrandbits(rng.randint(1, 320))
        y = rng.getrandbits(rng.randint(1, 320))
        hi, lo = max(x, y), min(x, y)
        a, b = from_int(hi, alloc), from_int(lo, alloc)
        r = Magnitude(alloc)

        add(r, a, b)
        assert to_int(r) == hi + lo
        sub(r, a, b)
        assert to_int(r) == hi - lo
        mul(r, a, b)
        assert to_int(r) == hi * lo
        s = rng.randint(0, 200)
        shl(r, a, s)
        assert to_int(r) == hi << s
        assert to_hex(r) == format(hi << s, "X")
        for m in (a, b, r):
            m.release()
    assert alloc.live == 0
