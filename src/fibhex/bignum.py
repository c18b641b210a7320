# src/fibhex/bignum.py
"""
Arbitrary-precision non-negative integers ("magnitudes") on 64-bit limbs.

Limbs are stored little-endian by word. Every operation takes an explicit
result magnitude, which may be the same object as one of its operands:

    add(t2, t2, sq)       # t2 = t2 + sq
    mul(t1, t1, cur)      # t1 = t1 * cur

Buffers come from an Allocator that accounts live limbs, so a computation can
be bounded (OutOfMemory) and checked for leaks (allocator.live == 0).
"""

from __future__ import annotations

from dataclasses import dataclass, field

WORD_BITS = 64
WORD_MASK = (1 << WORD_BITS) - 1
DIGITS_PER_WORD = WORD_BITS // 4
HEX_DIGITS = "0123456789ABCDEF"
_TOP_NIBBLE = 0xF << (WORD_BITS - 4)


class BignumError(Exception):
    pass


class OutOfMemory(BignumError, MemoryError):
    pass


class PreconditionViolation(BignumError, ValueError):
    pass


# --- Allocator ---------------------------------------------------------------

class Allocator:
    """
    Hands out limb buffers and keeps count of them.

    limit: maximum number of live limbs (None or 0 = unlimited). A request that
           would exceed it raises OutOfMemory and allocates nothing.
    """

    def __init__(self, limit: int | None = None):
        self.limit = limit or None
        self.live = 0
        self.peak = 0
        self._owned: set[int] = set()   # id() of live buffers

    def _charge(self, n: int) -> None:
        if self.limit is not None and self.live + n > self.limit:
            raise OutOfMemory(
                f"cannot allocate {n} limb(s): {self.live} of {self.limit} already in use"
            )
        self.live += n
        self.peak = max(self.peak, self.live)

    def allocate(self, n: int) -> list[int]:
        self._charge(n)
        buf = [0] * n
        self._owned.add(id(buf))
        return buf

    def reallocate(self, buf: list[int] | None, n: int) -> list[int]:
        """Resize buf to n limbs, keeping the first min(old, n) limbs."""
        if buf is None:
            return self.allocate(n)
        if id(buf) not in self._owned:
            raise BignumError("reallocate of a buffer not owned by this allocator")
        grow = n - len(buf)
        if grow > 0:
            self._charge(grow)
            buf.extend([0] * grow)
        elif grow < 0:
            del buf[n:]
            self.live += grow
        return buf

    def release(self, buf: list[int] | None) -> None:
        if buf is None:
            return
        if id(buf) not in self._owned:
            raise BignumError("release of a buffer not owned by this allocator (double release?)")
        self._owned.discard(id(buf))
        self.live -= len(buf)
        buf.clear()  # stale references now fail instead of reading old limbs


DEFAULT_ALLOCATOR = Allocator()


# --- Storage -----------------------------------------------------------------

@dataclass(eq=False)
class Magnitude:
    allocator: Allocator = field(default=DEFAULT_ALLOCATOR, repr=False)
    limbs: list[int] | None = field(default=None, repr=False)
    length: int = 0      # significant limbs
    capacity: int = 0    # allocated limbs, never decreases until release()

    def ensure_capacity(self, n: int) -> None:
        if self.capacity >= n:
            return
        self.limbs = self.allocator.reallocate(self.limbs, n)
        self.capacity = n

    def assign_small(self, value: int) -> None:
        if not 0 <= value <= WORD_MASK:
            raise PreconditionViolation(f"{value} does not fit in one {WORD_BITS}-bit limb")
        self.ensure_capacity(1)
        self.limbs[0] = value
        self.length = 1

    def release(self) -> None:
        self.allocator.release(self.limbs)
        self.limbs = None
        self.length = 0
        self.capacity = 0

    def is_zero(self) -> bool:
        return _significant(self) == 0

    def bit_length(self) -> int:
        n = _significant(self)
        if n == 0:
            return 0
        return (n - 1) * WORD_BITS + self.limbs[n - 1].bit_length()

    def _take(self, other: Magnitude) -> None:
        """Move other's buffer into self, releasing self's previous buffer."""
        try:
            other.ensure_capacity(self.capacity)
        except OutOfMemory:
            other.release()
            raise
        if self.limbs is not other.limbs:
            self.allocator.release(self.limbs)
        self.limbs, self.length, self.capacity = other.limbs, other.length, other.capacity
        other.limbs, other.length, other.capacity = None, 0, 0

    def __enter__(self) -> Magnitude:
        return self

    def __exit__(self, *exc) -> None:
        self.release()

    def __repr__(self) -> str:
        shown = to_hex(self) if self.limbs is not None else "<empty>"
        return f"Magnitude(0x{shown}, length={self.length}, capacity={self.capacity})"


def _significant(m: Magnitude) -> int:
    # Accepts both zero conventions: length 0, or a single zero limb.
    n = m.length
    while n and not m.limbs[n - 1]:
        n -= 1
    return n


def _normalize(m: Magnitude) -> None:
    while m.length > 1 and not m.limbs[m.length - 1]:
        m.length -= 1


def _scratch_for(result: Magnitude, *operands: Magnitude) -> Magnitude:
    # Compute into a fresh magnitude whenever the result is also an input.
    if any(result is op for op in operands):
        return Magnitude(result.allocator)
    return result


def _commit(result: Magnitude, target: Magnitude) -> None:
    if target is not result:
        result._take(target)


def from_int(value: int, allocator: Allocator | None = None) -> Magnitude:
    """Build a magnitude from a non-negative Python int."""
    if value < 0:
        raise PreconditionViolation("magnitudes are non-negative")
    m = Magnitude(allocator or DEFAULT_ALLOCATOR)
    n = max(1, (value.bit_length() + WORD_BITS - 1) // WORD_BITS)
    m.ensure_capacity(n)
    for i in range(n):
        m.limbs[i] = value & WORD_MASK
        value >>= WORD_BITS
    m.length = n
    return m


def to_int(m: Magnitude) -> int:
    value = 0
    for i in range(m.length - 1, -1, -1):
        value = (value << WORD_BITS) | m.limbs[i]
    return value


# --- Comparison --------------------------------------------------------------

def greater(a: Magnitude, b: Magnitude) -> bool:
    """True iff a > b."""
    la, lb = _significant(a), _significant(b)
    if la != lb:
        return la > lb
    for i in range(la - 1, -1, -1):
        x, y = a.limbs[i], b.limbs[i]
        if x != y:
            return x > y
    return False


# --- Addition / subtraction --------------------------------------------------

def add(result: Magnitude, a: Magnitude, b: Magnitude) -> None:
    """result = a + b"""
    if a.length < b.length:
        a, b = b, a
    size = a.length
    target = _scratch_for(result, a, b)
    target.ensure_capacity(size + 1)

    out, x, y = target.limbs, a.limbs, b.limbs
    carry = 0
    for i in range(b.length):
        s = (x[i] + carry) & WORD_MASK
        c = int(s < carry)
        s = (s + y[i]) & WORD_MASK
        carry = c | int(s < y[i])
        out[i] = s
    for i in range(b.length, size):
        s = (x[i] + carry) & WORD_MASK
        carry = int(s < carry)
        out[i] = s
    if carry:
        out[size] = carry
        size += 1
    elif not size:
        out[0] = 0  # both operands in the empty zero state
        size = 1
    target.length = size
    _commit(result, target)


def sub(result: Magnitude, a: Magnitude, b: Magnitude) -> None:
    """result = a - b, requires a >= b. The result is fully normalized."""
    if greater(b, a):
        raise PreconditionViolation("sub() requires minuend >= subtrahend")
    size = a.length
    target = _scratch_for(result, a, b)
    target.ensure_capacity(max(size, 1))

    out, x, y = target.limbs, a.limbs, b.limbs
    blen = b.length
    borrow = 0
    for i in range(size):
        av = x[i]
        bv = y[i] if i < blen else 0
        out[i] = (av - bv - borrow) & WORD_MASK
        borrow = int(av < bv + borrow)
    if not size:
        out[0] = 0
        size = 1
    target.length = size
    _normalize(target)
    _commit(result, target)


# --- Shifts ------------------------------------------------------------------

def shl(result: Magnitude, a: Magnitude, shift: int) -> None:
    """result = a << shift"""
    if shift < 0:
        raise PreconditionViolation(f"negative shift: {shift}")
    n = _significant(a)
    if n == 0:
        result.assign_small(0)
        return
    word_shift, bit_shift = divmod(shift, WORD_BITS)
    spill = bit_shift and (a.limbs[n - 1] >> (WORD_BITS - bit_shift)) != 0
    size = n + word_shift + int(spill)

    target = _scratch_for(result, a)
    target.ensure_capacity(size)
    out, x = target.limbs, a.limbs
    back = WORD_BITS - bit_shift
    for i in range(size - 1, word_shift, -1):
        src = i - word_shift
        hi = (x[src] << bit_shift) & WORD_MASK if src < n else 0
        lo = x[src - 1] >> back if bit_shift else 0
        out[i] = hi | lo
    out[word_shift] = (x[0] << bit_shift) & WORD_MASK
    for i in range(word_shift):
        out[i] = 0
    target.length = size
    _commit(result, target)


def shr(result: Magnitude, a: Magnitude, shift: int) -> None:
    """result = a >> shift, requires 0 <= shift <= a.bit_length()"""
    bits = a.bit_length()
    if shift < 0 or shift > bits:
        raise PreconditionViolation(f"shift {shift} outside 0..{bits}")
    if shift == bits:
        result.assign_small(0)
        return
    n = _significant(a)
    word_shift, bit_shift = divmod(shift, WORD_BITS)
    size = n - word_shift - int((a.limbs[n - 1] >> bit_shift) == 0)

    target = _scratch_for(result, a)
    target.ensure_capacity(size)
    out, x = target.limbs, a.limbs
    mask = (1 << bit_shift) - 1
    back = WORD_BITS - bit_shift
    for i in range(size):
        src = i + word_shift
        hi = (x[src + 1] & mask) << back if bit_shift and src + 1 < n else 0
        out[i] = hi | (x[src] >> bit_shift)
    target.length = size
    _commit(result, target)


# --- Multiplication ----------------------------------------------------------

def mul(result: Magnitude, a: Magnitude, b: Magnitude) -> None:
    """result = a * b by summing b << p for every set bit p of a."""
    acc = Magnitude(result.allocator)
    shifted = Magnitude(result.allocator)
    try:
        acc.ensure_capacity(max(a.length + b.length, result.capacity, 1))
        acc.assign_small(0)
        for i in range(a.length):
            limb = a.limbs[i]
            bit = i * WORD_BITS
            while limb:
                if limb & 1:
                    shl(shifted, b, bit)
                    add(acc, acc, shifted)
                limb >>= 1
                bit += 1
    except Exception:
        acc.release()
        raise
    finally:
        shifted.release()
    result._take(acc)


# --- Rendering ---------------------------------------------------------------

def to_hex(a: Magnitude) -> str:
    """Uppercase hex digits of a, without leading zeros ("0" for zero)."""
    n = _significant(a)
    if n == 0:
        return "0"

    # locate the leading non-zero nibble of the top limb
    pos = n * DIGITS_PER_WORD
    probe = a.limbs[n - 1]
    while not probe & _TOP_NIBBLE:
        probe = (probe << 4) & WORD_MASK
        pos -= 1

    buf = ["0"] * pos
    for i in range(n):
        limb = a.limbs[i]
        for _ in range(DIGITS_PER_WORD):
            if not pos:
                break
            pos -= 1
            buf[pos] = HEX_DIGITS[limb & 0xF]
            limb >>= 4
    return "".join(buf)
