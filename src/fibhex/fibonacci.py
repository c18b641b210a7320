# src/fibhex/fibonacci.py
"""
Fast-doubling Fibonacci on top of the magnitude engine.

For the pair (F(n), F(n+1)):

    F(2n)   = F(n) * (2*F(n+1) - F(n))
    F(2n+1) = F(n)^2 + F(n+1)^2

Each bit of k below its leading one doubles n, and a set bit then advances
the pair by one: (F(n), F(n+1)) -> (F(n+1), F(n) + F(n+1)).
"""

from __future__ import annotations

import sys

from fibhex.bignum import (
    Allocator,
    Magnitude,
    PreconditionViolation,
    add,
    mul,
    shl,
    sub,
    to_hex,
)
from fibhex.runtime import CFG
from fibhex.runtime import current as _rt_current


def make_allocator() -> Allocator:
    """Allocator bounded by LIMITS.MAX_LIMBS (0 = unlimited)."""
    return Allocator(limit=int(CFG("LIMITS.MAX_LIMBS", 0) or 0))


def fib_magnitude(k: int, allocator: Allocator | None = None) -> Magnitude:
    """
    Return F(k) as a Magnitude owned by the caller.

    Raises PreconditionViolation for k < 0 and OutOfMemory when the allocator
    runs out; in both cases nothing stays allocated.
    """
    if k < 0:
        raise PreconditionViolation(f"Fibonacci index must be non-negative, got {k}")
    alloc = allocator or make_allocator()

    cur = Magnitude(alloc)
    if k <= 1:
        # also keeps k=0 away from bit_length() - 2 below
        cur.assign_small(k)
        return cur

    debug = _rt_current().debug
    nxt, t1, t2, sq = (Magnitude(alloc) for _ in range(4))
    try:
        cur.assign_small(1)
        nxt.assign_small(1)
        n = 1
        mask = 1 << (k.bit_length() - 2)
        while mask:
            # doubling: t1 = F(2n), t2 = F(2n+1)
            shl(t1, nxt, 1)
            sub(t1, t1, cur)
            mul(t1, t1, cur)
            mul(sq, cur, cur)
            mul(t2, nxt, nxt)
            add(t2, t2, sq)
            cur, t1 = t1, cur
            nxt, t2 = t2, nxt
            n *= 2

            if k & mask:
                add(t1, cur, nxt)
                cur, nxt, t1 = nxt, t1, cur
                n += 1

            if debug:
                print(
                    f"[debug] fib({k}): n={n} limbs cur={cur.length} next={nxt.length} "
                    f"live={alloc.live} peak={alloc.peak}",
                    file=sys.stderr,
                )
            mask >>= 1
    except Exception:
        cur.release()
        raise
    finally:
        for m in (nxt, t1, t2, sq):
            m.release()
    return cur


def fib_sequence(k: int, *, allocator: Allocator | None = None) -> str:
    """F(k) as an uppercase hex string, e.g. fib_sequence(20) == "1A6D"."""
    with fib_magnitude(k, allocator) as fk:
        return to_hex(fk)
