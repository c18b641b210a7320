# src/fibhex/verify.py
"""Cross-check results against gmpy2's Fibonacci implementation."""

from __future__ import annotations

import gmpy2


class VerificationError(Exception):
    pass


def reference_hex(k: int) -> str:
    return format(int(gmpy2.fib(k)), "X")


def cross_check(k: int, digits: str) -> None:
    expected = reference_hex(k)
    if digits != expected:
        raise VerificationError(
            f"F({k}) mismatch: computed {len(digits)} hex digits, gmpy2 has {len(expected)} "
            f"(first difference at digit {_first_difference(digits, expected)})"
        )


def _first_difference(a: str, b: str) -> int:
    for i, (x, y) in enumerate(zip(a, b)):
        if x != y:
            return i
    return min(len(a), len(b))
