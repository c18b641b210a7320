# src/fibhex/fmt.py
from __future__ import annotations

import re

from colorama import Fore, Style

from fibhex.runtime import CFG

# Single source of truth for ANSI stripping
ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(s: str) -> str:
    return ANSI_RE.sub("", s)


def abbr_hex(digits: str, head: int = 16, tail: int = 16, threshold: int = 80, ellipsis: str = "…") -> str:
    """Abbreviate a long digit string as first<head>…last<tail>."""
    if len(digits) <= threshold or head + tail >= len(digits):
        return digits
    return f"{digits[:head]}{ellipsis}{digits[-tail:]}"


def hex_bit_length(digits: str) -> int:
    """Bit length of the value a canonical hex string denotes ("0" -> 0)."""
    return 4 * (len(digits) - 1) + int(digits[0], 16).bit_length()


def format_result(k: int, digits: str, *, full: bool = False) -> str:
    """'F(k) = <hex>' with the digits abbreviated per OUTPUT.* unless full."""
    shown = digits
    if not full and CFG("OUTPUT.ABBREVIATE", True):
        shown = abbr_hex(
            digits,
            head=int(CFG("OUTPUT.ABBR_HEAD", 16)),
            tail=int(CFG("OUTPUT.ABBR_TAIL", 16)),
            threshold=int(CFG("OUTPUT.ABBR_THRESHOLD", 80)),
        )
    return f"{Fore.CYAN}F({k}){Style.RESET_ALL} = {Fore.GREEN}{shown}{Style.RESET_ALL}"


def format_stats(digits: str, *, limbs: int, peak: int, seconds: float) -> str:
    bits = hex_bit_length(digits)
    return (
        f"{Style.DIM}hex digits: {len(digits)}, bits: {bits}, limbs: {limbs}, "
        f"peak live limbs: {peak}, time: {seconds:.3f}s{Style.RESET_ALL}"
    )
