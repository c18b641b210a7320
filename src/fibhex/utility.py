# src/fibhex/utility.py
from __future__ import annotations

import os
import re
import shutil
import sys

_RANGE_RE = re.compile(r"^\s*(\d[\d_]*)\s*(?:\.\.|-)\s*(\d[\d_]*)\s*$")


class UserInputError(Exception):
    pass


def parse_index_range(text: str, *, max_index: int) -> range | None:
    """
    Parse "k" or "a..b" (also "a-b") into a range of Fibonacci indices.

    Returns None if `text` does not look like an index at all (so the caller
    can try it as a command or profile name). Raises UserInputError for
    indices that look numeric but are out of bounds.
    """
    s = (text or "").strip()
    if not s:
        return None

    m = _RANGE_RE.match(s)
    if m:
        lo, hi = int(m.group(1)), int(m.group(2))
        if lo > hi:
            raise UserInputError(f"Invalid input: empty range {lo}..{hi}.")
    else:
        try:
            lo = hi = int(s)
        except ValueError:
            return None
        if lo < 0:
            raise UserInputError(f"Invalid input: index must be non-negative, got {lo}.")

    if hi > max_index:
        raise UserInputError(
            f"Invalid input: index {hi} exceeds LIMITS.MAX_INDEX ({max_index})."
        )
    return range(lo, hi + 1)


def validate_output_setting(output_file: str | None) -> str | None:
    """
    Validate output setting.
    - None / "" => ok (screen only)
    - "." / "./" / trailing "/" => ok (per-index directory mode)
    - path/to/file => must not be in forbidden base names or extensions
    Returns the output_file, or raises ValueError.
    """
    FORBIDDEN_FILENAMES = {
        ".gitignore",
        "LICENSE",
        "pyproject.toml",
        # Windows reserved device names (case-insensitive on Windows)
        "con", "prn", "aux", "nul",
        "com1", "com2", "com3", "com4", "com5", "com6", "com7", "com8", "com9",
        "lpt1", "lpt2", "lpt3", "lpt4", "lpt5", "lpt6", "lpt7", "lpt8", "lpt9",
    }
    FORBIDDEN_EXTENSIONS = {".py", ".md", ".toml"}

    if not output_file:
        return output_file

    if output_file in (".", "./") or output_file.endswith("/"):
        return output_file

    basename = os.path.basename(output_file)
    name_no_ext, ext = os.path.splitext(basename)
    ext = ext.lower()

    if basename.lower() in FORBIDDEN_FILENAMES or name_no_ext.lower() in FORBIDDEN_FILENAMES:
        raise ValueError(f"Forbidden output filename: {basename}")

    if ext in FORBIDDEN_EXTENSIONS:
        raise ValueError(f"Forbidden output file extension: {ext}")

    return output_file


def get_terminal_width(default=80):
    try:
        return shutil.get_terminal_size().columns
    except Exception:
        return default


def clear_screen() -> None:
    if os.name == "nt":
        os.system("cls")
    else:
        sys.stdout.write("\033[H\033[2J")
        sys.stdout.flush()


def typename(v: object) -> str:
    return type(v).__name__


def flatten_dotted(d: dict, prefix: str = "") -> dict[str, object]:
    out: dict[str, object] = {}
    for k, v in (d or {}).items():
        key = f"{prefix}.{k}" if prefix else str(k)
        if isinstance(v, dict):
            out.update(flatten_dotted(v, key))
        else:
            out[key] = v
    return out
