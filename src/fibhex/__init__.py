from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

# Version
try:
    __version__ = _pkg_version("fibhex")
except PackageNotFoundError:
    __version__ = "0+unknown"

# Public API re-exports
from .bignum import (
    Allocator,
    BignumError,
    Magnitude,
    OutOfMemory,
    PreconditionViolation,
    add,
    greater,
    mul,
    shl,
    shr,
    sub,
    to_hex,
)
from .config import has_profile, load_settings, read_current_profile
from .fibonacci import fib_magnitude, fib_sequence
from .runtime import APPLY, CFG
from .workspace import workspace_dir

__all__ = [
    "APPLY",
    "CFG",
    "Allocator",
    "BignumError",
    "Magnitude",
    "OutOfMemory",
    "PreconditionViolation",
    "__version__",
    "add",
    "fib_magnitude",
    "fib_sequence",
    "greater",
    "has_profile",
    "load_settings",
    "mul",
    "read_current_profile",
    "shl",
    "shr",
    "sub",
    "to_hex",
    "workspace_dir",
]
