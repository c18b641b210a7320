# tests/conftest.py
from __future__ import annotations

import pytest

from fibhex import runtime
from fibhex.bignum import Allocator


@pytest.fixture(autouse=True)
def workspace(tmp_path, monkeypatch):
    """Every test gets its own workspace and a default runtime."""
    ws = tmp_path / "ws"
    monkeypatch.setenv("FIBHEX_HOME", str(ws))
    runtime.reset()
    yield ws
    runtime.reset()


@pytest.fixture
def alloc():
    return Allocator()
