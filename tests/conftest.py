"""Test configuration ensuring the project source tree is importable."""

from __future__ import annotations

import importlib
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
TESTS = ROOT / "tests"

root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)
else:
    idx = sys.path.index(root_str)
    if idx != 0:
        sys.path.insert(0, sys.path.pop(idx))

if str(TESTS) in sys.path:
    sys.path.pop(sys.path.index(str(TESTS)))
sys.path.insert(1, str(TESTS))

# Import the project package eagerly so subsequent imports reuse it
importlib.import_module("luac_reader")


LUA_RUNTIMES = {
    "5.1": "lupa.lua51",
    "5.2": "lupa.lua52",
    "5.3": "lupa.lua53",
    "5.4": "lupa.lua54",
    "luajit-2.1": "lupa.luajit21",
}


def lua_runtime(version: str):
    """Return a byte-returning ``LuaRuntime`` for ``version`` or skip the test."""

    module = pytest.importorskip(LUA_RUNTIMES[version])
    return module.LuaRuntime(encoding=None)


@pytest.fixture(params=sorted(LUA_RUNTIMES))
def any_lua_runtime(request):
    return request.param, lua_runtime(request.param)
