"""Shared fixtures for the bridge, UI and node tests."""
import pytest

from ads.lua.bindings import install_bindings
from ads.lua.runtime import LuaBridge
from ads.nodes.registry import NodeTypeRegistry
from ads.session import ScriptSession


@pytest.fixture
def bridge():
    """A bare sandboxed bridge, closed after the test."""
    b = LuaBridge()
    yield b
    b.close()


@pytest.fixture
def registry():
    """A node registry seeded with the built-in catalogue."""
    return NodeTypeRegistry()


@pytest.fixture
def printed():
    """Collects lines printed by scripts."""
    return []


@pytest.fixture
def bound_bridge(bridge, registry, printed):
    """A bridge with the standard bindings installed."""
    install_bindings(bridge, node_registry=registry, on_print=printed.append)
    return bridge


@pytest.fixture
def session(printed):
    with ScriptSession(on_print=printed.append) as s:
        yield s
