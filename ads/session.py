"""
ADS Script Session

Owns the long-lived scripting state of one editor session: the Lua bridge,
the installed bindings (with their state store) and the node registry.
Construct it once, reuse it for every run, close it on teardown.

Usage:
    with ScriptSession() as session:
        session.execute("state.set('count', 1)")
        tree = session.run_ui(LUA_TEMPLATES['simple_panel'])

        # Start over with a fresh interpreter and empty state
        session.reset()
"""

from typing import Any, Callable, Optional

from ads.logging import get_logger
from ads.lua.bindings import LuaBindings, StateStore, install_bindings
from ads.lua.runtime import LuaBridge
from ads.nodes.registry import NodeTypeRegistry
from ads.ui.protocol import UIDefinition, run_ui

log = get_logger('session')


class ScriptSession:
    """
    One interpreter plus everything installed into it.

    Responsibilities:
    1. Create the bridge and install bindings exactly once
    2. Share one node registry with scripts and the editor
    3. Recreate the interpreter on reset(), clearing script state
    """

    def __init__(
        self,
        node_registry: Optional[NodeTypeRegistry] = None,
        on_print: Optional[Callable[[str], None]] = None,
    ):
        """
        Args:
            node_registry: Registry exposed to scripts as ``nodes``; a new one
                seeded with the built-ins is created when omitted
            on_print: Receives every line scripts print
        """
        self._owns_registry = node_registry is None
        self.node_registry = node_registry if node_registry is not None else NodeTypeRegistry()
        self._on_print = on_print
        self._closed = False
        self._start()

    def _start(self) -> None:
        self.bridge = LuaBridge()
        self.bindings: LuaBindings = install_bindings(
            self.bridge, node_registry=self.node_registry, on_print=self._on_print,
        )
        log.debug("Script session started")

    @property
    def state(self) -> StateStore:
        return self.bindings.state

    @property
    def closed(self) -> bool:
        return self._closed

    def execute(self, source: str, name: str = 'chunk') -> Any:
        """Run script text; raises the bridge's ScriptError kinds."""
        return self.bridge.execute(source, name=name)

    def run_ui(self, source: str, name: str = 'ui') -> Optional[UIDefinition]:
        """Run a UI script; failures come back as UIScriptError."""
        return run_ui(self.bridge, source, name=name)

    def reset(self) -> None:
        """Close the interpreter and start a fresh one with empty state."""
        if self._closed:
            raise RuntimeError("Cannot reset a closed script session")
        self.bridge.close()
        self._start()
        log.info("Script session reset")

    def close(self) -> None:
        if self._closed:
            return
        self.bridge.close()
        if self._owns_registry:
            self.node_registry.close()
        self._closed = True
        log.debug("Script session closed")

    def __enter__(self) -> 'ScriptSession':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
