"""ScriptSession: one interpreter, its bindings and node registry."""

import pytest

from ads.lua import ScriptRuntimeError
from ads.nodes import NodeTypeRegistry
from ads.session import ScriptSession
from ads.ui import UIScriptError


class TestScriptSession:

    def test_execute_with_bindings(self, session):
        session.execute('state.set("n", 1)')
        assert session.state.get("n") == 1
        assert session.execute('return util.format("{1}!", state.get("n"))') == "1!"

    def test_print_hook(self, session, printed):
        session.execute('print("hi")')
        assert printed == ["hi"]

    def test_run_ui(self, session):
        tree = session.run_ui('return ui.panel({ title = "T" }, { ui.text("x") })')
        assert tree.type == "panel"

    def test_run_ui_failure(self, session):
        with pytest.raises(UIScriptError):
            session.run_ui("error('nope')")

    def test_nodes_namespace_uses_registry(self, session):
        assert session.execute('return nodes.get("script").name') == "Script"

    def test_reset_clears_state(self, session):
        session.execute('state.set("n", 1) counter = 3')
        old_bridge = session.bridge
        session.reset()
        assert old_bridge.closed
        assert session.state.get("n") is None
        assert session.execute("return counter") is None
        assert session.execute("return type(ui.panel)") == "function"

    def test_reset_keeps_registry(self):
        registry = NodeTypeRegistry()
        with ScriptSession(node_registry=registry) as session:
            session.reset()
            assert session.node_registry is registry

    def test_close(self):
        session = ScriptSession()
        session.close()
        assert session.closed
        assert len(session.node_registry) == 0
        with pytest.raises(ScriptRuntimeError, match="interpreter is closed"):
            session.execute("return 1")
        with pytest.raises(RuntimeError, match="closed script session"):
            session.reset()
        session.close()

    def test_shared_registry_not_closed(self):
        registry = NodeTypeRegistry()
        with ScriptSession(node_registry=registry):
            pass
        assert len(registry) > 0
