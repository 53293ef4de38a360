"""
LuaBridge tests: running chunks, error kinds, host function registration
and interpreter lifecycle.
"""

import gc

import pytest

from ads.lua import (
    CallResult,
    LuaBridge,
    MarshalError,
    ScriptError,
    ScriptRuntimeError,
    ScriptSyntaxError,
)


def box_named(bridge, name):
    return next(box for box in bridge._boxes if box.name == name)


class TestExecute:

    def test_returns_first_result(self, bridge):
        assert bridge.execute("return 1 + 1") == 2

    def test_extra_results_dropped(self, bridge):
        assert bridge.execute("return 1, 2, 3") == 1

    def test_no_return_is_none(self, bridge):
        assert bridge.execute("local x = 1") is None

    def test_globals_persist_between_chunks(self, bridge):
        bridge.execute("counter = 5")
        bridge.execute("counter = counter + 1")
        assert bridge.execute("return counter") == 6
        assert bridge.get_global("counter") == 6


class TestErrorKinds:

    def test_syntax_error(self, bridge):
        with pytest.raises(ScriptSyntaxError) as exc_info:
            bridge.execute("retur 1")
        error = exc_info.value
        assert error.kind == "syntax"
        assert error.message
        assert error.to_payload() == {"kind": "syntax", "message": error.message}

    def test_runtime_error(self, bridge):
        with pytest.raises(ScriptRuntimeError) as exc_info:
            bridge.execute('error("boom")')
        assert exc_info.value.kind == "runtime"
        assert "boom" in exc_info.value.message

    def test_runtime_error_from_bad_operation(self, bridge):
        with pytest.raises(ScriptRuntimeError, match="nil value"):
            bridge.execute("local t = nil; return t.x")

    def test_all_kinds_are_script_errors(self, bridge):
        for source in ("retur 1", 'error("x")'):
            with pytest.raises(ScriptError):
                bridge.execute(source)

    def test_bridge_usable_after_error(self, bridge):
        with pytest.raises(ScriptRuntimeError):
            bridge.execute('error("first")')
        assert bridge.execute("return 'ok'") == "ok"

    def test_empty_message_gets_placeholder(self):
        assert ScriptRuntimeError("").message == "unknown error"

    @pytest.mark.parametrize("source", [
        "return '\\255\\254'",
        "return { name = '\\255' }",
        "return { ok = { '\\255' } }",
    ])
    def test_invalid_utf8_result_is_marshal_error(self, bridge, source):
        with pytest.raises(MarshalError, match="UTF-8"):
            bridge.execute(source)
        assert bridge.executing is False
        assert bridge.execute("return 'still fine'") == "still fine"

    def test_invalid_utf8_global(self, bridge):
        bridge.execute("bad = '\\255'")
        with pytest.raises(MarshalError, match="not valid UTF-8"):
            bridge.get_global("bad")


class TestRegistration:

    def test_register_function(self, bridge):
        bridge.register_function("add", lambda a, b: a + b)
        assert bridge.execute("return add(20, 22)") == 42

    def test_function_receives_converted_tables(self, bridge):
        received = []
        bridge.register_function("take", received.append)
        bridge.execute('take({ 1, 2, { name = "x" } })')
        assert received == [[1, 2, {"name": "x"}]]

    def test_function_result_converted_to_table(self, bridge):
        bridge.register_function("info", lambda: {"tags": ["a", "b"]})
        assert bridge.execute("return info().tags[2]") == "b"

    def test_none_result_is_nil(self, bridge):
        bridge.register_function("nothing", lambda: None)
        assert bridge.execute("return nothing() == nil") is True

    def test_missing_arguments_are_nil(self, bridge):
        bridge.register_function("first", lambda a=None, b=None: b)
        assert bridge.execute("return first(1)") is None

    def test_host_exception_becomes_lua_error(self, bridge):
        def fail():
            raise ValueError("bad input")

        bridge.register_function("fail", fail)
        with pytest.raises(ScriptRuntimeError, match="bad input"):
            bridge.execute("fail()")

    def test_host_exception_catchable_with_pcall(self, bridge):
        def fail():
            raise ValueError("bad input")

        bridge.register_function("fail", fail)
        result = bridge.execute("""
            local ok, err = pcall(fail)
            return { ok = ok, err = err }
        """)
        assert result == {"ok": False, "err": "bad input"}

    def test_exception_without_message_uses_type_name(self, bridge):
        def fail():
            raise KeyError()

        bridge.register_function("fail", fail)
        result = bridge.execute("local ok, err = pcall(fail) return err")
        assert result == "KeyError"

    def test_register_module(self, bridge):
        bridge.register_module("m", {
            "double": lambda x: x * 2,
            "name": lambda: "mod",
        })
        assert bridge.execute("return m.double(21)") == 42
        assert bridge.execute("return m.name()") == "mod"
        assert bridge.box_counts == {"m.double": 1, "m.name": 1}

    def test_registered_function_is_lua_function(self, bridge):
        bridge.register_function("f", lambda: 1)
        assert bridge.execute("return type(f)") == "function"


class TestHostFunctionBox:

    def test_call_result_ok(self, bridge):
        bridge.register_function("inc", lambda x: x + 1)
        box = box_named(bridge, "inc")
        assert box.call(1) == CallResult(True, 2)

    def test_call_result_error(self, bridge):
        bridge.register_function("div", lambda a, b: a / b)
        box = box_named(bridge, "div")
        result = box.call(1, 0)
        assert result.ok is False
        assert "division" in result.error

    def test_box_fails_cleanly_after_close(self):
        b = LuaBridge()
        b.register_function("ping", lambda: "pong")
        box = box_named(b, "ping")
        b.close()
        assert not box.valid
        result = box.call()
        assert result.ok is False
        assert "interpreter is closed" in result.error

    def test_replaced_callbacks_are_released(self, bridge):
        for _ in range(50):
            bridge.set_global("cb", lambda: 1)
        bridge._lua.gccollect()
        gc.collect()
        assert bridge.box_counts == {"<lambda>": 1}
        assert bridge.execute("return cb()") == 1

    def test_boxes_returned_to_scripts_are_released(self, bridge):
        bridge.register_function("make", lambda: (lambda: "inner"))
        for _ in range(20):
            assert bridge.execute("return make()()") == "inner"
        bridge._lua.gccollect()
        gc.collect()
        assert bridge.box_counts == {"make": 1}


class TestReentrancy:

    def test_execute_from_host_callback_rejected(self, bridge):
        bridge.register_function("reenter", lambda: bridge.execute("return 1"))
        with pytest.raises(ScriptRuntimeError, match="re-entrant"):
            bridge.execute("return reenter()")

    def test_flag_cleared_after_rejection(self, bridge):
        bridge.register_function("reenter", lambda: bridge.execute("return 1"))
        with pytest.raises(ScriptRuntimeError):
            bridge.execute("return reenter()")
        assert bridge.executing is False
        assert bridge.execute("return 2") == 2


class TestLifecycle:

    def test_execute_after_close(self):
        b = LuaBridge()
        b.close()
        assert b.closed
        with pytest.raises(ScriptRuntimeError, match="interpreter is closed"):
            b.execute("return 1")

    def test_globals_after_close(self):
        b = LuaBridge()
        b.close()
        with pytest.raises(ScriptRuntimeError):
            b.set_global("x", 1)
        with pytest.raises(ScriptRuntimeError):
            b.register_function("f", lambda: None)

    def test_close_is_idempotent(self):
        b = LuaBridge()
        b.close()
        b.close()
        assert b.closed

    def test_context_manager_closes(self):
        with LuaBridge() as b:
            assert b.execute("return 1") == 1
        assert b.closed

    def test_bridges_are_isolated(self):
        with LuaBridge() as a, LuaBridge() as b:
            a.execute("shared = 1")
            assert b.execute("return shared") is None

