"""
Lua Bridge - owns one sandboxed Lua interpreter and moves values across it.

The bridge:
1. Creates the Lua runtime with sandbox protections
2. Compiles and runs script text, mapping failures to ScriptError kinds
3. Reads and writes globals, converting values both ways
4. Boxes host callables so scripts can call them, and invalidates the
   boxes on close

Usage:
    bridge = LuaBridge()
    bridge.register_function('add', lambda a, b: a + b)
    bridge.execute("return add(1, 2)")   # -> 3
    bridge.close()
"""

import weakref
from typing import Any, Callable, Dict, Mapping, NamedTuple, Optional

from lupa import LuaError, LuaRuntime, LuaSyntaxError

from ads import profiling
from ads.logging import get_logger
from .errors import MarshalError, ScriptError, ScriptRuntimeError, ScriptSyntaxError
from .values import OpaqueCallable, from_lua, to_lua

log = get_logger('lua_bridge')


# Turns a host call result (ok, value_or_message) into a Lua return or error.
# Compiled before the sandbox clears globals; `error` survives as an upvalue.
_HOST_CALL_SHIM = """
local error = error
return function(fn)
    return function(...)
        local ok, result = fn(...)
        if not ok then
            error(result, 0)
        end
        return result
    end
end
"""

# Stable per-table ids for cycle detection; weak keys so tables still collect.
_TABLE_IDENTITY = """
local setmetatable = setmetatable
local ids = setmetatable({}, {__mode = 'k'})
local count = 0
return function(t)
    local id = ids[t]
    if id == nil then
        count = count + 1
        id = count
        ids[t] = id
    end
    return id
end
"""

SAFE_GLOBALS = (
    'pairs', 'ipairs', 'type', 'tostring', 'tonumber', 'select',
    'pcall', 'error', 'assert', 'next', 'math', 'string', 'table',
)


def _lua_attribute_filter(obj, attr_name, is_setting):
    """Attribute filter for the Lua sandbox.

    Blocks dunder, private and callable attribute access on any Python
    object that reaches Lua. Lua tables are not affected.
    """
    if attr_name.startswith('__'):
        raise AttributeError(f'Access to {attr_name} is blocked')
    if attr_name.startswith('_'):
        raise AttributeError(f'Access to private attribute {attr_name} is blocked')

    if not is_setting:
        attr = getattr(obj, attr_name, None)
        if attr is not None and callable(attr) and not isinstance(attr, type):
            raise AttributeError(f'Access to callable {attr_name} is blocked')

    return attr_name


class CallResult(NamedTuple):
    """Outcome of calling a boxed host function.

    ``value`` is already converted for Lua; ``error`` is the message text.
    """
    ok: bool
    value: Any = None
    error: Optional[str] = None


class HostFunctionBox:
    """A host callable as seen from Lua.

    The Lua function wrapping the box keeps it alive; the bridge only tracks
    live boxes. Once the bridge closes every box is invalidated and calls
    fail cleanly instead of touching the runtime.
    """

    def __init__(self, bridge: 'LuaBridge', fn: Callable, name: str):
        self._bridge = bridge
        self._fn = fn
        self.name = name

    @property
    def valid(self) -> bool:
        return self._fn is not None and not self._bridge.closed

    def invalidate(self) -> None:
        self._fn = None

    def call(self, *args) -> CallResult:
        if not self.valid:
            return CallResult(False, error=f"{self.name}: interpreter is closed")

        try:
            host_args = [from_lua(arg, self._bridge) for arg in args]
            log.host_call(self.name, host_args)
            with profiling.profile_lua_callback('lua_api', self.name):
                result = self._fn(*host_args)
            log.host_return(self.name, result=result)
            return CallResult(True, to_lua(result, self._bridge))
        except Exception as e:
            message = str(e) or type(e).__name__
            log.host_return(self.name, error=message)
            return CallResult(False, error=message)

    def _invoke(self, *args):
        # Called from Lua through the shim; two return values.
        result = self.call(*args)
        if result.ok:
            return True, result.value
        return False, result.error

    def __repr__(self) -> str:
        state = 'valid' if self.valid else 'closed'
        return f"<HostFunctionBox {self.name} ({state})>"


class LuaBridge:
    """
    One sandboxed Lua interpreter plus the value conversion around it.

    State (globals, registered functions) persists across execute() calls
    until close(). Not thread-safe; use from one logic thread.
    """

    def __init__(self):
        self._closed = False
        self._executing = False
        # Weak: a box lives as long as the Lua function that calls it
        self._boxes: 'weakref.WeakSet[HostFunctionBox]' = weakref.WeakSet()
        self._handles: 'weakref.WeakSet[OpaqueCallable]' = weakref.WeakSet()

        # Set by ads.lua.bindings.install_bindings()
        self.bindings = None

        # Sandbox protections:
        # - register_eval=False: don't expose python.eval()
        # - register_builtins=False: don't expose python.builtins.*
        # - attribute_filter: blocks access to __dunder__ and _private attrs
        # - unpack_returned_tuples: host calls answer with (ok, value)
        self._lua = LuaRuntime(
            register_eval=False,
            register_builtins=False,
            unpack_returned_tuples=True,
            attribute_filter=_lua_attribute_filter,
        )
        self._setup_sandbox()
        log.debug("Lua interpreter created")

    # =========================================================================
    # Sandbox
    # =========================================================================

    def _setup_sandbox(self) -> None:
        """Opt-in globals only.

        All default globals are cleared and only the safe subset is put back,
        so io, os, debug, load*, require, package and the python bridge are gone.
        """
        g = self._lua.globals()

        safe_globals = {name: g[name] for name in SAFE_GLOBALS}
        safe_globals['unpack'] = g.table.unpack or g.unpack

        self._shim = self._lua.execute(_HOST_CALL_SHIM)
        self._table_identity = self._lua.execute(_TABLE_IDENTITY)
        self._echo = self._lua.eval('function(v) return v end')

        # string is also the string metatable's __index, so this covers ("").dump
        self._lua.execute("""
            local mt = getmetatable("")
            if mt and mt.__index then
                mt.__index.dump = nil
                mt.__index.rep = nil
            end
            string.dump = nil
            string.rep = nil
        """)

        for key in list(g.keys()):
            g[key] = None

        for key, value in safe_globals.items():
            g[key] = value

        self._validate_sandbox()

    def _validate_sandbox(self) -> None:
        """Refuse to run if any escape hatch survived setup."""
        critical_escapes = [
            ('python', 'python bridge gives full interpreter access'),
            ('_python', 'alternate python accessor'),
            ('ffi', 'FFI gives raw memory access'),
            ('jit', 'JIT library'),
            ('load', 'can compile arbitrary bytecode'),
            ('loadstring', 'same as load'),
            ('loadfile', 'load from filesystem'),
            ('dofile', 'execute from filesystem'),
            ('require', 'module loader'),
            ('package', 'package system'),
            ('module', 'legacy module creation'),
            ('debug', 'full introspection'),
            ('getfenv', 'environment access'),
            ('setfenv', 'environment manipulation'),
            ('getmetatable', 'metatable access'),
            ('setmetatable', 'metatable manipulation'),
            ('rawget', 'bypass __index'),
            ('rawset', 'bypass __newindex'),
            ('rawequal', 'bypass __eq'),
            ('rawlen', 'bypass __len'),
            ('_G', 'global table reference'),
            ('collectgarbage', 'GC manipulation'),
            ('newproxy', 'userdata creation'),
            ('io', 'filesystem access'),
            ('os', 'OS interface'),
            ('coroutine', 'coroutines'),
        ]

        failures = []
        for name, risk in critical_escapes:
            if self._lua.eval(f'{name} ~= nil'):
                failures.append(f'EXPOSED: {name} - {risk}')

        if self._lua.eval('("").dump') is not None:
            failures.append('EXPOSED: string.dump accessible via method syntax')

        for name in SAFE_GLOBALS + ('unpack',):
            if not self._lua.eval(f'{name} ~= nil'):
                failures.append(f'ERROR: safe global {name} missing - sandbox broken')

        if failures:
            for f in failures:
                log.error("SANDBOX FAILURE: %s", f)
            raise RuntimeError(
                f'Lua sandbox validation failed with {len(failures)} issue(s). '
                'This is a security risk - refusing to continue.'
            )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def closed(self) -> bool:
        return self._closed

    def _require_open(self) -> None:
        if self._closed:
            raise ScriptRuntimeError("interpreter is closed")

    def close(self) -> None:
        """Release the interpreter. Boxes and function handles stop working."""
        if self._closed:
            return

        for box in list(self._boxes):
            box.invalidate()
        self._boxes.clear()

        for handle in list(self._handles):
            handle.release()

        self._closed = True
        self._shim = None
        self._table_identity = None
        self._echo = None
        self._lua = None
        log.debug("Lua interpreter closed")

    def __enter__(self) -> 'LuaBridge':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # =========================================================================
    # Running code
    # =========================================================================

    def execute(self, source: str, name: str = 'chunk') -> Any:
        """Compile and run script text, returning its first result.

        Raises:
            ScriptSyntaxError: the text does not compile
            ScriptRuntimeError: the script raised, the bridge is closed, or
                execute was re-entered from a host callback
            MarshalError: the result cannot be converted, including strings
                that are not valid UTF-8
        """
        self._require_open()
        if self._executing:
            raise ScriptRuntimeError("re-entrant execute on the same interpreter is not allowed")

        log.chunk(name, 'compile')
        try:
            function = self._lua.compile(source)
        except LuaSyntaxError as e:
            raise ScriptSyntaxError(str(e)) from e
        except LuaError as e:
            raise ScriptSyntaxError(str(e)) from e

        log.chunk(name, 'execute')
        self._executing = True
        owns_run = profiling.begin_run(name)
        try:
            try:
                with profiling.profile_section('lua_bridge', name, kind=profiling.KIND_CHUNK):
                    result = function()

                # Multiple return values arrive as a tuple; only the first counts
                if isinstance(result, tuple):
                    result = result[0] if result else None
                return from_lua(result, self)
            except LuaError as e:
                raise ScriptRuntimeError(str(e)) from e
            except UnicodeDecodeError as e:
                raise MarshalError(f"Script returned a string that is not valid UTF-8: {e}") from e
        except ScriptError:
            if owns_run:
                profiling.mark_failed()
            raise
        finally:
            self._executing = False
            if owns_run:
                profiling.end_run()

    @property
    def executing(self) -> bool:
        return self._executing

    # =========================================================================
    # Globals and registration
    # =========================================================================

    def set_global(self, name: str, value: Any) -> None:
        self._require_open()
        self._lua.globals()[name] = to_lua(value, self)

    def get_global(self, name: str) -> Any:
        """Read a global as a host value.

        Raises:
            MarshalError: the value cannot be converted, including strings
                that are not valid UTF-8
        """
        self._require_open()
        try:
            return from_lua(self._lua.globals()[name], self)
        except UnicodeDecodeError as e:
            raise MarshalError(f"Global {name} holds a string that is not valid UTF-8: {e}") from e

    def register_function(self, name: str, fn: Callable) -> None:
        """Install ``fn`` as the global Lua function ``name``.

        Lua arguments are converted to host values positionally and the
        result is converted back. An exception raised by ``fn`` becomes an
        ordinary Lua error with the exception text as its message.
        """
        self._require_open()
        self._lua.globals()[name] = self.wrap_host_function(fn, name)

    def register_module(self, name: str, methods: Mapping[str, Callable]) -> None:
        """Install a namespace table whose entries are wrapped host functions."""
        self._require_open()
        table = self._lua.table()
        for key, fn in methods.items():
            table[key] = self.wrap_host_function(fn, f"{name}.{key}")
        self._lua.globals()[name] = table

    # =========================================================================
    # Hooks used by ads.lua.values
    # =========================================================================

    def new_table(self) -> Any:
        self._require_open()
        return self._lua.table()

    def wrap_host_function(self, fn: Callable, name: Optional[str] = None) -> Any:
        """Box ``fn`` and return the Lua function that calls it."""
        self._require_open()
        box = HostFunctionBox(self, fn, name or getattr(fn, '__name__', 'function'))
        self._boxes.add(box)
        return self._shim(box._invoke)

    def adopt_function(self, function: Any) -> OpaqueCallable:
        """Hand out an opaque handle for a Lua function."""
        handle = OpaqueCallable(function, self)
        self._handles.add(handle)
        return handle

    def table_identity(self, table: Any) -> int:
        return self._table_identity(table)

    def owns(self, lua_object: Any) -> bool:
        """True if ``lua_object`` belongs to this bridge's runtime."""
        if self._closed:
            return False
        try:
            self._echo(lua_object)
        except LuaError:
            return False
        return True

    @property
    def box_counts(self) -> Dict[str, int]:
        """Number of live host function boxes by name (diagnostics)."""
        counts: Dict[str, int] = {}
        for box in list(self._boxes):
            counts[box.name] = counts.get(box.name, 0) + 1
        return counts
