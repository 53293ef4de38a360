"""
Sandboxed Lua interpreter and host <-> Lua value conversion.

Provides:
- LuaBridge: one sandboxed interpreter (no io, os, debug, require, etc.)
- to_lua / from_lua: value marshaling, tables <-> lists/dicts
- ScriptError and its syntax/runtime/marshal kinds

The standard script globals live in ads.lua.bindings.
"""

from ads.lua.errors import MarshalError, ScriptError, ScriptRuntimeError, ScriptSyntaxError
from ads.lua.runtime import CallResult, HostFunctionBox, LuaBridge
from ads.lua.values import MAX_DEPTH, LuaKind, OpaqueCallable, from_lua, lua_kind, lua_tostring, to_lua

__all__ = [
    'LuaBridge', 'HostFunctionBox', 'CallResult',
    'ScriptError', 'ScriptSyntaxError', 'ScriptRuntimeError', 'MarshalError',
    'LuaKind', 'OpaqueCallable', 'MAX_DEPTH', 'lua_kind', 'lua_tostring', 'to_lua', 'from_lua',
]
