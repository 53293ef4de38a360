"""
Value conversion between Python host values and Lua values.

Host side:
- Primitives: None, bool, int, float, str
- Sequences: list / tuple (1-indexed tables in Lua)
- Mappings: dict with str/int/float/bool keys
- Callables: boxed by the bridge so Lua can call them

Lua side:
- Tables whose keys are exactly 1..N become lists, every other table
  becomes a dict with stringified keys. The conversion is lossy for sparse
  or mixed-key tables: ``{[1]='a', [3]='c'}`` comes back as
  ``{'1': 'a', '3': 'c'}``. Keys that only differ before stringification
  (``[1]`` and ``'1'``, ``[true]`` and ``'true'``) are rejected.
- Functions become OpaqueCallable handles.
"""

import math
from enum import Enum
from typing import Any, Optional, Set, TYPE_CHECKING

from lupa import lua_type

from .errors import MarshalError

if TYPE_CHECKING:
    from .runtime import LuaBridge


# Deepest table nesting accepted when converting out of Lua
MAX_DEPTH = 100

# Lua integers are 64-bit
_LUA_INT_MIN = -(2 ** 63)
_LUA_INT_MAX = 2 ** 63 - 1


class LuaKind(str, Enum):
    """Tags of the values a Lua interpreter can hold."""
    NIL = 'nil'
    BOOLEAN = 'boolean'
    NUMBER = 'number'
    STRING = 'string'
    TABLE = 'table'
    FUNCTION = 'function'
    USERDATA = 'userdata'
    THREAD = 'thread'


def lua_kind(value: Any) -> LuaKind:
    """Classify a raw value as handed over by the interpreter.

    Python objects that leaked through as userdata report USERDATA.
    """
    kind = lua_type(value)
    if kind is not None:
        return LuaKind(kind)
    if value is None:
        return LuaKind.NIL
    if isinstance(value, bool):
        return LuaKind.BOOLEAN
    if isinstance(value, (int, float)):
        return LuaKind.NUMBER
    if isinstance(value, (str, bytes)):
        return LuaKind.STRING
    return LuaKind.USERDATA


class OpaqueCallable:
    """Handle for a Lua function that crossed into the host.

    Host code cannot call it. Passing it back into the bridge it came from
    restores the original Lua function, so renderers can hand ``onClick``
    style props back to the script. Closing the bridge releases it.
    """

    __slots__ = ('_function', '_bridge', '__weakref__')

    def __init__(self, function: Any, bridge: 'LuaBridge'):
        self._function = function
        self._bridge = bridge

    @property
    def valid(self) -> bool:
        return self._function is not None and not self._bridge.closed

    def belongs_to(self, bridge: 'LuaBridge') -> bool:
        return self.valid and self._bridge is bridge

    @property
    def function(self) -> Any:
        return self._function

    def release(self) -> None:
        self._function = None

    def __repr__(self) -> str:
        if self.valid:
            return '<lua function>'
        return '<lua function (released)>'

    def __str__(self) -> str:
        return '[function]'


def lua_tostring(value: Any) -> str:
    """Render a host value the way Lua's tostring() would."""
    if value is None:
        return 'nil'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return 'nan' if math.copysign(1.0, value) > 0 else '-nan'
        if math.isinf(value):
            return 'inf' if value > 0 else '-inf'
        text = '%.14g' % value
        if text.lstrip('-').isdigit():
            text += '.0'
        return text
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple, dict)):
        return 'table'
    if isinstance(value, OpaqueCallable) or callable(value):
        return 'function'
    return str(value)


def to_lua(value: Any, bridge: 'LuaBridge', _active: Optional[Set[int]] = None) -> Any:
    """Convert a host value into something the bridge's runtime can hold.

    Raises:
        MarshalError: bytes, sets, arbitrary objects, unsupported keys,
            cyclic containers, or a function handle or Lua object from another
            interpreter
    """
    if value is None or isinstance(value, (bool, str, float)):
        return value

    if isinstance(value, int):
        if not _LUA_INT_MIN <= value <= _LUA_INT_MAX:
            raise MarshalError(f"Integer {value} does not fit in a Lua integer")
        return value

    if isinstance(value, OpaqueCallable):
        if value.belongs_to(bridge):
            return value.function
        raise MarshalError("Function handle belongs to a closed or different interpreter")

    if lua_type(value) is not None:
        if not bridge.owns(value):
            raise MarshalError("Lua object belongs to a different or closed interpreter")
        return value

    if isinstance(value, (bytes, bytearray)):
        raise MarshalError("Cannot pass bytes to Lua - decode to str first")

    if isinstance(value, (set, frozenset)):
        raise MarshalError("Cannot convert set to Lua - convert to list first")

    if isinstance(value, (list, tuple, dict)):
        active = set() if _active is None else _active
        marker = id(value)
        if marker in active:
            raise MarshalError("Cannot convert cyclic structure to Lua")
        active.add(marker)
        try:
            table = bridge.new_table()
            if isinstance(value, dict):
                for k, v in value.items():
                    table[_to_lua_key(k)] = to_lua(v, bridge, active)
            else:
                for i, item in enumerate(value, start=1):
                    table[i] = to_lua(item, bridge, active)
            return table
        finally:
            active.discard(marker)

    if callable(value):
        return bridge.wrap_host_function(value)

    raise MarshalError(
        f"Cannot convert {type(value).__name__} to a Lua value. "
        f"Only primitives, lists, dicts and callables cross the bridge."
    )


def _to_lua_key(key: Any) -> Any:
    if isinstance(key, float) and math.isnan(key):
        raise MarshalError("Dict key cannot be NaN")
    if isinstance(key, int) and not isinstance(key, bool):
        if not _LUA_INT_MIN <= key <= _LUA_INT_MAX:
            raise MarshalError(f"Dict key {key} does not fit in a Lua integer")
    if not isinstance(key, (str, int, float, bool)):
        raise MarshalError(f"Dict key must be str/int/float/bool, got {type(key).__name__}")
    return key


def from_lua(value: Any, bridge: 'LuaBridge', _depth: int = 0,
             _seen: Optional[Set[int]] = None) -> Any:
    """Convert a value handed over by the interpreter into a host value.

    Raises:
        MarshalError: cyclic or too deeply nested tables, non-scalar table
            keys, keys colliding once stringified, coroutines and foreign
            userdata
    """
    kind = lua_kind(value)

    if kind is LuaKind.STRING and isinstance(value, bytes):
        return value.decode('utf-8', errors='replace')
    if kind in (LuaKind.NIL, LuaKind.BOOLEAN, LuaKind.NUMBER, LuaKind.STRING):
        return value
    if kind is LuaKind.FUNCTION:
        return bridge.adopt_function(value)
    if kind is LuaKind.TABLE:
        return _table_from_lua(value, bridge, _depth, set() if _seen is None else _seen)

    if lua_type(value) is None:
        raise MarshalError(f"Cannot convert foreign userdata ({type(value).__name__}) from Lua")
    raise MarshalError(f"Cannot convert Lua {kind.value} to a host value")


def _table_from_lua(table: Any, bridge: 'LuaBridge', depth: int, seen: Set[int]) -> Any:
    if depth >= MAX_DEPTH:
        raise MarshalError(f"Table nesting exceeds {MAX_DEPTH} levels")

    identity = bridge.table_identity(table)
    if identity in seen:
        raise MarshalError("Cannot convert cyclic table from Lua")
    seen.add(identity)

    try:
        try:
            entries = [(_from_lua_key(k), v) for k, v in table.items()]
        except UnicodeDecodeError as e:
            raise MarshalError(f"Table contains a string that is not valid UTF-8: {e}") from e

        if _is_sequence(entries):
            result = [None] * len(entries)
            for k, v in entries:
                result[k - 1] = from_lua(v, bridge, depth + 1, seen)
            return result

        result = {}
        for k, v in entries:
            key = lua_tostring(k)
            if key in result:
                raise MarshalError(f"Table keys collide after stringification: {key!r}")
            result[key] = from_lua(v, bridge, depth + 1, seen)
        return result
    finally:
        seen.discard(identity)


def _from_lua_key(key: Any) -> Any:
    if isinstance(key, bytes):
        return key.decode('utf-8', errors='replace')
    if isinstance(key, float) and key.is_integer():
        return int(key)
    if key is None or not isinstance(key, (bool, int, float, str)):
        raise MarshalError(
            f"Table keys must be strings, numbers or booleans, got {lua_kind(key).value}"
        )
    return key


def _is_sequence(entries: list) -> bool:
    """True when the keys are exactly the integers 1..len(entries)."""
    if not entries:
        return False
    highest = 0
    for key, _ in entries:
        if isinstance(key, bool) or not isinstance(key, int) or key < 1:
            return False
        highest = max(highest, key)
    return highest == len(entries)
