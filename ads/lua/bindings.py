"""
Lua bindings - the globals every script session gets.

install_bindings() registers, once per bridge:
- print(...)                 forwarded to the 'lua' logger
- get_ui_components()        list of ui.* tags
- get_component_info(name)   metadata for one tag, or nil
- util.deepcopy/merge/format
- state.get/set/getAll       session key/value store
- ui.<tag>(...)              declarative UI factories
- nodes.get/list/category    read-only node type catalogue (when a registry is given)
"""

import json
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from ads.logging import get_logger
from ads.ui.components import component_names, get_component
from ads.ui.protocol import make_ui_namespace
from .runtime import LuaBridge
from .values import lua_tostring

if TYPE_CHECKING:
    from ads.nodes.registry import NodeTypeRegistry

log = get_logger('lua_bindings')
lua_log = get_logger('lua')


class StateStore:
    """Key/value store shared by all scripts of one interpreter."""

    def __init__(self):
        self._values: Dict[str, Any] = {}

    def get(self, key: Any) -> Any:
        if not isinstance(key, str):
            return None
        return self._values.get(key)

    def set(self, key: Any, value: Any = None) -> None:
        if not isinstance(key, str):
            return
        if value is None:
            self._values.pop(key, None)
        else:
            self._values[key] = value

    def get_all(self) -> Dict[str, Any]:
        return dict(self._values)

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)


# =============================================================================
# util.*
# =============================================================================

def deepcopy(value: Any) -> Any:
    """Copy a table through JSON; anything else is returned as-is.

    Tables holding functions fail, which surfaces as a Lua error.
    """
    if not isinstance(value, (dict, list)):
        return value
    return json.loads(json.dumps(value))


def merge(*tables: Any) -> Dict[Any, Any]:
    """Merge tables left to right; later keys win.

    Lists merge by their 1-based index. Non-table arguments are skipped.
    """
    result: Dict[Any, Any] = {}
    for table in tables:
        if isinstance(table, dict):
            result.update(table)
        elif isinstance(table, list):
            for i, value in enumerate(table, start=1):
                result[i] = value
    return result


def format_template(template: Any, *args: Any) -> str:
    """Replace every ``{n}`` with the n-th argument as Lua would print it."""
    if not isinstance(template, str):
        return ''
    result = template
    for i, arg in enumerate(args, start=1):
        result = result.replace(f'{{{i}}}', lua_tostring(arg))
    return result


class LuaBindings:
    """What install_bindings() put into one bridge."""

    def __init__(
        self,
        bridge: LuaBridge,
        node_registry: Optional['NodeTypeRegistry'] = None,
        on_print: Optional[Callable[[str], None]] = None,
    ):
        self.bridge = bridge
        self.node_registry = node_registry
        self.on_print = on_print
        self.state = StateStore()
        self.globals: List[str] = []

    def lua_print(self, *args: Any) -> None:
        line = '\t'.join(lua_tostring(arg) for arg in args)
        lua_log.info(line)
        if self.on_print is not None:
            self.on_print(line)

    def _install(self) -> None:
        bridge = self.bridge

        bridge.register_module('ui', make_ui_namespace())
        bridge.register_function('print', self.lua_print)
        bridge.register_function('get_ui_components', component_names)
        bridge.register_function('get_component_info', _component_info)
        bridge.register_module('util', {
            'deepcopy': deepcopy,
            'merge': merge,
            'format': format_template,
        })
        bridge.register_module('state', {
            'get': self.state.get,
            'set': self.state.set,
            'getAll': self.state.get_all,
        })
        self.globals = ['ui', 'print', 'get_ui_components', 'get_component_info', 'util', 'state']

        if self.node_registry is not None:
            bridge.register_module('nodes', _node_namespace(self.node_registry))
            self.globals.append('nodes')


def _component_info(name: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(name, str):
        return None
    meta = get_component(name)
    return meta.to_dict() if meta else None


def _node_namespace(registry: 'NodeTypeRegistry') -> Dict[str, Callable]:
    def get(type_id: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(type_id, str):
            return None
        definition = registry.get_node_type(type_id)
        return definition.to_dict() if definition else None

    def list_ids() -> List[str]:
        return [d.id for d in registry.get_all_node_types()]

    def category(name: Any) -> List[str]:
        if not isinstance(name, str):
            return []
        return [d.id for d in registry.get_nodes_by_category(name)]

    return {'get': get, 'list': list_ids, 'category': category}


def install_bindings(
    bridge: LuaBridge,
    node_registry: Optional['NodeTypeRegistry'] = None,
    on_print: Optional[Callable[[str], None]] = None,
) -> LuaBindings:
    """Install the standard globals into ``bridge`` exactly once.

    A second call returns the existing LuaBindings without registering or
    logging anything.
    """
    if bridge.bindings is not None:
        return bridge.bindings

    bindings = LuaBindings(bridge, node_registry=node_registry, on_print=on_print)
    bindings._install()
    bridge.bindings = bindings
    log.info("Lua bindings installed: %s", ', '.join(bindings.globals))
    return bindings
