"""
Declarative UI tree protocol.

Lua scripts describe UI as plain data with the ``ui.<tag>(props, children)``
factories and return the root node:

    return ui.panel({ title = "X" }, {
      ui.button({ label = "Save" })
    })

run_ui() turns that into a UIDefinition for a renderer. It is the
containment boundary for script failures: every ScriptError is re-raised as
UIScriptError, whose payload is shown where the preview would have been.
"""

from typing import Any, Callable, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ads import profiling
from ads.logging import get_logger
from ads.lua.errors import ScriptError
from ads.lua.runtime import LuaBridge
from .components import component_names

log = get_logger('ui')

UI_MARKER = '__ui_component'


def is_ui_definition(value: Any) -> bool:
    """True for the wire shape produced by a ui.* factory."""
    return isinstance(value, Mapping) and value.get(UI_MARKER) is True


class UIDefinition(BaseModel):
    """One component instance and its children, as data."""
    model_config = ConfigDict(populate_by_name=True)

    ui_component: Literal[True] = Field(True, alias=UI_MARKER)
    type: str
    props: Dict[str, Any] = Field(default_factory=dict)
    children: Optional[List['UIDefinition']] = None

    @field_validator('props', mode='before')
    @classmethod
    def empty_props(cls, v):
        # An empty Lua table arrives as {} but a nil one as None
        return {} if v is None else v

    @field_validator('children', mode='before')
    @classmethod
    def only_definitions(cls, v):
        if v is None:
            return None
        if isinstance(v, Mapping):
            items = _ordered_values(v) if v else []
            if items is None:
                raise ValueError("children must be a list of UI components")
            v = items
        elif not isinstance(v, (list, tuple)):
            raise ValueError("children must be a list of UI components")
        kept = [child for child in v if isinstance(child, UIDefinition) or is_ui_definition(child)]
        if len(kept) != len(v):
            log.warning("Dropped %d child value(s) that are not UI components", len(v) - len(kept))
        return kept or None

    @classmethod
    def from_host(cls, value: Mapping[str, Any]) -> 'UIDefinition':
        return cls.model_validate(value)

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape; ``children`` is omitted for leaves."""
        result: Dict[str, Any] = {UI_MARKER: True, 'type': self.type, 'props': dict(self.props)}
        if self.children:
            result['children'] = [child.to_dict() for child in self.children]
        return result


class UIScriptError(Exception):
    """A UI script failed; carries what to show instead of the preview."""

    def __init__(self, message: str, kind: str = 'runtime'):
        super().__init__(message)
        self.message = message
        self.kind = kind

    @classmethod
    def from_script_error(cls, error: ScriptError) -> 'UIScriptError':
        return cls(error.message, error.kind)

    def to_payload(self) -> Dict[str, str]:
        return {'kind': self.kind, 'message': self.message}

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Factories
# =============================================================================

def _ordered_values(value: Mapping[str, Any]) -> Optional[List[Any]]:
    """A sparse Lua list arrives as {'1': a, '3': c}; recover [a, c]."""
    if value and all(isinstance(k, str) and k.isdigit() for k in value):
        return [value[k] for k in sorted(value, key=int)]
    return None


def _normalize_children(tag: str, value: Any) -> List[Any]:
    if value is None:
        return []
    if is_ui_definition(value):
        return [value]
    if isinstance(value, (list, tuple)):
        items = list(value)
    elif isinstance(value, Mapping):
        if not value:
            return []
        items = _ordered_values(value)
        if items is None:
            log.warning("ui.%s: children must be a component or a list, got a mapping", tag)
            return []
    else:
        log.warning("ui.%s: ignoring children of type %s", tag, type(value).__name__)
        return []

    children = [item for item in items if is_ui_definition(item)]
    if len(children) != len(items):
        log.warning("ui.%s: dropped %d child value(s) that are not UI components",
                    tag, len(items) - len(children))
    return children


def make_component_factory(tag: str) -> Callable[..., Dict[str, Any]]:
    """Build the ``ui.<tag>`` function.

    The first argument may be a bare scalar (``ui.text("hi")`` means
    ``{value = "hi"}``), a props table, a single child or a list of
    children. The second argument is the children: one node or a list.
    """
    def factory(props_or_children: Any = None, children: Any = None) -> Dict[str, Any]:
        props: Dict[str, Any] = {}
        child_list: List[Any] = []

        first = props_or_children
        if isinstance(first, (str, int, float, bool)):
            props = {'value': first}
        elif is_ui_definition(first) or isinstance(first, (list, tuple)):
            child_list = _normalize_children(tag, first)
        elif isinstance(first, Mapping):
            items = _ordered_values(first)
            if items is not None and all(is_ui_definition(item) for item in items):
                child_list = items
            else:
                props = dict(first)

        child_list.extend(_normalize_children(tag, children))

        node: Dict[str, Any] = {UI_MARKER: True, 'type': tag, 'props': props}
        if child_list:
            node['children'] = child_list
        return node

    factory.__name__ = f"ui.{tag}"
    return factory


def make_ui_namespace() -> Dict[str, Callable[..., Dict[str, Any]]]:
    """One factory per catalogue tag, keyed by tag."""
    return {tag: make_component_factory(tag) for tag in component_names()}


# =============================================================================
# Running UI scripts
# =============================================================================

@profiling.profile('ui', 'ui.build_tree')
def _build_tree(result: Any, name: str) -> Optional[UIDefinition]:
    if not is_ui_definition(result):
        return None

    try:
        return UIDefinition.from_host(result)
    except ValidationError as e:
        message = e.errors()[0]['msg']
    except (TypeError, ValueError) as e:
        message = str(e)
    log.warning("UI script %s returned a malformed component: %s", name, message)
    raise UIScriptError(f"Malformed UI component: {message}", 'marshal')


def run_ui(bridge: LuaBridge, source: str, name: str = 'ui') -> Optional[UIDefinition]:
    """Execute a UI script and return its root component.

    Returns None when the script's result is not a UI component. Running
    the chunk and building the tree are profiled as one run.

    Raises:
        UIScriptError: for any failure inside the bridge or a malformed tree
    """
    from ads.lua.bindings import install_bindings

    owns_run = profiling.begin_run(f"ui/{name}")
    try:
        try:
            install_bindings(bridge)
            result = bridge.execute(source, name=name)
        except ScriptError as e:
            log.warning("UI script %s failed (%s): %s", name, e.kind, e.message)
            raise UIScriptError.from_script_error(e) from e
        return _build_tree(result, name)
    except UIScriptError:
        if owns_run:
            profiling.mark_failed()
        raise
    finally:
        if owns_run:
            profiling.end_run()
