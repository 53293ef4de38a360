"""
Declarative UI for Lua scripts.

Provides:
- the component catalogue (ui.* tags and their props)
- UIDefinition, the data-only component tree scripts return
- run_ui(), the containment boundary for UI script failures
- starter templates, the custom panel store and the script file loader
"""

from ads.ui.components import (
    UIComponentMeta,
    UIComponentProp,
    component_names,
    get_categories,
    get_component,
    get_components_by_category,
)
from ads.ui.protocol import (
    UI_MARKER,
    UIDefinition,
    UIScriptError,
    is_ui_definition,
    make_component_factory,
    make_ui_namespace,
    run_ui,
)

__all__ = [
    'UIComponentMeta', 'UIComponentProp', 'component_names', 'get_categories',
    'get_component', 'get_components_by_category',
    'UI_MARKER', 'UIDefinition', 'UIScriptError', 'is_ui_definition',
    'make_component_factory', 'make_ui_namespace', 'run_ui',
]
