"""
Typed node-graph model for visual scripting.

Provides:
- NodeTypeDefinition / NodeInstance / EdgeInstance / NodeGraph records
- NodeTypeRegistry seeded with the built-in catalogue
- script node data, port resolution and the execution context contract
- GraphStore and validate_graph()

Executing graphs is out of scope here.
"""

from ads.nodes.graph import GraphStore, validate_graph
from ads.nodes.registry import NodeTypeRegistry, load_builtin_nodes
from ads.nodes.script_node import (
    SCRIPT_NODE_TYPE_ID,
    ResolvedPorts,
    ScriptExecutionContext,
    ScriptNodeData,
    ScriptServices,
    UndeclaredSignalError,
    add_custom_input,
    add_custom_output,
    create_default_script_data,
    resolve_ports,
    validate_script_data,
)
from ads.nodes.types import (
    NODE_CATEGORIES,
    PORT_COLORS,
    PORT_TYPES,
    EdgeInstance,
    NodeGraph,
    NodeInstance,
    NodePortDefinition,
    NodeTypeDefinition,
    Position,
)

__all__ = [
    'GraphStore', 'validate_graph', 'NodeTypeRegistry', 'load_builtin_nodes',
    'SCRIPT_NODE_TYPE_ID', 'ResolvedPorts', 'ScriptExecutionContext', 'ScriptNodeData',
    'ScriptServices', 'UndeclaredSignalError', 'add_custom_input', 'add_custom_output',
    'create_default_script_data', 'resolve_ports', 'validate_script_data',
    'NODE_CATEGORIES', 'PORT_COLORS', 'PORT_TYPES', 'EdgeInstance', 'NodeGraph',
    'NodeInstance', 'NodePortDefinition', 'NodeTypeDefinition', 'Position',
]
