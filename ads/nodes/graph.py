"""
Graph store and graph validation.

GraphStore keeps the graphs open in the editor, tracks the active one and
notifies listeners when a graph is replaced. validate_graph() checks a
graph against a node registry without raising.
"""

from typing import Callable, Dict, List, Optional

from ads.logging import get_logger
from .registry import NodeTypeRegistry
from .script_node import SCRIPT_NODE_TYPE_ID, resolve_ports, validate_script_data
from .types import NodeGraph

log = get_logger('nodes')

GraphEventHandler = Callable[[NodeGraph], None]


class GraphStore:
    """In-memory graphs by id."""

    def __init__(self):
        self._graphs: Dict[str, NodeGraph] = {}
        self._active_id: Optional[str] = None
        self._handlers: List[GraphEventHandler] = []

    def get_graph(self, graph_id: str) -> Optional[NodeGraph]:
        return self._graphs.get(graph_id)

    def get_active_graph(self) -> Optional[NodeGraph]:
        if self._active_id is None:
            return None
        return self._graphs.get(self._active_id)

    def set_active_graph(self, graph_id: Optional[str]) -> bool:
        """Make ``graph_id`` active (None clears); False if it is unknown."""
        if graph_id is not None and graph_id not in self._graphs:
            return False
        self._active_id = graph_id
        return True

    def get_all_graphs(self) -> List[NodeGraph]:
        return list(self._graphs.values())

    def set_graph(self, graph: NodeGraph) -> None:
        """Store or replace a graph and notify listeners."""
        self._graphs[graph.id] = graph
        for handler in list(self._handlers):
            handler(graph)

    def remove_graph(self, graph_id: str) -> bool:
        if self._graphs.pop(graph_id, None) is None:
            return False
        if self._active_id == graph_id:
            self._active_id = None
        return True

    def on_graph_change(self, handler: GraphEventHandler) -> Callable[[], None]:
        """Subscribe to set_graph(); returns the unsubscribe function."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe


def validate_graph(graph: NodeGraph, registry: NodeTypeRegistry) -> List[str]:
    """Problems with ``graph``; empty when it is consistent.

    Checks unique node and edge ids, known node types, script node data,
    and that every edge runs from an existing output port to an existing
    input port.
    """
    problems: List[str] = []

    nodes = {}
    for node in graph.nodes:
        if node.id in nodes:
            problems.append(f"duplicate node id '{node.id}'")
            continue
        nodes[node.id] = node
        definition = registry.get_node_type(node.type_id)
        if definition is None:
            problems.append(f"node '{node.id}' has unknown type '{node.type_id}'")
        elif node.type_id == SCRIPT_NODE_TYPE_ID:
            base_in = {p.id for p in definition.inputs}
            base_out = {p.id for p in definition.outputs}
            for problem in validate_script_data(node.data, base_in, base_out):
                problems.append(f"node '{node.id}': {problem}")

    edge_ids = set()
    for edge in graph.edges:
        if edge.id in edge_ids:
            problems.append(f"duplicate edge id '{edge.id}'")
        edge_ids.add(edge.id)

        source = nodes.get(edge.source)
        target = nodes.get(edge.target)
        if source is None:
            problems.append(f"edge '{edge.id}' starts at missing node '{edge.source}'")
        elif edge.source_handle not in {p.id for p in resolve_ports(source, registry).outputs}:
            problems.append(f"edge '{edge.id}' starts at unknown output '{edge.source_handle}' of '{edge.source}'")
        if target is None:
            problems.append(f"edge '{edge.id}' ends at missing node '{edge.target}'")
        elif edge.target_handle not in {p.id for p in resolve_ports(target, registry).inputs}:
            problems.append(f"edge '{edge.id}' ends at unknown input '{edge.target_handle}' of '{edge.target}'")

    if problems:
        log.debug("Graph %s has %d problem(s)", graph.id, len(problems))
    return problems
