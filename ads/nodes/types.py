"""
Node graph data models for visual scripting.

These are the persisted shapes: node type definitions (the catalogue),
node and edge instances, and whole graphs. Everything serialises with
camelCase keys (``typeId``, ``sourceHandle``, ``isCustom``) via
``model_dump(by_alias=True)`` and accepts either camelCase or snake_case.
"""

from typing import Any, Dict, List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

NodeCategory = Literal['event', 'action', 'condition', 'data', 'flow', 'custom']
PortType = Literal['flow', 'string', 'number', 'boolean', 'any', 'entity', 'position']

NODE_CATEGORIES = get_args(NodeCategory)
PORT_TYPES = get_args(PortType)

# Editor colours per port type
PORT_COLORS: Dict[str, str] = {
    'flow': '#ffffff',
    'string': '#22c55e',
    'number': '#3b82f6',
    'boolean': '#f59e0b',
    'any': '#8b5cf6',
    'entity': '#ec4899',
    'position': '#06b6d4',
}


class GraphModel(BaseModel):
    """Base for graph records: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class NodePortDefinition(GraphModel):
    """A typed connection point on a node."""
    id: str = Field(..., min_length=1)
    label: str = ''
    type: PortType
    required: Optional[bool] = None


def duplicate_port_ids(ports: List[NodePortDefinition]) -> List[str]:
    """Port ids that occur more than once, in order of first repeat."""
    seen = set()
    dupes: List[str] = []
    for port in ports:
        if port.id in seen and port.id not in dupes:
            dupes.append(port.id)
        seen.add(port.id)
    return dupes


class NodeTypeDefinition(GraphModel):
    """
    One entry of the node catalogue.

    ``lua_code`` is the optional behaviour snippet run for the node;
    ``is_custom`` marks entries registered at runtime rather than built in.
    """
    id: str = Field(..., min_length=1)
    name: str
    category: NodeCategory
    description: str = ''
    icon: str = ''
    color: str = '#888888'
    inputs: List[NodePortDefinition] = Field(default_factory=list)
    outputs: List[NodePortDefinition] = Field(default_factory=list)
    lua_code: Optional[str] = None
    is_custom: Optional[bool] = None

    @model_validator(mode='after')
    def unique_port_ids(self):
        for direction, ports in (('input', self.inputs), ('output', self.outputs)):
            dupes = duplicate_port_ids(ports)
            if dupes:
                raise ValueError(f"Duplicate {direction} port id(s) on {self.id}: {', '.join(dupes)}")
        return self

    def get_input(self, port_id: str) -> Optional[NodePortDefinition]:
        return next((p for p in self.inputs if p.id == port_id), None)

    def get_output(self, port_id: str) -> Optional[NodePortDefinition]:
        return next((p for p in self.outputs if p.id == port_id), None)


class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0


class NodeInstance(GraphModel):
    """A node placed in a graph; ``data`` is interpreted per ``type_id``."""
    id: str = Field(..., min_length=1)
    type_id: str
    position: Position = Field(default_factory=Position)
    data: Dict[str, Any] = Field(default_factory=dict)


class EdgeInstance(GraphModel):
    """Connects an output port of one node to an input port of another."""
    id: str = Field(..., min_length=1)
    source: str
    source_handle: str
    target: str
    target_handle: str


class NodeGraph(GraphModel):
    id: str = Field(..., min_length=1)
    name: str = ''
    nodes: List[NodeInstance] = Field(default_factory=list)
    edges: List[EdgeInstance] = Field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('nodes', 'edges', mode='before')
    @classmethod
    def none_as_empty(cls, v):
        return [] if v is None else v

    def get_node(self, node_id: str) -> Optional[NodeInstance]:
        return next((n for n in self.nodes if n.id == node_id), None)
