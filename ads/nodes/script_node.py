"""
Script nodes - user-authored Lua with per-instance ports and signals.

The 'script' node type has a fixed flow in/out pair in the catalogue. Each
instance widens that interface through its data (ScriptNodeData): extra
input and output ports, signals it listens for and signals it may emit.

This module defines and validates the shape a script node runs against
(ScriptExecutionContext); running the code is the graph runner's job.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, List, Mapping, NamedTuple, Optional, Protocol

from pydantic import Field, ValidationError

from ads.logging import get_logger
from .registry import NodeTypeRegistry
from .types import PORT_TYPES, GraphModel, NodeInstance, NodePortDefinition

log = get_logger('nodes')

SCRIPT_NODE_TYPE_ID = 'script'

DEFAULT_SCRIPT_CODE = '''-- Custom script node
-- Available in scope:
--   inputs   read-only table of resolved input values
--   ctx      execution context handle
--   self     id of the entity this behavior is attached to
--   emit(signal, data)   emit one of the declared signals
--   Scene, Events, Timers   built-in services

-- Example: move the entity when triggered
-- if inputs.trigger then
--   Scene.translate(self, inputs.dx or 1, inputs.dy or 0)
--   emit("moved", { entity = self })
-- end

return inputs
'''


class ScriptNodeData(GraphModel):
    """Per-instance payload of a script node."""
    node_type_id: str = SCRIPT_NODE_TYPE_ID
    code: str = DEFAULT_SCRIPT_CODE
    custom_inputs: List[NodePortDefinition] = Field(default_factory=list)
    custom_outputs: List[NodePortDefinition] = Field(default_factory=list)
    listen_signals: List[str] = Field(default_factory=list)
    emit_signals: List[str] = Field(default_factory=list)


def create_default_script_data() -> ScriptNodeData:
    return ScriptNodeData()


def _next_port_id(prefix: str, ports: List[NodePortDefinition]) -> str:
    taken = {p.id for p in ports}
    n = len(ports) + 1
    while f"{prefix}_{n}" in taken:
        n += 1
    return f"{prefix}_{n}"


def add_custom_input(data: ScriptNodeData) -> NodePortDefinition:
    """Append an ``input_<n>`` port of type any and return it."""
    port = NodePortDefinition(id=_next_port_id('input', data.custom_inputs), label='New Input', type='any')
    data.custom_inputs.append(port)
    return port


def add_custom_output(data: ScriptNodeData) -> NodePortDefinition:
    """Append an ``output_<n>`` port of type any and return it."""
    port = NodePortDefinition(id=_next_port_id('output', data.custom_outputs), label='New Output', type='any')
    data.custom_outputs.append(port)
    return port


# =============================================================================
# Port resolution
# =============================================================================

class ResolvedPorts(NamedTuple):
    inputs: List[NodePortDefinition]
    outputs: List[NodePortDefinition]


def _raw_field(data: Mapping[str, Any], snake: str, camel: str) -> Any:
    return data[camel] if camel in data else data.get(snake)


def _custom_ports(data: Mapping[str, Any], snake: str, camel: str) -> List[NodePortDefinition]:
    raw = _raw_field(data, snake, camel)
    if not isinstance(raw, list):
        return []
    ports = []
    for entry in raw:
        try:
            ports.append(NodePortDefinition.model_validate(entry))
        except ValidationError:
            log.debug("Skipping malformed custom port %r", entry)
    return ports


def _merge_ports(base: List[NodePortDefinition], custom: List[NodePortDefinition]) -> List[NodePortDefinition]:
    merged = list(base)
    seen = {p.id for p in base}
    for port in custom:
        if port.id not in seen:
            merged.append(port)
            seen.add(port.id)
    return merged


def resolve_ports(instance: NodeInstance, registry: NodeTypeRegistry) -> ResolvedPorts:
    """Ports a node instance actually exposes.

    The type's ports come first; a script node appends its custom ports,
    skipping any whose id repeats an earlier port. Unknown types have none.
    """
    definition = registry.get_node_type(instance.type_id)
    if definition is None:
        return ResolvedPorts([], [])

    if instance.type_id != SCRIPT_NODE_TYPE_ID:
        return ResolvedPorts(list(definition.inputs), list(definition.outputs))

    return ResolvedPorts(
        _merge_ports(definition.inputs, _custom_ports(instance.data, 'custom_inputs', 'customInputs')),
        _merge_ports(definition.outputs, _custom_ports(instance.data, 'custom_outputs', 'customOutputs')),
    )


# =============================================================================
# Validation
# =============================================================================

def _port_problems(raw: Any, direction: str, base_ids: set) -> List[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        return [f"custom {direction}s must be a list"]

    problems = []
    seen = set()
    for index, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            problems.append(f"custom {direction} #{index + 1} is not a port definition")
            continue
        port_id = entry.get('id')
        if not isinstance(port_id, str) or not port_id:
            problems.append(f"custom {direction} #{index + 1} has no id")
            continue
        if entry.get('type') not in PORT_TYPES:
            problems.append(f"custom {direction} '{port_id}' has unknown type {entry.get('type')!r}")
        if port_id in base_ids:
            problems.append(f"custom {direction} '{port_id}' collides with a built-in port")
        elif port_id in seen:
            problems.append(f"duplicate custom {direction} id '{port_id}'")
        seen.add(port_id)
    return problems


def _signal_problems(raw: Any, kind: str) -> List[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        return [f"{kind} signals must be a list"]

    problems = []
    seen = set()
    for signal in raw:
        if not isinstance(signal, str) or not signal.strip():
            problems.append(f"blank {kind} signal name")
        elif signal in seen:
            problems.append(f"duplicate {kind} signal '{signal}'")
        else:
            seen.add(signal)
    return problems


def validate_script_data(data: Any, base_input_ids: Optional[set] = None,
                         base_output_ids: Optional[set] = None) -> List[str]:
    """List what is wrong with a script node's data; empty when valid.

    Accepts a ScriptNodeData or the raw mapping stored on a NodeInstance.
    Never raises.
    """
    if isinstance(data, ScriptNodeData):
        data = data.model_dump(by_alias=True)
    if not isinstance(data, Mapping):
        return ["script data must be a mapping"]

    base_inputs = {'flow'} if base_input_ids is None else base_input_ids
    base_outputs = {'flow'} if base_output_ids is None else base_output_ids

    problems = []
    code = data.get('code')
    if code is not None and not isinstance(code, str):
        problems.append("code must be a string")

    problems += _port_problems(_raw_field(data, 'custom_inputs', 'customInputs'), 'input', base_inputs)
    problems += _port_problems(_raw_field(data, 'custom_outputs', 'customOutputs'), 'output', base_outputs)
    problems += _signal_problems(_raw_field(data, 'listen_signals', 'listenSignals'), 'listen')
    problems += _signal_problems(_raw_field(data, 'emit_signals', 'emitSignals'), 'emit')
    return problems


# =============================================================================
# Execution context contract
# =============================================================================

class SceneService(Protocol):
    """Scene mutation available to script nodes."""

    def find_by_name(self, name: str) -> Optional[Mapping[str, Any]]: ...

    def find_by_tag(self, tag: str) -> List[Mapping[str, Any]]: ...

    def instantiate(self, prefab_id: str, x: Optional[float] = None, y: Optional[float] = None,
                    parent_id: Optional[str] = None) -> Optional[str]: ...

    def destroy(self, entity_id: str) -> bool: ...

    def translate(self, entity_id: str, dx: float, dy: float) -> None: ...


class EventService(Protocol):
    """Game event bus."""

    def emit(self, event_type: str, data: Any = None) -> None: ...

    def subscribe(self, event_type: str, handler: Callable[[Any], None]) -> Callable[[], None]: ...


class TimerService(Protocol):
    """Named timers."""

    def start(self, name: str, duration: float, loop: bool = False) -> None: ...

    def stop(self, name: str) -> bool: ...

    def is_running(self, name: str) -> bool: ...

    def delay(self, seconds: float, callback: Callable[[], None]) -> str: ...


@dataclass(frozen=True)
class ScriptServices:
    scene: SceneService
    events: EventService
    timers: TimerService


class UndeclaredSignalError(ValueError):
    """A script node emitted a signal its data does not declare."""


@dataclass
class ScriptExecutionContext:
    """What a script node body is invoked with.

    ``inputs`` is read-only. ``emit`` only accepts signals listed in the
    node's ``emit_signals`` and forwards them to ``emitter``.
    """
    inputs: Mapping[str, Any]
    ctx: Any
    self_entity_id: Optional[str]
    services: ScriptServices
    emit_signals: List[str] = field(default_factory=list)
    emitter: Optional[Callable[[str, Any], None]] = None

    def __post_init__(self):
        if not isinstance(self.inputs, MappingProxyType):
            self.inputs = MappingProxyType(dict(self.inputs))

    @classmethod
    def for_node(cls, data: ScriptNodeData, inputs: Mapping[str, Any], ctx: Any,
                 self_entity_id: Optional[str], services: ScriptServices,
                 emitter: Optional[Callable[[str, Any], None]] = None) -> 'ScriptExecutionContext':
        return cls(
            inputs=inputs,
            ctx=ctx,
            self_entity_id=self_entity_id,
            services=services,
            emit_signals=list(data.emit_signals),
            emitter=emitter,
        )

    def emit(self, signal: str, data: Any = None) -> None:
        if signal not in self.emit_signals:
            raise UndeclaredSignalError(f"Signal '{signal}' is not declared in emitSignals")
        if self.emitter is not None:
            self.emitter(signal, data)
