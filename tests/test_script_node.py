"""Script node data, port resolution, validation and execution context."""

from types import MappingProxyType

import pytest

from ads.nodes import (
    SCRIPT_NODE_TYPE_ID,
    NodeInstance,
    NodePortDefinition,
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


def script_instance(data, node_id="n1"):
    return NodeInstance(id=node_id, type_id=SCRIPT_NODE_TYPE_ID, data=data)


class FakeScene:
    def __init__(self):
        self.moves = []

    def find_by_name(self, name):
        return None

    def find_by_tag(self, tag):
        return []

    def instantiate(self, prefab_id, x=None, y=None, parent_id=None):
        return "e1"

    def destroy(self, entity_id):
        return True

    def translate(self, entity_id, dx, dy):
        self.moves.append((entity_id, dx, dy))


class FakeEvents:
    def emit(self, event_type, data=None):
        pass

    def subscribe(self, event_type, handler):
        return lambda: None


class FakeTimers:
    def start(self, name, duration, loop=False):
        pass

    def stop(self, name):
        return False

    def is_running(self, name):
        return False

    def delay(self, seconds, callback):
        return "t1"


@pytest.fixture
def services():
    return ScriptServices(scene=FakeScene(), events=FakeEvents(), timers=FakeTimers())


class TestScriptNodeData:

    def test_defaults(self):
        data = create_default_script_data()
        assert data.node_type_id == "script"
        assert data.custom_inputs == []
        assert data.custom_outputs == []
        assert data.listen_signals == []
        assert data.emit_signals == []
        assert data.code.rstrip().endswith("return inputs")

    def test_camel_case_round_trip(self):
        data = ScriptNodeData(emit_signals=["moved"])
        wire = data.to_dict()
        assert wire["emitSignals"] == ["moved"]
        assert wire["nodeTypeId"] == "script"
        assert ScriptNodeData.model_validate(wire) == data

    def test_default_code_runs(self, bridge):
        bridge.set_global("inputs", {"trigger": True})
        assert bridge.execute(create_default_script_data().code) == {"trigger": True}


class TestCustomPorts:

    def test_add_input(self):
        data = create_default_script_data()
        port = add_custom_input(data)
        assert port.id == "input_1"
        assert port.label == "New Input"
        assert port.type == "any"
        assert data.custom_inputs == [port]

    def test_add_output(self):
        data = create_default_script_data()
        add_custom_output(data)
        port = add_custom_output(data)
        assert port.id == "output_2"
        assert port.label == "New Output"
        assert [p.id for p in data.custom_outputs] == ["output_1", "output_2"]

    def test_add_skips_taken_id(self):
        data = ScriptNodeData(custom_inputs=[NodePortDefinition(id="input_2", type="number")])
        port = add_custom_input(data)
        assert port.id == "input_3"


class TestResolvePorts:

    def test_custom_ports_merged(self, registry):
        instance = script_instance({
            "customInputs": [{"id": "speed", "label": "Speed", "type": "number"}],
            "customOutputs": [{"id": "done", "type": "flow"}],
        })
        ports = resolve_ports(instance, registry)
        assert [p.id for p in ports.inputs] == ["flow", "speed"]
        assert ports.inputs[1].type == "number"
        assert [p.id for p in ports.outputs] == ["flow", "done"]

    def test_snake_case_data_accepted(self, registry):
        data = ScriptNodeData(custom_inputs=[NodePortDefinition(id="speed", type="number")])
        instance = script_instance(data.model_dump())
        assert [p.id for p in resolve_ports(instance, registry).inputs] == ["flow", "speed"]

    def test_colliding_and_malformed_ports_skipped(self, registry):
        instance = script_instance({
            "customInputs": [
                {"id": "flow", "type": "number"},
                {"id": "a", "type": "any"},
                {"id": "a", "type": "string"},
                {"id": "bad", "type": "vector"},
                "junk",
            ],
        })
        ports = resolve_ports(instance, registry)
        assert [p.id for p in ports.inputs] == ["flow", "a"]
        assert ports.inputs[0].type == "flow"

    def test_plain_node_uses_type_ports(self, registry):
        instance = NodeInstance(id="n", type_id="move-entity", data={"customInputs": [{"id": "x", "type": "any"}]})
        ports = resolve_ports(instance, registry)
        assert [p.id for p in ports.inputs] == ["flow", "entity", "position"]

    def test_unknown_type_has_no_ports(self, registry):
        ports = resolve_ports(NodeInstance(id="n", type_id="missing"), registry)
        assert ports.inputs == []
        assert ports.outputs == []

    def test_resolution_does_not_touch_catalogue(self, registry):
        resolve_ports(script_instance({"customInputs": [{"id": "speed", "type": "number"}]}), registry)
        assert [p.id for p in registry.get_node_type("script").inputs] == ["flow"]


class TestValidateScriptData:

    def test_valid_data(self):
        data = ScriptNodeData(
            custom_inputs=[NodePortDefinition(id="speed", type="number")],
            emit_signals=["moved"],
            listen_signals=["hit"],
        )
        assert validate_script_data(data) == []

    def test_valid_raw_mapping(self):
        assert validate_script_data({"code": "return 1", "customInputs": []}) == []

    @pytest.mark.parametrize("data,expected", [
        ({"code": 5}, "code must be a string"),
        ({"customInputs": "x"}, "custom inputs must be a list"),
        ({"customInputs": [3]}, "is not a port definition"),
        ({"customInputs": [{"type": "any"}]}, "has no id"),
        ({"customInputs": [{"id": "a", "type": "vector"}]}, "unknown type"),
        ({"customInputs": [{"id": "flow", "type": "any"}]}, "collides with a built-in port"),
        ({"customOutputs": [{"id": "a", "type": "any"}, {"id": "a", "type": "any"}]}, "duplicate custom output id 'a'"),
        ({"emitSignals": ["moved", "moved"]}, "duplicate emit signal 'moved'"),
        ({"listenSignals": ["  "]}, "blank listen signal name"),
        ({"listen_signals": [None]}, "blank listen signal name"),
    ])
    def test_problems_reported(self, data, expected):
        problems = validate_script_data(data)
        assert any(expected in p for p in problems), problems

    def test_not_a_mapping(self):
        assert validate_script_data(42) == ["script data must be a mapping"]

    def test_custom_base_ids(self):
        data = {"customInputs": [{"id": "flow", "type": "any"}]}
        assert validate_script_data(data, base_input_ids=set()) == []


class TestExecutionContext:

    def test_inputs_are_read_only(self, services):
        context = ScriptExecutionContext(inputs={"a": 1}, ctx=None, self_entity_id="e1", services=services)
        assert isinstance(context.inputs, MappingProxyType)
        with pytest.raises(TypeError):
            context.inputs["a"] = 2

    def test_caller_dict_not_shared(self, services):
        source = {"a": 1}
        context = ScriptExecutionContext(inputs=source, ctx=None, self_entity_id=None, services=services)
        source["a"] = 2
        assert context.inputs["a"] == 1

    def test_emit_declared_signal(self, services):
        emitted = []
        data = ScriptNodeData(emit_signals=["moved"])
        context = ScriptExecutionContext.for_node(
            data, {}, ctx=None, self_entity_id="e1", services=services,
            emitter=lambda signal, payload: emitted.append((signal, payload)),
        )
        context.emit("moved", {"entity": "e1"})
        assert emitted == [("moved", {"entity": "e1"})]

    def test_emit_undeclared_signal(self, services):
        context = ScriptExecutionContext.for_node(
            ScriptNodeData(), {}, ctx=None, self_entity_id=None, services=services,
        )
        with pytest.raises(UndeclaredSignalError, match="not declared"):
            context.emit("moved")

    def test_emit_without_emitter(self, services):
        context = ScriptExecutionContext.for_node(
            ScriptNodeData(emit_signals=["x"]), {}, ctx=None, self_entity_id=None, services=services,
        )
        context.emit("x")

    def test_services_reachable(self, services):
        context = ScriptExecutionContext(inputs={}, ctx=None, self_entity_id="e1", services=services)
        context.services.scene.translate(context.self_entity_id, 1, 0)
        assert services.scene.moves == [("e1", 1, 0)]

    def test_for_node_copies_signals(self, services):
        data = ScriptNodeData(emit_signals=["a"])
        context = ScriptExecutionContext.for_node(data, {}, ctx=None, self_entity_id=None, services=services)
        data.emit_signals.append("b")
        assert context.emit_signals == ["a"]
