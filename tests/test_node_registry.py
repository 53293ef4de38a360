"""Node type models and the node type registry."""

import pytest
from pydantic import ValidationError

from ads.nodes import (
    NODE_CATEGORIES,
    PORT_COLORS,
    PORT_TYPES,
    NodePortDefinition,
    NodeTypeDefinition,
    NodeTypeRegistry,
    load_builtin_nodes,
)


def custom_node(type_id="custom-greeter", **overrides):
    fields = dict(
        id=type_id,
        name="Greeter",
        category="custom",
        inputs=[{"id": "flow", "type": "flow"}, {"id": "who", "label": "Who", "type": "string"}],
        outputs=[{"id": "flow", "type": "flow"}],
        lua_code='print("hello " .. inputs.who)',
    )
    fields.update(overrides)
    return NodeTypeDefinition(**fields)


class TestModels:

    def test_port_colors_cover_port_types(self):
        assert set(PORT_COLORS) == set(PORT_TYPES)

    def test_categories(self):
        assert NODE_CATEGORIES == ('event', 'action', 'condition', 'data', 'flow', 'custom')

    def test_camel_case_wire_format(self):
        definition = custom_node(is_custom=True)
        data = definition.to_dict()
        assert data["luaCode"] == 'print("hello " .. inputs.who)'
        assert data["isCustom"] is True
        assert "lua_code" not in data

    def test_accepts_camel_case_input(self):
        definition = NodeTypeDefinition.model_validate({
            "id": "x", "name": "X", "category": "data", "luaCode": "return 1", "isCustom": True,
        })
        assert definition.lua_code == "return 1"
        assert definition.is_custom is True

    def test_defaults(self):
        definition = NodeTypeDefinition(id="x", name="X", category="data")
        assert definition.inputs == []
        assert definition.outputs == []
        assert definition.color == "#888888"

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError):
            NodeTypeDefinition(id="x", name="X", category="weird")

    def test_unknown_port_type_rejected(self):
        with pytest.raises(ValidationError):
            NodePortDefinition(id="p", type="vector")

    def test_duplicate_port_ids_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate input port"):
            custom_node(inputs=[{"id": "a", "type": "any"}, {"id": "a", "type": "number"}])

    def test_same_id_on_input_and_output_allowed(self):
        definition = custom_node()
        assert definition.get_input("flow") is not None
        assert definition.get_output("flow") is not None
        assert definition.get_input("missing") is None


class TestBuiltins:

    def test_catalogue_loads(self):
        builtins = load_builtin_nodes()
        assert len(builtins) == 132
        assert len({d.id for d in builtins}) == len(builtins)

    def test_every_category_used(self):
        categories = {d.category for d in load_builtin_nodes()}
        assert categories == set(NODE_CATEGORIES)

    def test_script_node_has_flow_ports(self, registry):
        script = registry.get_node_type("script")
        assert [p.id for p in script.inputs] == ["flow"]
        assert [p.id for p in script.outputs] == ["flow"]

    def test_move_entity_ports(self, registry):
        move = registry.get_node_type("move-entity")
        assert move.get_input("entity").required is True
        assert move.get_input("position").type == "position"

    def test_invalid_catalogue_raises(self, tmp_path):
        path = tmp_path / "nodes.yaml"
        path.write_text("- { id: 'bad', name: 'Bad', category: 'nope' }\n", encoding="utf-8")
        with pytest.raises(ValueError, match="bad"):
            load_builtin_nodes(path)


class TestRegistry:

    def test_seeded_with_builtins(self, registry):
        assert len(registry) == 132
        assert "on-start" in registry
        assert registry.is_builtin("on-start")
        assert registry.get_custom_node_types() == []

    def test_lookup_missing(self, registry):
        assert registry.get_node_type("missing") is None
        assert "missing" not in registry

    def test_by_category(self, registry):
        flow = registry.get_nodes_by_category("flow")
        assert len(flow) == 5
        assert all(d.category == "flow" for d in flow)
        assert registry.get_nodes_by_category("nope") == []

    def test_register_custom(self, registry):
        assert registry.register_node_type(custom_node()) is True
        stored = registry.get_node_type("custom-greeter")
        assert stored.is_custom is True
        assert [d.id for d in registry.get_custom_node_types()] == ["custom-greeter"]
        assert len(registry) == 133

    def test_register_stores_a_copy(self, registry):
        definition = custom_node()
        registry.register_node_type(definition)
        definition.inputs.append(NodePortDefinition(id="extra", type="any"))
        assert registry.get_node_type("custom-greeter").get_input("extra") is None
        assert definition.is_custom is None

    def test_register_replaces_custom(self, registry):
        registry.register_node_type(custom_node(name="One"))
        registry.register_node_type(custom_node(name="Two"))
        assert registry.get_node_type("custom-greeter").name == "Two"
        assert len(registry.get_custom_node_types()) == 1

    def test_builtin_cannot_be_replaced(self, registry, capsys):
        original = registry.get_node_type("on-start")
        assert registry.register_node_type(custom_node("on-start", name="Hijack")) is False
        assert registry.get_node_type("on-start") is original
        assert "id is built in" in capsys.readouterr().out

    def test_unregister_custom(self, registry):
        registry.register_node_type(custom_node())
        assert registry.unregister_node_type("custom-greeter") is True
        assert registry.get_node_type("custom-greeter") is None

    @pytest.mark.parametrize("type_id", ["on-start", "script", "missing"])
    def test_unregister_refused(self, registry, type_id):
        before = len(registry)
        assert registry.unregister_node_type(type_id) is False
        assert len(registry) == before

    def test_explicit_builtins(self):
        registry = NodeTypeRegistry(builtins=[custom_node("only")])
        assert len(registry) == 1
        assert registry.is_builtin("only")
        assert registry.unregister_node_type("only") is False

    def test_close_clears(self, registry):
        registry.register_node_type(custom_node())
        registry.close()
        assert len(registry) == 0
        assert registry.get_all_node_types() == []

    def test_registries_are_independent(self, registry):
        other = NodeTypeRegistry()
        registry.register_node_type(custom_node())
        assert "custom-greeter" not in other
