"""
Node type registry.

One explicit registry instance per editor session, seeded with the built-in
catalogue (builtin_nodes.yaml) when constructed. Custom node types can be
added and removed at runtime; built-in entries can be neither replaced nor
removed. Lookups and removal never raise.

Usage:
    registry = NodeTypeRegistry()
    registry.register_node_type(NodeTypeDefinition(id='custom-1', ...))
    registry.unregister_node_type('custom-1')   # True
    registry.unregister_node_type('on-start')   # False, built in
"""

from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import ValidationError

from ads.logging import get_logger
from ads.yaml import load as yaml_load
from .types import NodeTypeDefinition

log = get_logger('nodes')

BUILTIN_NODES_PATH = Path(__file__).parent / 'builtin_nodes.yaml'


def load_builtin_nodes(path: Union[str, Path] = BUILTIN_NODES_PATH) -> List[NodeTypeDefinition]:
    """Parse the built-in catalogue.

    Raises:
        ValueError: if any entry is malformed (the catalogue ships with the
            package, so this is a packaging bug)
    """
    entries = yaml_load(path) or []
    definitions = []
    for entry in entries:
        try:
            definitions.append(NodeTypeDefinition.model_validate(entry))
        except ValidationError as e:
            raise ValueError(f"Invalid built-in node type {entry.get('id')!r}: {e}") from e
    return definitions


@lru_cache(maxsize=1)
def _default_builtins() -> tuple:
    return tuple(load_builtin_nodes())


class NodeTypeRegistry:
    """Catalogue of node types keyed by id."""

    def __init__(self, builtins: Optional[List[NodeTypeDefinition]] = None):
        self._types: Dict[str, NodeTypeDefinition] = {}
        self._builtin_ids: set = set()

        for definition in (_default_builtins() if builtins is None else builtins):
            self._types[definition.id] = definition
            self._builtin_ids.add(definition.id)

        log.debug("Node registry seeded with %d built-in types", len(self._builtin_ids))

    def close(self) -> None:
        """Drop every entry, built-in and custom."""
        self._types.clear()
        self._builtin_ids.clear()

    def get_node_type(self, type_id: str) -> Optional[NodeTypeDefinition]:
        return self._types.get(type_id)

    def get_all_node_types(self) -> List[NodeTypeDefinition]:
        return list(self._types.values())

    def get_nodes_by_category(self, category: str) -> List[NodeTypeDefinition]:
        return [d for d in self._types.values() if d.category == category]

    def get_custom_node_types(self) -> List[NodeTypeDefinition]:
        return [d for d in self._types.values() if d.id not in self._builtin_ids]

    def is_builtin(self, type_id: str) -> bool:
        return type_id in self._builtin_ids

    def register_node_type(self, definition: NodeTypeDefinition) -> bool:
        """Add or replace a custom node type.

        A copy marked ``is_custom=True`` is stored. Returns False, leaving
        the registry unchanged, when the id belongs to a built-in.
        """
        if definition.id in self._builtin_ids:
            log.warning("Refusing to register node type %s: id is built in", definition.id)
            return False

        replaced = definition.id in self._types
        self._types[definition.id] = definition.model_copy(update={'is_custom': True}, deep=True)
        log.debug("%s custom node type %s", 'Replaced' if replaced else 'Registered', definition.id)
        return True

    def unregister_node_type(self, type_id: str) -> bool:
        """Remove a custom node type; False for absent or built-in ids."""
        definition = self._types.get(type_id)
        if definition is None or type_id in self._builtin_ids or not definition.is_custom:
            return False
        del self._types[type_id]
        log.debug("Unregistered custom node type %s", type_id)
        return True

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._types

    def __len__(self) -> int:
        return len(self._types)
