"""
UI component catalogue.

The closed set of tags Lua scripts can build with ``ui.<tag>(...)``, with
per-tag metadata for editor help and ``get_component_info``. The catalogue
lives in components.yaml next to this module.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel

from ads.yaml import load as yaml_load

CATALOGUE_PATH = Path(__file__).parent / 'components.yaml'

ComponentCategory = Literal['layout', 'display', 'input', 'data', 'feedback']


class UIComponentProp(BaseModel):
    """One documented prop of a component."""
    name: str
    type: str
    description: str
    required: bool = False
    default: Any = None


class UIComponentMeta(BaseModel):
    """Metadata for one component tag."""
    name: str
    description: str
    category: ComponentCategory
    props: List[UIComponentProp] = []
    example: str = ''

    def to_dict(self) -> Dict[str, Any]:
        """Plain form handed to Lua by get_component_info()."""
        return self.model_dump(exclude_none=True)


@lru_cache(maxsize=1)
def _catalogue() -> Dict[str, UIComponentMeta]:
    entries = yaml_load(CATALOGUE_PATH) or []
    return {entry['name']: UIComponentMeta.model_validate(entry) for entry in entries}


def get_component(name: str) -> Optional[UIComponentMeta]:
    return _catalogue().get(name)


def component_names() -> List[str]:
    """All known tags in catalogue order."""
    return list(_catalogue())


def get_components_by_category(category: str) -> List[UIComponentMeta]:
    return [meta for meta in _catalogue().values() if meta.category == category]


def get_categories() -> List[str]:
    """Categories in order of first appearance."""
    categories: List[str] = []
    for meta in _catalogue().values():
        if meta.category not in categories:
            categories.append(meta.category)
    return categories
