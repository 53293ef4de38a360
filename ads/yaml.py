"""
YAML/JSON loading helpers.

Catalogues shipped with the package (UI components, built-in node types) are
YAML files; stored graphs and panels may be either YAML or JSON.

Usage:
    from ads.yaml import load, loads

    data = load(Path('ads/nodes/builtin_nodes.yaml'))
    data = loads(text, format='json')
"""

import json
from pathlib import Path
from typing import Any, Union

import yaml


class YAMLLoadError(ValueError):
    """Raised when a document cannot be parsed."""

    def __init__(self, message: str, source: str = '<string>'):
        super().__init__(f"{source}: {message}")
        self.source = source


def loads(text: str, format: str = 'yaml', source: str = '<string>') -> Any:
    """Parse a YAML or JSON document from text.

    Args:
        text: Document contents
        format: 'yaml' or 'json'
        source: Name used in error messages

    Raises:
        YAMLLoadError: If the document is malformed
    """
    if format == 'json':
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise YAMLLoadError(str(e), source) from e

    if format != 'yaml':
        raise ValueError(f"Unknown format: {format}")

    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise YAMLLoadError(str(e), source) from e


def load(path: Union[str, Path]) -> Any:
    """Load a YAML or JSON file, picking the parser from the suffix."""
    path = Path(path)
    fmt = 'json' if path.suffix == '.json' else 'yaml'
    return loads(path.read_text(encoding='utf-8'), format=fmt, source=str(path))


def dumps(data: Any, format: str = 'yaml') -> str:
    """Serialise data as YAML (block style, key order kept) or indented JSON."""
    if format == 'json':
        return json.dumps(data, indent=2)
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
