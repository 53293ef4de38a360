"""
Custom Lua panels - user scripts saved as reusable editor panels.

Panels are kept as one JSON document on a PyFilesystem2 filesystem
(MemoryFS by default, an OSFS for a project directory in the editor).

Example usage:
    from fs.osfs import OSFS

    store = PanelStore(OSFS('/path/to/project'), path='/.ads/panels.json')
    panel = store.save_panel('My Tools', '🔧', 'return ui.text("hi")')
    store.update_panel(panel.id, name='Tools')
"""

import json
import re
import time
from typing import List, Optional

from fs.base import FS
from fs.errors import FSError
from fs.memoryfs import MemoryFS
from fs.path import dirname
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from ads.logging import get_logger

log = get_logger('panels')

DEFAULT_STORE_PATH = '/custom-panels.json'

_UPDATABLE_FIELDS = ('name', 'icon', 'lua_code')


def _now_ms() -> int:
    return int(time.time() * 1000)


def panel_slug(name: str) -> str:
    """'My Cool Panel' -> 'my-cool-panel'"""
    return re.sub(r'\s+', '-', name.lower())


class CustomPanel(BaseModel):
    """A saved panel. Timestamps are epoch milliseconds."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    icon: str = ''
    lua_code: str
    created_at: int
    updated_at: int


class PanelStore:
    """Save, list, update and delete custom panels."""

    def __init__(self, filesystem: Optional[FS] = None, path: str = DEFAULT_STORE_PATH):
        self._fs = filesystem if filesystem is not None else MemoryFS()
        self._path = path

    def list_panels(self) -> List[CustomPanel]:
        """All stored panels; a missing or unreadable store reads as empty."""
        try:
            if not self._fs.exists(self._path):
                return []
            raw = json.loads(self._fs.readtext(self._path, encoding='utf-8'))
            return [CustomPanel.model_validate(entry) for entry in raw]
        except (FSError, ValueError, TypeError, ValidationError) as e:
            log.warning("Ignoring unreadable panel store %s: %s", self._path, e)
            return []

    def _write(self, panels: List[CustomPanel]) -> None:
        parent = dirname(self._path)
        if parent and parent != '/':
            self._fs.makedirs(parent, recreate=True)
        data = [panel.model_dump(by_alias=True) for panel in panels]
        self._fs.writetext(self._path, json.dumps(data, indent=2, ensure_ascii=False), encoding='utf-8')

    def get_panel(self, panel_id: str) -> Optional[CustomPanel]:
        for panel in self.list_panels():
            if panel.id == panel_id:
                return panel
        return None

    def save_panel(self, name: str, icon: str, lua_code: str) -> CustomPanel:
        """Store a new panel under ``custom-<slug>-<epoch ms>``."""
        panels = self.list_panels()
        taken = {p.id for p in panels}

        now = _now_ms()
        stamp = now
        panel_id = f"custom-{panel_slug(name)}-{stamp}"
        while panel_id in taken:
            stamp += 1
            panel_id = f"custom-{panel_slug(name)}-{stamp}"

        panel = CustomPanel(
            id=panel_id,
            name=name,
            icon=icon,
            lua_code=lua_code,
            created_at=now,
            updated_at=now,
        )
        panels.append(panel)
        self._write(panels)
        log.info("Saved panel %s", panel_id)
        return panel

    def update_panel(self, panel_id: str, **changes) -> Optional[CustomPanel]:
        """Change name, icon or lua_code; returns None for an unknown id."""
        unknown = set(changes) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update panel field(s): {', '.join(sorted(unknown))}")

        panels = self.list_panels()
        for index, panel in enumerate(panels):
            if panel.id == panel_id:
                updated = panel.model_copy(update={**changes, 'updated_at': _now_ms()})
                panels[index] = updated
                self._write(panels)
                return updated
        return None

    def delete_panel(self, panel_id: str) -> bool:
        panels = self.list_panels()
        remaining = [p for p in panels if p.id != panel_id]
        if len(remaining) == len(panels):
            return False
        self._write(remaining)
        log.info("Deleted panel %s", panel_id)
        return True
