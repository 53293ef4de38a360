"""
Lua file loader - reads script files from a project filesystem and
optionally runs them as UI scripts.

Works on any PyFilesystem2 filesystem; use OSFS for a project directory.
load() never raises: read and script failures come back in ``error``.
"""

from dataclasses import dataclass
from typing import List, Optional

from fs.base import FS
from fs.errors import FSError
from fs.path import basename, join

from ads.logging import get_logger
from ads.lua.runtime import LuaBridge
from .protocol import UIDefinition, UIScriptError, run_ui

log = get_logger('lua_loader')

# Where find_ui_templates() looks, relative to the project root
UI_TEMPLATE_DIRS = ('templates', 'ui', 'views', 'panels', 'lua')


@dataclass
class LoadedLuaFile:
    """Result of loading one script file."""
    path: str
    name: str
    content: str
    ui_definition: Optional[UIDefinition] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class LuaFileLoader:
    """Loads .lua files from ``filesystem`` and runs them on ``bridge``."""

    def __init__(self, filesystem: FS, bridge: LuaBridge):
        self._fs = filesystem
        self._bridge = bridge

    def load(self, path: str, execute_as_ui: bool = True) -> LoadedLuaFile:
        name = basename(path) or path

        try:
            content = self._fs.readtext(path, encoding='utf-8')
        except (FSError, UnicodeDecodeError) as e:
            log.warning("Failed to load %s: %s", path, e)
            return LoadedLuaFile(path, name, '', error=f"Failed to load file: {e}")

        if not execute_as_ui:
            return LoadedLuaFile(path, name, content)

        try:
            definition = run_ui(self._bridge, content, name=name)
        except UIScriptError as e:
            return LoadedLuaFile(path, name, content, error=e.message)

        return LoadedLuaFile(path, name, content, ui_definition=definition)

    def find_lua_files(self, base_path: str, recursive: bool = False) -> List[str]:
        """Paths of the .lua files under ``base_path``; [] if it does not exist."""
        found: List[str] = []
        self._scan(base_path, recursive, found)
        return found

    def _scan(self, dir_path: str, recursive: bool, found: List[str]) -> None:
        try:
            entries = sorted(self._fs.scandir(dir_path), key=lambda info: info.name)
        except FSError as e:
            log.debug("Skipping %s: %s", dir_path, e)
            return

        for info in entries:
            entry_path = join(dir_path, info.name)
            if info.is_dir:
                if recursive:
                    self._scan(entry_path, recursive, found)
            elif info.name.endswith('.lua'):
                found.append(entry_path)

    def find_ui_templates(self, project_root: str = '/') -> List[str]:
        """Every .lua file in the usual UI script folders, recursively."""
        files: List[str] = []
        for folder in UI_TEMPLATE_DIRS:
            files.extend(self.find_lua_files(join(project_root, folder), recursive=True))
        return files
