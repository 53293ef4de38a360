"""
ADS logging.

Log lines go to stdout as ``[module] LEVEL: message`` with a level per
module. Two tracing switches follow the Lua bridge:

- call tracing: every call a script makes into a host function box, with
  its arguments and what went back (a value or an error)
- chunk tracing: every chunk the bridge compiles and runs

Structured records (script run profiles) go to a sink per module: a JSONL
FileSink when records are enabled for that module, a NullSink otherwise.

Environment variables, read on import:
    ADS_LOG_LEVEL=DEBUG              default level
    ADS_LOG_<MODULE>=TRACE           level for one module (ADS_LOG_LUA_BRIDGE)
    ADS_LOG_LUA_CALLS=1              trace host function calls
    ADS_LOG_LUA_SCRIPTS=1            trace chunk compile/execute
    ADS_LOG_DIR=~/ads-logs           directory for record files
    ADS_LOGGING_<MODULE>_ENABLED=1   write <module> records as JSONL
    ADS_LOGGING_<MODULE>_DIR=/tmp    record directory for one module

Usage:
    from ads.logging import get_logger

    log = get_logger('lua_bridge')
    log.debug("Compiling %s", name)
    log.host_call('util.merge', [a, b])
"""

import json
import os
import sys
import time
import traceback
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, Union


class LogLevel(IntEnum):
    TRACE = 5
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50
    OFF = 100


_LEVEL_TAGS = {
    LogLevel.TRACE: 'TRACE',
    LogLevel.DEBUG: 'DEBUG',
    LogLevel.INFO: 'INFO',
    LogLevel.WARNING: 'WARN',
    LogLevel.ERROR: 'ERROR',
    LogLevel.CRITICAL: 'CRIT',
}

# Longest rendering of a traced argument or result
_TRACE_WIDTH = 80


def parse_level(name: str) -> LogLevel:
    """'debug' -> LogLevel.DEBUG. 'WARN' is accepted; unknown names mean INFO."""
    key = name.strip().upper()
    if key == 'WARN':
        return LogLevel.WARNING
    return LogLevel.__members__.get(key, LogLevel.INFO)


# =============================================================================
# Settings
# =============================================================================

@dataclass
class RecordSettings:
    """Where one module's structured records go."""
    enabled: bool = False
    dir: Optional[str] = None


@dataclass
class LoggingSettings:
    default_level: LogLevel = LogLevel.INFO
    module_levels: Dict[str, LogLevel] = field(default_factory=dict)
    trace_calls: bool = False
    trace_scripts: bool = False
    log_dir: Optional[str] = None
    records: Dict[str, RecordSettings] = field(default_factory=dict)

    def level_for(self, module_key: str) -> LogLevel:
        return self.module_levels.get(module_key, self.default_level)

    def record_settings(self, module: str) -> RecordSettings:
        return self.records.get(module.lower(), RecordSettings())


def _truthy(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def load_env_settings(environ: Optional[Mapping[str, str]] = None) -> LoggingSettings:
    """Build settings from ADS_LOG_* and ADS_LOGGING_* variables."""
    env = os.environ if environ is None else environ
    settings = LoggingSettings()

    for key, value in env.items():
        if key == 'ADS_LOG_LEVEL':
            settings.default_level = parse_level(value)
        elif key == 'ADS_LOG_DIR':
            settings.log_dir = value
        elif key == 'ADS_LOG_LUA_CALLS':
            settings.trace_calls = _truthy(value)
        elif key == 'ADS_LOG_LUA_SCRIPTS':
            settings.trace_scripts = _truthy(value)
        elif key.startswith('ADS_LOG_'):
            settings.module_levels[key[len('ADS_LOG_'):].lower()] = parse_level(value)
        elif key.startswith('ADS_LOGGING_'):
            module, _, option = key[len('ADS_LOGGING_'):].lower().rpartition('_')
            if not module or option not in ('enabled', 'dir'):
                continue
            record = settings.records.setdefault(module, RecordSettings())
            if option == 'enabled':
                record.enabled = _truthy(value)
            else:
                record.dir = value

    return settings


_settings = load_env_settings()


def get_settings() -> LoggingSettings:
    return _settings


def configure_logging(
    level: str = 'INFO',
    modules: Optional[Dict[str, str]] = None,
    lua_calls: bool = False,
    lua_scripts: bool = False,
) -> None:
    """
    Set levels and tracing programmatically.

    Args:
        level: Default level for every module
        modules: module name -> level overrides
        lua_calls: Trace calls from scripts into host functions
        lua_scripts: Trace chunks compiled and run by the bridge
    """
    _settings.default_level = parse_level(level)
    for module, module_level in (modules or {}).items():
        _settings.module_levels[module.lower()] = parse_level(module_level)
    _settings.trace_calls = lua_calls
    _settings.trace_scripts = lua_scripts


def enable_records(module: str, enabled: bool = True, dir: Optional[str] = None) -> None:
    """Switch JSONL records for ``module`` on or off."""
    _settings.records[module.lower()] = RecordSettings(enabled=enabled, dir=dir)


def enable_all_logging() -> None:
    """DEBUG everywhere, with call and chunk tracing."""
    configure_logging(level='DEBUG', lua_calls=True, lua_scripts=True)


def disable_logging() -> None:
    _settings.default_level = LogLevel.OFF
    _settings.module_levels.clear()
    _settings.trace_calls = False
    _settings.trace_scripts = False


def get_log_dir() -> Path:
    """ADS_LOG_DIR if set, else ``$XDG_DATA_HOME/ads/logs``."""
    if _settings.log_dir:
        return Path(_settings.log_dir).expanduser()
    data_home = os.environ.get('XDG_DATA_HOME') or str(Path.home() / '.local' / 'share')
    return Path(data_home) / 'ads' / 'logs'


# =============================================================================
# Record sinks
# =============================================================================

class LogSink(ABC):
    """Destination for one module's structured records."""

    @abstractmethod
    def emit(self, record: Dict[str, Any]) -> None:
        """Write one JSON-serialisable record."""

    def flush(self) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


class NullSink(LogSink):
    """Drops every record; used when a module's records are off."""

    def emit(self, record: Dict[str, Any]) -> None:
        pass

    def close(self) -> None:
        pass


class FileSink(LogSink):
    """
    Appends records to one JSONL file.

    The file is created with a header line on the first record, so a sink
    that never receives anything leaves nothing behind.
    """

    def __init__(self, path: Union[str, Path], module: str = ''):
        self.path = Path(path)
        self.module = module
        self._file: Optional[TextIO] = None

    def _write(self, record: Dict[str, Any]) -> None:
        self._file.write(json.dumps(record, default=repr) + '\n')

    def emit(self, record: Dict[str, Any]) -> None:
        if self._file is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, 'a', encoding='utf-8')
            self._write({'type': 'header', 'module': self.module, 'pid': os.getpid(),
                         'start_time': time.time()})
        self._write({'wall_time': time.time(), **record})

    def flush(self) -> None:
        if self._file is not None:
            self._file.flush()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None


_sinks: Dict[str, LogSink] = {}


def create_sink_for_module(module: str, session_name: Optional[str] = None) -> LogSink:
    """A FileSink at ``<dir>/<session>_<module>.jsonl`` if records are on, else a NullSink."""
    settings = _settings.record_settings(module)
    if not settings.enabled:
        return NullSink()
    directory = Path(settings.dir).expanduser() if settings.dir else get_log_dir()
    session = session_name or time.strftime('%Y%m%d_%H%M%S')
    return FileSink(directory / f'{session}_{module}.jsonl', module=module)


def register_sink(module: str, sink: LogSink) -> None:
    """Route ``module``'s records to ``sink``, closing any sink it replaces."""
    previous = _sinks.get(module)
    if previous is not None and previous is not sink:
        previous.close()
    _sinks[module] = sink


def get_sink(module: str) -> Optional[LogSink]:
    return _sinks.get(module)


def emit_record(module: str, record: Dict[str, Any]) -> bool:
    """Send a record to the module's sink; False when none is registered."""
    sink = _sinks.get(module)
    if sink is None:
        return False
    sink.emit(record)
    return True


def close_all_sinks() -> None:
    for sink in _sinks.values():
        sink.close()
    _sinks.clear()


# =============================================================================
# Loggers
# =============================================================================

def _short(value: Any) -> str:
    text = repr(value)
    if len(text) > _TRACE_WIDTH:
        text = text[:_TRACE_WIDTH - 3] + '...'
    return text


class ADSLogger:
    """Leveled logger for one module, with bridge tracing helpers."""

    def __init__(self, module: str):
        self.module = module
        self._key = module.lower().replace('.', '_')

    @property
    def level(self) -> LogLevel:
        return _settings.level_for(self._key)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return level >= self.level

    def _emit(self, tag: str, msg: str, args: Sequence[Any]) -> None:
        if args:
            try:
                msg = msg % tuple(args)
            except (TypeError, ValueError):
                msg = f"{msg} {tuple(args)!r}"
        print(f"[{self.module}] {tag}: {msg}")

    def _log(self, level: LogLevel, msg: str, args: Sequence[Any]) -> None:
        if level >= self.level:
            self._emit(_LEVEL_TAGS[level], msg, args)

    def trace(self, msg: str, *args) -> None:
        self._log(LogLevel.TRACE, msg, args)

    def debug(self, msg: str, *args) -> None:
        self._log(LogLevel.DEBUG, msg, args)

    def info(self, msg: str, *args) -> None:
        self._log(LogLevel.INFO, msg, args)

    def warning(self, msg: str, *args) -> None:
        self._log(LogLevel.WARNING, msg, args)

    def error(self, msg: str, *args) -> None:
        self._log(LogLevel.ERROR, msg, args)

    def critical(self, msg: str, *args) -> None:
        self._log(LogLevel.CRITICAL, msg, args)

    def exception(self, msg: str, *args) -> None:
        """ERROR line followed by the traceback being handled, if any."""
        if not self.is_enabled_for(LogLevel.ERROR):
            return
        self._emit('ERROR', msg, args)
        if sys.exc_info()[0] is not None:
            for line in traceback.format_exc().rstrip().splitlines():
                self._emit('ERROR', '  %s', (line,))

    # Bridge tracing, printed at DEBUG when the matching switch is on

    def _tracing(self, switch: bool) -> bool:
        return switch and self.is_enabled_for(LogLevel.DEBUG)

    def host_call(self, box_name: str, args: Sequence[Any]) -> None:
        """A script called the host function boxed as ``box_name``."""
        if self._tracing(_settings.trace_calls):
            self._emit('CALL', '%s(%s)', (box_name, ', '.join(_short(a) for a in args)))

    def host_return(self, box_name: str, result: Any = None, error: Optional[str] = None) -> None:
        """What a host function box handed back to the script."""
        if not self._tracing(_settings.trace_calls):
            return
        if error is None:
            self._emit('RET', '%s -> %s', (box_name, _short(result)))
        else:
            self._emit('RAISE', '%s !! %s', (box_name, error))

    def chunk(self, name: str, phase: str) -> None:
        """A chunk reached ``phase`` ('compile' or 'execute') in the bridge."""
        if self._tracing(_settings.trace_scripts):
            self._emit('CHUNK', '%s %s', (phase, name))


@lru_cache(maxsize=64)
def get_logger(module: str) -> ADSLogger:
    """Cached logger for ``module``."""
    return ADSLogger(module)
