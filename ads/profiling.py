"""
Script run profiling.

A run is one outermost script invocation: a LuaBridge.execute() or a
run_ui(). Inside a run the bridge records the chunk it executes and every
host function the script calls into; other host code joins in with
@profile or profile_section. Runs started while another run is active
are folded into the outer one, so a UI script shows its chunk, its
callbacks and the tree validation under a single run.

Finished runs stay in a ring buffer (get_run_buffer) and are written as
``run`` records to the ``profile`` sink.

Off by default. ADS_LOGGING_PROFILE_ENABLED=1 turns it on together with the
JSONL records; profiling.enable() turns on collection only.

Usage:
    from ads import profiling

    owns_run = profiling.begin_run("startup")
    try:
        with profiling.profile_section("editor", "load panels"):
            ...
    finally:
        if owns_run:
            run = profiling.end_run()
"""

import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from functools import wraps
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar, cast

from ads.logging import create_sink_for_module, emit_record, get_settings, get_sink, register_sink

PROFILE_MODULE = 'profile'
RUN_BUFFER_SIZE = 60

# CallNode.kind values
KIND_CHUNK = 'chunk'
KIND_CALLBACK = 'callback'
KIND_SECTION = 'section'
KIND_FUNCTION = 'function'

_enabled = get_settings().record_settings(PROFILE_MODULE).enabled

_local = threading.local()
_lock = threading.Lock()
_counters = {'call': 0, 'run': 0}
_runs: deque = deque(maxlen=RUN_BUFFER_SIZE)


def _next(counter: str) -> int:
    with _lock:
        _counters[counter] += 1
        return _counters[counter]


def _ms_since(start: float) -> float:
    return (time.perf_counter() - start) * 1000


@dataclass
class CallNode:
    """
    One timed call inside a run.

    ``kind`` is 'chunk' for Lua code run by the bridge, 'callback' for a
    host function called from Lua, 'section' or 'function' for host code.
    ``error`` holds the exception that escaped the call, if any.
    """
    id: int
    parent_id: Optional[int]
    label: str
    module: str
    kind: str
    start_ms: float
    duration_ms: float = 0.0
    args: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None


@dataclass
class RunProfile:
    run: int
    label: str
    timestamp: float
    duration_ms: float = 0.0
    failed: bool = False
    calls: List[CallNode] = field(default_factory=list)

    @property
    def callbacks(self) -> List[CallNode]:
        return [c for c in self.calls if c.kind == KIND_CALLBACK]

    def to_record(self) -> Dict[str, Any]:
        return {'type': 'run', **asdict(self)}


@dataclass
class _ActiveRun:
    profile: RunProfile
    started: float = field(default_factory=time.perf_counter)
    stack: List[CallNode] = field(default_factory=list)


def _active() -> Optional[_ActiveRun]:
    return getattr(_local, 'active', None)


def is_enabled() -> bool:
    return _enabled


def enable() -> None:
    global _enabled
    _enabled = True


def disable() -> None:
    global _enabled
    _enabled = False


def begin_run(label: str) -> bool:
    """
    Start a run on this thread.

    Returns:
        True if a new run was started. False when profiling is off or a
        run is already active; calls then land in the active run, and the
        caller must not end it.
    """
    if not _enabled or _active() is not None:
        return False
    _local.active = _ActiveRun(RunProfile(run=_next('run'), label=label, timestamp=time.time()))
    return True


def current_run() -> Optional[RunProfile]:
    active = _active()
    return active.profile if active else None


def mark_failed() -> None:
    """Flag the active run as ended by a script error."""
    active = _active()
    if active is not None:
        active.profile.failed = True


def end_run() -> Optional[RunProfile]:
    """Finish the active run, buffer it and emit its record; None if no run is active."""
    active = _active()
    if active is None:
        return None
    _local.active = None

    run = active.profile
    run.duration_ms = _ms_since(active.started)
    _runs.append(run)

    if get_sink(PROFILE_MODULE) is None:
        register_sink(PROFILE_MODULE, create_sink_for_module(PROFILE_MODULE))
    emit_record(PROFILE_MODULE, run.to_record())
    return run


def get_run_buffer() -> List[RunProfile]:
    """The last RUN_BUFFER_SIZE finished runs, oldest first."""
    return list(_runs)


def clear_run_buffer() -> None:
    _runs.clear()


@contextmanager
def _record(label: str, module: str, kind: str,
            args: Optional[Dict[str, str]] = None) -> Iterator[Optional[CallNode]]:
    active = _active() if _enabled else None
    if active is None:
        yield None
        return

    node = CallNode(
        id=_next('call'),
        parent_id=active.stack[-1].id if active.stack else None,
        label=label,
        module=module,
        kind=kind,
        start_ms=_ms_since(active.started),
        args=args or {},
    )
    active.stack.append(node)
    start = time.perf_counter()
    try:
        yield node
    except Exception as e:
        node.error = f"{type(e).__name__}: {e}"
        raise
    finally:
        node.duration_ms = _ms_since(start)
        if active.stack and active.stack[-1] is node:
            active.stack.pop()
        active.profile.calls.append(node)


F = TypeVar('F', bound=Callable[..., Any])


def profile(module: str, label: Optional[str] = None, capture_args: bool = False) -> Callable[[F], F]:
    """
    Record each call of the decorated function in the active run.

    Args:
        module: Module name shown in the profile (e.g. "ui")
        label: Defaults to "{module}.{function name}"
        capture_args: Store repr() of the arguments on the call node
    """
    def decorator(func: F) -> F:
        effective_label = label or f"{module}.{func.__name__}"

        @wraps(func)
        def wrapper(*args, **kwargs):
            if not _enabled:
                return func(*args, **kwargs)
            captured = None
            if capture_args:
                captured = {f"arg{i}": repr(a) for i, a in enumerate(args)}
                captured.update({k: repr(v) for k, v in kwargs.items()})
            with _record(effective_label, module, KIND_FUNCTION, captured):
                return func(*args, **kwargs)

        return cast(F, wrapper)
    return decorator


@contextmanager
def profile_section(module: str, label: str, kind: str = KIND_SECTION) -> Iterator[None]:
    """Record the enclosed block in the active run."""
    with _record(label, module, kind):
        yield


@contextmanager
def profile_lua_callback(module: str, label: str) -> Iterator[None]:
    """Record a host function called from Lua, e.g. ``util.merge``."""
    with _record(label, module, KIND_CALLBACK):
        yield
