"""
Failures raised by the Lua bridge.

Every failure carries a ``kind`` (``syntax``, ``runtime`` or ``marshal``) and
the interpreter's message text so callers can show it inline.
"""

from typing import Dict


class ScriptError(Exception):
    """Base class for all bridge failures."""

    kind = 'script'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message or 'unknown error'

    def to_payload(self) -> Dict[str, str]:
        """Displayable form: ``{'kind': ..., 'message': ...}``."""
        return {'kind': self.kind, 'message': self.message}

    def __str__(self) -> str:
        return self.message


class ScriptSyntaxError(ScriptError):
    """Source text failed to compile."""

    kind = 'syntax'


class ScriptRuntimeError(ScriptError):
    """Script raised during execution, or the bridge refused to run it."""

    kind = 'runtime'


class MarshalError(ScriptError):
    """A value cannot be represented on the other side of the boundary."""

    kind = 'marshal'
