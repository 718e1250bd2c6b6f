"""Canonical error and capture context models."""

import traceback
from dataclasses import dataclass, field
from enum import Enum
from types import TracebackType


class SourceKind(str, Enum):
    """Where an error was observed."""
    SCRIPT = "script"    # sys.excepthook / threading.excepthook
    PROMISE = "promise"  # asyncio loop exception handler
    LOG = "log"          # logging records carrying exception info
    HOOK = "hook"        # host hook bus invocation
    MANUAL = "manual"    # explicit report() call


@dataclass(frozen=True)
class CanonicalError:
    """Normalized view of an error signal. Immutable once captured."""
    message: str
    type: str
    source_kind: SourceKind
    stack: str | None = None
    exception: BaseException | None = field(default=None, compare=False, repr=False)

    @classmethod
    def from_exception(cls, exc: BaseException, source_kind: SourceKind,
                       tb: TracebackType | None = None) -> "CanonicalError":
        """Build a canonical error from a raised exception."""
        tb = tb or exc.__traceback__
        stack = None
        if tb is not None:
            stack = "".join(traceback.format_exception(type(exc), exc, tb))
        return cls(
            message=str(exc),
            type=type(exc).__name__,
            source_kind=source_kind,
            stack=stack,
            exception=exc,
        )

    @classmethod
    def from_message(cls, message: str, source_kind: SourceKind,
                     type_name: str = "Error") -> "CanonicalError":
        """Build a canonical error for a signal that carries no exception object."""
        return cls(message=message or "Unknown error", type=type_name, source_kind=source_kind)


@dataclass(frozen=True)
class ErrorContext:
    """Capture-time context handed to the attribution engine."""
    source_kind: SourceKind
    timestamp: float
    hook_name: str | None = None

    @property
    def source_label(self) -> str:
        """Source tag used in attributions (``hook:<name>`` for hook errors)."""
        if self.source_kind == SourceKind.HOOK and self.hook_name:
            return f"hook:{self.hook_name}"
        return self.source_kind.value
