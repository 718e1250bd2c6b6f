"""Error capture surface.

Observes host error signals and forwards them, normalized, to a handler:

- ``sys.excepthook`` and ``threading.excepthook`` (script)
- an asyncio loop exception handler (promise)
- a root logging handler for WARNING+ records carrying an exception (log)
- the host hook bus ``call``/``call_all`` methods (hook)

Capturing never suppresses or alters the original error. Previous hooks and
handlers run first, hook errors are re-raised, and a listener that fails is
logged and ignored. A stopped capture that another library has chained on
top of stays in place and only delegates.
"""

import asyncio
import logging
import sys
import threading
from collections.abc import Callable
from contextlib import contextmanager
from typing import Any

from echoes.errors import CaptureFault
from echoes.models import CanonicalError, ErrorContext, SourceKind
from echoes.utils.clock import Clock, system_clock

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[CanonicalError, ErrorContext], None]

HOOK_METHODS = ("call", "call_all")

OBSERVED_MARKER = "__echoes_observed__"


class _CaptureLogHandler(logging.Handler):
    """Forwards log records that carry an exception to the capture surface."""

    def __init__(self, capture: "ErrorCapture", level: int = logging.WARNING):
        super().__init__(level)
        self.capture = capture

    def emit(self, record: logging.LogRecord) -> None:
        # Our own warnings must not feed back into the pipeline
        if record.name == "echoes" or record.name.startswith("echoes."):
            return
        if record.exc_info and isinstance(record.exc_info[1], Exception):
            self.capture._observe_exception(record.exc_info[1], SourceKind.LOG, "log",
                                            tb=record.exc_info[2])
        elif isinstance(record.msg, Exception):
            self.capture._observe_exception(record.msg, SourceKind.LOG, "log")


class ErrorCapture:
    """Installs and removes host error listeners. Start and stop are idempotent."""

    def __init__(self, handler: ErrorHandler, clock: Clock = system_clock,
                 hooks: Any = None, loop: asyncio.AbstractEventLoop | None = None,
                 log_target: logging.Logger | None = None, log_level: int = logging.WARNING):
        self.handler = handler
        self.clock = clock
        self.hooks = hooks
        self.loop = loop
        self.log_target = log_target or logging.getLogger()
        self.log_level = log_level
        self._listening = False
        self._state = threading.local()
        self._previous_excepthook = None
        self._previous_threading_excepthook = None
        self._previous_loop_handlers: dict[asyncio.AbstractEventLoop, Any] = {}
        self._excepthook_linked = False
        self._threading_excepthook_linked = False
        self._log_handler: _CaptureLogHandler | None = None
        self._original_hook_methods: dict[str, tuple[Any, bool]] = {}

    @property
    def is_listening(self) -> bool:
        return self._listening

    def start_listening(self) -> None:
        if self._listening:
            return
        logger.debug("Starting error capture (errors will remain visible)")

        # Still chained below another hook from a previous run: reuse that link
        if not self._excepthook_linked:
            self._previous_excepthook = sys.excepthook
            sys.excepthook = self._excepthook
            self._excepthook_linked = True

        if not self._threading_excepthook_linked:
            self._previous_threading_excepthook = threading.excepthook
            threading.excepthook = self._threading_excepthook
            self._threading_excepthook_linked = True

        self._log_handler = _CaptureLogHandler(self, self.log_level)
        self.log_target.addHandler(self._log_handler)

        if self.loop is not None:
            self._install_loop_handler(self.loop)
        if self.hooks is not None:
            self._patch_hooks(self.hooks)

        self._listening = True

    def stop_listening(self) -> None:
        if not self._listening:
            return
        logger.debug("Stopping error capture")

        # A hook installed on top of ours keeps calling it; ours then only delegates
        if sys.excepthook == self._excepthook:
            sys.excepthook = self._previous_excepthook
            self._previous_excepthook = None
            self._excepthook_linked = False
        else:
            logger.debug("sys.excepthook was replaced after capture started; leaving it chained")
        if threading.excepthook == self._threading_excepthook:
            threading.excepthook = self._previous_threading_excepthook
            self._previous_threading_excepthook = None
            self._threading_excepthook_linked = False

        if self._log_handler is not None:
            self.log_target.removeHandler(self._log_handler)
            self._log_handler = None

        if self.loop is not None:
            self._restore_loop_handler(self.loop)
        if self.hooks is not None:
            self._restore_hooks(self.hooks)

        self._listening = False

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Observe unhandled errors on ``loop`` (installed now if already listening)."""
        if self.loop is loop:
            return
        if self._listening and self.loop is not None:
            self._restore_loop_handler(self.loop)
        self.loop = loop
        if self._listening:
            self._install_loop_handler(loop)

    def attach_hooks(self, hooks: Any) -> None:
        """Observe errors raised while ``hooks`` dispatches host hooks."""
        if self.hooks is hooks:
            return
        if self._listening and self.hooks is not None:
            self._restore_hooks(self.hooks)
        self.hooks = hooks
        if self._listening:
            self._patch_hooks(hooks)

    # Forwarding

    @contextmanager
    def _forwarding_suspended(self):
        """Ignore signals raised on this thread while the block runs."""
        previous = getattr(self._state, "active", False)
        self._state.active = True
        try:
            yield
        finally:
            self._state.active = previous

    def _forward(self, error: CanonicalError, context: ErrorContext, listener: str) -> None:
        if getattr(self._state, "active", False):
            return
        with self._forwarding_suspended():
            try:
                self.handler(error, context)
            except Exception as e:
                logger.warning(str(CaptureFault(listener, e)))

    def _observe_exception(self, exc: BaseException, source_kind: SourceKind, listener: str,
                           hook_name: str | None = None, tb=None) -> None:
        if not self._listening or getattr(self._state, "active", False):
            return
        # A hook error the host lets escape reaches excepthook too; report it once
        if getattr(exc, OBSERVED_MARKER, False):
            return
        try:
            setattr(exc, OBSERVED_MARKER, True)
        except (AttributeError, TypeError):
            pass
        try:
            error = CanonicalError.from_exception(exc, source_kind, tb)
            context = ErrorContext(source_kind=source_kind, timestamp=self.clock(),
                                   hook_name=hook_name)
        except Exception as e:
            logger.warning(str(CaptureFault(listener, e)))
            return
        self._forward(error, context, listener)

    # Script errors

    def _excepthook(self, exc_type, exc_value, exc_traceback) -> None:
        if self._previous_excepthook is not None:
            self._previous_excepthook(exc_type, exc_value, exc_traceback)
        if isinstance(exc_value, Exception):
            self._observe_exception(exc_value, SourceKind.SCRIPT, "excepthook", tb=exc_traceback)

    def _threading_excepthook(self, args) -> None:
        if self._previous_threading_excepthook is not None:
            self._previous_threading_excepthook(args)
        if isinstance(args.exc_value, Exception):
            self._observe_exception(args.exc_value, SourceKind.SCRIPT, "threading.excepthook",
                                    tb=args.exc_traceback)

    # Async errors

    def _install_loop_handler(self, loop: asyncio.AbstractEventLoop) -> None:
        if loop in self._previous_loop_handlers:
            return
        self._previous_loop_handlers[loop] = loop.get_exception_handler()
        loop.set_exception_handler(self._loop_exception_handler)

    def _restore_loop_handler(self, loop: asyncio.AbstractEventLoop) -> None:
        # Replaced on top of ours: stay linked so the chain keeps reaching the previous handler
        if loop.get_exception_handler() == self._loop_exception_handler:
            loop.set_exception_handler(self._previous_loop_handlers.pop(loop, None))

    def _loop_exception_handler(self, loop: asyncio.AbstractEventLoop, context: dict) -> None:
        # The default handler logs the error; that record must not be captured twice
        with self._forwarding_suspended():
            previous = self._previous_loop_handlers.get(loop)
            if previous is not None:
                previous(loop, context)
            else:
                loop.default_exception_handler(context)

        if not self._listening or loop is not self.loop:
            return
        exc = context.get("exception")
        if isinstance(exc, Exception):
            self._observe_exception(exc, SourceKind.PROMISE, "asyncio")
            return
        try:
            error = CanonicalError.from_message(
                str(context.get("message") or exc or "Unhandled rejection"), SourceKind.PROMISE
            )
            ctx = ErrorContext(source_kind=SourceKind.PROMISE, timestamp=self.clock())
        except Exception as e:
            logger.warning(str(CaptureFault("asyncio", e)))
            return
        self._forward(error, ctx, "asyncio")

    # Host hooks

    def _patch_hooks(self, hooks: Any) -> None:
        for method_name in HOOK_METHODS:
            original = getattr(hooks, method_name, None)
            if original is None or method_name in self._original_hook_methods:
                continue
            was_instance_attr = method_name in getattr(hooks, "__dict__", {})
            self._original_hook_methods[method_name] = (original, was_instance_attr)
            setattr(hooks, method_name, self._wrap_hook_method(original))

    def _restore_hooks(self, hooks: Any) -> None:
        for method_name, (original, was_instance_attr) in self._original_hook_methods.items():
            if was_instance_attr:
                setattr(hooks, method_name, original)
            else:
                try:
                    delattr(hooks, method_name)
                except AttributeError:
                    setattr(hooks, method_name, original)
        self._original_hook_methods.clear()

    def _wrap_hook_method(self, original: Callable[..., Any]) -> Callable[..., Any]:
        def wrapper(hook_name: str, *args: Any, **kwargs: Any) -> Any:
            try:
                return original(hook_name, *args, **kwargs)
            except Exception as e:
                self._observe_exception(e, SourceKind.HOOK, "hooks", hook_name=hook_name)
                raise
        wrapper.__wrapped__ = original
        return wrapper
