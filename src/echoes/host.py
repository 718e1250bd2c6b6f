"""Interfaces to the embedding host application.

The reporting core never reaches into host globals. Host facts (version,
active extensions, current scene) are read through ``HostEnvironment`` and
host extensibility hooks are dispatched through a ``HookBus``-shaped object
exposing ``call`` and ``call_all``.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@dataclass
class ExtensionInfo:
    """An installed extension as the host describes it."""
    id: str
    version: str = "0.0.0"
    active: bool = True
    title: str | None = None
    # Any author shape the host manifest allows: str, mapping, object, or iterable of those.
    authors: Any = None
    author: str | None = None  # legacy single-author field


@runtime_checkable
class HostEnvironment(Protocol):
    """Read-only host facts used by payload building and endpoint matching."""

    @property
    def version(self) -> str: ...

    @property
    def subsystem(self) -> tuple[str, str] | None: ...

    def active_extensions(self) -> list[ExtensionInfo]: ...

    def get_extension(self, extension_id: str) -> ExtensionInfo | None: ...

    def current_scene(self) -> str | None: ...


@dataclass
class StaticHost:
    """In-memory ``HostEnvironment`` for embedding and tests."""
    version: str = "0.0.0"
    subsystem: tuple[str, str] | None = None
    extensions: list[ExtensionInfo] = field(default_factory=list)
    scene: str | None = None

    def active_extensions(self) -> list[ExtensionInfo]:
        return [ext for ext in self.extensions if ext.active]

    def get_extension(self, extension_id: str) -> ExtensionInfo | None:
        for ext in self.extensions:
            if ext.id == extension_id:
                return ext
        return None

    def current_scene(self) -> str | None:
        return self.scene

    def add_extension(self, extension: ExtensionInfo) -> None:
        self.extensions = [e for e in self.extensions if e.id != extension.id]
        self.extensions.append(extension)


class HookBus:
    """Minimal named-hook dispatcher with the shape capture expects.

    ``call`` stops at the first callback returning ``False`` and reports
    whether the chain completed; ``call_all`` always runs every callback.
    """

    def __init__(self) -> None:
        self._callbacks: dict[str, list[Callable[..., Any]]] = {}

    def on(self, name: str, callback: Callable[..., Any]) -> None:
        self._callbacks.setdefault(name, []).append(callback)

    def off(self, name: str, callback: Callable[..., Any]) -> None:
        callbacks = self._callbacks.get(name, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def call(self, name: str, *args: Any) -> bool:
        for callback in list(self._callbacks.get(name, [])):
            if callback(*args) is False:
                return False
        return True

    def call_all(self, name: str, *args: Any) -> bool:
        for callback in list(self._callbacks.get(name, [])):
            callback(*args)
        return True
