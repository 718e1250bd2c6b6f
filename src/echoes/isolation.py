"""Isolation boundary for extension-supplied callbacks.

Context providers and error filters are third-party code. They are only
ever invoked through ``call_isolated``, which turns a raise into a
``ProviderFault`` value instead of letting it unwind into the pipeline.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from echoes.errors import ProviderFault


@dataclass(frozen=True)
class IsolatedCall:
    """Outcome of an isolated callback: a value or a fault, never both."""
    value: Any = None
    fault: ProviderFault | None = None

    @property
    def ok(self) -> bool:
        return self.fault is None


def call_isolated(callback: Callable[..., Any], *args: Any,
                  extension_id: str = "unknown", kind: str = "callback") -> IsolatedCall:
    """Invoke ``callback`` and capture any ``Exception`` as a ``ProviderFault``."""
    try:
        return IsolatedCall(value=callback(*args))
    except Exception as e:
        return IsolatedCall(fault=ProviderFault(extension_id, kind, e))
