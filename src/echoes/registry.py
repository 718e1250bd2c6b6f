"""Extension registry for enhanced error reporting.

Extensions register a context provider (extra data merged into their
reports), an error filter (returning ``True`` suppresses a report) and an
optional custom endpoint. The registry also owns the pattern signatures
consulted by the attribution engine.
"""

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from echoes.config import EndpointConfig, PatternConfig
from echoes.host import HostEnvironment
from echoes.isolation import call_isolated
from echoes.models import CanonicalError
from echoes.utils.clock import Clock, system_clock

logger = logging.getLogger(__name__)

ContextProvider = Callable[[], Mapping[str, Any]]
ErrorFilter = Callable[[CanonicalError], bool]


@dataclass
class RegisteredExtension:
    """Registration record for a single extension id."""
    id: str
    context_provider: ContextProvider | None
    error_filter: ErrorFilter | None
    endpoint: EndpointConfig | None
    registration_timestamp: float
    context_call_count: int = 0
    filter_call_count: int = 0
    last_context_call_timestamp: float | None = None
    provider_disabled: bool = False


@dataclass(frozen=True)
class SignaturePattern:
    """A compiled (pattern, extension id) pair for pattern-match attribution."""
    pattern: re.Pattern
    extension_id: str


@dataclass(frozen=True)
class RegistryStats:
    total_registered: int
    with_context: int
    with_filters: int
    with_endpoints: int
    total_context_calls: int
    total_filter_calls: int
    disabled_providers: int

    def to_dict(self) -> dict[str, int]:
        return {
            "totalRegistered": self.total_registered,
            "extensionsWithContext": self.with_context,
            "extensionsWithFilters": self.with_filters,
            "extensionsWithEndpoints": self.with_endpoints,
            "totalContextCalls": self.total_context_calls,
            "totalFilterCalls": self.total_filter_calls,
            "disabledProviders": self.disabled_providers,
        }


class ExtensionRegistry:
    """Holds id -> RegisteredExtension plus attribution pattern signatures."""

    def __init__(self, clock: Clock = system_clock, host: HostEnvironment | None = None,
                 patterns: list[PatternConfig] | None = None):
        self.clock = clock
        self.host = host
        self._extensions: dict[str, RegisteredExtension] = {}
        self._default_patterns = list(patterns or [])
        self._patterns: list[SignaturePattern] = []
        self._load_default_patterns()

    def register(
        self,
        extension_id: str,
        context_provider: ContextProvider | None = None,
        error_filter: ErrorFilter | None = None,
        endpoint: EndpointConfig | None = None,
    ) -> bool:
        """Create or fully replace the registration for ``extension_id``.

        Never raises. Invalid registrations are logged and rejected so one
        misbehaving extension cannot block the others.

        Returns:
            True if the registration was stored
        """
        try:
            if not isinstance(extension_id, str) or not extension_id:
                logger.warning(f"Cannot register extension with invalid id: {extension_id!r}")
                return False
            if context_provider is not None and not callable(context_provider):
                logger.warning(f"Context provider for '{extension_id}' must be callable")
                return False
            if error_filter is not None and not callable(error_filter):
                logger.warning(f"Error filter for '{extension_id}' must be callable")
                return False
            if endpoint is not None and not isinstance(endpoint, EndpointConfig):
                endpoint = EndpointConfig.model_validate(endpoint)

            if self.host is not None and self.host.get_extension(extension_id) is None:
                logger.warning(f"Extension '{extension_id}' is not known to the host; registering anyway")

            self._extensions[extension_id] = RegisteredExtension(
                id=extension_id,
                context_provider=context_provider,
                error_filter=error_filter,
                endpoint=endpoint,
                registration_timestamp=self.clock(),
            )
        except Exception as e:
            logger.warning(f"Failed to register extension '{extension_id}': {e}")
            return False

        logger.info(
            f"Extension '{extension_id}' registered "
            f"(context provider: {'yes' if context_provider else 'no'}, "
            f"error filter: {'yes' if error_filter else 'no'}, "
            f"custom endpoint: {'yes' if endpoint else 'no'})"
        )
        return True

    def unregister(self, extension_id: str) -> bool:
        """Remove a registration. Returns True if one existed."""
        removed = self._extensions.pop(extension_id, None) is not None
        if removed:
            logger.info(f"Extension '{extension_id}' unregistered")
        return removed

    def is_registered(self, extension_id: str) -> bool:
        return extension_id in self._extensions

    def get(self, extension_id: str) -> RegisteredExtension | None:
        return self._extensions.get(extension_id)

    def all(self) -> list[RegisteredExtension]:
        return list(self._extensions.values())

    def get_context(self, extension_id: str) -> dict[str, Any] | None:
        """Run the extension's context provider.

        A provider that raises is disabled for the rest of the session and
        never invoked again.
        """
        registered = self._extensions.get(extension_id)
        if registered is None or registered.context_provider is None:
            return None
        if registered.provider_disabled:
            return None

        outcome = call_isolated(
            registered.context_provider, extension_id=extension_id, kind="context provider"
        )
        if not outcome.ok:
            registered.provider_disabled = True
            logger.warning(f"{outcome.fault}; provider disabled for this session")
            return None

        registered.context_call_count += 1
        registered.last_context_call_timestamp = self.clock()

        if not isinstance(outcome.value, Mapping):
            logger.warning(f"Context provider for '{extension_id}' returned invalid data: "
                           f"{type(outcome.value).__name__}")
            return None
        return dict(outcome.value)

    def should_filter(self, extension_id: str, error: CanonicalError) -> bool:
        """True if the extension's filter asks to suppress this error.

        A filter that raises does not suppress (fail open) and is tried
        again on later errors.
        """
        registered = self._extensions.get(extension_id)
        if registered is None or registered.error_filter is None:
            return False

        registered.filter_call_count += 1
        outcome = call_isolated(
            registered.error_filter, error, extension_id=extension_id, kind="error filter"
        )
        if not outcome.ok:
            logger.warning(f"{outcome.fault}; not filtering")
            return False
        return bool(outcome.value)

    def get_endpoint(self, extension_id: str) -> EndpointConfig | None:
        registered = self._extensions.get(extension_id)
        return registered.endpoint if registered else None

    def get_stats(self) -> RegistryStats:
        extensions = self.all()
        return RegistryStats(
            total_registered=len(extensions),
            with_context=sum(1 for e in extensions if e.context_provider),
            with_filters=sum(1 for e in extensions if e.error_filter),
            with_endpoints=sum(1 for e in extensions if e.endpoint),
            total_context_calls=sum(e.context_call_count for e in extensions),
            total_filter_calls=sum(e.filter_call_count for e in extensions),
            disabled_providers=sum(1 for e in extensions if e.provider_disabled),
        )

    # Pattern signatures

    def add_pattern(self, pattern: str | re.Pattern, extension_id: str) -> bool:
        """Append a signature pattern. Returns False if the pattern does not compile."""
        try:
            compiled = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern)
        except re.error as e:
            logger.warning(f"Invalid attribution pattern {pattern!r} for '{extension_id}': {e}")
            return False
        self._patterns.append(SignaturePattern(compiled, extension_id))
        return True

    def remove_patterns(self, extension_id: str) -> int:
        """Drop every pattern pointing at ``extension_id``. Returns how many were removed."""
        before = len(self._patterns)
        self._patterns = [p for p in self._patterns if p.extension_id != extension_id]
        return before - len(self._patterns)

    def get_patterns(self) -> tuple[SignaturePattern, ...]:
        """Immutable snapshot for the attribution engine."""
        return tuple(self._patterns)

    def _load_default_patterns(self) -> None:
        for entry in self._default_patterns:
            self.add_pattern(entry.pattern, entry.extension_id)

    def clear(self) -> None:
        """Drop all registrations and restore default patterns."""
        count = len(self._extensions)
        self._extensions.clear()
        self._patterns = []
        self._load_default_patterns()
        logger.debug(f"Cleared {count} extension registrations")

    reset = clear
