"""Public API surface for errors-and-echoes.

``ErrorsAndEchoes`` owns one of each service and wires capture to attribution
to reporting. Each collaborator can be injected; the defaults are built from
an ``EchoesConfig``.
"""

import logging
from collections.abc import Mapping
from typing import Any

from echoes.attribution import AttributionEngine, StackProvider, current_stack
from echoes.capture import ErrorCapture
from echoes.config import EchoesConfig, EndpointConfig
from echoes.consent import ConsentManager
from echoes.endpoints import EndpointResolver
from echoes.host import HostEnvironment, StaticHost
from echoes.models import (
    Attribution,
    AttributionMethod,
    CanonicalError,
    Confidence,
    ErrorContext,
    PrivacyLevel,
    SourceKind,
    calculate_confidence_score,
)
from echoes.registry import ContextProvider, ErrorFilter, ExtensionRegistry
from echoes.reporting import (
    Dispatcher,
    ErrorReporter,
    PayloadBuilder,
    ReportOutcome,
    ReportTicket,
    SessionIdProvider,
    SuppressionReason,
    Transport,
    thread_dispatcher,
)
from echoes.settings import MemorySettingsStore, SettingsStore
from echoes.utils.clock import Clock, system_clock

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class ErrorsAndEchoes:
    """Error telemetry for a host application and its extensions."""

    def __init__(
        self,
        config: EchoesConfig | None = None,
        host: HostEnvironment | None = None,
        settings: SettingsStore | None = None,
        transport: Transport | None = None,
        hooks: Any = None,
        clock: Clock = system_clock,
        dispatcher: Dispatcher = thread_dispatcher,
        stack_provider: StackProvider = current_stack,
    ):
        self.config = config or EchoesConfig()
        self.host = host or StaticHost()
        self.settings = settings if settings is not None else MemorySettingsStore()
        self.clock = clock
        logging.getLogger("echoes").setLevel(_LOG_LEVELS.get(self.config.logging.level, logging.INFO))

        self.consent = ConsentManager(self.settings, clock=clock,
                                      expiry_days=self.config.consent.expiry_days)
        self.registry = ExtensionRegistry(clock=clock, host=self.host,
                                          patterns=self.config.attribution.patterns)
        self.attribution = AttributionEngine(self.registry,
                                             extension_root=self.config.attribution.extension_root,
                                             stack_provider=stack_provider)
        self.endpoints = EndpointResolver(self.registry, self.config.endpoints, self.host)
        self.reporter = ErrorReporter(
            consent=self.consent,
            registry=self.registry,
            payload_builder=PayloadBuilder(self.host, SessionIdProvider(self.settings, clock), clock),
            transport=transport,
            config=self.config.reporting,
            clock=clock,
            dispatcher=dispatcher,
        )
        self.capture = ErrorCapture(self.handle_error, clock=clock, hooks=hooks)
        self.last_ticket: ReportTicket | None = None

    # Lifecycle

    def start(self) -> bool:
        """Start capturing if the user has consented. Returns whether capture is active."""
        if self.consent.has_consent():
            self.capture.start_listening()
            logger.info("Error capture started (user has consented)")
        return self.capture.is_listening

    def stop(self) -> None:
        self.capture.stop_listening()

    @property
    def is_listening(self) -> bool:
        return self.capture.is_listening

    # Capture path

    def handle_error(self, error: CanonicalError, context: ErrorContext,
                     extra_context: Mapping[str, Any] | None = None) -> ReportTicket:
        """Attribute a captured error and run it through the reporting pipeline."""
        attribution = self.attribution.attribute(error, context)
        return self._send(error, attribution, extra_context)

    def _send(self, error: CanonicalError, attribution: Attribution,
              extra_context: Mapping[str, Any] | None) -> ReportTicket:
        if not self.consent.has_consent():
            ticket = ReportTicket(attribution.extension_id)
            ticket._finish(ReportOutcome.SUPPRESSED, reason=SuppressionReason.NO_CONSENT)
        else:
            endpoint = self.endpoints.resolve(attribution.extension_id)
            ticket = self.reporter.report(error, attribution, endpoint, dict(extra_context or {}))
        self.last_ticket = ticket
        return ticket

    # Public API for extensions

    def register(self, extension_id: str, context_provider: ContextProvider | None = None,
                 error_filter: ErrorFilter | None = None,
                 endpoint: EndpointConfig | Mapping[str, Any] | None = None) -> bool:
        """Register an extension for enhanced reporting. Last call for an id wins."""
        return self.registry.register(extension_id, context_provider, error_filter, endpoint)

    def report(self, error: BaseException | CanonicalError, extension_id: str | None = None,
               context: Mapping[str, Any] | None = None) -> ReportTicket:
        """Manually report an error through the same pipeline as captured ones.

        Args:
            error: Exception (raised or not) or an already canonical error
            extension_id: Attribute to this extension instead of running attribution
            context: Extra data merged into ``extensionContext``
        """
        try:
            if isinstance(error, CanonicalError):
                canonical = error
            else:
                canonical = CanonicalError.from_exception(error, SourceKind.MANUAL)
            if extension_id:
                attribution = Attribution(
                    extension_id=extension_id,
                    confidence=Confidence.NONE,
                    method=AttributionMethod.UNKNOWN,
                    source=SourceKind.MANUAL.value,
                    score=calculate_confidence_score(AttributionMethod.UNKNOWN, SourceKind.MANUAL),
                )
            else:
                ctx = ErrorContext(source_kind=SourceKind.MANUAL, timestamp=self.clock())
                attribution = self.attribution.attribute(canonical, ctx)
            return self._send(canonical, attribution, context)
        except Exception as e:
            logger.warning(f"Manual error report failed: {e}")
            ticket = ReportTicket(extension_id or "unknown")
            return ticket._finish(ReportOutcome.FAILED, fault=e)

    def has_consent(self) -> bool:
        return self.consent.has_consent()

    def get_privacy_level(self) -> PrivacyLevel:
        return self.consent.get_privacy_level()

    def get_stats(self) -> dict[str, Any]:
        return self.reporter.get_stats().to_dict()

    # User actions

    def set_consent(self, enabled: bool, privacy_level: PrivacyLevel | str | None = None) -> None:
        """Record the user's decision and start or stop capture to match."""
        self.consent.set_consent(enabled, privacy_level)
        if self.consent.has_consent():
            self.capture.start_listening()
        else:
            self.capture.stop_listening()

    def revoke_consent(self) -> None:
        self.consent.revoke_consent()
        self.capture.stop_listening()

    def set_endpoint_consent(self, url: str, enabled: bool) -> None:
        self.consent.set_endpoint_consent(url, enabled)

    def test_endpoint(self, url: str) -> bool:
        return self.reporter.test_endpoint(url)

    def reset(self) -> None:
        """Stop capture and clear all session state."""
        self.capture.stop_listening()
        self.registry.clear()
        self.reporter.reset()
        self.consent.reset()
        self.last_ticket = None
