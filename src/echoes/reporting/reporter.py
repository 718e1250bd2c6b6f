"""Reporting pipeline.

Each report attempt runs the gates synchronously, in order:

    consent -> filter -> dedup -> rate limit -> payload build

and then hands transmission to a detached dispatcher. The attempt ends
``SENT``, ``SUPPRESSED`` or ``FAILED``. Nothing here raises to the caller:
the code path that observed the original error must never be slowed down
or disturbed by reporting.

Callers must not wait on a ``ReportTicket`` for correctness. ``wait()``
exists so test harnesses can synchronize with the background send.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from echoes import __version__
from echoes.config import EndpointConfig, ReportingConfig
from echoes.consent import ConsentManager
from echoes.errors import TransmissionFault
from echoes.models import Attribution, CanonicalError, ReportPayload
from echoes.registry import ExtensionRegistry
from echoes.reporting.payload import PayloadBuilder
from echoes.reporting.ratelimit import RateLimiter, SuppressionReason, report_signature
from echoes.reporting.transport import HttpTransport, Transport
from echoes.utils.clock import Clock, system_clock, utc_iso

logger = logging.getLogger(__name__)

Dispatcher = Callable[[Callable[[], None]], None]

ENDPOINT_TEST_TIMEOUT = 5.0


def thread_dispatcher(task: Callable[[], None]) -> None:
    """Run ``task`` on a daemon thread; the caller never waits for it."""
    threading.Thread(target=task, name="echoes-report", daemon=True).start()


def inline_dispatcher(task: Callable[[], None]) -> None:
    """Run ``task`` immediately on the calling thread."""
    task()


class ReportOutcome(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    SUPPRESSED = "suppressed"
    FAILED = "failed"


class ReportTicket:
    """Handle on a single report attempt."""

    def __init__(self, extension_id: str, endpoint_url: str | None = None):
        self.extension_id = extension_id
        self.endpoint_url = endpoint_url
        self.signature: str | None = None
        self.outcome = ReportOutcome.PENDING
        self.reason: SuppressionReason | None = None
        self.event_id: str | None = None
        self.fault: Exception | None = None
        self._done = threading.Event()

    def _finish(self, outcome: ReportOutcome, reason: SuppressionReason | None = None,
                event_id: str | None = None, fault: Exception | None = None) -> "ReportTicket":
        self.outcome = outcome
        self.reason = reason
        self.event_id = event_id
        self.fault = fault
        self._done.set()
        return self

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: float | None = None) -> ReportOutcome:
        """Block until the attempt reaches a terminal outcome (test harnesses only)."""
        self._done.wait(timeout)
        return self.outcome

    def __repr__(self) -> str:
        return (f"ReportTicket(extension_id={self.extension_id!r}, outcome={self.outcome.value}, "
                f"reason={self.reason.value if self.reason else None})")


@dataclass(frozen=True)
class ReportStats:
    total_reports: int
    recent_reports: int
    last_report_time: str | None = None

    def to_dict(self) -> dict[str, Any]:
        stats: dict[str, Any] = {
            "totalReports": self.total_reports,
            "recentReports": self.recent_reports,
        }
        if self.last_report_time:
            stats["lastReportTime"] = self.last_report_time
        return stats


class ErrorReporter:
    """Consent-gated, deduplicated, rate-limited report delivery."""

    def __init__(
        self,
        consent: ConsentManager,
        registry: ExtensionRegistry,
        payload_builder: PayloadBuilder,
        transport: Transport | None = None,
        config: ReportingConfig | None = None,
        clock: Clock = system_clock,
        dispatcher: Dispatcher = thread_dispatcher,
        reporter_version: str = __version__,
    ):
        self.consent = consent
        self.registry = registry
        self.payload_builder = payload_builder
        self.config = config or ReportingConfig()
        self.transport = transport or HttpTransport(timeout=self.config.request_timeout)
        self.clock = clock
        self.dispatcher = dispatcher
        self.reporter_version = reporter_version
        self.limiter = RateLimiter(
            max_per_window=self.config.max_reports_per_hour,
            window_seconds=self.config.rate_window_seconds,
            dedup_window_seconds=self.config.dedup_window_seconds,
        )
        self._stats_lock = threading.Lock()
        self._total_reports = 0
        self._last_report_time: str | None = None

    def report(self, error: CanonicalError, attribution: Attribution,
               endpoint: EndpointConfig | None, context: dict[str, Any] | None = None) -> ReportTicket:
        """Run one report attempt. Never raises."""
        ticket = ReportTicket(attribution.extension_id, endpoint.url if endpoint else None)
        try:
            self._run_gates(ticket, error, attribution, endpoint, context)
        except Exception as e:
            logger.warning(f"Error reporting failed for '{attribution.extension_id}': {e}")
            if ticket.signature:
                self.limiter.release(ticket.signature)
            ticket._finish(ReportOutcome.FAILED, fault=e)
        return ticket

    def _suppress(self, ticket: ReportTicket, reason: SuppressionReason) -> None:
        logger.debug(f"Report for '{ticket.extension_id}' suppressed: {reason.value}")
        ticket._finish(ReportOutcome.SUPPRESSED, reason=reason)

    def _run_gates(self, ticket: ReportTicket, error: CanonicalError, attribution: Attribution,
                   endpoint: EndpointConfig | None, context: dict[str, Any] | None) -> None:
        extension_id = attribution.extension_id
        now = self.clock()

        # Consent gate
        if not self.consent.has_consent():
            return self._suppress(ticket, SuppressionReason.NO_CONSENT)
        if endpoint is None or not endpoint.enabled:
            return self._suppress(ticket, SuppressionReason.NO_ENDPOINT)
        if not self.consent.has_endpoint_consent(endpoint.url):
            return self._suppress(ticket, SuppressionReason.ENDPOINT_CONSENT)
        if self.limiter.is_paused(endpoint.url, now):
            return self._suppress(ticket, SuppressionReason.ENDPOINT_PAUSED)

        # Filter gate
        if self.registry.should_filter(extension_id, error):
            logger.debug(f"Error filtered by '{extension_id}' error filter")
            return self._suppress(ticket, SuppressionReason.FILTERED)

        # Dedup + rate limit
        signature = report_signature(extension_id, error.message, error.stack,
                                     self.config.stack_signature_length)
        rejection = self.limiter.admit(signature, now)
        if rejection is SuppressionReason.RATE_LIMITED:
            logger.warning(f"Rate limit reached ({self.config.max_reports_per_hour} reports/hour)")
        if rejection is not None:
            return self._suppress(ticket, rejection)
        ticket.signature = signature

        payload = self._build_payload(error, attribution, context)
        headers = self._headers(payload)
        self.dispatcher(lambda: self._transmit(ticket, endpoint.url, payload, headers))

    def _build_payload(self, error: CanonicalError, attribution: Attribution,
                       context: dict[str, Any] | None) -> ReportPayload:
        extension_context: dict[str, Any] = dict(context or {})
        registry_context = self.registry.get_context(attribution.extension_id)
        if registry_context:
            extension_context.update(registry_context)
        return self.payload_builder.build(
            error, attribution, self.consent.get_privacy_level(), extension_context
        )

    def _headers(self, payload: ReportPayload) -> dict[str, str]:
        host_version = payload.host.version
        return {
            "X-Host-Version": host_version,
            "X-Reporter-Version": self.reporter_version,
            "X-Privacy-Level": payload.meta.privacy_level,
            "User-Agent": f"ErrorsAndEchoes/{self.reporter_version} Host/{host_version}",
        }

    def _transmit(self, ticket: ReportTicket, url: str, payload: ReportPayload,
                  headers: dict[str, str]) -> None:
        try:
            response = self.transport.post(url, payload.to_wire(), headers=headers,
                                           timeout=self.config.request_timeout)
        except TransmissionFault as e:
            self.limiter.release(ticket.signature)
            if e.retry_after:
                self.limiter.pause_endpoint(url, self.clock() + e.retry_after)
                logger.warning(f"Endpoint asked to retry after {e.retry_after}s, pausing: {url}")
            logger.warning(f"Failed to send error report: {e}")
            ticket._finish(ReportOutcome.FAILED, fault=e)
            return
        except Exception as e:
            self.limiter.release(ticket.signature)
            logger.warning(f"Failed to send error report to {url}: {e}")
            ticket._finish(ReportOutcome.FAILED, fault=e)
            return

        self._record_success(ticket, response.event_id)

    def _record_success(self, ticket: ReportTicket, event_id: str | None) -> None:
        now = self.clock()
        self.limiter.commit(ticket.signature, now)
        with self._stats_lock:
            self._total_reports += 1
            self._last_report_time = utc_iso(now)
        if event_id:
            logger.info(f"Error reported | Extension: {ticket.extension_id} | Event ID: {event_id}")
        else:
            logger.info(f"Error reported | Extension: {ticket.extension_id}")
        ticket._finish(ReportOutcome.SENT, event_id=event_id)

    def get_stats(self) -> ReportStats:
        with self._stats_lock:
            total, last = self._total_reports, self._last_report_time
        return ReportStats(
            total_reports=total,
            recent_reports=self.limiter.recent_count(self.clock()),
            last_report_time=last,
        )

    def clear_stats(self) -> None:
        """Forget counters, dedup signatures and pauses."""
        self.limiter.reset()
        with self._stats_lock:
            self._total_reports = 0
            self._last_report_time = None

    reset = clear_stats

    def test_endpoint(self, url: str) -> bool:
        return probe_endpoint(self.transport, url, self.clock, self.reporter_version)


def probe_endpoint(transport: Transport, url: str, clock: Clock = system_clock,
                   reporter_version: str = __version__) -> bool:
    """Check that an endpoint answers its test route.

    The test route is the report URL with ``/report/`` replaced by ``/test/``.
    Only a successful response carrying an event id counts.
    """
    test_url = url.replace("/report/", "/test/")
    body = {"test": True, "timestamp": utc_iso(clock()), "source": "endpoint-test"}
    headers = {"X-Reporter-Version": reporter_version}
    try:
        response = transport.post(test_url, body, headers=headers, timeout=ENDPOINT_TEST_TIMEOUT)
    except Exception as e:
        logger.warning(f"Endpoint test failed: {e}")
        return False
    if response.success and response.event_id:
        logger.info(f"Endpoint test successful | Event ID: {response.event_id}")
        return True
    logger.warning(f"Endpoint test failed: {response.message or 'no event id returned'}")
    return False
