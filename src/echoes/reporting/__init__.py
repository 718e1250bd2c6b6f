"""Report delivery: gates, payloads and transport."""

from .payload import PayloadBuilder, SessionIdProvider, runtime_descriptor
from .ratelimit import RateLimiter, RateLimitState, SuppressionReason, report_signature, stack_signature
from .reporter import (
    Dispatcher,
    ErrorReporter,
    ReportOutcome,
    ReportStats,
    ReportTicket,
    inline_dispatcher,
    probe_endpoint,
    thread_dispatcher,
)
from .transport import HttpTransport, Transport

__all__ = [
    "Dispatcher",
    "ErrorReporter",
    "HttpTransport",
    "PayloadBuilder",
    "RateLimitState",
    "RateLimiter",
    "ReportOutcome",
    "ReportStats",
    "ReportTicket",
    "SessionIdProvider",
    "SuppressionReason",
    "Transport",
    "inline_dispatcher",
    "probe_endpoint",
    "report_signature",
    "runtime_descriptor",
    "stack_signature",
    "thread_dispatcher",
]
