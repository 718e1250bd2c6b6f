"""Deduplication and hourly rate limiting for outgoing reports.

Signatures admitted by the gates are reserved until their send attempt
finishes. A second identical error queued in the same tick is a duplicate
even though the first has not completed yet, and reserved slots count
against the hourly cap.
"""

import hashlib
import threading
from dataclasses import dataclass, field
from enum import Enum


class SuppressionReason(str, Enum):
    """Why a report attempt ended without a network call."""
    NO_CONSENT = "no_consent"
    ENDPOINT_CONSENT = "endpoint_consent"
    NO_ENDPOINT = "no_endpoint"
    ENDPOINT_PAUSED = "endpoint_paused"
    FILTERED = "filtered"
    DUPLICATE = "duplicate"
    RATE_LIMITED = "rate_limited"


TRACEBACK_HEADER = "Traceback (most recent call last):"


def stack_signature(stack: str | None, length: int = 100) -> str:
    """Short stable hash of the leading part of a stack, after the traceback header."""
    if not stack:
        return "no-stack"
    body = stack.lstrip()
    if body.startswith(TRACEBACK_HEADER):
        body = body[len(TRACEBACK_HEADER):].lstrip("\n")
    digest = hashlib.sha1(body[:length].encode("utf-8", errors="replace"))
    return digest.hexdigest()[:10]


def report_signature(extension_id: str, message: str, stack: str | None, length: int = 100) -> str:
    return f"{extension_id}:{message}:{stack_signature(stack, length)}"


@dataclass
class RateLimitState:
    """Mutable limiter state, owned by a single ``RateLimiter``."""
    recent_signature_timestamps: dict[str, float] = field(default_factory=dict)
    hourly_timestamps: list[float] = field(default_factory=list)
    reserved_signatures: set[str] = field(default_factory=set)
    paused_endpoints: dict[str, float] = field(default_factory=dict)


class RateLimiter:
    """Thread-safe dedup window plus rolling hourly cap."""

    def __init__(self, max_per_window: int = 50, window_seconds: float = 3600.0,
                 dedup_window_seconds: float = 60.0):
        self.max_per_window = max_per_window
        self.window_seconds = window_seconds
        self.dedup_window_seconds = dedup_window_seconds
        self.state = RateLimitState()
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        self.state.hourly_timestamps = [t for t in self.state.hourly_timestamps if t > cutoff]
        dedup_cutoff = now - self.dedup_window_seconds
        self.state.recent_signature_timestamps = {
            sig: t for sig, t in self.state.recent_signature_timestamps.items() if t > dedup_cutoff
        }
        self.state.paused_endpoints = {
            url: until for url, until in self.state.paused_endpoints.items() if until > now
        }

    def admit(self, signature: str, now: float) -> SuppressionReason | None:
        """Reserve a send slot for ``signature``, or say why not.

        Duplicates are rejected before the cap is consulted, so they never
        count against the rate limit.
        """
        with self._lock:
            self._prune(now)
            if signature in self.state.reserved_signatures:
                return SuppressionReason.DUPLICATE
            last_sent = self.state.recent_signature_timestamps.get(signature)
            if last_sent is not None and now - last_sent < self.dedup_window_seconds:
                return SuppressionReason.DUPLICATE
            in_use = len(self.state.hourly_timestamps) + len(self.state.reserved_signatures)
            if in_use >= self.max_per_window:
                return SuppressionReason.RATE_LIMITED
            self.state.reserved_signatures.add(signature)
            return None

    def commit(self, signature: str, now: float) -> None:
        """Turn a reservation into a recorded send."""
        with self._lock:
            self.state.reserved_signatures.discard(signature)
            self.state.recent_signature_timestamps[signature] = now
            self.state.hourly_timestamps.append(now)

    def release(self, signature: str) -> None:
        """Drop a reservation whose send did not succeed."""
        with self._lock:
            self.state.reserved_signatures.discard(signature)

    def pause_endpoint(self, url: str, until: float) -> None:
        with self._lock:
            self.state.paused_endpoints[url] = max(until, self.state.paused_endpoints.get(url, 0.0))

    def is_paused(self, url: str, now: float) -> bool:
        with self._lock:
            return self.state.paused_endpoints.get(url, 0.0) > now

    def recent_count(self, now: float) -> int:
        with self._lock:
            self._prune(now)
            return len(self.state.hourly_timestamps)

    def reset(self) -> None:
        with self._lock:
            self.state = RateLimitState()
