"""Time source used by the consent, rate limiting and payload code.

Every service takes a ``clock`` callable returning epoch seconds so that
dedup and rate windows can be driven deterministically in tests.
"""

import time
from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], float]


def system_clock() -> float:
    """Current wall-clock time in epoch seconds."""
    return time.time()


def utc_iso(timestamp: float) -> str:
    """Format epoch seconds as an ISO 8601 UTC timestamp."""
    return datetime.fromtimestamp(timestamp, UTC).isoformat()


def utc_date(timestamp: float) -> str:
    """Calendar day (UTC) of an epoch timestamp, as YYYY-MM-DD."""
    return datetime.fromtimestamp(timestamp, UTC).strftime("%Y-%m-%d")
