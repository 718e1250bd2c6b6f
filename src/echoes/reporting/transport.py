"""HTTP transport for report delivery."""

import logging
from typing import Any, Protocol

import requests
from pydantic import ValidationError

from echoes.errors import TransmissionFault
from echoes.models import ReportResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 8.0


class Transport(Protocol):
    """Delivers one JSON body and returns the parsed endpoint response.

    Raises:
        TransmissionFault: on network error, timeout, non-success status
            or a malformed response body
    """

    def post(self, url: str, body: dict[str, Any], headers: dict[str, str] | None = None,
             timeout: float | None = None) -> ReportResponse: ...


def _retry_after(response: requests.Response, parsed: ReportResponse | None) -> float | None:
    if parsed is not None and parsed.retry_after is not None:
        return parsed.retry_after
    header = response.headers.get("Retry-After")
    if header:
        try:
            return float(header)
        except ValueError:
            return None
    return None


class HttpTransport:
    """``requests``-based transport with a bounded per-request timeout."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, session: requests.Session | None = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def post(self, url: str, body: dict[str, Any], headers: dict[str, str] | None = None,
             timeout: float | None = None) -> ReportResponse:
        try:
            response = self.session.post(
                url,
                json=body,
                headers={"Content-Type": "application/json", **(headers or {})},
                timeout=timeout or self.timeout,
            )
        except requests.Timeout:
            raise TransmissionFault(url, "request timed out")
        except requests.RequestException as e:
            raise TransmissionFault(url, f"network error: {e}")

        parsed = None
        try:
            parsed = ReportResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            if response.ok:
                raise TransmissionFault(url, f"malformed response body: {e}", response.status_code)

        if not response.ok or parsed is None or not parsed.success:
            reason = (parsed.message if parsed and parsed.message
                      else response.reason or "request rejected")
            raise TransmissionFault(url, reason, response.status_code,
                                    retry_after=_retry_after(response, parsed))
        return parsed

    def close(self) -> None:
        self.session.close()
