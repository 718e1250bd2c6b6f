"""Exception hierarchy for errors-and-echoes.

Only configuration loading raises these to callers. Runtime paths (capture,
registry callbacks, transmission) build them as typed fault values, log
them and carry on.
"""


class EchoesError(Exception):
    """Base class for all errors-and-echoes errors."""


class ConfigError(EchoesError, ValueError):
    """Configuration could not be loaded or failed validation."""


class CaptureFault(EchoesError):
    """A capture listener itself raised while handling a host signal."""

    def __init__(self, listener: str, cause: BaseException):
        self.listener = listener
        self.cause = cause
        super().__init__(f"{listener} listener failed: {cause!r}")


class ProviderFault(EchoesError):
    """An extension-supplied callback (context provider or error filter) raised."""

    def __init__(self, extension_id: str, kind: str, cause: BaseException):
        self.extension_id = extension_id
        self.kind = kind
        self.cause = cause
        super().__init__(f"{kind} for '{extension_id}' raised {type(cause).__name__}: {cause}")


class TransmissionFault(EchoesError):
    """A report could not be delivered to its endpoint."""

    def __init__(self, url: str, reason: str, status_code: int | None = None,
                 retry_after: float | None = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        self.retry_after = retry_after
        detail = f"HTTP {status_code}: {reason}" if status_code else reason
        super().__init__(f"{url}: {detail}")
