"""errors-and-echoes - error telemetry for extensible host applications.

Captures uncaught errors inside a host process, attributes them to the
installed extension responsible, and sends consented, privacy-filtered,
deduplicated and rate-limited reports to author-configured endpoints.
"""

__version__ = "1.0.0"
__author__ = "errors-and-echoes contributors"
__description__ = "Error telemetry with extension attribution for host applications"

from echoes.config import EchoesConfig, EndpointConfig, load_config
from echoes.api import ErrorsAndEchoes

__all__ = [
    "__version__",
    "__author__",
    "__description__",
    "EchoesConfig",
    "EndpointConfig",
    "ErrorsAndEchoes",
    "load_config",
]
