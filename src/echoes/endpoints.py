"""Endpoint resolution: which configured endpoint receives an extension's reports."""

import logging

from echoes.config import EndpointConfig
from echoes.host import HostEnvironment
from echoes.identity import extension_matches_author
from echoes.registry import ExtensionRegistry

logger = logging.getLogger(__name__)


class EndpointResolver:
    """Resolves extension id -> endpoint.

    Order: the extension's registered custom endpoint (if enabled), then the
    first enabled configured endpoint listing the extension, then the first
    enabled configured endpoint whose author matches the extension's authors.
    """

    def __init__(self, registry: ExtensionRegistry, endpoints: list[EndpointConfig] | None = None,
                 host: HostEnvironment | None = None):
        self.registry = registry
        self.endpoints = list(endpoints or [])
        self.host = host

    def resolve(self, extension_id: str) -> EndpointConfig | None:
        try:
            custom = self.registry.get_endpoint(extension_id)
            if custom is not None and custom.enabled:
                return custom

            enabled = [e for e in self.endpoints if e.enabled]
            for endpoint in enabled:
                if endpoint.serves(extension_id):
                    return endpoint

            extension = self.host.get_extension(extension_id) if self.host else None
            if extension is None:
                return None
            for endpoint in enabled:
                if endpoint.author and extension_matches_author(extension, endpoint.author):
                    return endpoint
        except Exception as e:
            logger.warning(f"Failed to resolve endpoint for '{extension_id}': {e}")
        return None
