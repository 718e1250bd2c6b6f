"""Report payload construction.

Each privacy level adds fields on top of the previous one:

- minimal: error, attribution, host version, meta
- standard: + host subsystem, active extension list, daily anonymous session id
- detailed: + coarse runtime descriptor, current scene

Extension context goes under ``extensionContext`` at every level because the
extension opted in by registering a provider.
"""

import logging
import platform
import sys
import uuid
from typing import Any

from echoes import __version__
from echoes.host import HostEnvironment
from echoes.models import (
    Attribution,
    AttributionSection,
    CanonicalError,
    ClientSection,
    ErrorSection,
    ExtensionVersion,
    HostSection,
    MetaSection,
    PrivacyLevel,
    ReportPayload,
    SubsystemInfo,
)
from echoes.settings import MemorySettingsStore, SettingsStore
from echoes.utils.clock import Clock, system_clock, utc_date, utc_iso

logger = logging.getLogger(__name__)

SESSION_KEY = "session"


def runtime_descriptor() -> str:
    """Interpreter name and major version only, e.g. ``CPython/3``."""
    return f"{platform.python_implementation()}/{sys.version_info.major}"


class SessionIdProvider:
    """Anonymous session id, stable for one UTC calendar day."""

    def __init__(self, store: SettingsStore | None = None, clock: Clock = system_clock):
        self.store = store if store is not None else MemorySettingsStore()
        self.clock = clock
        self._fallback: tuple[str, str] | None = None

    def get(self) -> str:
        today = utc_date(self.clock())
        try:
            stored = self.store.get(SESSION_KEY)
            if isinstance(stored, str) and "|" in stored:
                day, session_id = stored.split("|", 1)
                if day == today and session_id:
                    return session_id
            session_id = self._new_id()
            self.store.set(SESSION_KEY, f"{today}|{session_id}")
            return session_id
        except Exception as e:
            logger.debug(f"Session store unavailable, using process-local session id: {e}")
            if self._fallback is None or self._fallback[0] != today:
                self._fallback = (today, self._new_id())
            return self._fallback[1]

    @staticmethod
    def _new_id() -> str:
        return f"anon-{uuid.uuid4().hex[:13]}"


class PayloadBuilder:
    """Assembles ``ReportPayload`` objects from an error and host facts."""

    def __init__(self, host: HostEnvironment, session_ids: SessionIdProvider | None = None,
                 clock: Clock = system_clock, reporter_version: str = __version__):
        self.host = host
        self.clock = clock
        self.session_ids = session_ids or SessionIdProvider(clock=clock)
        self.reporter_version = reporter_version

    def build(self, error: CanonicalError, attribution: Attribution, privacy_level: PrivacyLevel,
              extension_context: dict[str, Any] | None = None) -> ReportPayload:
        host = HostSection(version=self.host.version)
        client = None

        if privacy_level.includes(PrivacyLevel.STANDARD):
            subsystem = self.host.subsystem
            if subsystem:
                host.subsystem = SubsystemInfo(id=subsystem[0], version=subsystem[1])
            host.extensions = [
                ExtensionVersion(id=ext.id, version=ext.version)
                for ext in self.host.active_extensions()
            ]
            client = ClientSection(session_id=self.session_ids.get())

        if privacy_level.includes(PrivacyLevel.DETAILED):
            client.runtime = runtime_descriptor()
            host.scene = self.host.current_scene()

        return ReportPayload(
            error=ErrorSection(
                message=error.message,
                stack=error.stack,
                type=error.type,
                source=attribution.source,
            ),
            attribution=AttributionSection(**attribution.to_dict()),
            host=host,
            client=client,
            meta=MetaSection(
                timestamp=utc_iso(self.clock()),
                privacy_level=privacy_level.value,
                reporter_version=self.reporter_version,
            ),
            extension_context=extension_context or None,
        )
