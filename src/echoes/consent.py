"""Consent and privacy authority.

Reporting is opt-in. The manager answers three questions for the rest of
the system (is reporting allowed, at which privacy level, may this endpoint
receive data) and records explicit user decisions in the host settings
store. It never transmits anything itself.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from echoes.models import PrivacyLevel
from echoes.settings import MemorySettingsStore, SettingsStore
from echoes.utils.clock import Clock, system_clock, utc_iso

logger = logging.getLogger(__name__)

GLOBAL_ENABLED_KEY = "globalEnabled"
PRIVACY_LEVEL_KEY = "privacyLevel"
CONSENT_DATE_KEY = "consentDate"
ENDPOINT_CONSENT_KEY = "endpointConsent"
WELCOME_SHOWN_KEY = "hasShownWelcome"

DEFAULT_PRIVACY_LEVEL = PrivacyLevel.STANDARD
DEFAULT_EXPIRY_DAYS = 365
# Tolerated clock skew for a consent date stamped slightly in the future
CLOCK_SKEW_SECONDS = 300


class ConsentState(str, Enum):
    NO_CONSENT = "no-consent"
    CONSENTED = "consented"


@dataclass(frozen=True)
class ConsentRecord:
    """Snapshot of the stored consent decision."""
    enabled: bool
    privacy_level: PrivacyLevel
    consent_timestamp: str | None
    per_endpoint_consent: dict[str, bool] = field(default_factory=dict)


class ConsentManager:
    """Deny-by-default consent state backed by a host settings store."""

    def __init__(self, store: SettingsStore | None = None, clock: Clock = system_clock,
                 expiry_days: int = DEFAULT_EXPIRY_DAYS):
        self.store = store if store is not None else MemorySettingsStore()
        self.clock = clock
        self.expiry_seconds = expiry_days * 24 * 60 * 60

    def _get(self, key: str, default):
        try:
            return self.store.get(key, default)
        except Exception as e:
            logger.warning(f"Failed to read setting '{key}': {e}")
            return default

    def _set(self, key: str, value) -> bool:
        try:
            self.store.set(key, value)
            return True
        except Exception as e:
            logger.warning(f"Failed to write setting '{key}': {e}")
            return False

    # Queries

    def has_consent(self) -> bool:
        """Reporting is allowed: enabled by the user and not expired."""
        return bool(self._get(GLOBAL_ENABLED_KEY, False)) and self.is_consent_valid()

    @property
    def state(self) -> ConsentState:
        return ConsentState.CONSENTED if self.has_consent() else ConsentState.NO_CONSENT

    def get_privacy_level(self) -> PrivacyLevel:
        raw = self._get(PRIVACY_LEVEL_KEY, DEFAULT_PRIVACY_LEVEL.value)
        try:
            return PrivacyLevel(raw)
        except ValueError:
            logger.warning(f"Unknown privacy level {raw!r}, using {DEFAULT_PRIVACY_LEVEL.value}")
            return DEFAULT_PRIVACY_LEVEL

    def _endpoint_flags(self) -> dict[str, bool]:
        flags = self._get(ENDPOINT_CONSENT_KEY, {})
        return dict(flags) if isinstance(flags, dict) else {}

    def endpoint_flag(self, url: str) -> bool:
        """Per-endpoint flag alone; endpoints without an explicit flag are allowed."""
        return self._endpoint_flags().get(url, True) is not False

    def has_endpoint_consent(self, url: str) -> bool:
        """An endpoint may receive data only with global consent and its own flag set."""
        return self.has_consent() and self.endpoint_flag(url)

    def get_consent_date(self) -> str | None:
        return self._get(CONSENT_DATE_KEY, None)

    def is_consent_valid(self) -> bool:
        """Consent expires a fixed time after it was given."""
        consent_date = self.get_consent_date()
        if not consent_date:
            return False
        try:
            parsed = datetime.fromisoformat(consent_date)
        except (TypeError, ValueError) as e:
            logger.warning(f"Failed to parse consent date {consent_date!r}: {e}")
            return False
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        age = self.clock() - parsed.timestamp()
        if age < -CLOCK_SKEW_SECONDS:
            logger.warning(f"Consent date {consent_date!r} is in the future; treating as no consent")
            return False
        return max(age, 0.0) < self.expiry_seconds

    def should_show_welcome(self, is_admin: bool = True) -> bool:
        """First-run prompt: never shown before, no consent yet, admin user."""
        return not self._get(WELCOME_SHOWN_KEY, False) and not self.has_consent() and is_admin

    def get_record(self) -> ConsentRecord:
        return ConsentRecord(
            enabled=self.has_consent(),
            privacy_level=self.get_privacy_level(),
            consent_timestamp=self.get_consent_date(),
            per_endpoint_consent=self._endpoint_flags(),
        )

    # User actions

    def set_consent(self, enabled: bool, privacy_level: PrivacyLevel | str | None = None) -> bool:
        """Record an explicit consent decision; re-confirming renews expiry."""
        level = PrivacyLevel(privacy_level) if privacy_level is not None else self.get_privacy_level()
        ok = all([
            self._set(GLOBAL_ENABLED_KEY, bool(enabled)),
            self._set(PRIVACY_LEVEL_KEY, level.value),
            self._set(WELCOME_SHOWN_KEY, True),
            self._set(CONSENT_DATE_KEY, utc_iso(self.clock())),
        ])
        logger.info(f"Error reporting {'enabled' if enabled else 'disabled'} "
                    f"(privacy level: {level.value})")
        return ok

    def set_endpoint_consent(self, url: str, enabled: bool) -> bool:
        flags = self._endpoint_flags()
        flags[url] = bool(enabled)
        return self._set(ENDPOINT_CONSENT_KEY, flags)

    def revoke_consent(self) -> bool:
        """Force NoConsent. The privacy level preference is kept."""
        ok = all([
            self._set(GLOBAL_ENABLED_KEY, False),
            self._set(ENDPOINT_CONSENT_KEY, {}),
            self._set(CONSENT_DATE_KEY, None),
        ])
        logger.info("Error reporting consent revoked")
        return ok

    def reset(self) -> None:
        """Restore deny-by-default state."""
        for key, value in (
            (GLOBAL_ENABLED_KEY, False),
            (PRIVACY_LEVEL_KEY, DEFAULT_PRIVACY_LEVEL.value),
            (CONSENT_DATE_KEY, None),
            (ENDPOINT_CONSENT_KEY, {}),
            (WELCOME_SHOWN_KEY, False),
        ):
            self._set(key, value)
