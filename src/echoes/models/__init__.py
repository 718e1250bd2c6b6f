"""Data models for errors-and-echoes."""

from .attribution import (
    BASE_SCORES,
    SOURCE_BONUS,
    UNKNOWN_EXTENSION,
    Attribution,
    AttributionMethod,
    Confidence,
    calculate_confidence_score,
)
from .error import CanonicalError, ErrorContext, SourceKind
from .payload import (
    AttributionSection,
    ClientSection,
    ErrorSection,
    ExtensionVersion,
    HostSection,
    MetaSection,
    ReportPayload,
    ReportResponse,
    SubsystemInfo,
)
from .privacy import PrivacyLevel

__all__ = [
    "BASE_SCORES",
    "SOURCE_BONUS",
    "UNKNOWN_EXTENSION",
    "Attribution",
    "AttributionMethod",
    "AttributionSection",
    "CanonicalError",
    "ClientSection",
    "Confidence",
    "ErrorContext",
    "ErrorSection",
    "ExtensionVersion",
    "HostSection",
    "MetaSection",
    "PrivacyLevel",
    "ReportPayload",
    "ReportResponse",
    "SourceKind",
    "SubsystemInfo",
    "calculate_confidence_score",
]
