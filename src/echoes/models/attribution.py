"""Attribution result model and confidence scoring."""

from dataclasses import dataclass
from enum import Enum

from .error import SourceKind

UNKNOWN_EXTENSION = "unknown"


class Confidence(str, Enum):
    """How sure the attribution engine is about the responsible extension."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AttributionMethod(str, Enum):
    """Strategy that produced an attribution."""
    STACK_TRACE = "stack-trace"
    HOOK_CONTEXT = "hook-context"
    PATTERN_MATCH = "pattern-match"
    ACTIVE_EXTENSION = "active-extension"
    UNKNOWN = "unknown"


BASE_SCORES: dict[AttributionMethod, float] = {
    AttributionMethod.STACK_TRACE: 0.8,
    AttributionMethod.HOOK_CONTEXT: 0.6,
    AttributionMethod.ACTIVE_EXTENSION: 0.6,
    AttributionMethod.PATTERN_MATCH: 0.4,
    AttributionMethod.UNKNOWN: 0.1,
}

SOURCE_BONUS: dict[SourceKind, float] = {
    SourceKind.SCRIPT: 0.1,
    SourceKind.PROMISE: 0.1,
    SourceKind.HOOK: 0.05,
    SourceKind.LOG: 0.05,
}


def calculate_confidence_score(method: AttributionMethod, source_kind: SourceKind) -> float:
    """Base score for the method plus the source bonus, capped at 1.0."""
    score = BASE_SCORES.get(method, BASE_SCORES[AttributionMethod.UNKNOWN])
    score += SOURCE_BONUS.get(source_kind, 0.0)
    return min(round(score, 4), 1.0)


@dataclass(frozen=True)
class Attribution:
    """Which extension is responsible for an error, and how that was decided."""
    extension_id: str
    confidence: Confidence
    method: AttributionMethod
    source: str
    score: float = 0.0

    @classmethod
    def unknown(cls, source: str, source_kind: SourceKind) -> "Attribution":
        return cls(
            extension_id=UNKNOWN_EXTENSION,
            confidence=Confidence.NONE,
            method=AttributionMethod.UNKNOWN,
            source=source,
            score=calculate_confidence_score(AttributionMethod.UNKNOWN, source_kind),
        )

    @property
    def is_unknown(self) -> bool:
        return self.extension_id == UNKNOWN_EXTENSION

    def to_dict(self) -> dict:
        """Wire representation (camelCase, no score)."""
        return {
            "extensionId": self.extension_id,
            "confidence": self.confidence.value,
            "method": self.method.value,
            "source": self.source,
        }
