"""Privacy levels controlling how much context a report may carry."""

from enum import Enum


class PrivacyLevel(str, Enum):
    """Strictly nested payload tiers: minimal < standard < detailed."""
    MINIMAL = "minimal"
    STANDARD = "standard"
    DETAILED = "detailed"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def includes(self, other: "PrivacyLevel") -> bool:
        """True when this level's field set contains ``other``'s."""
        return self.rank >= other.rank


_RANKS = {
    PrivacyLevel.MINIMAL: 0,
    PrivacyLevel.STANDARD: 1,
    PrivacyLevel.DETAILED: 2,
}
