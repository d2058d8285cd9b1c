"""Shared domain types for the CAT engine.

This package is the single source of truth for domain enums used across
the engine core, the HTTP schemas, and (indirectly via OpenAPI) clients.

Usage:
    from libs.domain_types import DifficultyBand, AlgorithmType
"""

import enum
from typing import List

# Numeric difficulty used for items that carry no calibrated value.
_BAND_DIFFICULTY = {
    "beginner": 0.2,
    "intermediate": 0.4,
    "advanced": 0.6,
    "expert": 0.8,
}


class DifficultyBand(str, enum.Enum):
    """Coarse, ordered difficulty band of an item."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @classmethod
    def ordered(cls) -> List["DifficultyBand"]:
        """Bands from easiest to hardest."""
        return [cls.BEGINNER, cls.INTERMEDIATE, cls.ADVANCED, cls.EXPERT]

    @property
    def index(self) -> int:
        return DifficultyBand.ordered().index(self)

    @property
    def numeric_difficulty(self) -> float:
        return _BAND_DIFFICULTY[self.value]

    def shifted(self, steps: int) -> "DifficultyBand":
        """Return the band ``steps`` positions away, clamped to the ends."""
        bands = DifficultyBand.ordered()
        return bands[max(0, min(len(bands) - 1, self.index + steps))]


class DifficultySource(str, enum.Enum):
    """Where an item's numeric difficulty came from."""

    CALIBRATED = "calibrated"
    BAND_DERIVED = "band_derived"


class AlgorithmType(str, enum.Enum):
    """Adaptive algorithm label recorded with session metrics."""

    CAT = "CAT"
    MAP = "MAP"
    HYBRID = "HYBRID"


class StopReason(str, enum.Enum):
    """Why a session stopped."""

    MAX_ITEMS = "max_items"
    SE_THRESHOLD = "se_threshold"
    THETA_STABLE = "theta_stable"


class BloomsLevel(str, enum.Enum):
    """Bloom's taxonomy level of an item."""

    REMEMBER = "remember"
    UNDERSTAND = "understand"
    APPLY = "apply"
    ANALYZE = "analyze"
    EVALUATE = "evaluate"
    CREATE = "create"
