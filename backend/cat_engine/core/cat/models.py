"""
Value types consumed and produced by the adaptive-testing engine.

Items and responses are immutable: items are supplied by the question
repository and responses are appended by the session controller. Ability
estimates and constraints are plain values with no lifecycle of their own.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from cat_engine.core.cat.item_response import (
    DEFAULT_DISCRIMINATION,
    DEFAULT_GUESSING,
    InvalidParameterError,
    validate_finite,
    validate_item_parameters,
)
from cat_engine.core.datetime_utils import utc_now
from libs.domain_types import BloomsLevel, DifficultyBand, DifficultySource

logger = logging.getLogger(__name__)

# Default number of trailing responses considered "recent" by topic avoidance.
RECENT_TOPIC_WINDOW = 3


@dataclass(frozen=True)
class Difficulty:
    """Numeric item difficulty tagged with its provenance."""

    value: float
    source: DifficultySource

    @property
    def is_calibrated(self) -> bool:
        return self.source is DifficultySource.CALIBRATED


@dataclass(frozen=True)
class Item:
    """
    A question with its IRT parameters.

    ``calibrated_difficulty`` overrides the band lookup when present; read the
    effective value through :attr:`difficulty`.
    """

    id: str
    subject: str
    topic: str
    band: DifficultyBand
    discrimination: float = DEFAULT_DISCRIMINATION
    guessing: float = DEFAULT_GUESSING
    calibrated_difficulty: Optional[float] = None
    estimated_time_seconds: float = 60.0
    blooms_level: Optional[BloomsLevel] = None

    def __post_init__(self) -> None:
        validate_item_parameters(self.discrimination, self.guessing)
        if self.calibrated_difficulty is not None:
            validate_finite("calibrated_difficulty", self.calibrated_difficulty)
        if not isinstance(self.band, DifficultyBand):
            try:
                object.__setattr__(self, "band", DifficultyBand(self.band))
            except ValueError as e:
                raise InvalidParameterError(
                    "Unknown difficulty band", context={"band": self.band}
                ) from e

    @property
    def difficulty(self) -> Difficulty:
        if self.calibrated_difficulty is not None:
            return Difficulty(self.calibrated_difficulty, DifficultySource.CALIBRATED)
        return Difficulty(self.band.numeric_difficulty, DifficultySource.BAND_DERIVED)

    def with_calibration(self, difficulty: float) -> "Item":
        """Return a recalibrated copy; the original item is left untouched."""
        return replace(self, calibrated_difficulty=difficulty)


@dataclass(frozen=True)
class Response:
    """One answered item, recorded once and never altered."""

    item_id: str
    is_correct: bool
    response_time_ms: float = 0.0
    confidence: Optional[int] = None  # 1-5 self-rating
    ability_at_selection: float = 0.0
    information_gained: float = 0.0
    difficulty_band: Optional[DifficultyBand] = None
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class AbilityEstimate:
    """Ability with its standard error after ``question_number`` responses."""

    ability: float
    standard_error: float
    question_number: int
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class SelectionConstraints:
    """Per-call selection policy; every field is optional."""

    subject_distribution: Optional[Mapping[str, float]] = None
    difficulty_constraints: Optional[Sequence[DifficultyBand]] = None
    avoid_recent_topics: Optional[Sequence[str]] = None
    recent_window: int = RECENT_TOPIC_WINDOW


ItemLookup = Mapping[str, Item]


def build_item_lookup(items: Iterable[Item]) -> Dict[str, Item]:
    """Index items by id. Later duplicates replace earlier ones."""
    lookup: Dict[str, Item] = {}
    for item in items:
        if item.id in lookup:
            logger.debug(f"Duplicate item id {item.id!r} in lookup; keeping latest")
        lookup[item.id] = item
    return lookup


def resolve_responses(
    responses: Sequence[Response], item_lookup: ItemLookup
) -> Tuple[Tuple[Response, Item], ...]:
    """
    Pair each response with its item, skipping responses whose item is unknown.

    Historical banks may be pruned, so a missing item is a data-quality gap
    rather than an error.
    """
    resolved = []
    for response in responses:
        item = item_lookup.get(response.item_id)
        if item is None:
            logger.debug(
                f"Skipping response for unknown item {response.item_id!r}"
            )
            continue
        resolved.append((response, item))
    return tuple(resolved)


def response_band(
    response: Response, item_lookup: Optional[ItemLookup] = None
) -> Optional[DifficultyBand]:
    """Band of the answered item, from the response or else the lookup."""
    if response.difficulty_band is not None:
        return response.difficulty_band
    if item_lookup is not None:
        item = item_lookup.get(response.item_id)
        if item is not None:
            return item.band
    return None
