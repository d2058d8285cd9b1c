"""
Selection strategy variants.

Each strategy is an immutable configuration that narrows the candidate pool
or adjusts the selection constraints, then hands off to the Maximum Fisher
Information selector in ``item_selection``. All strategies are stateless: the
same inputs always produce the same selection.

    StandardStrategy         plain MFI selection
    MissionAlignedStrategy   restrict to target difficulty bands
    GoalAlignedStrategy      restrict to linked subjects, balanced evenly
    ProgressiveStrategy      step one band up/down on recent accuracy
    FatigueAwareStrategy     step one band down when responses slow down
    ConfidenceAwareStrategy  harder bands for overconfidence, easier for
                             underconfidence

A strategy whose restriction leaves nothing selectable falls back to
selection over the unrestricted pool.
"""

import logging
import random
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple, Union

from cat_engine.core.cat.content_balancing import even_distribution
from cat_engine.core.cat.item_selection import (
    RANDOMESQUE_K,
    ItemCandidate,
    select_item_candidate,
)
from cat_engine.core.cat.models import (
    Item,
    ItemLookup,
    Response,
    SelectionConstraints,
    build_item_lookup,
    response_band,
)
from libs.domain_types import DifficultyBand

logger = logging.getLogger(__name__)

# Band assumed for a previous response whose band cannot be resolved
DEFAULT_BAND = DifficultyBand.INTERMEDIATE

# Progressive: trailing responses considered and the accuracy thresholds
PROGRESSION_WINDOW = 3
PROGRESSION_UP_ACCURACY = 0.8
PROGRESSION_DOWN_ACCURACY = 0.4

# Fatigue: recent/overall response-time ratio above which difficulty drops
FATIGUE_WINDOW = 3
FATIGUE_RATIO_THRESHOLD = 1.3

# Confidence ratings (1-5) counted as high / low
HIGH_CONFIDENCE = 4
LOW_CONFIDENCE = 2

HARDER_BANDS = (DifficultyBand.ADVANCED, DifficultyBand.EXPERT)
EASIER_BANDS = (DifficultyBand.BEGINNER, DifficultyBand.INTERMEDIATE)


@dataclass(frozen=True)
class SelectionPlan:
    """Restricted pool and constraints a strategy wants the selector to use."""

    candidates: List[Item]
    constraints: Optional[SelectionConstraints]
    restricted: bool = False
    note: str = ""


@dataclass(frozen=True)
class StandardStrategy:
    name = "standard"

    def plan(self, candidates, history, item_lookup, constraints) -> SelectionPlan:
        return SelectionPlan(list(candidates), constraints)


@dataclass(frozen=True)
class MissionAlignedStrategy:
    target_bands: Tuple[DifficultyBand, ...] = ()

    name = "mission_aligned"

    def plan(self, candidates, history, item_lookup, constraints) -> SelectionPlan:
        allowed = set(self.target_bands)
        return SelectionPlan(
            [item for item in candidates if item.band in allowed],
            constraints,
            restricted=True,
            note=f"bands={[b.value for b in self.target_bands]}",
        )


@dataclass(frozen=True)
class GoalAlignedStrategy:
    """
    Restrict to the goal's linked subjects with an even subject distribution.

    The even distribution is kept on fallback, so balancing still steers
    toward the linked subjects when none of them has a candidate.
    """

    linked_subjects: Tuple[str, ...] = ()

    name = "goal_aligned"

    def plan(self, candidates, history, item_lookup, constraints) -> SelectionPlan:
        distribution = even_distribution(self.linked_subjects)
        linked = set(self.linked_subjects)
        return SelectionPlan(
            [item for item in candidates if item.subject in linked],
            replace(
                constraints or SelectionConstraints(),
                subject_distribution=distribution,
            ),
            restricted=True,
            note=f"subjects={sorted(linked)}",
        )


@dataclass(frozen=True)
class ProgressiveStrategy:
    window: int = PROGRESSION_WINDOW
    up_accuracy: float = PROGRESSION_UP_ACCURACY
    down_accuracy: float = PROGRESSION_DOWN_ACCURACY

    name = "progressive"

    def target_band(
        self, history: Sequence[Response], item_lookup: ItemLookup
    ) -> DifficultyBand:
        if not history:
            return DifficultyBand.BEGINNER

        recent = history[-self.window :]
        accuracy = sum(1 for r in recent if r.is_correct) / len(recent)
        last_band = response_band(history[-1], item_lookup) or DEFAULT_BAND

        if accuracy >= self.up_accuracy:
            return last_band.shifted(1)
        if accuracy <= self.down_accuracy:
            return last_band.shifted(-1)
        return last_band

    def plan(self, candidates, history, item_lookup, constraints) -> SelectionPlan:
        band = self.target_band(history, item_lookup)
        return SelectionPlan(
            [item for item in candidates if item.band is band],
            constraints,
            restricted=True,
            note=f"band={band.value}",
        )


@dataclass(frozen=True)
class FatigueAwareStrategy:
    window: int = FATIGUE_WINDOW
    ratio_threshold: float = FATIGUE_RATIO_THRESHOLD

    name = "fatigue_aware"

    def fatigue_ratio(self, history: Sequence[Response]) -> float:
        """Mean of the trailing response times over the overall mean (1.0 if unknown)."""
        if not history:
            return 1.0
        overall = sum(r.response_time_ms for r in history) / len(history)
        if overall <= 0.0:
            return 1.0
        recent = history[-self.window :]
        return (sum(r.response_time_ms for r in recent) / len(recent)) / overall

    def plan(self, candidates, history, item_lookup, constraints) -> SelectionPlan:
        ratio = self.fatigue_ratio(history)
        if ratio <= self.ratio_threshold:
            return SelectionPlan(list(candidates), constraints)

        last_band = response_band(history[-1], item_lookup) or DEFAULT_BAND
        band = last_band.shifted(-1)
        return SelectionPlan(
            [item for item in candidates if item.band is band],
            constraints,
            restricted=True,
            note=f"fatigue ratio={ratio:.2f}, band={band.value}",
        )


@dataclass(frozen=True)
class ConfidenceAwareStrategy:
    high_confidence: int = HIGH_CONFIDENCE
    low_confidence: int = LOW_CONFIDENCE

    name = "confidence_aware"

    def calibration_counts(self, history: Sequence[Response]) -> Tuple[int, int]:
        """(overconfident, underconfident) response counts."""
        rated = [r for r in history if r.confidence is not None]
        over = sum(
            1 for r in rated if not r.is_correct and r.confidence >= self.high_confidence
        )
        under = sum(
            1 for r in rated if r.is_correct and r.confidence <= self.low_confidence
        )
        return over, under

    def plan(self, candidates, history, item_lookup, constraints) -> SelectionPlan:
        over, under = self.calibration_counts(history)
        if over > under:
            bands = HARDER_BANDS
        elif under > over:
            bands = EASIER_BANDS
        else:
            return SelectionPlan(list(candidates), constraints)

        return SelectionPlan(
            [item for item in candidates if item.band in bands],
            constraints,
            restricted=True,
            note=f"over={over}, under={under}, bands={[b.value for b in bands]}",
        )


SelectionStrategy = Union[
    StandardStrategy,
    MissionAlignedStrategy,
    GoalAlignedStrategy,
    ProgressiveStrategy,
    FatigueAwareStrategy,
    ConfidenceAwareStrategy,
]


def select_with_strategy(
    strategy: SelectionStrategy,
    candidates: Sequence[Item],
    ability: float,
    history: Sequence[Response],
    item_lookup: Optional[ItemLookup] = None,
    constraints: Optional[SelectionConstraints] = None,
    randomesque_k: int = RANDOMESQUE_K,
    rng: Optional[random.Random] = None,
) -> Optional[ItemCandidate]:
    """
    Select the next item under ``strategy``.

    Args:
        strategy: One of the strategy configurations in this module.
        candidates: Items available for administration.
        ability: Current ability estimate.
        history: Ordered responses already given in this session.
        item_lookup: Items referenced by ``history``. Defaults to the
            candidate list itself.
        constraints: Caller constraints, applied on top of the strategy.
        randomesque_k: Exposure control, see ``select_next_item``.
        rng: Random source, required when ``randomesque_k`` > 1.

    Returns:
        The selected ItemCandidate, or None when even the unrestricted
        pool yields nothing.
    """
    lookup = item_lookup if item_lookup is not None else build_item_lookup(candidates)
    plan = strategy.plan(candidates, history, lookup, constraints)

    selected = None
    if plan.candidates:
        selected = select_item_candidate(
            plan.candidates,
            ability,
            history,
            plan.constraints,
            lookup,
            randomesque_k,
            rng,
        )

    if selected is None and plan.restricted:
        logger.debug(
            f"Strategy {strategy.name} ({plan.note}) left no eligible items; "
            "falling back to the unrestricted pool"
        )
        selected = select_item_candidate(
            candidates,
            ability,
            history,
            plan.constraints,
            lookup,
            randomesque_k,
            rng,
        )
    elif selected is not None:
        logger.debug(
            f"Strategy {strategy.name} ({plan.note}) selected {selected.item.id}"
        )

    return selected


STRATEGIES = {
    StandardStrategy.name: StandardStrategy,
    MissionAlignedStrategy.name: MissionAlignedStrategy,
    GoalAlignedStrategy.name: GoalAlignedStrategy,
    ProgressiveStrategy.name: ProgressiveStrategy,
    FatigueAwareStrategy.name: FatigueAwareStrategy,
    ConfidenceAwareStrategy.name: ConfidenceAwareStrategy,
}
