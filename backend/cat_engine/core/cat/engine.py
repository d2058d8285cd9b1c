"""
CATSessionManager: facade over the adaptive-testing engine.

Wires ability estimation, stopping rules, item selection and reporting
together for one question-answer cycle, using the CAT tunables from settings.
The manager keeps no session state: every method takes the response history
and returns new values, so one instance may serve any number of sessions
concurrently.

Per answered question the session controller calls:
    1. evaluate()        -> ability, SE and the stopping decision
    2. select_next()     -> next item with its selection-time information
                            (only when evaluate() says continue)
    3. record_response() -> immutable Response to append to the history
and finally finalize() once the session stops.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from cat_engine.core.cat.ability_estimation import estimate_ability_with_se
from cat_engine.core.cat.metrics import (
    AdaptiveMetrics,
    TestPerformance,
    build_metrics,
    summarize_performance,
)
from cat_engine.core.cat.models import (
    AbilityEstimate,
    Item,
    ItemLookup,
    Response,
    SelectionConstraints,
    build_item_lookup,
)
from cat_engine.core.cat.stopping_rules import check_stopping_criteria
from cat_engine.core.cat.strategies import (
    SelectionStrategy,
    StandardStrategy,
    select_with_strategy,
)
from cat_engine.core.config import settings
from cat_engine.core.datetime_utils import utc_now
from libs.domain_types import AlgorithmType, StopReason

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemSelection:
    """Selected item and the Fisher information it carried at selection time."""

    item: Item
    information: float
    ability: float


@dataclass
class CATStepResult:
    """Estimate and stopping decision after the latest response."""

    ability: float
    standard_error: float
    items_administered: int
    correct_count: int
    should_stop: bool
    stop_reason: Optional[StopReason]
    details: Dict[str, Any]

    @property
    def should_continue(self) -> bool:
        return not self.should_stop


@dataclass
class CATResult:
    """Final session summary."""

    ability: float
    standard_error: float
    items_administered: int
    correct_count: int
    stop_reason: Optional[StopReason]
    metrics: AdaptiveMetrics
    performance: TestPerformance


class CATSessionManager:
    """
    Stateless orchestrator for Computerized Adaptive Testing sessions.

    Manages:
    - Ability re-estimation (MLE) from the full response history
    - Stopping criteria evaluation (min/max items, SE threshold, stability)
    - Item selection under a selection strategy and caller constraints
    - Final metrics and performance reporting
    """

    def __init__(
        self,
        min_items: Optional[int] = None,
        max_items: Optional[int] = None,
        se_threshold: Optional[float] = None,
        randomesque_k: Optional[int] = None,
        algorithm_type: AlgorithmType = AlgorithmType.CAT,
    ):
        """Initialize from explicit values, falling back to settings."""
        self.min_items = settings.CAT_MIN_ITEMS if min_items is None else min_items
        self.max_items = settings.CAT_MAX_ITEMS if max_items is None else max_items
        self.se_threshold = (
            settings.CAT_SE_THRESHOLD if se_threshold is None else se_threshold
        )
        self.randomesque_k = (
            settings.CAT_RANDOMESQUE_K if randomesque_k is None else randomesque_k
        )
        self.algorithm_type = algorithm_type

        if self.max_items < 1:
            raise ValueError(f"max_items must be positive, got {self.max_items}")
        if self.se_threshold <= 0:
            raise ValueError(
                f"se_threshold must be positive, got {self.se_threshold}"
            )

        logger.info(
            f"CATSessionManager initialized: min_items={self.min_items}, "
            f"max_items={self.max_items}, se_threshold={self.se_threshold}, "
            f"randomesque_k={self.randomesque_k}"
        )

    def estimate(
        self, responses: Sequence[Response], item_lookup: ItemLookup
    ) -> AbilityEstimate:
        """Current ability and SE, recomputed from the full history."""
        return estimate_ability_with_se(responses, item_lookup)

    def evaluate(
        self,
        responses: Sequence[Response],
        item_lookup: ItemLookup,
        max_questions: Optional[int] = None,
        target_se: Optional[float] = None,
    ) -> CATStepResult:
        """
        Estimate ability and decide whether the session should continue.

        Args:
            responses: Ordered response history.
            item_lookup: Items referenced by the history.
            max_questions: Per-session cap; defaults to the manager's max_items.
            target_se: Per-session SE target; defaults to the manager's.

        Returns:
            CATStepResult with the estimate and stopping decision.
        """
        estimate = self.estimate(responses, item_lookup)
        decision = check_stopping_criteria(
            responses,
            item_lookup,
            estimate.ability,
            max_questions=self.max_items if max_questions is None else max_questions,
            target_se=self.se_threshold if target_se is None else target_se,
            min_items=self.min_items,
            stability_min_items=settings.CAT_STABILITY_MIN_ITEMS,
            stability_window=settings.CAT_STABILITY_WINDOW,
            stability_sd_threshold=settings.CAT_STABILITY_SD_THRESHOLD,
        )

        correct_count = sum(1 for r in responses if r.is_correct)

        logger.debug(
            f"Response #{len(responses)} -> theta={estimate.ability:.3f}, "
            f"SE={estimate.standard_error:.3f}, stop={decision.should_stop}"
        )

        return CATStepResult(
            ability=estimate.ability,
            standard_error=estimate.standard_error,
            items_administered=len(responses),
            correct_count=correct_count,
            should_stop=decision.should_stop,
            stop_reason=decision.reason,
            details=decision.details,
        )

    def select_next(
        self,
        candidates: Sequence[Item],
        responses: Sequence[Response],
        item_lookup: Optional[ItemLookup] = None,
        ability: Optional[float] = None,
        constraints: Optional[SelectionConstraints] = None,
        strategy: Optional[SelectionStrategy] = None,
        rng: Optional[random.Random] = None,
    ) -> Optional[ItemSelection]:
        """
        Select the next item to administer.

        Args:
            candidates: Items available for administration.
            responses: Ordered response history.
            item_lookup: Items referenced by the history; defaults to the
                candidates.
            ability: Ability to select at; recomputed from the history if None.
            constraints: Caller selection constraints.
            strategy: Selection strategy; defaults to StandardStrategy.
            rng: Random source, required when randomesque_k > 1.

        Returns:
            ItemSelection, or None when no candidate is eligible.
        """
        lookup = item_lookup if item_lookup is not None else build_item_lookup(candidates)
        if ability is None:
            ability = self.estimate(responses, lookup).ability

        selected = select_with_strategy(
            strategy or StandardStrategy(),
            candidates,
            ability,
            responses,
            lookup,
            constraints,
            self.randomesque_k,
            rng,
        )
        if selected is None:
            logger.info(
                f"No item available from {len(candidates)} candidates "
                f"after {len(responses)} responses"
            )
            return None

        return ItemSelection(
            item=selected.item, information=selected.information, ability=ability
        )

    def record_response(
        self,
        selection: ItemSelection,
        is_correct: bool,
        response_time_ms: float = 0.0,
        confidence: Optional[int] = None,
        timestamp: Optional[datetime] = None,
    ) -> Response:
        """
        Build the immutable Response for an answered item.

        The selection-time ability and information are carried over from
        ``selection``; the caller appends the result to its history.
        """
        if confidence is not None and not 1 <= confidence <= 5:
            raise ValueError(f"confidence must be between 1 and 5, got {confidence}")

        return Response(
            item_id=selection.item.id,
            is_correct=is_correct,
            response_time_ms=response_time_ms,
            confidence=confidence,
            ability_at_selection=selection.ability,
            information_gained=selection.information,
            difficulty_band=selection.item.band,
            timestamp=timestamp or utc_now(),
        )

    def finalize(
        self,
        responses: Sequence[Response],
        item_lookup: ItemLookup,
        max_questions: Optional[int] = None,
    ) -> CATResult:
        """Final estimate, stop reason, metrics and performance summary."""
        step = self.evaluate(responses, item_lookup, max_questions)
        metrics = build_metrics(
            responses, item_lookup, step.ability, self.algorithm_type
        )
        performance = summarize_performance(responses, item_lookup)

        logger.info(
            f"Session finalized: theta={step.ability:.3f}, "
            f"SE={step.standard_error:.3f}, items={step.items_administered}, "
            f"stop_reason={step.stop_reason.value if step.stop_reason else None}"
        )

        return CATResult(
            ability=step.ability,
            standard_error=step.standard_error,
            items_administered=step.items_administered,
            correct_count=step.correct_count,
            stop_reason=step.stop_reason,
            metrics=metrics,
            performance=performance,
        )
