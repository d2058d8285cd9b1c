"""
Post-hoc metrics for an adaptive test session.

Runs on demand over any response history (completed or in progress) and
never feeds back into the live session.

AdaptiveMetrics:
    - convergence_history: ability and SE recomputed on every prefix of the
      history. This is O(n^2) in session length by construction; n is bounded
      by the session's item cap, and recomputing from scratch keeps every
      point reproducible from the history alone.
    - algorithm_efficiency: min(1, optimal / n), where the theoretical optimum
      is clamp(15 - 5 * |final_ability|, 5, 30) questions.
    - question_utilization: recorded information gained / (n * 2.0).
    - ability_stability: 1 - SD of the last three trajectory points.

TestPerformance summarizes accuracy, timing, per-subject / per-band /
per-Bloom's-level breakdowns, and the final estimate with its 95% CI.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from cat_engine.core.cat.ability_estimation import (
    MAX_STANDARD_ERROR,
    estimate_ability,
    standard_error,
)
from cat_engine.core.cat.models import AbilityEstimate, Item, ItemLookup, Response
from cat_engine.core.cat.stopping_rules import population_sd
from libs.domain_types import AlgorithmType, DifficultyBand

logger = logging.getLogger(__name__)

# Theoretical optimum test length: clamp(BASE - SLOPE * |theta|, MIN, MAX)
OPTIMAL_QUESTIONS_BASE = 15.0
OPTIMAL_QUESTIONS_SLOPE = 5.0
OPTIMAL_QUESTIONS_MIN = 5.0
OPTIMAL_QUESTIONS_MAX = 30.0

# Nominal ceiling of information gained per question
MAX_INFORMATION_PER_QUESTION = 2.0

# Trajectory points considered by the stability metric
STABILITY_TAIL = 3

# z-value for a two-sided 95% confidence interval
CONFIDENCE_Z = 1.96


@dataclass
class AdaptiveMetrics:
    """Diagnostic metrics for one session."""

    algorithm_type: AlgorithmType
    algorithm_efficiency: float
    question_utilization: float
    ability_stability: float
    convergence_history: List[AbilityEstimate] = field(default_factory=list)


@dataclass
class GroupPerformance:
    """Accuracy and timing for a subset of responses (subject, band, level)."""

    key: str
    questions_answered: int
    correct_answers: int
    accuracy: float  # 0-100
    average_time_ms: float


@dataclass
class TestPerformance:
    """Session-level performance summary."""

    total_questions: int
    correct_answers: int
    accuracy: float  # 0-100
    average_response_time_ms: float
    total_time_ms: float
    subject_performance: Dict[str, GroupPerformance]
    difficulty_performance: Dict[str, GroupPerformance]
    blooms_performance: Dict[str, GroupPerformance]
    final_ability: float
    standard_error: float
    confidence_interval: Tuple[float, float]


def build_convergence_history(
    responses: Sequence[Response],
    item_lookup: ItemLookup,
) -> List[AbilityEstimate]:
    """Ability and SE after each response, recomputed from each prefix."""
    history = []
    for index, response in enumerate(responses):
        prefix = responses[: index + 1]
        ability = estimate_ability(prefix, item_lookup)
        history.append(
            AbilityEstimate(
                ability=ability,
                standard_error=standard_error(prefix, item_lookup, ability),
                question_number=index + 1,
                timestamp=response.timestamp,
            )
        )
    return history


def theoretical_optimal_questions(final_ability: float) -> float:
    """Nominal number of questions needed to measure ``final_ability``."""
    raw = OPTIMAL_QUESTIONS_BASE - OPTIMAL_QUESTIONS_SLOPE * abs(final_ability)
    return max(OPTIMAL_QUESTIONS_MIN, min(OPTIMAL_QUESTIONS_MAX, raw))


def build_metrics(
    responses: Sequence[Response],
    item_lookup: ItemLookup,
    final_ability: float,
    algorithm_type: AlgorithmType = AlgorithmType.CAT,
) -> AdaptiveMetrics:
    """
    Generate adaptive metrics for a session.

    Args:
        responses: Ordered response history.
        item_lookup: Mapping from item id to Item; unknown items are skipped
            by the re-estimation.
        final_ability: Final ability estimate reported for the session.
        algorithm_type: Label recorded with the metrics.

    Returns:
        AdaptiveMetrics. An empty history yields zero-valued ratios and an
        empty trajectory.
    """
    n = len(responses)
    if n == 0:
        return AdaptiveMetrics(
            algorithm_type=algorithm_type,
            algorithm_efficiency=0.0,
            question_utilization=0.0,
            ability_stability=0.0,
        )

    convergence_history = build_convergence_history(responses, item_lookup)

    optimal = theoretical_optimal_questions(final_ability)
    algorithm_efficiency = min(1.0, optimal / n)

    information_gained = sum(r.information_gained for r in responses)
    question_utilization = information_gained / (n * MAX_INFORMATION_PER_QUESTION)

    tail = [e.ability for e in convergence_history[-STABILITY_TAIL:]]
    ability_stability = 1.0 - population_sd(tail) if len(tail) > 1 else 0.0

    logger.debug(
        f"Metrics over {n} responses: efficiency={algorithm_efficiency:.3f}, "
        f"utilization={question_utilization:.3f}, stability={ability_stability:.3f}"
    )

    return AdaptiveMetrics(
        algorithm_type=algorithm_type,
        algorithm_efficiency=algorithm_efficiency,
        question_utilization=question_utilization,
        ability_stability=ability_stability,
        convergence_history=convergence_history,
    )


def summarize_performance(
    responses: Sequence[Response],
    item_lookup: ItemLookup,
) -> TestPerformance:
    """
    Summarize a session's performance.

    Breakdowns only include responses whose item is in ``item_lookup``;
    totals and timing cover the whole history.
    """
    n = len(responses)
    if n == 0:
        return TestPerformance(
            total_questions=0,
            correct_answers=0,
            accuracy=0.0,
            average_response_time_ms=0.0,
            total_time_ms=0.0,
            subject_performance={},
            difficulty_performance={},
            blooms_performance={},
            final_ability=0.0,
            standard_error=MAX_STANDARD_ERROR,
            confidence_interval=(0.0, 0.0),
        )

    correct = sum(1 for r in responses if r.is_correct)
    total_time = sum(r.response_time_ms for r in responses)

    ability = estimate_ability(responses, item_lookup)
    se = standard_error(responses, item_lookup, ability)

    return TestPerformance(
        total_questions=n,
        correct_answers=correct,
        accuracy=correct / n * 100.0,
        average_response_time_ms=total_time / n,
        total_time_ms=total_time,
        subject_performance=_group_performance(
            responses, item_lookup, lambda item: item.subject
        ),
        difficulty_performance=_group_performance(
            responses,
            item_lookup,
            lambda item: item.band.value,
            order=[band.value for band in DifficultyBand.ordered()],
        ),
        blooms_performance=_group_performance(
            responses,
            item_lookup,
            lambda item: item.blooms_level.value if item.blooms_level else None,
        ),
        final_ability=ability,
        standard_error=se,
        confidence_interval=(ability - CONFIDENCE_Z * se, ability + CONFIDENCE_Z * se),
    )


def _group_performance(
    responses: Sequence[Response],
    item_lookup: ItemLookup,
    key_fn: Callable[[Item], Optional[str]],
    order: Optional[List[str]] = None,
) -> Dict[str, GroupPerformance]:
    groups: Dict[str, List[Response]] = {}
    for response in responses:
        item = item_lookup.get(response.item_id)
        if item is None:
            continue
        key = key_fn(item)
        if key is None:
            continue
        groups.setdefault(key, []).append(response)

    keys = [k for k in order if k in groups] if order else list(groups)
    result = {}
    for key in keys:
        group = groups[key]
        group_correct = sum(1 for r in group if r.is_correct)
        result[key] = GroupPerformance(
            key=key,
            questions_answered=len(group),
            correct_answers=group_correct,
            accuracy=group_correct / len(group) * 100.0,
            average_time_ms=sum(r.response_time_ms for r in group) / len(group),
        )
    return result
