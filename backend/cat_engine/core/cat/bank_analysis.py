"""
Item-bank and session analysis.

Offline checks that tell content owners whether the item bank supports
adaptive testing well, and how a finished session used its time:

    analyze_item_bank: band mix against the ideal mix, share of
        low-discrimination items, and thinly covered subjects.
    analyze_session_efficiency: time efficiency, accuracy and response-time
        variability of one session.
    item_exposure_rates / overexposed_items: how often each item is
        administered across many sessions.

Each finding is turned into a human-readable recommendation.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

from cat_engine.core.cat.models import Item, Response
from libs.domain_types import DifficultyBand

logger = logging.getLogger(__name__)

IDEAL_BAND_DISTRIBUTION = {
    DifficultyBand.BEGINNER: 0.2,
    DifficultyBand.INTERMEDIATE: 0.3,
    DifficultyBand.ADVANCED: 0.3,
    DifficultyBand.EXPERT: 0.2,
}
BAND_TOLERANCE = 0.1

LOW_DISCRIMINATION_THRESHOLD = 0.5
MAX_LOW_DISCRIMINATION_SHARE = 0.2

# Subjects with fewer than this fraction of the mean item count are flagged
MIN_SUBJECT_COVERAGE_RATIO = 0.5

# Session time efficiency: 1.0 up to one minute per item, 0.0 from six minutes
OPTIMAL_TIME_PER_ITEM_MS = 60_000.0
TIME_EFFICIENCY_SPAN_MS = 300_000.0

MIN_TIME_EFFICIENCY = 0.7
MIN_EXPECTED_ACCURACY = 0.6
MAX_EXPECTED_ACCURACY = 0.9
MAX_TIME_VARIABILITY = 0.5

DEFAULT_EXPOSURE_ALERT_THRESHOLD = 0.15


@dataclass
class BankAnalysis:
    """Item-bank composition findings."""

    total_items: int
    band_distribution: Dict[DifficultyBand, float]
    low_discrimination_count: int
    subject_counts: Dict[str, int]
    underrepresented_subjects: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass
class SessionEfficiency:
    """Timing and accuracy diagnostics for one session."""

    efficiency: float
    accuracy: float  # 0-1
    response_time_variability: float  # coefficient of variation
    recommendations: List[str] = field(default_factory=list)


def analyze_item_bank(items: Sequence[Item]) -> BankAnalysis:
    """
    Analyze an item bank's suitability for adaptive testing.

    Checks:
    1. Band mix: each band's share must be within BAND_TOLERANCE of
       IDEAL_BAND_DISTRIBUTION
    2. Discrimination: more than MAX_LOW_DISCRIMINATION_SHARE of items with
       a < LOW_DISCRIMINATION_THRESHOLD is flagged
    3. Subject coverage: subjects with fewer than half the mean per-subject
       item count are flagged

    An empty bank yields a single recommendation and no other findings.
    """
    total = len(items)
    if total == 0:
        return BankAnalysis(
            total_items=0,
            band_distribution={band: 0.0 for band in DifficultyBand.ordered()},
            low_discrimination_count=0,
            subject_counts={},
            recommendations=["Item bank is empty"],
        )

    recommendations: List[str] = []

    low_discrimination = sum(
        1 for item in items if item.discrimination < LOW_DISCRIMINATION_THRESHOLD
    )
    if low_discrimination > total * MAX_LOW_DISCRIMINATION_SHARE:
        recommendations.append(
            f"Consider removing or improving low-discrimination items: "
            f"{low_discrimination}/{total} have a < {LOW_DISCRIMINATION_THRESHOLD}"
        )

    band_distribution = {
        band: sum(1 for item in items if item.band is band) / total
        for band in DifficultyBand.ordered()
    }
    for band, ideal in IDEAL_BAND_DISTRIBUTION.items():
        actual = band_distribution[band]
        if abs(actual - ideal) > BAND_TOLERANCE:
            recommendations.append(
                f"Adjust {band.value} question ratio: current {actual * 100:.1f}%, "
                f"ideal {ideal * 100:.1f}%"
            )

    subject_counts: Dict[str, int] = {}
    for item in items:
        subject_counts[item.subject] = subject_counts.get(item.subject, 0) + 1

    mean_per_subject = total / len(subject_counts)
    underrepresented = [
        subject
        for subject, count in subject_counts.items()
        if count < mean_per_subject * MIN_SUBJECT_COVERAGE_RATIO
    ]
    for subject in underrepresented:
        recommendations.append(
            f"Insufficient questions for subject: {subject} "
            f"({subject_counts[subject]} questions)"
        )

    logger.info(
        f"Item bank analysis: {total} items, {len(subject_counts)} subjects, "
        f"{len(recommendations)} recommendations"
    )

    return BankAnalysis(
        total_items=total,
        band_distribution=band_distribution,
        low_discrimination_count=low_discrimination,
        subject_counts=subject_counts,
        underrepresented_subjects=underrepresented,
        recommendations=recommendations,
    )


def analyze_session_efficiency(responses: Sequence[Response]) -> SessionEfficiency:
    """
    Time efficiency, accuracy and response-time variability of a session.

    An empty session has nothing to analyze and returns all zeros.
    """
    n = len(responses)
    if n == 0:
        return SessionEfficiency(
            efficiency=0.0, accuracy=0.0, response_time_variability=0.0
        )

    times = [r.response_time_ms for r in responses]
    mean_time = sum(times) / n
    overrun = max(0.0, mean_time - OPTIMAL_TIME_PER_ITEM_MS)
    efficiency = max(0.0, 1.0 - overrun / TIME_EFFICIENCY_SPAN_MS)
    accuracy = sum(1 for r in responses if r.is_correct) / n
    variability = _coefficient_of_variation(times)

    recommendations: List[str] = []
    if efficiency < MIN_TIME_EFFICIENCY:
        recommendations.append(
            "Consider optimizing question selection for better time efficiency"
        )
    if accuracy < MIN_EXPECTED_ACCURACY:
        recommendations.append(
            "Test may be too difficult - consider adjusting the initial difficulty"
        )
    elif accuracy > MAX_EXPECTED_ACCURACY:
        recommendations.append(
            "Test may be too easy - consider starting with harder questions"
        )
    if variability > MAX_TIME_VARIABILITY:
        recommendations.append(
            "High response time variability detected - consider fatigue-aware selection"
        )

    return SessionEfficiency(
        efficiency=efficiency,
        accuracy=accuracy,
        response_time_variability=variability,
        recommendations=recommendations,
    )


def item_exposure_rates(histories: Iterable[Sequence[Response]]) -> Dict[str, float]:
    """
    Share of all administrations taken by each item across sessions.

    rate_i = administrations_i / total administrations
    """
    counts: Dict[str, int] = {}
    total = 0
    for history in histories:
        for response in history:
            counts[response.item_id] = counts.get(response.item_id, 0) + 1
            total += 1
    if total == 0:
        return {}
    return {item_id: count / total for item_id, count in counts.items()}


def overexposed_items(
    histories: Iterable[Sequence[Response]],
    threshold: float = DEFAULT_EXPOSURE_ALERT_THRESHOLD,
) -> List[Tuple[str, float]]:
    """
    Items whose exposure rate exceeds ``threshold``, highest rate first.

    Raises:
        ValueError: If threshold is not in [0.0, 1.0].
    """
    if not (0.0 <= threshold <= 1.0):
        raise ValueError(f"threshold must be in [0.0, 1.0], got {threshold}")

    rates = item_exposure_rates(histories)
    flagged = [(item_id, rate) for item_id, rate in rates.items() if rate > threshold]
    flagged.sort(key=lambda x: x[1], reverse=True)

    for item_id, rate in flagged:
        logger.warning(
            f"Item {item_id} exposure rate {rate:.1%} exceeds threshold {threshold:.1%}"
        )
    return flagged


def _coefficient_of_variation(values: Sequence[float]) -> float:
    mean = sum(values) / len(values)
    if mean == 0.0:
        return 0.0
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return math.sqrt(variance) / mean
