"""
Stopping rules for Computerized Adaptive Testing (CAT).

Decides whether a session should present another item, balancing
measurement precision (SE target), estimate stability, and practical limits.

Stopping Rules (evaluated in priority order):
    1. Minimum items: always continue until MIN_ITEMS responses exist
    2. Maximum items: stop once the session reaches max_questions
    3. SE threshold: stop once SE(theta) <= target_se
    4. Theta stabilization: with at least STABILITY_MIN_ITEMS responses,
       re-estimate ability on the last STABILITY_WINDOW growing prefixes
       of the history; stop if their standard deviation is below
       STABILITY_SD_THRESHOLD
    5. Otherwise continue

The stabilization check is a secondary convergence signal, independent of SE.
It costs STABILITY_WINDOW full re-estimations, which is cheap at session
scale (tens of responses).

References:
    - Weiss, D. J., & Kingsbury, G. G. (1984). Application of computerized
      adaptive testing to educational problems. Journal of Educational
      Measurement, 21(4), 361-375.
    - Babcock, B., & Weiss, D. J. (2012). Termination criteria in
      computerized adaptive tests. Journal of Computerized Adaptive Testing.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from cat_engine.core.cat.ability_estimation import prefix_estimates, standard_error
from cat_engine.core.cat.models import ItemLookup, Response
from libs.domain_types import StopReason

logger = logging.getLogger(__name__)

# Minimum exposure: no stopping rule fires below this many responses
MIN_ITEMS = 5

# Primary stopping criterion: SE(theta) threshold
SE_THRESHOLD = 0.30

# Stabilization check applies from this many responses
STABILITY_MIN_ITEMS = 10

# Number of trailing prefix estimates compared by the stabilization check
STABILITY_WINDOW = 5

# Prefix estimates with SD below this value count as stable
STABILITY_SD_THRESHOLD = 0.1


@dataclass
class StoppingDecision:
    """
    Result of evaluating stopping criteria for a CAT session.

    Attributes:
        should_stop: Whether the session should terminate.
        reason: Primary reason for stopping (if should_stop=True), or None.
        details: Diagnostic information including:
            - num_items: Number of responses in the history
            - max_questions: Configured hard cap
            - min_items_met: Whether the minimum exposure is satisfied
            - at_max_items: Whether the hard cap has been reached
            - se: Standard error at the current ability (when evaluated)
            - se_threshold: Configured SE target
            - estimate_sd: SD of the trailing prefix estimates (when evaluated)
    """

    should_stop: bool
    reason: Optional[StopReason]
    details: Dict[str, Any]

    @property
    def should_continue(self) -> bool:
        return not self.should_stop


def check_stopping_criteria(
    responses: Sequence[Response],
    item_lookup: ItemLookup,
    ability: float,
    max_questions: int,
    target_se: float = SE_THRESHOLD,
    min_items: int = MIN_ITEMS,
    stability_min_items: int = STABILITY_MIN_ITEMS,
    stability_window: int = STABILITY_WINDOW,
    stability_sd_threshold: float = STABILITY_SD_THRESHOLD,
) -> StoppingDecision:
    """
    Evaluate stopping criteria in priority order.

    Minimum exposure is checked before the hard cap, so a max_questions
    below min_items cannot end a session early.

    Args:
        responses: Ordered response history.
        item_lookup: Mapping from item id to Item; unknown items are skipped.
        ability: Current ability estimate (used for the SE check).
        max_questions: Hard cap on session length.
        target_se: Stop once SE <= this value.
        min_items: Responses required before any stopping rule applies.
        stability_min_items: Responses required before the stabilization
            check applies.
        stability_window: Number of trailing prefix estimates compared.
        stability_sd_threshold: SD below which estimates count as stable.

    Returns:
        StoppingDecision with should_stop flag, reason, and diagnostic details.
    """
    num_items = len(responses)
    details: Dict[str, Any] = {
        "num_items": num_items,
        "max_questions": max_questions,
        "se_threshold": target_se,
        "min_items_met": num_items >= min_items,
        "at_max_items": num_items >= max_questions,
    }

    # Rule 1: Minimum items
    if num_items < min_items:
        logger.debug(
            f"Continuing: {num_items}/{min_items} responses (below minimum)"
        )
        return StoppingDecision(should_stop=False, reason=None, details=details)

    # Rule 2: Maximum items, regardless of precision
    if num_items >= max_questions:
        logger.info(f"Stopping: reached maximum items ({num_items}/{max_questions})")
        return StoppingDecision(
            should_stop=True, reason=StopReason.MAX_ITEMS, details=details
        )

    # Rule 3: SE threshold (primary stopping criterion)
    se = standard_error(responses, item_lookup, ability)
    details["se"] = se
    if se <= target_se:
        logger.info(
            f"Stopping: SE threshold met (SE={se:.4f} <= {target_se:.4f}) "
            f"after {num_items} items"
        )
        return StoppingDecision(
            should_stop=True, reason=StopReason.SE_THRESHOLD, details=details
        )

    # Rule 4: Theta stabilization (secondary criterion)
    if num_items >= stability_min_items and stability_window > 1:
        lengths = range(max(1, num_items - stability_window + 1), num_items + 1)
        estimates = prefix_estimates(responses, item_lookup, list(lengths))
        estimate_sd = population_sd(estimates)
        details["estimate_sd"] = estimate_sd
        if estimate_sd < stability_sd_threshold:
            logger.info(
                f"Stopping: theta stabilized (sd={estimate_sd:.4f} < "
                f"{stability_sd_threshold:.4f}) after {num_items} items"
            )
            return StoppingDecision(
                should_stop=True, reason=StopReason.THETA_STABLE, details=details
            )

    logger.debug(
        f"Continuing: SE={se:.4f} (threshold={target_se:.4f}), items={num_items}"
    )
    return StoppingDecision(should_stop=False, reason=None, details=details)


def should_continue(
    responses: Sequence[Response],
    item_lookup: ItemLookup,
    ability: float,
    max_questions: int,
    target_se: float = SE_THRESHOLD,
) -> bool:
    """Whether the session should present another item."""
    return check_stopping_criteria(
        responses, item_lookup, ability, max_questions, target_se
    ).should_continue


def population_sd(values: Sequence[float]) -> float:
    """Population standard deviation; 0.0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return math.sqrt(variance)
