"""
Maximum-likelihood ability estimation for Computerized Adaptive Testing.

Estimates ability (theta) from the full response history with Newton-Raphson
(Fisher scoring) iterations over the 3PL likelihood:

    dL/dtheta = sum(s_i / P_i) over correct responses
              - sum(s_i / (1 - P_i)) over incorrect responses
    I(theta)  = sum(s_i^2 / (P_i * (1 - P_i)))

    theta <- theta + (dL/dtheta) / I(theta)

Where s_i is the derivative of item i's response curve (see
``item_response.score_term``). The standard error of the estimate is
1 / sqrt(I(theta)).

MLE has no finite solution for all-correct or all-incorrect histories, so
the estimate is held inside ABILITY_BOUNDS. Estimation is recomputed from
scratch on every call; the estimate is a view of the history, never stored.

References:
    - Lord, F. M. (1980). Applications of item response theory to practical
      testing problems, ch. 4.
    - Baker, F. B., & Kim, S.-H. (2004). Item response theory: Parameter
      estimation techniques, ch. 7.
"""

import logging
import math
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from cat_engine.core.cat.item_response import (
    item_information,
    probability_correct,
    score_term,
)
from cat_engine.core.cat.models import (
    AbilityEstimate,
    Item,
    ItemLookup,
    Response,
    resolve_responses,
)
from cat_engine.core.datetime_utils import utc_now

logger = logging.getLogger(__name__)

INITIAL_ABILITY = 0.0
MAX_ITERATIONS = 50
CONVERGENCE_TOLERANCE = 0.001

# Estimates are held inside this range; see module docstring.
ABILITY_BOUNDS = (-4.0, 4.0)

# Returned when no response carries any information.
MAX_STANDARD_ERROR = 1.0


def estimate_ability(
    responses: Sequence[Response],
    item_lookup: ItemLookup,
    initial_ability: float = INITIAL_ABILITY,
    max_iterations: int = MAX_ITERATIONS,
    tolerance: float = CONVERGENCE_TOLERANCE,
) -> float:
    """
    Estimate ability by Newton-Raphson maximum likelihood.

    Args:
        responses: Ordered response history.
        item_lookup: Mapping from item id to Item. Responses whose item is
            missing are skipped.
        initial_ability: Starting point of the iteration.
        max_iterations: Iteration cap.
        tolerance: Stop once |update| falls below this value.

    Returns:
        The ability estimate. An empty history (or one where every item is
        missing) returns ``initial_ability`` without iterating.
    """
    resolved = resolve_responses(responses, item_lookup)
    if not resolved:
        return initial_ability

    theta_min, theta_max = ABILITY_BOUNDS
    ability = initial_ability

    for iteration in range(max_iterations):
        derivative, information = _score_and_information(ability, resolved)

        if information <= 0.0:
            logger.debug(
                f"Zero information at theta={ability:.3f} after "
                f"{iteration} iterations; stopping"
            )
            break

        update = derivative / information
        proposed = ability + update
        previous = ability
        ability = max(theta_min, min(theta_max, proposed))

        if abs(update) < tolerance:
            break

        if ability != proposed and ability == previous:
            # Already at a bound and the likelihood still increases outward.
            logger.debug(
                f"Ability estimate clamped to {ability:.1f} after "
                f"{iteration + 1} iterations ({len(resolved)} responses)"
            )
            break

    return ability


def standard_error(
    responses: Sequence[Response],
    item_lookup: ItemLookup,
    ability: float,
) -> float:
    """
    Standard error of an ability estimate: 1 / sqrt(total information).

    Returns:
        SE at ``ability``, or MAX_STANDARD_ERROR (1.0) when the history
        carries no information (empty or all items missing).
    """
    resolved = resolve_responses(responses, item_lookup)
    total_information = sum(
        _information_for(ability, item) for _, item in resolved
    )
    if total_information <= 0.0:
        return MAX_STANDARD_ERROR
    return 1.0 / math.sqrt(total_information)


def estimate_ability_with_se(
    responses: Sequence[Response],
    item_lookup: ItemLookup,
    timestamp: Optional[datetime] = None,
) -> AbilityEstimate:
    """Estimate ability and its SE together as an AbilityEstimate."""
    ability = estimate_ability(responses, item_lookup)
    se = standard_error(responses, item_lookup, ability)
    return AbilityEstimate(
        ability=ability,
        standard_error=se,
        question_number=len(responses),
        timestamp=timestamp or utc_now(),
    )


def prefix_estimates(
    responses: Sequence[Response],
    item_lookup: ItemLookup,
    lengths: Sequence[int],
) -> List[float]:
    """Ability estimates for the history truncated to each of ``lengths``."""
    return [estimate_ability(responses[:n], item_lookup) for n in lengths]


def _score_and_information(
    ability: float,
    resolved: Sequence[Tuple[Response, Item]],
) -> Tuple[float, float]:
    derivative = 0.0
    information = 0.0
    for response, item in resolved:
        b = item.difficulty.value
        a = item.discrimination
        c = item.guessing
        prob = probability_correct(ability, b, a, c)
        s = score_term(ability, b, a, c)

        if response.is_correct:
            derivative += s / prob
        else:
            derivative -= s / (1.0 - prob)

        information += (s * s) / (prob * (1.0 - prob))
    return derivative, information


def _information_for(ability: float, item: Item) -> float:
    return item_information(
        ability, item.difficulty.value, item.discrimination, item.guessing
    )
