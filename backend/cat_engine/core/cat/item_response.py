"""
Three-parameter logistic (3PL) item response model.

Links a test-taker's latent ability (theta) to the probability of answering
an item correctly:

    P(theta) = c + (1 - c) / (1 + exp(-a * (theta - b)))

Where:
    a = discrimination (> 0), how sharply P changes around b
    b = difficulty, the ability at the curve's inflection point
    c = guessing (0 <= c < 1), lower asymptote from chance

Probabilities are clamped to [PROBABILITY_FLOOR, PROBABILITY_CEILING] so that
downstream log-likelihood terms never see 0 or 1. Parameters outside their
domain are rejected with InvalidParameterError rather than clamped.

References:
    - Birnbaum, A. (1968). Some latent trait models and their use in
      inferring an examinee's ability.
    - Lord, F. M. (1980). Applications of item response theory to practical
      testing problems.
"""

import math
from typing import Any, Dict, Optional

PROBABILITY_FLOOR = 0.01
PROBABILITY_CEILING = 0.99

DEFAULT_DISCRIMINATION = 1.0
DEFAULT_GUESSING = 0.25


class InvalidParameterError(ValueError):
    """An item parameter or ability input is outside its valid domain."""

    def __init__(  # noqa: D107
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if not self.context:
            return self.message
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} (context: {ctx_str})"


def validate_item_parameters(discrimination: float, guessing: float) -> None:
    """
    Check that 3PL item parameters lie within their domain.

    Raises:
        InvalidParameterError: If discrimination is not a finite positive
            number or guessing is outside [0, 1).
    """
    if not _is_finite(discrimination) or discrimination <= 0:
        raise InvalidParameterError(
            "Discrimination parameter must be a finite positive number",
            context={"discrimination": discrimination},
        )
    if not _is_finite(guessing) or not (0.0 <= guessing < 1.0):
        raise InvalidParameterError(
            "Guessing parameter must lie in [0, 1)",
            context={"guessing": guessing},
        )


def validate_finite(name: str, value: float) -> None:
    """Raise InvalidParameterError if ``value`` is NaN or infinite."""
    if not _is_finite(value):
        raise InvalidParameterError(
            f"{name} must be a finite number", context={name: value}
        )


def logistic(logit: float) -> float:
    """Numerically stable logistic function."""
    if logit >= 0:
        return 1.0 / (1.0 + math.exp(-logit))
    exp_logit = math.exp(logit)
    return exp_logit / (1.0 + exp_logit)


def probability_correct(
    ability: float,
    difficulty: float,
    discrimination: float = DEFAULT_DISCRIMINATION,
    guessing: float = DEFAULT_GUESSING,
) -> float:
    """
    Probability of a correct response under the 3PL model.

    Args:
        ability: Test-taker ability (theta).
        difficulty: Item difficulty (b).
        discrimination: Item discrimination (a). Must be > 0.
        guessing: Lower asymptote (c). Must lie in [0, 1).

    Returns:
        Probability clamped to [0.01, 0.99].

    Raises:
        InvalidParameterError: If any input is non-finite or an item
            parameter is outside its domain.
    """
    validate_finite("ability", ability)
    validate_finite("difficulty", difficulty)
    validate_item_parameters(discrimination, guessing)

    prob = guessing + (1.0 - guessing) * logistic(
        discrimination * (ability - difficulty)
    )
    return max(PROBABILITY_FLOOR, min(PROBABILITY_CEILING, prob))


def score_term(
    ability: float,
    difficulty: float,
    discrimination: float = DEFAULT_DISCRIMINATION,
    guessing: float = DEFAULT_GUESSING,
) -> float:
    """
    Derivative of the unclamped 3PL curve with respect to ability.

        s = a(1-c) * exp(-a(theta-b)) / (1 + exp(-a(theta-b)))^2

    Computed as a(1-c) * sigma * (1 - sigma), which is algebraically
    identical and does not overflow for large |a(theta-b)|.
    """
    sigma = logistic(discrimination * (ability - difficulty))
    return discrimination * (1.0 - guessing) * sigma * (1.0 - sigma)


def item_information(
    ability: float,
    difficulty: float,
    discrimination: float = DEFAULT_DISCRIMINATION,
    guessing: float = DEFAULT_GUESSING,
) -> float:
    """
    Fisher information contributed by one response to the ability estimate.

        I(theta) = s^2 / (P * (1 - P))

    This is the term accumulated by the Newton-Raphson estimator and the
    standard error calculation.
    """
    prob = probability_correct(ability, difficulty, discrimination, guessing)
    s = score_term(ability, difficulty, discrimination, guessing)
    return (s * s) / (prob * (1.0 - prob))


def fisher_information_3pl(
    ability: float,
    difficulty: float,
    discrimination: float = DEFAULT_DISCRIMINATION,
    guessing: float = DEFAULT_GUESSING,
) -> float:
    """
    Item information used to rank candidates during selection.

        I(theta) = a^2 * P(theta) * (1 - P(theta))

    with P taken from :func:`probability_correct` (guessing included).

    Returns:
        Non-negative information value.
    """
    prob = probability_correct(ability, difficulty, discrimination, guessing)
    return discrimination * discrimination * prob * (1.0 - prob)


def _is_finite(value: Any) -> bool:
    try:
        return math.isfinite(value)
    except TypeError:
        return False
