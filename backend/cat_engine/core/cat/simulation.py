"""
CAT simulation for validating the adaptive-testing engine.

Simulates examinees with known ability taking adaptive tests against a
synthetic item bank, then compares the final estimates with the true
abilities (bias, RMSE) and summarizes test length and stopping reasons.

Synthetic item parameters (Lord, 1980):
    - Discrimination (a) ~ LogNormal(0.0, 0.3), clipped to [0.5, 2.5]
    - Difficulty (b) ~ Normal(0.0, 1.0), clipped to [-3.0, 3.0]
    - Guessing (c) ~ Uniform(0.0, 0.25)

Each item also gets the coarse band nearest to its difficulty so band-based
strategies can be simulated on the same bank.

References:
    - Weiss, D. J. (2004). Computerized adaptive testing for effective and
      efficient measurement in counseling and education. Measurement and
      Evaluation in Counseling and Development, 37(2), 70-84.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from cat_engine.core.cat.engine import CATSessionManager
from cat_engine.core.cat.item_response import probability_correct
from cat_engine.core.cat.models import Item, Response, build_item_lookup
from cat_engine.core.cat.strategies import SelectionStrategy
from libs.domain_types import DifficultyBand

logger = logging.getLogger(__name__)

DEFAULT_SUBJECTS = ["quant", "reasoning", "english", "general_awareness"]

DISCRIMINATION_LOGNORMAL_MEAN = 0.0
DISCRIMINATION_LOGNORMAL_SD = 0.3
DISCRIMINATION_MIN = 0.5
DISCRIMINATION_MAX = 2.5
DIFFICULTY_NORMAL_MEAN = 0.0
DIFFICULTY_NORMAL_SD = 1.0
DIFFICULTY_MIN = -3.0
DIFFICULTY_MAX = 3.0
GUESSING_MAX = 0.25

# Upper difficulty edge of each band for synthetic items
BAND_EDGES = [
    (-0.75, DifficultyBand.BEGINNER),
    (0.0, DifficultyBand.INTERMEDIATE),
    (0.75, DifficultyBand.ADVANCED),
]

NO_ITEMS_REASON = "no_items"


@dataclass
class SimulationConfig:
    """Configuration for a CAT simulation run."""

    n_examinees: int = 200
    theta_mean: float = 0.0
    theta_sd: float = 1.0
    max_items: int = 30
    se_threshold: float = 0.30
    seed: int = 42


@dataclass
class ExamineeResult:
    """Per-examinee simulation results."""

    true_theta: float
    estimated_theta: float
    final_se: float
    bias: float  # estimated_theta - true_theta
    items_administered: int
    stopping_reason: str
    administered_item_ids: List[str] = field(default_factory=list)


@dataclass
class SimulationResult:
    """Aggregate simulation results."""

    config: SimulationConfig
    examinee_results: List[ExamineeResult]
    mean_items: float
    median_items: float
    mean_se: float
    mean_bias: float
    rmse: float
    convergence_rate: float  # share of examinees ending with SE <= threshold
    stopping_reason_counts: Dict[str, int]


def band_for_difficulty(difficulty: float) -> DifficultyBand:
    for upper, band in BAND_EDGES:
        if difficulty < upper:
            return band
    return DifficultyBand.EXPERT


def generate_item_bank(
    n_items_per_subject: int = 50,
    subjects: Optional[List[str]] = None,
    seed: int = 42,
) -> List[Item]:
    """
    Generate a synthetic, calibrated item bank.

    Args:
        n_items_per_subject: Number of items per subject.
        subjects: Subject names. Defaults to DEFAULT_SUBJECTS.
        seed: Random seed for reproducibility.

    Returns:
        List of Items with calibrated difficulties.
    """
    if subjects is None:
        subjects = DEFAULT_SUBJECTS

    rng = np.random.default_rng(seed)
    items = []

    for subject in subjects:
        for index in range(n_items_per_subject):
            a = rng.lognormal(
                mean=DISCRIMINATION_LOGNORMAL_MEAN, sigma=DISCRIMINATION_LOGNORMAL_SD
            )
            a = float(np.clip(a, DISCRIMINATION_MIN, DISCRIMINATION_MAX))

            b = rng.normal(loc=DIFFICULTY_NORMAL_MEAN, scale=DIFFICULTY_NORMAL_SD)
            b = float(np.clip(b, DIFFICULTY_MIN, DIFFICULTY_MAX))

            c = float(rng.uniform(0.0, GUESSING_MAX))

            items.append(
                Item(
                    id=f"{subject}-{index + 1}",
                    subject=subject,
                    topic=f"{subject}-topic-{index % 5 + 1}",
                    band=band_for_difficulty(b),
                    discrimination=a,
                    guessing=c,
                    calibrated_difficulty=b,
                )
            )

    logger.info(
        f"Generated item bank: {len(items)} items across {len(subjects)} subjects "
        f"({n_items_per_subject} per subject)"
    )

    return items


def simulate_response(true_theta: float, item: Item, rng: random.Random) -> bool:
    """Draw a correct/incorrect answer from the 3PL model at ``true_theta``."""
    prob = probability_correct(
        true_theta, item.difficulty.value, item.discrimination, item.guessing
    )
    return rng.random() < prob


def simulate_examinee(
    true_theta: float,
    item_bank: List[Item],
    manager: CATSessionManager,
    rng: random.Random,
    max_items: int,
    strategy: Optional[SelectionStrategy] = None,
) -> ExamineeResult:
    """
    Run one adaptive session: select -> answer -> estimate -> stop check.

    Items are never repeated within a session; the remaining pool is passed
    as candidates on every step.
    """
    lookup = build_item_lookup(item_bank)
    responses: List[Response] = []
    administered = set()
    stop_reason = NO_ITEMS_REASON

    step = manager.evaluate(responses, lookup, max_questions=max_items)
    while step.should_continue:
        remaining = [item for item in item_bank if item.id not in administered]
        selection = manager.select_next(
            remaining,
            responses,
            item_lookup=lookup,
            ability=step.ability,
            strategy=strategy,
            rng=rng,
        )
        if selection is None:
            logger.warning(
                f"No eligible items after {len(responses)} items "
                f"(true theta={true_theta:.2f})"
            )
            break

        is_correct = simulate_response(true_theta, selection.item, rng)
        responses.append(manager.record_response(selection, is_correct))
        administered.add(selection.item.id)

        step = manager.evaluate(responses, lookup, max_questions=max_items)
        if step.should_stop and step.stop_reason is not None:
            stop_reason = step.stop_reason.value

    return ExamineeResult(
        true_theta=true_theta,
        estimated_theta=step.ability,
        final_se=step.standard_error,
        bias=step.ability - true_theta,
        items_administered=len(responses),
        stopping_reason=stop_reason,
        administered_item_ids=[r.item_id for r in responses],
    )


def run_simulation(
    item_bank: List[Item],
    config: SimulationConfig,
    strategy: Optional[SelectionStrategy] = None,
) -> SimulationResult:
    """
    Simulate ``config.n_examinees`` sessions with abilities drawn from
    N(theta_mean, theta_sd^2).
    """
    if config.n_examinees < 1:
        raise ValueError(f"n_examinees must be positive, got {config.n_examinees}")

    logger.info(
        f"Starting CAT simulation: N={config.n_examinees}, "
        f"theta ~ N({config.theta_mean}, {config.theta_sd}²)"
    )

    rng = random.Random(config.seed)
    np_rng = np.random.default_rng(config.seed)
    manager = CATSessionManager(
        max_items=config.max_items, se_threshold=config.se_threshold
    )

    examinee_results = []
    for examinee_id in range(1, config.n_examinees + 1):
        true_theta = float(np_rng.normal(loc=config.theta_mean, scale=config.theta_sd))
        examinee_results.append(
            simulate_examinee(
                true_theta, item_bank, manager, rng, config.max_items, strategy
            )
        )
        if examinee_id % 100 == 0:
            logger.info(f"Completed {examinee_id}/{config.n_examinees} examinees")

    return aggregate_results(config, examinee_results)


def aggregate_results(
    config: SimulationConfig, examinee_results: List[ExamineeResult]
) -> SimulationResult:
    """Overall length, precision and recovery metrics."""
    if not examinee_results:
        raise ValueError("Cannot aggregate results from empty examinee list")

    items_administered = [r.items_administered for r in examinee_results]
    biases = np.array([r.bias for r in examinee_results])
    converged = sum(1 for r in examinee_results if r.final_se <= config.se_threshold)

    stopping_reason_counts: Dict[str, int] = {}
    for result in examinee_results:
        reason = result.stopping_reason
        stopping_reason_counts[reason] = stopping_reason_counts.get(reason, 0) + 1

    result = SimulationResult(
        config=config,
        examinee_results=examinee_results,
        mean_items=float(np.mean(items_administered)),
        median_items=float(np.median(items_administered)),
        mean_se=float(np.mean([r.final_se for r in examinee_results])),
        mean_bias=float(np.mean(biases)),
        rmse=float(np.sqrt(np.mean(biases**2))),
        convergence_rate=converged / len(examinee_results),
        stopping_reason_counts=stopping_reason_counts,
    )

    logger.info(
        f"Simulation complete: mean_items={result.mean_items:.1f}, "
        f"median_items={result.median_items:.1f}, mean_SE={result.mean_se:.3f}, "
        f"RMSE={result.rmse:.3f}, convergence_rate={result.convergence_rate:.1%}"
    )

    return result
