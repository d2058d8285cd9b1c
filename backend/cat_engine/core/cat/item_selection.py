"""
Maximum Fisher Information (MFI) item selection for Computerized Adaptive Testing.

Selects the next item from a candidate pool that maximizes Fisher information
at the current ability estimate (theta). For the 3PL model as used here:

    I_i(theta) = a_i^2 * P_i(theta) * (1 - P_i(theta))

Where P_i(theta) is the clamped 3PL probability (see item_response).

The selection pipeline:
1. Drop candidates on recently seen topics the caller asked to avoid
2. Drop candidates outside the allowed difficulty bands
3. Compute Fisher information for each remaining candidate at current theta
4. Weight by subject balance when a target subject distribution is given
5. Rank by weighted score (descending); ties keep input order
6. Return the top item, or randomly one of the top-K when exposure control
   is enabled with a caller-supplied RNG

References:
    - Lord, F. M. (1980). Applications of item response theory to practical
      testing problems, ch. 10.
    - Kingsbury, G. G., & Zara, A. R. (1989). Procedures for selecting items
      for computerized adaptive tests.
"""

import logging
import random
from dataclasses import dataclass
from typing import List, Optional, Sequence

from cat_engine.core.cat.content_balancing import (
    filter_recent_topics,
    subject_weight,
)
from cat_engine.core.cat.item_response import fisher_information_3pl
from cat_engine.core.cat.models import (
    Item,
    ItemLookup,
    Response,
    SelectionConstraints,
    build_item_lookup,
)

logger = logging.getLogger(__name__)

# Exposure control: 1 disables randomesque selection (pure arg-max).
RANDOMESQUE_K = 1


@dataclass(frozen=True)
class ItemCandidate:
    """A candidate with its information and subject-weighted score."""

    item: Item
    information: float
    weight: float = 1.0

    @property
    def score(self) -> float:
        return self.information * self.weight


def fisher_information_for_item(ability: float, item: Item) -> float:
    """Selection-time Fisher information of ``item`` at ``ability``."""
    return fisher_information_3pl(
        ability,
        item.difficulty.value,
        item.discrimination,
        item.guessing,
    )


def filter_candidates(
    candidates: Sequence[Item],
    history: Sequence[Response],
    constraints: Optional[SelectionConstraints],
    item_lookup: ItemLookup,
) -> List[Item]:
    """
    Apply the hard constraints: recent-topic avoidance and allowed bands.

    An explicitly empty ``difficulty_constraints`` allows no band at all.
    """
    if constraints is None:
        return list(candidates)

    eligible = filter_recent_topics(
        candidates,
        constraints.avoid_recent_topics,
        history,
        item_lookup,
        constraints.recent_window,
    )

    if constraints.difficulty_constraints is not None:
        allowed = set(constraints.difficulty_constraints)
        eligible = [item for item in eligible if item.band in allowed]

    return eligible


def rank_candidates(
    candidates: Sequence[Item],
    ability: float,
    history: Sequence[Response],
    constraints: Optional[SelectionConstraints] = None,
    item_lookup: Optional[ItemLookup] = None,
) -> List[ItemCandidate]:
    """
    Score every eligible candidate and sort by weighted score, descending.

    The sort is stable, so among equal scores the candidate listed first in
    ``candidates`` ranks first.

    Args:
        candidates: Items available for administration.
        ability: Current ability estimate.
        history: Ordered responses already given in this session.
        constraints: Optional selection policy.
        item_lookup: Items referenced by ``history``. Defaults to the
            candidate list itself.

    Returns:
        Ranked candidates (possibly empty).
    """
    lookup = item_lookup if item_lookup is not None else build_item_lookup(candidates)
    eligible = filter_candidates(candidates, history, constraints, lookup)

    distribution = constraints.subject_distribution if constraints else None

    ranked = []
    for item in eligible:
        information = fisher_information_for_item(ability, item)
        weight = 1.0
        if distribution:
            weight = subject_weight(item, distribution, history, lookup)
        ranked.append(ItemCandidate(item=item, information=information, weight=weight))

    ranked.sort(key=lambda c: c.score, reverse=True)
    return ranked


def select_item_candidate(
    candidates: Sequence[Item],
    ability: float,
    history: Sequence[Response],
    constraints: Optional[SelectionConstraints] = None,
    item_lookup: Optional[ItemLookup] = None,
    randomesque_k: int = RANDOMESQUE_K,
    rng: Optional[random.Random] = None,
) -> Optional[ItemCandidate]:
    """
    Select the next item and report its information.

    Same contract as :func:`select_next_item` but returns the ItemCandidate so
    callers can record the information gained at selection time.
    """
    ranked = rank_candidates(candidates, ability, history, constraints, item_lookup)

    if not ranked:
        logger.warning(
            "No eligible items remaining after filtering. "
            f"Pool size: {len(candidates)}, history: {len(history)}"
        )
        return None

    selected = _apply_exposure_control(ranked, randomesque_k, rng)

    logger.debug(
        f"Item selection: theta={ability:.3f}, "
        f"eligible={len(ranked)}, "
        f"selected {selected.item.id} "
        f"(a={selected.item.discrimination:.2f}, "
        f"b={selected.item.difficulty.value:.2f}, "
        f"info={selected.information:.4f}, weight={selected.weight:.1f})"
    )
    return selected


def select_next_item(
    candidates: Sequence[Item],
    ability: float,
    history: Sequence[Response],
    constraints: Optional[SelectionConstraints] = None,
    item_lookup: Optional[ItemLookup] = None,
    randomesque_k: int = RANDOMESQUE_K,
    rng: Optional[random.Random] = None,
) -> Optional[Item]:
    """
    Select the next item using Maximum Fisher Information with constraints.

    Args:
        candidates: Items available for administration.
        ability: Current ability estimate.
        history: Ordered responses already given in this session.
        constraints: Optional subject distribution, allowed bands and topics
            to avoid when recently seen.
        item_lookup: Items referenced by ``history``, used to resolve the
            subject and topic of past responses. Defaults to the candidates.
        randomesque_k: Select among the top-K items. 1 (default) always
            returns the most informative item.
        rng: Random source, required when ``randomesque_k`` > 1.

    Returns:
        The selected Item, or None if no candidate survives filtering.
    """
    selected = select_item_candidate(
        candidates,
        ability,
        history,
        constraints,
        item_lookup,
        randomesque_k,
        rng,
    )
    return selected.item if selected is not None else None


def _apply_exposure_control(
    candidates: List[ItemCandidate],
    k: int,
    rng: Optional[random.Random] = None,
) -> ItemCandidate:
    """
    Apply randomesque exposure control by selecting randomly from the top-K items.

    The engine holds no random state of its own: a ``rng`` must be passed
    whenever k > 1, which keeps every call reproducible from its inputs.

    Raises:
        ValueError: If k is not positive, or k > 1 without an rng.
    """
    if k <= 0:
        raise ValueError(f"randomesque_k must be positive, got {k}")
    if k == 1:
        return candidates[0]
    if rng is None:
        raise ValueError("An rng is required when randomesque_k > 1")
    top_k = candidates[: min(k, len(candidates))]
    return rng.choice(top_k)
