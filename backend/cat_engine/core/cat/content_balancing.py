"""
Content balancing for Computerized Adaptive Testing.

Steers item selection toward a desired subject mix and away from topics the
test-taker has just seen. Both are soft policies layered on top of maximum
information selection:

    Subject weighting: a candidate whose subject is currently below its
    target proportion has its information multiplied by UNDER_REPRESENTED_WEIGHT,
    otherwise by OVER_REPRESENTED_WEIGHT.

    Recent-topic avoidance: topics answered within the trailing window are
    excluded when the caller lists them as topics to avoid.

References:
    - Kingsbury, G. G., & Zara, A. R. (1989). Procedures for selecting items
      for computerized adaptive tests.
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Set

from cat_engine.core.cat.models import Item, ItemLookup, Response

logger = logging.getLogger(__name__)

UNDER_REPRESENTED_WEIGHT = 1.5
OVER_REPRESENTED_WEIGHT = 0.8


def track_subject_coverage(
    history: Sequence[Response], item_lookup: ItemLookup
) -> Dict[str, int]:
    """
    Count answered items per subject.

    Responses whose item is not in ``item_lookup`` are not counted.
    """
    coverage: Dict[str, int] = {}
    for response in history:
        item = item_lookup.get(response.item_id)
        if item is not None:
            coverage[item.subject] = coverage.get(item.subject, 0) + 1
    return coverage


def current_subject_proportion(
    subject: str,
    history: Sequence[Response],
    item_lookup: ItemLookup,
) -> float:
    """
    Share of the history answered in ``subject``.

    The denominator is the full history length, so responses to unknown
    items dilute every subject equally. An empty history gives 0.0.
    """
    if not history:
        return 0.0
    coverage = track_subject_coverage(history, item_lookup)
    return coverage.get(subject, 0) / len(history)


def subject_weight(
    item: Item,
    subject_distribution: Mapping[str, float],
    history: Sequence[Response],
    item_lookup: ItemLookup,
) -> float:
    """
    Multiplier applied to an item's information for subject balancing.

    Subjects absent from the distribution have a target of 0 and are
    therefore never under-represented.
    """
    desired = subject_distribution.get(item.subject, 0.0)
    current = current_subject_proportion(item.subject, history, item_lookup)
    if desired > current:
        return UNDER_REPRESENTED_WEIGHT
    return OVER_REPRESENTED_WEIGHT


def even_distribution(subjects: Sequence[str]) -> Dict[str, float]:
    """Equal target proportion for each distinct subject, in first-seen order."""
    unique = list(dict.fromkeys(subjects))
    if not unique:
        return {}
    share = 1.0 / len(unique)
    return {subject: share for subject in unique}


def recent_topics(
    history: Sequence[Response],
    item_lookup: ItemLookup,
    window: int,
) -> Set[str]:
    """Topics of the items answered in the last ``window`` responses."""
    if window <= 0:
        return set()
    topics: Set[str] = set()
    for response in history[-window:]:
        item = item_lookup.get(response.item_id)
        if item is not None:
            topics.add(item.topic)
    return topics


def filter_recent_topics(
    candidates: Sequence[Item],
    avoid_topics: Optional[Sequence[str]],
    history: Sequence[Response],
    item_lookup: ItemLookup,
    window: int,
) -> List[Item]:
    """
    Drop candidates whose topic is both listed in ``avoid_topics`` and was
    answered within the trailing ``window`` responses.
    """
    if not avoid_topics:
        return list(candidates)
    blocked = set(avoid_topics) & recent_topics(history, item_lookup, window)
    if not blocked:
        return list(candidates)
    kept = [item for item in candidates if item.topic not in blocked]
    logger.debug(
        f"Content balancing: excluded {len(candidates) - len(kept)} items "
        f"from recently seen topics {sorted(blocked)}"
    )
    return kept
