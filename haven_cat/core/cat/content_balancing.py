"""
Content balancing for Computerized Adaptive Testing.

Keeps the administered items spread across content categories by boosting
the selection weight of categories that are under-represented so far:

    boost(category) = max(floor, ceiling - slope * count(category) / total)

With the defaults (floor 0.5, ceiling 1.5, slope 2.0) an unseen category gets
a 1.5x boost, a category holding half of the administered items gets 0.5x,
and no category ever drops below the floor. Boosts apply only once at least
one item has been answered.
"""

import logging
from typing import Dict, List, Mapping, Optional

from haven_cat.core.cat.exposure_control import ItemCandidate

logger = logging.getLogger(__name__)

DEFAULT_BOOST_FLOOR = 0.5
DEFAULT_BOOST_CEILING = 1.5
DEFAULT_BOOST_SLOPE = 2.0


def category_boost(
    category_id: str,
    category_counts: Mapping[str, int],
    floor: float = DEFAULT_BOOST_FLOOR,
    ceiling: float = DEFAULT_BOOST_CEILING,
    slope: float = DEFAULT_BOOST_SLOPE,
) -> float:
    """
    Compute the content-balancing multiplier for one category.

    Args:
        category_id: Category of the candidate item.
        category_counts: Items answered so far per category.
        floor: Lower bound of the multiplier.
        ceiling: Multiplier for a category with no answered items.
        slope: Reduction per unit of the category's share of answered items.

    Returns:
        Multiplier in [floor, ceiling]. Returns 1.0 (no boost) when nothing
        has been answered yet.

    Raises:
        ValueError: If floor is negative or exceeds ceiling, or slope is negative.
    """
    if floor < 0 or floor > ceiling:
        raise ValueError(
            f"Boost floor must be in [0, ceiling], got floor={floor}, ceiling={ceiling}"
        )
    if slope < 0:
        raise ValueError(f"Boost slope must be non-negative, got {slope}")

    total = sum(category_counts.values())
    if total <= 0:
        return 1.0

    ratio = category_counts.get(category_id, 0) / total
    return max(floor, ceiling - slope * ratio)


def apply_content_boost(
    candidates: List[ItemCandidate],
    category_counts: Optional[Mapping[str, int]],
    floor: float = DEFAULT_BOOST_FLOOR,
    ceiling: float = DEFAULT_BOOST_CEILING,
    slope: float = DEFAULT_BOOST_SLOPE,
) -> List[ItemCandidate]:
    """
    Multiply each candidate's information by its category boost.

    Candidates are updated in place and also returned. Without category
    counts, or before any item was answered, information is left unchanged.
    """
    if not category_counts or sum(category_counts.values()) <= 0:
        return candidates

    boosts: Dict[str, float] = {}
    for candidate in candidates:
        category_id = candidate.item.category_id
        if category_id not in boosts:
            boosts[category_id] = category_boost(
                category_id, category_counts, floor=floor, ceiling=ceiling, slope=slope
            )
        candidate.information *= boosts[category_id]

    logger.debug(f"Content balancing boosts: {boosts}")
    return candidates
