"""
Maximum Fisher Information (MFI) item selection for Computerized Adaptive Testing.

Selects the next item that is most informative at the current ability
estimate under the 3PL model, subject to content balancing and exposure
control.

The selection pipeline:
1. Filter out items already answered in this session
2. Compute Fisher information for each remaining item at current theta
3. Apply content-balancing boosts (under-represented categories weigh more)
4. Rank by boosted information and pick uniformly from the top-K (randomesque)
5. Return the selected item, or None if the pool is exhausted

References:
    - Lord, F.M. (1980). Applications of item response theory to practical
      testing problems.
    - Kingsbury, G.G., & Zara, A.R. (1989). Procedures for selecting items for
      computerized adaptive tests.
"""

import logging
import random
from typing import AbstractSet, Iterable, Mapping, Optional

from haven_cat.core.cat.content_balancing import (
    DEFAULT_BOOST_CEILING,
    DEFAULT_BOOST_FLOOR,
    DEFAULT_BOOST_SLOPE,
    apply_content_boost,
)
from haven_cat.core.cat.exposure_control import (
    DEFAULT_RANDOMESQUE_K,
    ExposureMonitor,
    ItemCandidate,
    apply_randomesque,
)
from haven_cat.core.cat.irt_model import fisher_information_3pl
from haven_cat.core.cat.models import BankItem

logger = logging.getLogger(__name__)

RANDOMESQUE_K = DEFAULT_RANDOMESQUE_K


def select_next_item(
    item_pool: Iterable[BankItem],
    theta_estimate: float,
    answered_item_ids: AbstractSet[str],
    category_counts: Optional[Mapping[str, int]] = None,
    rng: Optional[random.Random] = None,
    randomesque_k: int = RANDOMESQUE_K,
    monitor: Optional[ExposureMonitor] = None,
    boost_floor: float = DEFAULT_BOOST_FLOOR,
    boost_ceiling: float = DEFAULT_BOOST_CEILING,
    boost_slope: float = DEFAULT_BOOST_SLOPE,
) -> Optional[BankItem]:
    """
    Select the next item using Maximum Fisher Information with constraints.

    Args:
        item_pool: Candidate items with calibrated 3PL parameters.
        theta_estimate: Current ability estimate.
        answered_item_ids: Item ids already answered in this session.
        category_counts: Items answered so far per category. Content
            balancing is skipped when None or empty.
        rng: Random instance used for the randomesque draw.
        randomesque_k: Number of top items to select from. Set to 1 to
            disable randomesque selection.
        monitor: Optional ExposureMonitor that records the selection.
        boost_floor: Minimum content-balancing multiplier.
        boost_ceiling: Multiplier for categories with no answered items.
        boost_slope: Boost reduction per unit of a category's share.

    Returns:
        The selected BankItem, or None if no unanswered items remain.
    """
    candidates = [
        ItemCandidate(
            item=item,
            information=fisher_information_3pl(
                theta_estimate,
                item.params.discrimination,
                item.params.difficulty,
                item.params.guessing,
            ),
        )
        for item in item_pool
        if item.id not in answered_item_ids
    ]

    if not candidates:
        logger.warning(
            f"No eligible items remaining after filtering "
            f"(answered: {len(answered_item_ids)})"
        )
        return None

    apply_content_boost(
        candidates,
        category_counts,
        floor=boost_floor,
        ceiling=boost_ceiling,
        slope=boost_slope,
    )

    # Ties broken by id so a seeded rng reproduces the same choice
    candidates.sort(key=lambda c: (-c.information, c.item.id))

    selected = apply_randomesque(candidates, k=randomesque_k, monitor=monitor, rng=rng)

    logger.debug(
        f"Item selection: theta={theta_estimate:.3f}, "
        f"eligible={len(candidates)}, "
        f"selected {selected.item.id} "
        f"(a={selected.item.params.discrimination:.2f}, "
        f"b={selected.item.params.difficulty:.2f}, "
        f"c={selected.item.params.guessing:.2f}, "
        f"info={selected.information:.4f})"
    )

    return selected.item
