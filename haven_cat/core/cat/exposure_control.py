"""
Randomesque exposure control with monitoring for Computerized Adaptive Testing.

Always administering the single most informative item makes a small subset of
the bank appear in nearly every session, which compromises item security and
makes the test predictable. The randomesque method (Kingsbury & Zara, 1989)
instead selects uniformly from the top-K most informative items.

Key components:
    - apply_randomesque(): Randomesque selection with optional monitoring
    - ExposureMonitor: Thread-safe tracking of per-item exposure rates

References:
    - Kingsbury, G.G., & Zara, A.R. (1989). Procedures for selecting items for
      computerized adaptive tests.
    - Stocking, M.L., & Lewis, C. (1998). Controlling item exposure conditional
      on ability in computerized adaptive testing.
"""

import logging
import random
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from haven_cat.core.cat.models import BankItem

logger = logging.getLogger(__name__)

# Standard randomesque K (Kingsbury & Zara, 1989)
DEFAULT_RANDOMESQUE_K = 5

# Default exposure rate threshold for logging alerts (15%)
DEFAULT_EXPOSURE_ALERT_THRESHOLD = 0.15


@dataclass
class ItemCandidate:
    """A bank item with its (possibly boosted) Fisher information value."""

    item: BankItem
    information: float


def apply_randomesque(
    ranked_items: List[ItemCandidate],
    k: int = DEFAULT_RANDOMESQUE_K,
    monitor: Optional["ExposureMonitor"] = None,
    rng: Optional[random.Random] = None,
) -> ItemCandidate:
    """
    Select randomly from the top-K items and optionally record exposure.

    Args:
        ranked_items: Items sorted by information (descending).
        k: Number of top items to select from.
        monitor: Optional ExposureMonitor to track selection rates.
        rng: Random instance. Pass a seeded one for reproducible selection.

    Returns:
        The selected ItemCandidate.

    Raises:
        ValueError: If ranked_items is empty or k is not positive.
    """
    if not ranked_items:
        raise ValueError("Cannot select from empty ranked_items list")
    if k <= 0:
        raise ValueError(f"k must be positive, got {k}")

    top_k = ranked_items[: min(k, len(ranked_items))]
    if rng is not None:
        selected = rng.choice(top_k)
    else:
        selected = random.choice(top_k)

    if monitor is not None:
        monitor.record_selection(selected.item.id)

    logger.debug(
        f"Randomesque selection: chose item {selected.item.id} from top-{len(top_k)} "
        f"(info={selected.information:.4f})"
    )

    return selected


class ExposureMonitor:
    """
    Tracks per-item exposure rates and alerts on over-exposure.

    Thread-safe, in-memory counters scoped to a single process.

    Exposure rate is defined as:
        rate_i = (selections_i) / (total_selections)

    Items exceeding the alert_threshold are logged as warnings by
    check_and_alert().
    """

    def __init__(self, alert_threshold: float = DEFAULT_EXPOSURE_ALERT_THRESHOLD):
        """
        Args:
            alert_threshold: Exposure rate threshold for alerts (default 0.15).

        Raises:
            ValueError: If alert_threshold is not in range [0.0, 1.0].
        """
        if not (0.0 <= alert_threshold <= 1.0):
            raise ValueError(
                f"alert_threshold must be in [0.0, 1.0], got {alert_threshold}"
            )

        self._lock = threading.Lock()
        self._item_counts: Dict[str, int] = {}
        self._total_selections = 0
        self.alert_threshold = alert_threshold

    def record_selection(self, item_id: str) -> None:
        """Record that an item was handed to a candidate."""
        with self._lock:
            self._item_counts[item_id] = self._item_counts.get(item_id, 0) + 1
            self._total_selections += 1

    def get_exposure_rate(self, item_id: str) -> float:
        """Exposure rate for one item, or 0.0 if it was never selected."""
        with self._lock:
            if self._total_selections == 0:
                return 0.0
            return self._item_counts.get(item_id, 0) / self._total_selections

    def get_exposure_rates(self) -> Dict[str, float]:
        """Exposure rates for every item selected at least once."""
        with self._lock:
            return self._rates_locked()

    def _rates_locked(self) -> Dict[str, float]:
        if self._total_selections == 0:
            return {}
        return {
            item_id: count / self._total_selections
            for item_id, count in self._item_counts.items()
        }

    def get_overexposed_items(self) -> List[Tuple[str, float]]:
        """
        Items whose exposure rate exceeds the alert threshold.

        Returns:
            List of (item_id, exposure_rate) tuples sorted by rate (descending).
        """
        rates = self.get_exposure_rates()
        overexposed = [
            (item_id, rate)
            for item_id, rate in rates.items()
            if rate > self.alert_threshold
        ]
        overexposed.sort(key=lambda x: x[1], reverse=True)
        return overexposed

    def check_and_alert(self) -> List[Tuple[str, float]]:
        """
        Check for overexposed items and log warnings.

        Counts are snapshotted under the lock; logging happens outside it.

        Returns:
            List of (item_id, exposure_rate) tuples for overexposed items.
        """
        with self._lock:
            rates = self._rates_locked()
            overexposed = [
                (item_id, rate)
                for item_id, rate in rates.items()
                if rate > self.alert_threshold
            ]
            overexposed.sort(key=lambda x: x[1], reverse=True)
            log_entries = [
                (item_id, rate, self._item_counts[item_id], self._total_selections)
                for item_id, rate in overexposed[:10]
            ]
            remaining = len(overexposed) - 10

        if overexposed:
            logger.warning(
                f"Exposure alert: {len(overexposed)} items exceed "
                f"{self.alert_threshold:.1%} threshold"
            )
            for item_id, rate, count, total in log_entries:
                logger.warning(
                    f"  Item {item_id}: {rate:.1%} exposure "
                    f"({count}/{total} selections)"
                )
            if remaining > 0:
                logger.warning(f"  ... and {remaining} more items")

        return overexposed

    @property
    def total_selections(self) -> int:
        with self._lock:
            return self._total_selections

    def reset(self) -> None:
        """Reset all counters."""
        with self._lock:
            self._item_counts.clear()
            self._total_selections = 0
        logger.info("ExposureMonitor counters reset")
