"""Tunable heuristic thresholds shared by the matching, detection and projection rules"""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class Thresholds:
    """
    Every tolerance the engine relies on, in one place.

    Defaults:
    - Matching: $0.50 amount tolerance, due date window of -3/+5 days,
      70% token overlap for merchant names, 2 of 3 criteria to accept
    - Detection: amounts within 10% of the group mean, mean gap of 25-35 days
    - Dedup: 70% name similarity, or $5 amount tolerance with 40% similarity
    - Balances: pending transactions older than 5 days are stale
    """

    # Transaction matching
    amount_tolerance: Decimal = Decimal("0.50")
    date_lookback_days: int = 3
    date_lookahead_days: int = 5
    name_similarity: float = 0.70
    min_match_confidence: float = 2 / 3

    # Recurring pattern detection
    min_occurrences: int = 2
    amount_variance: float = 0.10
    min_cadence_days: float = 25
    max_cadence_days: float = 35

    # Candidate deduplication
    dedup_name_similarity: float = 0.70
    dedup_amount_tolerance: Decimal = Decimal("5.00")
    dedup_loose_name_similarity: float = 0.40

    # Balance projection
    stale_pending_days: int = 5


DEFAULT_THRESHOLDS = Thresholds()
