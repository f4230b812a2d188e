"""
Recurring charge detection from raw transaction history.

Rules:
1. Group outflows by normalized merchant name
2. Need at least two occurrences
3. Every amount within 10% of the group's mean absolute amount
4. Mean gap between consecutive charges of 25-35 days (monthly)

Everything else (weekly, annual, irregular) is left for the user to add.
"""

import logging
import math
import statistics
import uuid
from collections import defaultdict
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from rapidfuzz.distance import Levenshtein

from spendability.domain.matching import normalize_name
from spendability.domain.models import MONTHLY, BillTemplate, RecurringCandidate, Transaction
from spendability.domain.thresholds import DEFAULT_THRESHOLDS, Thresholds

logger = logging.getLogger(__name__)

SUBSCRIPTION = "subscription"
RECURRING_BILL = "recurring_bill"

RECURRING_BILL_CATEGORIES = frozenset({"Utilities", "Rent", "Insurance", "Phone", "Internet", "Mortgage"})

# Checked in order; first keyword hit wins
CATEGORY_KEYWORDS = (
    ("Utilities", ("electric", "power", "energy", "water", "sewer", "gas", "fuel", "utility")),
    ("Rent", ("rent", "apartment", "property")),
    ("Mortgage", ("mortgage", "housing")),
    ("Insurance", ("insurance", "geico", "progressive", "state farm", "allstate")),
    ("Phone", ("phone", "verizon", "at&t", "t-mobile", "sprint")),
    ("Internet", ("internet", "comcast", "spectrum", "cox", "xfinity")),
    ("Streaming", ("netflix", "spotify", "hulu", "disney", "hbo", "amazon prime")),
    ("Software", ("adobe", "microsoft", "github", "dropbox", "google")),
    ("Memberships", ("gym", "fitness", "costco", "membership")),
    ("Gaming", ("xbox", "playstation", "nintendo", "steam")),
)

_CENT = Decimal("0.01")


def categorize_merchant(merchant_name: str) -> str:
    """Category from the static keyword table, 'Other' when nothing matches"""
    name = (merchant_name or "").lower()
    for category, keywords in CATEGORY_KEYWORDS:
        for keyword in keywords:
            if keyword in name:
                return category
    return "Other"


def type_from_category(category: str) -> str:
    """subscription or recurring_bill; unknown categories default to subscription"""
    if category in RECURRING_BILL_CATEGORIES:
        return RECURRING_BILL
    return SUBSCRIPTION


def name_similarity(a: str, b: str) -> float:
    """Normalized Levenshtein similarity (0-1) of two merchant names"""
    left, right = normalize_name(a), normalize_name(b)
    if not left or not right:
        return 0.0
    return Levenshtein.normalized_similarity(left, right)


def _is_amount_stable(amounts: Sequence[Decimal], variance: float) -> bool:
    mean = sum(amounts) / len(amounts)
    if mean == 0:
        return False
    limit = Decimal(str(variance))
    return all(abs(amount - mean) / mean <= limit for amount in amounts)


def _build_candidate(display_name: str, group: List[Transaction], mean_gap: float) -> RecurringCandidate:
    amounts = [abs(t.amount) for t in group]
    category = categorize_merchant(display_name)
    average = (sum(amounts) / len(amounts)).quantize(_CENT, rounding=ROUND_HALF_UP)

    return RecurringCandidate(
        merchant_name=display_name,
        average_amount=average,
        cadence_days=round(mean_gap, 2),
        occurrences=group,
        suggested_category=category,
        suggested_type=type_from_category(category),
        next_renewal=group[-1].date + timedelta(days=math.floor(mean_gap + 0.5)),
        linked_transaction_ids=[t.id for t in group],
    )


def detect_recurring(
    transactions: Iterable[Transaction],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> List[RecurringCandidate]:
    """Propose recurring bill/subscription candidates purely from repetition"""
    groups: Dict[str, List[Transaction]] = defaultdict(list)
    first_seen: Dict[str, str] = {}
    for transaction in transactions:
        key = normalize_name(transaction.merchant_name)
        if key and transaction.amount < 0:
            groups[key].append(transaction)
            first_seen.setdefault(key, transaction.merchant_name)

    candidates: List[RecurringCandidate] = []
    for key, group in groups.items():
        if len(group) < thresholds.min_occurrences:
            continue

        if not _is_amount_stable([abs(t.amount) for t in group], thresholds.amount_variance):
            continue

        group = sorted(group, key=lambda t: t.date)
        gaps = [(later.date - earlier.date).days for earlier, later in zip(group, group[1:])]
        mean_gap = float(statistics.mean(gaps))
        if not thresholds.min_cadence_days <= mean_gap <= thresholds.max_cadence_days:
            continue

        candidates.append(_build_candidate(first_seen[key], group, mean_gap))

    logger.info(
        "Recurring detection complete",
        extra={"merchant_groups": len(groups), "candidates": len(candidates)},
    )
    return candidates


def is_duplicate(
    candidate: RecurringCandidate,
    existing: Iterable[BillTemplate],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> bool:
    """
    True if the candidate is already tracked as a bill or subscription.

    Looser than payment matching: a similar name alone (>= 70%) is enough,
    or a loosely similar name (>= 40%) with an amount within $5.
    """
    for bill in existing:
        similarity = max(name_similarity(candidate.merchant_name, name) for name in (bill.name, *bill.merchant_name_variants))
        if similarity >= thresholds.dedup_name_similarity:
            return True
        amount_close = abs(candidate.average_amount - abs(bill.amount)) <= thresholds.dedup_amount_tolerance
        if amount_close and similarity >= thresholds.dedup_loose_name_similarity:
            return True
    return False


def filter_new_candidates(
    candidates: Iterable[RecurringCandidate],
    existing: Sequence[BillTemplate],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> List[RecurringCandidate]:
    """Candidates not already covered by an existing bill"""
    return [c for c in candidates if not is_duplicate(c, existing, thresholds)]


def candidate_to_bill(candidate: RecurringCandidate, bill_id: Optional[str] = None) -> BillTemplate:
    """Promote an accepted candidate into a monthly bill due on its next renewal"""
    variants = tuple(dict.fromkeys(t.merchant_name for t in candidate.occurrences))
    return BillTemplate(
        id=bill_id or str(uuid.uuid4()),
        name=candidate.merchant_name,
        amount=candidate.average_amount,
        due_date=candidate.next_renewal,
        recurrence=MONTHLY,
        category=candidate.suggested_category,
        merchant_name_variants=variants,
        linked_transaction_ids=tuple(candidate.linked_transaction_ids),
    )
