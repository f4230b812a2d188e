"""Transaction-to-bill matching on amount, date window and merchant name"""

import re
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from spendability.domain.models import BillTemplate, MatchResult, Transaction
from spendability.domain.thresholds import DEFAULT_THRESHOLDS, Thresholds

_PUNCTUATION = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: Optional[str]) -> str:
    """Lower-case, strip punctuation, collapse whitespace"""
    if not name:
        return ""
    return _WHITESPACE.sub(" ", _PUNCTUATION.sub("", name.lower())).strip()


def token_jaccard(a: str, b: str) -> float:
    """Jaccard similarity of the whitespace tokens of two normalized names"""
    tokens_a, tokens_b = set(a.split()), set(b.split())
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def name_matches(merchant_name: str, known_names: Iterable[str], threshold: float = 0.70) -> bool:
    """
    True if the merchant name corresponds to any known name.

    Either normalized name containing the other counts, as does a token
    Jaccard similarity at or above the threshold.
    """
    merchant = normalize_name(merchant_name)
    if not merchant:
        return False

    for known in known_names:
        candidate = normalize_name(known)
        if not candidate:
            continue
        if merchant in candidate or candidate in merchant:
            return True
        if token_jaccard(merchant, candidate) >= threshold:
            return True
    return False


def _known_names(bill: BillTemplate) -> List[str]:
    return [bill.name, *bill.merchant_name_variants]


def match_transaction(
    transaction: Transaction,
    bill: BillTemplate,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> MatchResult:
    """
    Score a transaction against a bill on three independent criteria.

    - amount: absolute amounts differ by at most the amount tolerance
    - date: transaction falls within [due - lookback, due + lookahead]
    - name: merchant name matches the bill name or a known variant

    Two of three criteria are enough to match; confidence is criteria met / 3.
    A bill without a due date can only match on amount and name.
    """
    amount_diff = abs(abs(transaction.amount) - abs(bill.amount))
    amount_ok = amount_diff <= thresholds.amount_tolerance

    date_ok = False
    day_offset = None
    if bill.due_date is not None:
        day_offset = (transaction.date - bill.due_date).days
        window_start = bill.due_date - timedelta(days=thresholds.date_lookback_days)
        window_end = bill.due_date + timedelta(days=thresholds.date_lookahead_days)
        date_ok = window_start <= transaction.date <= window_end

    name_ok = name_matches(transaction.merchant_name, _known_names(bill), thresholds.name_similarity)

    criteria = {"name": name_ok, "amount": amount_ok, "date": date_ok}
    met = sum(criteria.values())
    confidence = met / 3

    offset_text = "undated" if day_offset is None else f"{day_offset:+d}d"
    explanation = (
        f"name {'match' if name_ok else 'miss'}, "
        f"amount {'match' if amount_ok else 'miss'} (diff {amount_diff:.2f}), "
        f"date {'match' if date_ok else 'miss'} ({offset_text})"
    )

    return MatchResult(
        matched=confidence >= thresholds.min_match_confidence,
        confidence=confidence,
        criteria=criteria,
        explanation=explanation,
    )


def find_first_match(
    transaction: Transaction,
    bills: Sequence[BillTemplate],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> Optional[Tuple[BillTemplate, MatchResult]]:
    """First bill in iteration order whose match clears the confidence threshold"""
    for bill in bills:
        result = match_transaction(transaction, bill, thresholds)
        if result.confidence >= thresholds.min_match_confidence:
            return bill, result
    return None


def find_best_match(
    transaction: Transaction,
    bills: Sequence[BillTemplate],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> Optional[Tuple[BillTemplate, MatchResult]]:
    """Highest-confidence qualifying bill; ties go to the earlier bill"""
    best: Optional[Tuple[BillTemplate, MatchResult]] = None
    for bill in bills:
        result = match_transaction(transaction, bill, thresholds)
        if result.confidence < thresholds.min_match_confidence:
            continue
        if best is None or result.confidence > best[1].confidence:
            best = (bill, result)
    return best


def match_transactions_to_bills(
    transactions: Iterable[Transaction],
    bills: Sequence[BillTemplate],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    excluded_transaction_ids: Iterable[str] = (),
) -> Dict[str, Tuple[Transaction, MatchResult]]:
    """
    Pair outflow transactions with bills, first match wins.

    Transactions are visited oldest first. Each transaction pays at most one
    bill and each bill is claimed by at most one transaction. Inflows,
    transactions already linked to one of the bills and any id in
    excluded_transaction_ids (e.g. links held by paid history) are ignored.

    Returns:
        Map of bill id to the (transaction, result) that paid it
    """
    already_linked: Set[str] = {tx_id for bill in bills for tx_id in bill.linked_transaction_ids}
    already_linked.update(excluded_transaction_ids)
    matches: Dict[str, Tuple[Transaction, MatchResult]] = {}

    for transaction in sorted(transactions, key=lambda t: t.date):
        if transaction.amount >= 0 or transaction.id in already_linked:
            continue
        open_bills = [bill for bill in bills if bill.id not in matches]
        found = find_first_match(transaction, open_bills, thresholds)
        if found is not None:
            bill, result = found
            matches[bill.id] = (transaction, result)

    return matches
