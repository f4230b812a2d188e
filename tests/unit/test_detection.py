"""Unit tests for recurring charge detection and deduplication"""

from datetime import date
from decimal import Decimal
from spendability.domain.detection import (
    candidate_to_bill,
    categorize_merchant,
    detect_recurring,
    filter_new_candidates,
    is_duplicate,
    name_similarity,
    type_from_category,
)
from spendability.domain.models import BillTemplate


def _netflix(make_transaction):
    return [
        make_transaction(f"nf_{month}", "-15.49", date(2025, month, 3), merchant="NETFLIX.COM")
        for month in (1, 2, 3, 4)
    ]


def test_netflix_monthly_candidate(make_transaction):
    """Test four monthly charges on the 3rd become one subscription candidate"""
    candidates = detect_recurring(_netflix(make_transaction))

    assert len(candidates) == 1
    candidate = candidates[0]
    assert candidate.merchant_name == "NETFLIX.COM"
    assert candidate.average_amount == Decimal("15.49")
    assert candidate.cadence_days == 30.0  # Gaps of 31, 28, 31 days
    assert candidate.suggested_category == "Streaming"
    assert candidate.suggested_type == "subscription"
    assert candidate.next_renewal == date(2025, 5, 3)
    assert candidate.linked_transaction_ids == ["nf_1", "nf_2", "nf_3", "nf_4"]


def test_single_occurrence_is_not_recurring(make_transaction):
    assert detect_recurring([make_transaction("tx", "-15.49", date(2025, 1, 3), merchant="NETFLIX.COM")]) == []


def test_weekly_charges_are_not_monthly(make_transaction):
    transactions = [
        make_transaction(f"tx_{i}", "-6.00", date(2025, 1, 1 + 7 * i), merchant="Corner Cafe") for i in range(4)
    ]
    assert detect_recurring(transactions) == []


def test_unstable_amounts_are_rejected(make_transaction):
    """Test amounts more than 10% from the mean disqualify the group"""
    transactions = [
        make_transaction("e1", "-80.00", date(2025, 1, 10), merchant="City Power"),
        make_transaction("e2", "-140.00", date(2025, 2, 10), merchant="City Power"),
        make_transaction("e3", "-95.00", date(2025, 3, 10), merchant="City Power"),
    ]
    assert detect_recurring(transactions) == []


def test_small_variation_is_averaged(make_transaction):
    transactions = [
        make_transaction("e1", "-100.00", date(2025, 1, 10), merchant="City Power"),
        make_transaction("e2", "-105.00", date(2025, 2, 10), merchant="CITY POWER"),
        make_transaction("e3", "-101.00", date(2025, 3, 10), merchant="City Power"),
    ]

    candidates = detect_recurring(transactions)

    assert len(candidates) == 1
    assert candidates[0].merchant_name == "City Power"
    assert candidates[0].average_amount == Decimal("102.00")
    assert candidates[0].suggested_category == "Utilities"
    assert candidates[0].suggested_type == "recurring_bill"


def test_inflows_are_ignored(make_transaction):
    transactions = [
        make_transaction(f"pay_{m}", "2500.00", date(2025, m, 1), merchant="Employer Payroll") for m in (1, 2, 3)
    ]
    assert detect_recurring(transactions) == []


def test_categorization():
    assert categorize_merchant("Spotify USA") == "Streaming"
    assert categorize_merchant("GEICO Auto") == "Insurance"
    assert categorize_merchant("Mystery Box Co") == "Other"
    assert type_from_category("Other") == "subscription"
    assert type_from_category("Rent") == "recurring_bill"


def test_name_similarity_range():
    assert name_similarity("Netflix", "NETFLIX") == 1.0
    assert 0.0 <= name_similarity("Netflix", "Hulu") < 0.5
    assert name_similarity("", "Hulu") == 0.0


def test_existing_bill_is_duplicate(make_transaction):
    candidate = detect_recurring(_netflix(make_transaction))[0]
    existing = [BillTemplate(id="b1", name="Netflix.com", amount=Decimal("15.49"), due_date=date(2025, 5, 3))]

    assert is_duplicate(candidate, existing)
    assert filter_new_candidates([candidate], existing) == []


def test_loose_name_with_close_amount_is_duplicate(make_transaction):
    """Test a loosely similar name counts when the amount is within $5"""
    candidate = detect_recurring(_netflix(make_transaction))[0]
    close = BillTemplate(id="b1", name="Netflix Premium", amount=Decimal("17.99"), due_date=None)
    far = BillTemplate(id="b2", name="Netflix Premium", amount=Decimal("45.00"), due_date=None)

    assert is_duplicate(candidate, [close])
    assert not is_duplicate(candidate, [far])


def test_unrelated_bill_is_not_duplicate(make_transaction):
    candidate = detect_recurring(_netflix(make_transaction))[0]
    existing = [BillTemplate(id="b1", name="Rent", amount=Decimal("1500.00"), due_date=date(2025, 5, 1))]

    assert filter_new_candidates([candidate], existing) == [candidate]


def test_candidate_to_bill(make_transaction):
    candidate = detect_recurring(_netflix(make_transaction))[0]

    bill = candidate_to_bill(candidate, bill_id="bill_netflix")

    assert bill.id == "bill_netflix"
    assert bill.name == "NETFLIX.COM"
    assert bill.amount == Decimal("15.49")
    assert bill.due_date == date(2025, 5, 3)
    assert bill.recurrence == "monthly"
    assert bill.category == "Streaming"
    assert bill.merchant_name_variants == ("NETFLIX.COM",)
    assert bill.linked_transaction_ids == ("nf_1", "nf_2", "nf_3", "nf_4")


def test_display_name_is_first_seen_spelling(make_transaction):
    transactions = [
        make_transaction(f"nf_{m}", "-15.49", date(2025, m, 3), merchant="Netflix.com" if m == 7 else "NETFLIX.COM")
        for m in (7, 8, 9, 10)
    ]

    candidates = detect_recurring(transactions)

    assert [c.merchant_name for c in candidates] == ["Netflix.com"]
