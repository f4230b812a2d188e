"""Unit tests for transaction-to-bill matching"""

from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from spendability.domain.matching import (
    find_best_match,
    find_first_match,
    match_transaction,
    match_transactions_to_bills,
    name_matches,
    normalize_name,
)
from spendability.domain.models import BillTemplate
from spendability.domain.thresholds import Thresholds


def _water_bill() -> BillTemplate:
    return BillTemplate(id="water", name="Municipal Services", amount=Decimal("45.00"), due_date=date(2025, 11, 10))


def test_acme_utility_full_match(utility_bill, make_transaction):
    """Test amount within 0.50, date within +5 and substring name all match"""
    tx = make_transaction("tx_1", "-120.50", date(2025, 11, 21), merchant="ACME UTILITY")

    result = match_transaction(tx, utility_bill)

    assert result.matched is True
    assert result.confidence == 1
    assert result.criteria == {"name": True, "amount": True, "date": True}


def test_confidence_is_always_a_third_step(utility_bill, make_transaction):
    """Test confidence is one of 0, 1/3, 2/3, 1 and matched iff >= 2/3"""
    cases = [
        ("-120.00", date(2025, 11, 20), "Acme Utility Co"),
        ("-120.00", date(2025, 11, 20), "Coffee Shop"),
        ("-120.00", date(2025, 12, 20), "Coffee Shop"),
        ("-5.00", date(2025, 12, 20), "Coffee Shop"),
        ("-5.00", date(2025, 12, 20), "Acme Utility"),
    ]
    for i, (amount, on, merchant) in enumerate(cases):
        result = match_transaction(make_transaction(f"tx_{i}", amount, on, merchant=merchant), utility_bill)
        assert result.confidence in (0, 1 / 3, 2 / 3, 1)
        assert result.matched == (result.confidence >= 2 / 3)


def test_amount_tolerance_boundary(utility_bill, make_transaction):
    on = date(2025, 11, 20)
    assert match_transaction(make_transaction("a", "-120.50", on), utility_bill).criteria["amount"] is True
    assert match_transaction(make_transaction("b", "-120.51", on), utility_bill).criteria["amount"] is False
    assert match_transaction(make_transaction("c", "-119.50", on), utility_bill).criteria["amount"] is True


def test_date_window_boundaries(utility_bill, make_transaction):
    """Test the window runs from 3 days before to 5 days after the due date"""
    due = utility_bill.due_date

    def date_ok(offset: int) -> bool:
        tx = make_transaction("tx", "-1.00", due + timedelta(days=offset), merchant="Other")
        return match_transaction(tx, utility_bill).criteria["date"]

    assert date_ok(-3) and date_ok(0) and date_ok(5)
    assert not date_ok(-4)
    assert not date_ok(6)


def test_two_criteria_are_enough(utility_bill, make_transaction):
    """Test right amount and date with an unknown merchant still matches"""
    tx = make_transaction("tx", "-120.00", date(2025, 11, 22), merchant="ONLINE PMT 88213")

    result = match_transaction(tx, utility_bill)

    assert result.confidence == 2 / 3
    assert result.matched is True


def test_undated_bill_cannot_match_on_date(utility_bill, make_transaction):
    bill = replace(utility_bill, due_date=None)
    tx = make_transaction("tx", "-120.00", date(2025, 11, 20), merchant="Coffee")

    result = match_transaction(tx, bill)

    assert result.criteria["date"] is False
    assert result.matched is False
    assert "undated" in result.explanation


def test_name_matching_rules():
    assert normalize_name("  Acme-Utility, Co. ") == "acmeutility co"
    assert name_matches("ACME UTILITY", ["Acme Utility Co"])
    assert name_matches("Acme Utility Company Inc", ["acme utility"])  # Either direction
    assert name_matches("City Water Dept", ["Dept City Water"])  # Token overlap
    assert not name_matches("Coffee Shop", ["Acme Utility Co"])
    assert not name_matches("", ["Acme"])


def test_first_match_wins(make_transaction):
    """Test iteration order decides between two qualifying bills"""
    bills = [
        replace(_water_bill(), id="bill_a"),
        replace(_water_bill(), id="bill_b", merchant_name_variants=("City Water",)),
    ]
    tx = make_transaction("tx", "-45.00", date(2025, 11, 10), merchant="City Water")

    bill, result = find_first_match(tx, bills)
    assert bill.id == "bill_a"
    assert result.confidence == 2 / 3

    best_bill, best_result = find_best_match(tx, bills)
    assert best_bill.id == "bill_b"
    assert best_result.confidence == 1


def test_find_first_match_none(utility_bill, make_transaction):
    tx = make_transaction("tx", "-3.50", date(2025, 6, 1), merchant="Coffee")
    assert find_first_match(tx, [utility_bill]) is None
    assert find_best_match(tx, [utility_bill]) is None


def test_match_transactions_to_bills_claims_each_bill_once(utility_bill, make_transaction):
    """Test a bill is paid by its oldest matching transaction and inflows are skipped"""
    transactions = [
        make_transaction("tx_late", "-120.00", date(2025, 11, 22), merchant="ACME UTILITY"),
        make_transaction("tx_early", "-120.00", date(2025, 11, 19), merchant="ACME UTILITY"),
        make_transaction("tx_refund", "120.00", date(2025, 11, 18), merchant="ACME UTILITY"),
    ]

    matches = match_transactions_to_bills(transactions, [utility_bill])

    assert list(matches) == ["bill_acme"]
    tx, result = matches["bill_acme"]
    assert tx.id == "tx_early"
    assert result.matched is True


def test_match_transactions_to_bills_skips_linked_transactions(utility_bill, make_transaction):
    transactions = [make_transaction("tx_1", "-120.00", date(2025, 11, 20), merchant="ACME UTILITY")]

    assert match_transactions_to_bills(transactions, [utility_bill], excluded_transaction_ids=["tx_1"]) == {}

    linked = replace(utility_bill, linked_transaction_ids=("tx_1",))
    assert match_transactions_to_bills(transactions, [linked]) == {}


def test_custom_thresholds(utility_bill, make_transaction):
    tx = make_transaction("tx", "-121.00", date(2025, 11, 20), merchant="Coffee")

    assert match_transaction(tx, utility_bill).matched is False
    assert match_transaction(tx, utility_bill, Thresholds(amount_tolerance=Decimal("1.00"))).matched is True
