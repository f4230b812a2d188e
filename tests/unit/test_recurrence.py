"""Unit tests for bill lifecycle and period advancement"""

import pytest
from dataclasses import replace
from datetime import date
from decimal import Decimal
from spendability.domain.exceptions import BillAlreadyPaidError
from spendability.domain.models import BillTemplate, PaymentRecord
from spendability.domain.recurrence import (
    bill_status,
    current_instances,
    is_paid_for_current_cycle,
    mark_paid,
    next_due_date,
    sort_for_display,
)


def _bill(bill_id: str = "bill_1", due: date = date(2025, 11, 20), recurrence: str = "monthly", **kwargs) -> BillTemplate:
    return BillTemplate(
        id=bill_id,
        name=kwargs.pop("name", "Electric"),
        amount=Decimal("120.00"),
        due_date=due,
        recurrence=recurrence,
        **kwargs,
    )


def _payment(paid: date, tx_id: str = None) -> PaymentRecord:
    return PaymentRecord(paid_date=paid, amount=Decimal("120.00"), transaction_id=tx_id)


def test_next_due_date_by_recurrence():
    due = date(2025, 11, 20)
    assert next_due_date("weekly", due) == date(2025, 11, 27)
    assert next_due_date("biweekly", due) == date(2025, 12, 4)
    assert next_due_date("monthly", due) == date(2025, 12, 20)
    assert next_due_date("quarterly", due) == date(2026, 2, 20)
    assert next_due_date("annually", due) == date(2026, 11, 20)
    assert next_due_date("one-time", due) is None
    assert next_due_date("monthly", None) is None


def test_mark_paid_keeps_history_and_creates_successor():
    """Test the paid instance is retained and a new period is synthesized"""
    bill = _bill()
    outcome = mark_paid(bill, _payment(date(2025, 11, 19), tx_id="tx_9"), next_id="bill_2")

    paid = outcome.paid_bill
    assert paid.id == "bill_1"
    assert paid.is_paid is True
    assert paid.status == "paid"
    assert paid.due_date == date(2025, 11, 20)
    assert len(paid.payment_history) == 1
    assert paid.linked_transaction_ids == ("tx_9",)

    successor = outcome.next_bill
    assert successor.id == "bill_2"
    assert successor.due_date == date(2025, 12, 20)
    assert successor.is_paid is False
    assert successor.status == "pending"
    assert successor.payment_history == ()
    assert successor.template_id == paid.template_id == "bill_1"
    assert successor.period_index == 1


def test_mark_paid_does_not_mutate_input():
    bill = _bill()
    mark_paid(bill, _payment(date(2025, 11, 19)))
    assert bill.is_paid is False
    assert bill.payment_history == ()


def test_mark_paid_successor_id_is_stable_per_period():
    """Test paying the same period twice addresses one successor record"""
    bill = _bill()
    first = mark_paid(bill, _payment(date(2025, 11, 19))).next_bill
    second = mark_paid(bill, _payment(date(2025, 11, 20))).next_bill

    assert first.id == second.id == "bill_1-p1"
    assert mark_paid(first, _payment(date(2025, 12, 19))).next_bill.id == "bill_1-p2"


def test_mark_paid_rejects_paid_instance():
    paid = mark_paid(_bill(), _payment(date(2025, 11, 19))).paid_bill

    with pytest.raises(BillAlreadyPaidError):
        mark_paid(paid, _payment(date(2025, 11, 21)))


def test_mark_paid_one_time_has_no_successor():
    outcome = mark_paid(_bill(recurrence="one-time"), _payment(date(2025, 11, 19)))
    assert outcome.next_bill is None
    assert outcome.paid_bill.is_paid is True


def test_is_paid_for_current_cycle_window():
    """Test a payment counts from after the previous due date through due + 5 days"""
    bill = _bill()

    def paid_on(d: date) -> BillTemplate:
        return replace(bill, payment_history=(_payment(d),))

    assert is_paid_for_current_cycle(paid_on(date(2025, 10, 21)))
    assert is_paid_for_current_cycle(paid_on(date(2025, 11, 25)))
    assert not is_paid_for_current_cycle(paid_on(date(2025, 10, 20)))  # Previous period
    assert not is_paid_for_current_cycle(paid_on(date(2025, 11, 26)))
    assert not is_paid_for_current_cycle(bill)


def test_one_time_bill_counts_any_payment():
    bill = replace(_bill(recurrence="one-time"), payment_history=(_payment(date(2024, 1, 1)),))
    assert is_paid_for_current_cycle(bill)


def test_bill_status():
    today = date(2025, 11, 21)
    assert bill_status(_bill(due=date(2025, 11, 20)), today) == "overdue"
    assert bill_status(_bill(due=date(2025, 11, 21)), today) == "pending"
    assert bill_status(_bill(due=None), today) == "pending"
    assert bill_status(_bill(is_paid=True), today) == "paid"

    paid = replace(_bill(due=date(2025, 11, 20)), is_paid=True, payment_history=(_payment(date(2025, 11, 18)),))
    assert bill_status(paid, today) == "paid"


def test_sort_for_display():
    """Test overdue, then pending, then paid; undated bills go last within their group"""
    today = date(2025, 11, 21)
    bills = [
        _bill("paid", due=date(2025, 11, 1), is_paid=True),
        _bill("undated", due=None),
        _bill("later", due=date(2025, 12, 5)),
        _bill("overdue", due=date(2025, 11, 10)),
        _bill("soon", due=date(2025, 11, 25)),
    ]

    ordered = [b.id for b in sort_for_display(bills, today)]
    assert ordered == ["overdue", "soon", "later", "undated", "paid"]


def test_current_instances_picks_latest_period():
    bill = _bill()
    outcome = mark_paid(bill, _payment(date(2025, 11, 19)), next_id="bill_2")
    other = _bill("bill_other", name="Rent")

    current = current_instances([outcome.paid_bill, outcome.next_bill, other])
    assert sorted(b.id for b in current) == ["bill_2", "bill_other"]
