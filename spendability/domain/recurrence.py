"""Bill lifecycle: status, paid-this-cycle detection and advancing to the next period"""

from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from spendability.domain.exceptions import BillAlreadyPaidError
from spendability.domain.models import (
    ONE_TIME,
    STATUS_OVERDUE,
    STATUS_PAID,
    STATUS_PENDING,
    BillTemplate,
    PaymentRecord,
)
from spendability.domain.schedule import advance, normalize_cadence, retreat, today_in_reference_tz

# Days after the due date a payment still counts toward the period
PAYMENT_GRACE_DAYS = 5

_STATUS_RANK = {STATUS_OVERDUE: 0, STATUS_PENDING: 1, STATUS_PAID: 2}


@dataclass(frozen=True)
class PaidBillOutcome:
    """Result of marking a bill paid: the retained instance and its successor"""

    paid_bill: BillTemplate
    next_bill: Optional[BillTemplate]


def period_instance_id(series_id: str, period_index: int) -> str:
    """Stable id of one period of a bill series; period 0 keeps the series id"""
    if period_index == 0:
        return series_id
    return f"{series_id}-p{period_index}"


def next_due_date(recurrence: str, due_date: Optional[date]) -> Optional[date]:
    """Due date one cadence period later; None for one-time or undated bills"""
    recurrence = normalize_cadence(recurrence)
    if recurrence == ONE_TIME or due_date is None:
        return None
    return advance(recurrence, due_date)


def is_paid_for_current_cycle(bill: BillTemplate, grace_days: int = PAYMENT_GRACE_DAYS) -> bool:
    """
    True if the latest payment falls within the bill's current billing period.

    The period runs from just after the previous due date through the due
    date plus a short grace for processing delays. One-time and undated bills
    count any recorded payment.
    """
    if not bill.payment_history:
        return False

    last_paid = max(record.paid_date for record in bill.payment_history)
    recurrence = normalize_cadence(bill.recurrence)
    if recurrence == ONE_TIME or bill.due_date is None:
        return True

    period_start = retreat(recurrence, bill.due_date)
    period_end = bill.due_date + timedelta(days=grace_days)
    return period_start < last_paid <= period_end


def bill_status(bill: BillTemplate, today: Optional[date] = None) -> str:
    """
    Derived status of a bill instance.

    - paid: paid for the current cycle (a bare is_paid flag with no history is trusted)
    - overdue: due date in the past and not paid
    - pending: everything else
    """
    if today is None:
        today = today_in_reference_tz()

    if is_paid_for_current_cycle(bill) or (bill.is_paid and not bill.payment_history):
        return STATUS_PAID
    if bill.due_date is not None and bill.due_date < today:
        return STATUS_OVERDUE
    return STATUS_PENDING


def mark_paid(bill: BillTemplate, payment: PaymentRecord, next_id: Optional[str] = None) -> PaidBillOutcome:
    """
    Record a payment and synthesize the next period's instance.

    The paid instance is kept as history, never moved forward in time. For
    recurring bills a new instance one period ahead is created with the same
    template id, an empty payment history and an id derived from the template
    id and period index, so writing it twice overwrites one record. Callers
    must persist both records together.

    Raises:
        BillAlreadyPaidError: The instance already carries is_paid
    """
    if bill.is_paid:
        raise BillAlreadyPaidError(f"Bill {bill.id} is already paid")

    links = bill.linked_transaction_ids
    if payment.transaction_id and payment.transaction_id not in links:
        links = links + (payment.transaction_id,)

    paid_bill = replace(
        bill,
        is_paid=True,
        status=STATUS_PAID,
        payment_history=bill.payment_history + (payment,),
        linked_transaction_ids=links,
        template_id=bill.series_id,
    )

    following_due = next_due_date(bill.recurrence, bill.due_date)
    if following_due is None:
        return PaidBillOutcome(paid_bill=paid_bill, next_bill=None)

    next_bill = replace(
        paid_bill,
        id=next_id or period_instance_id(bill.series_id, bill.period_index + 1),
        due_date=following_due,
        is_paid=False,
        status=STATUS_PENDING,
        payment_history=(),
        period_index=bill.period_index + 1,
    )
    return PaidBillOutcome(paid_bill=paid_bill, next_bill=next_bill)


def with_derived_status(bills: Iterable[BillTemplate], today: Optional[date] = None) -> List[BillTemplate]:
    """Copies of the bills with status recomputed for today"""
    if today is None:
        today = today_in_reference_tz()
    return [replace(bill, status=bill_status(bill, today)) for bill in bills]


def sort_for_display(bills: Iterable[BillTemplate], today: Optional[date] = None) -> List[BillTemplate]:
    """Overdue before pending before paid; ascending due date within a status; undated last"""
    if today is None:
        today = today_in_reference_tz()

    def sort_key(bill: BillTemplate):
        return (
            _STATUS_RANK[bill_status(bill, today)],
            bill.due_date is None,
            bill.due_date or date.max,
            bill.name.lower(),
        )

    return sorted(bills, key=sort_key)


def current_instances(bills: Iterable[BillTemplate]) -> List[BillTemplate]:
    """Latest period of each bill series, keyed by template id"""
    latest: Dict[str, BillTemplate] = {}
    for bill in bills:
        existing = latest.get(bill.series_id)
        if existing is None or bill.period_index > existing.period_index:
            latest[bill.series_id] = bill
    return list(latest.values())
