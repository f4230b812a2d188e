"""Safe-to-spend orchestration across paydays, bills, matching and balances"""

import logging
import math
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional

from spendability.domain.balance import project_accounts
from spendability.domain.matching import match_transactions_to_bills
from spendability.domain.models import (
    STATUS_PAID,
    Account,
    BillTemplate,
    SpendabilityReport,
    Transaction,
)
from spendability.domain.paycycle import payday_cutoff, project_paydays
from spendability.domain.recurrence import bill_status, with_derived_status
from spendability.domain.schedule import days_until, today_in_reference_tz
from spendability.domain.settings_schema import (
    ensure_required_fields,
    migrate,
    pay_schedules_from_settings,
    preference_amount,
    validate,
)
from spendability.domain.thresholds import DEFAULT_THRESHOLDS, Thresholds

logger = logging.getLogger(__name__)

DEPOSITORY = "depository"

_CENT = Decimal("0.01")


def _cents(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def compute_spendability(
    settings_doc: Optional[Dict[str, Any]],
    bills: Iterable[BillTemplate],
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    today: Optional[date] = None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    excluded_transaction_ids: Iterable[str] = (),
) -> SpendabilityReport:
    """
    Roll paydays, bills, payment matches and balances into safe-to-spend figures.

    Flow:
    1. Migrate settings and fill defaults (validation problems become warnings)
    2. Project paydays; the cutoff is the latest projected payday
    3. Skip undated and already-paid bills, drop bills a transaction has paid
    4. Split the rest into due before vs on/after the cutoff
    5. Project balances for depository accounts only

    safe_to_spend_now = projected balance - unpaid bills due before payday
                        - weekly essentials x ceil(days until payday / 7)
                        - safety buffer
    available_after_payday adds every projected payday before subtracting
    the same obligations.
    """
    if today is None:
        today = today_in_reference_tz()

    bills = list(bills)
    transactions = list(transactions)
    warnings: List[str] = []

    settings = ensure_required_fields(migrate(settings_doc))
    validation = validate(settings)
    warnings.extend(f"Settings: {error}" for error in validation.errors)

    primary, secondary = pay_schedules_from_settings(settings)
    projection = project_paydays(primary, secondary, today=today)
    warnings.extend(projection.warnings)

    cutoff = payday_cutoff(projection.paydays)
    days_to_payday = days_until(cutoff, today) if cutoff is not None else 0
    if cutoff is None:
        warnings.append("No upcoming payday could be projected; every unpaid bill is treated as due before payday")

    open_bills: List[BillTemplate] = []
    for bill in bills:
        if bill.due_date is None:
            logger.info("Skipping bill without due date", extra={"bill_id": bill.id, "bill_name": bill.name})
            continue
        if bill_status(bill, today) == STATUS_PAID:
            continue
        open_bills.append(bill)

    # A transaction linked to any bill period can't pay another one
    linked = {tx_id for bill in bills for tx_id in bill.linked_transaction_ids}
    linked.update(excluded_transaction_ids)
    matches = match_transactions_to_bills(transactions, open_bills, thresholds, linked)
    unpaid = with_derived_status((b for b in open_bills if b.id not in matches), today)

    due_before = [b for b in unpaid if cutoff is None or b.due_date < cutoff]
    due_after = [b for b in unpaid if cutoff is not None and b.due_date >= cutoff]
    unpaid_total = sum((abs(b.amount) for b in due_before), Decimal("0"))

    depository = [a for a in accounts if (a.type or "").lower() == DEPOSITORY]
    balances = project_accounts(depository, transactions, today=today, thresholds=thresholds)

    weekly_essentials = preference_amount(settings, "weeklyEssentials")
    safety_buffer = preference_amount(settings, "safetyBuffer")
    essentials_reserved = weekly_essentials * math.ceil(days_to_payday / 7)
    obligations = unpaid_total + essentials_reserved + safety_buffer
    incoming = sum((p.amount for p in projection.paydays), Decimal("0"))

    report = SpendabilityReport(
        safe_to_spend_now=_cents(balances.total_projected - obligations),
        available_after_payday=_cents(balances.total_projected + incoming - obligations),
        total_live_balance=_cents(balances.total_live),
        total_projected_balance=_cents(balances.total_projected),
        bills_due_before_payday=sorted(due_before, key=lambda b: b.due_date),
        bills_due_after_payday=sorted(due_after, key=lambda b: b.due_date),
        unpaid_bills_total=_cents(unpaid_total),
        weekly_essentials_reserved=_cents(essentials_reserved),
        safety_buffer=_cents(safety_buffer),
        next_payday=cutoff,
        days_until_payday=days_to_payday,
        paydays=projection.paydays,
        warnings=warnings,
        settings_validation=validation,
        account_projections=balances.accounts,
        matched_bill_ids=list(matches),
    )

    logger.info(
        "Spendability computed",
        extra={
            "matched_bills": len(matches),
            "bills_due_before_payday": len(due_before),
            "stale_pending": sum(len(p.stale_transaction_ids) for p in balances.accounts),
            "days_until_payday": days_to_payday,
        },
    )
    return report
