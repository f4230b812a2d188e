"""
Live vs projected balances.

Live balance is what the bank reports. Projected balance adds the pending
transactions the bank has not settled yet. Amounts are already signed
(negative = outflow), so projection is a plain sum.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from spendability.domain.models import Account, AccountsProjection, BalanceProjection, Transaction
from spendability.domain.schedule import today_in_reference_tz
from spendability.domain.thresholds import DEFAULT_THRESHOLDS, Thresholds

logger = logging.getLogger(__name__)

SETTLED_STATUSES = frozenset({"posted", "cleared"})


def _flag(value) -> Optional[bool]:
    """Interpret a pending flag that may arrive as a bool or a string"""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return None


def is_truly_pending(transaction: Transaction) -> bool:
    """
    Pending per the bank, and not contradicted by an explicit settled marker.

    pending in {True, "true"} or status == "pending" makes a transaction
    pending; pending == False or a posted/cleared status overrides that.
    """
    flag = _flag(transaction.pending)
    status = (transaction.status or "").strip().lower()

    if flag is False or status in SETTLED_STATUSES:
        return False
    return flag is True or status == "pending"


def is_stale(transaction: Transaction, today: date, stale_after_days: int) -> bool:
    """A pending transaction older than the staleness window is treated as bad data"""
    return transaction.date < today - timedelta(days=stale_after_days)


def project_balance(
    live_balance: Decimal,
    transactions: Iterable[Transaction],
    today: Optional[date] = None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    account_id: str = "",
) -> BalanceProjection:
    """Projected balance for one account: live balance plus qualifying pending amounts"""
    if today is None:
        today = today_in_reference_tz()

    pending_total = Decimal("0")
    included: List[str] = []
    stale: List[str] = []

    for transaction in transactions:
        if not is_truly_pending(transaction):
            continue
        if is_stale(transaction, today, thresholds.stale_pending_days):
            stale.append(transaction.id)
            logger.info(
                "Excluding stale pending transaction",
                extra={
                    "account_id": transaction.account_id,
                    "transaction_id": transaction.id,
                    "transaction_date": transaction.date.isoformat(),
                    "age_days": (today - transaction.date).days,
                },
            )
            continue
        pending_total += transaction.amount
        included.append(transaction.id)

    return BalanceProjection(
        account_id=account_id,
        live_balance=live_balance,
        projected_balance=live_balance + pending_total,
        pending_total=pending_total,
        included_transaction_ids=included,
        stale_transaction_ids=stale,
    )


def project_accounts(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    today: Optional[date] = None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> AccountsProjection:
    """
    Project each account with its own transactions, then total.

    Totals are never projected from a pre-summed balance since the pending
    filter is scoped to the account a transaction belongs to.
    """
    if today is None:
        today = today_in_reference_tz()

    transactions = list(transactions)
    projections = [
        project_balance(
            account.current_balance,
            [t for t in transactions if t.account_id == account.account_id],
            today=today,
            thresholds=thresholds,
            account_id=account.account_id,
        )
        for account in accounts
    ]

    return AccountsProjection(
        accounts=projections,
        total_live=sum((p.live_balance for p in projections), Decimal("0")),
        total_projected=sum((p.projected_balance for p in projections), Decimal("0")),
    )
