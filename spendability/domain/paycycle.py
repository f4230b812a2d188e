"""Payday projection for one or two income schedules with optional early-deposit splits"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

from spendability.domain.models import (
    KIND_EARLY,
    KIND_MAIN,
    KIND_SINGLE,
    PaySchedule,
    Payday,
    PaydayProjection,
)
from spendability.domain.schedule import (
    adjust_for_weekend,
    next_occurrence,
    occurrences_between,
    today_in_reference_tz,
)

logger = logging.getLogger(__name__)

_KIND_ORDER = {KIND_EARLY: 0, KIND_SINGLE: 1, KIND_MAIN: 2}


def _payday_sort_key(payday: Payday) -> Tuple[date, int]:
    return payday.date, _KIND_ORDER.get(payday.kind, 1)


def next_deposit_date(schedule: PaySchedule, today: date) -> date:
    """
    Next main deposit date on or after today.

    A deposit falling today is still upcoming. With weekend_adjust the
    Saturday/Sunday date moves back to Friday; if that Friday already passed,
    the following occurrence is used.
    """
    on_or_after = today
    while True:
        deposit = next_occurrence(schedule.cadence, schedule.anchor_date, on_or_after, schedule.anchor_days_of_month)
        if schedule.weekend_adjust:
            adjusted = adjust_for_weekend(deposit)
            if adjusted < today:
                on_or_after = deposit + timedelta(days=1)
                continue
            return adjusted
        return deposit


def split_deposit(schedule: PaySchedule, deposit_date: date) -> Tuple[List[Payday], List[str]]:
    """
    Turn one scheduled deposit into its payday entries.

    - No early deposit (or amount 0): one single payday for the full amount
    - 0 < early <= amount: early slice at deposit_date - days_before_main,
      remainder on deposit_date
    - early > amount: invalid; falls back to a single payday and warns
    """
    early = schedule.early_deposit
    single = Payday(
        date=deposit_date,
        amount=schedule.amount,
        destination=schedule.destination,
        kind=KIND_SINGLE,
        source=schedule.owner,
    )

    if early is None or not early.enabled or early.amount <= 0:
        return [single], []

    if early.amount > schedule.amount:
        warning = (
            f"Early deposit of {early.amount} exceeds {schedule.owner} pay amount of "
            f"{schedule.amount}; projecting a single deposit instead"
        )
        logger.warning(
            "Invalid early deposit configuration",
            extra={"owner": schedule.owner, "early_amount": str(early.amount), "pay_amount": str(schedule.amount)},
        )
        return [single], [warning]

    return [
        Payday(
            date=deposit_date - timedelta(days=early.days_before_main),
            amount=early.amount,
            destination=early.early_destination,
            kind=KIND_EARLY,
            source=schedule.owner,
        ),
        Payday(
            date=deposit_date,
            amount=schedule.amount - early.amount,
            destination=early.main_destination or schedule.destination,
            kind=KIND_MAIN,
            source=schedule.owner,
        ),
    ], []


def project_paydays(
    primary: Optional[PaySchedule],
    secondary: Optional[PaySchedule] = None,
    today: Optional[date] = None,
) -> PaydayProjection:
    """
    Project the upcoming paydays for up to two income schedules.

    Returns the paydays nearest first. Early slices whose date already passed
    are dropped since that money is already in the live balance.
    """
    if today is None:
        today = today_in_reference_tz()

    schedules = tuple(s for s in (primary, secondary) if s is not None)
    paydays: List[Payday] = []
    warnings: List[str] = []

    for schedule in schedules:
        if schedule.amount <= 0:
            continue
        entries, schedule_warnings = split_deposit(schedule, next_deposit_date(schedule, today))
        paydays.extend(p for p in entries if p.kind != KIND_EARLY or p.date >= today)
        warnings.extend(schedule_warnings)

    paydays.sort(key=_payday_sort_key)

    return PaydayProjection(
        paydays=paydays,
        warnings=warnings,
        computed_at=datetime.now(timezone.utc),
        schedules=schedules,
    )


def payday_cutoff(paydays: Iterable[Payday]) -> Optional[date]:
    """Cutoff for bills due before payday: the latest payday in the cycle"""
    dates = [p.date for p in paydays]
    return max(dates) if dates else None


def project_payday_schedule(schedules: Iterable[PaySchedule], start: date, end: date) -> List[Payday]:
    """Every deposit between start and end (inclusive) across all schedules, ascending"""
    paydays: List[Payday] = []
    for schedule in schedules:
        if schedule.amount <= 0:
            continue
        for deposit in occurrences_between(
            schedule.cadence, schedule.anchor_date, start, end, schedule.anchor_days_of_month
        ):
            if schedule.weekend_adjust:
                deposit = adjust_for_weekend(deposit)
            entries, _ = split_deposit(schedule, deposit)
            paydays.extend(p for p in entries if start <= p.date <= end)

    paydays.sort(key=_payday_sort_key)
    return paydays
