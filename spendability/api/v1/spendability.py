"""GET /v1/spendability and GET /v1/paydays - Safe-to-spend and payday planning endpoints"""

import logging
import time
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from spendability.api.dependencies import get_bank_client, get_request_id
from spendability.api.v1.schemas import (
    AccountProjectionSchema,
    BillSchema,
    PaydayScheduleResponse,
    PaydaySchema,
    SpendabilityResponse,
)
from spendability.config import settings
from spendability.domain.exceptions import BankAPIError, DataUnavailableError
from spendability.domain.paycycle import project_payday_schedule
from spendability.domain.recurrence import current_instances
from spendability.domain.schedule import today_in_reference_tz
from spendability.domain.settings_schema import ensure_required_fields, pay_schedules_from_settings
from spendability.domain.spendability import compute_spendability
from spendability.infrastructure.clients.bank import BankClient
from spendability.infrastructure.database.repositories import BillRepository, SettingsRepository
from spendability.infrastructure.database.session import get_db
from spendability.infrastructure.observability.logging import log_spendability
from spendability.infrastructure.observability.metrics import bank_fetch_failures_counter, record_spendability

router = APIRouter()


@router.get("/spendability", response_model=SpendabilityResponse)
async def get_spendability(
    request: Request,
    user_id: str = Query(..., min_length=1, description="User identifier"),
    db: Session = Depends(get_db),
    bank_client: BankClient = Depends(get_bank_client),
):
    """
    Compute how much the user can safely spend before the next payday.

    Flow:
    1. Fetch accounts and transactions from the bank aggregation API
    2. Load bills and the settings document from the store
    3. Project paydays, match payments, project balances
    4. Return safe-to-spend now and after payday with the breakdown
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        accounts = await bank_client.get_accounts(user_id)
        transactions = await bank_client.get_transactions(user_id)

        all_bills = BillRepository(db).list_bills(user_id)
        settings_doc = SettingsRepository(db).load(user_id)

        report = compute_spendability(
            settings_doc,
            current_instances(all_bills),
            accounts,
            transactions,
            today=today_in_reference_tz(settings.reference_timezone),
            thresholds=settings.thresholds,
            excluded_transaction_ids=[tx_id for bill in all_bills for tx_id in bill.linked_transaction_ids],
        )

    except (BankAPIError, DataUnavailableError) as e:
        bank_fetch_failures_counter.inc()
        logging.error(f"Financial data unavailable: {e}", extra={"request_id": request_id, "user_id": user_id})
        raise HTTPException(status_code=503, detail="Could not load financial data")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id, "user_id": user_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    stale_pending = sum(len(p.stale_transaction_ids) for p in report.account_projections)
    duration_ms = (time.time() - start_time) * 1000
    record_spendability(
        report.safe_to_spend_now,
        stale_pending,
        len(report.matched_bill_ids),
        report.settings_validation.valid,
    )
    log_spendability(
        request_id,
        user_id,
        report.safe_to_spend_now,
        report.days_until_payday,
        len(report.warnings),
        duration_ms,
    )

    return SpendabilityResponse(
        user_id=user_id,
        safe_to_spend_now=report.safe_to_spend_now,
        available_after_payday=report.available_after_payday,
        total_live_balance=report.total_live_balance,
        total_projected_balance=report.total_projected_balance,
        unpaid_bills_total=report.unpaid_bills_total,
        weekly_essentials_reserved=report.weekly_essentials_reserved,
        safety_buffer=report.safety_buffer,
        next_payday=report.next_payday,
        days_until_payday=report.days_until_payday,
        paydays=[PaydaySchema.from_domain(p) for p in report.paydays],
        bills_due_before_payday=[BillSchema.from_domain(b) for b in report.bills_due_before_payday],
        bills_due_after_payday=[BillSchema.from_domain(b) for b in report.bills_due_after_payday],
        matched_bill_ids=report.matched_bill_ids,
        accounts=[AccountProjectionSchema.from_domain(p) for p in report.account_projections],
        settings_valid=report.settings_validation.valid,
        warnings=report.warnings,
    )


@router.get("/paydays", response_model=PaydayScheduleResponse)
def get_payday_schedule(
    user_id: str = Query(..., min_length=1, description="User identifier"),
    days: int = Query(60, ge=1, le=366, description="Planning window length"),
    db: Session = Depends(get_db),
):
    """List every projected deposit from today through the planning window"""
    document = ensure_required_fields(SettingsRepository(db).load(user_id))
    schedules = [s for s in pay_schedules_from_settings(document) if s is not None]

    start = today_in_reference_tz(settings.reference_timezone)
    end = start + timedelta(days=days)
    paydays = project_payday_schedule(schedules, start, end)

    return PaydayScheduleResponse(
        user_id=user_id,
        start=start,
        end=end,
        paydays=[PaydaySchema.from_domain(p) for p in paydays],
    )
