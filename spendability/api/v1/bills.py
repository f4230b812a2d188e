"""Bill endpoints: list, create and mark as paid"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from spendability.api.dependencies import get_request_id
from spendability.api.v1.schemas import (
    BillCreateRequest,
    BillListResponse,
    BillSchema,
    MarkPaidRequest,
    MarkPaidResponse,
)
from spendability.config import settings
from spendability.domain.exceptions import BillAlreadyPaidError, BillNotFoundError
from spendability.domain.models import BillTemplate, PaymentRecord
from spendability.domain.recurrence import mark_paid, sort_for_display, with_derived_status
from spendability.domain.schedule import today_in_reference_tz
from spendability.infrastructure.database.repositories import BillRepository
from spendability.infrastructure.database.session import get_db
from spendability.infrastructure.observability.metrics import bill_payments_counter

router = APIRouter()


@router.get("/bills", response_model=BillListResponse)
def list_bills(
    user_id: str = Query(..., min_length=1, description="User identifier"),
    db: Session = Depends(get_db),
):
    """Current period of every bill: overdue first, then pending, then paid"""
    today = today_in_reference_tz(settings.reference_timezone)
    bills = with_derived_status(BillRepository(db).list_current_bills(user_id), today)
    return BillListResponse(
        user_id=user_id,
        bills=[BillSchema.from_domain(b) for b in sort_for_display(bills, today)],
    )


@router.post("/bills", response_model=BillSchema, status_code=201)
def create_bill(
    request_body: BillCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Start tracking a bill, e.g. a recurring charge the user accepted"""
    request_id = get_request_id(request)
    bill = BillTemplate(
        id=str(uuid.uuid4()),
        name=request_body.name,
        amount=request_body.amount,
        due_date=request_body.due_date,
        recurrence=request_body.recurrence,
        category=request_body.category,
        merchant_name_variants=tuple(request_body.merchant_name_variants),
        linked_transaction_ids=tuple(request_body.linked_transaction_ids),
    )

    try:
        BillRepository(db).save_bill(request_body.user_id, bill)
        db.commit()
    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id, "user_id": request_body.user_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    return BillSchema.from_domain(bill)


@router.post("/bills/{bill_id}/pay", response_model=MarkPaidResponse)
def pay_bill(
    bill_id: str,
    request_body: MarkPaidRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Record a payment and roll a recurring bill into its next period.

    The paid instance, its payment record and the successor are committed
    together; on failure nothing is written.
    """
    request_id = get_request_id(request)
    repo = BillRepository(db)

    try:
        bill = repo.get_bill(request_body.user_id, bill_id)
        payment = PaymentRecord(
            paid_date=request_body.paid_date or today_in_reference_tz(settings.reference_timezone),
            amount=request_body.amount if request_body.amount is not None else abs(bill.amount),
            transaction_id=request_body.transaction_id,
            method=request_body.method,
            source=request_body.source,
        )
        outcome = mark_paid(bill, payment)
        repo.record_payment(request_body.user_id, outcome)
        db.commit()

    except BillNotFoundError as e:
        db.rollback()
        logging.warning(f"Bill not found: {e}", extra={"request_id": request_id, "bill_id": bill_id})
        raise HTTPException(status_code=404, detail="Bill not found")

    except BillAlreadyPaidError as e:
        db.rollback()
        logging.warning(f"Bill already paid: {e}", extra={"request_id": request_id, "bill_id": bill_id})
        raise HTTPException(status_code=409, detail="Bill already paid")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id, "bill_id": bill_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    bill_payments_counter.labels(source=payment.source).inc()

    return MarkPaidResponse(
        paid_bill=BillSchema.from_domain(outcome.paid_bill),
        next_bill=BillSchema.from_domain(outcome.next_bill) if outcome.next_bill else None,
    )
