"""GET /v1/subscriptions/detect - Recurring charge detection endpoint"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from spendability.api.dependencies import get_bank_client, get_request_id
from spendability.api.v1.schemas import DetectionResponse, RecurringCandidateSchema
from spendability.config import settings
from spendability.domain.detection import detect_recurring, filter_new_candidates
from spendability.domain.exceptions import BankAPIError
from spendability.infrastructure.clients.bank import BankClient
from spendability.infrastructure.database.repositories import BillRepository
from spendability.infrastructure.database.session import get_db
from spendability.infrastructure.observability.metrics import bank_fetch_failures_counter, recurring_candidates_counter

router = APIRouter()


@router.get("/subscriptions/detect", response_model=DetectionResponse)
async def detect_subscriptions(
    request: Request,
    user_id: str = Query(..., min_length=1, description="User identifier"),
    db: Session = Depends(get_db),
    bank_client: BankClient = Depends(get_bank_client),
):
    """
    Suggest recurring charges that are not tracked as bills yet.

    Candidates are proposals only; nothing is saved until the user accepts one.
    """
    request_id = get_request_id(request)

    try:
        transactions = await bank_client.get_transactions(user_id)
    except BankAPIError as e:
        bank_fetch_failures_counter.inc()
        logging.error(f"Bank API error: {e}", extra={"request_id": request_id, "user_id": user_id})
        raise HTTPException(status_code=503, detail="Could not load financial data")

    existing = BillRepository(db).list_current_bills(user_id)
    candidates = filter_new_candidates(
        detect_recurring(transactions, settings.thresholds),
        existing,
        settings.thresholds,
    )

    for candidate in candidates:
        recurring_candidates_counter.labels(suggested_type=candidate.suggested_type).inc()

    return DetectionResponse(
        user_id=user_id,
        candidates=[RecurringCandidateSchema.from_domain(c) for c in candidates],
    )
