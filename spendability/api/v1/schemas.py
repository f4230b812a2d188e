"""Pydantic schemas for API request/response validation"""

import datetime
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from spendability.domain.models import BalanceProjection, BillTemplate, Payday, RecurringCandidate


class PaydaySchema(BaseModel):
    """Single projected deposit"""

    date: datetime.date
    amount: Decimal
    destination: str
    kind: str
    source: str

    @classmethod
    def from_domain(cls, payday: Payday) -> "PaydaySchema":
        return cls(
            date=payday.date,
            amount=payday.amount,
            destination=payday.destination,
            kind=payday.kind,
            source=payday.source,
        )


class BillSchema(BaseModel):
    """One bill instance"""

    id: str
    name: str
    amount: Decimal
    due_date: Optional[date] = None
    recurrence: str
    category: str
    is_paid: bool
    status: str
    template_id: str
    period_index: int
    linked_transaction_ids: List[str] = []

    @classmethod
    def from_domain(cls, bill: BillTemplate) -> "BillSchema":
        return cls(
            id=bill.id,
            name=bill.name,
            amount=bill.amount,
            due_date=bill.due_date,
            recurrence=bill.recurrence,
            category=bill.category,
            is_paid=bill.is_paid,
            status=bill.status,
            template_id=bill.series_id,
            period_index=bill.period_index,
            linked_transaction_ids=list(bill.linked_transaction_ids),
        )


class AccountProjectionSchema(BaseModel):
    """Live vs projected balance for one account"""

    account_id: str
    live_balance: Decimal
    projected_balance: Decimal
    pending_total: Decimal
    stale_transaction_ids: List[str]

    @classmethod
    def from_domain(cls, projection: BalanceProjection) -> "AccountProjectionSchema":
        return cls(
            account_id=projection.account_id,
            live_balance=projection.live_balance,
            projected_balance=projection.projected_balance,
            pending_total=projection.pending_total,
            stale_transaction_ids=projection.stale_transaction_ids,
        )


class SpendabilityResponse(BaseModel):
    """Response for GET /v1/spendability"""

    user_id: str
    safe_to_spend_now: Decimal
    available_after_payday: Decimal
    total_live_balance: Decimal
    total_projected_balance: Decimal
    unpaid_bills_total: Decimal
    weekly_essentials_reserved: Decimal
    safety_buffer: Decimal
    next_payday: Optional[date] = None
    days_until_payday: int
    paydays: List[PaydaySchema]
    bills_due_before_payday: List[BillSchema]
    bills_due_after_payday: List[BillSchema]
    matched_bill_ids: List[str]
    accounts: List[AccountProjectionSchema]
    settings_valid: bool
    warnings: List[str]


class RecurringCandidateSchema(BaseModel):
    """Recurring charge not yet tracked as a bill"""

    merchant_name: str
    average_amount: Decimal
    cadence_days: float
    occurrence_count: int
    suggested_category: str
    suggested_type: str
    next_renewal: date
    linked_transaction_ids: List[str]

    @classmethod
    def from_domain(cls, candidate: RecurringCandidate) -> "RecurringCandidateSchema":
        return cls(
            merchant_name=candidate.merchant_name,
            average_amount=candidate.average_amount,
            cadence_days=candidate.cadence_days,
            occurrence_count=len(candidate.occurrences),
            suggested_category=candidate.suggested_category,
            suggested_type=candidate.suggested_type,
            next_renewal=candidate.next_renewal,
            linked_transaction_ids=candidate.linked_transaction_ids,
        )


class DetectionResponse(BaseModel):
    """Response for GET /v1/subscriptions/detect"""

    user_id: str
    candidates: List[RecurringCandidateSchema]


class MarkPaidRequest(BaseModel):
    """Request body for POST /v1/bills/{bill_id}/pay"""

    user_id: str = Field(..., min_length=1, description="User identifier")
    paid_date: Optional[date] = Field(None, description="Defaults to today")
    amount: Optional[Decimal] = Field(None, gt=0, description="Defaults to the bill amount")
    transaction_id: Optional[str] = None
    method: str = "bank"
    source: Literal["manual", "matched", "auto"] = "manual"


class MarkPaidResponse(BaseModel):
    """Response for POST /v1/bills/{bill_id}/pay"""

    paid_bill: BillSchema
    next_bill: Optional[BillSchema] = None


class ValidationSchema(BaseModel):
    """Settings validation outcome"""

    valid: bool
    errors: List[str]
    warnings: List[str]


class SettingsUpdateRequest(BaseModel):
    """Request body for PUT /v1/settings"""

    user_id: str = Field(..., min_length=1, description="User identifier")
    settings: Dict[str, Any]


class SettingsResponse(BaseModel):
    """Response for GET/PUT /v1/settings"""

    user_id: str
    settings: Dict[str, Any]
    validation: ValidationSchema


class PaydayScheduleResponse(BaseModel):
    """Response for GET /v1/paydays"""

    user_id: str
    start: date
    end: date
    paydays: List[PaydaySchema]


class BillCreateRequest(BaseModel):
    """Request body for POST /v1/bills"""

    user_id: str = Field(..., min_length=1, description="User identifier")
    name: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    due_date: Optional[date] = None
    recurrence: Literal["one-time", "weekly", "biweekly", "monthly", "quarterly", "annually"] = "monthly"
    category: str = "Other"
    merchant_name_variants: List[str] = []
    linked_transaction_ids: List[str] = []


class BillListResponse(BaseModel):
    """Response for GET /v1/bills"""

    user_id: str
    bills: List[BillSchema]
