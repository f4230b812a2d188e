"""Domain models - pure Python dataclasses representing financial records"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple, Union

# Cadences understood by schedule math
WEEKLY = "weekly"
BIWEEKLY = "biweekly"
SEMIMONTHLY = "semimonthly"
MONTHLY = "monthly"
PAY_CADENCES = (WEEKLY, BIWEEKLY, SEMIMONTHLY, MONTHLY)

# Bill recurrences (superset of pay cadences)
ONE_TIME = "one-time"
QUARTERLY = "quarterly"
ANNUALLY = "annually"
BILL_RECURRENCES = (ONE_TIME, WEEKLY, BIWEEKLY, MONTHLY, QUARTERLY, ANNUALLY)

# Bill statuses
STATUS_PENDING = "pending"
STATUS_OVERDUE = "overdue"
STATUS_PAID = "paid"

# Payday kinds
KIND_EARLY = "early"
KIND_MAIN = "main"
KIND_SINGLE = "single"


@dataclass(frozen=True)
class EarlyDepositConfig:
    """Portion of a paycheck that lands in another account ahead of payday"""

    enabled: bool
    amount: Decimal
    days_before_main: int
    early_destination: str
    main_destination: str


@dataclass(frozen=True)
class PaySchedule:
    """Recurring income definition, edited only by the user via settings"""

    cadence: str  # weekly | biweekly | semimonthly | monthly
    amount: Decimal
    anchor_date: date
    anchor_days_of_month: Tuple[int, int] = (15, 31)  # 31 clamps to the month's last day
    destination: str = ""
    owner: str = "primary"
    early_deposit: Optional[EarlyDepositConfig] = None
    weekend_adjust: bool = False


@dataclass(frozen=True)
class Payday:
    """Single projected deposit event"""

    date: date
    amount: Decimal
    destination: str
    kind: str  # early | main | single
    source: str = "primary"


@dataclass
class PaydayProjection:
    """Ordered paydays plus the schedules they were derived from"""

    paydays: List[Payday]
    warnings: List[str]
    computed_at: datetime
    schedules: Tuple[PaySchedule, ...] = ()

    def is_stale_for(self, schedules: Tuple[PaySchedule, ...]) -> bool:
        """True when the governing schedules changed since this projection was computed"""
        return tuple(schedules) != self.schedules


@dataclass(frozen=True)
class PaymentRecord:
    """Append-only record of a bill payment"""

    paid_date: date
    amount: Decimal
    transaction_id: Optional[str] = None
    method: str = "bank"
    source: str = "manual"  # manual | matched | auto


@dataclass(frozen=True)
class BillTemplate:
    """One instance (billing period) of a bill or subscription"""

    id: str
    name: str
    amount: Decimal
    due_date: Optional[date]
    recurrence: str = MONTHLY
    category: str = "Other"
    is_paid: bool = False
    status: str = STATUS_PENDING
    payment_history: Tuple[PaymentRecord, ...] = ()
    merchant_name_variants: Tuple[str, ...] = ()
    linked_transaction_ids: Tuple[str, ...] = ()
    template_id: str = ""
    period_index: int = 0

    @property
    def series_id(self) -> str:
        """Stable identifier shared by every period of the same bill"""
        return self.template_id or self.id


@dataclass(frozen=True)
class Transaction:
    """Bank transaction supplied by the aggregation service"""

    id: str
    account_id: str
    amount: Decimal  # negative = outflow
    date: date
    merchant_name: str
    pending: Union[bool, str, None] = False
    status: Optional[str] = None
    mask: Optional[str] = None
    institution_name: Optional[str] = None


@dataclass(frozen=True)
class Account:
    """Bank account balance as reported by the aggregation service"""

    account_id: str
    name: str
    current_balance: Decimal
    type: str = "depository"
    subtype: str = "checking"
    available_balance: Optional[Decimal] = None
    mask: Optional[str] = None
    institution_name: Optional[str] = None


@dataclass(frozen=True)
class MatchResult:
    """Outcome of scoring one transaction against one bill"""

    matched: bool
    confidence: float
    criteria: Dict[str, bool]
    explanation: str = ""


@dataclass
class RecurringCandidate:
    """Recurring charge inferred from transaction history"""

    merchant_name: str
    average_amount: Decimal
    cadence_days: float
    occurrences: List[Transaction]
    suggested_category: str
    suggested_type: str  # subscription | recurring_bill
    next_renewal: date
    linked_transaction_ids: List[str] = field(default_factory=list)


@dataclass
class BalanceProjection:
    """Live vs projected balance for a single account"""

    account_id: str
    live_balance: Decimal
    projected_balance: Decimal
    pending_total: Decimal
    included_transaction_ids: List[str]
    stale_transaction_ids: List[str]


@dataclass
class AccountsProjection:
    """Per-account projections and their totals"""

    accounts: List[BalanceProjection]
    total_live: Decimal
    total_projected: Decimal


@dataclass
class ValidationResult:
    """Outcome of validating a settings document"""

    valid: bool
    errors: List[str]
    warnings: List[str]


@dataclass
class SpendabilityReport:
    """Final safe-to-spend figures and the inputs that produced them"""

    safe_to_spend_now: Decimal
    available_after_payday: Decimal
    total_live_balance: Decimal
    total_projected_balance: Decimal
    bills_due_before_payday: List[BillTemplate]
    bills_due_after_payday: List[BillTemplate]
    unpaid_bills_total: Decimal
    weekly_essentials_reserved: Decimal
    safety_buffer: Decimal
    next_payday: Optional[date]
    days_until_payday: int
    paydays: List[Payday]
    warnings: List[str]
    settings_validation: ValidationResult
    account_projections: List[BalanceProjection] = field(default_factory=list)
    matched_bill_ids: List[str] = field(default_factory=list)
