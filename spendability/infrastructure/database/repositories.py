"""Data access layer for bills, payments and settings documents"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from spendability.domain.exceptions import BillNotFoundError
from spendability.domain.models import MONTHLY, STATUS_PENDING, BillTemplate, PaymentRecord
from spendability.domain.recurrence import PaidBillOutcome, current_instances
from spendability.domain.settings_schema import CURRENT_SCHEMA_VERSION, merge_safely, migrate
from spendability.infrastructure.database.models import BillInstance, BillPayment, SettingsDocument
from spendability.utils.date_utils import parse_date

logger = logging.getLogger(__name__)


def payment_to_document(payment: PaymentRecord) -> Dict[str, Any]:
    return {
        "paidDate": payment.paid_date.isoformat(),
        "amount": str(payment.amount),
        "transactionId": payment.transaction_id,
        "method": payment.method,
        "source": payment.source,
    }


def payment_from_document(doc: Dict[str, Any]) -> PaymentRecord:
    return PaymentRecord(
        paid_date=parse_date(doc["paidDate"]),
        amount=Decimal(str(doc["amount"])),
        transaction_id=doc.get("transactionId"),
        method=doc.get("method") or "bank",
        source=doc.get("source") or "manual",
    )


def bill_to_document(bill: BillTemplate) -> Dict[str, Any]:
    """Serialize a bill to JSON-safe form (amounts as strings, ISO dates)"""
    return {
        "id": bill.id,
        "name": bill.name,
        "amount": str(bill.amount),
        "dueDate": bill.due_date.isoformat() if bill.due_date else None,
        "recurrence": bill.recurrence,
        "category": bill.category,
        "isPaid": bill.is_paid,
        "status": bill.status,
        "paymentHistory": [payment_to_document(p) for p in bill.payment_history],
        "merchantNameVariants": list(bill.merchant_name_variants),
        "linkedTransactionIds": list(bill.linked_transaction_ids),
        "templateId": bill.series_id,
        "periodIndex": bill.period_index,
    }


def bill_from_document(doc: Dict[str, Any]) -> BillTemplate:
    return BillTemplate(
        id=doc["id"],
        name=doc.get("name") or "",
        amount=Decimal(str(doc.get("amount") or "0")),
        due_date=parse_date(doc.get("dueDate")),
        recurrence=doc.get("recurrence") or MONTHLY,
        category=doc.get("category") or "Other",
        is_paid=bool(doc.get("isPaid", False)),
        status=doc.get("status") or STATUS_PENDING,
        payment_history=tuple(payment_from_document(p) for p in doc.get("paymentHistory") or []),
        merchant_name_variants=tuple(doc.get("merchantNameVariants") or ()),
        linked_transaction_ids=tuple(doc.get("linkedTransactionIds") or ()),
        template_id=doc.get("templateId") or doc["id"],
        period_index=int(doc.get("periodIndex") or 0),
    )


class BillRepository:
    """Repository for bill instances and their payment records"""

    def __init__(self, db: Session):
        self.db = db

    def list_bills(self, user_id: str) -> List[BillTemplate]:
        """Every stored instance for a user, paid history included"""
        rows = (
            self.db.query(BillInstance)
            .filter(BillInstance.user_id == user_id)
            .order_by(BillInstance.template_id, BillInstance.period_index)
            .all()
        )
        return [bill_from_document(row.document) for row in rows]

    def list_current_bills(self, user_id: str) -> List[BillTemplate]:
        """Latest instance of each bill series"""
        return current_instances(self.list_bills(user_id))

    def get_bill(self, user_id: str, bill_id: str) -> BillTemplate:
        """
        Fetch a single bill instance.

        Raises:
            BillNotFoundError: If the user has no bill with this id
        """
        row = self._get_row(user_id, bill_id)
        if row is None:
            raise BillNotFoundError(f"Bill {bill_id} not found")
        return bill_from_document(row.document)

    def save_bill(self, user_id: str, bill: BillTemplate) -> BillInstance:
        """Insert or overwrite a bill instance (last write wins)"""
        row = self._get_row(user_id, bill.id)
        if row is None:
            row = BillInstance(id=bill.id, user_id=user_id)
            self.db.add(row)

        row.template_id = bill.series_id
        row.period_index = bill.period_index
        row.due_date = bill.due_date
        row.is_paid = bill.is_paid
        row.document = bill_to_document(bill)
        self.db.flush()
        return row

    def record_payment(self, user_id: str, outcome: PaidBillOutcome) -> None:
        """
        Persist a paid instance, its payment record and the next period.

        Everything is flushed in the caller's session so the three writes
        commit or roll back together.
        """
        paid_bill = outcome.paid_bill
        self.save_bill(user_id, paid_bill)

        payment = paid_bill.payment_history[-1]
        self.db.add(
            BillPayment(
                user_id=user_id,
                bill_id=paid_bill.id,
                paid_date=payment.paid_date,
                amount=payment.amount,
                transaction_id=payment.transaction_id,
                method=payment.method,
                source=payment.source,
            )
        )

        if outcome.next_bill is not None:
            self.save_bill(user_id, outcome.next_bill)

        self.db.flush()
        logger.info(
            "Bill payment recorded",
            extra={
                "user_id": user_id,
                "bill_id": paid_bill.id,
                "template_id": paid_bill.series_id,
                "next_bill_id": outcome.next_bill.id if outcome.next_bill else None,
            },
        )

    def get_payments(self, user_id: str, bill_id: str) -> List[BillPayment]:
        """Payment rows for one instance, oldest first"""
        return (
            self.db.query(BillPayment)
            .filter(BillPayment.user_id == user_id, BillPayment.bill_id == bill_id)
            .order_by(BillPayment.paid_date)
            .all()
        )

    def _get_row(self, user_id: str, bill_id: str) -> Optional[BillInstance]:
        return (
            self.db.query(BillInstance)
            .filter(BillInstance.user_id == user_id, BillInstance.id == bill_id)
            .first()
        )


class SettingsRepository:
    """Repository for versioned settings documents"""

    def __init__(self, db: Session):
        self.db = db

    def load(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Stored settings migrated to the current schema, or None if never saved"""
        row = self._get_row(user_id)
        if row is None:
            return None
        return migrate(row.document)

    def save(self, user_id: str, incoming: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge a partial update into the stored document and persist it.

        Empty incoming values never erase populated protected fields.
        """
        row = self._get_row(user_id)
        existing = migrate(row.document) if row is not None else None
        merged = migrate(merge_safely(existing, incoming))

        if row is None:
            row = SettingsDocument(user_id=user_id)
            self.db.add(row)

        row.document = merged
        row.schema_version = merged.get("schemaVersion", CURRENT_SCHEMA_VERSION)
        self.db.flush()
        return merged

    def _get_row(self, user_id: str) -> Optional[SettingsDocument]:
        return (
            self.db.query(SettingsDocument)
            .filter(SettingsDocument.user_id == user_id)
            .first()
        )
