"""SQLAlchemy ORM models for the per-user document store"""

import uuid
from sqlalchemy import Column, Boolean, Date, DateTime, ForeignKey, Integer, JSON, Numeric, Text, Uuid
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class BillInstance(Base):
    """One billing period of a bill; paid periods are kept as history"""

    __tablename__ = "bill_instance"

    id = Column(Text, primary_key=True)
    user_id = Column(Text, nullable=False, index=True)
    template_id = Column(Text, nullable=False, index=True)
    period_index = Column(Integer, nullable=False, default=0)
    due_date = Column(Date, nullable=True)
    is_paid = Column(Boolean, nullable=False, default=False)
    document = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    payments = relationship("BillPayment", back_populates="bill", cascade="all, delete-orphan")


class BillPayment(Base):
    """Append-only payment record linked to the bill instance it paid"""

    __tablename__ = "bill_payment"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    bill_id = Column(Text, ForeignKey("bill_instance.id", ondelete="CASCADE"), nullable=False)
    paid_date = Column(Date, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    transaction_id = Column(Text, nullable=True)
    method = Column(Text, nullable=False, default="bank")
    source = Column(Text, nullable=False, default="manual")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    bill = relationship("BillInstance", back_populates="payments")


class SettingsDocument(Base):
    """Versioned settings document, one per user"""

    __tablename__ = "settings_document"

    user_id = Column(Text, primary_key=True)
    schema_version = Column(Integer, nullable=False)
    document = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
