"""Pytest fixtures for testing"""

import pytest
from datetime import date
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from spendability.api.main import create_app
from spendability.infrastructure.database.models import Base
from spendability.infrastructure.database.session import get_db
from spendability.domain.models import Account, BillTemplate, Transaction


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def make_transaction():
    """Factory for transactions with string amounts so tests stay exact"""

    def _make(
        tx_id: str,
        amount: str,
        on: date,
        merchant: str = "Test Merchant",
        account_id: str = "acc_checking",
        pending=False,
        status=None,
    ) -> Transaction:
        return Transaction(
            id=tx_id,
            account_id=account_id,
            amount=Decimal(amount),
            date=on,
            merchant_name=merchant,
            pending=pending,
            status=status,
        )

    return _make


@pytest.fixture
def settings_doc() -> dict:
    """Current-schema settings: biweekly pay with a $400 early deposit"""
    return {
        "schemaVersion": 3,
        "personalInfo": {"yourName": "Sam", "spouseName": ""},
        "paySchedules": {
            "yours": {
                "type": "bi-weekly",
                "amount": "1883.81",
                "lastPaydate": "2025-11-14",
                "bankSplit": {
                    "fixedAmount": {"bank": "SoFi", "amount": 400},
                    "remainder": {"bank": "Wells Fargo"},
                },
            },
            "spouse": {"type": "bi-monthly", "amount": 0, "dates": [15, 30]},
        },
        "plaidAccounts": [],
        "preferences": {"safetyBuffer": 100, "weeklyEssentials": 100},
    }


@pytest.fixture
def checking_account() -> Account:
    return Account(account_id="acc_checking", name="Checking", current_balance=Decimal("2000.00"))


@pytest.fixture
def utility_bill() -> BillTemplate:
    return BillTemplate(
        id="bill_acme",
        name="Electric",
        amount=Decimal("120.00"),
        due_date=date(2025, 11, 20),
        category="Utilities",
        merchant_name_variants=("Acme Utility Co",),
    )
