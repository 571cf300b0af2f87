"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from commission_gateway.api.main import create_app
from commission_gateway.infrastructure.database.models import Agent, Base, CommissionPayout, Transaction
from commission_gateway.infrastructure.database.session import get_db
from commission_gateway.services.payout_lifecycle import PayoutLifecycleManager


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Fixed instant for service tests: 2026-03-02 15:00 UTC
FIXED_NOW = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)


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
def manager(db: Session) -> PayoutLifecycleManager:
    """Lifecycle manager with a frozen clock"""
    return PayoutLifecycleManager(db, clock=lambda: FIXED_NOW)


@pytest.fixture
def agent(db: Session) -> Agent:
    """Agent on a 75% split with the standard fixed deductions"""
    db_agent = Agent(
        name="Emily White",
        email="emily@example.com",
        split_percent=Decimal("75"),
        franchise_fee=Decimal("4500"),
        eo_fee=Decimal("150"),
        transaction_fee=Decimal("450"),
    )
    db.add(db_agent)
    db.commit()
    return db_agent


@pytest.fixture
def make_transaction(db: Session) -> Callable[..., Transaction]:
    """Factory for pending transactions"""

    def _make(**fields) -> Transaction:
        transaction = Transaction(status="pending", property_address="12 Elm St", **fields)
        db.add(transaction)
        db.commit()
        return transaction

    return _make


@pytest.fixture
def make_payout(db: Session, make_transaction) -> Callable[..., CommissionPayout]:
    """Factory for payouts in an arbitrary status, each on its own approved transaction"""

    def _make(status: str = "ready", amount_cents: int = 3_000_000, **fields) -> CommissionPayout:
        transaction = make_transaction()
        transaction.status = "approved"
        payout = CommissionPayout(
            transaction_id=transaction.id,
            payout_amount_cents=amount_cents,
            gross_commission_cents=4_000_000,
            agent_gross_cents=amount_cents,
            deductions_cents=0,
            status=status,
            **fields,
        )
        db.add(payout)
        db.commit()
        return payout

    return _make


@pytest.fixture
def final_data() -> dict:
    """Final terms for a 1,000,000 sale at 4% with a 75% split"""
    return {
        "final_broker_agent_name": "Jordan Blake",
        "property_address": "12 Elm St",
        "final_sale_price": "1000000",
        "final_listing_commission_percent": "4",
        "final_buyer_commission_percent": "2.5",
        "final_agent_split_percent": "75",
        "final_co_broker_agent_name": None,
        "final_co_brokerage_firm_name": None,
    }


@pytest.fixture
def next_week() -> str:
    """A scheduled date safely in the future in any time zone"""
    return (date.today() + timedelta(days=7)).isoformat()
