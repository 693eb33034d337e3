"""Pytest fixtures for testing"""

import uuid
import pytest
from datetime import date, datetime, timezone
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from installment_engine.api.main import create_app
from installment_engine.api.dependencies import get_clock
from installment_engine.infrastructure.database.models import Base, Invoice
from installment_engine.infrastructure.database.session import get_db
from installment_engine.domain.models import LateFeePolicy, PlanRequest
from installment_engine.utils.clock import FixedClock


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TODAY = date(2026, 3, 1)


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
def clock() -> FixedClock:
    """Clock frozen at 2026-03-01 10:00 UTC"""
    return FixedClock(datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def client(db: Session, clock: FixedClock) -> TestClient:
    """Create FastAPI test client with test database and frozen clock"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    return TestClient(app)


@pytest.fixture
def make_invoice(db: Session) -> Callable[..., Invoice]:
    """Factory for billing invoices"""

    def _make(balance_cents: int = 100_000, status: str = "pending", student_id: str = "student_1") -> Invoice:
        invoice = Invoice(
            id=uuid.uuid4(),
            student_id=student_id,
            total_cents=max(balance_cents, 100_000),
            balance_cents=balance_cents,
            status=status,
        )
        db.add(invoice)
        db.commit()
        return invoice

    return _make


@pytest.fixture
def plan_request() -> Callable[..., PlanRequest]:
    """Factory for valid plan requests starting the day after TODAY"""

    def _make(invoice_id, **overrides) -> PlanRequest:
        values = dict(
            invoice_id=str(invoice_id),
            number_of_installments=3,
            frequency="monthly",
            start_date=date(2026, 3, 2),
            terms_accepted=True,
            late_fee_policy=LateFeePolicy(enabled=True, fee_cents=2_500, grace_period_days=7),
        )
        values.update(overrides)
        return PlanRequest(**values)

    return _make
