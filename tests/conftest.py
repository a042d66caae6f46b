"""Pytest fixtures for testing"""

from datetime import datetime, timezone
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from lease_engine.api.dependencies import get_clock, get_status_webhook_client
from lease_engine.api.main import create_app
from lease_engine.domain.clock import FixedClock
from lease_engine.domain.identifiers import ApplicationId
from lease_engine.domain.models import RawLeaseTerms
from lease_engine.infrastructure.clients.status_webhook import StatusWebhookClient
from lease_engine.infrastructure.database.models import Base
from lease_engine.infrastructure.database.session import get_db


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
def clock() -> FixedClock:
    """Clock pinned to 2026-01-15 09:00 UTC, before the sample lease starts"""
    return FixedClock(datetime(2026, 1, 15, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def client(db: Session, clock: FixedClock) -> TestClient:
    """Create FastAPI test client with test database, fixed clock and no webhook"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_status_webhook_client] = lambda: StatusWebhookClient(webhook_url=None)
    return TestClient(app)


@pytest.fixture
def application_id() -> ApplicationId:
    return ApplicationId.parse("3f2b8c1e-5a4d-4e6f-9b7a-1c2d3e4f5a6b")


@pytest.fixture
def sample_terms() -> RawLeaseTerms:
    """$2,000/month, first month + $100 key fee + $1,500 deposit before move-in"""
    return RawLeaseTerms(
        monthly_rent_cents=200000,
        start_date="2026-02-01",
        term_months=2,
        security_cents=150000,
        key_fee_cents=10000,
        require_first_before_move_in=True,
        require_last_before_move_in=False,
        countersign_upfront_threshold_cents=999999,
        countersign_deposit_threshold_cents=999999,
    )
