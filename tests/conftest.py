"""
Shared pytest fixtures for all test modules.

Uses an in-memory SQLite database (StaticPool) so every test
function gets a clean, isolated database with no disk I/O.
"""
import pytest
from datetime import datetime
from typing import Optional
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from selfiepro.adapters.base import VerificationClaim
from selfiepro.database import Base, get_db
from selfiepro.models import UNKNOWN
from selfiepro import models


# ---------------------------------------------------------------------------
# In-memory database engine shared across all fixtures in a test session.
# StaticPool forces all SQLAlchemy connections to reuse the same underlying
# sqlite3 connection, which is required for in-memory SQLite.
# ---------------------------------------------------------------------------
TEST_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=TEST_ENGINE)

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture(autouse=True)
def reset_db():
    """Drop and recreate all tables before each test for full isolation."""
    Base.metadata.drop_all(bind=TEST_ENGINE)
    Base.metadata.create_all(bind=TEST_ENGINE)
    yield
    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db(reset_db):
    """Yield a SQLAlchemy session backed by the in-memory test database."""
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def analyzer():
    """Receipt analyzer double; set analyzer.extract.return_value / side_effect per test."""
    m = AsyncMock()
    m.extract = AsyncMock(return_value=make_claim())
    return m


@pytest.fixture
def composer():
    m = AsyncMock()
    m.compose = AsyncMock(return_value="data:image/png;base64,iVBORw0KGgo=")
    return m


@pytest.fixture
def client(db, analyzer, composer, monkeypatch):
    """
    FastAPI TestClient with the DB, AI adapters and tracker overridden.
    The TestClient is NOT used as a context manager so the lifespan hook
    (table creation on disk, retention sweep) is skipped.
    """
    from selfiepro import config
    from selfiepro.dependencies import get_image_composer, get_purchase_tracker, get_receipt_analyzer
    from selfiepro.main import app
    from selfiepro.services.tracking import PurchaseTracker

    monkeypatch.setattr(config, "ADMIN_TOKEN", ADMIN_TOKEN)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_receipt_analyzer] = lambda: analyzer
    app.dependency_overrides[get_image_composer] = lambda: composer
    app.dependency_overrides[get_purchase_tracker] = lambda: PurchaseTracker()
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers: not fixtures, so any test file can import and call them directly.
# ---------------------------------------------------------------------------
def make_claim(
    amount_verified: bool = True,
    confidence: int = 92,
    reason: str = "Amount matches",
    transaction_id: str = "ABC123",
    sender_name: str = "Sana",
    timestamp_text: str = "1 Nov 9:00AM",
    is_edited: bool = False,
) -> VerificationClaim:
    return VerificationClaim(
        amount_verified=amount_verified,
        confidence=confidence,
        reason=reason,
        transaction_id=transaction_id,
        sender_name=sender_name,
        timestamp_text=timestamp_text,
        is_edited=is_edited,
    )


def make_profile(db, user_id: str = "user_1", credits: int = 0, full_name: Optional[str] = "Sana") -> models.Profile:
    profile = models.Profile(user_id=user_id, full_name=full_name, country="PK", credits=credits)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


def make_plan(db, plan_id: str = "standard", price: int = 699, credits: int = 12) -> models.Plan:
    plan = models.Plan(id=plan_id, name=plan_id.title(), price=price, credits=credits)
    db.add(plan)
    db.commit()
    db.refresh(plan)
    return plan


def make_record(
    db,
    external_transaction_id: str = "TX100",
    sender_name: str = UNKNOWN,
    receipt_timestamp_text: str = UNKNOWN,
    amount: int = 699,
    user_id: str = "user_1",
    created_at: Optional[datetime] = None,
    is_placeholder: bool = False,
) -> models.Transaction:
    record = models.Transaction(
        external_transaction_id=external_transaction_id,
        is_placeholder=is_placeholder,
        sender_name=sender_name,
        receipt_timestamp_text=receipt_timestamp_text,
        amount=amount,
        user_id=user_id,
    )
    if created_at is not None:
        record.created_at = created_at
    db.add(record)
    db.commit()
    db.refresh(record)
    return record
