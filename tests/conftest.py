"""
Shared pytest fixtures for all test modules.

Uses an in-memory SQLite database (StaticPool) so every test
function gets a clean database with no disk I/O.
Gateway and auth settings are built explicitly and injected through
dependency overrides, so no test reads the process environment.
"""
import pytest
from datetime import datetime, timedelta
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from typing import Optional

from app.config import AuthSettings, GatewaySettings, get_auth_settings, get_gateway_settings
from app.database import Base, get_db
from app.processors.jazzcash import SECURE_HASH_FIELD, compute_secure_hash
from app import models


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

TEST_SALT = "0123456789abcdef"
TEST_JWT_SECRET = "test-jwt-secret"
SUCCESS_REDIRECT = "https://app.example.com/pricing/success"
FAIL_REDIRECT = "https://app.example.com/pricing/failed"

TEST_GATEWAY_SETTINGS = GatewaySettings(
    merchant_id="MC00001",
    password="merchantpass",
    integrity_salt=TEST_SALT,
    return_url="https://app.example.com/api/payments/jazzcash/callback",
    success_redirect=SUCCESS_REDIRECT,
    fail_redirect=FAIL_REDIRECT,
)
TEST_AUTH_SETTINGS = AuthSettings(jwt_secret=TEST_JWT_SECRET)


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
def settings():
    return TEST_GATEWAY_SETTINGS


@pytest.fixture
def client(db):
    """
    FastAPI TestClient with the DB and settings dependencies overridden.
    The TestClient is NOT used as a context manager so the lifespan hook
    (which creates tables on the on-disk DB) is skipped. Redirects are not
    followed so callback responses can be asserted directly.
    """
    from app.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway_settings] = lambda: TEST_GATEWAY_SETTINGS
    app.dependency_overrides[get_auth_settings] = lambda: TEST_AUTH_SETTINGS
    yield TestClient(app, follow_redirects=False)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers (not fixtures) so any test file can import and call them directly.
# ---------------------------------------------------------------------------
def make_token(user_id: str = "user-1", email: Optional[str] = "user1@example.com",
               secret: str = TEST_JWT_SECRET, expires_in: timedelta = timedelta(hours=1)) -> str:
    claims = {"sub": user_id, "exp": datetime.utcnow() + expires_in}
    if email is not None:
        claims["email"] = email
    return jwt.encode(claims, secret, algorithm="HS256")


def auth_header(user_id: str = "user-1", email: Optional[str] = "user1@example.com") -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, email)}"}


def make_txn(
    db,
    reference: str,
    user_id: str = "user-1",
    plan_id: str = "premium",
    amount: int = 160000,
    status: str = "pending",
    created_at: Optional[datetime] = None,
) -> models.Transaction:
    created_at = created_at or models.utcnow()
    txn = models.Transaction(
        reference=reference,
        user_id=user_id,
        plan_id=plan_id,
        amount=amount,
        amount_pkr=amount // 100,
        currency="PKR",
        gateway="jazzcash",
        status=status,
        created_at=created_at,
        updated_at=created_at,
    )
    db.add(txn)
    db.commit()
    db.refresh(txn)
    return txn


def make_profile(
    db,
    user_id: str = "user-1",
    email: Optional[str] = "user1@example.com",
    plan_id: Optional[str] = None,
    plan_status: str = "none",
    plan_started_at: Optional[datetime] = None,
    plan_expires_at: Optional[datetime] = None,
) -> models.Profile:
    profile = models.Profile(
        id=user_id,
        email=email,
        plan_id=plan_id,
        plan_status=plan_status,
        plan_started_at=plan_started_at,
        plan_expires_at=plan_expires_at,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


def signed_callback(
    reference: str,
    user_id: str = "user-1",
    plan_id: str = "premium",
    response_code: str = "000",
    salt: str = TEST_SALT,
    **extra,
) -> dict:
    """A callback payload as JazzCash would post it, signed with salt."""
    payload = {
        "pp_Amount": "160000" if plan_id == "premium" else "100000",
        "pp_BillReference": f"{plan_id}-{user_id}"[:20],
        "pp_Language": "EN",
        "pp_MerchantID": "MC00001",
        "pp_ResponseCode": response_code,
        "pp_ResponseMessage": "Thank you for Using JazzCash" if response_code == "000" else "Declined",
        "pp_RetreivalReferenceNo": "240115123456",
        "pp_SubMerchantID": "",
        "pp_TxnCurrency": "PKR",
        "pp_TxnRefNo": reference,
        "pp_TxnType": "MWALLET",
        "pp_Version": "1.1",
        "ppmpf_1": "user1@example.com",
        "ppmpf_2": plan_id,
        "ppmpf_3": user_id,
        "ppmpf_4": "",
        "ppmpf_5": "",
    }
    payload.update(extra)
    payload[SECURE_HASH_FIELD] = compute_secure_hash(payload, salt)
    return payload
