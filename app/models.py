from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, JSON, String

from app.database import Base

PLAN_BASIC = "basic"
PLAN_PREMIUM = "premium"
PLANS = (PLAN_BASIC, PLAN_PREMIUM)

STATUS_PENDING = "pending"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
TERMINAL_STATUSES = (STATUS_SUCCESS, STATUS_FAILED)

PLAN_STATUS_NONE = "none"
PLAN_STATUS_ACTIVE = "active"
PLAN_STATUS_EXPIRED = "expired"


def utcnow():
    """Naive UTC timestamp, the form every DateTime column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Transaction(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reference = Column("txn_ref", String(20), unique=True, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    plan_id = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)  # subunits (paisa)
    amount_pkr = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="PKR")
    gateway = Column(String, nullable=False, default="jazzcash")
    status = Column(String, nullable=False, default=STATUS_PENDING)
    response_code = Column(String, nullable=True)
    response_message = Column(String, nullable=True)
    gateway_reference = Column("retrival_ref", String, nullable=True)
    raw_callback_payload = Column("raw", JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)


class Profile(Base):
    """Entitlement portion of a user's profile."""

    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=True)
    plan_id = Column(String, nullable=True)
    plan_status = Column(String, nullable=False, default=PLAN_STATUS_NONE)
    plan_started_at = Column(DateTime, nullable=True)
    plan_expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
