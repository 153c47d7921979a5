"""
Transaction and entitlement persistence.

The pending -> terminal transition is a single status-guarded UPDATE, so
duplicate or concurrent callbacks for the same reference cannot both see
"pending". Callers commit the transition and the entitlement write
together.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app import models
from app.errors import PersistenceError

logger = logging.getLogger(__name__)

SUBSCRIPTION_PERIOD = timedelta(days=30)


class DuplicateReference(PersistenceError):
    """A transaction with this reference already exists."""


def create_pending_transaction(
    db: Session,
    reference: str,
    user_id: str,
    plan_id: str,
    amount: int,
    amount_pkr: int,
    currency: str = "PKR",
    gateway: str = "jazzcash",
) -> models.Transaction:
    """
    Insert a pending transaction and commit it.

    Raises:
        DuplicateReference: the reference collides with an existing row
        PersistenceError: any other store failure
    """
    now = models.utcnow()
    txn = models.Transaction(
        reference=reference,
        user_id=user_id,
        plan_id=plan_id,
        amount=amount,
        amount_pkr=amount_pkr,
        currency=currency,
        gateway=gateway,
        status=models.STATUS_PENDING,
        created_at=now,
        updated_at=now,
    )
    try:
        db.add(txn)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateReference(f"Transaction reference {reference} already exists") from e
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Could not store transaction {reference}") from e
    db.refresh(txn)
    return txn


def get_transaction(db: Session, reference: str) -> Optional[models.Transaction]:
    return db.query(models.Transaction).filter(
        models.Transaction.reference == reference
    ).first()


def finalize_transaction(
    db: Session,
    reference: str,
    status: str,
    response_code: Optional[str],
    response_message: Optional[str],
    gateway_reference: Optional[str],
    raw_payload: Dict[str, Any],
    now: Optional[datetime] = None,
) -> bool:
    """
    Move a pending transaction to a terminal status. Does not commit.

    Returns True only if this call performed the transition; False when the
    reference is unknown or the transaction was already terminal.
    """
    if status not in models.TERMINAL_STATUSES:
        raise ValueError(f"Not a terminal status: {status}")

    updated = db.query(models.Transaction).filter(
        models.Transaction.reference == reference,
        models.Transaction.status == models.STATUS_PENDING,
    ).update(
        {
            models.Transaction.status: status,
            models.Transaction.response_code: response_code or None,
            models.Transaction.response_message: response_message or None,
            models.Transaction.gateway_reference: gateway_reference or None,
            models.Transaction.raw_callback_payload: dict(raw_payload),
            models.Transaction.updated_at: now or models.utcnow(),
        },
        synchronize_session=False,
    )
    return updated == 1


def record_unverified_callback(
    db: Session,
    reference: str,
    response_code: Optional[str],
    response_message: Optional[str],
    raw_payload: Dict[str, Any],
    now: Optional[datetime] = None,
) -> bool:
    """
    Attach a callback that failed signature verification to a pending
    transaction for audit. The status stays pending. Does not commit.

    Returns True if a pending transaction was annotated.
    """
    updated = db.query(models.Transaction).filter(
        models.Transaction.reference == reference,
        models.Transaction.status == models.STATUS_PENDING,
    ).update(
        {
            models.Transaction.response_code: response_code or None,
            models.Transaction.response_message: response_message or None,
            models.Transaction.raw_callback_payload: dict(raw_payload),
            models.Transaction.updated_at: now or models.utcnow(),
        },
        synchronize_session=False,
    )
    return updated == 1


def get_profile(db: Session, user_id: str) -> Optional[models.Profile]:
    return db.query(models.Profile).filter(models.Profile.id == user_id).first()


def activate_entitlement(
    db: Session,
    user_id: str,
    plan_id: str,
    now: Optional[datetime] = None,
    period: timedelta = SUBSCRIPTION_PERIOD,
) -> models.Profile:
    """Set the user's plan active for one period from now. Does not commit."""
    now = now or models.utcnow()
    profile = get_profile(db, user_id)
    if profile is None:
        logger.info("Creating profile row for user %s on plan activation", user_id)
        profile = models.Profile(id=user_id, created_at=now)
        db.add(profile)

    profile.plan_id = plan_id
    profile.plan_status = models.PLAN_STATUS_ACTIVE
    profile.plan_started_at = now
    profile.plan_expires_at = now + period
    profile.updated_at = now
    return profile


def effective_plan_status(profile: Optional[models.Profile], now: Optional[datetime] = None) -> str:
    """Plan status as the user should see it; an active plan past its expiry reads as expired."""
    if profile is None:
        return models.PLAN_STATUS_NONE
    now = now or models.utcnow()
    if (
        profile.plan_status == models.PLAN_STATUS_ACTIVE
        and profile.plan_expires_at is not None
        and profile.plan_expires_at <= now
    ):
        return models.PLAN_STATUS_EXPIRED
    return profile.plan_status or models.PLAN_STATUS_NONE
