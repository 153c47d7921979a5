"""
Payment initiation service.

Orchestrates:
1. Resolve the requested plan to its price
2. Generate transaction timestamps and a unique reference
3. Build the JazzCash merchant-form fields and sign them
4. Persist a pending transaction keyed by the reference
5. Return the form endpoint and the signed fields for the browser to POST
"""
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

from sqlalchemy.orm import Session

from app import models
from app.auth import Identity
from app.config import GatewaySettings
from app.errors import AuthenticationError, PersistenceError
from app.processors.jazzcash import CURRENCY, MAX_REFERENCE_LENGTH, JazzCashProcessor
from app.services import store

logger = logging.getLogger(__name__)

PLAN_PRICES_PKR = {
    models.PLAN_BASIC: 1000,
    models.PLAN_PREMIUM: 1600,
}

# JazzCash expects merchant-local timestamps; PKT has no DST
PKT = timezone(timedelta(hours=5), "PKT")
TXN_EXPIRY = timedelta(hours=1)
REFERENCE_ATTEMPTS = 3


class InitiationResult:
    def __init__(self, action_url: str, fields: Dict[str, str], reference: str):
        self.action_url = action_url
        self.fields = fields
        self.reference = reference


def resolve_plan(plan_id: Optional[str]) -> Tuple[str, int]:
    """Map a requested plan id to (plan_id, price in PKR). Unknown ids fall back to basic."""
    if plan_id == models.PLAN_PREMIUM:
        return models.PLAN_PREMIUM, PLAN_PRICES_PKR[models.PLAN_PREMIUM]
    return models.PLAN_BASIC, PLAN_PRICES_PKR[models.PLAN_BASIC]


def format_txn_datetime(moment: datetime) -> str:
    return moment.astimezone(PKT).strftime("%Y%m%d%H%M%S")


def generate_reference(txn_datetime: str) -> str:
    suffix = f"{random.randint(0, 999):03d}"
    return f"T{txn_datetime}{suffix}"[:MAX_REFERENCE_LENGTH]


async def initiate_payment(
    identity: Optional[Identity],
    plan_id: Optional[str],
    settings: GatewaySettings,
    db: Session,
    now: Optional[datetime] = None,
) -> InitiationResult:
    """
    Create a pending transaction and the signed JazzCash form fields for it.

    Raises:
        AuthenticationError: no authenticated identity
        PersistenceError: the pending transaction could not be stored
    """
    if identity is None:
        raise AuthenticationError("Unauthorized")

    processor = JazzCashProcessor(settings)
    resolved_plan, amount_pkr = resolve_plan(plan_id)
    amount = amount_pkr * 100

    now = now or datetime.now(timezone.utc)
    txn_datetime = format_txn_datetime(now)
    expiry_datetime = format_txn_datetime(now + TXN_EXPIRY)

    last_error = None
    for attempt in range(1, REFERENCE_ATTEMPTS + 1):
        reference = generate_reference(txn_datetime)
        fields = processor.sign(processor.build_checkout_fields(
            reference=reference,
            txn_datetime=txn_datetime,
            expiry_datetime=expiry_datetime,
            amount=amount,
            plan_id=resolved_plan,
            user_id=identity.user_id,
            email=identity.email,
        ))
        try:
            store.create_pending_transaction(
                db,
                reference=reference,
                user_id=identity.user_id,
                plan_id=resolved_plan,
                amount=amount,
                amount_pkr=amount_pkr,
                currency=CURRENCY,
                gateway=processor.processor_name,
            )
        except store.DuplicateReference as e:
            logger.warning(
                "Reference collision on %s (attempt %d/%d)",
                reference, attempt, REFERENCE_ATTEMPTS,
            )
            last_error = e
            continue

        logger.info(
            "Initiated %s payment %s for user %s: plan=%s amount=%d",
            processor.processor_name, reference, identity.user_id, resolved_plan, amount,
        )
        return InitiationResult(
            action_url=processor.action_url,
            fields=fields,
            reference=reference,
        )

    raise PersistenceError("Could not allocate a unique transaction reference") from last_error
