"""
JazzCash callback reconciliation.

Orchestrates:
1. Verify pp_SecureHash over the normalized payload
2. Decide the outcome: success only for a valid signature and code "000"
3. Move the transaction from pending to the outcome (status-guarded).
   An unverified callback is only kept for audit; the transaction stays
   pending so the genuine callback can still finalize it
4. Activate the user's plan if, and only if, step 3 happened and succeeded
5. Report what was done so the router can redirect the browser

A duplicate delivery for an already-terminal reference changes nothing
but still yields a result, so the processor always gets its redirect.
"""
import logging
from datetime import datetime
from typing import Dict, Optional
from urllib.parse import quote

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import models
from app.config import GatewaySettings
from app.errors import PersistenceError, SignatureMismatch
from app.processors.jazzcash import (
    PLAN_FIELD,
    RESPONSE_CODE_FIELD,
    RESPONSE_MESSAGE_FIELD,
    RETRIEVAL_REF_FIELD,
    TXN_REF_FIELD,
    USER_ID_FIELD,
    JazzCashProcessor,
)
from app.services import store

logger = logging.getLogger(__name__)


class CallbackResult:
    def __init__(
        self,
        outcome: str,
        reference: str,
        signature_valid: bool,
        finalized: bool = False,
        entitlement_applied: bool = False,
        persisted: bool = True,
    ):
        self.outcome = outcome
        self.reference = reference
        self.signature_valid = signature_valid
        self.finalized = finalized
        self.entitlement_applied = entitlement_applied
        self.persisted = persisted


def _passthrough_plan(value: str) -> str:
    return models.PLAN_PREMIUM if value == models.PLAN_PREMIUM else models.PLAN_BASIC


def build_redirect_url(result: CallbackResult, settings: GatewaySettings) -> str:
    """Return the browser destination for a callback outcome."""
    target = settings.success_redirect if result.outcome == models.STATUS_SUCCESS else settings.fail_redirect
    separator = "&" if "?" in target else "?"
    return f"{target}{separator}payment={result.outcome}&ref={quote(result.reference, safe='')}"


def verify_signature(processor: JazzCashProcessor, payload: Dict[str, str]) -> None:
    """
    Raises:
        SignatureMismatch: pp_SecureHash missing or not matching the payload
    """
    if not processor.verify_callback(payload):
        raise SignatureMismatch(
            f"pp_SecureHash mismatch for reference {payload.get(TXN_REF_FIELD) or '<none>'}"
        )


def _record_unverified(
    payload: Dict[str, str],
    result: CallbackResult,
    db: Session,
    now: datetime,
) -> CallbackResult:
    try:
        annotated = store.record_unverified_callback(
            db,
            reference=result.reference,
            response_code=payload.get(RESPONSE_CODE_FIELD),
            response_message=payload.get(RESPONSE_MESSAGE_FIELD),
            raw_payload=payload,
            now=now,
        )
        db.commit()
    except (SQLAlchemyError, PersistenceError):
        db.rollback()
        logger.exception("Could not record unverified callback for %s", result.reference)
        result.persisted = False
        return result

    if annotated:
        logger.info("Unverified callback kept on %s; transaction left pending", result.reference)
    return result


async def reconcile_callback(
    payload: Dict[str, str],
    settings: GatewaySettings,
    db: Session,
    now: Optional[datetime] = None,
) -> CallbackResult:
    """
    Verify a normalized callback payload and finalize its transaction.

    Never raises for bad signatures or store failures: both are logged and
    reflected in the returned CallbackResult.
    """
    processor = JazzCashProcessor(settings)
    reference = payload.get(TXN_REF_FIELD, "")

    try:
        verify_signature(processor, payload)
        signature_valid = True
    except SignatureMismatch as e:
        logger.warning("Rejecting callback as failed: %s", e)
        signature_valid = False

    approved = signature_valid and processor.is_approved(payload)
    outcome = models.STATUS_SUCCESS if approved else models.STATUS_FAILED
    result = CallbackResult(outcome=outcome, reference=reference, signature_valid=signature_valid)

    if not reference:
        logger.warning(
            "Callback without %s: outcome=%s signature_valid=%s, nothing to finalize",
            TXN_REF_FIELD, outcome, signature_valid,
        )
        return result

    now = now or models.utcnow()
    if not signature_valid:
        return _record_unverified(payload, result, db, now)

    try:
        result.finalized = store.finalize_transaction(
            db,
            reference=reference,
            status=outcome,
            response_code=payload.get(RESPONSE_CODE_FIELD),
            response_message=payload.get(RESPONSE_MESSAGE_FIELD),
            gateway_reference=payload.get(RETRIEVAL_REF_FIELD),
            raw_payload=payload,
            now=now,
        )

        user_id = payload.get(USER_ID_FIELD, "")
        if result.finalized and outcome == models.STATUS_SUCCESS and user_id:
            store.activate_entitlement(
                db,
                user_id=user_id,
                plan_id=_passthrough_plan(payload.get(PLAN_FIELD, "")),
                now=now,
            )
            result.entitlement_applied = True

        existing_status = None
        if not result.finalized:
            existing = store.get_transaction(db, reference)
            existing_status = existing.status if existing is not None else None

        db.commit()
    except (SQLAlchemyError, PersistenceError):
        db.rollback()
        logger.exception(
            "Could not persist callback for %s (outcome=%s); needs manual reconciliation",
            reference, outcome,
        )
        result.finalized = False
        result.entitlement_applied = False
        result.persisted = False
        return result

    if result.finalized:
        logger.info(
            "Finalized %s as %s (response code %s)",
            reference, outcome, payload.get(RESPONSE_CODE_FIELD) or "-",
        )
        if result.entitlement_applied:
            logger.info("Activated %s plan for user %s", payload.get(PLAN_FIELD), payload.get(USER_ID_FIELD))
    elif existing_status is None:
        logger.warning("Callback for unknown reference %s (outcome=%s)", reference, outcome)
    else:
        logger.info("Duplicate callback for %s ignored; already %s", reference, existing_status)
    return result
