from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from app.auth import Identity, get_current_identity
from app.config import GatewaySettings, get_gateway_settings
from app.database import get_db
from app.schemas.requests import InitiatePaymentRequest
from app.schemas.responses import ErrorResponse, InitiatePaymentResponse, TransactionResponse
from app.services import store
from app.services.initiator import initiate_payment
from app.services.payload import read_callback_payload
from app.services.reconciler import build_redirect_url, reconcile_callback

router = APIRouter()


@router.post(
    "/jazzcash/initiate",
    response_model=InitiatePaymentResponse,
    responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def initiate(
    body: Optional[InitiatePaymentRequest] = None,
    identity: Identity = Depends(get_current_identity),
    settings: GatewaySettings = Depends(get_gateway_settings),
    db: Session = Depends(get_db),
):
    """
    Start a JazzCash hosted checkout for the caller.

    - Resolves the plan (basic / premium; anything else is basic)
    - Stores a pending transaction under a fresh reference
    - Returns the form endpoint and the signed fields, including pp_SecureHash,
      for the browser to POST
    """
    plan_id = body.plan_id if body is not None else "premium"
    result = await initiate_payment(identity, plan_id, settings, db)
    return InitiatePaymentResponse(actionUrl=result.action_url, fields=result.fields)


@router.post(
    "/jazzcash/callback",
    response_class=RedirectResponse,
    status_code=302,
    responses={500: {"model": ErrorResponse}},
)
async def callback(
    request: Request,
    settings: GatewaySettings = Depends(get_gateway_settings),
    db: Session = Depends(get_db),
):
    """
    JazzCash return/callback endpoint. No caller authentication; trust comes
    from pp_SecureHash alone.

    Accepts URL-encoded, multipart, JSON or raw bodies and always answers
    with a 302 to the success or fail destination carrying
    `payment` and `ref` query parameters.
    """
    payload = await read_callback_payload(request)
    result = await reconcile_callback(payload, settings, db)
    return RedirectResponse(build_redirect_url(result, settings), status_code=302)


@router.get("/{reference}", response_model=TransactionResponse)
def get_payment(
    reference: str,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Status of one of the caller's own transactions."""
    txn = store.get_transaction(db, reference)
    if txn is None or txn.user_id != identity.user_id:
        raise HTTPException(status_code=404, detail=f"Transaction {reference} not found")
    return txn
