from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth import Identity, get_current_identity
from app.database import get_db
from app.schemas.responses import EntitlementResponse
from app.services import store

router = APIRouter()


@router.get("/me", response_model=EntitlementResponse)
def read_entitlement(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """The caller's current plan. Users who never paid report planStatus "none"."""
    profile = store.get_profile(db, identity.user_id)
    return EntitlementResponse(
        userId=identity.user_id,
        email=(profile.email if profile is not None and profile.email else identity.email),
        planId=profile.plan_id if profile is not None else None,
        planStatus=store.effective_plan_status(profile),
        planStartedAt=profile.plan_started_at if profile is not None else None,
        planExpiresAt=profile.plan_expires_at if profile is not None else None,
    )
