from pydantic import BaseModel, Field, field_validator
from typing import Optional


class InitiatePaymentRequest(BaseModel):
    plan_id: Optional[str] = Field("premium", alias="planId", validate_default=True)

    @field_validator("plan_id", mode="before")
    @classmethod
    def coerce_plan_id(cls, v):
        if v is None:
            return "premium"
        return str(v).strip()
