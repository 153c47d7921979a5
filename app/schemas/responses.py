from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict
from datetime import datetime


class InitiatePaymentResponse(BaseModel):
    action_url: str = Field(..., alias="actionUrl")
    fields: Dict[str, str]

    model_config = ConfigDict(populate_by_name=True)


class TransactionResponse(BaseModel):
    reference: str
    plan_id: str
    amount: int
    currency: str
    status: str
    response_code: Optional[str]
    response_message: Optional[str]
    gateway_reference: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EntitlementResponse(BaseModel):
    user_id: str = Field(..., alias="userId")
    email: Optional[str] = None
    plan_id: Optional[str] = Field(None, alias="planId")
    plan_status: str = Field(..., alias="planStatus")
    plan_started_at: Optional[datetime] = Field(None, alias="planStartedAt")
    plan_expires_at: Optional[datetime] = Field(None, alias="planExpiresAt")

    model_config = ConfigDict(populate_by_name=True)


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None
