"""Billing schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CheckoutRequest(BaseModel):
    referral_code: Optional[str] = Field(None, max_length=50)


class SessionResponse(BaseModel):
    url: str


class SubscriptionResponse(BaseModel):
    plan: str
    status: Optional[str] = None
    current_period_end: Optional[datetime] = None
    trial_ends_at: Optional[datetime] = None
    referral_code: Optional[str] = None
    referral_credits_months: int = 0
    has_customer: bool = False
