"""Billing router - Stripe subscription endpoints"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import CheckoutRequest, SessionResponse, SubscriptionResponse
from .service import BillingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


def get_billing_service(db: Session = Depends(get_db)) -> BillingService:
    """Dependency injection for BillingService"""
    return BillingService(db)


@router.post("/checkout", response_model=SessionResponse)
async def create_checkout_session(
    body: Optional[CheckoutRequest] = None,
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    """Subscription Checkout Session for the Pro plan (trial + promotion codes)"""
    return service.create_checkout_session(current_user, body.referral_code if body else None)


@router.post("/portal", response_model=SessionResponse)
async def create_portal_session(
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    return service.create_portal_session(current_user)


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_subscription(current_user: User = Depends(get_current_user)):
    return BillingService.get_subscription(current_user)


@router.post("/webhook")
async def stripe_webhook(request: Request, service: BillingService = Depends(get_billing_service)):
    """Stripe events; the raw body is needed for signature verification"""
    payload = await request.body()
    service.verify_event(payload, request.headers.get("stripe-signature"))

    try:
        event = json.loads(payload)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail="Invalid payload") from e

    try:
        return service.handle_event(event)
    except Exception as e:
        logger.error(f"❌ Error processing Stripe webhook {event.get('type')}: {e}")
        raise HTTPException(status_code=500, detail="Webhook processing error") from e
