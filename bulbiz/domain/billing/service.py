"""
Billing service - Stripe checkout, customer portal and subscription webhooks

The Stripe client is created lazily on first use; without STRIPE_SECRET_KEY
every entry point answers 503.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import stripe
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import (
    FRONTEND_URL,
    STRIPE_PRICE_ID_ENTERPRISE,
    STRIPE_PRICE_ID_PRO,
    STRIPE_SECRET_KEY,
    STRIPE_TRIAL_DAYS,
    STRIPE_WEBHOOK_SECRET,
)
from ...loaders import LazyResource
from ...models import Referral, Subscription, User, utcnow

logger = logging.getLogger(__name__)

BILLING_UNAVAILABLE = "Billing service temporarily unavailable"


def _create_stripe_client() -> Optional[stripe.StripeClient]:
    if not STRIPE_SECRET_KEY:
        return None
    return stripe.StripeClient(STRIPE_SECRET_KEY)


stripe_loader: LazyResource[stripe.StripeClient] = LazyResource("Stripe", _create_stripe_client)


def get_stripe_client() -> stripe.StripeClient:
    client = stripe_loader.get()
    if client is None:
        raise HTTPException(status_code=503, detail=BILLING_UNAVAILABLE)
    return client


def _ts(value: Optional[int]) -> Optional[datetime]:
    """Stripe epoch seconds -> naive UTC datetime (the columns are naive)"""
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)


def _first_item(sub: dict) -> dict:
    items = (sub.get("items") or {}).get("data") or []
    return items[0] if items else {}


def plan_for_subscription(sub: dict) -> str:
    """Plan by price id: Pro price -> pro, Enterprise price -> enterprise, else free"""
    price_id = (_first_item(sub).get("price") or {}).get("id")
    if price_id and price_id == STRIPE_PRICE_ID_ENTERPRISE:
        return "enterprise"
    if price_id and price_id == STRIPE_PRICE_ID_PRO:
        return "pro"
    return "free"


def _period(sub: dict, key: str) -> Optional[datetime]:
    # Newer API versions carry the billing period on the subscription item
    return _ts(sub.get(key) or _first_item(sub).get(key))


class BillingService:
    """Checkout/portal sessions and webhook event dispatch"""

    def __init__(self, db: Session):
        self.db = db

    # ============================================================================
    # SESSIONS
    # ============================================================================

    def _ensure_customer(self, client: stripe.StripeClient, user: User) -> str:
        if user.stripe_customer_id:
            return user.stripe_customer_id
        name = " ".join(part for part in (user.first_name, user.last_name) if part) or None
        customer = client.customers.create(
            params={
                "email": user.email,
                "name": name,
                "metadata": {"supabase_user_id": user.id, "company": user.company_name or ""},
            }
        )
        user.stripe_customer_id = customer.id
        self.db.commit()
        logger.info(f"💳 Stripe customer {customer.id} created for user {user.id}")
        return customer.id

    def create_checkout_session(self, user: User, referral_code: Optional[str] = None) -> dict:
        client = get_stripe_client()
        if not STRIPE_PRICE_ID_PRO:
            logger.error("❌ STRIPE_PRICE_ID_PRO not configured")
            raise HTTPException(status_code=503, detail=BILLING_UNAVAILABLE)

        try:
            customer_id = self._ensure_customer(client, user)
            session = client.checkout.sessions.create(
                params={
                    "customer": customer_id,
                    "mode": "subscription",
                    "line_items": [{"price": STRIPE_PRICE_ID_PRO, "quantity": 1}],
                    "subscription_data": {
                        "trial_period_days": STRIPE_TRIAL_DAYS,
                        "metadata": {"supabase_user_id": user.id},
                    },
                    "success_url": f"{FRONTEND_URL}/settings?payment=success",
                    "cancel_url": f"{FRONTEND_URL}/pricing?payment=canceled",
                    "allow_promotion_codes": True,
                    "metadata": {"supabase_user_id": user.id, "referral_code": referral_code or ""},
                }
            )
        except stripe.StripeError as e:
            logger.error(f"❌ Checkout session failed for user {user.id}: {e}")
            raise HTTPException(status_code=502, detail="Impossible de créer la session de paiement") from e

        logger.info(f"💳 Checkout session {session.id} created for user {user.id}")
        return {"url": session.url}

    def create_portal_session(self, user: User) -> dict:
        client = get_stripe_client()
        if not user.stripe_customer_id:
            raise HTTPException(status_code=400, detail="Aucun abonnement Stripe pour ce compte")
        try:
            session = client.billing_portal.sessions.create(
                params={"customer": user.stripe_customer_id, "return_url": f"{FRONTEND_URL}/settings"}
            )
        except stripe.StripeError as e:
            logger.error(f"❌ Portal session failed for user {user.id}: {e}")
            raise HTTPException(status_code=502, detail="Impossible d'ouvrir le portail de facturation") from e
        return {"url": session.url}

    @staticmethod
    def get_subscription(user: User) -> dict:
        return {
            "plan": user.subscription_plan or "free",
            "status": user.subscription_status,
            "current_period_end": user.current_period_end,
            "trial_ends_at": user.trial_ends_at,
            "referral_code": user.referral_code,
            "referral_credits_months": user.referral_credits_months or 0,
            "has_customer": bool(user.stripe_customer_id),
        }

    # ============================================================================
    # WEBHOOK
    # ============================================================================

    @staticmethod
    def verify_event(payload: bytes, signature: Optional[str]) -> None:
        """Raises 400 when the stripe-signature header does not match"""
        get_stripe_client()
        if not STRIPE_WEBHOOK_SECRET:
            logger.error("❌ STRIPE_WEBHOOK_SECRET not configured")
            raise HTTPException(status_code=503, detail=BILLING_UNAVAILABLE)
        if not signature:
            raise HTTPException(status_code=400, detail="Missing stripe-signature header")
        try:
            stripe.Webhook.construct_event(payload, signature, STRIPE_WEBHOOK_SECRET)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"⚠️ Stripe webhook signature verification failed: {e}")
            raise HTTPException(status_code=400, detail="Invalid signature") from e

    def _user_for_subscription(self, sub: dict) -> Optional[User]:
        user_id = (sub.get("metadata") or {}).get("supabase_user_id")
        if user_id:
            return self.db.query(User).filter(User.id == user_id).first()
        customer_id = sub.get("customer")
        if customer_id:
            return self.db.query(User).filter(User.stripe_customer_id == customer_id).first()
        return None

    def handle_event(self, event: dict) -> dict:
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}
        logger.info(f"💳 Stripe event received: {event_type}")

        if event_type in ("customer.subscription.created", "customer.subscription.updated"):
            self._subscription_changed(obj)
        elif event_type == "customer.subscription.deleted":
            self._subscription_deleted(obj)
        elif event_type == "invoice.payment_failed":
            self._payment_failed(obj)
        elif event_type == "invoice.payment_succeeded":
            logger.info(f"✅ Payment succeeded for Stripe invoice {obj.get('id')}")
        else:
            logger.info(f"ℹ️ Unhandled Stripe event type: {event_type}")
        return {"received": True}

    def _subscription_changed(self, sub: dict) -> None:
        user = self._user_for_subscription(sub)
        if not user:
            logger.warning(f"⚠️ No user for Stripe subscription {sub.get('id')}")
            return

        plan = plan_for_subscription(sub)
        status = sub.get("status")
        record = (
            self.db.query(Subscription)
            .filter(Subscription.stripe_subscription_id == sub.get("id"))
            .first()
        )
        if not record:
            record = Subscription(user_id=user.id, stripe_subscription_id=sub.get("id"))
            self.db.add(record)
        record.stripe_customer_id = sub.get("customer")
        record.plan = plan
        record.status = status
        record.current_period_start = _period(sub, "current_period_start")
        record.current_period_end = _period(sub, "current_period_end")
        record.cancel_at_period_end = bool(sub.get("cancel_at_period_end"))
        record.canceled_at = _ts(sub.get("canceled_at"))

        user.subscription_plan = plan
        user.subscription_status = status
        user.current_period_end = record.current_period_end
        user.trial_ends_at = _ts(sub.get("trial_end"))
        if not user.stripe_customer_id:
            user.stripe_customer_id = sub.get("customer")

        if status in ("active", "trialing"):
            self._reward_referrer(user)
        self.db.commit()
        logger.info(f"✅ Subscription {sub.get('id')} synced for user {user.id}: {plan}/{status}")

    def _reward_referrer(self, user: User) -> None:
        referral = (
            self.db.query(Referral)
            .filter(Referral.referred_id == user.id, Referral.status == "converted")
            .first()
        )
        if not referral:
            return
        referrer = self.db.query(User).filter(User.id == referral.referrer_id).first()
        if referrer:
            referrer.referral_credits_months = (referrer.referral_credits_months or 0) + 1
        referral.status = "rewarded"
        referral.reward_given_at = utcnow()
        logger.info(f"🎁 Referrer {referral.referrer_id} rewarded with 1 month credit")

    def _subscription_deleted(self, sub: dict) -> None:
        user = self._user_for_subscription(sub)
        if not user:
            return
        user.subscription_plan = "free"
        user.subscription_status = "canceled"
        user.current_period_end = _period(sub, "current_period_end")

        record = (
            self.db.query(Subscription)
            .filter(Subscription.stripe_subscription_id == sub.get("id"))
            .first()
        )
        if record:
            record.status = "canceled"
            record.canceled_at = utcnow()
        self.db.commit()
        logger.info(f"🔄 Subscription {sub.get('id')} canceled for user {user.id}")

    def _payment_failed(self, invoice: dict) -> None:
        subscription_id = invoice.get("subscription") or (
            ((invoice.get("parent") or {}).get("subscription_details") or {}).get("subscription")
        )
        if not subscription_id:
            return
        record = (
            self.db.query(Subscription)
            .filter(Subscription.stripe_subscription_id == subscription_id)
            .first()
        )
        if not record:
            return
        user = self.db.query(User).filter(User.id == record.user_id).first()
        if user:
            user.subscription_status = "past_due"
            self.db.commit()
            logger.warning(f"⚠️ Payment failed for user {user.id}, subscription past_due")
