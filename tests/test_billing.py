"""Stripe checkout, portal and webhook handling"""

import hashlib
import hmac
import json
import time
from types import SimpleNamespace

import pytest

from bulbiz.domain.billing import service as billing_service
from bulbiz.domain.billing.service import BillingService, plan_for_subscription
from bulbiz.models import Referral, Subscription, User

WEBHOOK_SECRET = "whsec_test_secret"


def _subscription(user_id=None, status="trialing", price="price_pro", customer="cus_123", **extra):
    sub = {
        "id": "sub_123",
        "customer": customer,
        "status": status,
        "metadata": {"supabase_user_id": user_id} if user_id else {},
        "items": {"data": [{"price": {"id": price}, "current_period_end": 1775000000}]},
        "trial_end": 1774000000,
        "cancel_at_period_end": False,
    }
    sub.update(extra)
    return sub


def _event(event_type, obj):
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}


def _sign(payload: str, secret: str = WEBHOOK_SECRET) -> str:
    timestamp = int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def prices(monkeypatch):
    monkeypatch.setattr(billing_service, "STRIPE_PRICE_ID_PRO", "price_pro")
    monkeypatch.setattr(billing_service, "STRIPE_PRICE_ID_ENTERPRISE", "price_ent")


class FakeStripe:
    """Records the params sent to the Stripe API"""

    def __init__(self):
        self.calls = {}
        self.customers = SimpleNamespace(create=self._recorder("customer", id="cus_new"))
        self.checkout = SimpleNamespace(
            sessions=SimpleNamespace(create=self._recorder("checkout", id="cs_1", url="https://checkout.stripe.test/cs_1"))
        )
        self.billing_portal = SimpleNamespace(
            sessions=SimpleNamespace(create=self._recorder("portal", id="bps_1", url="https://billing.stripe.test/p"))
        )

    def _recorder(self, name, **result):
        def create(params):
            self.calls[name] = params
            return SimpleNamespace(**result)

        return create


@pytest.fixture
def fake_stripe(monkeypatch, prices):
    fake = FakeStripe()
    monkeypatch.setattr(billing_service, "get_stripe_client", lambda: fake)
    monkeypatch.setattr(billing_service, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    return fake


class TestPlanMapping:
    def test_by_price_id(self, prices):
        assert plan_for_subscription(_subscription(price="price_pro")) == "pro"
        assert plan_for_subscription(_subscription(price="price_ent")) == "enterprise"
        assert plan_for_subscription(_subscription(price="price_other")) == "free"
        assert plan_for_subscription({}) == "free"


class TestNotConfigured:
    def test_checkout_unavailable(self, client):
        response = client.post("/billing/checkout")
        assert response.status_code == 503
        assert response.json()["detail"] == "Billing service temporarily unavailable"

    def test_webhook_unavailable(self, public_client):
        assert public_client.post("/billing/webhook", content=b"{}").status_code == 503

    def test_subscription_readable(self, client):
        data = client.get("/billing/subscription").json()
        assert data["plan"] == "free"
        assert data["has_customer"] is False


class TestSessions:
    def test_checkout_creates_customer(self, client, db, user, fake_stripe):
        response = client.post("/billing/checkout", json={"referral_code": "PAUL2026"})

        assert response.status_code == 200
        assert response.json() == {"url": "https://checkout.stripe.test/cs_1"}
        params = fake_stripe.calls["checkout"]
        assert params["customer"] == "cus_new"
        assert params["mode"] == "subscription"
        assert params["line_items"] == [{"price": "price_pro", "quantity": 1}]
        assert params["subscription_data"]["trial_period_days"] == 14
        assert params["subscription_data"]["metadata"] == {"supabase_user_id": user.id}
        assert params["success_url"].endswith("/settings?payment=success")
        assert params["allow_promotion_codes"] is True
        assert params["metadata"]["referral_code"] == "PAUL2026"
        db.refresh(user)
        assert user.stripe_customer_id == "cus_new"

    def test_existing_customer_reused(self, client, db, user, fake_stripe):
        user.stripe_customer_id = "cus_existing"
        db.commit()
        client.post("/billing/checkout")
        assert "customer" not in fake_stripe.calls
        assert fake_stripe.calls["checkout"]["customer"] == "cus_existing"

    def test_portal_requires_customer(self, client, fake_stripe):
        assert client.post("/billing/portal").status_code == 400

    def test_portal(self, client, db, user, fake_stripe):
        user.stripe_customer_id = "cus_existing"
        db.commit()
        assert client.post("/billing/portal").json()["url"] == "https://billing.stripe.test/p"


class TestWebhookEvents:
    def test_subscription_created(self, db, user, prices):
        BillingService(db).handle_event(_event("customer.subscription.created", _subscription(user.id)))

        db.refresh(user)
        assert user.subscription_plan == "pro"
        assert user.subscription_status == "trialing"
        assert user.stripe_customer_id == "cus_123"
        assert user.trial_ends_at is not None
        assert user.current_period_end is not None
        record = db.query(Subscription).filter(Subscription.stripe_subscription_id == "sub_123").one()
        assert (record.plan, record.status) == ("pro", "trialing")

    def test_update_upserts(self, db, user, prices):
        service = BillingService(db)
        service.handle_event(_event("customer.subscription.created", _subscription(user.id)))
        service.handle_event(_event("customer.subscription.updated", _subscription(user.id, status="active")))

        assert db.query(Subscription).count() == 1
        db.refresh(user)
        assert user.subscription_status == "active"

    def test_user_found_by_customer(self, db, user, prices):
        user.stripe_customer_id = "cus_123"
        db.commit()
        BillingService(db).handle_event(_event("customer.subscription.updated", _subscription(status="active")))
        db.refresh(user)
        assert user.subscription_plan == "pro"

    def test_unknown_user_is_ignored(self, db, prices):
        result = BillingService(db).handle_event(_event("customer.subscription.updated", _subscription("nobody")))
        assert result == {"received": True}
        assert db.query(Subscription).count() == 0

    def test_referrer_rewarded_once(self, db, user, prices):
        referrer = User(auth_uid="auth-referrer", email="parrain@example.com", referral_credits_months=0)
        db.add(referrer)
        db.commit()
        db.add(Referral(referrer_id=referrer.id, referred_id=user.id, status="converted"))
        db.commit()

        service = BillingService(db)
        service.handle_event(_event("customer.subscription.created", _subscription(user.id)))
        service.handle_event(_event("customer.subscription.updated", _subscription(user.id, status="active")))

        db.refresh(referrer)
        assert referrer.referral_credits_months == 1
        referral = db.query(Referral).one()
        assert referral.status == "rewarded"
        assert referral.reward_given_at is not None

    def test_deleted_downgrades(self, db, user, prices):
        service = BillingService(db)
        service.handle_event(_event("customer.subscription.created", _subscription(user.id, status="active")))
        service.handle_event(_event("customer.subscription.deleted", _subscription(user.id, status="canceled")))

        db.refresh(user)
        assert (user.subscription_plan, user.subscription_status) == ("free", "canceled")
        assert db.query(Subscription).one().status == "canceled"

    def test_payment_failed(self, db, user, prices):
        service = BillingService(db)
        service.handle_event(_event("customer.subscription.created", _subscription(user.id, status="active")))
        service.handle_event(_event("invoice.payment_failed", {"id": "in_1", "subscription": "sub_123"}))

        db.refresh(user)
        assert user.subscription_status == "past_due"

    def test_payment_failed_new_invoice_shape(self, db, user, prices):
        service = BillingService(db)
        service.handle_event(_event("customer.subscription.created", _subscription(user.id, status="active")))
        invoice = {"id": "in_2", "parent": {"subscription_details": {"subscription": "sub_123"}}}
        service.handle_event(_event("invoice.payment_failed", invoice))

        db.refresh(user)
        assert user.subscription_status == "past_due"


class TestWebhookEndpoint:
    def test_signed_event_is_processed(self, public_client, db, user, fake_stripe):
        payload = json.dumps(_event("customer.subscription.created", _subscription(user.id, status="active")))

        response = public_client.post(
            "/billing/webhook",
            content=payload,
            headers={"stripe-signature": _sign(payload), "content-type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json() == {"received": True}
        db.refresh(user)
        assert user.subscription_status == "active"

    def test_missing_signature(self, public_client, fake_stripe):
        assert public_client.post("/billing/webhook", content=b"{}").status_code == 400

    def test_bad_signature(self, public_client, db, user, fake_stripe):
        payload = json.dumps(_event("customer.subscription.deleted", _subscription(user.id)))

        response = public_client.post(
            "/billing/webhook", content=payload, headers={"stripe-signature": _sign(payload, "whsec_other")}
        )

        assert response.status_code == 400
        db.refresh(user)
        assert user.subscription_plan == "free"
