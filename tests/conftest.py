import hashlib
import hmac
import json
import os
import sys
import time
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("REVENUECAT_API_KEY", "rc_test_key")
os.environ.setdefault("MONTHLY_PRICE_ID", "price_monthly_123")
os.environ.setdefault("ANNUAL_PRICE_ID", "price_annual_456")
os.environ.setdefault("APP_BUNDLE_ID", "com.sportdoglog.app")
os.environ.setdefault("FRONTEND_URL", "https://app.example.com")

from paybridge.config import Settings  # noqa: E402
from paybridge.core.exceptions import EntitlementSyncError, UpstreamPaymentError  # noqa: E402
from paybridge.schemas.checkout import (  # noqa: E402
    CheckoutSessionCreated,
    CheckoutSessionView,
)
from paybridge.schemas.subscription import SubscriptionView  # noqa: E402

WEBHOOK_SECRET = "whsec_test_secret"


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header for a raw payload."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def make_event(event_type: str, obj: dict, event_id: str = "evt_test_1") -> str:
    return json.dumps({"id": event_id, "type": event_type, "data": {"object": obj}})


def make_subscription(
    subscription_id: str = "sub_123",
    status: str = "active",
    metadata: dict | None = None,
    customer: str = "cus_123",
    unit_amount: int = 999,
    currency: str = "usd",
) -> dict:
    return {
        "id": subscription_id,
        "object": "subscription",
        "status": status,
        "customer": customer,
        "current_period_start": 1700000000,
        "current_period_end": 1702592000,
        "cancel_at_period_end": False,
        "metadata": {"userId": "user_abc", "planType": "monthly"} if metadata is None else metadata,
        "items": {
            "object": "list",
            "data": [{"price": {"id": "price_monthly_123", "unit_amount": unit_amount, "currency": currency}}],
        },
    }


class FakeCheckoutClient:
    """Stands in for StripeCheckoutClient and records every call."""

    def __init__(self, subscriptions: dict | None = None, fail_with: Exception | None = None):
        self.subscriptions = subscriptions or {}
        self.fail_with = fail_with
        self.calls: list[tuple] = []

    async def create_checkout_session(self, price_id, user_id, plan_type, email=None):
        self.calls.append(("create_checkout_session", price_id, user_id, plan_type, email))
        if self.fail_with:
            raise self.fail_with
        return CheckoutSessionCreated(sessionId="cs_test_1", url="https://checkout.stripe.com/c/pay/cs_test_1")

    async def get_checkout_session(self, session_id):
        self.calls.append(("get_checkout_session", session_id))
        if self.fail_with:
            raise self.fail_with
        return CheckoutSessionView(
            sessionId=session_id,
            paymentStatus="paid",
            subscriptionId="sub_123",
            customerId="cus_123",
            metadata={"userId": "user_abc", "planType": "monthly"},
        )

    async def retrieve_subscription(self, subscription_id):
        self.calls.append(("retrieve_subscription", subscription_id))
        if self.fail_with:
            raise self.fail_with
        if subscription_id not in self.subscriptions:
            raise UpstreamPaymentError("No such subscription", status_code=404)
        return self.subscriptions[subscription_id]

    async def get_subscription(self, subscription_id):
        subscription = await self.retrieve_subscription(subscription_id)
        return SubscriptionView(
            subscriptionId=subscription["id"],
            status=subscription["status"],
            currentPeriodStart=subscription["current_period_start"],
            currentPeriodEnd=subscription["current_period_end"],
            cancelAtPeriodEnd=subscription["cancel_at_period_end"],
            metadata=subscription["metadata"],
        )


class RecordingRevenueCat:
    """Stands in for RevenueCatClient; optionally fails every call."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.updates: list[tuple] = []
        self.grants: list[tuple] = []

    @property
    def call_count(self) -> int:
        return len(self.updates) + len(self.grants)

    async def update_subscriber(self, user_id, update):
        self.updates.append((user_id, update))
        if self.fail:
            raise EntitlementSyncError("RevenueCat API error: 500 boom", upstream_status=500, body="boom")
        return {"ok": True}

    async def grant_entitlement(self, user_id, entitlement):
        self.grants.append((user_id, entitlement))
        if self.fail:
            raise EntitlementSyncError("RevenueCat entitlement API error: 500 boom", upstream_status=500)
        return {"ok": True}


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def subscription() -> dict:
    return make_subscription()


@pytest.fixture
def checkout_client(subscription) -> FakeCheckoutClient:
    return FakeCheckoutClient(subscriptions={subscription["id"]: subscription})


@pytest.fixture
def revenuecat() -> RecordingRevenueCat:
    return RecordingRevenueCat()


@pytest.fixture
def app(settings, checkout_client, revenuecat):
    from paybridge.api.dependencies import (
        get_checkout_client,
        get_revenuecat_client,
        get_webhook_dispatcher,
    )
    from paybridge.main import create_app
    from paybridge.services.webhook_dispatcher import WebhookDispatcher

    application = create_app(settings)
    dispatcher = WebhookDispatcher(checkout_client, revenuecat)
    application.dependency_overrides[get_checkout_client] = lambda: checkout_client
    application.dependency_overrides[get_revenuecat_client] = lambda: revenuecat
    application.dependency_overrides[get_webhook_dispatcher] = lambda: dispatcher
    return application


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app)
