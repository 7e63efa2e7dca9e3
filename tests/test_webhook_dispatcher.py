from __future__ import annotations

import pytest

from paybridge.schemas.webhook import WebhookEvent
from paybridge.services.webhook_dispatcher import (
    HandlerOutcome,
    StripeEventType,
    WebhookDispatcher,
    build_subscriber_update,
    invoice_subscription_id,
    product_id_for_plan,
    resolve_user_id,
)
from tests.conftest import FakeCheckoutClient, RecordingRevenueCat, make_subscription


def _event(event_type: str, obj: dict) -> WebhookEvent:
    return WebhookEvent.model_validate({"id": "evt_1", "type": event_type, "data": {"object": obj}})


@pytest.fixture
def dispatcher(checkout_client, revenuecat) -> WebhookDispatcher:
    return WebhookDispatcher(checkout_client, revenuecat)


def test_every_event_type_has_a_handler(dispatcher):
    assert set(dispatcher._handlers) == set(StripeEventType)


def test_product_id_is_a_two_way_switch():
    assert product_id_for_plan("monthly") == "monthly_premium"
    assert product_id_for_plan("annual") == "annual_premium"
    assert product_id_for_plan("weekly") == "annual_premium"
    assert product_id_for_plan(None) == "annual_premium"


def test_resolve_user_id_prefers_revenuecat_key():
    assert resolve_user_id({"revenuecat_user_id": "rc_1", "userId": "u_1"}) == "rc_1"
    assert resolve_user_id({"userId": "u_1"}) == "u_1"
    assert resolve_user_id({"revenuecat_user_id": "", "userId": ""}) is None
    assert resolve_user_id(None) is None


def test_invoice_subscription_id_reads_parent_details():
    assert invoice_subscription_id({"subscription": "sub_1"}) == "sub_1"
    assert invoice_subscription_id(
        {"subscription": None, "parent": {"subscription_details": {"subscription": "sub_2"}}}
    ) == "sub_2"
    assert invoice_subscription_id({"id": "in_1"}) is None


def test_build_subscriber_update_uses_first_item_price():
    update = build_subscriber_update(make_subscription(unit_amount=4999, currency="eur"), "annual")
    assert update.subscriptionId == "sub_123"
    assert update.customerId == "cus_123"
    assert update.productId == "annual_premium"
    assert update.priceInCents == 4999
    assert update.currency == "eur"
    assert update.status == "active"


@pytest.mark.asyncio
async def test_checkout_completed_updates_subscriber_then_grants_premium(dispatcher, checkout_client, revenuecat):
    session = {
        "id": "cs_test_1",
        "subscription": "sub_123",
        "metadata": {"userId": "user_abc", "planType": "monthly"},
    }
    outcome = await dispatcher.dispatch(_event("checkout.session.completed", session))

    assert outcome is HandlerOutcome.HANDLED
    assert ("retrieve_subscription", "sub_123") in checkout_client.calls
    assert len(revenuecat.updates) == 1
    user_id, update = revenuecat.updates[0]
    assert user_id == "user_abc"
    assert update.productId == "monthly_premium"
    assert update.status == "active"
    assert revenuecat.grants == [("user_abc", "premium")]


@pytest.mark.asyncio
async def test_checkout_completed_ignores_revenuecat_key_on_session(dispatcher, revenuecat):
    session = {
        "id": "cs_test_1",
        "subscription": "sub_123",
        "metadata": {"revenuecat_user_id": "rc_only", "planType": "monthly"},
    }
    outcome = await dispatcher.dispatch(_event("checkout.session.completed", session))

    assert outcome is HandlerOutcome.SKIPPED
    assert revenuecat.call_count == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "event_type",
    ["customer.subscription.created", "customer.subscription.updated"],
)
async def test_subscription_created_and_updated_send_live_status(dispatcher, revenuecat, event_type):
    subscription = make_subscription(
        status="past_due",
        metadata={"revenuecat_user_id": "rc_user", "userId": "user_abc", "planType": "annual"},
    )
    outcome = await dispatcher.dispatch(_event(event_type, subscription))

    assert outcome is HandlerOutcome.HANDLED
    assert revenuecat.grants == []
    user_id, update = revenuecat.updates[0]
    assert user_id == "rc_user"
    assert update.status == "past_due"
    assert update.productId == "annual_premium"


@pytest.mark.asyncio
async def test_subscription_deleted_always_reports_canceled(dispatcher, revenuecat):
    subscription = make_subscription(status="unpaid")
    outcome = await dispatcher.dispatch(_event("customer.subscription.deleted", subscription))

    assert outcome is HandlerOutcome.HANDLED
    _, update = revenuecat.updates[0]
    assert update.status == "canceled"
    assert revenuecat.grants == []


@pytest.mark.asyncio
async def test_payment_succeeded_only_grants_entitlement(dispatcher, checkout_client, revenuecat):
    invoice = {"id": "in_1", "subscription": "sub_123"}
    outcome = await dispatcher.dispatch(_event("invoice.payment_succeeded", invoice))

    assert outcome is HandlerOutcome.HANDLED
    assert revenuecat.updates == []
    assert revenuecat.grants == [("user_abc", "premium")]


@pytest.mark.asyncio
@pytest.mark.parametrize("event_type", ["invoice.payment_succeeded", "invoice.payment_failed"])
async def test_invoice_without_subscription_is_skipped(dispatcher, checkout_client, revenuecat, event_type):
    outcome = await dispatcher.dispatch(_event(event_type, {"id": "in_2", "subscription": None}))

    assert outcome is HandlerOutcome.SKIPPED
    assert checkout_client.calls == []
    assert revenuecat.call_count == 0


@pytest.mark.asyncio
async def test_payment_failed_never_calls_revenuecat(dispatcher, checkout_client, revenuecat):
    outcome = await dispatcher.dispatch(_event("invoice.payment_failed", {"id": "in_3", "subscription": "sub_123"}))

    assert outcome is HandlerOutcome.HANDLED
    assert ("retrieve_subscription", "sub_123") in checkout_client.calls
    assert revenuecat.call_count == 0


@pytest.mark.asyncio
async def test_unknown_event_type_is_ignored(dispatcher, checkout_client, revenuecat):
    outcome = await dispatcher.dispatch(_event("customer.created", {"id": "cus_1"}))

    assert outcome is HandlerOutcome.IGNORED
    assert checkout_client.calls == []
    assert revenuecat.call_count == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "event_type",
    [
        "customer.subscription.created",
        "customer.subscription.updated",
        "customer.subscription.deleted",
    ],
)
async def test_missing_user_id_skips_subscription_events(dispatcher, revenuecat, event_type):
    subscription = make_subscription(metadata={"planType": "monthly"})
    outcome = await dispatcher.dispatch(_event(event_type, subscription))

    assert outcome is HandlerOutcome.SKIPPED
    assert revenuecat.call_count == 0


@pytest.mark.asyncio
async def test_missing_user_id_skips_invoice_events(revenuecat):
    orphan = make_subscription(subscription_id="sub_orphan", metadata={})
    dispatcher = WebhookDispatcher(FakeCheckoutClient({"sub_orphan": orphan}), revenuecat)

    outcome = await dispatcher.dispatch(
        _event("invoice.payment_succeeded", {"id": "in_4", "subscription": "sub_orphan"})
    )

    assert outcome is HandlerOutcome.SKIPPED
    assert revenuecat.call_count == 0


@pytest.mark.asyncio
async def test_revenuecat_failure_is_contained(checkout_client):
    failing = RecordingRevenueCat(fail=True)
    dispatcher = WebhookDispatcher(checkout_client, failing)
    session = {"id": "cs_test_1", "subscription": "sub_123", "metadata": {"userId": "user_abc"}}

    outcome = await dispatcher.dispatch(_event("checkout.session.completed", session))

    assert outcome is HandlerOutcome.FAILED
    assert len(failing.updates) == 1
    # The grant is not attempted once the subscriber update fails.
    assert failing.grants == []


@pytest.mark.asyncio
async def test_stripe_lookup_failure_is_contained(revenuecat):
    dispatcher = WebhookDispatcher(FakeCheckoutClient(), revenuecat)

    outcome = await dispatcher.dispatch(
        _event("invoice.payment_succeeded", {"id": "in_5", "subscription": "sub_missing"})
    )

    assert outcome is HandlerOutcome.FAILED
    assert revenuecat.call_count == 0


@pytest.mark.asyncio
async def test_malformed_subscription_is_contained(dispatcher, revenuecat):
    subscription = make_subscription()
    subscription["items"] = {"data": []}

    outcome = await dispatcher.dispatch(_event("customer.subscription.updated", subscription))

    assert outcome is HandlerOutcome.FAILED
    assert revenuecat.call_count == 0
