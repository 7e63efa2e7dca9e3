"""Stripe webhook routing and the six billing lifecycle handlers.

Each handler turns one Stripe object into RevenueCat calls, using the
`userId` / `revenuecat_user_id` metadata written at checkout as the
correlation key. Handlers contain their own failures: a RevenueCat or Stripe
error is logged and the delivery is still acknowledged. Only an error that
escapes a handler reaches the HTTP layer (and makes Stripe redeliver).
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping

from paybridge.core.exceptions import AppError
from paybridge.integrations.revenuecat import PREMIUM_ENTITLEMENT, RevenueCatClient
from paybridge.integrations.stripe_checkout import StripeCheckoutClient, resource_id
from paybridge.schemas.subscription import SubscriberUpdate
from paybridge.schemas.webhook import WebhookEvent

logger = logging.getLogger(__name__)

# Malformed Stripe objects (missing items, wrong shapes) surface as these.
PAYLOAD_ERRORS = (KeyError, IndexError, TypeError, ValueError)


class StripeEventType(str, Enum):
    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"

    @classmethod
    def parse(cls, value: str) -> "StripeEventType | None":
        try:
            return cls(value)
        except ValueError:
            return None


class HandlerOutcome(str, Enum):
    HANDLED = "handled"
    SKIPPED = "skipped"
    FAILED = "failed"
    IGNORED = "ignored"


Handler = Callable[[Mapping[str, Any]], Awaitable[HandlerOutcome]]


def product_id_for_plan(plan_type: str | None) -> str:
    return "monthly_premium" if plan_type == "monthly" else "annual_premium"


def resolve_user_id(metadata: Mapping[str, Any] | None) -> str | None:
    """Correlation id from subscription metadata, preferring the RevenueCat key."""
    metadata = metadata or {}
    return metadata.get("revenuecat_user_id") or metadata.get("userId") or None


def invoice_subscription_id(invoice: Mapping[str, Any]) -> str | None:
    subscription = invoice.get("subscription")
    if subscription:
        return resource_id(subscription)
    # Newer API versions nest it under the invoice parent.
    details = ((invoice.get("parent") or {}).get("subscription_details")) or {}
    return resource_id(details.get("subscription"))


def build_subscriber_update(
    subscription: Mapping[str, Any],
    plan_type: str | None,
    status: str | None = None,
) -> SubscriberUpdate:
    price = subscription["items"]["data"][0]["price"]
    return SubscriberUpdate(
        subscriptionId=subscription["id"],
        customerId=resource_id(subscription.get("customer")),
        productId=product_id_for_plan(plan_type),
        priceInCents=price.get("unit_amount"),
        currency=price.get("currency"),
        status=status or subscription["status"],
    )


class WebhookDispatcher:
    def __init__(self, checkout: StripeCheckoutClient, entitlements: RevenueCatClient):
        self.checkout = checkout
        self.entitlements = entitlements
        self._handlers: dict[StripeEventType, Handler] = {
            StripeEventType.CHECKOUT_SESSION_COMPLETED: self.handle_checkout_completed,
            StripeEventType.SUBSCRIPTION_CREATED: self.handle_subscription_created,
            StripeEventType.SUBSCRIPTION_UPDATED: self.handle_subscription_updated,
            StripeEventType.SUBSCRIPTION_DELETED: self.handle_subscription_deleted,
            StripeEventType.INVOICE_PAYMENT_SUCCEEDED: self.handle_payment_succeeded,
            StripeEventType.INVOICE_PAYMENT_FAILED: self.handle_payment_failed,
        }
        missing = set(StripeEventType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No webhook handler for: {sorted(m.value for m in missing)}")

    async def dispatch(self, event: WebhookEvent) -> HandlerOutcome:
        """Route one verified event. Errors raised here are not contained."""
        logger.info("Processing Stripe webhook: %s (%s)", event.type, event.id)
        event_type = StripeEventType.parse(event.type)
        if event_type is None:
            logger.info("Unhandled event type: %s", event.type)
            return HandlerOutcome.IGNORED

        outcome = await self._handlers[event_type](event.data.object)
        logger.debug("Webhook %s finished: %s", event.type, outcome.value)
        return outcome

    async def _contained(
        self,
        label: str,
        object_id: Any,
        work: Callable[[], Awaitable[HandlerOutcome]],
    ) -> HandlerOutcome:
        try:
            return await work()
        except AppError as exc:
            logger.exception("Error handling %s for %s: %s", label, object_id, exc.message)
        except PAYLOAD_ERRORS:
            logger.exception("Malformed Stripe object while handling %s for %s", label, object_id)
        return HandlerOutcome.FAILED

    async def handle_checkout_completed(self, session: Mapping[str, Any]) -> HandlerOutcome:
        logger.info("Checkout completed: %s", session.get("id"))
        metadata = session.get("metadata") or {}
        user_id = metadata.get("userId")
        plan_type = metadata.get("planType")
        if not user_id:
            logger.error("No userId found in session metadata (session %s)", session.get("id"))
            return HandlerOutcome.SKIPPED

        async def work() -> HandlerOutcome:
            subscription_id = resource_id(session.get("subscription"))
            if not subscription_id:
                logger.error("Checkout session %s has no subscription", session.get("id"))
                return HandlerOutcome.SKIPPED
            subscription = await self.checkout.retrieve_subscription(subscription_id)
            update = build_subscriber_update(subscription, plan_type)
            await self.entitlements.update_subscriber(user_id, update)
            await self.entitlements.grant_entitlement(user_id, PREMIUM_ENTITLEMENT)
            logger.info("Successfully activated subscription for user %s", user_id)
            return HandlerOutcome.HANDLED

        return await self._contained("checkout completion", session.get("id"), work)

    async def _sync_subscription(
        self,
        subscription: Mapping[str, Any],
        label: str,
        forced_status: str | None = None,
    ) -> HandlerOutcome:
        user_id = resolve_user_id(subscription.get("metadata"))
        if not user_id:
            logger.error("No userId found in subscription metadata (%s)", subscription.get("id"))
            return HandlerOutcome.SKIPPED

        async def work() -> HandlerOutcome:
            plan_type = (subscription.get("metadata") or {}).get("planType")
            update = build_subscriber_update(subscription, plan_type, status=forced_status)
            await self.entitlements.update_subscriber(user_id, update)
            logger.info("Subscription %s for user %s: %s", label, user_id, update.status)
            return HandlerOutcome.HANDLED

        return await self._contained(f"subscription {label}", subscription.get("id"), work)

    async def handle_subscription_created(self, subscription: Mapping[str, Any]) -> HandlerOutcome:
        logger.info("Subscription created: %s", subscription.get("id"))
        return await self._sync_subscription(subscription, "created")

    async def handle_subscription_updated(self, subscription: Mapping[str, Any]) -> HandlerOutcome:
        logger.info("Subscription updated: %s", subscription.get("id"))
        return await self._sync_subscription(subscription, "updated")

    async def handle_subscription_deleted(self, subscription: Mapping[str, Any]) -> HandlerOutcome:
        # RevenueCat expires the entitlement from the period end; only the status changes here.
        logger.info("Subscription canceled: %s", subscription.get("id"))
        return await self._sync_subscription(subscription, "canceled", forced_status="canceled")

    async def handle_payment_succeeded(self, invoice: Mapping[str, Any]) -> HandlerOutcome:
        logger.info("Payment succeeded: %s", invoice.get("id"))
        subscription_id = invoice_subscription_id(invoice)
        if not subscription_id:
            return HandlerOutcome.SKIPPED

        async def work() -> HandlerOutcome:
            subscription = await self.checkout.retrieve_subscription(subscription_id)
            user_id = resolve_user_id(subscription.get("metadata"))
            if not user_id:
                logger.error("No userId found in subscription metadata (%s)", subscription_id)
                return HandlerOutcome.SKIPPED
            await self.entitlements.grant_entitlement(user_id, PREMIUM_ENTITLEMENT)
            logger.info("Payment succeeded for user %s, entitlements renewed", user_id)
            return HandlerOutcome.HANDLED

        return await self._contained("payment success", invoice.get("id"), work)

    async def handle_payment_failed(self, invoice: Mapping[str, Any]) -> HandlerOutcome:
        """Log only. RevenueCat owns the grace period and entitlement expiry."""
        logger.info("Payment failed: %s", invoice.get("id"))
        subscription_id = invoice_subscription_id(invoice)
        if not subscription_id:
            return HandlerOutcome.SKIPPED

        async def work() -> HandlerOutcome:
            subscription = await self.checkout.retrieve_subscription(subscription_id)
            user_id = resolve_user_id(subscription.get("metadata"))
            if not user_id:
                logger.error("No userId found in subscription metadata (%s)", subscription_id)
                return HandlerOutcome.SKIPPED
            logger.warning("Payment failed for user %s, subscription: %s", user_id, subscription_id)
            return HandlerOutcome.HANDLED

        return await self._contained("payment failure", invoice.get("id"), work)
