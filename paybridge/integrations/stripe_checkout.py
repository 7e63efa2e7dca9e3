from __future__ import annotations

import logging
from typing import Any, Mapping

import stripe

from paybridge.api.validation import sanitize_metadata
from paybridge.config import Settings
from paybridge.core.exceptions import UpstreamPaymentError
from paybridge.schemas.checkout import CheckoutSessionCreated, CheckoutSessionView
from paybridge.schemas.subscription import SubscriptionView

logger = logging.getLogger(__name__)


def to_plain(obj: Any) -> dict[str, Any]:
    """Convert a Stripe resource (or a plain mapping) into a dict."""
    if obj is None:
        return {}
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)


def resource_id(value: Any) -> str | None:
    """Return the id of an expanded resource, or the value itself when it is already an id."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return value.get("id")
    return getattr(value, "id", None)


def subscription_period(subscription: Mapping[str, Any]) -> tuple[int | None, int | None]:
    """Period bounds, read from the first item when the subscription no longer carries them."""
    start = subscription.get("current_period_start")
    end = subscription.get("current_period_end")
    if start is None or end is None:
        items = (subscription.get("items") or {}).get("data") or []
        if items:
            start = start if start is not None else items[0].get("current_period_start")
            end = end if end is not None else items[0].get("current_period_end")
    return start, end


class StripeCheckoutClient:
    """Async wrapper around the Stripe checkout and subscription endpoints."""

    def __init__(self, settings: Settings, client: stripe.StripeClient | None = None):
        self.settings = settings
        self.client = client or stripe.StripeClient(
            settings.stripe_secret_key.get_secret_value(),
            http_client=stripe.HTTPXClient(timeout=settings.http_timeout_seconds),
        )

    def _session_params(
        self,
        *,
        price_id: str,
        user_id: str,
        plan_type: str,
        email: str | None,
    ) -> dict[str, Any]:
        bundle_id = self.settings.app_bundle_id
        frontend_url = self.settings.frontend_url
        params: dict[str, Any] = {
            "payment_method_types": ["card"],
            "mode": "subscription",
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": f"{frontend_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{frontend_url}/cancel",
            "metadata": {
                "userId": user_id,
                "planType": plan_type,
                "bundleId": bundle_id,
            },
            "subscription_data": {
                "metadata": {
                    "userId": user_id,
                    "planType": plan_type,
                    "bundleId": bundle_id,
                    "revenuecat_user_id": user_id,
                },
            },
            "allow_promotion_codes": True,
            "billing_address_collection": "auto",
        }
        if email:
            params["customer_email"] = email
        return params

    async def create_checkout_session(
        self,
        price_id: str,
        user_id: str,
        plan_type: str,
        email: str | None = None,
    ) -> CheckoutSessionCreated:
        params = self._session_params(
            price_id=price_id,
            user_id=user_id,
            plan_type=plan_type,
            email=email,
        )
        try:
            session = to_plain(await self.client.checkout.sessions.create_async(params=params))
        except stripe.StripeError as exc:
            logger.error("Stripe checkout session creation failed for user %s: %s", user_id, exc)
            raise UpstreamPaymentError.from_stripe(exc) from exc

        logger.info("Created checkout session %s for user %s (%s)", session["id"], user_id, plan_type)
        return CheckoutSessionCreated(sessionId=session["id"], url=session.get("url"))

    async def get_checkout_session(self, session_id: str) -> CheckoutSessionView:
        try:
            session = to_plain(
                await self.client.checkout.sessions.retrieve_async(
                    session_id,
                    params={"expand": ["subscription", "customer"]},
                )
            )
        except stripe.StripeError as exc:
            raise UpstreamPaymentError.from_stripe(exc) from exc

        return CheckoutSessionView(
            sessionId=session["id"],
            paymentStatus=session.get("payment_status"),
            subscriptionId=resource_id(session.get("subscription")),
            customerId=resource_id(session.get("customer")),
            metadata=sanitize_metadata(to_plain(session.get("metadata"))),
        )

    async def retrieve_subscription(self, subscription_id: str) -> dict[str, Any]:
        """Full subscription resource, as used by the webhook handlers."""
        try:
            subscription = await self.client.subscriptions.retrieve_async(subscription_id)
        except stripe.StripeError as exc:
            raise UpstreamPaymentError.from_stripe(exc) from exc
        return to_plain(subscription)

    async def get_subscription(self, subscription_id: str) -> SubscriptionView:
        subscription = await self.retrieve_subscription(subscription_id)
        start, end = subscription_period(subscription)
        return SubscriptionView(
            subscriptionId=subscription["id"],
            status=subscription.get("status") or "unknown",
            currentPeriodStart=start,
            currentPeriodEnd=end,
            cancelAtPeriodEnd=bool(subscription.get("cancel_at_period_end")),
            metadata=sanitize_metadata(to_plain(subscription.get("metadata"))),
        )
