"""
Stripe checkout API routes
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from paybridge.api.dependencies import get_app_settings, get_checkout_client
from paybridge.api.validation import (
    validate_checkout_request,
    validate_session_id,
    validate_subscription_id,
)
from paybridge.config import Settings
from paybridge.integrations.stripe_checkout import StripeCheckoutClient
from paybridge.schemas.checkout import CheckoutRequest, CheckoutSessionCreated, CheckoutSessionView
from paybridge.schemas.subscription import SubscriptionView

router = APIRouter()


@router.post("/create-checkout-session", response_model=CheckoutSessionCreated)
async def create_checkout_session(
    payload: CheckoutRequest,
    settings: Settings = Depends(get_app_settings),
    checkout: StripeCheckoutClient = Depends(get_checkout_client),
) -> CheckoutSessionCreated:
    checkout_request = validate_checkout_request(payload, settings)
    return await checkout.create_checkout_session(
        price_id=checkout_request.priceId,
        user_id=checkout_request.userId,
        plan_type=checkout_request.planType,
        email=checkout_request.email or None,
    )


@router.get("/checkout-session/{sessionId}", response_model=CheckoutSessionView)
async def get_checkout_session(
    sessionId: str,
    checkout: StripeCheckoutClient = Depends(get_checkout_client),
) -> CheckoutSessionView:
    return await checkout.get_checkout_session(validate_session_id(sessionId))


@router.get("/subscription/{subscriptionId}", response_model=SubscriptionView)
async def get_subscription(
    subscriptionId: str,
    checkout: StripeCheckoutClient = Depends(get_checkout_client),
) -> SubscriptionView:
    return await checkout.get_subscription(validate_subscription_id(subscriptionId))
