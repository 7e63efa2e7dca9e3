"""Process-wide collaborators, created once in the app lifespan."""
from __future__ import annotations

from fastapi import Request

from paybridge.config import Settings
from paybridge.integrations.revenuecat import RevenueCatClient
from paybridge.integrations.stripe_checkout import StripeCheckoutClient
from paybridge.services.webhook_dispatcher import WebhookDispatcher


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_checkout_client(request: Request) -> StripeCheckoutClient:
    return request.app.state.checkout_client


def get_revenuecat_client(request: Request) -> RevenueCatClient:
    return request.app.state.revenuecat_client


def get_webhook_dispatcher(request: Request) -> WebhookDispatcher:
    return request.app.state.webhook_dispatcher


__all__ = [
    "get_app_settings",
    "get_checkout_client",
    "get_revenuecat_client",
    "get_webhook_dispatcher",
]
