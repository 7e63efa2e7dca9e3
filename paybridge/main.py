"""
SportDogLog billing API - FastAPI application
Stripe checkout sessions plus the webhook bridge that keeps RevenueCat in sync
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from paybridge.api.routes import health, stripe, webhooks
from paybridge.config import Settings, get_settings
from paybridge.core.error_handlers import install_error_handlers
from paybridge.core.logging import configure_logging
from paybridge.core.middleware import SecurityHeadersMiddleware
from paybridge.core.rate_limit import build_limiter, rate_limit_exceeded_handler
from paybridge.integrations.revenuecat import RevenueCatClient
from paybridge.integrations.stripe_checkout import StripeCheckoutClient
from paybridge.services.webhook_dispatcher import WebhookDispatcher

logger = logging.getLogger(__name__)

MOBILE_ORIGINS = ["capacitor://localhost", "ionic://localhost"]


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application around one immutable settings object."""
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s...", settings.app_name)
        logger.info("Environment: %s", settings.app_env)
        yield
        logger.info("Shutting down %s...", settings.app_name)

    app = FastAPI(
        title=settings.app_name,
        description="Stripe checkout and RevenueCat entitlement bridge",
        version="1.0.0",
        lifespan=lifespan,
    )

    checkout_client = StripeCheckoutClient(settings)
    revenuecat_client = RevenueCatClient(settings)
    app.state.settings = settings
    app.state.checkout_client = checkout_client
    app.state.revenuecat_client = revenuecat_client
    app.state.webhook_dispatcher = WebhookDispatcher(checkout_client, revenuecat_client)

    app.state.limiter = build_limiter(settings.rate_limit)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    install_error_handlers(app)

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url, *MOBILE_ORIGINS],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["X-Request-Id"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(stripe.router, prefix="/api/stripe", tags=["Stripe"])
    app.include_router(webhooks.router, prefix="/api/webhooks", tags=["Webhooks"])
    return app


def main() -> None:
    settings = get_settings()
    app = create_app(settings)
    logger.info("%s running on port %s", settings.app_name, settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
