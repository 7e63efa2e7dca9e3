"""
Stripe webhook receiver
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from paybridge.api.dependencies import get_app_settings, get_webhook_dispatcher
from paybridge.config import Settings
from paybridge.core.error_handlers import error_body
from paybridge.schemas.webhook import WebhookAck
from paybridge.services.webhook_dispatcher import WebhookDispatcher
from paybridge.services.webhook_verification import SIGNATURE_HEADER, construct_event

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> WebhookAck | JSONResponse:
    """Verify, route and acknowledge one Stripe delivery.

    400 when the signature does not verify (WebhookAuthError propagates to the
    error handler), 500 when routing itself blows up so Stripe redelivers,
    otherwise `{"received": true}`.
    """
    body = await request.body()
    event = construct_event(
        body,
        request.headers.get(SIGNATURE_HEADER),
        settings.stripe_webhook_secret.get_secret_value(),
    )

    try:
        await dispatcher.dispatch(event)
    except Exception:
        logger.exception("Error processing webhook %s (%s)", event.type, event.id)
        return JSONResponse(status_code=500, content=error_body(request, "Webhook processing failed"))

    return WebhookAck(received=True)
