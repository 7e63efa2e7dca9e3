"""Stripe webhook signature verification.

Stripe signs `{timestamp}.{raw body}` with HMAC-SHA256 and sends
`Stripe-Signature: t=<timestamp>,v1=<hex digest>[,v1=...]`. Verification is
pure: the same body, header and secret always give the same answer (within
the timestamp tolerance window).
"""
from __future__ import annotations

import json
import logging

import stripe

from paybridge.core.exceptions import WebhookAuthError
from paybridge.schemas.webhook import WebhookEvent

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "stripe-signature"
DEFAULT_TOLERANCE_SECONDS = stripe.Webhook.DEFAULT_TOLERANCE


def verify_signature(
    body: bytes,
    signature_header: str | None,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
) -> None:
    """Raise WebhookAuthError unless the header signs exactly this body."""
    if not signature_header:
        raise WebhookAuthError("Missing stripe-signature header")
    try:
        payload = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise WebhookAuthError("Webhook body is not valid UTF-8") from exc
    try:
        stripe.WebhookSignature.verify_header(payload, signature_header, secret, tolerance)
    except stripe.SignatureVerificationError as exc:
        logger.warning("Webhook signature verification failed: %s", exc.user_message or exc)
        raise WebhookAuthError(f"Webhook Error: {exc.user_message or exc}") from exc


def decode_event(body: bytes) -> WebhookEvent:
    """Parse an already verified body into a typed event."""
    try:
        return WebhookEvent.model_validate(json.loads(body))
    except ValueError as exc:
        raise WebhookAuthError(f"Webhook Error: invalid payload ({exc.__class__.__name__})") from exc


def construct_event(
    body: bytes,
    signature_header: str | None,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
) -> WebhookEvent:
    verify_signature(body, signature_header, secret, tolerance)
    return decode_event(body)
