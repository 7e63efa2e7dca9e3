"""Shape checks for inbound bodies and path parameters.

Every check collects all violated rules before failing so the caller can
fix a request in one round trip.
"""
from __future__ import annotations

import re
from typing import Any, Mapping

from paybridge.config import Settings
from paybridge.core.exceptions import ValidationError
from paybridge.schemas.checkout import CheckoutRequest

PLAN_TYPES = ("monthly", "annual")
USER_ID_MIN_LENGTH = 3
USER_ID_MAX_LENGTH = 128

METADATA_KEYS = frozenset({"userId", "planType", "bundleId", "revenuecat_user_id"})
METADATA_VALUE_MAX_LENGTH = 500

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def checkout_request_errors(payload: CheckoutRequest, settings: Settings) -> list[str]:
    """Return every rule the checkout request violates (empty when valid)."""
    errors: list[str] = []
    price_id, user_id, plan_type, email = (
        payload.priceId,
        payload.userId,
        payload.planType,
        payload.email,
    )

    if not _non_empty_str(price_id):
        errors.append("priceId is required and must be a string")
    if not _non_empty_str(user_id):
        errors.append("userId is required and must be a string")
    if plan_type not in PLAN_TYPES:
        errors.append('planType is required and must be either "monthly" or "annual"')

    if email is not None and email != "":
        if not isinstance(email, str) or not is_valid_email(email):
            errors.append("email must be a valid email address")

    if _non_empty_str(price_id) and not price_id.startswith("price_"):
        errors.append('priceId must be a valid Stripe price ID starting with "price_"')

    if _non_empty_str(user_id) and not USER_ID_MIN_LENGTH <= len(user_id) <= USER_ID_MAX_LENGTH:
        errors.append(
            f"userId must be between {USER_ID_MIN_LENGTH} and {USER_ID_MAX_LENGTH} characters"
        )

    if _non_empty_str(price_id) and plan_type in PLAN_TYPES:
        if price_id != settings.price_id_for(plan_type):
            errors.append(f"priceId {price_id} does not match expected price for {plan_type} plan")

    return errors


def validate_checkout_request(payload: CheckoutRequest, settings: Settings) -> CheckoutRequest:
    errors = checkout_request_errors(payload, settings)
    if errors:
        raise ValidationError(errors)
    return payload


def _validate_prefixed_id(name: str, value: Any, prefix: str, label: str) -> str:
    if not _non_empty_str(value):
        raise ValidationError([f"{name} parameter is required"])
    if not value.startswith(prefix):
        raise ValidationError(
            [f'Invalid {name} format. Must be a Stripe {label} ID starting with "{prefix}"']
        )
    return value


def validate_session_id(session_id: Any) -> str:
    return _validate_prefixed_id("sessionId", session_id, "cs_", "checkout session")


def validate_subscription_id(subscription_id: Any) -> str:
    return _validate_prefixed_id("subscriptionId", subscription_id, "sub_", "subscription")


def sanitize_metadata(metadata: Mapping[str, Any] | None) -> dict[str, Any]:
    """Keep only correlation keys and cap string lengths."""
    sanitized: dict[str, Any] = {}
    for key, value in (metadata or {}).items():
        if key not in METADATA_KEYS:
            continue
        sanitized[key] = value[:METADATA_VALUE_MAX_LENGTH] if isinstance(value, str) else value
    return sanitized
