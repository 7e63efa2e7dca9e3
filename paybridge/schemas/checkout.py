from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class CheckoutRequest(BaseModel):
    """Body of POST /api/stripe/create-checkout-session.

    Fields are loosely typed on purpose; the validation layer reports every
    problem at once instead of stopping at the first type error.
    """

    model_config = ConfigDict(extra="ignore")

    priceId: Any = None
    userId: Any = None
    planType: Any = None
    email: Any = None


class CheckoutSessionCreated(BaseModel):
    sessionId: str
    url: Optional[str] = None


class CheckoutSessionView(BaseModel):
    sessionId: str
    paymentStatus: Optional[str] = None
    subscriptionId: Optional[str] = None
    customerId: Optional[str] = None
    metadata: dict[str, Any] = {}
