from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class SubscriptionView(BaseModel):
    subscriptionId: str
    status: str
    currentPeriodStart: Optional[int] = None
    currentPeriodEnd: Optional[int] = None
    cancelAtPeriodEnd: bool = False
    metadata: dict[str, Any] = {}


class SubscriberUpdate(BaseModel):
    """Subscription state pushed to RevenueCat for one Stripe event."""

    subscriptionId: str
    customerId: Optional[str] = None
    productId: str
    priceInCents: Optional[int] = None
    currency: Optional[str] = None
    status: str
