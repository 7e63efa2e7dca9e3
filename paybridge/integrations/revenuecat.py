from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from urllib.parse import quote

import httpx

from paybridge.config import Settings
from paybridge.core.exceptions import EntitlementSyncError
from paybridge.schemas.subscription import SubscriberUpdate

logger = logging.getLogger(__name__)

PREMIUM_ENTITLEMENT = "premium"
PREMIUM_PRODUCT_ID = "premium_subscription"


def entitlement_product_id(entitlement: str) -> str:
    return PREMIUM_PRODUCT_ID if entitlement == PREMIUM_ENTITLEMENT else entitlement


class RevenueCatClient:
    """RevenueCat REST client. Both calls are safe to repeat for the same event."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None):
        self.api_key = settings.revenuecat_api_key.get_secret_value()
        self.base_url = settings.revenuecat_api_base
        self.timeout = settings.http_timeout_seconds
        self._http_client = http_client

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _subscriber_url(self, user_id: str) -> str:
        return f"{self.base_url}/subscribers/{quote(user_id, safe='')}"

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def _post(self, url: str, payload: dict[str, Any], label: str) -> dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.post(url, headers=self._headers(), json=payload)
        except httpx.HTTPError as exc:
            raise EntitlementSyncError(f"RevenueCat {label} request failed: {exc}") from exc

        if not response.is_success:
            raise EntitlementSyncError(
                f"RevenueCat {label} error: {response.status_code} {response.text}",
                upstream_status=response.status_code,
                body=response.text,
            )
        return response.json() if response.content else {}

    async def update_subscriber(self, user_id: str, update: SubscriberUpdate) -> dict[str, Any]:
        """Push Stripe subscription state for a user, keyed by the subscription id."""
        payload = {
            "app_user_id": user_id,
            "fetch_token": update.subscriptionId,
            "platform": "stripe",
            "price_in_purchased_currency": update.priceInCents,
            "currency": update.currency,
            "is_family_share": False,
            "store_product_id": update.productId,
            "store_user_id": update.customerId,
        }
        logger.debug(
            "Updating RevenueCat subscriber %s with %s (%s)",
            user_id,
            update.subscriptionId,
            update.status,
        )
        return await self._post(self._subscriber_url(user_id), payload, "API")

    async def grant_entitlement(self, user_id: str, entitlement: str) -> dict[str, Any]:
        payload = {
            "entitlement_id": entitlement,
            "product_id": entitlement_product_id(entitlement),
        }
        url = f"{self._subscriber_url(user_id)}/entitlements/{quote(entitlement, safe='')}"
        return await self._post(url, payload, "entitlement API")
