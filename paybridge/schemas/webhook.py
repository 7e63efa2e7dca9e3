from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WebhookEventData(BaseModel):
    model_config = ConfigDict(extra="allow")

    object: dict[str, Any] = Field(default_factory=dict)


class WebhookEvent(BaseModel):
    """Verified Stripe event. Lives for one request only."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    type: str
    data: WebhookEventData = Field(default_factory=WebhookEventData)


class WebhookAck(BaseModel):
    received: bool = True
