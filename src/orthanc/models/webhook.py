"""Webhook models for server-to-server event notifications.

Covers subscription management (``/api/webhooks``) and the event payloads
the service posts to subscribed endpoints.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, HttpUrl

from .base import ApiModel, ApiRequest, ApiResponse
from .memory import SourceType

# Event types that can trigger webhooks
WebhookEventType = Literal[
    "memory.created",
    "memory.updated",
    "memory.deleted",
    "memory.batch_created",
    "memory.batch_deleted",
]

# All available event types for subscription
ALL_EVENT_TYPES: list[WebhookEventType] = [
    "memory.created",
    "memory.updated",
    "memory.deleted",
    "memory.batch_created",
    "memory.batch_deleted",
]


class WebhookEventData(ApiModel):
    user_id: str
    memories: list[str] | None = None
    memory_ids: list[str] | None = None
    source: SourceType | None = None


class WebhookEvent(ApiModel):
    """Event payload delivered to webhook endpoints.

    Attributes:
        event: Event type.
        timestamp: ISO timestamp of when the event occurred.
        data: User the event belongs to and the affected memories.
    """

    event: WebhookEventType
    timestamp: str
    data: WebhookEventData


class Webhook(ApiResponse):
    """A registered webhook subscription.

    Attributes:
        id: Unique identifier for this webhook.
        url: Endpoint receiving events.
        events: Event types this webhook subscribes to.
        enabled: Whether this webhook is active.
        secret: Shared secret for HMAC-SHA256 signatures, when set.
        name: Optional human-readable name.
        created_at: ISO timestamp of registration.
    """

    id: str
    url: str
    events: list[WebhookEventType] = Field(default_factory=list)
    enabled: bool = True
    secret: str | None = None
    name: str | None = None
    created_at: str | None = None

    def subscribes_to(self, event_type: WebhookEventType) -> bool:
        """Check if this webhook is active and subscribed to the event type."""
        return self.enabled and event_type in self.events


class WebhookCreateRequest(ApiRequest):
    url: HttpUrl
    events: list[WebhookEventType] = Field(
        default_factory=lambda: list(ALL_EVENT_TYPES),
        min_length=1,
    )
    secret: str | None = None
    name: str | None = None


class WebhookUpdateRequest(ApiRequest):
    """Partial update of a webhook; only supplied fields are sent."""

    url: HttpUrl | None = None
    events: list[WebhookEventType] | None = None
    secret: str | None = None
    name: str | None = None
    enabled: bool | None = None
