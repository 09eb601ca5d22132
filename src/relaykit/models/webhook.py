"""Webhook models."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from relaykit.models.common import RelayModel, utcnow


class WebhookEvent(str, Enum):
    """Event names that endpoints can subscribe to."""

    POST_CREATED = "post.created"
    POST_SCHEDULED = "post.scheduled"
    RESPONSE_GENERATED = "response.generated"
    RESPONSE_POSTED = "response.posted"
    PLATFORM_CONNECTED = "platform.connected"
    PLATFORM_ERROR = "platform.error"
    CONTACT_ADDED = "contact.added"
    INTERACTION_LOGGED = "interaction.logged"
    AUTOMATION_TRIGGERED = "automation.triggered"
    TEST_WEBHOOK = "test.webhook"


class WebhookEndpoint(RelayModel):
    """A registered third-party HTTP destination."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    url: str
    events: list[str] = Field(default_factory=list)
    headers: dict[str, str] = Field(default_factory=dict)
    secret: str | None = None
    enabled: bool = True
    retry_attempts: int = Field(default=3, ge=0)
    timeout: int = Field(default=30000, gt=0)  # milliseconds

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    last_triggered: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)

    def subscribes_to(self, event: str) -> bool:
        """Whether this endpoint should receive the given event."""
        return self.enabled and event in self.events


class WebhookPayload(RelayModel):
    """Body POSTed to every subscriber of an event."""

    event: str
    timestamp: str
    data: dict[str, Any] = Field(default_factory=dict)


class DeliveryLogEntry(RelayModel):
    """Record of a single delivery attempt."""

    timestamp: str
    webhook_id: str
    webhook_name: str
    url: str
    event: str
    success: bool = False
    status: int | None = None
    response_time: int = 0  # milliseconds
    error: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


class WebhookStats(RelayModel):
    """Aggregate delivery statistics for one endpoint."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    success_rate: int = 0
    average_response_time: int = 0
