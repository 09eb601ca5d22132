"""Pydantic models for relaykit."""

from relaykit.models.common import RelayModel
from relaykit.models.provider import (
    AIProvider,
    Completion,
    GenerationOptions,
    GenerationResult,
    ProviderCapabilities,
    ProviderFamily,
    ProviderStatus,
    ProviderTestResult,
)
from relaykit.models.webhook import (
    DeliveryLogEntry,
    WebhookEndpoint,
    WebhookEvent,
    WebhookPayload,
    WebhookStats,
)

__all__ = [
    # Common
    "RelayModel",
    # Webhooks
    "WebhookEndpoint",
    "WebhookEvent",
    "WebhookPayload",
    "DeliveryLogEntry",
    "WebhookStats",
    # Providers
    "AIProvider",
    "ProviderFamily",
    "ProviderStatus",
    "GenerationOptions",
    "GenerationResult",
    "Completion",
    "ProviderCapabilities",
    "ProviderTestResult",
]
