"""
relaykit - webhook delivery and multi-provider AI generation.

Signed, retried webhook fan-out and provider-agnostic content generation
with automatic fallback.
"""

from relaykit._version import __version__
from relaykit.dispatcher import WebhookDispatcher
from relaykit.exceptions import (
    ConnectionError,
    EndpointNotFoundError,
    GenerationError,
    NoActiveProviderError,
    ProviderAPIError,
    ProviderNotFoundError,
    ProviderResponseError,
    RelayError,
    StoreError,
    TimeoutError,
    ValidationError,
)
from relaykit.gateway import GenerationGateway, default_providers
from relaykit.models import (
    AIProvider,
    DeliveryLogEntry,
    GenerationOptions,
    GenerationResult,
    ProviderFamily,
    ProviderStatus,
    WebhookEndpoint,
    WebhookEvent,
    WebhookStats,
)
from relaykit.store import JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    # Version
    "__version__",
    # Components
    "WebhookDispatcher",
    "GenerationGateway",
    "default_providers",
    # Stores
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    # Models
    "WebhookEndpoint",
    "WebhookEvent",
    "DeliveryLogEntry",
    "WebhookStats",
    "AIProvider",
    "ProviderFamily",
    "ProviderStatus",
    "GenerationOptions",
    "GenerationResult",
    # Exceptions
    "RelayError",
    "ValidationError",
    "EndpointNotFoundError",
    "ProviderNotFoundError",
    "NoActiveProviderError",
    "ConnectionError",
    "TimeoutError",
    "ProviderAPIError",
    "ProviderResponseError",
    "GenerationError",
    "StoreError",
]
