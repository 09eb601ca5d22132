"""relaykit exceptions.

All exceptions inherit from RelayError for easy catching.
"""

from __future__ import annotations

from typing import Any


class RelayError(Exception):
    """Base exception for all relaykit errors."""

    def __init__(self, message: str, *, response: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.response = response

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class ValidationError(RelayError):
    """An endpoint or provider record failed validation.

    Check errors for detailed validation failures.
    """

    def __init__(
        self, message: str, *, errors: list[dict[str, Any]] | None = None, response: Any = None
    ) -> None:
        super().__init__(message, response=response)
        self.errors = errors or []


class EndpointNotFoundError(RelayError):
    """No webhook endpoint is registered under the given id."""

    def __init__(self, message: str, *, endpoint_id: str = "") -> None:
        super().__init__(message)
        self.endpoint_id = endpoint_id


class ProviderNotFoundError(RelayError):
    """No AI provider is registered under the given id."""

    def __init__(self, message: str, *, provider_id: str = "") -> None:
        super().__init__(message)
        self.provider_id = provider_id


class NoActiveProviderError(RelayError):
    """Generation was requested while no provider is active.

    Enable a provider, test it, then call set_active_provider().
    """


class ConnectionError(RelayError):
    """Failed to connect to a provider endpoint."""


class TimeoutError(RelayError):
    """Request to a provider endpoint timed out."""


class ProviderAPIError(RelayError):
    """A provider answered with a non-success HTTP status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        provider: str | None = None,
        response: Any = None,
    ) -> None:
        super().__init__(message, response=response)
        self.status_code = status_code
        self.provider = provider


class ProviderResponseError(RelayError):
    """A provider answered successfully but the body could not be understood."""


class GenerationError(RelayError):
    """Generation failed on the active provider and on every fallback."""

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class StoreError(RelayError):
    """Reading or writing the key-value store failed."""
