"""Provider codec abstraction.

A codec translates a prompt into one vendor's request format and the
vendor's response back into a Completion. The gateway owns the HTTP call;
codecs are pure and never touch the network.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from relaykit._http import extract_error_message, parse_json
from relaykit.exceptions import ProviderAPIError, ProviderResponseError
from relaykit.models.provider import AIProvider, Completion, GenerationOptions


@dataclass
class WireRequest:
    """An encoded provider request."""

    url: str
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)


class ProviderCodec(ABC):
    """Encoder/decoder for one provider family."""

    # Used as the prefix of vendor error messages, e.g. "OpenAI API error: ..."
    label: str = "Provider"

    @abstractmethod
    def encode_request(
        self, provider: AIProvider, prompt: str, options: GenerationOptions
    ) -> WireRequest:
        """Build the vendor request body, headers and query string."""

    @abstractmethod
    def decode_response(self, data: Any) -> Completion:
        """Extract generated text and token usage from a success body."""

    def decode(self, data: Any) -> Completion:
        """Decode a success body, reporting any unexpected shape as malformed.

        Raises:
            ProviderResponseError: The body does not match the vendor format.
        """
        try:
            return self.decode_response(data)
        except (
            PydanticValidationError,
            AttributeError,
            KeyError,
            IndexError,
            TypeError,
            ValueError,
        ) as e:
            raise self.malformed(data) from e

    def raise_for_status(self, response: httpx.Response, provider: AIProvider) -> None:
        """Raise ProviderAPIError for a non-success response."""
        if response.is_success:
            return
        message = extract_error_message(parse_json(response), response)
        raise ProviderAPIError(
            f"{self.label} API error: {message}",
            status_code=response.status_code,
            provider=provider.name,
            response=response,
        )

    def malformed(self, data: Any) -> ProviderResponseError:
        return ProviderResponseError(f"Malformed response from {self.label} API", response=data)


def resolve_max_tokens(provider: AIProvider, options: GenerationOptions) -> int:
    """Per-call max tokens, falling back to the provider when omitted or zero."""
    return options.max_tokens or provider.max_tokens


def resolve_temperature(provider: AIProvider, options: GenerationOptions) -> float:
    """Per-call temperature; an explicit 0 is honored."""
    return options.temperature if options.temperature is not None else provider.temperature


def total_tokens(data: dict[str, Any]) -> int:
    """``usage.total_tokens`` or 0."""
    usage = data.get("usage") or {}
    return int(usage.get("total_tokens") or 0) if isinstance(usage, dict) else 0
