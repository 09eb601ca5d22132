"""Generic codec for self-hosted and unknown providers."""

from __future__ import annotations

import json
from typing import Any

import httpx

from relaykit.exceptions import ProviderAPIError
from relaykit.families.base import (
    ProviderCodec,
    WireRequest,
    resolve_max_tokens,
    resolve_temperature,
    total_tokens,
)
from relaykit.models.provider import AIProvider, Completion, GenerationOptions


class CustomCodec(ProviderCodec):
    """Completion-style request with a best-effort response decoder.

    The decoder takes the first non-empty value of, in order:

    1. ``choices[0].text``
    2. ``choices[0].message.content``
    3. ``completion``
    4. ``text``
    5. ``response``

    and otherwise returns the whole body serialized as JSON, so a response
    is never silently empty.
    """

    label = "Custom provider"

    def encode_request(
        self, provider: AIProvider, prompt: str, options: GenerationOptions
    ) -> WireRequest:
        return WireRequest(
            url=provider.endpoint,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {provider.api_key}",
                **provider.headers,
            },
            body={
                "model": provider.model,
                "prompt": prompt,
                "max_tokens": resolve_max_tokens(provider, options),
                "temperature": resolve_temperature(provider, options),
                **options.custom_params,
            },
        )

    def raise_for_status(self, response: httpx.Response, provider: AIProvider) -> None:
        if response.is_success:
            return
        raise ProviderAPIError(
            f"{self.label} API error: {response.status_code} {response.reason_phrase}",
            status_code=response.status_code,
            provider=provider.name,
            response=response,
        )

    def decode_response(self, data: Any) -> Completion:
        if isinstance(data, str):
            # Plain-text body
            return Completion(content=data)
        content = _first_text(data) or json.dumps(data)
        tokens = total_tokens(data) if isinstance(data, dict) else 0
        return Completion(content=content, tokens_used=tokens)


def _first_text(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None

    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        choice = choices[0]
        if choice.get("text"):
            return choice["text"]
        message = choice.get("message")
        if isinstance(message, dict) and message.get("content"):
            return message["content"]

    for key in ("completion", "text", "response"):
        value = data.get(key)
        if value:
            return value if isinstance(value, str) else json.dumps(value)
    return None
