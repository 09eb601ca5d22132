"""Anthropic messages codec."""

from __future__ import annotations

from typing import Any

from relaykit.families.base import (
    ProviderCodec,
    WireRequest,
    resolve_max_tokens,
    resolve_temperature,
)
from relaykit.models.provider import AIProvider, Completion, GenerationOptions

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeCodec(ProviderCodec):
    """Messages API with a top-level system prompt and x-api-key auth."""

    label = "Claude"
    default_system_prompt = "You are Claude, a helpful AI assistant."

    def encode_request(
        self, provider: AIProvider, prompt: str, options: GenerationOptions
    ) -> WireRequest:
        return WireRequest(
            url=provider.endpoint,
            headers={
                "Content-Type": "application/json",
                "x-api-key": provider.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                **provider.headers,
            },
            body={
                "model": provider.model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": resolve_max_tokens(provider, options),
                "temperature": resolve_temperature(provider, options),
                "system": options.system_prompt or self.default_system_prompt,
            },
        )

    def decode_response(self, data: Any) -> Completion:
        try:
            content = data["content"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise self.malformed(data) from None

        usage = data.get("usage") or {}
        tokens = int(usage.get("input_tokens") or 0) + int(usage.get("output_tokens") or 0)
        return Completion(content=content, tokens_used=tokens)
