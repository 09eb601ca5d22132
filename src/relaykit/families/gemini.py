"""Google Gemini generateContent codec."""

from __future__ import annotations

from typing import Any

from relaykit.exceptions import ProviderResponseError
from relaykit.families.base import (
    ProviderCodec,
    WireRequest,
    resolve_max_tokens,
    resolve_temperature,
)
from relaykit.models.provider import AIProvider, Completion, GenerationOptions


class GeminiCodec(ProviderCodec):
    """Single-turn generateContent, API key in the query string."""

    label = "Gemini"

    def encode_request(
        self, provider: AIProvider, prompt: str, options: GenerationOptions
    ) -> WireRequest:
        return WireRequest(
            url=provider.endpoint,
            params={"key": provider.api_key},
            headers={"Content-Type": "application/json", **provider.headers},
            body={
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": resolve_temperature(provider, options),
                    "maxOutputTokens": resolve_max_tokens(provider, options),
                    "topP": options.top_p or 1,
                    "topK": options.top_k or 40,
                },
            },
        )

    def decode_response(self, data: Any) -> Completion:
        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not candidates:
            raise ProviderResponseError("No response from Gemini API", response=data)
        try:
            content = candidates[0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise self.malformed(data) from None

        usage = data.get("usageMetadata") or {}
        return Completion(content=content, tokens_used=int(usage.get("totalTokenCount") or 0))
