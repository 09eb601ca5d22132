"""OpenAI chat-completions codec."""

from __future__ import annotations

from typing import Any

from relaykit.families.base import (
    ProviderCodec,
    WireRequest,
    resolve_max_tokens,
    resolve_temperature,
    total_tokens,
)
from relaykit.models.provider import AIProvider, Completion, GenerationOptions


class OpenAICodec(ProviderCodec):
    """Chat completions with a system and a user message, Bearer auth."""

    label = "OpenAI"
    default_system_prompt = "You are a helpful AI assistant."

    def encode_request(
        self, provider: AIProvider, prompt: str, options: GenerationOptions
    ) -> WireRequest:
        body: dict[str, Any] = {
            "model": provider.model,
            "messages": [
                {"role": "system", "content": options.system_prompt or self.default_system_prompt},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": resolve_max_tokens(provider, options),
            "temperature": resolve_temperature(provider, options),
        }
        body.update(self.sampling_params(options))
        return WireRequest(
            url=provider.endpoint,
            body=body,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {provider.api_key}",
                **provider.headers,
            },
        )

    def sampling_params(self, options: GenerationOptions) -> dict[str, Any]:
        return {
            "top_p": options.top_p or 1,
            "frequency_penalty": options.frequency_penalty or 0,
            "presence_penalty": options.presence_penalty or 0,
        }

    def decode_response(self, data: Any) -> Completion:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise self.malformed(data) from None
        return Completion(content=content or "", tokens_used=total_tokens(data))
