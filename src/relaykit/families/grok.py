"""xAI Grok codec (OpenAI-compatible chat completions)."""

from __future__ import annotations

from typing import Any

from relaykit.families.openai import OpenAICodec
from relaykit.models.provider import GenerationOptions


class GrokCodec(OpenAICodec):
    label = "Grok"
    default_system_prompt = (
        "You are Grok, a witty and helpful AI assistant with real-time knowledge."
    )

    def sampling_params(self, options: GenerationOptions) -> dict[str, Any]:
        return {"stream": False}
