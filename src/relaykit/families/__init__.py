"""Request/response codecs, one per provider family."""

from __future__ import annotations

from relaykit.families.base import ProviderCodec, WireRequest
from relaykit.families.claude import ClaudeCodec
from relaykit.families.custom import CustomCodec
from relaykit.families.gemini import GeminiCodec
from relaykit.families.grok import GrokCodec
from relaykit.families.openai import OpenAICodec
from relaykit.models.provider import ProviderFamily

_CODECS: dict[ProviderFamily, ProviderCodec] = {
    ProviderFamily.OPENAI: OpenAICodec(),
    ProviderFamily.GEMINI: GeminiCodec(),
    ProviderFamily.GROK: GrokCodec(),
    ProviderFamily.CLAUDE: ClaudeCodec(),
    ProviderFamily.CUSTOM: CustomCodec(),
}


def get_codec(family: ProviderFamily | str) -> ProviderCodec:
    """Codec for a family; anything unrecognized uses the custom codec."""
    try:
        return _CODECS[ProviderFamily(family)]
    except ValueError:
        return _CODECS[ProviderFamily.CUSTOM]


__all__ = [
    "ProviderCodec",
    "WireRequest",
    "OpenAICodec",
    "GeminiCodec",
    "GrokCodec",
    "ClaudeCodec",
    "CustomCodec",
    "get_codec",
]
