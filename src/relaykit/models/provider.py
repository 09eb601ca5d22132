"""AI provider and generation models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, field_validator, model_validator

from relaykit.models.common import RelayModel


class ProviderFamily(str, Enum):
    """Wire protocol spoken by a provider."""

    OPENAI = "openai"
    GEMINI = "gemini"
    GROK = "grok"
    CLAUDE = "claude"
    CUSTOM = "custom"


class ProviderStatus(str, Enum):
    """Connection status, driven by provider tests."""

    UNTESTED = "untested"
    CONNECTED = "connected"
    ERROR = "error"


# Display names used by older registries that predate the family field.
LEGACY_PROVIDER_NAMES = {
    "OpenAI GPT-4": ProviderFamily.OPENAI,
    "Google Gemini Pro": ProviderFamily.GEMINI,
    "Grok 3": ProviderFamily.GROK,
    "Grok 4": ProviderFamily.GROK,
    "Anthropic Claude": ProviderFamily.CLAUDE,
}


def infer_family(provider_id: str | None, name: str | None) -> ProviderFamily:
    """Guess the family of a record that does not declare one."""
    known = {family.value for family in ProviderFamily}
    if provider_id in known:
        return ProviderFamily(provider_id)
    return LEGACY_PROVIDER_NAMES.get(name or "", ProviderFamily.CUSTOM)


class AIProvider(RelayModel):
    """A configured generation backend."""

    id: str
    name: str
    family: ProviderFamily = ProviderFamily.CUSTOM
    endpoint: str
    api_key: str = ""
    model: str = ""
    max_tokens: int = Field(default=4096, gt=0)
    temperature: float = 0.7
    headers: dict[str, str] = Field(default_factory=dict)
    enabled: bool = False
    status: ProviderStatus = ProviderStatus.UNTESTED
    features: list[str] = Field(default_factory=list)
    tier: str = "custom"
    last_test: datetime | None = None
    error: str | None = None

    upgradable: bool = False
    upgraded: bool = False
    upgrade_date: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _fill_family(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("family"):
            data = {**data, "family": infer_family(data.get("id"), data.get("name"))}
        return data

    @field_validator("family", mode="before")
    @classmethod
    def _unknown_family_is_custom(cls, value: Any) -> Any:
        if isinstance(value, ProviderFamily):
            return value
        try:
            return ProviderFamily(value)
        except ValueError:
            return ProviderFamily.CUSTOM

    @property
    def is_available(self) -> bool:
        """Whether the provider may serve requests."""
        return self.enabled and self.status == ProviderStatus.CONNECTED


class GenerationOptions(RelayModel):
    """Per-call overrides for a generation request."""

    system_prompt: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    custom_params: dict[str, Any] = Field(default_factory=dict)


class Completion(RelayModel):
    """Text and usage decoded from a provider response."""

    content: str
    tokens_used: int = 0


class GenerationResult(RelayModel):
    """Normalized outcome of a generation call."""

    success: bool = True
    content: str
    provider: str
    model: str
    tokens_used: int = 0
    response_time: int = 0  # milliseconds
    fallback: bool = False
    fallback_from: str | None = None


class ProviderCapabilities(RelayModel):
    """What a provider advertises through its feature tags."""

    name: str
    model: str
    max_tokens: int
    features: list[str] = Field(default_factory=list)
    tier: str = "custom"
    supports_streaming: bool = False
    supports_images: bool = False
    supports_code: bool = False


class ProviderTestResult(RelayModel):
    """Result of a successful provider test."""

    success: bool
    result: GenerationResult
