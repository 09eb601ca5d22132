"""Generation gateway.

Routes content-generation requests to the active AI provider, translating
them into that provider's wire format, and falls back to the other usable
providers when the active one fails.

Example:
    ```python
    from relaykit import GenerationGateway
    from relaykit.store import JsonFileStore

    gateway = GenerationGateway(store=JsonFileStore(Path("~/.relaykit/data").expanduser()))
    result = await gateway.generate_content("Write a tweet about SEO", {"max_tokens": 120})
    print(result.content, result.provider, result.fallback)
    ```
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from relaykit._http import AsyncHttpClient, parse_json
from relaykit.exceptions import (
    GenerationError,
    NoActiveProviderError,
    ProviderNotFoundError,
    RelayError,
    StoreError,
    ValidationError,
)
from relaykit.families import get_codec
from relaykit.models.common import utcnow
from relaykit.models.provider import (
    AIProvider,
    GenerationOptions,
    GenerationResult,
    ProviderCapabilities,
    ProviderFamily,
    ProviderStatus,
    ProviderTestResult,
)
from relaykit.store import PROVIDERS_KEY, KeyValueStore

logger = logging.getLogger("relaykit.gateway")

DEFAULT_TIMEOUT = 60.0
TEST_PROMPT = "Test connection"
TEST_MAX_TOKENS = 10

GROK_UPGRADE = {
    "name": "Grok 4",
    "model": "grok-4",
    "max_tokens": 8192,
}
GROK_UPGRADE_FEATURES = ["advanced-reasoning", "real-time-web"]


def default_providers() -> dict[str, AIProvider]:
    """Seed registry with the four built-in vendors, disabled and untested."""
    return {
        "openai": AIProvider(
            id="openai",
            name="OpenAI GPT-4",
            family=ProviderFamily.OPENAI,
            model="gpt-4-turbo",
            endpoint="https://api.openai.com/v1/chat/completions",
            max_tokens=4096,
            temperature=0.7,
            features=["text", "reasoning", "code"],
            tier="premium",
        ),
        "gemini": AIProvider(
            id="gemini",
            name="Google Gemini Pro",
            family=ProviderFamily.GEMINI,
            model="gemini-pro",
            endpoint="https://generativelanguage.googleapis.com/v1beta/models/gemini-pro:generateContent",
            max_tokens=8192,
            temperature=0.7,
            features=["text", "multimodal", "reasoning"],
            tier="premium",
        ),
        "grok": AIProvider(
            id="grok",
            name="Grok 3",
            family=ProviderFamily.GROK,
            model="grok-3",
            endpoint="https://api.x.ai/v1/chat/completions",
            max_tokens=4096,
            temperature=0.8,
            features=["text", "realtime", "humor"],
            tier="premium",
            upgradable=True,
        ),
        "claude": AIProvider(
            id="claude",
            name="Anthropic Claude",
            family=ProviderFamily.CLAUDE,
            model="claude-3-sonnet-20240229",
            endpoint="https://api.anthropic.com/v1/messages",
            max_tokens=4096,
            temperature=0.7,
            features=["text", "reasoning", "safety"],
            tier="premium",
        ),
    }


class GenerationGateway:
    """Dispatches generation requests across interchangeable AI providers.

    Exactly one provider is active at a time, and it is always enabled and
    connected. Fallback attempts receive their provider explicitly and never
    touch the active pointer, so concurrent calls cannot disturb each other.
    """

    def __init__(
        self,
        providers: Mapping[str, AIProvider | dict[str, Any]] | None = None,
        *,
        store: KeyValueStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the gateway.

        Args:
            providers: Provider registry keyed by id. Loaded from the store
                when omitted.
            store: Where the registry is persisted.
            http_client: Shared httpx client; one is created when omitted.
            timeout: Per-request deadline in seconds.
        """
        self._store = store
        self._http = AsyncHttpClient(timeout, client=http_client)
        self._providers: dict[str, AIProvider] = {}
        self._active_id: str | None = None

        if providers is not None:
            self._providers = _validate_registry(providers)
            self._derive_active()
        else:
            self.load()

    async def close(self) -> None:
        await self._http.close()

    async def __aenter__(self) -> GenerationGateway:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # Registry

    def load(self) -> None:
        """Load the registry from the store and pick the first usable provider."""
        if self._store is None:
            return
        try:
            saved = self._store.get(PROVIDERS_KEY)
        except StoreError:
            logger.warning("Failed to load AI providers", exc_info=True)
            saved = None
        self._providers = _validate_registry(saved or {})
        self._active_id = None
        self._derive_active()

    def save(self) -> None:
        """Persist the registry; failures are logged, not raised."""
        if self._store is None:
            return
        try:
            self._store.set(
                PROVIDERS_KEY,
                {pid: provider.model_dump(mode="json") for pid, provider in self._providers.items()},
            )
        except StoreError:
            logger.warning("Failed to save AI providers", exc_info=True)

    @property
    def providers(self) -> dict[str, AIProvider]:
        return dict(self._providers)

    @property
    def active_provider(self) -> AIProvider | None:
        if self._active_id is None:
            return None
        return self._providers.get(self._active_id)

    def get_provider(self, provider_id: str) -> AIProvider:
        try:
            return self._providers[provider_id]
        except KeyError:
            raise ProviderNotFoundError(
                f"Provider not found: {provider_id}", provider_id=provider_id
            ) from None

    def add_provider(self, provider: AIProvider) -> None:
        """Register or replace a provider."""
        self._providers[provider.id] = provider
        self._derive_active()
        self.save()

    def set_active_provider(self, provider_id: str) -> bool:
        """Make a provider active if it exists, is enabled and is connected."""
        provider = self._providers.get(provider_id)
        if provider is None or not provider.is_available:
            return False
        self._active_id = provider_id
        return True

    def update_provider(self, provider_id: str, **updates: Any) -> bool:
        """Merge field updates into a provider and persist the registry.

        Returns:
            False when no provider has that id.

        Raises:
            ValidationError: The merged record is invalid.
        """
        current = self._providers.get(provider_id)
        if current is None:
            return False

        self._providers[provider_id] = self._merge_updates(current, updates)
        self._derive_active()
        self.save()
        return True

    def _merge_updates(self, provider: AIProvider, updates: dict[str, Any]) -> AIProvider:
        """Validate a provider record with updates applied, without storing it."""
        try:
            return AIProvider.model_validate({**provider.model_dump(), **updates})
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid update for provider {provider.id}", errors=e.errors()
            ) from e

    def get_available_providers(self) -> list[AIProvider]:
        """Enabled and connected providers, in registry order."""
        return [provider for provider in self._providers.values() if provider.is_available]

    def get_provider_capabilities(self, provider_id: str) -> ProviderCapabilities | None:
        provider = self._providers.get(provider_id)
        if provider is None:
            return None
        return ProviderCapabilities(
            name=provider.name,
            model=provider.model,
            max_tokens=provider.max_tokens,
            features=list(provider.features),
            tier=provider.tier,
            supports_streaming="streaming" in provider.features,
            supports_images="multimodal" in provider.features,
            supports_code="code" in provider.features,
        )

    def upgrade_grok(self) -> bool:
        """Move every upgradable Grok provider to Grok 4. Irreversible.

        Every target is validated before any is replaced, so a failure leaves
        the registry untouched.

        Returns:
            Whether any provider was upgraded.

        Raises:
            ValidationError: An upgraded record is invalid.
        """
        upgraded: list[AIProvider] = []
        for provider in self._providers.values():
            if provider.family != ProviderFamily.GROK or not provider.upgradable:
                continue
            features = list(provider.features)
            features.extend(f for f in GROK_UPGRADE_FEATURES if f not in features)
            upgraded.append(
                self._merge_updates(
                    provider,
                    {
                        **GROK_UPGRADE,
                        "features": features,
                        "upgradable": False,
                        "upgraded": True,
                        "upgrade_date": utcnow(),
                    },
                )
            )
        if not upgraded:
            return False

        for provider in upgraded:
            self._providers[provider.id] = provider
            logger.info("Upgraded provider '%s' to %s", provider.id, GROK_UPGRADE["model"])
        self._derive_active()
        self.save()
        return True

    def _derive_active(self) -> None:
        """Keep the active pointer on a usable provider, or clear it."""
        active = self.active_provider
        if active is not None and active.is_available:
            return
        self._active_id = next(
            (pid for pid, provider in self._providers.items() if provider.is_available), None
        )

    # Generation

    async def generate_content(
        self, prompt: str, options: GenerationOptions | dict[str, Any] | None = None
    ) -> GenerationResult:
        """Generate content with the active provider, falling back on failure.

        Args:
            prompt: User prompt.
            options: Per-call overrides (system prompt, max tokens, ...).

        Returns:
            The generation result. ``fallback`` is set when another provider
            produced it.

        Raises:
            NoActiveProviderError: No provider is active.
            GenerationError: The active provider and every fallback failed.
        """
        provider = self.active_provider
        if provider is None:
            raise NoActiveProviderError("No active AI provider configured")
        opts = _coerce_options(options)

        try:
            return await self._generate_with(provider, prompt, opts)
        except RelayError as error:
            logger.warning("AI generation failed with %s: %s", provider.name, error)
            result = await self._try_fallback(provider, prompt, opts)
            if result is not None:
                return result
            raise GenerationError(
                f"AI generation failed: {error.message}", provider=provider.name
            ) from error

    async def _try_fallback(
        self, failed: AIProvider, prompt: str, options: GenerationOptions
    ) -> GenerationResult | None:
        """Try each other usable provider in turn; first success wins."""
        for provider in self.get_available_providers():
            if provider.id == failed.id:
                continue
            try:
                result = await self._generate_with(provider, prompt, options)
            except RelayError as error:
                logger.warning("Fallback provider %s also failed: %s", provider.name, error)
                continue
            logger.info(
                "Generated with fallback provider %s after %s failed", provider.name, failed.name
            )
            return result.model_copy(update={"fallback": True, "fallback_from": failed.name})
        return None

    async def _generate_with(
        self, provider: AIProvider, prompt: str, options: GenerationOptions
    ) -> GenerationResult:
        """One generation attempt against a specific provider, no fallback."""
        codec = get_codec(provider.family)
        started = time.perf_counter()

        request = codec.encode_request(provider, prompt, options)
        logger.debug("POST %s (%s, model=%s)", request.url, codec.label, provider.model)
        response = await self._http.post(
            request.url,
            json=request.body,
            headers=request.headers,
            params=request.params or None,
        )
        codec.raise_for_status(response, provider)

        data = parse_json(response)
        completion = codec.decode(data if data is not None else response.text)
        return GenerationResult(
            success=True,
            content=completion.content,
            provider=provider.name,
            model=provider.model,
            tokens_used=completion.tokens_used,
            response_time=round((time.perf_counter() - started) * 1000),
        )

    async def test_provider(self, provider_id: str) -> ProviderTestResult:
        """Send a minimal request to one provider and record the outcome.

        The provider's status, last_test and error fields are updated and
        the registry saved whether or not the call succeeds.

        Raises:
            ProviderNotFoundError: Unknown provider id.
            RelayError: The test call failed; raised after the status update.
        """
        provider = self.get_provider(provider_id)
        options = GenerationOptions(max_tokens=TEST_MAX_TOKENS)

        try:
            result = await self._generate_with(provider, TEST_PROMPT, options)
        except RelayError as error:
            self.update_provider(
                provider_id,
                status=ProviderStatus.ERROR,
                last_test=utcnow(),
                error=error.message,
            )
            raise

        self.update_provider(
            provider_id,
            status=ProviderStatus.CONNECTED,
            last_test=utcnow(),
            error=None,
        )
        return ProviderTestResult(success=True, result=result)


def _coerce_options(options: GenerationOptions | dict[str, Any] | None) -> GenerationOptions:
    if options is None:
        return GenerationOptions()
    if isinstance(options, GenerationOptions):
        return options
    try:
        return GenerationOptions.model_validate(options)
    except PydanticValidationError as e:
        raise ValidationError("Invalid generation options", errors=e.errors()) from e


def _validate_registry(
    providers: Mapping[str, AIProvider | dict[str, Any]],
) -> dict[str, AIProvider]:
    registry: dict[str, AIProvider] = {}
    for provider_id, record in providers.items():
        if isinstance(record, AIProvider):
            registry[provider_id] = record
            continue
        try:
            registry[provider_id] = AIProvider.model_validate({"id": provider_id, **record})
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid provider record: {provider_id}", errors=e.errors()
            ) from e
    return registry
