"""Shared fixtures for relaykit unit tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from relaykit.models.provider import AIProvider, ProviderFamily, ProviderStatus
from relaykit.models.webhook import WebhookEndpoint
from relaykit.store import MemoryStore

HOOK_URL = "https://example.com/hook"
OPENAI_URL = "https://api.openai.test/v1/chat/completions"
CLAUDE_URL = "https://api.anthropic.test/v1/messages"
GEMINI_URL = "https://gemini.test/v1beta/models/gemini-pro:generateContent"
GROK_URL = "https://api.x.test/v1/chat/completions"
CUSTOM_URL = "https://llm.internal.test/generate"


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def make_endpoint() -> Callable[..., WebhookEndpoint]:
    """Factory for webhook endpoints with test-friendly defaults."""

    def _make(**overrides: Any) -> WebhookEndpoint:
        values: dict[str, Any] = {
            "id": "hook-1",
            "name": "CRM",
            "url": HOOK_URL,
            "events": ["post.created"],
            "retry_attempts": 0,
            "timeout": 5000,
        }
        values.update(overrides)
        return WebhookEndpoint(**values)

    return _make


@pytest.fixture
def make_provider() -> Callable[..., AIProvider]:
    """Factory for enabled, connected providers."""

    def _make(family: ProviderFamily = ProviderFamily.OPENAI, **overrides: Any) -> AIProvider:
        defaults: dict[ProviderFamily, dict[str, Any]] = {
            ProviderFamily.OPENAI: {"name": "OpenAI", "endpoint": OPENAI_URL, "model": "gpt-4"},
            ProviderFamily.CLAUDE: {
                "name": "Claude",
                "endpoint": CLAUDE_URL,
                "model": "claude-3-sonnet-20240229",
            },
            ProviderFamily.GEMINI: {"name": "Gemini", "endpoint": GEMINI_URL, "model": "gemini-pro"},
            ProviderFamily.GROK: {"name": "Grok 3", "endpoint": GROK_URL, "model": "grok-3"},
            ProviderFamily.CUSTOM: {"name": "Local", "endpoint": CUSTOM_URL, "model": "llama"},
        }
        values: dict[str, Any] = {
            "id": family.value,
            "family": family,
            "api_key": f"{family.value}-key",
            "max_tokens": 1024,
            "temperature": 0.7,
            "enabled": True,
            "status": ProviderStatus.CONNECTED,
            **defaults[family],
        }
        values.update(overrides)
        return AIProvider(**values)

    return _make


@pytest.fixture
def openai_completion() -> dict[str, Any]:
    return {
        "id": "chatcmpl-abc123",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "gpt-4",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": "Hello from OpenAI"},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 8, "total_tokens": 18},
    }


@pytest.fixture
def claude_message() -> dict[str, Any]:
    return {
        "id": "msg_01",
        "type": "message",
        "role": "assistant",
        "content": [{"type": "text", "text": "Hello from Claude"}],
        "usage": {"input_tokens": 12, "output_tokens": 30},
    }
