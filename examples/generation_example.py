#!/usr/bin/env python3
"""Example script demonstrating generation with provider fallback."""

import os

import anyio

from relaykit import GenerationGateway, ProviderStatus, RelayError, default_providers

# Configuration - set these environment variables before running
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY", "")


def build_gateway() -> GenerationGateway:
    providers = default_providers()
    for provider_id, api_key in (("openai", OPENAI_API_KEY), ("claude", ANTHROPIC_API_KEY)):
        provider = providers[provider_id]
        provider.api_key = api_key
        provider.enabled = bool(api_key)
        # Skip the connection test for the example
        provider.status = ProviderStatus.CONNECTED
    return GenerationGateway(providers)


async def main():
    print("=" * 60)
    print("Generate with Fallback")
    print("=" * 60)

    async with build_gateway() as gateway:
        active = gateway.active_provider
        print(f"Active provider: {active.name if active else 'none'}")

        try:
            result = await gateway.generate_content(
                "Write a one-line tweet about local SEO.",
                {"max_tokens": 60, "temperature": 0.5},
            )
        except RelayError as e:
            print(f"Failed: {e}")
            return

        print(f"Content: {result.content}")
        print(f"Provider: {result.provider} ({result.model})")
        print(f"Tokens: {result.tokens_used}")
        if result.fallback:
            print(f"Fell back from: {result.fallback_from}")


if __name__ == "__main__":
    anyio.run(main)
