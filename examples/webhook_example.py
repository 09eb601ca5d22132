#!/usr/bin/env python3
"""Example script demonstrating signed webhook delivery."""

import os

import anyio

from relaykit import WebhookDispatcher, WebhookEndpoint, WebhookEvent

# Configuration - set these environment variables before running
WEBHOOK_URL = os.environ.get("RELAY_EXAMPLE_WEBHOOK_URL", "https://httpbin.org/post")
WEBHOOK_SECRET = os.environ.get("RELAY_EXAMPLE_WEBHOOK_SECRET", "change-me")


async def example_trigger_event():
    """Example: Fan an event out to every subscriber."""
    print("=" * 60)
    print("Example 1: Trigger an Event")
    print("=" * 60)

    endpoint = WebhookEndpoint(
        name="CRM",
        url=WEBHOOK_URL,
        events=[WebhookEvent.CONTACT_ADDED.value, WebhookEvent.POST_CREATED.value],
        secret=WEBHOOK_SECRET,
        retry_attempts=2,
    )

    async with WebhookDispatcher([endpoint]) as dispatcher:
        entries = await dispatcher.on_contact_added({"email": "jane@example.com"})

        for entry in entries:
            status = "ok" if entry.success else entry.error
            print(f"{entry.webhook_name}: {status} ({entry.response_time}ms)")

        stats = dispatcher.get_webhook_stats(endpoint.id)
        print(f"Success rate: {stats.success_rate}% over {stats.total_calls} attempt(s)")
    print()


async def example_test_endpoint():
    """Example: Send a single test delivery."""
    print("=" * 60)
    print("Example 2: Test an Endpoint")
    print("=" * 60)

    endpoint = WebhookEndpoint(name="Zapier", url=WEBHOOK_URL, events=[])

    async with WebhookDispatcher([endpoint]) as dispatcher:
        entry = await dispatcher.test_endpoint(endpoint.id)
        print(f"Status: {entry.status}")
        print(f"Error: {entry.error or '-'}")
    print()


async def main():
    await example_trigger_event()
    await example_test_endpoint()


if __name__ == "__main__":
    anyio.run(main)
