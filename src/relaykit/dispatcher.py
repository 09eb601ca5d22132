"""Webhook dispatcher.

Delivers application events to every registered endpoint that subscribes to
them, signing payloads when a secret is configured, retrying failures with
exponential backoff, and keeping a capped in-memory log of every attempt.

Example:
    ```python
    from relaykit import WebhookDispatcher, WebhookEndpoint

    endpoint = WebhookEndpoint(
        name="CRM",
        url="https://example.com/hook",
        events=["contact.added"],
        secret="s3cret",
    )
    async with WebhookDispatcher([endpoint]) as dispatcher:
        entries = await dispatcher.on_contact_added({"email": "a@example.com"})
    ```
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from typing import Any

import anyio
import httpx
from pydantic import ValidationError as PydanticValidationError

from relaykit._http import TIMEOUT_MESSAGE, AsyncHttpClient, status_line
from relaykit._version import __version__
from relaykit.exceptions import EndpointNotFoundError, RelayError, StoreError, TimeoutError
from relaykit.models.common import isoformat_ms, utcnow
from relaykit.models.webhook import (
    DeliveryLogEntry,
    WebhookEndpoint,
    WebhookEvent,
    WebhookPayload,
    WebhookStats,
)
from relaykit.signing import SIGNATURE_HEADER, generate_signature, serialize_payload
from relaykit.store import WEBHOOK_LOGS_KEY, KeyValueStore

logger = logging.getLogger("relaykit.dispatcher")

WEBHOOK_USER_AGENT = f"relaykit-webhook/{__version__}"

DEFAULT_MAX_LOGS = 1000
DEFAULT_SNAPSHOT_SIZE = 100
DEFAULT_TIMEOUT_MS = 30000
BACKOFF_BASE_SECONDS = 1.0


async def _backoff(delay: float) -> None:
    await anyio.sleep(delay)


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


class WebhookDispatcher:
    """Delivers events to subscribed webhook endpoints.

    The endpoint list is owned by the caller; the dispatcher only mutates
    per-endpoint counters and never persists endpoints itself. Delivery
    failures never raise, they become log entries.
    """

    def __init__(
        self,
        endpoints: Iterable[WebhookEndpoint] | None = None,
        *,
        store: KeyValueStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        max_logs: int = DEFAULT_MAX_LOGS,
        snapshot_size: int = DEFAULT_SNAPSHOT_SIZE,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            endpoints: Initial endpoint registry, in delivery order.
            store: Where the most recent log entries are persisted.
            http_client: Shared httpx client; one is created when omitted.
            max_logs: Maximum number of log entries kept in memory.
            snapshot_size: Number of newest entries handed to the store.
        """
        self._endpoints: list[WebhookEndpoint] = list(endpoints or [])
        self._store = store
        self._http = AsyncHttpClient(client=http_client)
        self._max_logs = max_logs
        self._snapshot_size = snapshot_size
        self._logs: list[DeliveryLogEntry] = []
        self._load_logs()

    async def close(self) -> None:
        await self._http.close()

    async def __aenter__(self) -> WebhookDispatcher:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # Registry

    @property
    def endpoints(self) -> list[WebhookEndpoint]:
        return list(self._endpoints)

    def set_endpoints(self, endpoints: Iterable[WebhookEndpoint]) -> None:
        """Replace the endpoint registry wholesale."""
        self._endpoints = list(endpoints)

    def get_endpoint(self, endpoint_id: str) -> WebhookEndpoint:
        """Look up a registered endpoint by id."""
        for endpoint in self._endpoints:
            if endpoint.id == endpoint_id:
                return endpoint
        raise EndpointNotFoundError(
            f"Webhook endpoint not found: {endpoint_id}", endpoint_id=endpoint_id
        )

    # Delivery

    async def deliver(
        self, endpoint: WebhookEndpoint, payload: WebhookPayload | dict[str, Any]
    ) -> DeliveryLogEntry:
        """Send a single POST attempt to an endpoint.

        Never raises for delivery failures; the outcome is in the returned
        log entry, which is also appended to the dispatcher log.
        """
        started = time.perf_counter()
        event = payload.event if isinstance(payload, WebhookPayload) else payload.get("event", "")
        entry = DeliveryLogEntry(
            timestamp=isoformat_ms(),
            webhook_id=endpoint.id,
            webhook_name=endpoint.name,
            url=endpoint.url,
            event=str(event),
        )

        try:
            if isinstance(payload, WebhookPayload):
                payload = payload.model_dump(mode="json")
            body = serialize_payload(payload)
        except (TypeError, ValueError) as e:
            # PydanticSerializationError is a ValueError
            entry.error = f"Failed to serialize payload: {e}"
        else:
            entry.payload = payload
            await self._send(endpoint, entry, body)

        entry.response_time = round((time.perf_counter() - started) * 1000)
        self._record_attempt(endpoint, entry)
        self._add_log(entry)

        if entry.success:
            logger.debug(
                "Delivered %s to '%s' (%s) in %dms",
                entry.event,
                endpoint.name,
                entry.status,
                entry.response_time,
            )
        else:
            logger.warning(
                "Delivery of %s to '%s' failed: %s", entry.event, endpoint.name, entry.error
            )
        return entry

    async def _send(self, endpoint: WebhookEndpoint, entry: DeliveryLogEntry, body: bytes) -> None:
        """POST a serialized body and record the outcome on the entry."""
        headers = {
            "Content-Type": "application/json",
            "User-Agent": WEBHOOK_USER_AGENT,
            "X-Webhook-Event": entry.event,
            "X-Webhook-Timestamp": entry.timestamp,
            **endpoint.headers,
        }
        if endpoint.secret:
            try:
                headers[SIGNATURE_HEADER] = generate_signature(endpoint.secret, body)
            except (TypeError, ValueError):
                logger.warning(
                    "Failed to sign payload for webhook '%s', sending unsigned",
                    endpoint.name,
                    exc_info=True,
                )

        timeout_ms = endpoint.timeout or DEFAULT_TIMEOUT_MS
        try:
            response = await self._http.post(
                endpoint.url,
                content=body,
                headers=headers,
                timeout=timeout_ms / 1000,
            )
        except TimeoutError:
            entry.error = TIMEOUT_MESSAGE
        except RelayError as e:
            entry.error = e.message
        else:
            entry.status = response.status_code
            entry.success = response.is_success
            if not response.is_success:
                entry.error = status_line(response)

    async def trigger_event(
        self, event_type: WebhookEvent | str, data: dict[str, Any] | None = None
    ) -> list[DeliveryLogEntry]:
        """Deliver an event to every enabled endpoint subscribed to it.

        Endpoints are served one at a time in registry order. A failed
        endpoint is retried to completion before the next one is contacted.

        Returns:
            The first-attempt log entry of each subscribed endpoint.
        """
        event = event_type.value if isinstance(event_type, WebhookEvent) else event_type
        subscribers = [endpoint for endpoint in self._endpoints if endpoint.subscribes_to(event)]
        payload = WebhookPayload(event=event, timestamp=isoformat_ms(), data=data or {})

        results: list[DeliveryLogEntry] = []
        for endpoint in subscribers:
            entry = await self.deliver(endpoint, payload)
            results.append(entry)
            if not entry.success and endpoint.retry_attempts > 0:
                await self._retry(endpoint, payload)
        return results

    async def _retry(self, endpoint: WebhookEndpoint, payload: WebhookPayload) -> None:
        """Retry a failed delivery with exponential backoff.

        Waits 1s, 2s, 4s, ... before successive retries and stops at the
        first success or when the endpoint's retry budget is spent.
        """
        for attempt in range(endpoint.retry_attempts):
            delay = (2**attempt) * BACKOFF_BASE_SECONDS
            logger.debug(
                "Retrying '%s' in %.1fs (%d/%d)",
                endpoint.name,
                delay,
                attempt + 1,
                endpoint.retry_attempts,
            )
            await _backoff(delay)
            entry = await self.deliver(endpoint, payload)
            if entry.success:
                return

    async def test_endpoint(self, endpoint_id: str) -> DeliveryLogEntry:
        """Send a single ``test.webhook`` delivery, without retries."""
        endpoint = self.get_endpoint(endpoint_id)
        payload = WebhookPayload(
            event=WebhookEvent.TEST_WEBHOOK.value,
            timestamp=isoformat_ms(),
            data={
                "test": True,
                "message": "This is a test webhook call",
                "webhook_id": endpoint_id,
            },
        )
        return await self.deliver(endpoint, payload)

    # Event shortcuts

    async def on_post_created(self, post: dict[str, Any]) -> list[DeliveryLogEntry]:
        return await self.trigger_event(WebhookEvent.POST_CREATED, post)

    async def on_post_scheduled(self, post: dict[str, Any]) -> list[DeliveryLogEntry]:
        return await self.trigger_event(WebhookEvent.POST_SCHEDULED, post)

    async def on_response_generated(self, response: dict[str, Any]) -> list[DeliveryLogEntry]:
        return await self.trigger_event(WebhookEvent.RESPONSE_GENERATED, response)

    async def on_response_posted(self, response: dict[str, Any]) -> list[DeliveryLogEntry]:
        return await self.trigger_event(WebhookEvent.RESPONSE_POSTED, response)

    async def on_platform_connected(self, platform: dict[str, Any]) -> list[DeliveryLogEntry]:
        return await self.trigger_event(WebhookEvent.PLATFORM_CONNECTED, platform)

    async def on_platform_error(self, error: dict[str, Any]) -> list[DeliveryLogEntry]:
        return await self.trigger_event(WebhookEvent.PLATFORM_ERROR, error)

    async def on_contact_added(self, contact: dict[str, Any]) -> list[DeliveryLogEntry]:
        return await self.trigger_event(WebhookEvent.CONTACT_ADDED, contact)

    async def on_interaction_logged(self, interaction: dict[str, Any]) -> list[DeliveryLogEntry]:
        return await self.trigger_event(WebhookEvent.INTERACTION_LOGGED, interaction)

    async def on_automation_triggered(self, automation: dict[str, Any]) -> list[DeliveryLogEntry]:
        return await self.trigger_event(WebhookEvent.AUTOMATION_TRIGGERED, automation)

    # Logs

    def get_logs(self) -> list[DeliveryLogEntry]:
        """All retained log entries, newest first."""
        return list(self._logs)

    def clear_logs(self) -> None:
        """Drop every log entry, including the persisted snapshot."""
        self._logs = []
        if self._store is None:
            return
        try:
            self._store.delete(WEBHOOK_LOGS_KEY)
        except StoreError:
            logger.warning("Failed to clear persisted webhook logs", exc_info=True)

    def get_webhook_stats(self, endpoint_id: str) -> WebhookStats:
        """Aggregate the retained log entries of one endpoint."""
        entries = [entry for entry in self._logs if entry.webhook_id == endpoint_id]
        if not entries:
            return WebhookStats()

        successful = sum(1 for entry in entries if entry.success)
        total_time = sum(entry.response_time for entry in entries)
        return WebhookStats(
            total_calls=len(entries),
            successful_calls=successful,
            failed_calls=len(entries) - successful,
            success_rate=_round_half_up(successful / len(entries) * 100),
            average_response_time=_round_half_up(total_time / len(entries)),
        )

    def _record_attempt(self, endpoint: WebhookEndpoint, entry: DeliveryLogEntry) -> None:
        endpoint.total_calls += 1
        if entry.success:
            endpoint.successful_calls += 1
        else:
            endpoint.failed_calls += 1
        endpoint.last_triggered = utcnow()

    def _add_log(self, entry: DeliveryLogEntry) -> None:
        self._logs.insert(0, entry)
        del self._logs[self._max_logs :]
        self._save_logs()

    def _save_logs(self) -> None:
        if self._store is None:
            return
        snapshot = [entry.model_dump(mode="json") for entry in self._logs[: self._snapshot_size]]
        try:
            self._store.set(WEBHOOK_LOGS_KEY, snapshot)
        except StoreError:
            logger.warning("Failed to save webhook logs", exc_info=True)

    def _load_logs(self) -> None:
        if self._store is None:
            return
        try:
            saved = self._store.get(WEBHOOK_LOGS_KEY)
            if saved:
                self._logs = [DeliveryLogEntry.model_validate(item) for item in saved][
                    : self._max_logs
                ]
        except (StoreError, PydanticValidationError, TypeError):
            logger.warning("Failed to load webhook logs", exc_info=True)
            self._logs = []
