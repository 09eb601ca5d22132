"""Tests for the webhook dispatcher."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx
from httpx import Response

from relaykit.dispatcher import WEBHOOK_USER_AGENT, WebhookDispatcher
from relaykit.exceptions import EndpointNotFoundError, StoreError
from relaykit.models.webhook import DeliveryLogEntry, WebhookEndpoint, WebhookPayload
from relaykit.signing import verify_signature
from relaykit.store import WEBHOOK_LOGS_KEY, MemoryStore

HOOK_URL = "https://example.com/hook"

OTHER_URL = "https://other.example.com/hook"

PAYLOAD = {"event": "post.created", "timestamp": "2024-01-01T00:00:00.000Z", "data": {"id": 1}}


class FailingStore(MemoryStore):
    """Store whose writes always fail."""

    def set(self, key: str, value: Any) -> None:
        raise StoreError("disk full")

    def delete(self, key: str) -> None:
        raise StoreError("disk full")


def _entry(index: int, webhook_id: str = "hook-1", **overrides: Any) -> DeliveryLogEntry:
    values: dict[str, Any] = {
        "timestamp": f"2024-01-01T00:00:{index:02d}.000Z",
        "webhook_id": webhook_id,
        "webhook_name": "CRM",
        "url": HOOK_URL,
        "event": "post.created",
        "success": True,
        "status": 200,
        "response_time": 100,
    }
    values.update(overrides)
    return DeliveryLogEntry(**values)


class TestDeliver:
    """Single delivery attempts."""

    @pytest.mark.anyio
    @respx.mock
    async def test_successful_delivery(self, make_endpoint: Callable[..., WebhookEndpoint]) -> None:
        route = respx.post(HOOK_URL).mock(return_value=Response(200, json={"ok": True}))
        endpoint = make_endpoint()
        dispatcher = WebhookDispatcher([endpoint])

        entry = await dispatcher.deliver(endpoint, PAYLOAD)

        assert route.called
        assert entry.success is True
        assert entry.status == 200
        assert entry.error is None
        assert entry.webhook_id == "hook-1"
        assert entry.event == "post.created"
        assert entry.payload == PAYLOAD
        assert dispatcher.get_logs() == [entry]
        assert json.loads(route.calls.last.request.content) == PAYLOAD
        await dispatcher.close()

    @pytest.mark.anyio
    @respx.mock
    async def test_standard_headers(self, make_endpoint: Callable[..., WebhookEndpoint]) -> None:
        route = respx.post(HOOK_URL).mock(return_value=Response(204))
        endpoint = make_endpoint(headers={"X-Tenant": "acme"})
        dispatcher = WebhookDispatcher([endpoint])

        entry = await dispatcher.deliver(endpoint, PAYLOAD)

        headers = route.calls.last.request.headers
        assert headers["Content-Type"] == "application/json"
        assert headers["User-Agent"] == WEBHOOK_USER_AGENT
        assert headers["X-Webhook-Event"] == "post.created"
        assert headers["X-Webhook-Timestamp"] == entry.timestamp
        assert headers["X-Tenant"] == "acme"
        assert "X-Webhook-Signature" not in headers

    @pytest.mark.anyio
    @respx.mock
    async def test_signed_delivery(self, make_endpoint: Callable[..., WebhookEndpoint]) -> None:
        route = respx.post(HOOK_URL).mock(return_value=Response(200))
        endpoint = make_endpoint(secret="s3cret")
        dispatcher = WebhookDispatcher([endpoint])

        await dispatcher.deliver(endpoint, PAYLOAD)

        request = route.calls.last.request
        signature = request.headers["X-Webhook-Signature"]
        assert signature.startswith("sha256=")
        assert verify_signature("s3cret", request.content, signature)

    @pytest.mark.anyio
    @respx.mock
    async def test_custom_headers_cannot_replace_signature(
        self, make_endpoint: Callable[..., WebhookEndpoint]
    ) -> None:
        route = respx.post(HOOK_URL).mock(return_value=Response(200))
        endpoint = make_endpoint(
            secret="s3cret",
            headers={"X-Webhook-Signature": "forged", "User-Agent": "custom-agent"},
        )
        dispatcher = WebhookDispatcher([endpoint])

        await dispatcher.deliver(endpoint, PAYLOAD)

        request = route.calls.last.request
        assert request.headers["User-Agent"] == "custom-agent"
        assert request.headers["X-Webhook-Signature"] != "forged"
        assert verify_signature("s3cret", request.content, request.headers["X-Webhook-Signature"])

    @pytest.mark.anyio
    @respx.mock
    async def test_http_error_is_recorded(self, make_endpoint: Callable[..., WebhookEndpoint]) -> None:
        respx.post(HOOK_URL).mock(return_value=Response(404))
        endpoint = make_endpoint()
        dispatcher = WebhookDispatcher([endpoint])

        entry = await dispatcher.deliver(endpoint, PAYLOAD)

        assert entry.success is False
        assert entry.status == 404
        assert entry.error == "HTTP 404: Not Found"

    @pytest.mark.anyio
    @respx.mock
    async def test_timeout_is_recorded(self, make_endpoint: Callable[..., WebhookEndpoint]) -> None:
        respx.post(HOOK_URL).mock(side_effect=httpx.ReadTimeout("read timed out"))
        endpoint = make_endpoint()
        dispatcher = WebhookDispatcher([endpoint])

        entry = await dispatcher.deliver(endpoint, PAYLOAD)

        assert entry.success is False
        assert entry.status is None
        assert entry.error == "Request timeout"

    @pytest.mark.anyio
    @respx.mock
    async def test_transport_error_is_recorded(
        self, make_endpoint: Callable[..., WebhookEndpoint]
    ) -> None:
        respx.post(HOOK_URL).mock(side_effect=httpx.ConnectError("connection refused"))
        endpoint = make_endpoint()
        dispatcher = WebhookDispatcher([endpoint])

        entry = await dispatcher.deliver(endpoint, PAYLOAD)

        assert entry.success is False
        assert entry.status is None
        assert "connection refused" in (entry.error or "")

    @pytest.mark.anyio
    @respx.mock
    async def test_counters_are_updated(self, make_endpoint: Callable[..., WebhookEndpoint]) -> None:
        respx.post(HOOK_URL).mock(side_effect=[Response(200), Response(500)])
        endpoint = make_endpoint()
        dispatcher = WebhookDispatcher([endpoint])

        await dispatcher.deliver(endpoint, PAYLOAD)
        await dispatcher.deliver(endpoint, PAYLOAD)

        assert endpoint.total_calls == 2
        assert endpoint.successful_calls == 1
        assert endpoint.failed_calls == 1
        assert endpoint.last_triggered is not None

    @pytest.mark.anyio
    @respx.mock
    async def test_accepts_payload_model(self, make_endpoint: Callable[..., WebhookEndpoint]) -> None:
        route = respx.post(HOOK_URL).mock(return_value=Response(200))
        endpoint = make_endpoint()
        dispatcher = WebhookDispatcher([endpoint])

        await dispatcher.deliver(endpoint, WebhookPayload.model_validate(PAYLOAD))

        assert json.loads(route.calls.last.request.content) == PAYLOAD

    @pytest.mark.anyio
    @respx.mock
    async def test_signing_failure_sends_unsigned(
        self, make_endpoint: Callable[..., WebhookEndpoint]
    ) -> None:
        route = respx.post(HOOK_URL).mock(return_value=Response(200))
        endpoint = make_endpoint(secret="s3cret")
        dispatcher = WebhookDispatcher([endpoint])

        with patch(
            "relaykit.dispatcher.generate_signature", side_effect=ValueError("bad secret")
        ) as sign:
            entry = await dispatcher.deliver(endpoint, PAYLOAD)

        sign.assert_called_once()
        assert route.called
        assert "X-Webhook-Signature" not in route.calls.last.request.headers
        assert entry.success is True
        assert dispatcher.get_logs() == [entry]

    @pytest.mark.anyio
    async def test_unserializable_payload_is_recorded(
        self, make_endpoint: Callable[..., WebhookEndpoint]
    ) -> None:
        endpoint = make_endpoint()
        dispatcher = WebhookDispatcher([endpoint])

        entry = await dispatcher.deliver(endpoint, {**PAYLOAD, "data": {"obj": object()}})

        assert entry.success is False
        assert entry.status is None
        assert (entry.error or "").startswith("Failed to serialize payload")
        assert endpoint.failed_calls == 1
        assert dispatcher.get_logs() == [entry]


class TestTriggerEvent:
    """Event fan-out to subscribers."""

    @pytest.mark.anyio
    @respx.mock(assert_all_called=False)
    async def test_only_enabled_subscribers_are_called(
        self,
        respx_mock: respx.MockRouter,
        make_endpoint: Callable[..., WebhookEndpoint]
    ) -> None:
        subscribed = respx_mock.post(HOOK_URL).mock(return_value=Response(200))
        disabled = respx_mock.post("https://disabled.example.com/hook").mock(return_value=Response(200))
        unsubscribed = respx_mock.post(OTHER_URL).mock(return_value=Response(200))
        dispatcher = WebhookDispatcher(
            [
                make_endpoint(id="a"),
                make_endpoint(id="b", url="https://disabled.example.com/hook", enabled=False),
                make_endpoint(id="c", url=OTHER_URL, events=["contact.added"]),
            ]
        )

        results = await dispatcher.trigger_event("post.created", {"id": 42})

        assert [entry.webhook_id for entry in results] == ["a"]
        assert subscribed.call_count == 1
        assert not disabled.called
        assert not unsubscribed.called

    @pytest.mark.anyio
    @respx.mock
    async def test_shared_payload_in_registry_order(
        self, make_endpoint: Callable[..., WebhookEndpoint]
    ) -> None:
        first = respx.post(HOOK_URL).mock(return_value=Response(200))
        second = respx.post(OTHER_URL).mock(return_value=Response(200))
        dispatcher = WebhookDispatcher(
            [make_endpoint(id="a"), make_endpoint(id="b", url=OTHER_URL)]
        )

        results = await dispatcher.trigger_event("post.created", {"id": 42})

        assert [entry.webhook_id for entry in results] == ["a", "b"]
        # Newest first
        assert [entry.webhook_id for entry in dispatcher.get_logs()] == ["b", "a"]
        body_a = json.loads(first.calls.last.request.content)
        body_b = json.loads(second.calls.last.request.content)
        assert body_a == body_b
        assert body_a["event"] == "post.created"
        assert body_a["data"] == {"id": 42}
        assert body_a["timestamp"].endswith("Z")

    @pytest.mark.anyio
    @respx.mock(assert_all_called=False)
    async def test_no_subscribers(self, respx_mock: respx.MockRouter, make_endpoint: Callable[..., WebhookEndpoint]) -> None:
        route = respx_mock.post(HOOK_URL).mock(return_value=Response(200))
        dispatcher = WebhookDispatcher([make_endpoint()])

        assert await dispatcher.trigger_event("contact.added", {}) == []
        assert not route.called

    @pytest.mark.anyio
    @respx.mock(assert_all_called=False)
    async def test_unserializable_data_fails_every_subscriber(
        self,
        respx_mock: respx.MockRouter,
        make_endpoint: Callable[..., WebhookEndpoint]
    ) -> None:
        first = respx_mock.post(HOOK_URL).mock(return_value=Response(200))
        second = respx_mock.post(OTHER_URL).mock(return_value=Response(200))
        dispatcher = WebhookDispatcher(
            [make_endpoint(id="a"), make_endpoint(id="b", url=OTHER_URL)]
        )

        results = await dispatcher.trigger_event("post.created", {"obj": object()})

        assert [entry.webhook_id for entry in results] == ["a", "b"]
        assert all(entry.success is False for entry in results)
        assert all("Failed to serialize payload" in (entry.error or "") for entry in results)
        assert not first.called
        assert not second.called

    @pytest.mark.anyio
    @respx.mock(assert_all_called=False)
    async def test_invalid_header_does_not_stop_fan_out(
        self,
        respx_mock: respx.MockRouter,
        make_endpoint: Callable[..., WebhookEndpoint]
    ) -> None:
        first = respx_mock.post(HOOK_URL).mock(return_value=Response(200))
        second = respx_mock.post(OTHER_URL).mock(return_value=Response(200))
        dispatcher = WebhookDispatcher(
            [
                make_endpoint(id="a", headers={"X-Team": "Café"}),
                make_endpoint(id="b", url=OTHER_URL),
            ]
        )

        results = await dispatcher.trigger_event("post.created", {"id": 42})

        assert [entry.webhook_id for entry in results] == ["a", "b"]
        assert results[0].success is False
        assert "Invalid header value" in (results[0].error or "")
        assert not first.called
        assert results[1].success is True
        assert second.call_count == 1

    @pytest.mark.anyio
    @respx.mock
    async def test_failed_delivery_is_retried_with_backoff(
        self, make_endpoint: Callable[..., WebhookEndpoint]
    ) -> None:
        route = respx.post(HOOK_URL).mock(return_value=Response(500))
        dispatcher = WebhookDispatcher([make_endpoint(retry_attempts=3)])

        with patch("relaykit.dispatcher._backoff", new=AsyncMock()) as backoff:
            results = await dispatcher.trigger_event("post.created", {})

        assert route.call_count == 4
        assert len(dispatcher.get_logs()) == 4
        assert len(results) == 1
        assert results[0].success is False
        assert [c.args[0] for c in backoff.await_args_list] == [1.0, 2.0, 4.0]

    @pytest.mark.anyio
    @respx.mock
    async def test_retries_stop_at_first_success(
        self, make_endpoint: Callable[..., WebhookEndpoint]
    ) -> None:
        route = respx.post(HOOK_URL).mock(side_effect=[Response(503), Response(200)])
        dispatcher = WebhookDispatcher([make_endpoint(retry_attempts=3)])

        with patch("relaykit.dispatcher._backoff", new=AsyncMock()) as backoff:
            results = await dispatcher.trigger_event("post.created", {})

        assert route.call_count == 2
        assert backoff.await_count == 1
        # The first-attempt entry is what trigger_event reports
        assert results[0].success is False
        logs = dispatcher.get_logs()
        assert [entry.success for entry in logs] == [True, False]

    @pytest.mark.anyio
    @respx.mock
    async def test_timeout_without_retry_budget(
        self, make_endpoint: Callable[..., WebhookEndpoint]
    ) -> None:
        respx.post(HOOK_URL).mock(side_effect=httpx.ConnectTimeout("timed out"))
        dispatcher = WebhookDispatcher(
            [make_endpoint(events=["test.webhook"], timeout=100, retry_attempts=0)]
        )

        with patch("relaykit.dispatcher._backoff", new=AsyncMock()) as backoff:
            results = await dispatcher.trigger_event("test.webhook", {})

        assert len(results) == 1
        assert results[0].success is False
        assert results[0].error == "Request timeout"
        assert len(dispatcher.get_logs()) == 1
        backoff.assert_not_awaited()

    @pytest.mark.anyio
    @respx.mock
    async def test_convenience_methods_use_event_names(
        self, make_endpoint: Callable[..., WebhookEndpoint]
    ) -> None:
        route = respx.post(HOOK_URL).mock(return_value=Response(200))
        events = [
            "post.created",
            "post.scheduled",
            "response.generated",
            "response.posted",
            "platform.connected",
            "platform.error",
            "contact.added",
            "interaction.logged",
            "automation.triggered",
        ]
        dispatcher = WebhookDispatcher([make_endpoint(events=events)])

        await dispatcher.on_post_created({})
        await dispatcher.on_post_scheduled({})
        await dispatcher.on_response_generated({})
        await dispatcher.on_response_posted({})
        await dispatcher.on_platform_connected({})
        await dispatcher.on_platform_error({})
        await dispatcher.on_contact_added({})
        await dispatcher.on_interaction_logged({})
        await dispatcher.on_automation_triggered({})

        sent = [json.loads(call.request.content)["event"] for call in route.calls]
        assert sent == events

    @pytest.mark.anyio
    @respx.mock(assert_all_called=False)
    async def test_set_endpoints_replaces_registry(
        self,
        respx_mock: respx.MockRouter,
        make_endpoint: Callable[..., WebhookEndpoint]
    ) -> None:
        old = respx_mock.post(HOOK_URL).mock(return_value=Response(200))
        new = respx_mock.post(OTHER_URL).mock(return_value=Response(200))
        dispatcher = WebhookDispatcher([make_endpoint()])

        dispatcher.set_endpoints([make_endpoint(id="new", url=OTHER_URL)])
        await dispatcher.trigger_event("post.created", {})

        assert not old.called
        assert new.called


class TestTestEndpoint:
    """Manual test deliveries."""

    @pytest.mark.anyio
    @respx.mock
    async def test_sends_test_event_once(self, make_endpoint: Callable[..., WebhookEndpoint]) -> None:
        route = respx.post(HOOK_URL).mock(return_value=Response(500))
        dispatcher = WebhookDispatcher([make_endpoint(events=[], retry_attempts=3)])

        entry = await dispatcher.test_endpoint("hook-1")

        assert route.call_count == 1
        assert entry.event == "test.webhook"
        body = json.loads(route.calls.last.request.content)
        assert body["data"]["test"] is True
        assert body["data"]["webhook_id"] == "hook-1"

    @pytest.mark.anyio
    async def test_unknown_endpoint(self) -> None:
        dispatcher = WebhookDispatcher()

        with pytest.raises(EndpointNotFoundError):
            await dispatcher.test_endpoint("missing")


class TestLogs:
    """Log retention, persistence and statistics."""

    @pytest.mark.anyio
    @respx.mock
    async def test_log_is_capped_fifo(self, make_endpoint: Callable[..., WebhookEndpoint]) -> None:
        respx.post(HOOK_URL).mock(return_value=Response(200))
        endpoint = make_endpoint()
        dispatcher = WebhookDispatcher([endpoint], max_logs=5)

        for i in range(8):
            await dispatcher.deliver(endpoint, {**PAYLOAD, "data": {"n": i}})

        logs = dispatcher.get_logs()
        assert len(logs) == 5
        assert [entry.payload["data"]["n"] for entry in logs] == [7, 6, 5, 4, 3]

    @pytest.mark.anyio
    @respx.mock
    async def test_snapshot_is_persisted(
        self, make_endpoint: Callable[..., WebhookEndpoint], store: MemoryStore
    ) -> None:
        respx.post(HOOK_URL).mock(return_value=Response(200))
        endpoint = make_endpoint()
        dispatcher = WebhookDispatcher([endpoint], store=store, snapshot_size=3)

        for _ in range(5):
            await dispatcher.deliver(endpoint, PAYLOAD)

        snapshot = store.get(WEBHOOK_LOGS_KEY)
        assert len(snapshot) == 3
        assert snapshot[0] == dispatcher.get_logs()[0].model_dump(mode="json")

    def test_logs_are_loaded_from_store(self, store: MemoryStore) -> None:
        store.set(WEBHOOK_LOGS_KEY, [_entry(2).model_dump(mode="json"), _entry(1).model_dump()])

        dispatcher = WebhookDispatcher(store=store)

        assert [entry.timestamp for entry in dispatcher.get_logs()] == [
            "2024-01-01T00:00:02.000Z",
            "2024-01-01T00:00:01.000Z",
        ]

    def test_corrupt_snapshot_is_ignored(self, store: MemoryStore) -> None:
        store.set(WEBHOOK_LOGS_KEY, [{"unexpected": True}])

        dispatcher = WebhookDispatcher(store=store)

        assert dispatcher.get_logs() == []

    @pytest.mark.anyio
    @respx.mock
    async def test_store_failures_do_not_interrupt_delivery(
        self, make_endpoint: Callable[..., WebhookEndpoint]
    ) -> None:
        respx.post(HOOK_URL).mock(return_value=Response(200))
        endpoint = make_endpoint()
        dispatcher = WebhookDispatcher([endpoint], store=FailingStore())

        entry = await dispatcher.deliver(endpoint, PAYLOAD)
        dispatcher.clear_logs()

        assert entry.success is True
        assert dispatcher.get_logs() == []

    def test_clear_logs_removes_snapshot(self, store: MemoryStore) -> None:
        store.set(WEBHOOK_LOGS_KEY, [_entry(1).model_dump(mode="json")])
        dispatcher = WebhookDispatcher(store=store)

        dispatcher.clear_logs()

        assert dispatcher.get_logs() == []
        assert store.get(WEBHOOK_LOGS_KEY) is None

    def test_stats_without_logs_are_zero(self) -> None:
        stats = WebhookDispatcher().get_webhook_stats("hook-1")

        assert stats.total_calls == 0
        assert stats.successful_calls == 0
        assert stats.failed_calls == 0
        assert stats.success_rate == 0
        assert stats.average_response_time == 0

    def test_stats_are_aggregated_per_endpoint(self, store: MemoryStore) -> None:
        entries = [
            _entry(1, response_time=100),
            _entry(2, response_time=200, success=False, status=500),
            _entry(3, response_time=101),
            _entry(4, webhook_id="other", response_time=9999),
        ]
        store.set(WEBHOOK_LOGS_KEY, [entry.model_dump(mode="json") for entry in entries])
        dispatcher = WebhookDispatcher(store=store)

        stats = dispatcher.get_webhook_stats("hook-1")

        assert stats.total_calls == 3
        assert stats.successful_calls == 2
        assert stats.failed_calls == 1
        assert stats.success_rate == 67
        # (100 + 200 + 101) / 3 = 133.67
        assert stats.average_response_time == 134

    def test_get_endpoint(self, make_endpoint: Callable[..., WebhookEndpoint]) -> None:
        endpoint = make_endpoint()
        dispatcher = WebhookDispatcher([endpoint])

        assert dispatcher.get_endpoint("hook-1") is endpoint
        with pytest.raises(EndpointNotFoundError):
            dispatcher.get_endpoint("missing")
