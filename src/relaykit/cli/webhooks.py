"""Webhook CLI commands."""

from __future__ import annotations

from typing import Optional

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console

from relaykit._config import RelayConfig
from relaykit.cli._utils import (
    get_dispatcher,
    get_json_flag,
    get_store,
    handle_error,
    load_endpoints,
    mask_secret,
    output_json,
    output_table,
    parse_json_option,
    run,
    save_endpoints,
)
from relaykit.exceptions import EndpointNotFoundError, RelayError
from relaykit.models.webhook import DeliveryLogEntry, WebhookEndpoint, WebhookEvent, WebhookStats

app = typer.Typer(help="Webhook endpoint management and delivery.")
console = Console()

LOG_COLUMNS = [
    ("timestamp", "Time"),
    ("webhook_name", "Webhook"),
    ("event", "Event"),
    ("success", "OK"),
    ("status", "Status"),
    ("response_time", "ms"),
    ("error", "Error"),
]


def _find(endpoints: list[WebhookEndpoint], endpoint_id: str) -> WebhookEndpoint:
    for endpoint in endpoints:
        if endpoint.id == endpoint_id:
            return endpoint
    raise EndpointNotFoundError(
        f"Webhook endpoint not found: {endpoint_id}", endpoint_id=endpoint_id
    )


@app.command("list")
def list_webhooks(ctx: typer.Context) -> None:
    """List registered webhook endpoints."""
    try:
        endpoints = load_endpoints(get_store())
    except RelayError as e:
        handle_error(e)
        return

    if get_json_flag(ctx):
        output_json(endpoints)
        return
    if not endpoints:
        console.print("[dim]No webhooks registered.[/dim]")
        return

    output_table(
        endpoints,
        columns=[
            ("id", "ID"),
            ("name", "Name"),
            ("url", "URL"),
            ("events", "Events"),
            ("enabled", "Enabled"),
            ("total_calls", "Calls"),
            ("failed_calls", "Failed"),
            ("last_triggered", "Last Triggered"),
        ],
        title="Webhooks",
    )


@app.command("add")
def add(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", "-n", help="Display name"),
    url: str = typer.Option(..., "--url", "-u", help="Destination URL"),
    events: list[str] = typer.Option(..., "--event", "-e", help="Subscribed event (repeatable)"),
    headers: Optional[list[str]] = typer.Option(
        None,
        "--header",
        "-H",
        help="Extra header in Name=value format (repeatable)",
    ),
    secret: Optional[str] = typer.Option(None, "--secret", help="Signing secret"),
    retries: int = typer.Option(3, "--retries", help="Retry attempts after a failure"),
    timeout: Optional[int] = typer.Option(
        None, "--timeout", help="Request timeout in milliseconds (default from config)"
    ),
    disabled: bool = typer.Option(False, "--disabled", help="Register without enabling"),
) -> None:
    """Register a webhook endpoint.

    Example:
        relay webhooks add -n CRM -u https://example.com/hook -e contact.added --secret s3cret
    """
    known = {event.value for event in WebhookEvent}
    unknown = [event for event in events if event not in known]
    if unknown:
        raise typer.BadParameter(f"Unknown event(s): {', '.join(unknown)}", param_hint="--event")

    header_map: dict[str, str] = {}
    for header in headers or []:
        if "=" not in header:
            raise typer.BadParameter(f"Expected Name=value, got {header!r}", param_hint="--header")
        key, value = header.split("=", 1)
        header_map[key.strip()] = value.strip()

    try:
        endpoint = WebhookEndpoint(
            name=name,
            url=url,
            events=events,
            headers=header_map,
            secret=secret or None,
            enabled=not disabled,
            retry_attempts=retries,
            timeout=timeout or RelayConfig.load().webhook_timeout,
        )
    except PydanticValidationError as e:
        raise typer.BadParameter(str(e)) from None

    try:
        store = get_store()
        endpoints = load_endpoints(store)
        endpoints.append(endpoint)
        save_endpoints(store, endpoints)
    except RelayError as e:
        handle_error(e)
        return

    if get_json_flag(ctx):
        output_json(endpoint)
    else:
        console.print(f"[green]Registered webhook:[/green] {endpoint.id}")
        console.print(f"  Events: {', '.join(endpoint.events)}")
        console.print(f"  Secret: {mask_secret(endpoint.secret)}")


@app.command("remove")
def remove(endpoint_id: str = typer.Argument(..., help="Webhook ID")) -> None:
    """Remove a webhook endpoint."""
    try:
        store = get_store()
        endpoints = load_endpoints(store)
        _find(endpoints, endpoint_id)
        save_endpoints(store, [e for e in endpoints if e.id != endpoint_id])
    except RelayError as e:
        handle_error(e)
        return
    console.print(f"[green]Removed webhook:[/green] {endpoint_id}")


def _set_enabled(endpoint_id: str, enabled: bool) -> None:
    try:
        store = get_store()
        endpoints = load_endpoints(store)
        _find(endpoints, endpoint_id).enabled = enabled
        save_endpoints(store, endpoints)
    except RelayError as e:
        handle_error(e)
        return
    console.print(f"[green]{'Enabled' if enabled else 'Disabled'} webhook:[/green] {endpoint_id}")


@app.command("enable")
def enable(endpoint_id: str = typer.Argument(..., help="Webhook ID")) -> None:
    """Enable a webhook endpoint."""
    _set_enabled(endpoint_id, True)


@app.command("disable")
def disable(endpoint_id: str = typer.Argument(..., help="Webhook ID")) -> None:
    """Disable a webhook endpoint."""
    _set_enabled(endpoint_id, False)


@app.command("trigger")
def trigger(
    ctx: typer.Context,
    event: str = typer.Argument(..., help="Event name, e.g. post.created"),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="Event data as a JSON object"),
) -> None:
    """Deliver an event to every subscribed endpoint.

    Example:
        relay webhooks trigger contact.added --data '{"email": "a@example.com"}'
    """
    payload = parse_json_option(data, "--data")

    async def _trigger() -> list[DeliveryLogEntry]:
        store = get_store()
        async with get_dispatcher(store) as dispatcher:
            entries = await dispatcher.trigger_event(event, payload)
            save_endpoints(store, dispatcher.endpoints)
            return entries

    try:
        entries = run(_trigger)
    except RelayError as e:
        handle_error(e)
        return

    if get_json_flag(ctx):
        output_json(entries)
    elif not entries:
        console.print(f"[dim]No enabled webhooks subscribe to {event}.[/dim]")
    else:
        output_table(entries, columns=LOG_COLUMNS, title=f"Deliveries: {event}")


@app.command("test")
def test(
    ctx: typer.Context,
    endpoint_id: str = typer.Argument(..., help="Webhook ID"),
) -> None:
    """Send a test.webhook delivery to one endpoint."""

    async def _test() -> DeliveryLogEntry:
        store = get_store()
        async with get_dispatcher(store) as dispatcher:
            entry = await dispatcher.test_endpoint(endpoint_id)
            save_endpoints(store, dispatcher.endpoints)
            return entry

    try:
        entry = run(_test)
    except RelayError as e:
        handle_error(e)
        return

    if get_json_flag(ctx):
        output_json(entry)
    elif entry.success:
        console.print(f"[green]Delivered[/green] ({entry.status}, {entry.response_time}ms)")
    else:
        console.print(f"[red]Failed:[/red] {entry.error}")
        raise typer.Exit(1)


@app.command("logs")
def logs(
    ctx: typer.Context,
    endpoint_id: Optional[str] = typer.Option(None, "--webhook", "-w", help="Filter by webhook ID"),
    limit: int = typer.Option(20, "--limit", "-l", help="Maximum entries to show"),
) -> None:
    """Show recent delivery attempts, newest first."""

    async def _logs() -> list[DeliveryLogEntry]:
        async with get_dispatcher(get_store()) as dispatcher:
            return dispatcher.get_logs()

    try:
        entries = run(_logs)
    except RelayError as e:
        handle_error(e)
        return

    if endpoint_id:
        entries = [entry for entry in entries if entry.webhook_id == endpoint_id]
    entries = entries[:limit]

    if get_json_flag(ctx):
        output_json(entries)
    elif not entries:
        console.print("[dim]No delivery logs.[/dim]")
    else:
        output_table(entries, columns=LOG_COLUMNS, title="Delivery Logs")


@app.command("stats")
def stats(
    ctx: typer.Context,
    endpoint_id: str = typer.Argument(..., help="Webhook ID"),
) -> None:
    """Show delivery statistics for one endpoint."""

    async def _stats() -> WebhookStats:
        async with get_dispatcher(get_store()) as dispatcher:
            return dispatcher.get_webhook_stats(endpoint_id)

    try:
        result = run(_stats)
    except RelayError as e:
        handle_error(e)
        return

    if get_json_flag(ctx):
        output_json(result)
        return
    console.print(f"[bold]Webhook {endpoint_id}[/bold]")
    console.print(f"  Total calls: {result.total_calls}")
    console.print(f"  Successful: {result.successful_calls}")
    console.print(f"  Failed: {result.failed_calls}")
    console.print(f"  Success rate: {result.success_rate}%")
    console.print(f"  Avg response time: {result.average_response_time}ms")


@app.command("clear-logs")
def clear_logs() -> None:
    """Delete every stored delivery log entry."""

    async def _clear() -> None:
        async with get_dispatcher(get_store()) as dispatcher:
            dispatcher.clear_logs()

    try:
        run(_clear)
    except RelayError as e:
        handle_error(e)
        return
    console.print("[green]Delivery logs cleared.[/green]")
