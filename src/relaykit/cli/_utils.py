"""CLI utilities."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import anyio
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from relaykit._config import RelayConfig
from relaykit.dispatcher import WebhookDispatcher
from relaykit.exceptions import RelayError
from relaykit.gateway import GenerationGateway
from relaykit.models.webhook import WebhookEndpoint
from relaykit.store import WEBHOOKS_KEY, JsonFileStore

T = TypeVar("T")

console = Console()
error_console = Console(stderr=True)


def setup_logging(debug: bool) -> None:
    """Route relaykit log records to stderr through rich."""
    logger = logging.getLogger("relaykit")
    if any(isinstance(h, RichHandler) for h in logger.handlers):
        return
    logger.addHandler(RichHandler(console=error_console, show_path=False))
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)


def get_store() -> JsonFileStore:
    """Store rooted at the configured data directory."""
    return JsonFileStore(RelayConfig.load().data_dir)


def load_endpoints(store: JsonFileStore) -> list[WebhookEndpoint]:
    return [WebhookEndpoint.model_validate(item) for item in store.get(WEBHOOKS_KEY) or []]


def save_endpoints(store: JsonFileStore, endpoints: list[WebhookEndpoint]) -> None:
    store.set(WEBHOOKS_KEY, [endpoint.model_dump(mode="json") for endpoint in endpoints])


def get_dispatcher(store: JsonFileStore) -> WebhookDispatcher:
    """Dispatcher over the persisted endpoint list."""
    config = RelayConfig.load()
    return WebhookDispatcher(
        load_endpoints(store),
        store=store,
        max_logs=config.max_logs,
        snapshot_size=config.log_snapshot_size,
    )


def get_gateway(store: JsonFileStore) -> GenerationGateway:
    """Gateway over the persisted provider registry."""
    return GenerationGateway(store=store, timeout=RelayConfig.load().generation_timeout)


def run(fn: Callable[[], Awaitable[T]]) -> T:
    """Run a coroutine function to completion from synchronous CLI code."""
    return anyio.run(fn)


def parse_json_option(value: str | None, option: str) -> dict[str, Any]:
    """Parse a JSON object passed on the command line."""
    if not value:
        return {}
    try:
        data = json.loads(value)
    except ValueError as e:
        raise typer.BadParameter(f"Invalid JSON: {e}", param_hint=option) from None
    if not isinstance(data, dict):
        raise typer.BadParameter("Expected a JSON object", param_hint=option)
    return data


def output_json(data: Any) -> None:
    """Output data as JSON."""
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")
    elif isinstance(data, list) and data and hasattr(data[0], "model_dump"):
        data = [item.model_dump(mode="json") for item in data]

    console.print_json(json.dumps(data, default=str))


def output_table(
    data: list[Any],
    columns: list[tuple[str, str]],
    title: str | None = None,
) -> None:
    """Output data as a Rich table.

    Args:
        data: List of objects
        columns: List of (field_name, header) tuples
        title: Optional table title
    """
    table = Table(title=title, show_header=True, header_style="bold")

    for _, header in columns:
        table.add_column(header)

    for item in data:
        row = []
        for field, _ in columns:
            if hasattr(item, field):
                value = getattr(item, field)
            elif isinstance(item, dict):
                value = item.get(field, "")
            else:
                value = ""

            # Format special types
            if value is None:
                value = "-"
            elif isinstance(value, bool):
                value = "Yes" if value else "No"
            elif isinstance(value, list):
                value = ", ".join(str(v) for v in value)
            elif hasattr(value, "isoformat"):
                value = value.strftime("%Y-%m-%d %H:%M:%S")

            row.append(str(value))

        table.add_row(*row)

    console.print(table)


def handle_error(e: Exception) -> None:
    """Handle and display an error."""
    if isinstance(e, RelayError):
        error_console.print(f"[red]Error:[/red] {e.message}")
    else:
        error_console.print(f"[red]Error:[/red] {e}")

    raise typer.Exit(1)


def get_json_flag(ctx: typer.Context) -> bool:
    """Get JSON output flag from context."""
    return ctx.obj.get("json", False) if ctx.obj else False


def mask_secret(value: str | None) -> str:
    if not value:
        return "-"
    return value[:4] + "..." + value[-4:] if len(value) > 12 else "***"
