"""AI provider CLI commands."""

from __future__ import annotations

import typer
from rich.console import Console

from relaykit.cli._utils import (
    get_gateway,
    get_json_flag,
    get_store,
    handle_error,
    output_json,
    output_table,
    run,
)
from relaykit.exceptions import ProviderNotFoundError, RelayError
from relaykit.gateway import default_providers
from relaykit.models.provider import ProviderTestResult

app = typer.Typer(help="AI provider registry management.")
console = Console()


@app.command("list")
def list_providers(ctx: typer.Context) -> None:
    """List configured providers."""
    try:
        gateway = get_gateway(get_store())
    except RelayError as e:
        handle_error(e)
        return

    providers = list(gateway.providers.values())
    if get_json_flag(ctx):
        output_json([p.model_dump(mode="json", exclude={"api_key"}) for p in providers])
        return
    if not providers:
        console.print("[dim]No providers configured. Run 'relay providers init'.[/dim]")
        return

    active = gateway.active_provider
    output_table(
        providers,
        columns=[
            ("id", "ID"),
            ("name", "Name"),
            ("family", "Family"),
            ("model", "Model"),
            ("enabled", "Enabled"),
            ("status", "Status"),
            ("last_test", "Last Test"),
        ],
        title="AI Providers",
    )
    console.print(f"Active: {active.name if active else '[dim]none[/dim]'}")


@app.command("init")
def init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing providers"),
) -> None:
    """Seed the registry with the built-in providers."""
    try:
        gateway = get_gateway(get_store())
        added = 0
        for provider_id, provider in default_providers().items():
            if provider_id in gateway.providers and not force:
                continue
            gateway.add_provider(provider)
            added += 1
    except RelayError as e:
        handle_error(e)
        return
    console.print(f"[green]Added {added} provider(s).[/green]")


def _update(provider_id: str, message: str, **updates: object) -> None:
    try:
        gateway = get_gateway(get_store())
        if not gateway.update_provider(provider_id, **updates):
            raise ProviderNotFoundError(
                f"Provider not found: {provider_id}", provider_id=provider_id
            )
    except RelayError as e:
        handle_error(e)
        return
    console.print(f"[green]{message}:[/green] {provider_id}")


@app.command("enable")
def enable(provider_id: str = typer.Argument(..., help="Provider ID")) -> None:
    """Enable a provider."""
    _update(provider_id, "Enabled provider", enabled=True)


@app.command("disable")
def disable(provider_id: str = typer.Argument(..., help="Provider ID")) -> None:
    """Disable a provider."""
    _update(provider_id, "Disabled provider", enabled=False)


@app.command("set-key")
def set_key(
    provider_id: str = typer.Argument(..., help="Provider ID"),
    api_key: str = typer.Option(..., "--api-key", prompt=True, hide_input=True, help="API key"),
) -> None:
    """Store the API key for a provider."""
    _update(provider_id, "Updated API key for", api_key=api_key)


@app.command("test")
def test(
    ctx: typer.Context,
    provider_id: str = typer.Argument(..., help="Provider ID"),
) -> None:
    """Send a minimal request and record the provider's status."""

    async def _test() -> ProviderTestResult:
        async with get_gateway(get_store()) as gateway:
            return await gateway.test_provider(provider_id)

    try:
        result = run(_test)
    except RelayError as e:
        handle_error(e)
        return

    if get_json_flag(ctx):
        output_json(result)
    else:
        console.print(
            f"[green]Connected[/green] {result.result.provider} "
            f"({result.result.model}, {result.result.response_time}ms)"
        )


@app.command("upgrade-grok")
def upgrade_grok() -> None:
    """Upgrade upgradable Grok providers to Grok 4 (irreversible)."""
    try:
        upgraded = get_gateway(get_store()).upgrade_grok()
    except RelayError as e:
        handle_error(e)
        return

    if upgraded:
        console.print("[green]Upgraded to Grok 4.[/green]")
    else:
        console.print("[dim]No upgradable Grok provider found.[/dim]")


@app.command("capabilities")
def capabilities(
    ctx: typer.Context,
    provider_id: str = typer.Argument(..., help="Provider ID"),
) -> None:
    """Show what a provider supports."""
    try:
        caps = get_gateway(get_store()).get_provider_capabilities(provider_id)
    except RelayError as e:
        handle_error(e)
        return

    if caps is None:
        handle_error(
            ProviderNotFoundError(f"Provider not found: {provider_id}", provider_id=provider_id)
        )
        return
    if get_json_flag(ctx):
        output_json(caps)
        return
    console.print(f"[bold]{caps.name}[/bold] ({caps.model}, tier {caps.tier})")
    console.print(f"  Max tokens: {caps.max_tokens}")
    console.print(f"  Features: {', '.join(caps.features) or '-'}")
    console.print(f"  Streaming: {'Yes' if caps.supports_streaming else 'No'}")
    console.print(f"  Images: {'Yes' if caps.supports_images else 'No'}")
    console.print(f"  Code: {'Yes' if caps.supports_code else 'No'}")
