"""Main CLI entry point."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from relaykit._config import RelayConfig
from relaykit._version import __version__
from relaykit.cli import config, providers, webhooks
from relaykit.cli._utils import (
    get_gateway,
    get_json_flag,
    get_store,
    handle_error,
    output_json,
    run,
    setup_logging,
)
from relaykit.exceptions import RelayError
from relaykit.models.provider import GenerationOptions, GenerationResult

app = typer.Typer(
    name="relay",
    help="relaykit CLI - webhook delivery and AI generation.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

# Register sub-commands
app.add_typer(webhooks.app, name="webhooks", help="Webhook management")
app.add_typer(providers.app, name="providers", help="AI provider management")
app.add_typer(config.app, name="config", help="Configuration management")


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"relaykit version {__version__}")


@app.command()
def generate(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="Prompt text"),
    provider: Optional[str] = typer.Option(
        None,
        "--provider",
        "-p",
        help="Provider ID to use instead of the first usable one",
    ),
    system: Optional[str] = typer.Option(None, "--system", "-s", help="System prompt"),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", help="Token ceiling"),
    temperature: Optional[float] = typer.Option(None, "--temperature", "-t", help="Temperature"),
) -> None:
    """Generate content with the active provider, falling back on failure.

    Example:
        relay generate "Write a tweet about local SEO" --max-tokens 120
    """
    options = GenerationOptions(
        system_prompt=system,
        max_tokens=max_tokens,
        temperature=temperature,
    )

    async def _generate() -> GenerationResult:
        async with get_gateway(get_store()) as gateway:
            if provider and not gateway.set_active_provider(provider):
                raise RelayError(
                    f"Provider {provider} must exist, be enabled and be connected. "
                    f"Run: relay providers test {provider}"
                )
            return await gateway.generate_content(prompt, options)

    try:
        result = run(_generate)
    except RelayError as e:
        handle_error(e)
        return

    if get_json_flag(ctx):
        output_json(result)
        return
    console.print(result.content)
    source = f"{result.provider} ({result.model})"
    if result.fallback:
        source += f", fallback from {result.fallback_from}"
    console.print(
        f"\n[dim]{source} - {result.tokens_used} tokens, {result.response_time}ms[/dim]"
    )


@app.callback()
def main(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output in JSON format",
        is_eager=True,
    ),
    debug: bool = typer.Option(False, "--debug", help="Show debug logging"),
) -> None:
    """relaykit CLI - webhook delivery and AI generation."""
    ctx.ensure_object(dict)
    ctx.obj["json"] = json_output
    setup_logging(debug or RelayConfig.load().debug)


if __name__ == "__main__":
    app()
