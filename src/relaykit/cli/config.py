"""Configuration CLI commands."""

from __future__ import annotations

import typer
from rich.console import Console

from relaykit._config import (
    CONFIG_FILE,
    RelayConfig,
    get_config_value,
    set_config_value,
)

app = typer.Typer(help="Configuration management.")
console = Console()

CONFIG_KEYS = (
    "data_dir",
    "webhook_timeout",
    "max_logs",
    "log_snapshot_size",
    "generation_timeout",
    "debug",
)


@app.command("get")
def get(
    key: str = typer.Argument(..., help="Configuration key"),
) -> None:
    """Get a configuration value.

    Example:
        relay config get max_logs
    """
    value = get_config_value(key)

    if value is None:
        console.print(f"[dim]No value set for '{key}'[/dim]")
    else:
        console.print(value)


@app.command("set")
def set_value(
    key: str = typer.Argument(..., help="Configuration key"),
    value: str = typer.Argument(..., help="Configuration value"),
) -> None:
    """Set a configuration value.

    Example:
        relay config set generation_timeout 120
    """
    if key not in CONFIG_KEYS:
        console.print(f"[red]Unknown configuration key: {key}[/red]")
        console.print(f"Known keys: {', '.join(CONFIG_KEYS)}")
        raise typer.Exit(1)

    # Convert value types
    if value.lower() in ("true", "false"):
        typed_value: str | bool | int | float = value.lower() == "true"
    elif value.isdigit():
        typed_value = int(value)
    elif value.replace(".", "", 1).isdigit():
        typed_value = float(value)
    else:
        typed_value = value

    set_config_value(key, typed_value)
    console.print(f"[green]Set {key} = {value}[/green]")


@app.command("list")
def list_config() -> None:
    """List all configuration values."""
    config = RelayConfig.load()

    console.print("[bold]Current Configuration[/bold]\n")
    console.print(f"  data_dir: {config.data_dir}")
    console.print(f"  webhook_timeout: {config.webhook_timeout}")
    console.print(f"  max_logs: {config.max_logs}")
    console.print(f"  log_snapshot_size: {config.log_snapshot_size}")
    console.print(f"  generation_timeout: {config.generation_timeout}")
    console.print(f"  debug: {config.debug}")

    console.print(f"\n[dim]Config file: {CONFIG_FILE}[/dim]")


@app.command("path")
def show_path() -> None:
    """Show configuration file path."""
    console.print(str(CONFIG_FILE))
