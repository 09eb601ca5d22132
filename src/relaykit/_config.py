"""Configuration management for relaykit.

Supports:
- Environment variables (RELAY_DATA_DIR, RELAY_WEBHOOK_TIMEOUT, etc.)
- Config file (~/.relaykit/config.toml)
- Programmatic configuration
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


DEFAULT_WEBHOOK_TIMEOUT = 30000  # milliseconds
DEFAULT_MAX_LOGS = 1000
DEFAULT_LOG_SNAPSHOT_SIZE = 100
DEFAULT_GENERATION_TIMEOUT = 60.0  # seconds

CONFIG_DIR = Path.home() / ".relaykit"
CONFIG_FILE = CONFIG_DIR / "config.toml"


@dataclass
class RelayConfig:
    """relaykit configuration."""

    data_dir: Path = field(default_factory=lambda: CONFIG_DIR / "data")
    webhook_timeout: int = DEFAULT_WEBHOOK_TIMEOUT
    max_logs: int = DEFAULT_MAX_LOGS
    log_snapshot_size: int = DEFAULT_LOG_SNAPSHOT_SIZE
    generation_timeout: float = DEFAULT_GENERATION_TIMEOUT
    debug: bool = False

    @classmethod
    def from_env(cls) -> RelayConfig:
        """Load configuration from environment variables."""
        data_dir = os.getenv("RELAY_DATA_DIR")
        return cls(
            data_dir=Path(data_dir) if data_dir else CONFIG_DIR / "data",
            webhook_timeout=int(os.getenv("RELAY_WEBHOOK_TIMEOUT", DEFAULT_WEBHOOK_TIMEOUT)),
            max_logs=int(os.getenv("RELAY_MAX_LOGS", DEFAULT_MAX_LOGS)),
            log_snapshot_size=int(
                os.getenv("RELAY_LOG_SNAPSHOT_SIZE", DEFAULT_LOG_SNAPSHOT_SIZE)
            ),
            generation_timeout=float(
                os.getenv("RELAY_GENERATION_TIMEOUT", DEFAULT_GENERATION_TIMEOUT)
            ),
            debug=os.getenv("RELAY_DEBUG", "").lower() in ("1", "true", "yes"),
        )

    @classmethod
    def from_file(cls, path: Path | None = None) -> RelayConfig:
        """Load configuration from TOML file."""
        config_path = path or CONFIG_FILE

        if not config_path.exists():
            return cls()

        with open(config_path, "rb") as f:
            data = tomllib.load(f)

        data_dir = data.get("data_dir")
        return cls(
            data_dir=Path(data_dir).expanduser() if data_dir else CONFIG_DIR / "data",
            webhook_timeout=int(data.get("webhook_timeout", DEFAULT_WEBHOOK_TIMEOUT)),
            max_logs=int(data.get("max_logs", DEFAULT_MAX_LOGS)),
            log_snapshot_size=int(data.get("log_snapshot_size", DEFAULT_LOG_SNAPSHOT_SIZE)),
            generation_timeout=float(
                data.get("generation_timeout", DEFAULT_GENERATION_TIMEOUT)
            ),
            debug=data.get("debug", False),
        )

    @classmethod
    def load(cls) -> RelayConfig:
        """Load configuration with precedence: env > file > defaults."""
        # Start with file config
        config = cls.from_file()

        # Override with environment variables
        env_config = cls.from_env()

        if os.getenv("RELAY_DATA_DIR"):
            config.data_dir = env_config.data_dir
        if os.getenv("RELAY_WEBHOOK_TIMEOUT"):
            config.webhook_timeout = env_config.webhook_timeout
        if os.getenv("RELAY_MAX_LOGS"):
            config.max_logs = env_config.max_logs
        if os.getenv("RELAY_LOG_SNAPSHOT_SIZE"):
            config.log_snapshot_size = env_config.log_snapshot_size
        if os.getenv("RELAY_GENERATION_TIMEOUT"):
            config.generation_timeout = env_config.generation_timeout
        if os.getenv("RELAY_DEBUG"):
            config.debug = env_config.debug

        return config


def save_config(config: dict[str, Any], path: Path | None = None) -> None:
    """Save configuration to TOML file.

    Sets restrictive file permissions (0o600) since the data directory it
    points at holds provider API keys.
    """
    import tomli_w

    config_path = path or CONFIG_FILE
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "wb") as f:
        tomli_w.dump(config, f)

    config_path.chmod(0o600)


def get_config_value(key: str) -> Any:
    """Get a single config value."""
    config = RelayConfig.load()
    value = getattr(config, key, None)
    if isinstance(value, Path):
        return str(value)
    return value


def set_config_value(key: str, value: Any) -> None:
    """Set a single config value in the config file."""
    config_path = CONFIG_FILE

    if config_path.exists():
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    else:
        data = {}

    data[key] = value
    save_config(data, config_path)
