"""Tests for configuration loading."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

from relaykit._config import (
    DEFAULT_MAX_LOGS,
    DEFAULT_WEBHOOK_TIMEOUT,
    RelayConfig,
    get_config_value,
    set_config_value,
)


class TestRelayConfig:
    """Precedence: env > file > defaults."""

    def test_defaults(self, tmp_path: Path) -> None:
        with (
            patch("relaykit._config.CONFIG_FILE", tmp_path / "missing.toml"),
            patch.dict(os.environ, {}, clear=True),
        ):
            config = RelayConfig.load()

        assert config.webhook_timeout == DEFAULT_WEBHOOK_TIMEOUT
        assert config.max_logs == DEFAULT_MAX_LOGS
        assert config.log_snapshot_size == 100
        assert config.generation_timeout == 60.0
        assert config.debug is False
        assert config.data_dir.name == "data"

    def test_file_values(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.toml"
        config_file.write_text(
            f'data_dir = "{tmp_path / "store"}"\n'
            "webhook_timeout = 5000\n"
            "max_logs = 50\n"
            "generation_timeout = 12.5\n"
            "debug = true\n"
        )

        with (
            patch("relaykit._config.CONFIG_FILE", config_file),
            patch.dict(os.environ, {}, clear=True),
        ):
            config = RelayConfig.load()

        assert config.data_dir == tmp_path / "store"
        assert config.webhook_timeout == 5000
        assert config.max_logs == 50
        assert config.generation_timeout == 12.5
        assert config.debug is True

    def test_env_overrides_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.toml"
        config_file.write_text("max_logs = 50\nwebhook_timeout = 5000\n")

        with (
            patch("relaykit._config.CONFIG_FILE", config_file),
            patch.dict(
                os.environ,
                {"RELAY_MAX_LOGS": "10", "RELAY_DATA_DIR": str(tmp_path / "env")},
                clear=True,
            ),
        ):
            config = RelayConfig.load()

        assert config.max_logs == 10
        assert config.webhook_timeout == 5000
        assert config.data_dir == tmp_path / "env"

    def test_set_and_get_value(self, tmp_path: Path) -> None:
        config_file = tmp_path / "nested" / "config.toml"

        with (
            patch("relaykit._config.CONFIG_FILE", config_file),
            patch.dict(os.environ, {}, clear=True),
        ):
            set_config_value("max_logs", 250)
            set_config_value("data_dir", str(tmp_path / "data"))

            assert get_config_value("max_logs") == 250
            assert get_config_value("data_dir") == str(tmp_path / "data")
            assert get_config_value("unknown") is None

        assert config_file.exists()
        assert oct(config_file.stat().st_mode & 0o777) == "0o600"
