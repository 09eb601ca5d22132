"""Key-value persistence for logs and registries.

The dispatcher and gateway never decide where data lives; they are handed a
store and read/write JSON-compatible values under fixed keys.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from relaykit.exceptions import StoreError

logger = logging.getLogger("relaykit.store")

WEBHOOK_LOGS_KEY = "webhook_logs"
WEBHOOKS_KEY = "webhooks"
PROVIDERS_KEY = "ai_providers"

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


@runtime_checkable
class KeyValueStore(Protocol):
    """Anything that can persist JSON-compatible values by key."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store, mostly useful in tests."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str) -> Any:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        # Round-trip through JSON so callers never share mutable state with the store.
        try:
            self._data[key] = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Cannot serialize value for '{key}': {e}") from e

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """One JSON file per key inside a directory."""

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise StoreError(f"Invalid store key: {key!r}")
        return self._directory / f"{key}.json"

    def get(self, key: str) -> Any:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text())
        except (OSError, ValueError) as e:
            raise StoreError(f"Failed to read '{key}' from {path}: {e}") from e

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(value, indent=2, default=str))
            # Registries may contain provider API keys and webhook secrets
            path.chmod(0o600)
        except (OSError, TypeError, ValueError) as e:
            raise StoreError(f"Failed to write '{key}' to {path}: {e}") from e
        logger.debug("Saved '%s' to %s", key, path)

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(f"Failed to delete {path}: {e}") from e
