from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Protocol


logger = logging.getLogger(__name__)


ACCESS_TOKEN_KEY = "auth_token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_KEY = "user"
SESSION_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY)


class StorageError(Exception):
    """A storage backend could not read or write."""


class TokenStorage(Protocol):
    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStorage(TokenStorage):
    def __init__(self, initial: dict[str, str] | None = None):
        self._items = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage(TokenStorage):
    """Key/value pairs in a single JSON file readable only by its owner."""

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as exc:
            raise StorageError(f"Failed to read {self._path}.") from exc
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, str]) -> None:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise StorageError(f"Failed to write {self._path}.") from exc

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)


class FallbackStorage(TokenStorage):
    """Prefers ``primary``; any ``StorageError`` there falls through to ``secondary``.

    Removal clears both so a value written during an earlier fallback does
    not resurface.
    """

    def __init__(self, primary: TokenStorage, secondary: TokenStorage):
        self._primary = primary
        self._secondary = secondary

    def get(self, key: str) -> str | None:
        try:
            value = self._primary.get(key)
        except StorageError:
            logger.warning("client_storage: primary_get_failed key=%s", key)
            return self._secondary.get(key)
        if value is None:
            return self._secondary.get(key)
        return value

    def set(self, key: str, value: str) -> None:
        try:
            self._primary.set(key, value)
        except StorageError:
            logger.warning("client_storage: primary_set_failed key=%s", key)
            self._secondary.set(key, value)

    def remove(self, key: str) -> None:
        try:
            self._primary.remove(key)
        except StorageError:
            logger.warning("client_storage: primary_remove_failed key=%s", key)
        self._secondary.remove(key)
