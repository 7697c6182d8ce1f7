"""Local key-value storage for dashboard state.

Holds the persisted portfolio and alert lists plus the logged-in user. Each
slot is a single string value; writers overwrite, last writer wins.
"""

import json
import sqlite3
from pathlib import Path
from typing import Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from cryptodash.config import settings
from cryptodash.logging import logger

ModelT = TypeVar("ModelT", bound=BaseModel)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS local_storage (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class Storage(Protocol):
    """Minimal string slot interface, shaped like a browser's localStorage."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


def _get_storage_path() -> Path:
    """Get storage path from settings or default to ~/.cryptodash/storage.db."""
    if settings.storage_path:
        return Path(settings.storage_path)

    default_dir = Path.home() / ".cryptodash"
    default_dir.mkdir(parents=True, exist_ok=True)
    return default_dir / "storage.db"


class SqliteStorage:
    """Storage backed by a single sqlite table."""

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path else _get_storage_path()

    def _get_connection(self) -> sqlite3.Connection:
        """Get connection and ensure schema exists."""
        conn = sqlite3.connect(self.path)
        conn.executescript(_SCHEMA)
        conn.commit()
        return conn

    def get_item(self, key: str) -> str | None:
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT value FROM local_storage WHERE key = ?", (key,)
            ).fetchone()
            return row[0] if row else None
        finally:
            conn.close()

    def set_item(self, key: str, value: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                "INSERT OR REPLACE INTO local_storage (key, value) VALUES (?, ?)",
                (key, value),
            )
            conn.commit()
            logger.debug("Stored slot key={key} bytes={size}", key=key, size=len(value))
        finally:
            conn.close()

    def remove_item(self, key: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute("DELETE FROM local_storage WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()


class MemoryStorage:
    """In-process storage, mostly for tests."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


def load_list(storage: Storage, key: str, model: type[ModelT]) -> list[ModelT]:
    """
    Read a JSON list slot into models.

    A missing slot is an empty list. Malformed JSON or entries that fail
    validation are logged and also yield an empty list.
    """
    raw = storage.get_item(key)
    if raw is None:
        return []

    try:
        items = json.loads(raw)
        if not isinstance(items, list):
            raise ValueError(f"expected a JSON list, got {type(items).__name__}")
        return [model.model_validate(item) for item in items]
    except (ValueError, ValidationError) as e:
        logger.warning("Discarding malformed slot key={key} error={error}", key=key, error=str(e))
        return []


def save_list(storage: Storage, key: str, items: list[ModelT]) -> None:
    """Overwrite a slot with the JSON form of ``items``."""
    storage.set_item(key, json.dumps([item.model_dump() for item in items]))
