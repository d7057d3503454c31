from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

_KEY_PREFIX = "last_seen:"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileKeyValueStore:
    """Durable key-value store kept in a single JSON file (one file per device)."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._values: dict[str, str] | None = None

    def _load(self) -> dict[str, str]:
        if self._values is not None:
            return self._values
        values: dict[str, str] = {}
        if self.path.exists():
            try:
                raw = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError):
                logger.warning("Ignoring unreadable key-value file %s.", self.path, exc_info=True)
            else:
                if isinstance(raw, dict):
                    values = {str(key): str(value) for key, value in raw.items()}
        self._values = values
        return values

    def _flush(self) -> None:
        values = self._load()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(values, handle, ensure_ascii=True, sort_keys=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        self._load()[key] = value
        self._flush()

    def delete(self, key: str) -> None:
        values = self._load()
        if key in values:
            del values[key]
            self._flush()


def device_store_path(root: Path, device_id: str) -> Path:
    safe_id = re.sub(r"[^A-Za-z0-9_.-]+", "_", device_id).strip("._") or "default"
    return root / "last_seen" / f"{safe_id}.json"


class LastSeenTracker:
    """Per-contact watermark of the newest message the user has looked at.

    Marks only move forward: setting a timestamp older than the stored one keeps
    the stored mark. ``None`` clears the mark.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def get(self, contact_id: str) -> datetime | None:
        raw = self._store.get(f"{_KEY_PREFIX}{contact_id}")
        if raw is None:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("Discarding malformed last-seen mark for %s: %r", contact_id, raw)
            return None

    def set(self, contact_id: str, timestamp: datetime | None) -> datetime | None:
        key = f"{_KEY_PREFIX}{contact_id}"
        if timestamp is None:
            self._store.delete(key)
            return None
        current = self.get(contact_id)
        if current is not None and timestamp <= current:
            return current
        self._store.set(key, timestamp.isoformat())
        return timestamp
