"""
FileStorage — JSON file-backed store with persistence across restarts.

Data layout:
  {data_dir}/
    <quoted key>.json      {"key": ..., "version": ..., "data": {...}}

Features:
  - Survives process restarts (unlike InMemoryStorage)
  - No external dependencies (no database server)
  - Every write is flushed immediately via write-to-temp + rename
  - Single-process only (no cross-process write safety)

Best for: small deployments, demos, edge devices.
"""
from __future__ import annotations

import json
import structlog
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

from database.store_memory import InMemoryStorage

logger = structlog.get_logger()


class FileStorage(InMemoryStorage):
    """
    Extends InMemoryStorage with JSON file persistence.

    On init: loads every stored key from disk into memory.
    On every write/delete: flushes that key to disk.
    """

    def __init__(self, data_dir: str = "./data"):
        super().__init__()
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._load_all()
        logger.info("file_storage_initialized", data_dir=str(self._data_dir), keys=len(self._items))

    # ── Load / Save ───────────────────────────────────────

    def _file_path(self, key: str) -> Path:
        return self._data_dir / f"{quote(key, safe='')}.json"

    def _load_all(self):
        for path in self._data_dir.glob("*.json"):
            try:
                with open(path, "r") as f:
                    record = json.load(f)
                key = record.get("key") or unquote(path.stem)
                self._items[key] = record.get("data") or {}
                self._versions[key] = int(record.get("version", 0))
            except (json.JSONDecodeError, OSError, ValueError) as e:
                logger.warning("file_storage_load_error", path=str(path), error=str(e))

    def _flush_key(self, key: str):
        path = self._file_path(key)
        record = {
            "key": key,
            "version": self._versions.get(key, 0),
            "data": self._items.get(key, {}),
        }
        tmp_path = path.with_suffix(".tmp")
        with open(tmp_path, "w") as f:
            json.dump(record, f, indent=2, default=str)
        tmp_path.replace(path)  # atomic on POSIX

    # ── Override write methods to trigger persistence ──────

    async def write(self, key: str, data: dict[str, Any]) -> int:
        version = await super().write(key, data)
        self._flush_key(key)
        return version

    async def delete(self, key: str) -> None:
        await super().delete(key)
        self._file_path(key).unlink(missing_ok=True)
