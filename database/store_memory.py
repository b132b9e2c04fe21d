"""
InMemoryStorage — Dict-backed store for development and testing.

Features:
  - Zero dependencies
  - Values are deep-copied in and out, so callers never share mutable state
  - All data lost on process restart

Best for: local development, unit tests, quick prototyping.
"""
from __future__ import annotations

import copy
import structlog
from typing import Any, Optional

from database.store_base import BaseStorage, StoreItem

logger = structlog.get_logger()


class InMemoryStorage(BaseStorage):

    def __init__(self):
        super().__init__()
        self._items: dict[str, dict[str, Any]] = {}      # key → data
        self._versions: dict[str, int] = {}              # key → version
        logger.info("inmemory_storage_initialized")

    async def read(self, key: str) -> Optional[StoreItem]:
        data = self._items.get(key)
        if data is None:
            return None
        return StoreItem(data=copy.deepcopy(data), version=self._versions.get(key, 0))

    async def write(self, key: str, data: dict[str, Any]) -> int:
        self._items[key] = copy.deepcopy(data)
        version = self._versions.get(key, 0) + 1
        self._versions[key] = version
        return version

    async def delete(self, key: str) -> None:
        self._items.pop(key, None)
        self._versions.pop(key, None)

    async def keys(self) -> list[str]:
        return list(self._items.keys())

    # ── Stats (for debugging) ─────────────────────────────

    def stats(self) -> dict[str, int]:
        return {
            "keys": len(self._items),
            "writes": sum(self._versions.values()),
        }
