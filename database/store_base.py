"""
Abstract State Storage — Interface for all key-value backends.

Implementations:
  - InMemoryStorage (dict-based, single-process, no persistence)
  - FileStorage     (JSON files on disk, single-process, durable)

Every stored item is a JSON-compatible dict plus a version number that the
backend increments on each write. Writes are last-writer-wins; callers that
need read-modify-write atomicity on a key hold `lock(key)` for the cycle.
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class StoreItem:
    """A stored value and the version it was read at (0 = never written)."""
    data: dict[str, Any] = field(default_factory=dict)
    version: int = 0


class BaseStorage(ABC):
    """Interface that all storage backends must implement."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    @abstractmethod
    async def read(self, key: str) -> Optional[StoreItem]:
        ...

    @abstractmethod
    async def write(self, key: str, data: dict[str, Any]) -> int:
        """Store `data` under `key` and return the new version."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def keys(self) -> list[str]:
        ...

    def lock(self, key: str) -> asyncio.Lock:
        """Per-key lock serializing read-modify-write cycles within this process."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock
