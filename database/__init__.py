"""
Database layer — Versioned key-value state storage.

Backends:
  - In-memory (dict-based, for development/testing)
  - File (JSON files on disk, for small deployments)

Quick start:
  from database import create_storage
  storage = create_storage(DatabaseConfig(store_backend="memory"))
  item = await storage.read("chat/conversations/c1")
"""
from database.store_base import BaseStorage, StoreItem
from database.store_memory import InMemoryStorage
from database.store_file import FileStorage
from database.store_factory import create_storage, get_storage, reset_storage

__all__ = [
    # Storage interface
    "BaseStorage", "StoreItem",
    # Storage backends
    "InMemoryStorage", "FileStorage",
    # Factory
    "create_storage", "get_storage", "reset_storage",
]
