"""
Storage Factory — Create the right state storage backend from configuration.

Configuration in settings.yaml:
    database:
      #   "memory"   In-memory dicts (development, testing)
      #   "file"     JSON files on disk (small deployments, demos)
      store_backend: "memory"

      # For file backend: directory path
      store_file_dir: "./data"

Usage:
    from database.store_factory import create_storage, get_storage
    storage = create_storage(config)     # Create from config
    storage = get_storage()              # Get singleton instance
"""
from __future__ import annotations

import structlog
from typing import Optional

from config.settings import ConfigurationError, DatabaseConfig
from database.store_base import BaseStorage

logger = structlog.get_logger()

_instance: Optional[BaseStorage] = None


def create_storage(config: DatabaseConfig = None) -> BaseStorage:
    """
    Factory: create the appropriate storage backend.

    Raises ConfigurationError for an unknown backend; there is no
    degraded fallback.
    """
    global _instance
    if _instance is not None:
        return _instance

    config = config or DatabaseConfig()
    backend = config.store_backend or "memory"

    if backend == "file":
        from database.store_file import FileStorage
        _instance = FileStorage(data_dir=config.store_file_dir)
        logger.info("storage_created", backend="file", data_dir=config.store_file_dir)

    elif backend == "memory":
        from database.store_memory import InMemoryStorage
        _instance = InMemoryStorage()
        logger.info("storage_created", backend="memory")

    else:
        raise ConfigurationError(f"Unknown store_backend '{backend}'")

    return _instance


def get_storage() -> BaseStorage:
    """Return the singleton storage instance, creating a memory store if none exists."""
    global _instance
    if _instance is None:
        _instance = create_storage()
    return _instance


def reset_storage() -> None:
    """Reset the singleton (for testing)."""
    global _instance
    _instance = None
