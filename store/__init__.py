"""Backends for the viviendas inventory.

``create_repository`` picks one from ``AppConfig.backend``.
"""

import logging

from inventario.exceptions import ConfigurationError
from store.base import Repository
from store.memory import MemoryRepository
from store.sqlite import SQLiteRepository
from store.supabase import SupabaseRepository
from utils.config import BACKENDS, AppConfig

logger = logging.getLogger(__name__)


def create_repository(config: AppConfig | None = None) -> Repository:
    config = config or AppConfig.from_env()
    backend = config.backend
    if backend == "memory":
        repo: Repository = MemoryRepository()
    elif backend == "sqlite":
        repo = SQLiteRepository(config.db_path)
    elif backend == "supabase":
        repo = SupabaseRepository(config.supabase_url, config.supabase_key,
                                  timeout=config.http_timeout)
    else:
        raise ConfigurationError(
            f"Unknown APP_BACKEND '{backend}'; expected one of {', '.join(BACKENDS)}"
        )
    logger.info("Using %s repository", repo.name)
    return repo


__all__ = [
    "Repository",
    "MemoryRepository",
    "SQLiteRepository",
    "SupabaseRepository",
    "create_repository",
]
