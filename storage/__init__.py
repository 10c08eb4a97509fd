"""
Algebrix Storage - problem store backends.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from config import Config
from core.ports import ProblemStore
from storage.database import SQLiteProblemStore
from storage.memory import InMemoryProblemStore

logger = logging.getLogger(__name__)

BACKENDS = ("sqlite", "memory")


def create_store(
    backend: Optional[str] = None,
    db_path: Optional[Union[Path, str]] = None,
) -> ProblemStore:
    """Build the configured problem store, ready for use.

    Args:
        backend: "sqlite" or "memory". Uses Config.STORE_BACKEND if not provided.
        db_path: SQLite file. Uses Config.DB_PATH if not provided.

    Returns:
        An initialized ProblemStore
    """
    backend = (backend or Config.STORE_BACKEND).strip().lower()
    if backend == "memory":
        logger.debug("Using in-memory problem store")
        return InMemoryProblemStore()
    if backend == "sqlite":
        store = SQLiteProblemStore(db_path)
        store.initialize()
        logger.debug(f"Using SQLite problem store at {store.db_path}")
        return store
    raise ValueError(f"Unknown store backend '{backend}'. Use one of: {', '.join(BACKENDS)}")


__all__ = [
    "BACKENDS",
    "InMemoryProblemStore",
    "SQLiteProblemStore",
    "create_store",
]
