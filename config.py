"""
Configuration for Algebrix.
Values come from ALGEBRIX_* environment variables with local defaults.
"""

import os
from pathlib import Path


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


class Config:
    """Process-wide settings."""

    # Paths
    DATA_DIR = Path(os.getenv("ALGEBRIX_DATA_DIR", Path.home() / ".algebrix"))
    DB_PATH = Path(os.getenv("ALGEBRIX_DB_PATH", DATA_DIR / "algebrix.db"))

    # Storage backend: "sqlite" (durable) or "memory" (process lifetime only)
    STORE_BACKEND = os.getenv("ALGEBRIX_STORE", "sqlite").strip().lower()

    # Remote batch source
    SYNC_URL = os.getenv("ALGEBRIX_SYNC_URL", "")
    SYNC_TIMEOUT = _env_float("ALGEBRIX_SYNC_TIMEOUT", 30.0)
    SYNC_INTERVAL_HOURS = _env_float("ALGEBRIX_SYNC_INTERVAL_HOURS", 24.0)

    # Single learner per device
    USER_ID = os.getenv("ALGEBRIX_USER_ID", "local")

    LOG_LEVEL = os.getenv("ALGEBRIX_LOG_LEVEL", "WARNING").upper()

    @classmethod
    def ensure_dirs(cls):
        """Create data directories if missing."""
        cls.DATA_DIR.mkdir(parents=True, exist_ok=True)
        cls.DB_PATH.parent.mkdir(parents=True, exist_ok=True)
