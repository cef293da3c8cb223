"""Application configuration and constants."""
import os
from pathlib import Path


def _parse_int_env(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_float_env(name: str, default: float) -> float:
    """Parse float from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# Directories
DATA_DIR = Path(os.environ.get("TEST_DATA_DIR", Path.cwd() / "data" / "tests"))
DATA_DIR.mkdir(parents=True, exist_ok=True)

# Database
DB_DIR = Path(os.environ.get("DB_DIR", Path.cwd() / "data"))
DB_DIR.mkdir(parents=True, exist_ok=True)
DATABASE_URL = os.environ.get(
    "DATABASE_URL", f"sqlite:///{DB_DIR / 'assessments.db'}"
)

# Sessions
SESSION_TICK_SECONDS = _parse_float_env("SESSION_TICK_SECONDS", 1.0)
PERSIST_RETRY_DELAY_SECONDS = _parse_float_env("PERSIST_RETRY_DELAY_SECONDS", 0.5)
FINISHED_SESSION_RETENTION_SECONDS = _parse_float_env(
    "FINISHED_SESSION_RETENTION_SECONDS", 300.0
)

# Cleanup
ABANDONED_RETENTION_DAYS = _parse_int_env("ABANDONED_RETENTION_DAYS", 90)
CLEANUP_INTERVAL_SECONDS = _parse_int_env("CLEANUP_INTERVAL_SECONDS", 24 * 60 * 60)

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
