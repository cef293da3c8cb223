"""Session registry dependency for FastAPI."""
from functools import lru_cache

from api.config import (
    DATA_DIR,
    FINISHED_SESSION_RETENTION_SECONDS,
    PERSIST_RETRY_DELAY_SECONDS,
    SESSION_TICK_SECONDS,
)
from api.services.attempt_service import SqlAttemptRepository
from api.services.session_service import SessionRegistry
from api.services.test_service import FileTestRepository


@lru_cache(maxsize=1)
def get_session_registry() -> SessionRegistry:
    """Process-wide registry of live sessions."""
    return SessionRegistry(
        tests=FileTestRepository(DATA_DIR),
        attempts=SqlAttemptRepository(),
        tick_interval=SESSION_TICK_SECONDS if SESSION_TICK_SECONDS > 0 else None,
        retry_delay=PERSIST_RETRY_DELAY_SECONDS,
        finished_retention=FINISHED_SESSION_RETENTION_SECONDS,
    )


def get_test_repository() -> FileTestRepository:
    return FileTestRepository(DATA_DIR)
