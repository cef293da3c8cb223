"""Service for cleanup operations."""
import logging
import threading
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from api.config import ABANDONED_RETENTION_DAYS, CLEANUP_INTERVAL_SECONDS
from api.database import SessionLocal, session_scope
from api.models.db.attempt import Attempt
from engine.models import AttemptStatus

logger = logging.getLogger(__name__)


def cleanup_abandoned_attempts(
    retention_days: int = ABANDONED_RETENTION_DAYS,
    session_factory: sessionmaker = SessionLocal,
    now: datetime | None = None,
) -> int:
    """Remove abandoned attempts started before the retention window.

    Completed attempts are kept forever. A non-positive retention disables
    cleanup.
    """
    if retention_days <= 0:
        return 0

    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=retention_days)
    try:
        with session_scope(session_factory) as db:
            result = db.execute(
                delete(Attempt).where(
                    Attempt.status == AttemptStatus.ABANDONED.value,
                    Attempt.started_at < cutoff,
                )
            )
            deleted = result.rowcount or 0
    except SQLAlchemyError as e:
        logger.error(f"Failed to cleanup abandoned attempts: {e}")
        return 0

    if deleted > 0:
        logger.info(f"Cleaned up {deleted} abandoned attempts")
    return deleted


def schedule_attempts_cleanup(
    interval: float = CLEANUP_INTERVAL_SECONDS,
    initial_delay: float = 60,
) -> threading.Event:
    """Run cleanup periodically in a daemon thread. Set the returned event to stop it."""
    stop_event = threading.Event()

    def _worker() -> None:
        if stop_event.wait(initial_delay):
            return
        while True:
            cleanup_abandoned_attempts()
            if stop_event.wait(interval):
                return

    thread = threading.Thread(
        target=_worker,
        name="attempts_cleanup",
        daemon=True,
    )
    thread.start()
    return stop_event
