"""Session countdown and the background ticker that drives it."""
from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class Countdown:
    """Remaining session time at one-second resolution."""

    def __init__(self, total_seconds: int):
        if total_seconds < 0:
            raise ValueError("Countdown cannot start below zero")
        self.total_seconds = total_seconds
        self.remaining_seconds = total_seconds

    @property
    def expired(self) -> bool:
        return self.remaining_seconds <= 0

    def tick(self) -> int:
        """Advance one second and return the remaining time."""
        if self.remaining_seconds > 0:
            self.remaining_seconds -= 1
        return self.remaining_seconds

    def format(self) -> str:
        """Format remaining time as MM:SS, or HH:MM:SS past an hour."""
        hours, rest = divmod(self.remaining_seconds, 3600)
        minutes, seconds = divmod(rest, 60)
        if hours:
            return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
        return f"{minutes:02d}:{seconds:02d}"


class SessionTicker:
    """Daemon thread calling `on_tick` once per interval until stopped."""

    def __init__(
        self,
        on_tick: Callable[[], None],
        interval: float = 1.0,
        name: str = "session_ticker",
    ):
        self.on_tick = on_tick
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._worker, name=name, daemon=True)

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> None:
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        """Stop ticking; waits up to `timeout` for the thread unless called from it."""
        self._stop_event.set()
        self.join(timeout)

    def join(self, timeout: float = 2.0) -> None:
        if (
            self._thread.is_alive()
            and threading.current_thread() is not self._thread
        ):
            self._thread.join(timeout=timeout)

    def _worker(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.on_tick()
            except Exception:
                logger.exception("Session tick failed")
