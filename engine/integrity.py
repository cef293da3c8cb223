"""Integrity signals gathered while an attempt is in progress."""
from __future__ import annotations

import enum
import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class MediaStream(Protocol):
    """Audio/video capture handle held during a session."""

    def stop(self) -> None: ...


class MediaAccess(Protocol):
    """Source of camera and microphone access.

    `request_media` raises CapabilityDenied when the candidate refuses.
    """

    def request_media(self) -> MediaStream: ...


class Posture(str, enum.Enum):
    """Whether the monitor allows interaction."""

    INACTIVE = "inactive"
    ACTIVE = "active"
    BLOCKED = "blocked"


class IntegrityMonitor:
    """
    Accumulates integrity signals for one session.

    Visibility loss counts as a violation. Leaving fullscreen is not a
    violation but blocks interaction until fullscreen is restored. The
    monitor never ends a session or changes a score.
    """

    def __init__(self) -> None:
        self.violation_count = 0
        self.active = False
        self._fullscreen = True
        self._media: MediaStream | None = None

    @property
    def posture(self) -> Posture:
        if not self.active:
            return Posture.INACTIVE
        if not self._fullscreen:
            return Posture.BLOCKED
        return Posture.ACTIVE

    @property
    def blocked(self) -> bool:
        return self.posture is Posture.BLOCKED

    @property
    def media_active(self) -> bool:
        return self._media is not None

    def activate(self, media: MediaStream | None, fullscreen: bool = True) -> None:
        """Start observing; takes ownership of the media handle."""
        self._media = media
        self._fullscreen = fullscreen
        self.active = True
        logger.info(f"Integrity monitor activated (fullscreen={fullscreen})")

    def deactivate(self) -> None:
        """Stop observing and release the media handle. Safe to call twice."""
        was_active = self.active
        self.active = False
        self.release_media()
        if was_active:
            logger.info(
                f"Integrity monitor deactivated with {self.violation_count} violation(s)"
            )

    def release_media(self) -> None:
        media, self._media = self._media, None
        if media is None:
            return
        try:
            media.stop()
        except Exception:
            logger.exception("Failed to stop media stream")

    def on_visibility_change(self, hidden: bool) -> bool:
        """Record a visibility change. Returns True when a violation was counted."""
        if not self.active or not hidden:
            return False
        self.violation_count += 1
        logger.info(f"Visibility lost, violation count now {self.violation_count}")
        return True

    def on_fullscreen_change(self, fullscreen: bool) -> None:
        if not self.active:
            return
        if self._fullscreen != fullscreen:
            logger.info(f"Fullscreen {'restored' if fullscreen else 'exited'}")
        self._fullscreen = fullscreen
