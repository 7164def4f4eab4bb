"""
Keeps the operator's display awake while video is streaming.

This module handles the session's one externally visible resource, the
keep-awake lock. It is held at most once: acquiring an already held lock does
nothing, and releasing a lock that is not held does nothing.

Key responsibilities:
- Acquire the keep-awake lock once the stream starts playing
- Release it after the pipeline has been finalized
- Never double-acquire or double-release the platform resource
"""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger(__name__)


class WakeLock:
    """
    Non-reference-counted keep-awake lock.

    Subclasses implement `_acquire()` / `_release()` against the platform
    (``ScreenSaverWakeLock`` inhibits the freedesktop screen saver). This
    default implementation only tracks the held flag.
    """

    def __init__(self, tag: str = "Pi Rover Controller") -> None:
        self.tag = tag
        self._held = False
        self._lock = threading.Lock()

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> bool:
        """Returns True if this call took the lock."""
        with self._lock:
            if self._held:
                return False
            self._acquire()
            self._held = True
        logger.debug("wake lock %r acquired", self.tag)
        return True

    def release(self) -> bool:
        """Returns True if this call released the lock."""
        with self._lock:
            if not self._held:
                return False
            try:
                self._release()
            finally:
                self._held = False
        logger.debug("wake lock %r released", self.tag)
        return True

    def _acquire(self) -> None:
        pass

    def _release(self) -> None:
        pass


__all__ = ["WakeLock"]
