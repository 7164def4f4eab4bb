"""
Desktop keep-awake lock through the freedesktop ScreenSaver D-Bus service.
"""

from __future__ import annotations

import logging
from typing import Optional

from PyQt5.QtCore import QMetaType
from PyQt5.QtDBus import QDBusArgument, QDBusConnection, QDBusMessage

from pirover.session.power_management import WakeLock

logger = logging.getLogger(__name__)


SERVICE = "org.freedesktop.ScreenSaver"
PATH = "/org/freedesktop/ScreenSaver"
INTERFACE = "org.freedesktop.ScreenSaver"


class ScreenSaverWakeLock(WakeLock):
    """
    Inhibits the screen saver while held.

    Keep-awake is best effort: without a session bus or a ScreenSaver service
    the lock is still reported held (so it is released exactly once) and a
    warning is logged.
    """

    def __init__(self, app_name: str = "pirover", tag: str = "Pi Rover Controller") -> None:
        super().__init__(tag)
        self._app_name = app_name
        self._cookie: Optional[int] = None

    def _call(self, method: str, *args) -> Optional[list]:
        bus = QDBusConnection.sessionBus()
        if not bus.isConnected():
            logger.warning("no D-Bus session bus; %s skipped", method)
            return None
        message = QDBusMessage.createMethodCall(SERVICE, PATH, INTERFACE, method)
        message.setArguments(list(args))
        reply = bus.call(message)
        if reply.type() == QDBusMessage.ErrorMessage:
            logger.warning("%s.%s failed: %s", INTERFACE, method, reply.errorMessage())
            return None
        return reply.arguments()

    def _acquire(self) -> None:
        reply = self._call("Inhibit", self._app_name, self.tag)
        self._cookie = int(reply[0]) if reply else None

    def _release(self) -> None:
        cookie, self._cookie = self._cookie, None
        if cookie is not None:
            self._call("UnInhibit", QDBusArgument(cookie, QMetaType.UInt))
