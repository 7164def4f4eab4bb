"""
Displays the incoming video stream.

This module provides the native window the pipeline renders into and reports
its lifetime to the control session.

Key responsibilities:
- Expose a native window handle as the render target
- Report surface created (shown), changed (resized) and destroyed (hidden)
- Keep the media aspect ratio once the stream reports its size
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from PyQt5.QtCore import QSize, Qt
from PyQt5.QtWidgets import QSizePolicy, QWidget

from pirover.errors import SessionError

if TYPE_CHECKING:
    from pirover.session.controller import SessionController

logger = logging.getLogger(__name__)


class VideoSurface(QWidget):
    """
    Native child window handed to the pipeline as its render target.

    Qt paints nothing here; the video sink draws straight into the window.
    """

    def __init__(self, controller: Optional["SessionController"] = None, parent=None):
        super().__init__(parent)
        self.setAttribute(Qt.WA_NativeWindow)
        self.setAttribute(Qt.WA_PaintOnScreen)
        self.setAttribute(Qt.WA_NoSystemBackground)
        self.setAttribute(Qt.WA_OpaquePaintEvent)
        policy = QSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        policy.setHeightForWidth(True)
        self.setSizePolicy(policy)
        self.setMinimumSize(320, 240)

        self._controller = controller
        self._handle: Optional[int] = None
        self.media_width = 0
        self.media_height = 0

    @property
    def handle(self) -> Optional[int]:
        return self._handle

    def set_controller(self, controller: Optional["SessionController"]) -> None:
        self._controller = controller

    def paintEngine(self):
        return None

    def _notify(self, name: str, *args) -> None:
        controller = self._controller
        if controller is None:
            return
        try:
            getattr(controller, name)(*args)
        except SessionError as exc:
            logger.warning("%s%r rejected: %s", name, args, exc)

    def showEvent(self, event):
        super().showEvent(event)
        handle = int(self.winId())
        if handle != self._handle:
            if self._handle is not None:
                self._notify("surface_destroyed")
            self._handle = handle
            self._notify("surface_created", handle)
        self._notify("surface_changed", handle, self.width(), self.height())

    def resizeEvent(self, event):
        super().resizeEvent(event)
        if self._handle is not None and self.isVisible():
            self._notify("surface_changed", self._handle, event.size().width(), event.size().height())

    def hideEvent(self, event):
        # The pipeline must drop the window before Qt may release it
        if self._handle is not None:
            self._notify("surface_destroyed")
            self._handle = None
        super().hideEvent(event)

    def set_media_size(self, width: int, height: int) -> None:
        """Relayout for the stream's native size (UI thread only)."""
        logger.debug("media size %dx%d, requesting layout", width, height)
        self.media_width = int(width)
        self.media_height = int(height)
        self.updateGeometry()

    def hasHeightForWidth(self) -> bool:
        return self.media_width > 0 and self.media_height > 0

    def heightForWidth(self, width: int) -> int:
        if not self.hasHeightForWidth():
            return super().heightForWidth(width)
        return width * self.media_height // self.media_width

    def sizeHint(self) -> QSize:
        if self.hasHeightForWidth():
            return QSize(self.media_width, self.media_height)
        return QSize(640, 480)
