"""
On-screen joystick pad.

Drag inside the pad to drive; the knob springs back to center on release.
Emits pan/tilt in [-100, 100] with tilt positive away from the operator
(forward), followed by released and returned_to_center when let go.
"""

from __future__ import annotations

import math

from PyQt5.QtCore import QPointF, QSize, Qt, pyqtSignal
from PyQt5.QtGui import QBrush, QColor, QPainter, QPen
from PyQt5.QtWidgets import QSizePolicy, QWidget


AXIS_RANGE = 100


class JoystickWidget(QWidget):
    moved = pyqtSignal(int, int)
    released = pyqtSignal()
    returned_to_center = pyqtSignal()

    def __init__(self, label: str = "", parent=None):
        super().__init__(parent)
        self.label = label
        self.setMinimumSize(120, 120)
        self.setSizePolicy(QSizePolicy.Preferred, QSizePolicy.Preferred)
        self._pan = 0
        self._tilt = 0
        self._dragging = False

    @property
    def position(self) -> tuple[int, int]:
        return self._pan, self._tilt

    def sizeHint(self) -> QSize:
        return QSize(160, 160)

    def _radius(self) -> float:
        return max(1.0, min(self.width(), self.height()) / 2.0 - 12.0)

    def _axes_for(self, pos: QPointF) -> tuple[int, int]:
        center = QPointF(self.width() / 2.0, self.height() / 2.0)
        dx = pos.x() - center.x()
        dy = center.y() - pos.y()
        radius = self._radius()
        distance = math.hypot(dx, dy)
        if distance > radius:
            dx, dy = dx * radius / distance, dy * radius / distance
        return int(round(dx / radius * AXIS_RANGE)), int(round(dy / radius * AXIS_RANGE))

    def synthesize_move(self, pan: int, tilt: int) -> None:
        """Drive the pad from another input device (keyboard, gamepad)."""
        pan = max(-AXIS_RANGE, min(AXIS_RANGE, int(pan)))
        tilt = max(-AXIS_RANGE, min(AXIS_RANGE, int(tilt)))
        self._pan, self._tilt = pan, tilt
        self.update()
        self.moved.emit(pan, tilt)

    def synthesize_release(self) -> None:
        self._pan, self._tilt = 0, 0
        self.update()
        self.released.emit()
        self.returned_to_center.emit()

    def mousePressEvent(self, event):
        if event.button() == Qt.LeftButton:
            self._dragging = True
            self.synthesize_move(*self._axes_for(QPointF(event.pos())))

    def mouseMoveEvent(self, event):
        if self._dragging:
            self.synthesize_move(*self._axes_for(QPointF(event.pos())))

    def mouseReleaseEvent(self, event):
        if self._dragging and event.button() == Qt.LeftButton:
            self._dragging = False
            self.synthesize_release()

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing)
        center = QPointF(self.width() / 2.0, self.height() / 2.0)
        radius = self._radius()

        painter.setPen(QPen(QColor("#333"), 2))
        painter.setBrush(QBrush(QColor("#f0f0f0")))
        painter.drawEllipse(center, radius, radius)

        knob = QPointF(center.x() + self._pan / AXIS_RANGE * radius,
                       center.y() - self._tilt / AXIS_RANGE * radius)
        painter.setBrush(QBrush(QColor("#4CAF50") if self._dragging or self._tilt else QColor("#999")))
        painter.drawEllipse(knob, 14, 14)

        if self.label:
            painter.setPen(QColor("#666"))
            painter.drawText(self.rect().adjusted(0, 0, 0, -2), Qt.AlignBottom | Qt.AlignHCenter, self.label)
        painter.end()
