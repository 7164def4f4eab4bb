"""
Game controller input for the on-screen joysticks.

Polls the first connected controller and drives the two pads from its
sticks: left stick to the left pad, right stick to the right pad. Axis
readings inside the deadzone count as centered. A stick that comes back to
center releases its pad, which stops that track.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, Optional, Set, Tuple

from PyQt5.QtCore import QObject, QTimer

from pirover.control.motor_control import Side
from pirover.gui.joystick import AXIS_RANGE, JoystickWidget

logger = logging.getLogger(__name__)


# side -> (x axis, y axis); right stick is 2/3 on most XInput/SDL mappings
DEFAULT_AXES = {
    Side.LEFT: (0, 1),
    Side.RIGHT: (2, 3),
}
JOYSTICK_DEADZONE = 0.15
POLL_INTERVAL_MS = 50


def _load_pygame():
    os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
    # Qt owns the display; SDL only needs its event queue
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    try:
        import pygame
    except ImportError as exc:
        raise RuntimeError("gamepad input needs pygame (pip install pirover[gamepad])") from exc
    return pygame


class GamepadInput(QObject):
    """
    Feeds controller sticks into JoystickWidget pads.

    Behavior:
    - A stick outside the deadzone sends a move on every poll (20 Hz)
    - A stick back inside the deadzone sends one release
    - Unplugging the controller releases every active pad
    - A controller plugged in later is picked up on the next poll
    """

    def __init__(self, sticks: Dict[Side, JoystickWidget],
                 axes: Optional[Dict[Side, Tuple[int, int]]] = None,
                 deadzone: float = JOYSTICK_DEADZONE, parent=None):
        super().__init__(parent)
        self.pygame = _load_pygame()
        self.pygame.init()
        self.pygame.joystick.init()

        self.sticks = dict(sticks)
        self.axes = dict(axes or DEFAULT_AXES)
        self.deadzone = deadzone
        self.joystick = None
        self._instance_id = None
        self._active: Set[Side] = set()

        self.timer = QTimer(self)
        self.timer.timeout.connect(self.poll)

    @property
    def connected(self) -> bool:
        return self.joystick is not None

    def start(self) -> None:
        self.timer.start(POLL_INTERVAL_MS)

    def stop(self) -> None:
        self.timer.stop()
        self._release_all()
        self.joystick = None
        self._instance_id = None
        self.pygame.joystick.quit()

    def _connect(self) -> bool:
        for i in range(self.pygame.joystick.get_count()):
            try:
                js = self.pygame.joystick.Joystick(i)
                js.init()
            except self.pygame.error as exc:
                logger.warning("failed to open controller %d: %s", i, exc)
                continue
            logger.info("using controller %d: %s", i, js.get_name())
            self.joystick = js
            self._instance_id = js.get_instance_id()
            return True
        return False

    def ensure_connected(self) -> bool:
        if self.joystick is not None and self.joystick.get_init():
            return True
        self.joystick = None
        return self._connect()

    def _disconnect(self, reason) -> None:
        logger.info("controller lost: %s", reason)
        self.joystick = None
        self._instance_id = None
        self._release_all()

    def _release_all(self) -> None:
        for side in sorted(self._active, key=lambda s: s.value):
            self.sticks[side].synthesize_release()
        self._active.clear()

    def _axis(self, index: int) -> float:
        if index >= self.joystick.get_numaxes():
            return 0.0
        value = self.joystick.get_axis(index)
        return 0.0 if abs(value) < self.deadzone else value

    def read_sticks(self) -> Dict[Side, Tuple[int, int]]:
        """Current (pan, tilt) per side; stick y is positive toward the operator."""
        readings = {}
        for side, (x_axis, y_axis) in self.axes.items():
            pan = int(round(self._axis(x_axis) * AXIS_RANGE))
            tilt = int(round(-self._axis(y_axis) * AXIS_RANGE))
            readings[side] = (pan, tilt)
        return readings

    def poll(self) -> None:
        for event in self.pygame.event.get():
            if (event.type == self.pygame.JOYDEVICEREMOVED and self.joystick is not None
                    and getattr(event, "instance_id", None) == self._instance_id):
                self._disconnect("unplugged")

        if not self.ensure_connected():
            return

        try:
            readings = self.read_sticks()
        except self.pygame.error as exc:
            self._disconnect(exc)
            return

        for side, (pan, tilt) in readings.items():
            stick = self.sticks.get(side)
            if stick is None:
                continue
            if pan or tilt:
                self._active.add(side)
                stick.synthesize_move(pan, tilt)
            elif side in self._active:
                self._active.discard(side)
                stick.synthesize_release()
