"""
Tests for game controller input.

Test coverage areas:
- Stick to pad mapping for both sides, deadzone and axis sign
- Release when a stick recenters, is unplugged or fails to read
- Late controller connection and shutdown
"""

from __future__ import annotations

import logging
import sys
import types

import pytest

from pirover.control.motor_control import Side
from pirover.gui.gamepad import GamepadInput
from pirover.gui.joystick import JoystickWidget

JOYDEVICEREMOVED = 0x606


class FakePygameError(RuntimeError):
    pass


class FakeJoystick:
    def __init__(self, index: int) -> None:
        self.index = index
        self.axes = [0.0] * 6
        self.initialized = False
        self.fail_reads = False

    def init(self):
        self.initialized = True

    def get_init(self):
        return self.initialized

    def get_name(self):
        return "Fake Pad"

    def get_instance_id(self):
        return 10 + self.index

    def get_numaxes(self):
        return len(self.axes)

    def get_axis(self, index):
        if self.fail_reads:
            raise FakePygameError("read failed")
        return self.axes[index]


class FakePygame(types.ModuleType):
    def __init__(self) -> None:
        super().__init__("pygame")
        self.error = FakePygameError
        self.JOYDEVICEREMOVED = JOYDEVICEREMOVED
        self.pads = []
        self.pending = []
        self.initialized = False
        self.joystick = types.SimpleNamespace(
            init=lambda: None,
            quit=self._quit_joystick,
            get_count=lambda: len(self.pads),
            Joystick=lambda i: self.pads[i],
        )
        self.event = types.SimpleNamespace(get=self._drain)
        self.joystick_quit = False

    def init(self):
        self.initialized = True

    def _quit_joystick(self):
        self.joystick_quit = True

    def _drain(self):
        events, self.pending = self.pending, []
        return events

    def plug(self) -> FakeJoystick:
        pad = FakeJoystick(len(self.pads))
        self.pads.append(pad)
        return pad


@pytest.fixture
def fake_pygame(monkeypatch):
    module = FakePygame()
    monkeypatch.setitem(sys.modules, "pygame", module)
    return module


@pytest.fixture
def sticks(qtbot):
    pads = {Side.LEFT: JoystickWidget("Left"), Side.RIGHT: JoystickWidget("Right")}
    for pad in pads.values():
        qtbot.addWidget(pad)
    return pads


@pytest.fixture
def recorded(sticks):
    log = []
    for side, pad in sticks.items():
        pad.moved.connect(lambda pan, tilt, s=side: log.append(("moved", s, pan, tilt)))
        pad.released.connect(lambda s=side: log.append(("released", s)))
    return log


@pytest.fixture
def gamepad(fake_pygame, sticks):
    return GamepadInput(sticks)


def test_missing_pygame_raises_runtime_error(monkeypatch, sticks) -> None:
    monkeypatch.setitem(sys.modules, "pygame", None)
    with pytest.raises(RuntimeError, match="pygame"):
        GamepadInput(sticks)


def test_left_stick_forward_drives_left_pad(gamepad, fake_pygame, recorded) -> None:
    pad = fake_pygame.plug()
    pad.axes[1] = -1.0  # pushed away from the operator

    gamepad.poll()

    assert gamepad.connected
    assert recorded == [("moved", Side.LEFT, 0, 100)]


def test_right_stick_uses_its_own_axes(gamepad, fake_pygame, recorded) -> None:
    pad = fake_pygame.plug()
    pad.axes[2] = 0.5
    pad.axes[3] = 0.6

    gamepad.poll()

    assert recorded == [("moved", Side.RIGHT, 50, -60)]


def test_deadzone_counts_as_centered(gamepad, fake_pygame, recorded) -> None:
    pad = fake_pygame.plug()
    pad.axes[1] = 0.1
    pad.axes[3] = -0.14

    gamepad.poll()

    assert recorded == []


def test_recentering_releases_once(gamepad, fake_pygame, recorded) -> None:
    pad = fake_pygame.plug()
    pad.axes[1] = -0.8
    gamepad.poll()
    gamepad.poll()
    pad.axes[1] = 0.05
    gamepad.poll()
    gamepad.poll()

    assert recorded == [
        ("moved", Side.LEFT, 0, 80),
        ("moved", Side.LEFT, 0, 80),
        ("released", Side.LEFT),
    ]


def test_late_controller_is_picked_up(gamepad, fake_pygame, recorded) -> None:
    gamepad.poll()
    assert not gamepad.connected

    pad = fake_pygame.plug()
    pad.axes[3] = -1.0
    gamepad.poll()

    assert gamepad.connected
    assert recorded == [("moved", Side.RIGHT, 0, 100)]


def test_unplug_releases_active_pads(gamepad, fake_pygame, recorded, sticks) -> None:
    pad = fake_pygame.plug()
    pad.axes[1] = -1.0
    pad.axes[3] = -1.0
    gamepad.poll()
    del recorded[:]

    fake_pygame.pads.remove(pad)
    fake_pygame.pending.append(types.SimpleNamespace(type=JOYDEVICEREMOVED, instance_id=pad.get_instance_id()))
    gamepad.poll()

    assert not gamepad.connected
    assert recorded == [("released", Side.LEFT), ("released", Side.RIGHT)]
    assert sticks[Side.LEFT].position == (0, 0)


def test_other_controller_removal_is_ignored(gamepad, fake_pygame, recorded) -> None:
    pad = fake_pygame.plug()
    pad.axes[1] = -1.0
    gamepad.poll()

    fake_pygame.pending.append(types.SimpleNamespace(type=JOYDEVICEREMOVED, instance_id=99))
    gamepad.poll()

    assert gamepad.joystick is pad
    assert ("released", Side.LEFT) not in recorded


def test_read_error_releases_and_drops_controller(gamepad, fake_pygame, recorded, caplog) -> None:
    pad = fake_pygame.plug()
    pad.axes[1] = -1.0
    gamepad.poll()

    pad.fail_reads = True
    with caplog.at_level(logging.INFO, logger="pirover.gui.gamepad"):
        gamepad.poll()

    assert gamepad.joystick is None
    assert recorded[-1] == ("released", Side.LEFT)
    assert "controller lost" in caplog.text


def test_stop_releases_and_shuts_down(gamepad, fake_pygame, recorded) -> None:
    pad = fake_pygame.plug()
    pad.axes[3] = 1.0
    gamepad.start()
    gamepad.poll()

    gamepad.stop()

    assert not gamepad.timer.isActive()
    assert recorded[-1] == ("released", Side.RIGHT)
    assert fake_pygame.joystick_quit
    assert not gamepad.connected
