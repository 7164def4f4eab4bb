"""
Translates joystick samples into motor commands.

This module turns operator input into the left/right motor commands sent to
the rover's tracked chassis. Each joystick drives one side of the chassis
(tank drive): its tilt axis is that side's speed, its pan axis is reserved.

Key responsibilities:
- Define the immutable left/right motor command value
- Clamp speeds to the symmetric motor range
- Map tilt to one side's speed for that side's joystick
- Command zero power whenever input delivery is interrupted (release, recenter)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import ClassVar


MOTOR_LIMIT: int = 100


def _apply_deadband(value: int, deadband: int) -> int:
    if abs(value) < deadband:
        return 0
    return value


def _clamp(value: int, minimum: int, maximum: int) -> int:
    if value < minimum:
        return minimum
    if value > maximum:
        return maximum
    return value


class Side(str, enum.Enum):
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class MotorCommand:
    left: int = 0
    right: int = 0

    STOP: ClassVar["MotorCommand"]

    def __post_init__(self) -> None:
        object.__setattr__(self, "left", _clamp(int(self.left), -MOTOR_LIMIT, MOTOR_LIMIT))
        object.__setattr__(self, "right", _clamp(int(self.right), -MOTOR_LIMIT, MOTOR_LIMIT))

    @classmethod
    def for_side(cls, side: Side, value: int) -> "MotorCommand":
        if Side(side) is Side.LEFT:
            return cls(left=value, right=0)
        return cls(left=0, right=value)

    def value_for(self, side: Side) -> int:
        return self.left if Side(side) is Side.LEFT else self.right

    def with_side(self, side: Side, value: int) -> "MotorCommand":
        if Side(side) is Side.LEFT:
            return MotorCommand(left=value, right=self.right)
        return MotorCommand(left=self.left, right=value)

    @property
    def is_stopped(self) -> bool:
        return self.left == 0 and self.right == 0

    def as_tuple(self) -> tuple[int, int]:
        return self.left, self.right


MotorCommand.STOP = MotorCommand(0, 0)


class CommandChannel:
    """
    One joystick's worth of motor control.

    Two instances exist, one per side. Every call is a pure function of its
    arguments: no state is carried between samples, so "last command wins" is
    decided by the session controller rather than hidden here.

    Behavior:
    - translate: this side = clamp(tilt) (after the optional deadband),
      other side = 0; pan is accepted and ignored
    - on_released / on_returned_to_center: always MotorCommand.STOP
    """

    def __init__(self, side: Side, limit: int = MOTOR_LIMIT, deadband: int = 0) -> None:
        self._side = Side(side)
        self._limit = max(1, min(MOTOR_LIMIT, int(limit)))
        self._deadband = max(0, int(deadband))

    @property
    def side(self) -> Side:
        return self._side

    def translate(self, pan: int, tilt: int) -> MotorCommand:
        speed = _clamp(_apply_deadband(int(tilt), self._deadband), -self._limit, self._limit)
        return MotorCommand.for_side(self._side, speed)

    def on_released(self) -> MotorCommand:
        return MotorCommand.STOP

    def on_returned_to_center(self) -> MotorCommand:
        return MotorCommand.STOP


__all__ = [
    "MOTOR_LIMIT",
    "Side",
    "MotorCommand",
    "CommandChannel",
]
