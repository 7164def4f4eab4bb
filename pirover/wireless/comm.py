"""
Defines the control packet sent from the operator console to the rover.

This module defines the binary frame that carries the current motor and light
state to the rover, and the thread-safe buffer the session writes into.

Key responsibilities:
- Hold the latest motor, lights and flags state behind one lock
- Map left/right commands onto the four motor channels
- Encode the 12-byte big-endian control packet (and decode it for the rover side)

Packet layout (six unsigned 16-bit big-endian words):
    motor0 motor1 motor2 motor3 lights flags
Right side drives motors 0 and 2, left side drives motors 1 and 3. Motor
words are sign-magnitude: bit 15 set means reverse, the low bits carry the
speed in percent.
"""

from __future__ import annotations

import struct
import threading
from dataclasses import dataclass
from typing import Tuple

from pirover.control.accessories import Accessory
from pirover.control.motor_control import MOTOR_LIMIT, Side


PACKET_FORMAT = ">6H"
PACKET_SIZE = struct.calcsize(PACKET_FORMAT)  # 12 bytes

REVERSE_BIT = 0x8000

_SIDE_CHANNELS = {
    Side.RIGHT: (0, 2),
    Side.LEFT: (1, 3),
}


def encode_motor(value: int) -> int:
    value = max(-MOTOR_LIMIT, min(MOTOR_LIMIT, int(value)))
    if value < 0:
        return REVERSE_BIT | -value
    return value


def decode_motor(word: int) -> int:
    magnitude = word & ~REVERSE_BIT & 0xFFFF
    return -magnitude if word & REVERSE_BIT else magnitude


@dataclass(frozen=True)
class ControlFrame:
    motors: Tuple[int, int, int, int] = (0, 0, 0, 0)
    lights: int = 0
    flags: int = 0

    @property
    def left(self) -> int:
        return self.motors[1]

    @property
    def right(self) -> int:
        return self.motors[0]

    def light_on(self, accessory: Accessory) -> bool:
        return bool(self.lights & Accessory(accessory).mask)


def encode_packet(frame: ControlFrame) -> bytes:
    words = [encode_motor(m) for m in frame.motors]
    words.append(frame.lights & 0xFFFF)
    words.append(frame.flags & 0xFFFF)
    return struct.pack(PACKET_FORMAT, *words)


def decode_packet(data: bytes) -> ControlFrame:
    if len(data) != PACKET_SIZE:
        raise ValueError(f"control packet must be {PACKET_SIZE} bytes, got {len(data)}")
    words = struct.unpack(PACKET_FORMAT, data)
    motors = tuple(decode_motor(w) for w in words[:4])
    return ControlFrame(motors=motors, lights=words[4], flags=words[5])  # type: ignore[arg-type]


class ControlState:
    """Latest control values; written by the session, read by the sender."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._motors = [0, 0, 0, 0]
        self._lights = 0
        self._flags = 0

    def set_side(self, side: Side, value: int) -> None:
        value = max(-MOTOR_LIMIT, min(MOTOR_LIMIT, int(value)))
        with self._lock:
            for channel in _SIDE_CHANNELS[Side(side)]:
                self._motors[channel] = value

    def set_light(self, accessory: Accessory, on: bool) -> None:
        mask = Accessory(accessory).mask
        with self._lock:
            if on:
                self._lights |= mask
            else:
                self._lights &= ~mask

    def set_flags(self, flags: int) -> None:
        with self._lock:
            self._flags = int(flags) & 0xFFFF

    def stop(self) -> None:
        with self._lock:
            self._motors = [0, 0, 0, 0]

    def frame(self) -> ControlFrame:
        with self._lock:
            return ControlFrame(tuple(self._motors), self._lights, self._flags)  # type: ignore[arg-type]

    def packet(self) -> bytes:
        return encode_packet(self.frame())


__all__ = [
    "PACKET_SIZE",
    "ControlFrame",
    "ControlState",
    "encode_motor",
    "decode_motor",
    "encode_packet",
    "decode_packet",
]
