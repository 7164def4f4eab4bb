"""Operator input: joystick command channels and accessory (light) state."""

from pirover.control.accessories import Accessory, AccessoryState
from pirover.control.motor_control import MOTOR_LIMIT, CommandChannel, MotorCommand, Side

__all__ = ["Accessory", "AccessoryState", "CommandChannel", "MotorCommand", "MOTOR_LIMIT", "Side"]
