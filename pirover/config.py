"""
Operator console configuration.

The control session itself consumes a single value, the stream locator. The
remaining fields configure the collaborators around it (video pipeline
latency and the control link to the rover). Defaults match the rover's
access-point addressing; every field can be overridden from the environment
(``PIROVER_*``) and then from the command line.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional


# Rover access point defaults
DEFAULT_STREAM_URI: str = "rtsp://172.24.1.1:8554/test"
DEFAULT_CONTROL_HOST: str = "172.24.1.1"
DEFAULT_CONTROL_PORT: int = 5005

# Control link timing
DEFAULT_SEND_INTERVAL_SEC: float = 0.1

TRANSPORTS = ("udp", "serial")


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    return v if v is not None and v != "" else default


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v in (None, ""):
        return int(default)
    try:
        return int(v)
    except ValueError:
        return int(default)


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v in (None, ""):
        return float(default)
    try:
        return float(v)
    except ValueError:
        return float(default)


def env_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return bool(default)
    return str(v).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class SessionConfig:
    stream_uri: str = DEFAULT_STREAM_URI
    control_host: str = DEFAULT_CONTROL_HOST
    control_port: int = DEFAULT_CONTROL_PORT
    control_transport: str = "udp"  # "udp" | "serial"
    serial_port: Optional[str] = None
    baud_rate: int = 9600  # default for SX1262 LoRa modules
    send_interval_sec: float = DEFAULT_SEND_INTERVAL_SEC
    latency_ms: int = 50
    motor_limit: int = 100
    deadband: int = 0  # joystick tilt below this is treated as centered

    def __post_init__(self) -> None:
        if not self.stream_uri:
            raise ValueError("stream_uri must not be empty")
        if self.control_transport not in TRANSPORTS:
            raise ValueError(f"control_transport must be one of {TRANSPORTS}, got {self.control_transport!r}")
        if self.control_transport == "serial" and not self.serial_port:
            raise ValueError("serial transport needs a serial_port")
        if self.send_interval_sec <= 0:
            raise ValueError("send_interval_sec must be positive")
        if self.motor_limit <= 0:
            raise ValueError("motor_limit must be positive")
        if not 0 <= self.deadband < self.motor_limit:
            raise ValueError("deadband must be in [0, motor_limit)")

    @classmethod
    def from_env(cls) -> "SessionConfig":
        transport = _env_str("PIROVER_CONTROL_TRANSPORT", "udp")
        return cls(
            stream_uri=_env_str("PIROVER_STREAM_URI", DEFAULT_STREAM_URI),
            control_host=_env_str("PIROVER_CONTROL_HOST", DEFAULT_CONTROL_HOST),
            control_port=_env_int("PIROVER_CONTROL_PORT", DEFAULT_CONTROL_PORT),
            control_transport=str(transport).lower(),
            serial_port=_env_str("PIROVER_SERIAL_PORT"),
            baud_rate=_env_int("PIROVER_BAUD_RATE", 9600),
            send_interval_sec=_env_float("PIROVER_SEND_INTERVAL_SEC", DEFAULT_SEND_INTERVAL_SEC),
            latency_ms=_env_int("PIROVER_LATENCY_MS", 50),
            motor_limit=_env_int("PIROVER_MOTOR_LIMIT", 100),
            deadband=_env_int("PIROVER_DEADBAND", 0),
        )

    def with_overrides(self, **overrides) -> "SessionConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


__all__ = ["SessionConfig", "env_bool"]
