"""
Sends the control packet to the rover on a fixed period.

The rover stops on its own if packets stop arriving, so the console resends
the latest state continuously instead of sending only on change. Two links
are supported: UDP over the rover's Wi-Fi access point (default) and a serial
port for LoRa radio modems.
"""

from __future__ import annotations

import logging
import socket
import threading
import time
from typing import Optional, Protocol

import serial

from pirover.config import SessionConfig
from pirover.wireless.comm import ControlState

logger = logging.getLogger(__name__)


class Link(Protocol):
    def send(self, data: bytes) -> None: ...

    def close(self) -> None: ...


class UdpLink:
    def __init__(self, host: str, port: int) -> None:
        self._address = (host, int(port))
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    def send(self, data: bytes) -> None:
        self._sock.sendto(data, self._address)

    def close(self) -> None:
        self._sock.close()

    def __repr__(self) -> str:
        return f"UdpLink({self._address[0]}:{self._address[1]})"


class SerialLink:
    """Control packets over a serial port (LoRa modules appear as one)."""

    def __init__(self, port: str, baud_rate: int = 9600) -> None:
        self._port = port
        self._serial = serial.Serial(
            port=port,
            baudrate=baud_rate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=1,
            write_timeout=1,
        )

    def send(self, data: bytes) -> None:
        self._serial.write(data)

    def close(self) -> None:
        if self._serial.is_open:
            self._serial.close()

    def __repr__(self) -> str:
        return f"SerialLink({self._port})"


def open_link(config: SessionConfig) -> Link:
    if config.control_transport == "serial":
        return SerialLink(str(config.serial_port), config.baud_rate)
    return UdpLink(config.control_host, config.control_port)


class ControlSender:
    """
    Background thread resending ``state.packet()`` every ``interval_sec``.

    Send failures are logged and the loop keeps going; the link is closed when
    the sender stops.
    """

    def __init__(self, state: ControlState, link: Link, interval_sec: float = 0.1) -> None:
        self._state = state
        self._link = link
        self._interval = max(0.01, float(interval_sec))
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.packets_sent = 0
        self.send_errors = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="pirover-control", daemon=True)
        self._thread.start()
        logger.info("control link %r started (every %.0f ms)", self._link, self._interval * 1000)

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._thread = None
        try:
            self._link.close()
        except OSError as exc:
            logger.warning("closing control link failed: %s", exc)
        logger.info("control link stopped after %d packets", self.packets_sent)

    def send_now(self) -> bool:
        try:
            self._link.send(self._state.packet())
        except (OSError, serial.SerialException) as exc:
            self.send_errors += 1
            # First failure and then every 50th, to keep an unreachable rover quiet
            if self.send_errors == 1 or self.send_errors % 50 == 0:
                logger.warning("control packet send failed (%d so far): %s", self.send_errors, exc)
            return False
        self.packets_sent += 1
        return True

    def _run(self) -> None:
        while not self._stop.is_set():
            loop_start = time.monotonic()
            self.send_now()
            # Maintain update rate
            elapsed = time.monotonic() - loop_start
            self._stop.wait(max(0.0, self._interval - elapsed))


__all__ = ["Link", "UdpLink", "SerialLink", "open_link", "ControlSender"]
