"""Shared fakes for the control session tests."""

from __future__ import annotations

import os
import threading
from typing import List, Optional, Tuple

import pytest

# Widgets are created without a display server
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from pirover.session.controller import SessionController
from pirover.session.pipeline import PipelineBackend
from pirover.session.power_management import WakeLock

STREAM_URI = "rtsp://172.24.1.1:8554/test"


class RecordingBackend(PipelineBackend):
    """Pipeline backend that records every call and never touches a real pipeline."""

    def __init__(self, events: Optional[list] = None, init_error: Optional[Exception] = None) -> None:
        super().__init__()
        self.calls: List[Tuple] = []
        self.events = events if events is not None else []
        self.init_error = init_error
        self.attached: Optional[object] = None
        self._guard = threading.Lock()

    def _record(self, *call) -> None:
        with self._guard:
            self.calls.append(call)
            self.events.append(call[0])

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]

    def count(self, name: str) -> int:
        return self.names().count(name)

    def query_runtime(self):
        return "recording", "1.0"

    def init(self) -> None:
        self._record("init")
        if self.init_error is not None:
            raise self.init_error

    def finalize(self) -> None:
        self._record("finalize")
        self.attached = None

    def set_uri(self, uri: str) -> None:
        self._record("set_uri", uri)

    def play(self) -> None:
        self._record("play")

    def pause(self) -> None:
        self._record("pause")

    def surface_init(self, handle, width, height) -> None:
        self._record("surface_init", handle, width, height)
        # Replacing an attachment releases the previous one
        self.attached = handle

    def surface_finalize(self) -> None:
        self._record("surface_finalize")
        self.attached = None

    def set_motor(self, side, value) -> None:
        self._record("set_motor", side, value)

    def set_accessory(self, accessory, on) -> None:
        self._record("set_accessory", accessory, on)


class RecordingWakeLock(WakeLock):
    def __init__(self, events: Optional[list] = None) -> None:
        super().__init__("test")
        self.events = events if events is not None else []
        self.acquired = 0
        self.released = 0

    def _acquire(self) -> None:
        self.acquired += 1
        self.events.append("wake_acquire")

    def _release(self) -> None:
        self.released += 1
        self.events.append("wake_release")


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def backend(events) -> RecordingBackend:
    return RecordingBackend(events)


@pytest.fixture
def wake_lock(events) -> RecordingWakeLock:
    return RecordingWakeLock(events)


@pytest.fixture
def controller(backend, wake_lock) -> SessionController:
    return SessionController(STREAM_URI, backend, wake_lock=wake_lock)


@pytest.fixture
def started(controller) -> SessionController:
    controller.start()
    return controller


@pytest.fixture
def playing(started, backend) -> SessionController:
    started.surface_created(0x1)
    started.surface_changed(0x1, 640, 480)
    backend.notify_ready()
    return started
