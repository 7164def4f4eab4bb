"""
Lifecycle state machine around the streaming media pipeline.

The pipeline itself (demux, decode, render, and the control link to the rover)
is a collaborator behind ``PipelineBackend``. This module owns the session's
view of it: which lifecycle state it is in, which render target it holds, and
which commands it accepts right now.

Key responsibilities:
- Track Uninitialized -> Initialized -> SurfaceAttached -> Playing/Paused -> Finalized
- Reject commands outside Initialized..Paused with PipelineNotReady
- Hold at most one render target and drop it without stopping playback
- Provide the single lock that serializes pipeline, surface and input mutations
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import TYPE_CHECKING, Optional, Protocol

from pirover.errors import InvalidSurfaceHandle, InvalidTransition, PipelineNotReady

if TYPE_CHECKING:
    from pirover.control.accessories import Accessory
    from pirover.control.motor_control import Side
    from pirover.session.surface import RenderTarget

logger = logging.getLogger(__name__)


class PipelineState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    SURFACE_ATTACHED = "surface-attached"
    PLAYING = "playing"
    PAUSED = "paused"
    FINALIZED = "finalized"

    @property
    def accepts_commands(self) -> bool:
        return self in _ACCEPTING

    def __str__(self) -> str:
        return self.value


_ACCEPTING = frozenset(
    {
        PipelineState.INITIALIZED,
        PipelineState.SURFACE_ATTACHED,
        PipelineState.PLAYING,
        PipelineState.PAUSED,
    }
)

class PipelineListener(Protocol):
    """Receiver of the pipeline's asynchronous notifications."""

    def on_ready(self) -> None: ...

    def on_size_changed(self, width: int, height: int) -> None: ...


class PipelineBackend:
    """
    Hardware/library abstraction for the media pipeline and rover link.

    Every operation must be a fast, non-blocking hand-off to the backend's own
    worker threads. Notifications (ready, media size) are delivered to the
    registered listener from those threads. This default implementation only
    logs; ``GstPipelineBackend`` drives a real GStreamer playbin.
    """

    def __init__(self) -> None:
        self._listener: Optional[PipelineListener] = None

    def set_listener(self, listener: Optional[PipelineListener]) -> None:
        self._listener = listener

    def query_runtime(self) -> tuple[str, str]:
        """Initialize process-wide library state; returns (name, version)."""
        return "null", "0"

    def init(self) -> None:
        logger.debug("backend init")

    def finalize(self) -> None:
        logger.debug("backend finalize")

    def join(self, timeout: float = 2.0) -> None:
        """Wait (bounded) for worker threads after finalize; never called under the session lock."""

    def set_uri(self, uri: str) -> None:
        logger.debug("backend uri %s", uri)

    def play(self) -> None:
        logger.debug("backend play")

    def pause(self) -> None:
        logger.debug("backend pause")

    def surface_init(self, handle: object, width: int, height: int) -> None:
        logger.debug("backend surface %r %dx%d", handle, width, height)

    def surface_finalize(self) -> None:
        logger.debug("backend surface released")

    def set_motor(self, side: "Side", value: int) -> None:
        pass

    def set_accessory(self, accessory: "Accessory", on: bool) -> None:
        pass

    def notify_ready(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.on_ready()

    def notify_size_changed(self, width: int, height: int) -> None:
        listener = self._listener
        if listener is not None:
            listener.on_size_changed(int(width), int(height))


class PipelineStateMachine:
    """
    Serialized lifecycle around a ``PipelineBackend``.

    All mutations happen under ``lock`` (re-entrant), which is also the lock
    the surface adapter and session controller take, so a surface detach can
    never interleave with an in-flight attach or command. Commands issued
    outside Initialized..Paused raise ``PipelineNotReady``; nothing is queued.
    """

    def __init__(self, backend: PipelineBackend, lock: Optional[threading.RLock] = None) -> None:
        self._backend = backend
        self.lock = lock if lock is not None else threading.RLock()
        self._state = PipelineState.UNINITIALIZED
        self._render_target: Optional["RenderTarget"] = None
        self._uri: Optional[str] = None
        self._init_attempted = False

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def render_target(self) -> Optional["RenderTarget"]:
        return self._render_target

    @property
    def uri(self) -> Optional[str]:
        return self._uri

    @property
    def backend(self) -> PipelineBackend:
        return self._backend

    def _require_live(self, operation: str) -> None:
        if not self._state.accepts_commands:
            raise PipelineNotReady(operation, self._state)

    def _transition(self, new_state: PipelineState) -> None:
        if new_state is not self._state:
            logger.debug("pipeline %s -> %s", self._state, new_state)
            self._state = new_state

    def init(self) -> None:
        with self.lock:
            if self._state is not PipelineState.UNINITIALIZED:
                raise InvalidTransition(f"init() from {self._state}")
            self._init_attempted = True
            self._backend.init()
            self._transition(PipelineState.INITIALIZED)

    def finalize(self) -> None:
        with self.lock:
            if self._state is PipelineState.FINALIZED:
                return
            self._render_target = None
            self._transition(PipelineState.FINALIZED)
            # A backend whose init raised part-way still gets its finalize.
            if self._init_attempted:
                self._backend.finalize()

    def surface_init(self, target: "RenderTarget") -> None:
        with self.lock:
            self._require_live("surface_init")
            if not target.valid:
                raise InvalidSurfaceHandle(f"surface {target.handle!r} was already destroyed")
            previous = self._render_target
            if previous is not None and previous is not target:
                logger.debug("replacing render target %r with %r", previous.handle, target.handle)
            self._backend.surface_init(target.handle, target.width, target.height)
            self._render_target = target
            if self._state is PipelineState.INITIALIZED:
                self._transition(PipelineState.SURFACE_ATTACHED)

    def surface_finalize(self) -> None:
        with self.lock:
            self._require_live("surface_finalize")
            if self._render_target is None:
                raise InvalidSurfaceHandle("no render target is attached")
            self._backend.surface_finalize()
            self._render_target = None
            if self._state is PipelineState.SURFACE_ATTACHED:
                self._transition(PipelineState.INITIALIZED)

    def set_uri(self, uri: str) -> None:
        with self.lock:
            self._require_live("set_uri")
            self._backend.set_uri(uri)
            self._uri = uri

    def play(self) -> None:
        with self.lock:
            self._require_live("play")
            self._backend.play()
            self._transition(PipelineState.PLAYING)

    def pause(self) -> None:
        with self.lock:
            self._require_live("pause")
            self._backend.pause()
            self._transition(PipelineState.PAUSED)

    def set_motor(self, side: "Side", value: int) -> None:
        with self.lock:
            self._require_live("set_motor")
            self._backend.set_motor(side, value)

    def set_accessory(self, accessory: "Accessory", on: bool) -> None:
        with self.lock:
            self._require_live("set_accessory")
            self._backend.set_accessory(accessory, on)


__all__ = [
    "PipelineState",
    "PipelineListener",
    "PipelineBackend",
    "PipelineStateMachine",
]
