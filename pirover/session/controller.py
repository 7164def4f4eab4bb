"""
Session controller for one rover connection.

This module composes the control session: the pipeline state machine, the
surface adapter, the two joystick command channels, the accessory state and
the keep-awake lock. It is the single place where UI/input events and the
pipeline's asynchronous notifications meet, and every state mutation happens
under the state machine's lock.

Key responsibilities:
- Start the pipeline and tear the whole session down cleanly on failure
- Set the stream URI, start playback and keep the display awake on first ready
- Forward joystick output last-write-wins, dropping it while the pipeline is not live
- Forward accessory toggles and surface notifications
- Marshal media size changes to the UI without touching the pipeline
- Finalize the pipeline before releasing the wake lock at session end
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from pirover.control.accessories import AccessoryId, AccessoryState
from pirover.control.motor_control import MOTOR_LIMIT, CommandChannel, MotorCommand, Side
from pirover.errors import InvalidTransition, PipelineNotReady, SessionInitError
from pirover.session.pipeline import PipelineBackend, PipelineState, PipelineStateMachine
from pirover.session.power_management import WakeLock
from pirover.session.runtime import ensure_runtime
from pirover.session.surface import RenderTarget, SurfaceLifecycleAdapter

logger = logging.getLogger(__name__)


RelayoutCallback = Callable[[int, int], None]


@dataclass(eq=False)
class Session:
    stream_uri: str
    machine: PipelineStateMachine
    accessories: AccessoryState
    last_command: MotorCommand = MotorCommand.STOP
    media_size: Optional[Tuple[int, int]] = None
    ready_seen: bool = False

    @property
    def state(self) -> PipelineState:
        return self.machine.state

    @property
    def render_target(self) -> Optional[RenderTarget]:
        return self.machine.render_target


class SessionController:
    """
    Owns exactly one ``Session``; a new connection needs a new controller.

    The controller registers itself as the backend's listener, so ``on_ready``
    and ``on_size_changed`` may be called from the pipeline's own threads.
    """

    def __init__(self,
                 stream_uri: str,
                 backend: PipelineBackend,
                 wake_lock: Optional[WakeLock] = None,
                 relayout: Optional[RelayoutCallback] = None,
                 motor_limit: int = MOTOR_LIMIT,
                 deadband: int = 0) -> None:
        if not stream_uri:
            raise ValueError("stream_uri must not be empty")
        self._backend = backend
        self._wake_lock = wake_lock if wake_lock is not None else WakeLock()
        self._relayout = relayout

        machine = PipelineStateMachine(backend)
        self.lock = machine.lock
        self._machine = machine
        self._surface = SurfaceLifecycleAdapter(machine)
        self._channels = {
            Side.LEFT: CommandChannel(Side.LEFT, limit=motor_limit, deadband=deadband),
            Side.RIGHT: CommandChannel(Side.RIGHT, limit=motor_limit, deadband=deadband),
        }
        self._session = Session(stream_uri=stream_uri, machine=machine,
                                accessories=AccessoryState(machine))
        self._started = False
        self._ended = False

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> PipelineState:
        return self._machine.state

    @property
    def surface(self) -> SurfaceLifecycleAdapter:
        return self._surface

    @property
    def wake_lock(self) -> WakeLock:
        return self._wake_lock

    def set_relayout(self, relayout: Optional[RelayoutCallback]) -> None:
        self._relayout = relayout

    # -- lifecycle -------------------------------------------------------

    def start(self) -> Session:
        with self.lock:
            if self._started:
                raise InvalidTransition("session already started")
            self._started = True
            try:
                ensure_runtime(self._backend.query_runtime)
                self._backend.set_listener(self)
                self._machine.init()
            except Exception as exc:
                logger.error("session failed to start: %s", exc)
                self._teardown()
                if isinstance(exc, SessionInitError):
                    raise
                raise SessionInitError(f"session failed to start: {exc}") from exc
        logger.info("session started for %s", self._session.stream_uri)
        return self._session

    def end(self) -> None:
        with self.lock:
            if self._ended:
                return
            for side in Side:
                self._forward(side, MotorCommand.STOP)
            self._teardown()
        self._backend.join()
        logger.info("session ended")

    def _teardown(self) -> None:
        self._ended = True
        try:
            self._machine.finalize()
        finally:
            self._backend.set_listener(None)
            self._wake_lock.release()

    def pause(self) -> None:
        self._machine.pause()

    def resume(self) -> None:
        self._machine.play()

    # -- pipeline notifications (pipeline threads) ------------------------

    def on_ready(self) -> bool:
        """First ready starts playback; returns False for duplicates and late arrivals."""
        with self.lock:
            session = self._session
            if session.ready_seen:
                logger.debug("duplicate ready notification ignored")
                return False
            if not self._machine.state.accepts_commands:
                logger.warning("ready notification while pipeline is %s; ignored", self._machine.state)
                return False
            session.ready_seen = True
            self._machine.set_uri(session.stream_uri)
            self._machine.play()
        # Outside the session lock: the platform call may block.
        # ready_seen keeps this to one acquire per session.
        self._wake_lock.acquire()
        with self.lock:
            ended = self._ended
        if ended:
            # end() may have run before the lock was held
            self._wake_lock.release()
            return False
        logger.info("pipeline ready, playing %s", session.stream_uri)
        return True

    def on_size_changed(self, width: int, height: int) -> None:
        # Runs on the pipeline thread: no pipeline lock, no pipeline calls.
        self._session.media_size = (int(width), int(height))
        logger.info("media size changed to %dx%d", width, height)
        relayout = self._relayout
        if relayout is not None:
            relayout(int(width), int(height))

    # -- operator input (UI thread) ---------------------------------------

    def joystick_moved(self, side: Side, pan: int, tilt: int) -> bool:
        side = Side(side)
        return self._forward(side, self._channels[side].translate(pan, tilt))

    def joystick_released(self, side: Side) -> bool:
        side = Side(side)
        return self._forward(side, self._channels[side].on_released())

    def joystick_centered(self, side: Side) -> bool:
        side = Side(side)
        return self._forward(side, self._channels[side].on_returned_to_center())

    def _forward(self, side: Side, command: MotorCommand) -> bool:
        value = command.value_for(side)
        with self.lock:
            try:
                self._machine.set_motor(side, value)
            except PipelineNotReady as exc:
                logger.debug("dropped %s motor %d: %s", side.value, value, exc)
                return False
            session = self._session
            session.last_command = session.last_command.with_side(side, value)
        return True

    def accessory_toggled(self, accessory: AccessoryId, on: bool) -> None:
        self._session.accessories.set_accessory(accessory, on)

    # -- surface notifications (UI thread) ---------------------------------

    def surface_created(self, handle: object) -> None:
        self._surface.on_created(handle)

    def surface_changed(self, handle: object, width: int, height: int) -> None:
        self._surface.on_changed(handle, width, height)

    def surface_destroyed(self) -> None:
        self._surface.on_destroyed()


__all__ = ["Session", "SessionController", "RelayoutCallback"]
