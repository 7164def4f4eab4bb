"""
Tracks the display surface the video is rendered into.

The host UI creates, resizes and destroys the surface on its own schedule
(for example on window rotation or minimize). This adapter turns those
notifications into the pipeline's surface operations and guarantees that the
pipeline has let go of a surface before its destroy notification returns.
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, Optional

from pirover.errors import InvalidSurfaceHandle

if TYPE_CHECKING:
    from pirover.session.pipeline import PipelineStateMachine

logger = logging.getLogger(__name__)


class RenderTarget:
    """Opaque platform surface handle plus its last known size."""

    __slots__ = ("handle", "width", "height", "_valid")

    def __init__(self, handle: object, width: int = 0, height: int = 0) -> None:
        self.handle = handle
        self.width = int(width)
        self.height = int(height)
        self._valid = True

    @property
    def valid(self) -> bool:
        return self._valid

    def invalidate(self) -> None:
        self._valid = False

    def __repr__(self) -> str:
        state = "" if self._valid else ", destroyed"
        return f"RenderTarget({self.handle!r}, {self.width}x{self.height}{state})"


class SurfaceState(enum.Enum):
    ABSENT = "absent"
    CREATED = "created"
    ATTACHED = "attached"
    DESTROYED = "destroyed"


class SurfaceLifecycleAdapter:
    """
    Surface notifications -> pipeline surface operations.

    States: Absent -> Created -> Attached -> (resized)* -> Destroyed -> Absent.
    ``on_changed`` is the attach point, since a handle is not a usable render
    target until its size is known. All pipeline calls are made under the
    state machine's lock.
    """

    def __init__(self, machine: "PipelineStateMachine") -> None:
        self._machine = machine
        self._state = SurfaceState.ABSENT
        self._target: Optional[RenderTarget] = None

    @property
    def state(self) -> SurfaceState:
        return self._state

    @property
    def target(self) -> Optional[RenderTarget]:
        return self._target

    def on_created(self, handle: object) -> None:
        with self._machine.lock:
            if self._target is not None:
                if self._target.handle == handle:
                    logger.debug("surface %r created twice", handle)
                    return
                logger.warning("surface %r created while %r is live; releasing the old one",
                               handle, self._target.handle)
                self._destroy_locked()
            self._target = RenderTarget(handle)
            self._state = SurfaceState.CREATED
        logger.debug("surface created: %r", handle)

    def on_changed(self, handle: object, width: int, height: int) -> None:
        with self._machine.lock:
            target = self._target
            if target is None or target.handle != handle:
                raise InvalidSurfaceHandle(f"surface {handle!r} is not live")
            target.width = int(width)
            target.height = int(height)
            self._machine.surface_init(target)
            self._state = SurfaceState.ATTACHED
        logger.debug("surface changed: %r %dx%d", handle, width, height)

    def on_destroyed(self) -> None:
        with self._machine.lock:
            if self._target is None:
                logger.debug("surface destroyed with no live surface")
                return
            self._destroy_locked()
        logger.debug("surface destroyed")

    def _destroy_locked(self) -> None:
        target = self._target
        self._state = SurfaceState.DESTROYED
        try:
            if target is not None and self._machine.render_target is target:
                self._machine.surface_finalize()
        finally:
            if target is not None:
                target.invalidate()
            self._target = None
            self._state = SurfaceState.ABSENT


__all__ = ["RenderTarget", "SurfaceState", "SurfaceLifecycleAdapter"]
