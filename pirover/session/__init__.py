"""Control session core: pipeline lifecycle, surface tracking and the session controller."""

from pirover.session.controller import Session, SessionController
from pirover.session.pipeline import PipelineBackend, PipelineState, PipelineStateMachine
from pirover.session.power_management import WakeLock
from pirover.session.surface import RenderTarget, SurfaceLifecycleAdapter, SurfaceState

__all__ = [
    "Session",
    "SessionController",
    "PipelineBackend",
    "PipelineState",
    "PipelineStateMachine",
    "WakeLock",
    "RenderTarget",
    "SurfaceLifecycleAdapter",
    "SurfaceState",
]
