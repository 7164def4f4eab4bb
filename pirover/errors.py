"""
Exceptions raised by the rover control session.

Contract violations are raised synchronously to the caller so they can be
asserted on in tests and surfaced by the operator interface. High-frequency
motor commands that lose a race against teardown are not raised; the session
controller drops and logs them instead.
"""

from __future__ import annotations


class SessionError(Exception):
    """Base class for all control session errors."""


class PipelineNotReady(SessionError):
    """A command needed a live pipeline (Initialized through Paused)."""

    def __init__(self, operation: str, state: object) -> None:
        super().__init__(f"{operation} is not accepted while the pipeline is {state}")
        self.operation = operation
        self.state = state


class InvalidSurfaceHandle(SessionError):
    """An operation referenced a surface that is no longer (or never was) live."""


class InvalidTransition(SessionError):
    """A lifecycle operation was issued from a state it cannot leave from."""


class SessionInitError(SessionError):
    """The session could not be brought up; it has been torn down."""


__all__ = [
    "SessionError",
    "PipelineNotReady",
    "InvalidSurfaceHandle",
    "InvalidTransition",
    "SessionInitError",
]
