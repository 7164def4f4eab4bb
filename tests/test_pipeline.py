"""Unit tests for the pipeline lifecycle state machine."""

from __future__ import annotations

import pytest

from pirover.control.accessories import Accessory
from pirover.control.motor_control import Side
from pirover.errors import InvalidSurfaceHandle, InvalidTransition, PipelineNotReady
from pirover.session.pipeline import PipelineState, PipelineStateMachine
from pirover.session.surface import RenderTarget

from conftest import RecordingBackend


COMMANDS = {
    "set_uri": lambda m: m.set_uri("rtsp://rover/test"),
    "play": lambda m: m.play(),
    "pause": lambda m: m.pause(),
    "set_motor": lambda m: m.set_motor(Side.LEFT, 10),
    "set_accessory": lambda m: m.set_accessory(Accessory.HEADLIGHTS, True),
    "surface_init": lambda m: m.surface_init(RenderTarget(7, 640, 480)),
    "surface_finalize": lambda m: m.surface_finalize(),
}


@pytest.fixture
def machine(backend) -> PipelineStateMachine:
    return PipelineStateMachine(backend)


def test_starts_uninitialized(machine) -> None:
    assert machine.state is PipelineState.UNINITIALIZED
    assert machine.render_target is None


def test_init_once(machine, backend) -> None:
    machine.init()
    assert machine.state is PipelineState.INITIALIZED
    with pytest.raises(InvalidTransition):
        machine.init()
    assert backend.count("init") == 1


@pytest.mark.parametrize("name", sorted(COMMANDS))
def test_commands_rejected_before_init(machine, backend, name) -> None:
    with pytest.raises(PipelineNotReady) as info:
        COMMANDS[name](machine)
    assert info.value.state is PipelineState.UNINITIALIZED
    assert backend.calls == []


@pytest.mark.parametrize("name", sorted(COMMANDS))
def test_commands_rejected_after_finalize(machine, backend, name) -> None:
    machine.init()
    machine.finalize()
    before = list(backend.calls)
    with pytest.raises(PipelineNotReady):
        COMMANDS[name](machine)
    assert backend.calls == before


def test_surface_attach_and_detach(machine, backend) -> None:
    machine.init()
    target = RenderTarget(0x10, 640, 480)
    machine.surface_init(target)
    assert machine.state is PipelineState.SURFACE_ATTACHED
    assert machine.render_target is target
    assert backend.attached == 0x10

    machine.surface_finalize()
    assert machine.state is PipelineState.INITIALIZED
    assert machine.render_target is None
    assert backend.attached is None


def test_resizes_hold_a_single_target(machine, backend) -> None:
    machine.init()
    target = RenderTarget(0x10, 640, 480)
    for width, height in [(640, 480), (800, 600), (1280, 720), (1920, 1080)]:
        target.width, target.height = width, height
        machine.surface_init(target)
        assert machine.render_target is target
        assert backend.attached == 0x10
    assert backend.calls[-1] == ("surface_init", 0x10, 1920, 1080)


def test_new_handle_replaces_previous_target(machine, backend) -> None:
    machine.init()
    machine.surface_init(RenderTarget(0x10, 640, 480))
    second = RenderTarget(0x20, 640, 480)
    machine.surface_init(second)
    assert machine.render_target is second
    assert backend.attached == 0x20


def test_stale_target_rejected(machine, backend) -> None:
    machine.init()
    target = RenderTarget(0x10, 640, 480)
    target.invalidate()
    with pytest.raises(InvalidSurfaceHandle):
        machine.surface_init(target)
    assert backend.count("surface_init") == 0
    assert machine.state is PipelineState.INITIALIZED


def test_surface_finalize_without_target(machine) -> None:
    machine.init()
    with pytest.raises(InvalidSurfaceHandle):
        machine.surface_finalize()


def test_play_pause_cycle(machine) -> None:
    machine.init()
    machine.surface_init(RenderTarget(1, 320, 240))
    machine.set_uri("rtsp://rover/test")
    machine.play()
    assert machine.state is PipelineState.PLAYING
    machine.pause()
    assert machine.state is PipelineState.PAUSED
    machine.play()
    assert machine.state is PipelineState.PLAYING
    assert machine.uri == "rtsp://rover/test"


def test_surface_loss_keeps_playback_state(machine, backend) -> None:
    machine.init()
    machine.surface_init(RenderTarget(1, 320, 240))
    machine.play()
    machine.surface_finalize()
    assert machine.state is PipelineState.PLAYING
    assert machine.render_target is None

    machine.pause()
    machine.surface_init(RenderTarget(2, 320, 240))
    machine.surface_finalize()
    assert machine.state is PipelineState.PAUSED


def test_commands_forwarded_while_live(machine, backend) -> None:
    machine.init()
    machine.set_motor(Side.RIGHT, -40)
    machine.set_accessory(Accessory.HAZARDS, True)
    assert backend.calls[-2:] == [
        ("set_motor", Side.RIGHT, -40),
        ("set_accessory", Accessory.HAZARDS, True),
    ]


def test_finalize_is_terminal_and_idempotent(machine, backend) -> None:
    machine.init()
    machine.surface_init(RenderTarget(1, 320, 240))
    machine.finalize()
    machine.finalize()
    assert machine.state is PipelineState.FINALIZED
    assert machine.render_target is None
    assert backend.count("finalize") == 1
    with pytest.raises(InvalidTransition):
        machine.init()


def test_finalize_before_init_skips_backend(machine, backend) -> None:
    machine.finalize()
    assert machine.state is PipelineState.FINALIZED
    assert backend.calls == []


def test_failed_backend_init_still_finalizes() -> None:
    backend = RecordingBackend(init_error=RuntimeError("no codec"))
    machine = PipelineStateMachine(backend)
    with pytest.raises(RuntimeError):
        machine.init()
    assert machine.state is PipelineState.UNINITIALIZED
    machine.finalize()
    assert backend.names() == ["init", "finalize"]


def test_accepting_range() -> None:
    accepting = {s for s in PipelineState if s.accepts_commands}
    assert accepting == {
        PipelineState.INITIALIZED,
        PipelineState.SURFACE_ATTACHED,
        PipelineState.PLAYING,
        PipelineState.PAUSED,
    }
