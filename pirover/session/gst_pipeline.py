"""
GStreamer playbin implementation of the pipeline backend.

The pipeline runs on its own thread with its own GLib main context. Commands
from the session are short hand-offs (property sets and state changes); the
ready and media-size notifications are emitted from the pipeline thread.

Key responsibilities:
- Build a playbin for the RTSP stream with subtitles off and low source latency
- Follow bus messages (error, end of stream, buffering, clock loss, state changes)
- Report ready once the main loop runs and a window handle is known
- Report the media size (pixel-aspect corrected) when the stream prerolls
- Render into the operator's native window and let go of it on request
- Own the control link that carries motor and light state to the rover
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from pirover.config import SessionConfig
from pirover.control.accessories import Accessory
from pirover.control.motor_control import Side
from pirover.session.pipeline import PipelineBackend
from pirover.wireless.comm import ControlState
from pirover.wireless.sender import ControlSender, Link, open_link

logger = logging.getLogger(__name__)


# playbin flags
GST_PLAY_FLAG_TEXT = 1 << 2


class GstPipelineBackend(PipelineBackend):
    """
    playbin + control link.

    Requires PyGObject with the Gst 1.0 and GstVideo 1.0 typelibs. Motor and
    light commands only update ``controls``; the control sender started in
    ``init()`` resends them to the rover on a fixed period.
    """

    def __init__(self, config: SessionConfig, link: Optional[Link] = None) -> None:
        super().__init__()
        try:
            import gi  # type: ignore
            gi.require_version("Gst", "1.0")
            gi.require_version("GstVideo", "1.0")
            from gi.repository import GLib, Gst, GstVideo  # type: ignore
        except Exception as exc:
            raise RuntimeError("PyGObject with GStreamer 1.0 is required for video playback") from exc

        self._GLib = GLib
        self._Gst = Gst
        self._GstVideo = GstVideo

        self._config = config
        self._link = link
        self.controls = ControlState()
        self._sender: Optional[ControlSender] = None

        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._context = None
        self._main_loop = None
        self._pipeline = None
        self._quit_requested = False

        self._window_handle: Optional[int] = None
        self._initialized = False
        self._uri: Optional[str] = None
        self._target_state = Gst.State.NULL
        self._is_live = False

    # -- lifecycle -------------------------------------------------------

    def query_runtime(self) -> tuple[str, str]:
        self._Gst.init(None)
        return "GStreamer", self._Gst.version_string()

    def init(self) -> None:
        link = self._link if self._link is not None else open_link(self._config)
        self._sender = ControlSender(self.controls, link, self._config.send_interval_sec)
        self._thread = threading.Thread(target=self._run, name="pirover-gst", daemon=True)
        self._thread.start()

    def finalize(self) -> None:
        with self._lock:
            self._quit_requested = True
            main_loop = self._main_loop
        if main_loop is not None:
            logger.debug("quitting pipeline main loop")
            self._invoke(main_loop.quit)
        self.controls.stop()

    def join(self, timeout: float = 2.0) -> None:
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("pipeline thread did not stop within %.1f s", timeout)

    def _invoke(self, func: Callable[[], object]) -> None:
        """Run ``func`` once on the pipeline thread's main context."""
        context = self._context
        if context is None:
            return

        def _once(*_args) -> bool:
            func()
            return False

        source = self._GLib.idle_source_new()
        source.set_callback(_once)
        source.attach(context)

    def _run(self) -> None:
        Gst, GLib = self._Gst, self._GLib
        context = GLib.MainContext.new()
        context.push_thread_default()
        self._context = context
        sender = self._sender
        if sender is not None:
            sender.start()
        pipeline = None
        try:
            try:
                pipeline = Gst.parse_launch("playbin")
            except GLib.Error as exc:
                logger.error("could not build playbin: %s", exc)
                return

            flags = int(pipeline.get_property("flags"))
            pipeline.set_property("flags", flags & ~GST_PLAY_FLAG_TEXT)

            # READY already accepts a window handle
            self._target_state = Gst.State.READY
            pipeline.set_state(Gst.State.READY)
            pipeline.connect("source-setup", self._on_source_setup)

            bus = pipeline.get_bus()
            bus.add_signal_watch()
            bus.connect("message::error", self._on_error)
            bus.connect("message::eos", self._on_eos)
            bus.connect("message::state-changed", self._on_state_changed)
            bus.connect("message::buffering", self._on_buffering)
            bus.connect("message::clock-lost", self._on_clock_lost)

            main_loop = GLib.MainLoop.new(context, False)
            with self._lock:
                self._pipeline = pipeline
                self._main_loop = main_loop
                quit_requested = self._quit_requested
            if quit_requested:
                logger.debug("finalized before the main loop started")
            else:
                if self._uri is not None:
                    self._apply_uri(self._uri)
                self._check_initialization_complete()
                logger.debug("entering pipeline main loop")
                main_loop.run()
                logger.debug("exited pipeline main loop")
            bus.remove_signal_watch()
        finally:
            with self._lock:
                self._main_loop = None
                self._pipeline = None
            if sender is not None:
                sender.stop()
            self._context = None
            context.pop_thread_default()
            if pipeline is not None:
                self._target_state = Gst.State.NULL
                pipeline.set_state(Gst.State.NULL)

    def _check_initialization_complete(self) -> None:
        # Overlay handle changes stay ordered with surface_finalize
        with self._lock:
            if self._initialized or self._window_handle is None or self._main_loop is None:
                return
            handle = self._window_handle
            logger.debug("initialization complete, window handle %#x", handle)
            self._GstVideo.VideoOverlay.set_window_handle(self._pipeline, handle)
            self._initialized = True
        self.notify_ready()

    # -- commands (session thread) ----------------------------------------

    def _set_state(self, state) -> None:
        pipeline = self._pipeline
        if pipeline is None:
            return
        ret = pipeline.set_state(state)
        self._is_live |= ret == self._Gst.StateChangeReturn.NO_PREROLL

    def _apply_uri(self, uri: str) -> None:
        pipeline = self._pipeline
        if pipeline is None:
            return
        logger.debug("setting URI to %s", uri)
        if self._target_state >= self._Gst.State.READY:
            pipeline.set_state(self._Gst.State.READY)
        pipeline.set_property("uri", uri)
        self._set_state(self._target_state)

    def set_uri(self, uri: str) -> None:
        self._uri = uri
        self._apply_uri(uri)

    def play(self) -> None:
        logger.debug("setting state to PLAYING")
        self._target_state = self._Gst.State.PLAYING
        self._set_state(self._Gst.State.PLAYING)

    def pause(self) -> None:
        logger.debug("setting state to PAUSED")
        self._target_state = self._Gst.State.PAUSED
        self._set_state(self._Gst.State.PAUSED)

    def surface_init(self, handle: object, width: int, height: int) -> None:
        handle = int(handle)  # type: ignore[call-overload]
        with self._lock:
            pipeline = self._pipeline
            same = self._window_handle == handle
            if not same:
                if self._window_handle is not None:
                    logger.debug("released previous window %#x", self._window_handle)
                self._window_handle = handle
                self._initialized = False
        if same:
            logger.debug("window %#x unchanged, resized to %dx%d", handle, width, height)
            if pipeline is not None:
                self._GstVideo.VideoOverlay.expose(pipeline)
                self._GstVideo.VideoOverlay.expose(pipeline)
            return
        self._invoke(self._check_initialization_complete)

    def surface_finalize(self) -> None:
        with self._lock:
            logger.debug("releasing window %s", self._window_handle)
            self._window_handle = None
            self._initialized = False
            if self._pipeline is not None:
                self._GstVideo.VideoOverlay.set_window_handle(self._pipeline, 0)

    def set_motor(self, side: Side, value: int) -> None:
        self.controls.set_side(side, value)

    def set_accessory(self, accessory: Accessory, on: bool) -> None:
        self.controls.set_light(accessory, on)

    # -- bus callbacks (pipeline thread) ------------------------------------

    def _on_source_setup(self, _pipeline, source) -> None:
        if source.find_property("latency") is not None:
            logger.debug("source %s created, latency %d ms", source.get_name(), self._config.latency_ms)
            source.set_property("latency", int(self._config.latency_ms))

    def _on_error(self, _bus, message) -> None:
        err, debug = message.parse_error()
        logger.error("pipeline error from %s: %s (%s)", message.src.get_name(), err.message, debug)
        pipeline = self._pipeline
        if pipeline is not None:
            pipeline.set_state(self._Gst.State.NULL)

    def _on_eos(self, _bus, _message) -> None:
        self._target_state = self._Gst.State.PAUSED
        self._set_state(self._Gst.State.PAUSED)

    def _on_buffering(self, _bus, message) -> None:
        if self._is_live:
            return
        percent = message.parse_buffering()
        if percent < 100 and self._target_state >= self._Gst.State.PAUSED:
            self._set_state(self._Gst.State.PAUSED)
        elif self._target_state >= self._Gst.State.PLAYING:
            self._set_state(self._Gst.State.PLAYING)

    def _on_clock_lost(self, _bus, _message) -> None:
        if self._target_state >= self._Gst.State.PLAYING:
            self._set_state(self._Gst.State.PAUSED)
            self._set_state(self._Gst.State.PLAYING)

    def _on_state_changed(self, _bus, message) -> None:
        pipeline = self._pipeline
        # Only the pipeline's own transitions, not its children's
        if pipeline is None or message.src != pipeline:
            return
        old_state, new_state, _pending = message.parse_state_changed()
        logger.debug("pipeline state %s -> %s",
                     old_state.value_nick, new_state.value_nick)
        if new_state in (self._Gst.State.NULL, self._Gst.State.READY):
            self._is_live = False
        # By READY -> PAUSED the sink knows the media size
        if old_state == self._Gst.State.READY and new_state == self._Gst.State.PAUSED:
            self._check_media_size(pipeline)

    def _check_media_size(self, pipeline) -> None:
        video_sink = pipeline.get_property("video-sink")
        if video_sink is None:
            return
        pad = video_sink.get_static_pad("sink")
        caps = pad.get_current_caps() if pad is not None else None
        if caps is None or caps.get_size() == 0:
            return
        structure = caps.get_structure(0)
        ok_w, width = structure.get_int("width")
        ok_h, height = structure.get_int("height")
        if not (ok_w and ok_h):
            return
        ok_par, par_n, par_d = structure.get_fraction("pixel-aspect-ratio")
        if ok_par and par_d:
            width = width * par_n // par_d
        logger.debug("media size is %dx%d", width, height)
        self.notify_size_changed(width, height)


__all__ = ["GstPipelineBackend"]
