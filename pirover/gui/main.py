"""
Entry point for the operator console. Shows the rover's video, sends drive and light commands.

This module is the operator's interface to the rover. It wires the video
surface, the joysticks, the keyboard and the light toggles to the control
session, and marshals the pipeline's notifications back onto the UI thread.

Key responsibilities:
- Parse configuration and start the control session
- Forward surface, joystick, gamepad, keyboard and toggle events to the session
- Apply media size changes on the UI thread
- Show pipeline state and the current motor command
- End the session when the window closes
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Dict, Optional

from PyQt5.QtCore import QObject, Qt, QTimer, pyqtSignal
from PyQt5.QtGui import QFont
from PyQt5.QtWidgets import (QApplication, QGroupBox, QHBoxLayout, QLabel,
                             QMainWindow, QMessageBox, QPushButton, QVBoxLayout,
                             QWidget)

from pirover.config import SessionConfig, env_bool
from pirover.control.accessories import Accessory
from pirover.control.motor_control import Side
from pirover.errors import SessionError, SessionInitError
from pirover.gui.gamepad import GamepadInput
from pirover.gui.joystick import AXIS_RANGE, JoystickWidget
from pirover.gui.video_display import VideoSurface
from pirover.gui.wake_lock import ScreenSaverWakeLock
from pirover.session.controller import SessionController
from pirover.session.gst_pipeline import GstPipelineBackend

logger = logging.getLogger(__name__)


# Keyboard tank controls: key -> (side, tilt)
KEY_BINDINGS = {
    Qt.Key_W: (Side.LEFT, AXIS_RANGE),
    Qt.Key_S: (Side.LEFT, -AXIS_RANGE),
    Qt.Key_Up: (Side.RIGHT, AXIS_RANGE),
    Qt.Key_Down: (Side.RIGHT, -AXIS_RANGE),
}

LIGHT_LABELS = {
    Accessory.HEADLIGHTS: "Headlights",
    Accessory.TAILLIGHTS: "Taillights",
    Accessory.HAZARDS: "Hazards",
}


class SessionBridge(QObject):
    """
    Carries pipeline-thread notifications onto the UI thread.

    Lives on the UI thread; emitting from the pipeline thread makes Qt queue
    the call to the connected slots.
    """

    media_size_changed = pyqtSignal(int, int)

    def relayout(self, width: int, height: int) -> None:
        self.media_size_changed.emit(width, height)


class RoverControlWindow(QMainWindow):
    """
    Main window for rover control.

    Video takes most of the space; joysticks, light toggles and status sit
    on the right.
    """

    def __init__(self, controller: SessionController):
        super().__init__()
        self.setWindowTitle("Pi Rover Controller")
        self.setGeometry(100, 100, 1000, 640)

        self.controller = controller
        self.gamepad: Optional[GamepadInput] = None
        self.bridge = SessionBridge(self)
        controller.set_relayout(self.bridge.relayout)

        self.light_buttons: Dict[Accessory, QPushButton] = {}
        self.init_ui()
        self.bridge.media_size_changed.connect(self.video.set_media_size)

        # Set up key tracking
        self.pressed_keys = set()

        # Resend held keys and refresh status (20 Hz)
        self.key_timer = QTimer(self)
        self.key_timer.timeout.connect(self.handle_continuous_keys)
        self.key_timer.timeout.connect(self.refresh_status)
        self.key_timer.start(50)

    def init_ui(self):
        """Initialize the user interface."""
        central_widget = QWidget()
        self.setCentralWidget(central_widget)

        main_layout = QHBoxLayout()
        central_widget.setLayout(main_layout)

        # Left side - video
        video_layout = QVBoxLayout()
        self.video = VideoSurface(self.controller)
        video_layout.addWidget(self.video, 1)

        self.status_label = QLabel("Pipeline: starting")
        self.status_label.setFont(QFont("Arial", 11))
        self.status_label.setAlignment(Qt.AlignCenter)
        self.status_label.setStyleSheet("QLabel { background-color: #e0e0e0; padding: 8px; border-radius: 5px; }")
        video_layout.addWidget(self.status_label)
        main_layout.addLayout(video_layout, 3)

        # Right side - controls
        controls_layout = QVBoxLayout()

        title_label = QLabel("Pi Rover Control")
        title_label.setFont(QFont("Arial", 14, QFont.Bold))
        title_label.setAlignment(Qt.AlignCenter)
        controls_layout.addWidget(title_label)

        self.movement_display = QLabel("Motors: L 0  R 0")
        self.movement_display.setFont(QFont("Arial", 12, QFont.Bold))
        self.movement_display.setAlignment(Qt.AlignCenter)
        self.movement_display.setStyleSheet("QLabel { background-color: #f0f0f0; padding: 12px; border: 2px solid #ccc; border-radius: 8px; }")
        controls_layout.addWidget(self.movement_display)

        sticks_layout = QHBoxLayout()
        self.joysticks: Dict[Side, JoystickWidget] = {}
        for side, label in ((Side.LEFT, "Left"), (Side.RIGHT, "Right")):
            stick = JoystickWidget(label)
            stick.moved.connect(lambda pan, tilt, s=side: self.controller.joystick_moved(s, pan, tilt))
            stick.released.connect(lambda s=side: self.controller.joystick_released(s))
            stick.returned_to_center.connect(lambda s=side: self.controller.joystick_centered(s))
            self.joysticks[side] = stick
            sticks_layout.addWidget(stick)
        controls_layout.addLayout(sticks_layout)

        instructions = QLabel("Keys: W/S left track, ↑/↓ right track, Esc quit")
        instructions.setFont(QFont("Arial", 9))
        instructions.setAlignment(Qt.AlignCenter)
        instructions.setStyleSheet("QLabel { color: #666; margin: 5px; }")
        controls_layout.addWidget(instructions)

        lights_group = QGroupBox("Lights")
        lights_layout = QVBoxLayout()
        for accessory, label in LIGHT_LABELS.items():
            button = QPushButton(label)
            button.setCheckable(True)
            button.setFocusPolicy(Qt.NoFocus)
            button.toggled.connect(lambda checked, a=accessory: self.on_light_toggled(a, checked))
            self.light_buttons[accessory] = button
            lights_layout.addWidget(button)
        lights_group.setLayout(lights_layout)
        controls_layout.addWidget(lights_group)

        self.pause_btn = QPushButton("Pause video")
        self.pause_btn.setCheckable(True)
        self.pause_btn.setFocusPolicy(Qt.NoFocus)
        self.pause_btn.toggled.connect(self.on_pause_toggled)
        controls_layout.addWidget(self.pause_btn)

        controls_layout.addStretch()
        main_layout.addLayout(controls_layout, 1)

    def keyPressEvent(self, event):
        key = event.key()
        if key == Qt.Key_Escape:
            self.close()
        elif key in KEY_BINDINGS and not event.isAutoRepeat():
            self.pressed_keys.add(key)
            side, tilt = KEY_BINDINGS[key]
            self.joysticks[side].synthesize_move(0, tilt)
        event.accept()

    def keyReleaseEvent(self, event):
        key = event.key()
        if key in KEY_BINDINGS and not event.isAutoRepeat():
            self.pressed_keys.discard(key)
            side, _tilt = KEY_BINDINGS[key]
            # Stop that side once none of its keys are held
            if not any(KEY_BINDINGS[k][0] is side for k in self.pressed_keys):
                self.joysticks[side].synthesize_release()
        event.accept()

    def handle_continuous_keys(self):
        """Resend held keys so a missed sample cannot stall a track."""
        for key in self.pressed_keys:
            side, tilt = KEY_BINDINGS[key]
            self.joysticks[side].synthesize_move(0, tilt)

    def refresh_status(self):
        session = self.controller.session
        command = session.last_command
        self.movement_display.setText(f"Motors: L {command.left}  R {command.right}")
        text = f"Pipeline: {session.state}"
        if session.media_size is not None:
            text += f" | {session.media_size[0]}x{session.media_size[1]}"
        if self.controller.wake_lock.held:
            text += " | keep-awake"
        self.status_label.setText(text)

    def on_light_toggled(self, accessory: Accessory, checked: bool):
        try:
            self.controller.accessory_toggled(accessory, checked)
        except SessionError as exc:
            logger.warning("toggle %s rejected: %s", accessory.value, exc)
            button = self.light_buttons[accessory]
            button.blockSignals(True)
            button.setChecked(not checked)
            button.blockSignals(False)
            self.status_label.setText(f"{LIGHT_LABELS[accessory]}: {exc}")

    def on_pause_toggled(self, checked: bool):
        try:
            if checked:
                self.controller.pause()
            else:
                self.controller.resume()
        except SessionError as exc:
            logger.warning("pause/resume rejected: %s", exc)
            self.pause_btn.blockSignals(True)
            self.pause_btn.setChecked(not checked)
            self.pause_btn.blockSignals(False)
        self.pause_btn.setText("Resume video" if self.pause_btn.isChecked() else "Pause video")

    def closeEvent(self, event):
        """End the session (stop motors, finalize, release keep-awake)."""
        self.key_timer.stop()
        if self.gamepad is not None:
            self.gamepad.stop()
        self.controller.end()
        event.accept()


def configure_logging(debug: bool = False) -> None:
    if env_bool("PIROVER_DEBUG"):
        debug = True
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='[%(asctime)s] %(name)s - %(levelname)s - %(message)s'
    )


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Pi Rover operator console')
    parser.add_argument('--uri', default=None, help='Video stream URI (default: PIROVER_STREAM_URI or the rover AP)')
    parser.add_argument('--control-host', default=None, help='Rover address for control packets')
    parser.add_argument('--control-port', type=int, default=None, help='Rover UDP control port (default: 5005)')
    parser.add_argument('--serial-port', default=None, help='Send control packets over this serial port (LoRa) instead of UDP')
    parser.add_argument('--baud', type=int, default=None, help='Serial baud rate (default: 9600)')
    parser.add_argument('--latency-ms', type=int, default=None, help='RTSP source latency in ms (default: 50)')
    parser.add_argument('--deadband', type=int, default=None, help='Joystick tilt treated as centered (default: 0)')
    parser.add_argument('--no-gamepad', action='store_true', help='Ignore game controllers')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> SessionConfig:
    config = SessionConfig.from_env()
    return config.with_overrides(
        stream_uri=args.uri,
        control_host=args.control_host,
        control_port=args.control_port,
        control_transport="serial" if args.serial_port else None,
        serial_port=args.serial_port,
        baud_rate=args.baud,
        latency_ms=args.latency_ms,
        deadband=args.deadband,
    )


def main(argv: Optional[list] = None) -> int:
    """Run the operator console."""
    args = parse_args(argv)
    configure_logging(args.debug)
    config = build_config(args)

    # Native window handles need an X11 window on Wayland sessions
    if os.environ.get("XDG_SESSION_TYPE") == "wayland":
        os.environ.setdefault("QT_QPA_PLATFORM", "xcb")
    app = QApplication(sys.argv[:1])

    try:
        backend = GstPipelineBackend(config)
    except RuntimeError as exc:
        QMessageBox.critical(None, "Video unavailable", str(exc))
        return 1

    controller = SessionController(config.stream_uri, backend,
                                   wake_lock=ScreenSaverWakeLock(),
                                   motor_limit=config.motor_limit,
                                   deadband=config.deadband)
    window = RoverControlWindow(controller)
    if not args.no_gamepad:
        try:
            window.gamepad = GamepadInput(window.joysticks, parent=window)
        except RuntimeError as exc:
            logger.info("gamepad input disabled: %s", exc)
        else:
            window.gamepad.start()
    try:
        controller.start()
    except SessionInitError as exc:
        QMessageBox.critical(None, "Session failed", str(exc))
        return 1

    window.show()
    return app.exec_()


if __name__ == "__main__":
    sys.exit(main())
