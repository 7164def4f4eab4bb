"""
Tests for the rover control link.

Test coverage areas:
- Control packet layout and motor word encoding
- Thread-safe control state buffer
- Periodic sender, including send failures
- UDP and serial link selection
"""

from __future__ import annotations

import socket
import threading

import pytest

from pirover.config import SessionConfig
from pirover.control.accessories import Accessory
from pirover.control.motor_control import Side
from pirover.wireless import sender as sender_module
from pirover.wireless.comm import (PACKET_SIZE, ControlFrame, ControlState,
                                   decode_motor, decode_packet, encode_motor,
                                   encode_packet)
from pirover.wireless.sender import ControlSender, UdpLink, open_link


class FakeLink:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.packets = []
        self.closed = False
        self.sent = threading.Event()

    def send(self, data: bytes) -> None:
        if self.fail:
            raise OSError("network unreachable")
        self.packets.append(data)
        self.sent.set()

    def close(self) -> None:
        self.closed = True


@pytest.mark.parametrize("value,word", [(0, 0x0000), (75, 0x004B), (-50, 0x8032), (100, 0x0064), (-100, 0x8064)])
def test_motor_words(value, word) -> None:
    assert encode_motor(value) == word
    assert decode_motor(word) == value


def test_motor_word_is_clamped() -> None:
    assert encode_motor(250) == 100
    assert encode_motor(-250) == 0x8064


def test_known_packet_bytes() -> None:
    state = ControlState()
    state.set_side(Side.LEFT, 75)
    state.set_side(Side.RIGHT, -50)
    state.set_light(Accessory.HEADLIGHTS, True)
    state.set_light(Accessory.HAZARDS, True)

    packet = state.packet()

    assert len(packet) == PACKET_SIZE == 12
    assert packet == b"\x80\x32\x00\x4b\x80\x32\x00\x4b\x00\x05\x00\x00"


def test_decoded_frame_views() -> None:
    frame = decode_packet(b"\x80\x32\x00\x4b\x80\x32\x00\x4b\x00\x05\x00\x01")
    assert (frame.left, frame.right) == (75, -50)
    assert frame.light_on(Accessory.HEADLIGHTS)
    assert not frame.light_on(Accessory.TAILLIGHTS)
    assert frame.light_on("hazards")
    assert frame.flags == 1


@pytest.mark.parametrize("size", [0, 11, 13])
def test_decode_rejects_wrong_size(size) -> None:
    with pytest.raises(ValueError):
        decode_packet(bytes(size))


def test_light_off_clears_only_its_bit() -> None:
    state = ControlState()
    for accessory in Accessory:
        state.set_light(accessory, True)
    state.set_light(Accessory.TAILLIGHTS, False)
    assert state.frame().lights == 0b101


def test_stop_zeroes_motors_and_keeps_lights() -> None:
    state = ControlState()
    state.set_side(Side.LEFT, 40)
    state.set_light(Accessory.HEADLIGHTS, True)
    state.stop()
    frame = state.frame()
    assert frame.motors == (0, 0, 0, 0)
    assert frame.lights == 1


def test_empty_frame_encodes_to_zeros() -> None:
    assert encode_packet(ControlFrame()) == bytes(PACKET_SIZE)


def test_sender_sends_latest_state() -> None:
    state = ControlState()
    link = FakeLink()
    sender = ControlSender(state, link, interval_sec=0.01)
    state.set_side(Side.RIGHT, 30)

    sender.start()
    assert link.sent.wait(2.0)
    sender.stop()

    assert not sender.running
    assert link.closed
    assert sender.packets_sent == len(link.packets) >= 1
    assert decode_packet(link.packets[-1]).right == 30


def test_sender_keeps_running_after_send_errors(caplog) -> None:
    link = FakeLink(fail=True)
    sender = ControlSender(ControlState(), link)

    for _ in range(3):
        assert sender.send_now() is False

    assert sender.send_errors == 3
    assert sender.packets_sent == 0
    assert caplog.text.count("send failed") == 1

    link.fail = False
    assert sender.send_now() is True
    assert sender.packets_sent == 1


def test_udp_link_delivers_packet() -> None:
    receiver = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    receiver.bind(("127.0.0.1", 0))
    receiver.settimeout(2.0)
    try:
        link = UdpLink("127.0.0.1", receiver.getsockname()[1])
        state = ControlState()
        state.set_side(Side.LEFT, -20)
        link.send(state.packet())
        data, _addr = receiver.recvfrom(64)
        link.close()
    finally:
        receiver.close()
    assert decode_packet(data).left == -20


def test_open_link_defaults_to_udp() -> None:
    link = open_link(SessionConfig(control_host="127.0.0.1", control_port=5005))
    try:
        assert isinstance(link, UdpLink)
    finally:
        link.close()


def test_open_link_serial(monkeypatch) -> None:
    opened = {}

    class FakeSerial:
        is_open = True

        def __init__(self, **kwargs):
            opened.update(kwargs)

        def write(self, data):
            return len(data)

        def close(self):
            self.is_open = False

    monkeypatch.setattr(sender_module.serial, "Serial", FakeSerial)
    config = SessionConfig(control_transport="serial", serial_port="/dev/ttyUSB0", baud_rate=115200)

    link = open_link(config)
    link.send(bytes(PACKET_SIZE))
    link.close()

    assert isinstance(link, sender_module.SerialLink)
    assert opened["port"] == "/dev/ttyUSB0"
    assert opened["baudrate"] == 115200
