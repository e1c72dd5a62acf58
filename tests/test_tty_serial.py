import io
import os
import struct

import pytest

from periphsim.timer import DeviceAccessError
from periphsim.tty_serial import READ_BUF_SIZE, TTY_INT_READ, SerialState, TtySerialDevice


def words(first, second=0):
    return struct.pack("<2I", first, second)


def unpack(data):
    return struct.unpack("<2I", data)


def make_device():
    output = io.BytesIO()
    return TtySerialDevice("serial", output=output), output


def test_write_data_register_sends_character():
    device, output = make_device()
    device.write(0, 0x01, b"Z")
    assert output.getvalue() == b"Z"


def test_received_character_is_read_back():
    device, _ = make_device()
    assert device.receive(ord("q")) is True
    assert unpack(device.read(8, 0x0F)) == (1, 0)
    assert unpack(device.read(0, 0x0F)) == (ord("q"), 0)
    assert unpack(device.read(8, 0x0F)) == (0, 0)


def test_can_write_is_always_one():
    device, _ = make_device()
    assert unpack(device.read(4, 0x0F)) == (1, 0)


def test_receive_sets_and_read_clears_level():
    device, _ = make_device()
    device.receive(1)
    device.receive(2)
    assert device.state.int_level & TTY_INT_READ
    device.read(0, 0x0F)
    assert device.state.int_level & TTY_INT_READ
    device.read(0, 0x0F)
    assert device.state.int_level & TTY_INT_READ == 0


def test_irq_line_needs_enable():
    device, _ = make_device()
    device.receive(7)
    assert device.irq_line is False
    device.write(4, 0x0F, words(TTY_INT_READ))
    assert device.irq_line is True
    assert unpack(device.read(12, 0x0F)) == (TTY_INT_READ, 0)
    assert unpack(device.read(20, 0x0F)) == (TTY_INT_READ, 0)
    device.read(0, 0x0F)
    assert device.irq_line is False


def test_upper_byte_enable_selects_next_word():
    device, _ = make_device()
    device.write(0, 0xF0, words(0, TTY_INT_READ))
    assert device.state.int_enabled == TTY_INT_READ
    device.receive(9)
    assert unpack(device.read(4, 0xF0)) == (0, 1)


def test_level_register_reports_level():
    device, _ = make_device()
    device.receive(3)
    assert unpack(device.read(16, 0x0F)) == (TTY_INT_READ, 0)
    assert unpack(device.read(24, 0x0F)) == (0, 0)


def test_buffer_full_rejects_character():
    device, _ = make_device()
    for value in range(READ_BUF_SIZE):
        assert device.receive(value % 256)
    assert device.receive(1) is False
    assert device.state.read_count == READ_BUF_SIZE


def test_ring_buffer_wraps_in_order():
    device, _ = make_device()
    for value in range(200):
        device.receive(value)
    for _ in range(200):
        device.read(0, 0x0F)
    sent = [(value * 7) % 256 for value in range(150)]
    for value in sent:
        device.receive(value)
    got = [unpack(device.read(0, 0x0F))[0] for _ in sent]
    assert got == sent


def test_empty_read_returns_stale_slot_without_moving():
    device, _ = make_device()
    device.receive(42)
    device.read(0, 0x0F)
    position = device.state.read_pos
    device.read(0, 0x0F)
    assert device.state.read_pos == position
    assert device.state.read_count == 0


def test_state_pop_on_fresh_state():
    state = SerialState()
    assert state.pop() == 0
    assert state.read_count == 0


def test_unknown_read_register_fails():
    device, _ = make_device()
    with pytest.raises(DeviceAccessError):
        device.read(28, 0x0F)


def test_unknown_write_register_fails():
    device, _ = make_device()
    with pytest.raises(DeviceAccessError) as info:
        device.write(8, 0x0F, words(1))
    assert info.value.operation == "write"


def test_receive_rejects_non_byte():
    device, _ = make_device()
    with pytest.raises(ValueError):
        device.receive(256)


def test_handle_request_dispatches():
    device, output = make_device()
    assert device.handle_request(0, 0x01, b"k", True) == b"k" + bytes(7)
    assert output.getvalue() == b"k"
    assert device.handle_request(4, 0x0F, b"", False) == device.read(4, 0x0F)


def test_poll_reads_from_input_descriptor():
    read_fd, write_fd = os.pipe()
    try:
        device = TtySerialDevice("serial", output=io.BytesIO(), input_fd=read_fd)
        os.write(write_fd, b"x")
        assert device.poll() == ord("x")
        assert device.poll() is None
        assert unpack(device.read(0, 0x0F)) == (ord("x"), 0)
        device.close()
    finally:
        os.close(write_fd)