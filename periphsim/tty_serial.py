"""Bidirectional serial console with a receive interrupt.

Registers are 32-bit words; a byte enable in the upper half of the bus
selects the next word.

====  ========================  ==========================
word  write                     read
====  ========================  ==========================
0     send a character          next received character
1     interrupt enable mask     1 (can always send)
2     -                         1 if a character waits
3     -                         interrupt enable mask
4     -                         interrupt level
5     -                         active interrupts
6     -                         0
====  ========================  ==========================
"""

from __future__ import annotations

import atexit
import os
import select
import subprocess
from dataclasses import dataclass, field

from .timer import DeviceAccessError, _data_bytes, _data_words, _response

__all__ = ["SerialState", "TtySerialDevice", "READ_BUF_SIZE", "TTY_INT_READ"]

READ_BUF_SIZE = 256
TTY_INT_READ = 1


@dataclass
class SerialState:
    """Interrupt registers and the receive ring buffer."""

    int_enabled: int = 0
    int_level: int = 0
    read_buf: list[int] = field(default_factory=lambda: [0] * READ_BUF_SIZE)
    read_pos: int = 0
    read_count: int = 0
    read_trigger: int = 0

    @property
    def full(self) -> bool:
        return self.read_count == READ_BUF_SIZE

    def push(self, byte: int) -> None:
        self.read_buf[(self.read_pos + self.read_count) % READ_BUF_SIZE] = byte
        self.read_count += 1
        self.int_level |= TTY_INT_READ

    def pop(self) -> int:
        """Take the oldest character; on an empty buffer the stale slot is returned."""
        value = self.read_buf[self.read_pos]
        if self.read_count > 0:
            self.read_count -= 1
            self.read_pos = (self.read_pos + 1) % READ_BUF_SIZE
            if self.read_count == 0:
                self.int_level &= ~TTY_INT_READ
        return value


class TtySerialDevice:
    """Serial console; characters come in through :meth:`receive` or :meth:`poll`."""

    def __init__(self, name: str = "tty_serial", output=None, input_fd: int | None = None) -> None:
        self.name = name
        self.state = SerialState()
        self._process: subprocess.Popen | None = None
        self._closed = False
        if output is None and input_fd is None:
            output, input_fd = self._launch()
            atexit.register(self.close)
        self._output = output
        self._input_fd = input_fd

    def _launch(self):
        out_read, out_write = os.pipe()
        in_read, in_write = os.pipe()
        try:
            self._process = subprocess.Popen(
                [
                    "xterm", "-sb", "-sl", "1000",
                    "-l", "-lf", "logCPUs",
                    "-n", "Console", "-T", "Console",
                    "-e", "tty_term_rw", str(out_read), str(in_write),
                ],
                pass_fds=(out_read, in_write),
                preexec_fn=os.setpgrp,
            )
        except BaseException:
            os.close(out_write)
            os.close(in_read)
            raise
        finally:
            os.close(out_read)
            os.close(in_write)
        return os.fdopen(out_write, "wb", buffering=0), in_read

    @property
    def irq_line(self) -> bool:
        """Level of the interrupt output."""
        return (self.state.int_level & self.state.int_enabled) != 0

    def write(self, offset: int, byte_enable: int, data) -> None:
        """Write a register."""
        raw = _data_bytes(data)
        word0, word1 = _data_words(raw)
        register = offset >> 2
        value = word0
        if byte_enable & 0xF0:
            register += 1
            value = word1
        if register == 0:
            self._emit(raw[0])
        elif register == 1:
            self.state.int_enabled = value
        else:
            raise DeviceAccessError(self.name, "write", register, byte_enable, raw)

    def read(self, offset: int, byte_enable: int) -> bytes:
        """Read a register; the value lands in the word the byte enable selects."""
        register = offset >> 2
        upper = bool(byte_enable & 0xF0)
        if upper:
            register += 1
        state = self.state
        if register == 0:
            value = state.pop()
        elif register == 1:
            value = 1
        elif register == 2:
            value = 1 if state.read_count > 0 else 0
        elif register == 3:
            value = state.int_enabled
        elif register == 4:
            value = state.int_level
        elif register == 5:
            value = state.int_level & state.int_enabled
        elif register == 6:
            value = 0
        else:
            raise DeviceAccessError(self.name, "read", register, byte_enable)
        return _response(0, value) if upper else _response(value, 0)

    def handle_request(self, offset: int, byte_enable: int, data, is_write: bool) -> bytes:
        """Serve one bus request and return the response data."""
        if is_write:
            self.write(offset, byte_enable, data)
            return _data_bytes(data)
        return self.read(offset, byte_enable)

    def receive(self, byte: int) -> bool:
        """Queue a character from the console; False if the buffer is full."""
        if not 0 <= byte <= 0xFF:
            raise ValueError(f"not a byte: {byte}")
        if self.state.full:
            return False
        self.state.push(byte)
        return True

    def poll(self) -> int | None:
        """Take one waiting character from the console input, if any."""
        if self._input_fd is None or self.state.full:
            return None
        ready, _, _ = select.select([self._input_fd], [], [], 0)
        if not ready:
            return None
        chunk = os.read(self._input_fd, 1)
        if not chunk:
            return None
        self.receive(chunk[0])
        return chunk[0]

    def _emit(self, byte: int) -> None:
        if self._output is None:
            return
        try:
            self._output.write(bytes([byte]))
            self._output.flush()
        except BrokenPipeError:
            pass

    def close(self) -> None:
        """Close the console streams and stop the terminal."""
        if self._closed:
            return
        self._closed = True
        if self._output is not None:
            try:
                self._output.close()
            except BrokenPipeError:
                pass
        if self._input_fd is not None:
            os.close(self._input_fd)
        if self._process is not None:
            self._process.kill()
            self._process.wait()
            self._process = None
        atexit.unregister(self.close)

    def __enter__(self) -> TtySerialDevice:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()