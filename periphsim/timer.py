"""Programmable interval timer peripheral.

Register map, byte offsets:

* ``0x00`` write: a divisor restarts the timer with a period of that many
  clock ticks; the value ``0xFFFFFFFF`` acknowledges a raised interrupt.
  Read with byte enable ``0x0F``: always ``1``.
* ``0x08`` write: non-zero selects one-shot mode, zero periodic mode.

Simulated time moves forward only through :meth:`TimerDevice.advance`.
"""

from __future__ import annotations

import enum
import struct

__all__ = ["DeviceAccessError", "TimerDevice", "TIMER_CLOCK_HZ", "ACK"]

TIMER_CLOCK_HZ = 1_000_000_000
ACK = 0xFFFFFFFF

_WORDS = struct.Struct("<2I")
_DATA_SIZE = _WORDS.size


class DeviceAccessError(Exception):
    """A bus access hit a register the device does not decode."""

    def __init__(self, device: str, operation: str, offset: int, byte_enable: int,
                 data: bytes | None = None) -> None:
        self.device = device
        self.operation = operation
        self.offset = offset
        self.byte_enable = byte_enable
        message = f"Bad {device}::{operation} ofs=0x{offset:X}, be=0x{byte_enable:X}"
        if data is not None:
            word0, word1 = _data_words(data)
            message += f", data=0x{word0:X}-{word1:X}"
        super().__init__(message + "!")


def _data_bytes(data) -> bytes:
    """Bus data as exactly two 32-bit words' worth of bytes."""
    raw = bytes(data)
    if len(raw) > _DATA_SIZE:
        raise ValueError(f"bus data holds {len(raw)} bytes, at most {_DATA_SIZE} fit")
    return raw.ljust(_DATA_SIZE, b"\0")


def _data_words(data) -> tuple[int, int]:
    return _WORDS.unpack(_data_bytes(data))


def _response(word0: int = 0, word1: int = 0) -> bytes:
    return _WORDS.pack(word0 & 0xFFFFFFFF, word1 & 0xFFFFFFFF)


class _Phase(enum.Enum):
    IDLE = enum.auto()       # waiting for a wake-up only
    COUNTING = enum.auto()   # waiting for the period to expire or a wake-up
    ASSERTED = enum.auto()   # interrupt raised, waiting for a wake-up


class TimerDevice:
    """Timer raising ``irq`` every period, or once in one-shot mode."""

    def __init__(self, name: str = "timer") -> None:
        self.name = name
        self.divisor = 0
        self.period_ns = 0.0
        self.one_shot = False
        self.irq = False
        self.now_ns = 0.0
        self._divisor_changed = False
        self._phase = _Phase.IDLE
        self._deadline: float | None = None

    def write(self, offset: int, byte_enable: int, data) -> None:
        """Write a register; ``data`` holds up to two little-endian 32-bit words."""
        value, _ = _data_words(data)
        if offset == 0x00:
            if value != ACK:
                self.divisor = value
                self.period_ns = 1_000_000_000 / TIMER_CLOCK_HZ * value
                self._divisor_changed = True
            self._wake()
        elif offset == 0x08:
            self.one_shot = value != 0
        else:
            raise DeviceAccessError(self.name, "write", offset, byte_enable, data)

    def read(self, offset: int, byte_enable: int) -> bytes:
        """Read a register; returns two little-endian 32-bit words."""
        if offset == 0x00 and byte_enable == 0x0F:
            return _response(1, 0)
        raise DeviceAccessError(self.name, "read", offset, byte_enable)

    def handle_request(self, offset: int, byte_enable: int, data, is_write: bool) -> bytes:
        """Serve one bus request and return the response data."""
        if is_write:
            self.write(offset, byte_enable, data)
            return _data_bytes(data)
        return self.read(offset, byte_enable)

    def advance(self, ns: float) -> bool:
        """Let ``ns`` nanoseconds of simulated time pass; return the irq level."""
        if ns < 0:
            raise ValueError("time cannot run backwards")
        target = self.now_ns + ns
        while self._phase is _Phase.COUNTING and self._deadline <= target:
            self.now_ns = self._deadline
            self._expire()
        self.now_ns = target
        return self.irq

    def _wake(self) -> None:
        if self._phase is _Phase.ASSERTED:
            self.irq = False
            self._wait()
        else:
            self._expire()

    def _expire(self) -> None:
        if self._divisor_changed:
            self._divisor_changed = False
            self.irq = False
            self._wait()
            return
        if self.one_shot:
            self.divisor = 0
        self.irq = True
        self._phase = _Phase.ASSERTED
        self._deadline = None

    def _wait(self) -> None:
        if self.divisor == 0:
            self._phase = _Phase.IDLE
            self._deadline = None
        else:
            self._phase = _Phase.COUNTING
            self._deadline = self.now_ns + self.period_ns