"""Output-only terminal device driving up to eight consoles.

A write at offset 0 with a single byte-enable bit set sends the byte in that
lane to the console with the same number.
"""

from __future__ import annotations

import atexit
import os
import subprocess
from collections.abc import Sequence

from .timer import DeviceAccessError, _data_bytes

__all__ = ["TtyDevice"]

_BYTE_LANES = {1 << lane: lane for lane in range(8)}


def _terminal_command(index: int, read_fd: int) -> list[str]:
    title = f"CPU {index}"
    return [
        "xterm", "-sb", "-sl", "1000",
        "-l", "-lf", f"logCPU{index:02d}",
        "-n", title, "-T", title,
        "-e", "tty_term", str(read_fd),
    ]


class TtyDevice:
    """Write-only console device; one output stream per console."""

    def __init__(self, name: str = "tty", count: int = 1, outputs: Sequence | None = None) -> None:
        self.name = name
        self._processes: list[subprocess.Popen] = []
        self._closed = False
        if outputs is None:
            self._outputs = self._launch(count)
            atexit.register(self.close)
        else:
            self._outputs = list(outputs)
            if len(self._outputs) != count:
                raise ValueError(f"{count} consoles need {count} outputs, got {len(self._outputs)}")

    def _launch(self, count: int) -> list:
        outputs = []
        try:
            for index in range(count):
                read_fd, write_fd = os.pipe()
                outputs.append(os.fdopen(write_fd, "wb", buffering=0))
                try:
                    self._processes.append(subprocess.Popen(
                        _terminal_command(index, read_fd),
                        pass_fds=(read_fd,),
                        preexec_fn=os.setpgrp,
                    ))
                finally:
                    os.close(read_fd)
        except BaseException:
            self._outputs = outputs
            self.close()
            raise
        return outputs

    def write(self, offset: int, byte_enable: int, data) -> None:
        """Send the byte in the enabled lane to its console."""
        lane = _BYTE_LANES.get(byte_enable)
        if offset != 0 or lane is None or lane >= len(self._outputs):
            raise DeviceAccessError(self.name, "write", offset, byte_enable, data)
        raw = _data_bytes(data)
        output = self._outputs[lane]
        output.write(raw[lane:lane + 1])
        output.flush()

    def read(self, offset: int, byte_enable: int) -> bytes:
        """No register can be read."""
        raise DeviceAccessError(self.name, "read", offset, byte_enable)

    def close(self) -> None:
        """Close every console output and stop the terminals."""
        if self._closed:
            return
        self._closed = True
        for output in self._outputs:
            output.close()
        for process in self._processes:
            process.kill()
            process.wait()
        self._processes.clear()
        atexit.unregister(self.close)

    def __enter__(self) -> TtyDevice:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()