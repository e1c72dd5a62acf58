"""Console relay run inside a terminal window.

Keys typed on the terminal are forwarded, one byte at a time, to an output
pipe; bytes arriving on an input pipe are written to the terminal.
"""

from __future__ import annotations

import fcntl
import os
import select
import sys
import termios
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

__all__ = ["raw_terminal", "relay", "main"]

_USAGE = "usage: tty_term <input pipe> <output pipe>"


@contextmanager
def raw_terminal(fd: int) -> Iterator[bool]:
    """Put a terminal in byte-at-a-time mode; yields False if ``fd`` is no terminal."""
    if not os.isatty(fd):
        yield False
        return

    saved = termios.tcgetattr(fd)
    saved_flags = fcntl.fcntl(fd, fcntl.F_GETFL)

    attrs = termios.tcgetattr(fd)
    attrs[0] &= ~(
        termios.IGNBRK | termios.BRKINT | termios.PARMRK | termios.ISTRIP
        | termios.INLCR | termios.IGNCR | termios.ICRNL | termios.IXON
    )
    attrs[1] |= termios.OPOST
    attrs[2] = (attrs[2] & ~(termios.CSIZE | termios.PARENB)) | termios.CS8
    attrs[3] &= ~(termios.ECHO | termios.ECHONL | termios.ICANON | termios.IEXTEN | termios.ISIG)
    cc = list(attrs[6])
    cc[termios.VMIN] = 1
    cc[termios.VTIME] = 0
    attrs[6] = cc
    termios.tcsetattr(fd, termios.TCSANOW, attrs)
    try:
        yield True
    finally:
        termios.tcsetattr(fd, termios.TCSANOW, saved)
        fcntl.fcntl(fd, fcntl.F_SETFL, saved_flags)


def relay(terminal_fd: int, pipe_in: int, pipe_out: int, output) -> None:
    """Shuttle bytes until the input pipe is closed.

    Bytes read from ``terminal_fd`` go to ``pipe_out``; bytes read from
    ``pipe_in`` are written to the binary stream ``output``.
    """
    watched = [terminal_fd, pipe_in]
    while True:
        ready, _, _ = select.select(watched, [], [])
        if terminal_fd in ready:
            ch = os.read(terminal_fd, 1)
            if ch:
                os.write(pipe_out, ch)
            else:
                watched.remove(terminal_fd)
        if pipe_in in ready:
            ch = os.read(pipe_in, 1)
            if not ch:
                return
            output.write(ch)
            output.flush()


def main(argv: Sequence[str] | None = None) -> int:
    """Relay between the controlling terminal and the two pipes named on the command line."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 2:
        print(_USAGE, file=sys.stderr)
        return 0
    try:
        pipe_in, pipe_out = int(args[0]), int(args[1])
    except ValueError:
        print(_USAGE, file=sys.stderr)
        return 1

    with raw_terminal(0):
        relay(0, pipe_in, pipe_out, sys.stdout.buffer)
    return 0


if __name__ == "__main__":
    sys.exit(main())