"""RAMDAC display: shows grey or RGB frames published in shared memory.

The configuration arrives on standard input; each ``SIGUSR1`` shows the next
of two frame buffers, used in turn.
"""

from __future__ import annotations

import queue
import signal
import struct
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .fb_viewer import _attach_segments, _decode_title, _read_exact

__all__ = ["RamdacConfig", "Ramdac", "read_config", "window_title", "main"]

_HEADER = struct.Struct("=2I3I")
_TITLE_SIZE = 80
_DEFAULT_TITLE = "*** The screen ***"
_POLL_MS = 5


@dataclass(frozen=True)
class RamdacConfig:
    """What the simulator sends the display at start-up."""

    keys: tuple[int, int]
    width: int
    height: int
    components: int
    title: str = _DEFAULT_TITLE

    @property
    def size(self) -> int:
        return self.components * self.width * self.height


def read_config(stream) -> RamdacConfig:
    """Read the two keys, width, height, component count and title."""
    key0, key1, width, height, components = _HEADER.unpack(_read_exact(stream, _HEADER.size))
    title = _decode_title(_read_exact(stream, _TITLE_SIZE))
    return RamdacConfig(
        keys=(key0, key1), width=width, height=height, components=components, title=title
    )


def window_title(components: int) -> str | None:
    """Window title for a component count; None when no title is set."""
    return {1: "RAMDAC(gray)", 3: "RAMDAC(RGB)"}.get(components)


class Ramdac:
    """Copies frames alternately out of two buffers and draws them."""

    def __init__(
        self,
        config: RamdacConfig,
        buffers: Sequence,
        draw: Callable[[bytes], None] | None = None,
    ) -> None:
        if len(buffers) != 2:
            raise ValueError(f"two frame buffers are needed, got {len(buffers)}")
        self.config = config
        self.index = 0
        self.frame = bytes(config.size)
        self._buffers = list(buffers)
        self._draw = draw

    def display(self) -> bytes:
        """Copy the next frame, draw it and return it."""
        self.frame = bytes(self._buffers[self.index][: self.config.size])
        if self._draw is not None:
            self._draw(self.frame)
        self.index = (self.index + 1) % 2
        return self.frame


def _rgb_image(frame: bytes, components: int) -> bytes | None:
    if components == 1:
        return bytes(value for value in frame for _ in range(3))
    if components == 3:
        return frame
    return None


def _error(message: str) -> None:
    print(f"xramdac: {message}", file=sys.stderr)


def _run(config: RamdacConfig, segments) -> int:
    import pygame

    size = (config.width, config.height)
    try:
        screen = pygame.display.set_mode(size)
    except pygame.error as exc:
        _error(f"cannot open the window: {exc}")
        return 1
    title = window_title(config.components)
    if title is not None:
        pygame.display.set_caption(title)

    def draw(frame: bytes) -> None:
        rgb = _rgb_image(frame, config.components)
        if rgb is None:
            return
        screen.blit(pygame.image.frombuffer(rgb, size, "RGB"), (0, 0))
        pygame.display.flip()

    ramdac = Ramdac(config, [s.buf for s in segments], draw)
    expose_events = {pygame.VIDEOEXPOSE, getattr(pygame, "WINDOWEXPOSED", pygame.VIDEOEXPOSE)}

    pending: queue.SimpleQueue = queue.SimpleQueue()
    signal.signal(signal.SIGUSR1, lambda signum, frame: pending.put(signum))

    draw(ramdac.frame)
    while True:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return 0
            if event.type in expose_events:
                draw(ramdac.frame)
        while True:
            try:
                pending.get_nowait()
            except queue.Empty:
                break
            ramdac.display()
        pygame.time.wait(_POLL_MS)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the display; configuration arrives on standard input."""
    import pygame

    try:
        pygame.display.init()
    except pygame.error:
        _error("XRAMDAC display cannot be initialized")
        return 1

    try:
        try:
            config = read_config(sys.stdin.buffer)
        except EOFError:
            _error("Error during configuration reading")
            return 1

        try:
            segments = _attach_segments(config.keys, config.size)
        except (OSError, ValueError) as exc:
            _error(f"shared memory error: {exc}")
            return 1

        try:
            return _run(config, segments)
        finally:
            for segment in segments:
                segment.close()
    finally:
        pygame.quit()


if __name__ == "__main__":
    sys.exit(main())