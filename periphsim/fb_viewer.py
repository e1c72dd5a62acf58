"""Frame buffer viewer.

The simulator publishes frames in two shared memory segments used in turn.
The viewer reads its configuration from standard input, attaches to both
segments and, every time it receives ``SIGUSR1``, converts the next frame to
the display's 32-bit pixel layout and shows it.
"""

from __future__ import annotations

import enum
import os
import queue
import signal
import struct
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from multiprocessing import shared_memory

from . import conv

__all__ = [
    "FrameMode",
    "PixelFormat",
    "ViewerConfig",
    "FrameViewer",
    "frame_size",
    "mode_name",
    "yuv_format",
    "needs_overlay",
    "select_converter",
    "read_config",
    "main",
]

Converter = Callable[[bytes, int, int], bytes]

_HEADER = struct.Struct("=2I3I")
_TITLE_SIZE = 80
_DEFAULT_TITLE = "*** The screen ***"
_POLL_MS = 5


class FrameMode(enum.IntEnum):
    """Pixel layouts a frame buffer can hold."""

    NONE = 0
    GREY = 1
    RGB = 2
    BGR = 3
    ARGB = 4
    BGRA = 5
    YVYU = 6  # packed YUV 4:2:2
    YV12 = 7  # planar YUV 4:2:0, V plane first
    IYUV = 8  # planar YUV 4:2:0, U plane first
    YV16 = 9  # planar YUV 4:2:2


@dataclass(frozen=True)
class PixelFormat:
    """Channel masks of the display's 32-bit pixels."""

    bits_per_pixel: int
    rmask: int
    gmask: int
    bmask: int
    amask: int = 0

    @property
    def is_xrgb(self) -> bool:
        """True for pixel values laid out as 0x00RRGGBB."""
        return (
            self.amask == 0
            and self.rmask == 0x00FF0000
            and self.gmask == 0x0000FF00
            and self.bmask == 0x000000FF
        )


def _as_mode(mode) -> FrameMode | None:
    try:
        return FrameMode(mode)
    except ValueError:
        return None


def frame_size(width: int, height: int, mode) -> int:
    """Number of bytes one frame of the given mode occupies; 0 if unknown."""
    kind = _as_mode(mode)
    if kind in (FrameMode.RGB, FrameMode.BGR):
        return 3 * width * height
    if kind in (FrameMode.ARGB, FrameMode.BGRA):
        return 4 * width * height
    if kind in (FrameMode.YVYU, FrameMode.YV16):
        return 2 * width * height
    if kind in (FrameMode.YV12, FrameMode.IYUV):
        return (3 * width * height) >> 1
    return 0


_MODE_NAMES = {
    FrameMode.NONE: "NONE",
    FrameMode.RGB: "RGB",
    FrameMode.BGR: "BGR",
    FrameMode.ARGB: "ARGB",
    FrameMode.BGRA: "BGRA",
    FrameMode.YVYU: "YVYU",
    FrameMode.YV12: "YV12",
    FrameMode.IYUV: "IYUV",
    FrameMode.YV16: "YV16",
}


def mode_name(mode) -> str:
    """Short printable name of a mode, ``"UNKN"`` for anything unlisted."""
    return _MODE_NAMES.get(_as_mode(mode), "UNKN")


def _fourcc(code: str) -> int:
    return int.from_bytes(code.encode("ascii"), "little")


_YUV_OVERLAYS = {
    FrameMode.YVYU: _fourcc("YVYU"),
    FrameMode.YV16: _fourcc("YV12"),
    FrameMode.YV12: _fourcc("YV12"),
    FrameMode.IYUV: _fourcc("IYUV"),
}


def yuv_format(mode) -> int:
    """FourCC of the YUV overlay matching a mode, 0 for non-YUV modes."""
    return _YUV_OVERLAYS.get(_as_mode(mode), 0)


# Every known mode, YUV ones included, is converted in software rather than
# shown through an overlay, so no mode is listed here.
_OVERLAY_MODES: frozenset[FrameMode] = frozenset()


def needs_overlay(mode) -> bool:
    """Whether a mode is shown through a YUV overlay instead of being converted."""
    return _as_mode(mode) in _OVERLAY_MODES


# For each mode: converter used when the display wants A,R,G,B bytes in
# memory, then the one used when it wants B,G,R,A.
_CONVERTERS: dict[FrameMode, tuple[Converter, Converter]] = {
    FrameMode.RGB: (conv.convert_rgb_argb, conv.convert_rgb_bgra),
    FrameMode.BGR: (conv.convert_bgr_argb, conv.convert_bgr_bgra),
    FrameMode.ARGB: (conv.convert_argb_copy_32, conv.convert_argb_swap_32),
    FrameMode.BGRA: (conv.convert_argb_swap_32, conv.convert_argb_copy_32),
    FrameMode.YVYU: (conv.convert_yvyu_argb, conv.convert_yvyu_bgra),
    FrameMode.YV16: (conv.convert_yv16_argb, conv.convert_yv16_bgra),
    FrameMode.YV12: (conv.convert_yv12_argb, conv.convert_yv12_bgra),
    FrameMode.IYUV: (conv.convert_iyuv_argb, conv.convert_iyuv_bgra),
}


def select_converter(mode, pixel_format: PixelFormat, big_endian: bool) -> Converter | None:
    """Pick the converter producing the display's byte order, or None."""
    pair = _CONVERTERS.get(_as_mode(mode))
    if pair is None:
        return None
    argb_in_memory = pixel_format.is_xrgb == big_endian
    return pair[0] if argb_in_memory else pair[1]


@dataclass(frozen=True)
class ViewerConfig:
    """What the simulator sends the viewer at start-up."""

    keys: tuple[int, int]
    width: int
    height: int
    mode: int
    title: str = _DEFAULT_TITLE

    @property
    def size(self) -> int:
        return frame_size(self.width, self.height, self.mode)


def _read_exact(stream, count: int) -> bytes:
    data = bytearray()
    while len(data) < count:
        chunk = stream.read(count - len(data))
        if not chunk:
            raise EOFError(f"expected {count} bytes, got {len(data)}")
        data += chunk
    return bytes(data)


def _decode_title(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", "replace")


def read_config(stream) -> ViewerConfig:
    """Read the two keys, width, height, mode and title from a binary stream."""
    key0, key1, width, height, raw_mode = _HEADER.unpack(_read_exact(stream, _HEADER.size))
    title = _decode_title(_read_exact(stream, _TITLE_SIZE))
    kind = _as_mode(raw_mode)
    return ViewerConfig(
        keys=(key0, key1),
        width=width,
        height=height,
        mode=raw_mode if kind is None else kind,
        title=title,
    )


class FrameViewer:
    """Shows frames taken alternately from two buffers."""

    def __init__(
        self,
        config: ViewerConfig,
        buffers: Sequence,
        converter: Converter | None,
        present: Callable[[bytes], None] | None = None,
    ) -> None:
        if converter is None:
            raise ValueError(f"no conversion for mode {mode_name(config.mode)}")
        if len(buffers) != 2:
            raise ValueError(f"two frame buffers are needed, got {len(buffers)}")
        self.config = config
        self.index = 0
        self._buffers = list(buffers)
        self._convert = converter
        self._present = present

    def refresh(self) -> bytes:
        """Convert the next frame, hand it to the display and return it."""
        frame = bytes(self._buffers[self.index][: self.config.size])
        self.index = (self.index + 1) % 2
        pixels = self._convert(frame, self.config.width, self.config.height)
        if self._present is not None:
            self._present(pixels)
        return pixels


def _error(message: str) -> None:
    print(f"fbviewer: {message}", file=sys.stderr)


def _segment_name(key: int) -> str:
    return f"periphsim-{key:08x}"


def _untrack(segment: shared_memory.SharedMemory) -> None:
    # The segments belong to the simulator; keep this process from unlinking them.
    if os.name != "posix":
        return
    from multiprocessing import resource_tracker

    try:
        resource_tracker.unregister("/" + segment.name, "shared_memory")
    except Exception:
        pass


def _attach_segments(keys: Sequence[int], size: int) -> list[shared_memory.SharedMemory]:
    """Attach to the shared segments named after each key."""
    segments: list[shared_memory.SharedMemory] = []
    try:
        for key in keys:
            segment = shared_memory.SharedMemory(name=_segment_name(key))
            segments.append(segment)
            _untrack(segment)
            if segment.size < size:
                raise ValueError(
                    f"segment {key:#x} holds {segment.size} bytes, {size} are needed"
                )
    except BaseException:
        for segment in segments:
            segment.close()
        raise
    return segments


def _run(config: ViewerConfig, segments: Sequence[shared_memory.SharedMemory]) -> int:
    import pygame

    try:
        pygame.display.init()
        surface = pygame.display.set_mode((config.width, config.height), 0, 32)
    except pygame.error as exc:
        _error(f"Video mode set failed: {exc}")
        pygame.quit()
        return 1

    try:
        pygame.display.set_caption(config.title)
        rmask, gmask, bmask, amask = surface.get_masks()
        pixel_format = PixelFormat(surface.get_bitsize(), rmask, gmask, bmask, amask)
        converter = select_converter(config.mode, pixel_format, sys.byteorder == "big")
        if converter is None:
            _error(f"Unsupported mode {mode_name(config.mode)}")
            return 1

        row_bytes = 4 * config.width

        def present(pixels: bytes) -> None:
            pitch = surface.get_pitch()
            proxy = surface.get_buffer()
            try:
                if pitch == row_bytes:
                    proxy.write(pixels, 0)
                else:
                    for row in range(config.height):
                        start = row * row_bytes
                        proxy.write(pixels[start:start + row_bytes], row * pitch)
            finally:
                del proxy
            pygame.display.update()

        viewer = FrameViewer(config, [s.buf for s in segments], converter, present)

        pending: queue.SimpleQueue = queue.SimpleQueue()
        signal.signal(signal.SIGUSR1, lambda signum, frame: pending.put(signum))

        if not sys.stdin.buffer.read(1):
            _error("Read error")
            return 1

        while True:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    return 0
            while True:
                try:
                    pending.get_nowait()
                except queue.Empty:
                    break
                viewer.refresh()
            pygame.time.wait(_POLL_MS)
    finally:
        pygame.quit()


def main(argv: Sequence[str] | None = None) -> int:
    """Run the viewer; configuration arrives on standard input."""
    args = sys.argv[1:] if argv is None else list(argv)
    if args:
        _error("usage: fb_viewer")

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


if __name__ == "__main__":
    sys.exit(main())