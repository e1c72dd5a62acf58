"""Pixel format conversion for frame buffer contents.

Every converter takes the raw source frame and its dimensions and returns a
new buffer of ``4 * width * height`` bytes holding 32-bit pixels, either in
A,R,G,B byte order or in B,G,R,A byte order.  The alpha byte is always zero.
"""

from __future__ import annotations

from collections.abc import Iterable

__all__ = [
    "yuv2rgb",
    "convert_rgb_argb",
    "convert_rgb_bgra",
    "convert_bgr_argb",
    "convert_bgr_bgra",
    "convert_argb_copy_32",
    "convert_argb_swap_32",
    "convert_yvyu_argb",
    "convert_yvyu_bgra",
    "convert_yv12_argb",
    "convert_yv12_bgra",
    "convert_yv16_argb",
    "convert_yv16_bgra",
    "convert_iyuv_argb",
    "convert_iyuv_bgra",
]


def _clamp(value: int) -> int:
    if value >= 256:
        return 0xFF
    return value if value >= 0 else 0


def yuv2rgb(y: int, u: int, v: int) -> tuple[int, int, int]:
    """Convert one BT.601 studio-range Y'CbCr sample to an (r, g, b) triple."""
    c = (y - 16) * 298
    d = u - 128
    e = v - 128
    r = (c + 409 * e + 128) >> 8
    g = (c - 100 * d - 208 * e + 128) >> 8
    b = (c + 516 * d + 128) >> 8
    return _clamp(r), _clamp(g), _clamp(b)


def _pixel_count(width: int, height: int) -> int:
    if width < 0 or height < 0:
        raise ValueError(f"invalid frame dimensions {width}x{height}")
    return width * height


def _require(src: bytes, needed: int) -> bytes:
    data = bytes(src)
    if len(data) < needed:
        raise ValueError(
            f"source buffer holds {len(data)} bytes, {needed} are needed"
        )
    return data[:needed]


def _pack(samples: Iterable[tuple[int, int, int]], count: int, bgra: bool) -> bytes:
    out = bytearray(4 * count)
    for index, (y, u, v) in enumerate(samples):
        r, g, b = yuv2rgb(y, u, v)
        base = 4 * index
        out[base:base + 4] = (b, g, r, 0) if bgra else (0, r, g, b)
    return bytes(out)


def _reorder_24(src: bytes, width: int, height: int, layout: tuple) -> bytes:
    """Spread 3-byte pixels into 4-byte ones; layout maps output slot to input slot."""
    count = _pixel_count(width, height)
    data = _require(src, 3 * count)
    out = bytearray(4 * count)
    for slot, source_slot in enumerate(layout):
        if source_slot is not None:
            out[slot::4] = data[source_slot::3]
    return bytes(out)


def convert_rgb_argb(src: bytes, width: int, height: int) -> bytes:
    """Convert packed R,G,B pixels to A,R,G,B."""
    return _reorder_24(src, width, height, (None, 0, 1, 2))


def convert_rgb_bgra(src: bytes, width: int, height: int) -> bytes:
    """Convert packed R,G,B pixels to B,G,R,A."""
    return _reorder_24(src, width, height, (2, 1, 0, None))


def convert_bgr_argb(src: bytes, width: int, height: int) -> bytes:
    """Convert packed B,G,R pixels to A,R,G,B."""
    return _reorder_24(src, width, height, (None, 2, 1, 0))


def convert_bgr_bgra(src: bytes, width: int, height: int) -> bytes:
    """Convert packed B,G,R pixels to B,G,R,A."""
    return _reorder_24(src, width, height, (0, 1, 2, None))


def convert_argb_copy_32(src: bytes, width: int, height: int) -> bytes:
    """Copy 32-bit pixels unchanged."""
    return _require(src, 4 * _pixel_count(width, height))


def convert_argb_swap_32(src: bytes, width: int, height: int) -> bytes:
    """Reverse the byte order of every 32-bit pixel."""
    data = _require(src, 4 * _pixel_count(width, height))
    out = bytearray(len(data))
    for slot in range(4):
        out[slot::4] = data[3 - slot::4]
    return bytes(out)


def _yvyu_samples(src: bytes, width: int, height: int):
    count = _pixel_count(width, height)
    data = _require(src, 4 * (count // 2))
    samples = []
    for y0, v, y1, u in zip(data[0::4], data[1::4], data[2::4], data[3::4]):
        samples.append((y0, u, v))
        samples.append((y1, u, v))
    return samples, count


def _yv16_samples(src: bytes, width: int, height: int):
    count = _pixel_count(width, height)
    pairs = count // 2
    u_offset = count
    v_offset = u_offset + pairs
    data = _require(src, v_offset + pairs)
    samples = []
    for y0, y1, u, v in zip(
        data[0:2 * pairs:2],
        data[1:2 * pairs:2],
        data[u_offset:u_offset + pairs],
        data[v_offset:v_offset + pairs],
    ):
        samples.append((y0, u, v))
        samples.append((y1, u, v))
    return samples, count


def _planar_420_samples(src: bytes, width: int, height: int, u_first: bool):
    count = _pixel_count(width, height)
    first = count
    second = count + count // 4
    u_offset, v_offset = (first, second) if u_first else (second, first)
    half = width // 2
    needed = count
    if height and half:
        needed = max(needed, second + ((height - 1) // 2 * width) // 2 + half)
    data = _require(src, needed)
    samples = []
    for row in range(height):
        luma = data[row * width:row * width + 2 * half]
        chroma = (row // 2 * width) // 2
        us = data[u_offset + chroma:u_offset + chroma + half]
        vs = data[v_offset + chroma:v_offset + chroma + half]
        for y0, y1, u, v in zip(luma[0::2], luma[1::2], us, vs):
            samples.append((y0, u, v))
            samples.append((y1, u, v))
    return samples, count


def convert_yvyu_argb(src: bytes, width: int, height: int) -> bytes:
    """Convert packed YUV 4:2:2 (Y0 V Y1 U) to A,R,G,B."""
    samples, count = _yvyu_samples(src, width, height)
    return _pack(samples, count, bgra=False)


def convert_yvyu_bgra(src: bytes, width: int, height: int) -> bytes:
    """Convert packed YUV 4:2:2 (Y0 V Y1 U) to B,G,R,A."""
    samples, count = _yvyu_samples(src, width, height)
    return _pack(samples, count, bgra=True)


def convert_yv12_argb(src: bytes, width: int, height: int) -> bytes:
    """Convert planar YUV 4:2:0 with the V plane first to A,R,G,B."""
    samples, count = _planar_420_samples(src, width, height, u_first=False)
    return _pack(samples, count, bgra=False)


def convert_yv12_bgra(src: bytes, width: int, height: int) -> bytes:
    """Convert planar YUV 4:2:0 with the V plane first to B,G,R,A."""
    samples, count = _planar_420_samples(src, width, height, u_first=False)
    return _pack(samples, count, bgra=True)


def convert_yv16_argb(src: bytes, width: int, height: int) -> bytes:
    """Convert planar YUV 4:2:2 with the U plane first to A,R,G,B."""
    samples, count = _yv16_samples(src, width, height)
    return _pack(samples, count, bgra=False)


def convert_yv16_bgra(src: bytes, width: int, height: int) -> bytes:
    """Convert planar YUV 4:2:2 with the U plane first to B,G,R,A."""
    samples, count = _yv16_samples(src, width, height)
    return _pack(samples, count, bgra=True)


def convert_iyuv_argb(src: bytes, width: int, height: int) -> bytes:
    """Convert planar YUV 4:2:0 with the U plane first to A,R,G,B."""
    samples, count = _planar_420_samples(src, width, height, u_first=True)
    return _pack(samples, count, bgra=False)


def convert_iyuv_bgra(src: bytes, width: int, height: int) -> bytes:
    """Convert planar YUV 4:2:0 with the U plane first to B,G,R,A."""
    samples, count = _planar_420_samples(src, width, height, u_first=True)
    return _pack(samples, count, bgra=True)