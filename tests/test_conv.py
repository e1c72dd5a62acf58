import pytest

from periphsim import conv


def _pixels(buf):
    return [buf[k:k + 4] for k in range(0, len(buf), 4)]


def test_yuv2rgb_black_and_white():
    assert conv.yuv2rgb(16, 128, 128) == (0, 0, 0)
    assert conv.yuv2rgb(235, 128, 128) == (255, 255, 255)


def test_yuv2rgb_clamps_into_byte_range():
    assert conv.yuv2rgb(0, 128, 128) == conv.yuv2rgb(16, 128, 128)
    assert conv.yuv2rgb(255, 128, 128) == conv.yuv2rgb(235, 128, 128)
    for y in (0, 100, 255):
        for u in (0, 255):
            for v in (0, 255):
                assert all(0 <= c <= 255 for c in conv.yuv2rgb(y, u, v))


def test_yuv2rgb_grey_has_equal_components():
    r, g, b = conv.yuv2rgb(128, 128, 128)
    assert r == g == b


def test_rgb_argb_places_components_after_zero_alpha():
    src = bytes([10, 20, 30, 40, 50, 60])
    out = conv.convert_rgb_argb(src, 2, 1)
    assert out == bytes([0, 10, 20, 30, 0, 40, 50, 60])


def test_rgb_bgra_reverses_components():
    src = bytes([10, 20, 30, 40, 50, 60])
    out = conv.convert_rgb_bgra(src, 1, 2)
    assert out == bytes([30, 20, 10, 0, 60, 50, 40, 0])


def test_bgr_argb_and_bgr_bgra():
    src = bytes([1, 2, 3])
    assert conv.convert_bgr_argb(src, 1, 1) == bytes([0, 3, 2, 1])
    assert conv.convert_bgr_bgra(src, 1, 1) == bytes([1, 2, 3, 0])


def test_rgb_and_bgr_agree_on_swapped_input():
    rgb = bytes(range(1, 13))
    bgr = b"".join(rgb[k:k + 3][::-1] for k in range(0, 12, 3))
    assert conv.convert_rgb_argb(rgb, 2, 2) == conv.convert_bgr_argb(bgr, 2, 2)
    assert conv.convert_rgb_bgra(rgb, 2, 2) == conv.convert_bgr_bgra(bgr, 2, 2)


def test_argb_copy_truncates_to_frame():
    src = bytes(range(20))
    assert conv.convert_argb_copy_32(src, 2, 2) == bytes(range(16))


def test_argb_swap_reverses_each_pixel_and_round_trips():
    src = bytes(range(8))
    out = conv.convert_argb_swap_32(src, 2, 1)
    assert out == bytes([3, 2, 1, 0, 7, 6, 5, 4])
    assert conv.convert_argb_swap_32(out, 2, 1) == src


def test_yvyu_grey_frame():
    src = bytes([128] * 8)
    out = conv.convert_yvyu_argb(src, 2, 2)
    r, g, b = conv.yuv2rgb(128, 128, 128)
    assert _pixels(out) == [bytes([0, r, g, b])] * 4


def test_yvyu_uses_shared_chroma():
    src = bytes([50, 200, 90, 30])
    out = conv.convert_yvyu_argb(src, 2, 1)
    first = conv.yuv2rgb(50, 30, 200)
    second = conv.yuv2rgb(90, 30, 200)
    assert out == bytes([0, *first, 0, *second])


def test_yvyu_matches_yv16_for_same_samples():
    ys = [20, 60, 100, 140, 180, 220, 40, 80]
    us = [10, 90, 170, 250]
    vs = [240, 160, 80, 0]
    yvyu = bytes(
        b for k in range(4) for b in (ys[2 * k], vs[k], ys[2 * k + 1], us[k])
    )
    yv16 = bytes(ys + us + vs)
    assert conv.convert_yvyu_argb(yvyu, 4, 2) == conv.convert_yv16_argb(yv16, 4, 2)
    assert conv.convert_yvyu_bgra(yvyu, 4, 2) == conv.convert_yv16_bgra(yv16, 4, 2)


def test_yv12_and_iyuv_differ_only_in_plane_order():
    y_plane = bytes([30, 70, 110, 150, 190, 230, 50, 90])
    u_plane = bytes([20, 220])
    v_plane = bytes([200, 40])
    yv12 = y_plane + v_plane + u_plane
    iyuv = y_plane + u_plane + v_plane
    assert conv.convert_yv12_argb(yv12, 4, 2) == conv.convert_iyuv_argb(iyuv, 4, 2)
    assert conv.convert_yv12_bgra(yv12, 4, 2) == conv.convert_iyuv_bgra(iyuv, 4, 2)


def test_iyuv_chroma_shared_by_two_rows():
    y_plane = bytes([40, 80, 120, 160])
    src = y_plane + bytes([60]) + bytes([190])
    out = _pixels(conv.convert_iyuv_argb(src, 2, 2))
    assert out == [bytes([0, *conv.yuv2rgb(y, 60, 190)]) for y in y_plane]


@pytest.mark.parametrize(
    "argb, bgra, src, width, height",
    [
        (conv.convert_yvyu_argb, conv.convert_yvyu_bgra, bytes(range(10, 26)), 4, 2),
        (conv.convert_yv12_argb, conv.convert_yv12_bgra, bytes(range(30, 42)), 4, 2),
        (conv.convert_yv16_argb, conv.convert_yv16_bgra, bytes(range(5, 21)), 4, 2),
        (conv.convert_iyuv_argb, conv.convert_iyuv_bgra, bytes(range(60, 72)), 4, 2),
    ],
)
def test_bgra_is_byte_reversed_argb(argb, bgra, src, width, height):
    a = _pixels(argb(src, width, height))
    b = _pixels(bgra(src, width, height))
    assert len(a) == width * height
    assert [p[::-1] for p in a] == b


def test_output_size_is_four_bytes_per_pixel():
    assert len(conv.convert_yv12_argb(bytes(24), 4, 4)) == 64
    assert len(conv.convert_rgb_bgra(bytes(27), 3, 3)) == 36


@pytest.mark.parametrize(
    "func, size",
    [
        (conv.convert_rgb_argb, 11),
        (conv.convert_argb_copy_32, 15),
        (conv.convert_argb_swap_32, 15),
        (conv.convert_yvyu_argb, 7),
        (conv.convert_yv16_bgra, 7),
        (conv.convert_yv12_argb, 5),
        (conv.convert_iyuv_bgra, 5),
    ],
)
def test_short_source_raises(func, size):
    with pytest.raises(ValueError):
        func(bytes(size), 2, 2)


def test_negative_dimensions_raise():
    with pytest.raises(ValueError):
        conv.convert_bgr_bgra(bytes(12), -1, 4)


def test_empty_frame_gives_empty_output():
    assert conv.convert_yv12_bgra(b"", 0, 0) == b""
    assert conv.convert_rgb_argb(b"", 0, 5) == b""