import numpy as np
import pytest

from makeup_engine.color import Color, PixelFormat, create_eye_shadow, pack, parse_color, pixel_format
from makeup_engine.errors import InvalidInputError, UnsupportedFormatError


def test_pixel_format_detection():
    assert pixel_format(np.zeros((4, 4), np.uint8)) is PixelFormat.GRAY8
    assert pixel_format(np.zeros((4, 4, 4), np.uint8)) is PixelFormat.RGBA8
    assert pixel_format(np.zeros((4, 4, 3), np.float32)) is PixelFormat.RGB32F
    assert pixel_format(np.zeros((4, 4, 4), np.float32)) is PixelFormat.RGBA32F


@pytest.mark.parametrize(
    "image",
    [
        np.zeros((4, 4, 3), np.uint8),
        np.zeros((4, 4), np.float32),
        np.zeros((4, 4, 4), np.float64),
        np.zeros((0, 4, 4), np.uint8),
    ],
)
def test_pixel_format_rejects_unsupported(image):
    with pytest.raises(UnsupportedFormatError):
        pixel_format(image)


def test_color_uint32_layout():
    color = Color.from_uint32(0x80FF4020)
    assert color == Color(0x20, 0x40, 0xFF, 0x80)
    assert color.to_uint32() == 0x80FF4020


@pytest.mark.parametrize(
    "value, expected",
    [
        ("#FF8000", Color(255, 128, 0, 255)),
        ("ff800040", Color(255, 128, 0, 64)),
        (0xFF0000FF, Color(255, 0, 0, 255)),
        ((10, 20, 30), Color(10, 20, 30, 255)),
        (Color(1, 2, 3, 4), Color(1, 2, 3, 4)),
    ],
)
def test_parse_color(value, expected):
    assert parse_color(value) == expected


@pytest.mark.parametrize("value", ["red", "#12345", (1, 2), (0, 0, 300)])
def test_parse_color_rejects_garbage(value):
    with pytest.raises(InvalidInputError):
        parse_color(value)


def test_pack_zero_mask_is_transparent():
    tile = pack(np.zeros((3, 5), np.uint8), Color(200, 100, 50, 255))
    assert tile.shape == (3, 5, 4)
    assert (tile[..., 3] == 0).all()


def test_pack_full_mask_takes_color_alpha():
    tile = pack(np.full((2, 2), 255, np.uint8), Color(1, 2, 3, 77))
    assert (tile[..., 3] == 77).all()
    assert (tile[..., :3] == (1, 2, 3)).all()


@pytest.mark.parametrize("mask_value", [0, 1, 127, 254, 255])
@pytest.mark.parametrize("alpha", [0, 128, 255])
def test_pack_alpha_is_rounded_product(mask_value, alpha):
    tile = pack(np.full((1, 1), mask_value, np.uint8), Color(9, 8, 7, alpha))
    assert tile[0, 0, 3] == (alpha * mask_value + 127) // 255
    assert tuple(tile[0, 0, :3]) == (9, 8, 7)


def test_pack_requires_gray_mask():
    with pytest.raises(UnsupportedFormatError):
        pack(np.zeros((2, 2, 4), np.uint8), Color(0, 0, 0))


def test_eye_shadow_single_layer_matches_pack():
    rng = np.random.default_rng(3)
    mask = rng.integers(0, 256, size=(6, 7), dtype=np.uint8)
    color = Color(90, 30, 160, 255)
    fused = create_eye_shadow([mask], [color])
    expected = pack(mask, color)
    covered = mask > 0
    assert (fused[..., 3] == mask).all()
    assert (fused[covered] == expected[covered]).all()


def test_eye_shadow_identical_layers_match_pack():
    mask = np.array([[0, 40], [200, 255]], np.uint8)
    color = Color(12, 34, 56)
    fused = create_eye_shadow([mask, mask, mask], [color, color, color])
    covered = mask > 0
    assert (fused[..., 3] == mask).all()
    assert (fused[covered][:, :3] == (12, 34, 56)).all()


def test_eye_shadow_weighted_average_and_max_alpha():
    m1 = np.full((1, 1), 100, np.uint8)
    m2 = np.full((1, 1), 50, np.uint8)
    m3 = np.zeros((1, 1), np.uint8)
    fused = create_eye_shadow([m1, m2, m3], ["#C80000", "#006400", "#0000FF"])
    # r = 200*100/150, g = 100*50/150, alpha = max not sum
    assert tuple(fused[0, 0]) == (133, 33, 0, 100)


def test_eye_shadow_average_truncates():
    ones = np.ones((1, 1), np.uint8)
    fused = create_eye_shadow([ones, ones, np.zeros((1, 1), np.uint8)], ["#010000", "#000000", "#000000"])
    # 1 / 2 truncates to 0 rather than rounding up
    assert tuple(fused[0, 0]) == (0, 0, 0, 1)


def test_eye_shadow_uncovered_pixels_are_black_and_transparent():
    zero = np.zeros((2, 2), np.uint8)
    fused = create_eye_shadow([zero, zero], ["#FFFFFF", "#FF00FF"])
    assert (fused == 0).all()


def test_eye_shadow_validates_layers():
    with pytest.raises(InvalidInputError):
        create_eye_shadow([np.zeros((2, 2), np.uint8)], ["#000000", "#FFFFFF"])
    with pytest.raises(InvalidInputError):
        create_eye_shadow([np.zeros((2, 2), np.uint8), np.zeros((3, 2), np.uint8)], ["#000000"] * 2)
    with pytest.raises(InvalidInputError):
        create_eye_shadow([], [])
