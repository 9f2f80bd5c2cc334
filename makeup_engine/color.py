from __future__ import annotations

import enum
import re
from typing import NamedTuple, Sequence

import numpy as np

from .errors import InvalidInputError, UnsupportedFormatError


class PixelFormat(enum.Enum):
    GRAY8 = "gray8"
    RGBA8 = "rgba8"
    RGB32F = "rgb32f"
    RGBA32F = "rgba32f"


def pixel_format(image: np.ndarray) -> PixelFormat:
    if not isinstance(image, np.ndarray) or image.size == 0:
        raise UnsupportedFormatError("Image must be a non-empty numpy array")
    if image.dtype == np.uint8:
        if image.ndim == 2:
            return PixelFormat.GRAY8
        if image.ndim == 3 and image.shape[2] == 4:
            return PixelFormat.RGBA8
    elif image.dtype == np.float32 and image.ndim == 3:
        if image.shape[2] == 3:
            return PixelFormat.RGB32F
        if image.shape[2] == 4:
            return PixelFormat.RGBA32F
    channels = image.shape[2] if image.ndim == 3 else 1
    raise UnsupportedFormatError(
        f"Unsupported pixel format: dtype={image.dtype}, channels={channels}"
    )


def require_format(image: np.ndarray, *formats: PixelFormat, name: str = "image") -> PixelFormat:
    fmt = pixel_format(image)
    if fmt not in formats:
        expected = ", ".join(f.value for f in formats)
        raise UnsupportedFormatError(f"{name} is {fmt.value}, expected one of: {expected}")
    return fmt


class Color(NamedTuple):
    r: int
    g: int
    b: int
    a: int = 255

    @classmethod
    def from_uint32(cls, value: int) -> "Color":
        value = int(value) & 0xFFFFFFFF
        return cls(value & 0xFF, (value >> 8) & 0xFF, (value >> 16) & 0xFF, (value >> 24) & 0xFF)

    def to_uint32(self) -> int:
        return (self.a << 24) | (self.b << 16) | (self.g << 8) | self.r

    @property
    def rgb(self) -> np.ndarray:
        return np.array([self.r, self.g, self.b], dtype=np.int64)


_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{6})([0-9a-fA-F]{2})?$")


def parse_color(value: "str | int | Color | Sequence[int]") -> Color:
    """Accepts ``#RRGGBB``/``#RRGGBBAA``, a packed uint32, or an (r, g, b[, a]) sequence."""
    if isinstance(value, Color):
        return value
    if isinstance(value, (int, np.integer)):
        return Color.from_uint32(int(value))
    if isinstance(value, str):
        match = _HEX_COLOR.match(value.strip())
        if not match:
            raise InvalidInputError(f"Invalid color literal: {value!r}")
        rgb, alpha = match.groups()
        return Color(
            int(rgb[0:2], 16),
            int(rgb[2:4], 16),
            int(rgb[4:6], 16),
            int(alpha, 16) if alpha else 255,
        )
    components = [int(c) for c in value]
    if len(components) not in (3, 4) or any(c < 0 or c > 255 for c in components):
        raise InvalidInputError(f"Invalid color components: {value!r}")
    return Color(*components)


def pack(mask: np.ndarray, color: "Color | int | str") -> np.ndarray:
    """Turn an opacity mask into an RGBA tile of ``color``.

    Alpha follows ``(color.a * mask + 127) // 255``; RGB is the color itself.
    """
    require_format(mask, PixelFormat.GRAY8, name="mask")
    color = parse_color(color)
    h, w = mask.shape
    image = np.empty((h, w, 4), dtype=np.uint8)
    image[..., 0] = color.r
    image[..., 1] = color.g
    image[..., 2] = color.b
    alpha = (mask.astype(np.uint32) * color.a + 127) // 255
    image[..., 3] = alpha.astype(np.uint8)
    return image


def create_eye_shadow(
    masks: Sequence[np.ndarray],
    colors: Sequence["Color | int | str"],
) -> np.ndarray:
    """Fuse layered (mask, color) pairs into one RGBA tile.

    Color is the mask-weighted average of the layer colors (black where
    every mask is zero); alpha is the maximum mask value, not the sum.
    """
    if len(masks) == 0 or len(masks) != len(colors):
        raise InvalidInputError(
            f"Eye shadow needs matching masks and colors, got {len(masks)} and {len(colors)}"
        )
    shape = masks[0].shape
    for i, mask in enumerate(masks):
        require_format(mask, PixelFormat.GRAY8, name=f"masks[{i}]")
        if mask.shape != shape:
            raise InvalidInputError(f"masks[{i}] is {mask.shape}, expected {shape}")

    weights = np.stack([m.astype(np.int64) for m in masks], axis=0)
    rgb = np.stack([parse_color(c).rgb for c in colors], axis=0)

    numerator = np.einsum("khw,kc->hwc", weights, rgb)
    denominator = weights.sum(axis=0)[..., None]
    fused = np.zeros_like(numerator)
    np.floor_divide(numerator, denominator, out=fused, where=denominator != 0)

    bitmap = np.empty(shape + (4,), dtype=np.uint8)
    bitmap[..., :3] = fused.astype(np.uint8)
    bitmap[..., 3] = weights.max(axis=0).astype(np.uint8)
    return bitmap
