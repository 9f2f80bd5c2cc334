from .color import Color, PixelFormat, create_eye_shadow, pack, parse_color, pixel_format
from .compositor import blend, blend_masked
from .errors import (
    DegenerateGeometryError,
    InvalidInputError,
    MakeupError,
    UnsupportedFormatError,
)
from .landmarks import LANDMARK_COUNT, as_landmarks
from .makeup import (
    apply_blush,
    apply_brow,
    apply_eye,
    apply_eye_lash,
    apply_eye_shadow,
    apply_lip,
)
from .shapes import BlushShape, blush_polygon, catmull_rom, heart_shape

__all__ = [
    "BlushShape",
    "Color",
    "DegenerateGeometryError",
    "InvalidInputError",
    "LANDMARK_COUNT",
    "MakeupError",
    "PixelFormat",
    "UnsupportedFormatError",
    "apply_blush",
    "apply_brow",
    "apply_eye",
    "apply_eye_lash",
    "apply_eye_shadow",
    "apply_lip",
    "as_landmarks",
    "blend",
    "blend_masked",
    "blush_polygon",
    "catmull_rom",
    "create_eye_shadow",
    "heart_shape",
    "pack",
    "parse_color",
    "pixel_format",
]
