from __future__ import annotations

import math
from dataclasses import dataclass
from typing import NamedTuple, Sequence, Tuple, Union

import cv2
import numpy as np

from .errors import DegenerateGeometryError, InvalidInputError

Scale = Union[float, Tuple[float, float]]


class Rect(NamedTuple):
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def of_image(cls, image: np.ndarray) -> "Rect":
        h, w = image.shape[:2]
        return cls(0, 0, w, h)

    @classmethod
    def around(cls, points: np.ndarray) -> "Rect":
        x, y, w, h = cv2.boundingRect(np.asarray(points, dtype=np.float32).reshape(-1, 1, 2))
        return cls(int(x), int(y), int(w), int(h))

    @property
    def tl(self) -> Tuple[int, int]:
        return self.x, self.y

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @property
    def slices(self) -> Tuple[slice, slice]:
        return slice(self.y, self.y + self.height), slice(self.x, self.x + self.width)

    def __and__(self, other: "Rect") -> "Rect":
        x0 = max(self.x, other.x)
        y0 = max(self.y, other.y)
        x1 = min(self.x + self.width, other.x + other.width)
        y1 = min(self.y + self.height, other.y + other.height)
        if x1 <= x0 or y1 <= y0:
            return Rect(0, 0, 0, 0)
        return Rect(x0, y0, x1 - x0, y1 - y0)

    def inset(self, d: int) -> "Rect":
        """Shrink by ``d`` on every side; a negative ``d`` grows the rect."""
        return Rect(self.x + d, self.y + d, self.width - 2 * d, self.height - 2 * d)

    def contains(self, x: int, y: int) -> bool:
        return self.x <= x < self.x + self.width and self.y <= y < self.y + self.height


@dataclass
class Region:
    rect: Rect
    mask: np.ndarray  # uint8, rect-sized
    pivot: Tuple[float, float]


def bounding_rect(mask: np.ndarray, tolerance: int = 0) -> Rect:
    """Bounding rect of mask pixels brighter than ``tolerance``."""
    ys, xs = np.nonzero(mask > tolerance)
    if xs.size == 0:
        raise DegenerateGeometryError("Mask has no pixels above tolerance")
    x0, y0 = int(xs.min()), int(ys.min())
    return Rect(x0, y0, int(xs.max()) - x0 + 1, int(ys.max()) - y0 + 1)


def affine_transform(
    size: Tuple[int, int],
    pivot: Sequence[float],
    angle: float,
    scale: Scale = 1.0,
) -> np.ndarray:
    """Scale and rotate about ``pivot``, then move the pivot to the canvas centre.

    ``size`` is ``(width, height)`` of the output canvas and ``angle`` is in
    radians, measured in image coordinates (y down).
    """
    if isinstance(scale, (int, float)):
        sx = sy = float(scale)
    else:
        sx, sy = (float(s) for s in scale)
    if sx <= 0 or sy <= 0 or not (math.isfinite(sx) and math.isfinite(sy)):
        raise InvalidInputError(f"Scale must be positive and finite, got ({sx}, {sy})")

    cosa, sina = math.cos(angle), math.sin(angle)
    linear = np.array([[cosa * sx, -sina * sy], [sina * sx, cosa * sy]], dtype=np.float64)
    px, py = float(pivot[0]), float(pivot[1])
    cx, cy = size[0] / 2.0, size[1] / 2.0
    offset = np.array([cx, cy]) - linear @ np.array([px, py])
    return np.hstack([linear, offset[:, None]])


def transform_point(affine: np.ndarray, point: Sequence[float]) -> Tuple[float, float]:
    x, y = float(point[0]), float(point[1])
    return (
        float(affine[0, 0] * x + affine[0, 1] * y + affine[0, 2]),
        float(affine[1, 0] * x + affine[1, 1] * y + affine[1, 2]),
    )


def transform_points(affine: np.ndarray, points: np.ndarray) -> np.ndarray:
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    return (pts @ affine[:, :2].T + affine[:, 2]).astype(np.float32)
