from __future__ import annotations

import enum
import math
from typing import Callable, Dict, NamedTuple, Sequence, Tuple

import numpy as np

from .errors import InvalidInputError
from .landmarks import (
    NOSE_ROOT,
    NOSE_TIP,
    as_landmarks,
    default_blush_polygon,
    distance_to_line,
    symmetry_axis,
)

HEART_POINTS = 32
DISK_POINTS = 12
SEAGULL_POINTS = 10


class BlushShape(str, enum.Enum):
    DEFAULT = "default"
    DISK = "disk"
    OVAL = "oval"
    TRIANGLE = "triangle"
    HEART = "heart"
    SEAGULL = "seagull"


def heart_shape(center: Sequence[float], radius: float, angle: float = 0.0) -> np.ndarray:
    """Sample the heart curve x = sin(t)^3, y = (13cos t - 5cos 2t - 2cos 3t - cos 4t)/16.

    The curve is flipped for y-down image coordinates, rotated by ``angle``
    radians and scaled by ``radius`` about ``center``.
    """
    t = np.arange(HEART_POINTS, dtype=np.float64) * (2.0 * math.pi / HEART_POINTS)
    x = np.sin(t) ** 3
    y = (13 * np.cos(t) - 5 * np.cos(2 * t) - 2 * np.cos(3 * t) - np.cos(4 * t)) / -16.0
    cosa, sina = math.cos(angle), math.sin(angle)
    rotated = np.stack([x * cosa - y * sina, x * sina + y * cosa], axis=1)
    return (np.asarray(center, dtype=np.float64) + radius * rotated).astype(np.float32)


def catmull_rom(
    t: float,
    p0: Sequence[float],
    p1: Sequence[float],
    p2: Sequence[float],
    p3: Sequence[float],
    alpha: float = 0.0,
) -> np.ndarray:
    """Point on the Catmull-Rom segment between ``p1`` (t=0) and ``p2`` (t=1).

    ``alpha`` selects the knot parameterisation: 0 uniform, 0.5 centripetal,
    1 chordal.
    """
    p0, p1, p2, p3 = (np.asarray(p, dtype=np.float64) for p in (p0, p1, p2, p3))
    if alpha == 0.0:
        t2, t3 = t * t, t * t * t
        point = 0.5 * (
            2 * p1
            + (p2 - p0) * t
            + (2 * p0 - 5 * p1 + 4 * p2 - p3) * t2
            + (3 * p1 - p0 - 3 * p2 + p3) * t3
        )
        return point.astype(np.float32)

    def knot(ti: float, a: np.ndarray, b: np.ndarray) -> float:
        return ti + max(float(np.linalg.norm(b - a)) ** alpha, 1e-6)

    k0 = 0.0
    k1 = knot(k0, p0, p1)
    k2 = knot(k1, p1, p2)
    k3 = knot(k2, p2, p3)
    u = k1 + (k2 - k1) * t
    a1 = (k1 - u) / (k1 - k0) * p0 + (u - k0) / (k1 - k0) * p1
    a2 = (k2 - u) / (k2 - k1) * p1 + (u - k1) / (k2 - k1) * p2
    a3 = (k3 - u) / (k3 - k2) * p2 + (u - k2) / (k3 - k2) * p3
    b1 = (k2 - u) / (k2 - k0) * a1 + (u - k0) / (k2 - k0) * a2
    b2 = (k3 - u) / (k3 - k1) * a2 + (u - k1) / (k3 - k1) * a3
    point = (k2 - u) / (k2 - k1) * b1 + (u - k1) / (k2 - k1) * b2
    return point.astype(np.float32)


class _CheekKnots(NamedTuple):
    c00: np.ndarray
    c01: np.ndarray
    c02: np.ndarray
    c03: np.ndarray
    cheekbone: np.ndarray
    eye_low_inner: np.ndarray
    ala: np.ndarray
    wing: np.ndarray


# (right, left) landmark picks per cheek; calibration data, kept verbatim
_CHEEK_KNOT_INDICES: Dict[bool, Tuple[int, ...]] = {
    True: (0, 1, 2, 3, 33, 41, 61, 62),
    False: (12, 11, 10, 9, 32, 51, 59, 58),
}
_SEAGULL_KNOTS: Dict[bool, Tuple[int, ...]] = {
    True: (42, 22, 23, 24, 25),
    False: (43, 29, 30, 31, 26),
}
_SEAGULL_TIP: Dict[bool, int] = {True: 54, False: 52}


def _cheek_knots(points: np.ndarray, right: bool) -> _CheekKnots:
    return _CheekKnots(*(points[i].astype(np.float64) for i in _CHEEK_KNOT_INDICES[right]))


def _down_vector(points: np.ndarray) -> np.ndarray:
    down = points[NOSE_TIP].astype(np.float64) - points[NOSE_ROOT]
    norm = float(np.linalg.norm(down))
    if norm < 1e-6:
        raise InvalidInputError("Nose root and nose tip coincide")
    return down / norm


def _default(points: np.ndarray, right: bool) -> np.ndarray:
    return default_blush_polygon(points, right)


def _disk(points: np.ndarray, right: bool) -> np.ndarray:
    k = _cheek_knots(points, right)
    center = np.array([(k.wing[0] + k.c02[0]) / 2, k.wing[1]])
    radius = abs(k.wing[0] - k.c02[0]) / 2
    t = np.arange(DISK_POINTS) * (2.0 * math.pi / DISK_POINTS)
    return (center + radius * np.stack([np.cos(t), np.sin(t)], axis=1)).astype(np.float32)


def _oval(points: np.ndarray, right: bool) -> np.ndarray:
    k = _cheek_knots(points, right)
    return np.array(
        [
            (k.c00 + k.c01 * 2) / 3,
            k.c01,
            (k.c01 * 2 + k.c02) / 3,
            (k.c01 + k.c02 * 2) / 3,
            (k.cheekbone[0], k.ala[1]),
            k.wing,
            (k.eye_low_inner[0], points[NOSE_ROOT][1]),
        ],
        dtype=np.float32,
    )


def _triangle(points: np.ndarray, right: bool) -> np.ndarray:
    k = _cheek_knots(points, right)
    return np.array(
        [
            (k.cheekbone[0], k.wing[1]),
            (k.c02 + k.c03) / 2,
            k.c02,
            catmull_rom(2.0 / 3, k.c00, k.c01, k.c02, k.c03),
            catmull_rom(1.0 / 3, k.c00, k.c01, k.c02, k.c03),
            k.c01,
            (k.c00 + k.c01 * 2) / 3,
        ],
        dtype=np.float32,
    )


def _heart(points: np.ndarray, right: bool) -> np.ndarray:
    k = _cheek_knots(points, right)
    cheek = (k.wing + k.c02) / 2
    anchor = (points[NOSE_ROOT].astype(np.float64) + points[NOSE_TIP] * 2) / 3

    line = symmetry_axis(points)
    vx, vy = line[0], line[1]
    radius = abs(distance_to_line(k.wing, line) - distance_to_line(k.c02, line))
    # the subject's right cheek lies on the image's left of a downward axis
    normal = np.array([-vy, vx]) if right else np.array([vy, -vx])
    center = anchor + distance_to_line(cheek, line) * normal
    angle = math.atan2(vy, vx) - math.pi / 2
    return heart_shape(center, radius, angle)


def _seagull(points: np.ndarray, right: bool) -> np.ndarray:
    down = _down_vector(points)
    knots = _SEAGULL_KNOTS[right]
    seagull = np.zeros((SEAGULL_POINTS, 2), dtype=np.float64)
    seagull[0] = points[_CHEEK_KNOT_INDICES[right][1]]
    seagull[5] = points[_SEAGULL_TIP[right]]

    carriage = points[knots[0]].astype(np.float64)
    for i in range(1, 5):
        point = points[knots[i]].astype(np.float64)
        dot = float(np.dot(carriage - point, down))  # projection on the down vector
        seagull[i] = point + 3 * dot * down
        seagull[SEAGULL_POINTS - i] = point + 2 * dot * down
    return seagull.astype(np.float32)


_BLUSH_BUILDERS: Dict[BlushShape, Callable[[np.ndarray, bool], np.ndarray]] = {
    BlushShape.DEFAULT: _default,
    BlushShape.DISK: _disk,
    BlushShape.OVAL: _oval,
    BlushShape.TRIANGLE: _triangle,
    BlushShape.HEART: _heart,
    BlushShape.SEAGULL: _seagull,
}


def blush_polygon(points: Sequence[Sequence[float]], shape: "BlushShape | str", right: bool) -> np.ndarray:
    pts = as_landmarks(points)
    try:
        style = BlushShape(shape)
    except ValueError as exc:
        raise InvalidInputError(f"Unknown blush shape: {shape!r}") from exc
    return _BLUSH_BUILDERS[style](pts, right)
