"""Landmark contract shared with the upstream detector.

The detector emits ``LANDMARK_COUNT`` points in a fixed order. "Right" is
the subject's right, which appears on the image's left::

                      14  15  16  17  18
                13                          19
         20 21 22 23                      29 30 31 26
        25  24                                27 28
                 36                    46
              37    35              45    47
     0   38   42   34    53      44   43   48   12
              39    41    55        51    49
                 40   33    56    32      50
      1                 58      62              11
                          59 60 61
        2            52    57    54            10
                        63 64 65 66 67
          3           74   75..80   68         9
                        73 72 71 70 69
            4                                 8
                5                         7
                             6

Version 1 of the layout; any change to an index is a breaking change for
the detector integration.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence, Tuple

import cv2
import numpy as np

from .errors import DegenerateGeometryError, InvalidInputError
from .region import Rect, Region

logger = logging.getLogger(__name__)

LANDMARK_COUNT = 81

FACE_CONTOUR = tuple(range(0, 13))
CHIN = 6
FOREHEAD = tuple(range(13, 20))
RIGHT_BROW = tuple(range(20, 26))
LEFT_BROW = tuple(range(26, 32))
LEFT_CHEEKBONE = 32
RIGHT_CHEEKBONE = 33
RIGHT_EYE = tuple(range(34, 42))
RIGHT_PUPIL = 42
LEFT_PUPIL = 43
LEFT_EYE = tuple(range(44, 52))
LEFT_NOSTRIL = 52
NOSE_ROOT = 53
RIGHT_NOSTRIL = 54
NOSE_BRIDGE = 55
NOSE_TIP = 56
SUBNASALE = 57
LEFT_NOSE_WING = 58
LEFT_ALA = 59
COLUMELLA = 60
RIGHT_ALA = 61
RIGHT_NOSE_WING = 62
OUTER_LIP = tuple(range(63, 75))
INNER_LIP = tuple(range(75, 81))

# eye contours start at the inner corner and run over the top lid
RIGHT_EYE_INNER, RIGHT_EYE_OUTER = 34, 38
LEFT_EYE_INNER, LEFT_EYE_OUTER = 44, 48

# (right, left) pairs mirrored about the face's symmetry axis
MIRRORED_PAIRS: Tuple[Tuple[int, int], ...] = (
    tuple((i, 12 - i) for i in range(6))
    + ((20, 27), (21, 28), (22, 29), (23, 30), (24, 31), (25, 26))
    + ((RIGHT_CHEEKBONE, LEFT_CHEEKBONE), (RIGHT_PUPIL, LEFT_PUPIL))
    + tuple((34 + i, 44 + i) for i in range(8))
    + ((RIGHT_NOSTRIL, LEFT_NOSTRIL), (RIGHT_ALA, LEFT_ALA), (RIGHT_NOSE_WING, LEFT_NOSE_WING))
)
MIDLINE = (CHIN, 16, NOSE_ROOT, NOSE_BRIDGE, NOSE_TIP, SUBNASALE, COLUMELLA)

# blush outline: contour knots pulled toward the nose, then back under the eye
_DEFAULT_BLUSH_KNOTS: Dict[bool, Tuple[int, ...]] = {
    True: (1, 2, 3, RIGHT_ALA, RIGHT_NOSE_WING, 40, 39),
    False: (11, 10, 9, LEFT_ALA, LEFT_NOSE_WING, 50, 49),
}
_DEFAULT_BLUSH_PULL = (0.25, 0.25, 0.3, 0.3, 0.3, 0.45, 0.35)


def as_landmarks(points: Sequence[Sequence[float]]) -> np.ndarray:
    pts = np.asarray(points, dtype=np.float32)
    if pts.ndim != 2 or pts.shape[1] != 2:
        raise InvalidInputError(f"Landmarks must be an (N, 2) array, got shape {pts.shape}")
    if pts.shape[0] != LANDMARK_COUNT:
        raise InvalidInputError(
            f"Expected {LANDMARK_COUNT} landmarks, got {pts.shape[0]}"
        )
    if not np.all(np.isfinite(pts)):
        raise InvalidInputError("Landmarks contain non-finite coordinates")
    return pts


def centroid(moments: Dict[str, float]) -> Tuple[float, float]:
    if abs(moments["m00"]) < 1e-9:
        raise DegenerateGeometryError("Zero-area shape has no centroid")
    return moments["m10"] / moments["m00"], moments["m01"] / moments["m00"]


def symmetry_axis(points: np.ndarray) -> Tuple[float, float, float, float]:
    """Fit the face's mirror axis as ``(vx, vy, x0, y0)`` pointing down."""
    pts = np.asarray(points, dtype=np.float32)
    right = pts[[r for r, _ in MIRRORED_PAIRS]]
    left = pts[[l for _, l in MIRRORED_PAIRS]]
    samples = np.concatenate([(right + left) / 2, pts[list(MIDLINE)]], axis=0)
    vx, vy, x0, y0 = cv2.fitLine(samples.reshape(-1, 1, 2), cv2.DIST_L2, 0, 0.01, 0.01).ravel()
    if vy < 0:
        vx, vy = -vx, -vy
    return float(vx), float(vy), float(x0), float(y0)


def distance_to_line(point: Sequence[float], line: Sequence[float]) -> float:
    vx, vy, x0, y0 = line
    return abs((point[0] - x0) * vy - (point[1] - y0) * vx)


def brow_polygon(points: np.ndarray, right: bool) -> np.ndarray:
    return np.asarray(points, dtype=np.float32)[list(RIGHT_BROW if right else LEFT_BROW)]


def default_blush_polygon(points: np.ndarray, right: bool) -> np.ndarray:
    pts = np.asarray(points, dtype=np.float32)
    knots = pts[list(_DEFAULT_BLUSH_KNOTS[right])]
    nose = pts[RIGHT_NOSE_WING if right else LEFT_NOSE_WING]
    contour = pts[2 if right else 10]
    polygon = []
    for i, (knot, pull) in enumerate(zip(knots, _DEFAULT_BLUSH_PULL)):
        # contour knots move inward, nose and eye knots move outward
        anchor = nose if i < 3 else contour
        polygon.append(knot + (anchor - knot) * pull)
    return np.array(polygon, dtype=np.float32)


def polygon_mask(polygon: np.ndarray, rect: Optional[Rect] = None) -> Tuple[np.ndarray, Rect]:
    """Filled 0/255 mask over ``rect`` (the polygon's bounding rect by default)."""
    if rect is None:
        rect = Rect.around(polygon)
    mask = np.zeros((rect.height, rect.width), dtype=np.uint8)
    local = np.round(np.asarray(polygon, dtype=np.float32) - np.array(rect.tl, dtype=np.float32)).astype(np.int32)
    cv2.fillPoly(mask, [local], 255)
    return mask, rect


def smooth_polygon_mask(rect: Rect, polygon: np.ndarray, level: int) -> np.ndarray:
    """Polygon mask over ``rect`` with edges feathered inward by ``level`` pixels."""
    mask, _ = polygon_mask(polygon, rect)
    if level <= 0:
        return mask
    kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (level + 1, level + 1))
    core = cv2.erode(mask, kernel, iterations=1)
    return cv2.GaussianBlur(core, (2 * level + 1, 2 * level + 1), 0)


def lip_region(points: np.ndarray, margin: int = 2) -> Region:
    pts = np.asarray(points, dtype=np.float32)
    outer = pts[list(OUTER_LIP)]
    inner = pts[list(INNER_LIP)]
    rect = Rect.around(outer).inset(-margin)
    if rect.empty:
        raise DegenerateGeometryError("Lip contour has no extent")
    mask = np.zeros((rect.height, rect.width), dtype=np.uint8)
    origin = np.array(rect.tl, dtype=np.float32)
    cv2.fillPoly(mask, [np.round(outer - origin).astype(np.int32)], 255)
    cv2.fillPoly(mask, [np.round(inner - origin).astype(np.int32)], 0)
    pivot = (rect.x + rect.width / 2.0, rect.y + rect.height / 2.0)
    logger.debug(f"Lip region {rect} pivot {pivot}")
    return Region(rect=rect, mask=mask, pivot=pivot)
