from __future__ import annotations

import cv2
import numpy as np
import pytest

from makeup_engine.landmarks import LANDMARK_COUNT, MIRRORED_PAIRS
from makeup_engine.pose_transfer import CANONICAL_EYE_POINTS

FACE_SIZE = 400

# subject's right half plus the midline; the left half is mirrored from it
_RIGHT_AND_MIDLINE = {
    0: (80, 150), 1: (85, 200), 2: (95, 245), 3: (110, 285), 4: (130, 320), 5: (160, 350),
    6: (200, 365),
    13: (100, 90), 14: (130, 65), 15: (165, 55), 16: (200, 52),
    20: (105, 115), 21: (125, 105), 22: (150, 102), 23: (175, 108), 24: (170, 118), 25: (120, 122),
    33: (120, 195),
    34: (175, 150), 35: (163, 141), 36: (150, 138), 37: (137, 141),
    38: (125, 150), 39: (137, 158), 40: (150, 161), 41: (163, 158),
    42: (150, 150),
    53: (200, 150), 54: (180, 240), 55: (200, 185), 56: (200, 225), 57: (200, 245),
    60: (200, 240), 61: (185, 235), 62: (175, 225),
    63: (170, 275), 64: (185, 268), 65: (200, 270), 73: (170, 297), 74: (160, 285), 72: (185, 302),
    71: (200, 304),
    75: (170, 285), 76: (185, 282), 80: (185, 290),
}
# forehead and lips pair up among themselves
_EXTRA_PAIRS = ((13, 19), (14, 18), (15, 17), (63, 67), (64, 66), (74, 68), (73, 69), (72, 70),
                (75, 78), (76, 77), (80, 79))


def make_face_landmarks() -> np.ndarray:
    points = np.full((LANDMARK_COUNT, 2), np.nan, dtype=np.float32)
    for idx, xy in _RIGHT_AND_MIDLINE.items():
        points[idx] = xy
    for right, left in MIRRORED_PAIRS + _EXTRA_PAIRS:
        points[left] = (FACE_SIZE - points[right][0], points[right][1])
    assert not np.isnan(points).any()
    return points


def make_face_image(points: np.ndarray) -> np.ndarray:
    image = np.zeros((FACE_SIZE, FACE_SIZE, 4), dtype=np.uint8)
    image[...] = (224, 182, 160, 255)
    rng = np.random.default_rng(7)
    noise = rng.integers(-6, 7, size=(FACE_SIZE, FACE_SIZE, 3))
    image[..., :3] = np.clip(image[..., :3].astype(int) + noise, 0, 255).astype(np.uint8)
    for brow in (points[20:26], points[26:32]):
        cv2.fillPoly(image, [np.round(brow).astype(np.int32)], (70, 50, 40, 255))
    return image


@pytest.fixture
def face_points() -> np.ndarray:
    return make_face_landmarks()


@pytest.fixture
def face_image(face_points) -> np.ndarray:
    return make_face_image(face_points)


CANONICAL_CANVAS = (1400, 600)  # width, height
CANONICAL_LEFT_AXIS = 1400.0  # left eye x = axis - canonical x


@pytest.fixture
def canonical_points() -> np.ndarray:
    """Face whose right eye sits exactly on the canonical cosmetic geometry."""
    points = make_face_landmarks()
    points[34:42] = CANONICAL_EYE_POINTS
    points[44:52, 0] = CANONICAL_LEFT_AXIS - CANONICAL_EYE_POINTS[:, 0]
    points[44:52, 1] = CANONICAL_EYE_POINTS[:, 1]
    return points


@pytest.fixture
def brow_template() -> np.ndarray:
    mask = np.zeros((40, 80), dtype=np.uint8)
    cv2.ellipse(mask, (40, 20), (32, 9), -8, 0, 360, 255, -1)
    mask[0, 0] = 3  # below the default tolerance
    return mask
