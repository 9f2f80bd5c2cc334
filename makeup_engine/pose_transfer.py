"""Transfer an eye cosmetic authored on a canonical eye onto detected eyes.

A similarity transform (eye corners) does the coarse fit, a rigid MLS warp
over the whole eye contour absorbs lid shape and asymmetry. The left eye is
handled as a mirrored right eye.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np

from .errors import DegenerateGeometryError
from .landmarks import LEFT_EYE, LEFT_EYE_INNER, LEFT_EYE_OUTER, RIGHT_EYE
from .region import affine_transform, transform_point, transform_points
from .warp import RigidWarp

logger = logging.getLogger(__name__)

# Right-eye contour (landmarks 34-41) as drawn in the cosmetic templates.
CANONICAL_EYE_POINTS = np.array(
    [
        (633, 287), (534, 228), (458, 213), (386, 228),
        (290, 287), (386, 350), (458, 362), (534, 353),
    ],
    dtype=np.float32,
)
CANONICAL_EYE_POINTS.setflags(write=False)

_INNER, _OUTER = 0, 4  # contour positions of the eye corners


@dataclass(frozen=True)
class EyeParams:
    pivot: Tuple[float, float]
    radius: float
    angle: float


def eye_params(inner: np.ndarray, outer: np.ndarray) -> EyeParams:
    pivot = (inner + outer) / 2
    radius = float(np.linalg.norm(outer - pivot))
    delta = inner - outer
    if delta[0] < 0:
        delta = -delta  # keep the angle within [-pi/2, pi/2]
    angle = math.atan2(float(delta[1]), float(delta[0]))
    return EyeParams((float(pivot[0]), float(pivot[1])), radius, angle)


CANONICAL_EYE = eye_params(CANONICAL_EYE_POINTS[_INNER], CANONICAL_EYE_POINTS[_OUTER])


def detected_eye_points(points: np.ndarray, right: bool) -> np.ndarray:
    """Eye contour in right-eye form; the left eye is reflected about its own centre."""
    if right:
        return points[list(RIGHT_EYE)].astype(np.float32)
    contour = points[list(LEFT_EYE)].astype(np.float32)
    total = points[LEFT_EYE_INNER, 0] + points[LEFT_EYE_OUTER, 0]
    contour[:, 0] = total - contour[:, 0]
    return contour


def transfer_eye(
    cosmetic: np.ndarray,
    points: np.ndarray,
    right: bool,
) -> Tuple[np.ndarray, Tuple[int, int]]:
    """Warp ``cosmetic`` onto one detected eye.

    Returns the warped tile and the integer origin at which to composite it.
    """
    h, w = cosmetic.shape[:2]
    dst_points = detected_eye_points(points, right)
    params = eye_params(dst_points[_INNER], dst_points[_OUTER])
    if CANONICAL_EYE.radius <= 0 or params.radius <= 0:
        raise DegenerateGeometryError("Eye corners coincide")
    logger.debug(
        f"{'right' if right else 'left'} eye pivot: {params.pivot}, radius: {params.radius:.2f}, "
        f"angle: {math.degrees(params.angle):.2f}"
    )

    scale = params.radius / CANONICAL_EYE.radius
    angle = params.angle - CANONICAL_EYE.angle
    affine = affine_transform((w, h), CANONICAL_EYE.pivot, angle, scale)
    warped = cv2.warpAffine(
        cosmetic, affine, (w, h), flags=cv2.INTER_LANCZOS4, borderMode=cv2.BORDER_CONSTANT, borderValue=0
    )
    if warped.dtype == np.float32:
        # Lanczos overshoots at hard edges
        np.clip(warped, 0.0, 1.0, out=warped)

    src_points = transform_points(affine, CANONICAL_EYE_POINTS)
    pivot = transform_point(affine, CANONICAL_EYE.pivot)

    # move the detected contour so both pivots coincide inside the tile
    dst_pivot = np.array(params.pivot, dtype=np.float32)
    src_pivot = (src_points[_INNER] + src_points[_OUTER]) / 2
    dst_points = dst_points + (src_pivot - dst_pivot)

    warp = RigidWarp()
    warp.set_mapping_points(dst_points, src_points)
    warp.set_source_size(w, h)
    warp.set_target_size(w, h)
    warp.calculate_delta(1.0)
    warped = warp.gen_new_image(warped, 1.0)

    if not right:
        # left + right == width - 1 on a discrete raster
        pivot = (float(w - 1) - pivot[0], pivot[1])
        warped = cv2.flip(warped, 1)

    # reflection keeps the eye centre, so this is the detected pivot on both sides
    eye_pivot = params.pivot

    origin = (int(round(eye_pivot[0] - pivot[0])), int(round(eye_pivot[1] - pivot[1])))
    return warped, origin
