"""Cosmetic effects: brow, eye, eye lash, eye shadow, blush and lip.

Every effect renders into a private copy of ``src`` and only writes the
finished image into ``dst`` (which may be ``src``) once all steps succeed.
"""
from __future__ import annotations

import logging
import math
from typing import Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from .color import Color, PixelFormat, create_eye_shadow, pack, parse_color, require_format
from .compositor import blend, blend_masked, check_amount
from .errors import DegenerateGeometryError, InvalidInputError
from .inpaint import DEFAULT_PATCH_SIZE, remove_feature
from .landmarks import (
    as_landmarks,
    brow_polygon,
    centroid,
    lip_region,
    polygon_mask,
    smooth_polygon_mask,
    symmetry_axis,
)
from .pose_transfer import transfer_eye
from .region import Rect, affine_transform, bounding_rect, transform_point
from .shapes import BlushShape, blush_polygon

logger = logging.getLogger(__name__)

BROW_MARGIN = 8
BROW_MASK_TOLERANCE = 4
BLUSH_SMOOTH_LEVEL = 8

ColorLike = Union[Color, int, str]


def _finish(result: np.ndarray, dst: Optional[np.ndarray]) -> np.ndarray:
    if dst is None:
        return result
    np.copyto(dst, result)
    return dst


def _check_dst(src: np.ndarray, dst: Optional[np.ndarray]) -> None:
    if dst is not None and (dst.shape != src.shape or dst.dtype != src.dtype):
        raise InvalidInputError(f"dst is {dst.dtype}{dst.shape}, expected {src.dtype}{src.shape}")


def _lerp_into(region: np.ndarray, restored: np.ndarray, weight: np.ndarray) -> None:
    """8-bit lerp of the color channels by ``weight``; alpha is left alone."""
    a = weight.astype(np.uint32)[..., None]
    base = region[..., :3].astype(np.uint32)
    region[..., :3] = ((base * (255 - a) + restored.astype(np.uint32) * a + 127) // 255).astype(np.uint8)


def _erase_brow(
    image: np.ndarray,
    polygon: np.ndarray,
    rect: Rect,
    margin: int,
    patch_size: int,
) -> None:
    # the known band must fit at least one whole exemplar window
    grow = max(margin, 2 * patch_size + 1)
    roi_rect = rect.inset(-grow) & Rect.of_image(image)
    if roi_rect.empty:
        return
    target, _ = polygon_mask(polygon, roi_rect)
    if not target.any():
        return

    region = image[roi_rect.slices]
    roi = region[..., :3].copy()
    logger.debug(f"Erasing brow in {roi_rect} ({roi_rect.area} px)")
    restored = remove_feature(roi, target, patch_size)
    _lerp_into(region, restored, target)


def apply_brow(
    src: np.ndarray,
    points: Sequence[Sequence[float]],
    mask: np.ndarray,
    color: ColorLike,
    amount: float,
    offset_y: float = 0.0,
    dst: Optional[np.ndarray] = None,
    *,
    margin: int = BROW_MARGIN,
    mask_tolerance: int = BROW_MASK_TOLERANCE,
    patch_size: int = DEFAULT_PATCH_SIZE,
) -> np.ndarray:
    """Replace both eyebrows with ``mask`` drawn in ``color``.

    The existing brows are inpainted away first. ``mask`` is a right-brow
    template; it is mirrored for the left brow, fitted to each detected
    brow's extent and tilted along the face's symmetry axis. ``offset_y``
    moves the new brows along that axis.
    """
    require_format(src, PixelFormat.RGBA8, name="src")
    require_format(mask, PixelFormat.GRAY8, name="mask")
    _check_dst(src, dst)
    pts = as_landmarks(points)
    amount = check_amount(amount)
    color = parse_color(color)

    vx, vy, _, _ = symmetry_axis(pts)
    if abs(vy) < 1e-6:
        raise DegenerateGeometryError("Symmetry axis is horizontal")
    angle = math.atan2(vy, vx) - math.pi / 2
    translation = (offset_y / vy * vx, offset_y)

    template_rect = bounding_rect(mask, mask_tolerance)
    template = np.ascontiguousarray(mask[template_rect.slices])
    template_center = centroid(cv2.moments(template))

    result = src.copy()
    for right in (True, False):
        polygon = brow_polygon(pts, right)
        center = centroid(cv2.moments(polygon.reshape(-1, 1, 2)))
        rect = Rect.around(polygon)
        _erase_brow(result, polygon, rect, margin, patch_size)

        if right:
            side_mask, pivot = template, template_center
        else:
            side_mask = cv2.flip(template, 1)
            pivot = (template_rect.width - 1 - template_center[0], template_center[1])

        scale = (rect.width / template_rect.width, rect.height / template_rect.height)
        side = 2 * int(math.ceil(math.hypot(rect.width, rect.height))) + 1
        affine = affine_transform((side, side), pivot, angle, scale)
        warped = cv2.warpAffine(
            side_mask, affine, (side, side), flags=cv2.INTER_LINEAR, borderMode=cv2.BORDER_CONSTANT
        )
        target_center = transform_point(affine, pivot)

        origin = (
            int(round(center[0] - target_center[0] + translation[0])),
            int(round(center[1] - target_center[1] + translation[1])),
        )
        logger.debug(
            f"{'right' if right else 'left'} brow rect={rect} origin={origin} "
            f"angle={math.degrees(angle):.2f}"
        )
        blend(result, pack(warped, color), origin, amount, out=result, use_src_alpha=True)

    return _finish(result, dst)


def _eye_pass(result: np.ndarray, points: np.ndarray, cosmetic: np.ndarray, amount: float) -> None:
    for right in (True, False):
        tile, origin = transfer_eye(cosmetic, points, right)
        blend(result, tile, origin, amount, out=result, use_src_alpha=True)


def apply_eye(
    src: np.ndarray,
    points: Sequence[Sequence[float]],
    cosmetic: np.ndarray,
    amount: float,
    dst: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Deposit a right-eye ``cosmetic`` texture on both eyes."""
    fmt = require_format(src, PixelFormat.RGBA8, PixelFormat.RGBA32F, name="src")
    require_format(cosmetic, fmt, name="cosmetic")
    _check_dst(src, dst)
    pts = as_landmarks(points)
    amount = check_amount(amount)

    result = src.copy()
    _eye_pass(result, pts, cosmetic, amount)
    return _finish(result, dst)


def apply_eye_lash(
    src: np.ndarray,
    points: Sequence[Sequence[float]],
    mask: np.ndarray,
    color: ColorLike,
    amount: float,
    dst: Optional[np.ndarray] = None,
) -> np.ndarray:
    require_format(src, PixelFormat.RGBA8, name="src")
    return apply_eye(src, points, pack(mask, color), amount, dst)


def apply_eye_shadow(
    src: np.ndarray,
    points: Sequence[Sequence[float]],
    masks: Sequence[np.ndarray],
    colors: Sequence[ColorLike],
    amount: float,
    dst: Optional[np.ndarray] = None,
) -> np.ndarray:
    require_format(src, PixelFormat.RGBA8, name="src")
    return apply_eye(src, points, create_eye_shadow(masks, colors), amount, dst)


def apply_blush(
    src: np.ndarray,
    points: Sequence[Sequence[float]],
    shape: "BlushShape | str",
    color: ColorLike,
    amount: float,
    dst: Optional[np.ndarray] = None,
    *,
    smooth_level: int = BLUSH_SMOOTH_LEVEL,
) -> np.ndarray:
    require_format(src, PixelFormat.RGBA8, name="src")
    _check_dst(src, dst)
    pts = as_landmarks(points)
    amount = check_amount(amount)
    color = parse_color(color)

    result = src.copy()
    for right in (False, True):
        polygon = blush_polygon(pts, shape, right)
        rect = Rect.around(polygon)
        mask = smooth_polygon_mask(rect, polygon, smooth_level)
        blend(result, pack(mask, color), rect.tl, amount, out=result, use_src_alpha=True)
    return _finish(result, dst)


def _uniform_tile(size: Tuple[int, int], color: Color, fmt: PixelFormat) -> np.ndarray:
    h, w = size
    if fmt is PixelFormat.RGBA8:
        return np.full((h, w, 4), (color.r, color.g, color.b, color.a), dtype=np.uint8)
    rgba = np.array([color.r, color.g, color.b, color.a], dtype=np.float32) / 255.0
    return np.broadcast_to(rgba, (h, w, 4)).copy()


def apply_lip(
    src: np.ndarray,
    points: Sequence[Sequence[float]],
    color: ColorLike,
    amount: float,
    dst: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Tint the lips with a uniform ``color`` through the lip-shaped mask."""
    fmt = require_format(src, PixelFormat.RGBA8, PixelFormat.RGBA32F, name="src")
    _check_dst(src, dst)
    pts = as_landmarks(points)
    amount = check_amount(amount)
    color = parse_color(color)

    region = lip_region(pts)
    h, w = region.mask.shape
    origin = (int(round(region.pivot[0] - w / 2)), int(round(region.pivot[1] - h / 2)))
    lip = _uniform_tile((h, w), color, fmt)

    result = blend_masked(src, lip, region.mask, origin, amount)
    return _finish(result, dst)
