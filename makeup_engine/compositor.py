from __future__ import annotations

import math
from typing import Optional, Sequence, Tuple

import numpy as np

from .color import PixelFormat, require_format
from .errors import InvalidInputError
from .region import Rect

RECT_BLEND_FORMATS = (PixelFormat.RGBA8, PixelFormat.RGBA32F)
MASKED_BLEND_FORMATS = (PixelFormat.RGBA8, PixelFormat.RGB32F, PixelFormat.RGBA32F)


def check_amount(amount: float) -> float:
    amount = float(amount)
    if not math.isfinite(amount) or amount < 0.0 or amount > 1.0:
        raise InvalidInputError(f"Blend amount must be within [0, 1], got {amount}")
    return amount


def _check_pair(dst: np.ndarray, src: np.ndarray, formats: Sequence[PixelFormat]) -> PixelFormat:
    dst_fmt = require_format(dst, *formats, name="dst")
    src_fmt = require_format(src, *formats, name="src")
    if dst_fmt is not src_fmt:
        raise InvalidInputError(f"src is {src_fmt.value} but dst is {dst_fmt.value}")
    return dst_fmt


def _prepare_out(dst: np.ndarray, out: Optional[np.ndarray]) -> np.ndarray:
    # out may alias dst; in that case the copy step is skipped.
    if out is None:
        return dst.copy()
    if out is dst:
        return out
    if out.shape != dst.shape or out.dtype != dst.dtype:
        raise InvalidInputError(
            f"out is {out.dtype}{out.shape}, expected {dst.dtype}{dst.shape}"
        )
    np.copyto(out, dst)
    return out


def _mix(base: np.ndarray, overlay: np.ndarray, weight) -> np.ndarray:
    """Per-channel ``base*(1-w) + overlay*w``; integer channels are rounded."""
    if base.dtype == np.uint8:
        mixed = base.astype(np.float32) * (1.0 - weight) + overlay.astype(np.float32) * weight
        return np.clip(np.floor(mixed + 0.5), 0, 255).astype(np.uint8)
    return (base * (1.0 - weight) + overlay * weight).astype(base.dtype)


def _mix_src_alpha(base: np.ndarray, overlay: np.ndarray, amount: float) -> np.ndarray:
    full = 255.0 if overlay.dtype == np.uint8 else 1.0
    weight = amount * (overlay[..., 3:4].astype(np.float32) / full)
    mixed = base.copy()
    mixed[..., :3] = _mix(base[..., :3], overlay[..., :3], weight)
    return mixed


def _overlap(dst: np.ndarray, src: np.ndarray, origin: Tuple[int, int]) -> Tuple[Rect, Rect]:
    ox, oy = int(origin[0]), int(origin[1])
    h, w = src.shape[:2]
    rect = Rect.of_image(dst) & Rect(ox, oy, w, h)
    return rect, Rect(rect.x - ox, rect.y - oy, rect.width, rect.height)


def blend(
    dst: np.ndarray,
    src: np.ndarray,
    origin: Tuple[int, int],
    amount: float,
    out: Optional[np.ndarray] = None,
    use_src_alpha: bool = False,
) -> np.ndarray:
    """Blend ``src`` placed at ``origin`` into ``dst``.

    Only the intersection of both rectangles is written. ``out`` may be
    ``dst`` itself for an in-place blend; when omitted a copy is returned.
    With ``use_src_alpha`` the per-pixel weight becomes ``amount * src.alpha``
    and the alpha channel of ``dst`` is kept.
    """
    _check_pair(dst, src, RECT_BLEND_FORMATS)
    amount = check_amount(amount)
    result = _prepare_out(dst, out)

    rect, src_rect = _overlap(dst, src, origin)
    if rect.empty:
        return result

    region = result[rect.slices]
    tile = src[src_rect.slices]
    if use_src_alpha:
        region[...] = _mix_src_alpha(region, tile, amount)
    else:
        region[...] = _mix(region, tile, amount)
    return result


def blend_masked(
    dst: np.ndarray,
    src: np.ndarray,
    mask: np.ndarray,
    origin: Tuple[int, int],
    amount: float,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Blend ``src`` into ``dst`` only where the centred ``mask`` is non-zero."""
    _check_pair(dst, src, MASKED_BLEND_FORMATS)
    require_format(mask, PixelFormat.GRAY8, name="mask")
    amount = check_amount(amount)
    result = _prepare_out(dst, out)

    rect, src_rect = _overlap(dst, src, origin)
    if rect.empty:
        return result

    sh, sw = src.shape[:2]
    mh, mw = mask.shape
    # mask is centred under src; truncate toward zero like integer division.
    offset_x, offset_y = int((sw - mw) / 2), int((sh - mh) / 2)
    covered = np.zeros((sh, sw), dtype=bool)
    placed = Rect(0, 0, sw, sh) & Rect(offset_x, offset_y, mw, mh)
    if not placed.empty:
        covered[placed.slices] = mask[
            placed.y - offset_y : placed.y - offset_y + placed.height,
            placed.x - offset_x : placed.x - offset_x + placed.width,
        ] != 0

    selected = covered[src_rect.slices]
    if not selected.any():
        return result

    region = result[rect.slices]
    tile = src[src_rect.slices]
    region[selected] = _mix(region[selected], tile[selected], amount)
    return result
