"""Exemplar-based inpainting and the region restorer built on it.

The engine follows Criminisi et al.: every step picks the fill-front pixel
with the highest confidence x data-term priority, finds the fully known
exemplar patch with the smallest masked SSD and copies it into the hole.
"""
from __future__ import annotations

import logging
from typing import Iterator, Optional, Tuple

import cv2
import numpy as np

from .errors import DegenerateGeometryError, InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_PATCH_SIZE = 4
_PRIORITY_EPS = 1e-3


class Inpainter:
    def __init__(self) -> None:
        self._source: Optional[np.ndarray] = None
        self._source_mask: Optional[np.ndarray] = None
        self._target_mask: Optional[np.ndarray] = None
        self._patch_size = DEFAULT_PATCH_SIZE

        self._image: Optional[np.ndarray] = None
        self._hole: Optional[np.ndarray] = None
        self._confidence: Optional[np.ndarray] = None
        self._exemplar_ok: Optional[np.ndarray] = None
        self._steps = 0

    def set_source_image(self, image: np.ndarray) -> None:
        if image.dtype != np.uint8 or image.ndim not in (2, 3):
            raise InvalidInputError(f"Inpainting needs an 8-bit image, got {image.dtype}{image.shape}")
        self._source = image

    def set_source_mask(self, mask: np.ndarray) -> None:
        self._source_mask = mask

    def set_target_mask(self, mask: np.ndarray) -> None:
        self._target_mask = mask

    def set_patch_size(self, patch_size: int) -> None:
        if patch_size < 1:
            raise InvalidInputError(f"Patch size must be positive, got {patch_size}")
        self._patch_size = int(patch_size)

    def initialize(self) -> None:
        if self._source is None or self._source_mask is None or self._target_mask is None:
            raise InvalidInputError("Source image, source mask and target mask are required")
        shape = self._source.shape[:2]
        for name, mask in (("source", self._source_mask), ("target", self._target_mask)):
            if mask.shape != shape:
                raise InvalidInputError(f"{name} mask is {mask.shape}, expected {shape}")

        image = self._source.astype(np.float32)
        self._image = image if image.ndim == 3 else image[..., None]
        self._hole = self._target_mask > 0
        known = ~self._hole
        self._confidence = known.astype(np.float32)

        # top-left corners whose whole window lies inside the source mask
        size = 2 * self._patch_size + 1
        outside = (self._source_mask == 0) | self._hole
        integral = cv2.integral(outside.astype(np.uint8))
        counts = (
            integral[size:, size:]
            - integral[:-size, size:]
            - integral[size:, :-size]
            + integral[:-size, :-size]
        )
        self._exemplar_ok = counts == 0
        self._steps = 0
        logger.debug(
            f"Inpainter initialized: hole={int(self._hole.sum())}px patch={size}x{size} "
            f"exemplars={int(self._exemplar_ok.sum())}"
        )

    def has_more_steps(self) -> bool:
        return self._hole is not None and bool(self._hole.any())

    def step(self) -> None:
        if self._hole is None:
            raise InvalidInputError("Inpainter.step() called before initialize()")
        if not self._hole.any():
            raise InvalidInputError("Inpainter has no more steps")

        cy, cx = self._pick_front_pixel()
        ys, xs = self._window(cy, cx)
        patch = self._image[ys, xs]
        known = ~self._hole[ys, xs]

        sy, sx = self._best_exemplar(patch, known)
        h, w = patch.shape[:2]
        exemplar = self._image[sy : sy + h, sx : sx + w]

        fill = ~known
        confidence = float(self._confidence[ys, xs][known].sum()) / known.size
        self._image[ys, xs][fill] = exemplar[fill]
        self._confidence[ys, xs][fill] = confidence
        self._hole[ys, xs][fill] = False
        self._steps += 1

    def steps(self) -> Iterator[int]:
        """Drive ``step()`` until the hole is filled, yielding its remaining size."""
        while self.has_more_steps():
            self.step()
            yield int(self._hole.sum())

    def image(self) -> np.ndarray:
        if self._image is None:
            raise InvalidInputError("Inpainter has not been initialized")
        result = np.clip(np.rint(self._image), 0, 255).astype(np.uint8)
        return result if self._source.ndim == 3 else result[..., 0]

    @property
    def step_count(self) -> int:
        return self._steps

    def _window(self, cy: int, cx: int) -> Tuple[slice, slice]:
        h, w = self._hole.shape
        n = self._patch_size
        return slice(max(cy - n, 0), min(cy + n + 1, h)), slice(max(cx - n, 0), min(cx + n + 1, w))

    def _pick_front_pixel(self) -> Tuple[int, int]:
        hole = self._hole.astype(np.uint8)
        known = 1 - hole
        front = (hole > 0) & (cv2.dilate(known, np.ones((3, 3), np.uint8)) > 0)
        if not front.any():
            raise DegenerateGeometryError("Inpainting hole has no known neighbours to grow from")

        size = 2 * self._patch_size + 1
        confidence = cv2.boxFilter(
            self._confidence, -1, (size, size), normalize=True, borderType=cv2.BORDER_CONSTANT
        )

        gray = self._image.mean(axis=2)
        gray = np.where(self._hole, 0.0, gray).astype(np.float32)
        gx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3)
        gy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3)
        nx = cv2.Sobel(known.astype(np.float32), cv2.CV_32F, 1, 0, ksize=3)
        ny = cv2.Sobel(known.astype(np.float32), cv2.CV_32F, 0, 1, ksize=3)
        norm = np.sqrt(nx * nx + ny * ny) + 1e-6
        # isophote is the gradient rotated by 90 degrees
        data = np.abs(-gy * nx / norm + gx * ny / norm) / 255.0

        priority = confidence * (data + _PRIORITY_EPS)
        priority = np.where(front, priority, -1.0)
        cy, cx = np.unravel_index(int(np.argmax(priority)), priority.shape)
        return int(cy), int(cx)

    def _best_exemplar(self, patch: np.ndarray, known: np.ndarray) -> Tuple[int, int]:
        h, w = known.shape
        ok = self._exemplar_ok[: self._image.shape[0] - h + 1, : self._image.shape[1] - w + 1]
        if h != 2 * self._patch_size + 1 or w != 2 * self._patch_size + 1:
            # clipped window at the border: recompute validity for its size
            outside = (self._source_mask == 0) | (self._target_mask > 0)
            integral = cv2.integral(outside.astype(np.uint8))
            counts = integral[h:, w:] - integral[:-h, w:] - integral[h:, :-w] + integral[:-h, :-w]
            ok = counts == 0
        if not ok.any():
            raise DegenerateGeometryError("No fully known exemplar patch is available")

        weights = np.repeat(known[..., None], patch.shape[2], axis=2).astype(np.float32)
        scores = cv2.matchTemplate(self._image, patch, cv2.TM_SQDIFF, mask=weights)
        scores = np.where(ok & np.isfinite(scores), scores, np.inf)
        sy, sx = np.unravel_index(int(np.argmin(scores)), scores.shape)
        return int(sy), int(sx)


def remove_feature(
    roi: np.ndarray,
    target_mask: np.ndarray,
    patch_size: int = DEFAULT_PATCH_SIZE,
) -> np.ndarray:
    """Fill ``target_mask`` in ``roi`` from the surrounding pixels."""
    source_mask = cv2.bitwise_not(target_mask)
    inpainter = Inpainter()
    inpainter.set_source_image(roi)
    inpainter.set_source_mask(source_mask)
    inpainter.set_target_mask(target_mask)
    inpainter.set_patch_size(patch_size)
    inpainter.initialize()

    remaining = None
    for remaining in inpainter.steps():
        pass
    logger.debug(f"Region restored in {inpainter.step_count} steps (left={remaining})")
    return inpainter.image()
