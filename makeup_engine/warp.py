from __future__ import annotations

import logging
from typing import Optional

import cv2
import numpy as np

from .errors import InvalidInputError

logger = logging.getLogger(__name__)


class RigidWarp:
    """Moving-least-squares rigid deformation driven by point pairs.

    Each output pixel ``v`` samples the input at ``f(v)``, the rigid MLS map
    that sends ``target_points`` onto ``source_points`` (Schaefer et al. 2006).
    """

    def __init__(self, alpha: float = 1.0) -> None:
        self.alpha = alpha
        self._target_points: Optional[np.ndarray] = None
        self._source_points: Optional[np.ndarray] = None
        self._source_size = (0, 0)
        self._target_size = (0, 0)
        self._dx: Optional[np.ndarray] = None
        self._dy: Optional[np.ndarray] = None

    def set_mapping_points(self, target_points: np.ndarray, source_points: np.ndarray) -> None:
        target = np.asarray(target_points, dtype=np.float64).reshape(-1, 2)
        source = np.asarray(source_points, dtype=np.float64).reshape(-1, 2)
        if target.shape != source.shape or target.shape[0] < 2:
            raise InvalidInputError(
                f"Need at least two matching point pairs, got {target.shape} and {source.shape}"
            )
        self._target_points = target
        self._source_points = source
        self._dx = self._dy = None

    def set_source_size(self, width: int, height: int) -> None:
        self._source_size = (int(width), int(height))

    def set_target_size(self, width: int, height: int) -> None:
        self._target_size = (int(width), int(height))
        self._dx = self._dy = None

    def calculate_delta(self, ratio: float = 1.0) -> None:
        """Compute the per-pixel offset field; ``ratio`` moves the targets part way."""
        if self._target_points is None:
            raise InvalidInputError("Mapping points must be set before calculate_delta()")
        w, h = self._target_size
        if w <= 0 or h <= 0:
            raise InvalidInputError(f"Invalid target size {self._target_size}")

        p = self._source_points + (self._target_points - self._source_points) * ratio
        q = self._source_points
        # complex plane: x + iy
        pc = p[:, 0] + 1j * p[:, 1]
        qc = q[:, 0] + 1j * q[:, 1]

        gx, gy = np.meshgrid(np.arange(w, dtype=np.float64), np.arange(h, dtype=np.float64))
        v = gx + 1j * gy

        weights = np.empty((len(pc), h, w), dtype=np.float64)
        for i, pi in enumerate(pc):
            dist_sq = np.abs(v - pi) ** 2
            weights[i] = 1.0 / np.maximum(dist_sq, 1e-12) ** self.alpha
        total = weights.sum(axis=0)
        p_star = np.tensordot(pc, weights, axes=1) / total
        q_star = np.tensordot(qc, weights, axes=1) / total

        rotation = np.zeros((h, w), dtype=np.complex128)
        for i in range(len(pc)):
            rotation += weights[i] * (qc[i] - q_star) * np.conj(pc[i] - p_star)

        d = v - p_star
        rotated = rotation * d
        magnitude = np.abs(rotated)
        direction = np.where(magnitude > 1e-12, rotated / np.maximum(magnitude, 1e-12), d)
        mapped = np.abs(d) * direction + q_star

        # exact at control points, where the weights blow up
        for pi, qi in zip(pc, qc):
            hit = np.abs(v - pi) < 1e-6
            mapped[hit] = qi

        self._dx = (mapped.real - gx).astype(np.float32)
        self._dy = (mapped.imag - gy).astype(np.float32)
        logger.debug(
            f"Rigid warp field {w}x{h}: max shift {float(np.abs(mapped - v).max()):.2f}px"
        )

    def gen_new_image(self, image: np.ndarray, ratio: float = 1.0) -> np.ndarray:
        if self._dx is None or self._dy is None:
            raise InvalidInputError("calculate_delta() must run before gen_new_image()")
        sw, sh = self._source_size
        if (sw, sh) != (0, 0) and image.shape[:2] != (sh, sw):
            raise InvalidInputError(f"Image is {image.shape[1]}x{image.shape[0]}, source size is {sw}x{sh}")
        h, w = self._dx.shape
        gx, gy = np.meshgrid(np.arange(w, dtype=np.float32), np.arange(h, dtype=np.float32))
        map_x = gx + self._dx * ratio
        map_y = gy + self._dy * ratio
        return cv2.remap(
            image,
            map_x,
            map_y,
            interpolation=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_CONSTANT,
            borderValue=0,
        )
