import cv2
import numpy as np
import pytest

from makeup_engine import (
    BlushShape,
    apply_blush,
    apply_brow,
    apply_eye_lash,
    apply_eye_shadow,
    apply_lip,
)
from makeup_engine.errors import DegenerateGeometryError, InvalidInputError, UnsupportedFormatError
from makeup_engine.landmarks import MIRRORED_PAIRS, centroid

BROW_COLOR = (60, 40, 20)


def _eye_mask():
    # canonical texture space; covers the whole canonical eye with room to spare
    mask = np.zeros((574, 923), np.uint8)
    mask[150:420, 250:680] = 255
    return mask


def _colored(image, color):
    return (image[..., :3] == color).all(axis=2)


class TestLip:
    def test_tints_lips_but_not_mouth_or_skin(self, face_image, face_points):
        result = apply_lip(face_image, face_points, "#B4143C", 1.0)
        assert tuple(result[276, 200]) == (0xB4, 0x14, 0x3C, 255)
        assert (result[286, 200] == face_image[286, 200]).all()
        assert (result[330, 200] == face_image[330, 200]).all()
        assert (result[:250] == face_image[:250]).all()

    def test_zero_amount_is_identity(self, face_image, face_points):
        result = apply_lip(face_image, face_points, "#B4143C", 0.0)
        assert (result == face_image).all()

    def test_writes_into_aliased_destination(self, face_image, face_points):
        before = face_image.copy()
        result = apply_lip(face_image, face_points, "#B4143C", 0.5, dst=face_image)
        assert result is face_image
        assert not (face_image == before).all()

    def test_float_image(self, face_points):
        src = np.full((400, 400, 4), 0.5, np.float32)
        result = apply_lip(src, face_points, (255, 0, 0, 255), 1.0)
        np.testing.assert_allclose(result[276, 200], (1.0, 0.0, 0.0, 1.0))
        np.testing.assert_allclose(result[286, 200], 0.5)

    def test_rejects_bad_inputs(self, face_image, face_points):
        with pytest.raises(InvalidInputError):
            apply_lip(face_image, face_points[:10], "#FF0000", 1.0)
        with pytest.raises(InvalidInputError):
            apply_lip(face_image, face_points, "#FF0000", 2.0)
        with pytest.raises(UnsupportedFormatError):
            apply_lip(face_image[..., :3], face_points, "#FF0000", 1.0)
        with pytest.raises(InvalidInputError):
            apply_lip(face_image, face_points, "#FF0000", 1.0, dst=np.zeros((10, 10, 4), np.uint8))


class TestBlush:
    @pytest.mark.parametrize("shape", list(BlushShape))
    def test_tints_both_cheeks(self, face_image, face_points, shape):
        result = apply_blush(face_image, face_points, shape, "#FF5A78", 0.6)
        changed = (result != face_image).any(axis=2)
        ys, xs = np.nonzero(changed)
        assert (xs < 200).any() and (xs >= 200).any()
        assert (result[..., 3] == 255).all()
        assert (result[5, 5] == face_image[5, 5]).all()

    def test_zero_amount_is_identity(self, face_image, face_points):
        result = apply_blush(face_image, face_points, "oval", "#FF5A78", 0.0)
        assert (result == face_image).all()

    def test_feathered_edge(self, face_points):
        src = np.zeros((400, 400, 4), np.uint8)
        src[..., 3] = 255
        result = apply_blush(src, face_points, BlushShape.DISK, "#FFFFFF", 1.0)
        values = np.unique(result[..., 0])
        # soft mask: many intermediate levels between skin and full color
        assert values.min() == 0
        assert values.max() >= 250
        assert len(values) > 20

    def test_unknown_shape_leaves_destination_alone(self, face_image, face_points):
        dst = face_image.copy()
        with pytest.raises(InvalidInputError):
            apply_blush(face_image, face_points, "butterfly", "#FF5A78", 0.5, dst=dst)
        assert (dst == face_image).all()


class TestBrow:
    def test_new_brow_lands_on_brow_centroid(self, face_image, face_points, brow_template):
        result = apply_brow(face_image, face_points, brow_template, BROW_COLOR, 1.0)
        for polygon in (face_points[20:26], face_points[26:32]):
            cx, cy = centroid(cv2.moments(polygon.reshape(-1, 1, 2)))
            assert tuple(result[int(round(cy)), int(round(cx)), :3]) == BROW_COLOR
        assert (result[..., 3] == face_image[..., 3]).all()
        assert (result[300:] == face_image[300:]).all()

    def test_zero_amount_only_erases_old_brows(self, face_image, face_points, brow_template):
        result = apply_brow(face_image, face_points, brow_template, BROW_COLOR, 0.0)
        # the old brow pixel is replaced by skin-like texture
        assert result[112, 150, 0] > 150
        assert result[112, 250, 0] > 150
        assert not _colored(result, BROW_COLOR).any()

    def test_offset_moves_brows_along_axis(self, face_image, face_points, brow_template):
        base = apply_brow(face_image, face_points, brow_template, BROW_COLOR, 1.0)
        moved = apply_brow(face_image, face_points, brow_template, BROW_COLOR, 1.0, offset_y=6.0)
        ys_base, xs_base = np.nonzero(_colored(base, BROW_COLOR))
        ys_moved, xs_moved = np.nonzero(_colored(moved, BROW_COLOR))
        assert len(ys_base) == len(ys_moved)
        assert ys_moved.mean() - ys_base.mean() == pytest.approx(6.0)
        assert xs_moved.mean() == pytest.approx(xs_base.mean())

    def test_brows_are_mirrored(self, face_image, face_points, brow_template):
        result = apply_brow(face_image, face_points, brow_template, BROW_COLOR, 1.0)
        colored = _colored(result, BROW_COLOR)
        right, left = colored[:, :200].sum(), colored[:, 200:].sum()
        assert right > 0
        assert abs(int(right) - int(left)) <= 0.1 * right

    def test_brow_filling_its_bounding_rect(self, face_image, face_points, brow_template):
        points = face_points.copy()
        points[20:26] = [(105, 100), (130, 100), (150, 100), (175, 100), (175, 122), (105, 122)]
        for right, left in MIRRORED_PAIRS[6:12]:
            points[left] = (400 - points[right][0], points[right][1])
        result = apply_brow(face_image, points, brow_template, BROW_COLOR, 1.0)
        for polygon in (points[20:26], points[26:32]):
            cx, cy = centroid(cv2.moments(polygon.reshape(-1, 1, 2)))
            assert tuple(result[int(round(cy)), int(round(cx)), :3]) == BROW_COLOR
        assert (result[..., 3] == face_image[..., 3]).all()

    def test_empty_template_is_degenerate(self, face_image, face_points):
        dst = face_image.copy()
        faint = np.full((20, 40), 2, np.uint8)
        with pytest.raises(DegenerateGeometryError):
            apply_brow(face_image, face_points, faint, BROW_COLOR, 1.0, dst=dst)
        assert (dst == face_image).all()

    def test_horizontal_axis_is_degenerate(self, face_image, face_points, brow_template):
        # a face rotated by 90 degrees has its symmetry axis along x
        rotated = np.stack([face_points[:, 1], face_points[:, 0]], axis=1)
        with pytest.raises(DegenerateGeometryError):
            apply_brow(face_image, rotated, brow_template, BROW_COLOR, 1.0)

    def test_requires_rgba8(self, face_points, brow_template):
        with pytest.raises(UnsupportedFormatError):
            apply_brow(np.zeros((400, 400, 4), np.float32), face_points, brow_template, BROW_COLOR, 1.0)


class TestEyeCosmetics:
    def test_eye_lash_tints_both_eyes(self, face_image, face_points):
        result = apply_eye_lash(face_image, face_points, _eye_mask(), "#000000", 1.0)
        for x in (150, 250):
            assert result[150, x, :3].max() <= 2
        assert (result[380, 200] == face_image[380, 200]).all()
        assert (result[..., 3] == 255).all()

    def test_eye_shadow_fuses_layers(self, face_image, face_points):
        masks = [_eye_mask(), _eye_mask()]
        result = apply_eye_shadow(face_image, face_points, masks, ["#FF0000", "#0000FF"], 1.0)
        for x in (150, 250):
            np.testing.assert_allclose(result[150, x, :3].astype(int), (128, 0, 128), atol=2)

    def test_eye_shadow_failure_leaves_destination_alone(self, face_image, face_points):
        dst = face_image.copy()
        with pytest.raises(InvalidInputError):
            apply_eye_shadow(face_image, face_points, [_eye_mask()], ["#FF0000", "#00FF00"], 1.0, dst=dst)
        assert (dst == face_image).all()
