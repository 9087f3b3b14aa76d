"""Tests for image conversion helpers."""

import cv2
import numpy as np
import pytest

from otic_vision.errors import ImageLoadError
from otic_vision.preprocessing import (
    image_from_buffer, load_image, normalize_image, resize_image, to_rgba,
)


class TestToRgba:
    """Tests for channel layout conversion."""

    def test_rgb_gets_opaque_alpha(self):
        rgba = to_rgba(np.full((4, 5, 3), 7, dtype=np.uint8))
        assert rgba.shape == (4, 5, 4)
        assert np.all(rgba[:, :, 3] == 255)
        assert np.all(rgba[:, :, :3] == 7)

    def test_grayscale_expanded(self):
        rgba = to_rgba(np.full((3, 3), 90, dtype=np.uint8))
        assert rgba.shape == (3, 3, 4)
        assert list(rgba[0, 0]) == [90, 90, 90, 255]

    def test_rgba_unchanged(self, red_square_image):
        assert to_rgba(red_square_image) is red_square_image

    def test_unsupported_shape(self):
        with pytest.raises(ValueError, match="Unsupported"):
            to_rgba(np.zeros((2, 2, 5), dtype=np.uint8))

    def test_float_image_scaled(self):
        image = normalize_image(np.full((2, 2, 3), 0.5))
        assert image.dtype == np.uint8
        assert image[0, 0, 0] == 127


class TestImageFromBuffer:
    """Tests for flat RGBA buffers."""

    def test_reshapes_buffer(self):
        data = bytes(range(24))
        image = image_from_buffer(data, width=3, height=2)
        assert image.shape == (2, 3, 4)
        assert list(image[1, 0]) == [12, 13, 14, 15]

    def test_size_mismatch(self):
        with pytest.raises(ValueError, match="expected 24"):
            image_from_buffer(bytes(10), width=3, height=2)


class TestLoadImage:
    """Tests for reading image files."""

    def test_preserves_alpha_and_channel_order(self, tmp_path):
        rgba = np.zeros((10, 10, 4), dtype=np.uint8)
        rgba[:, :, 0] = 255
        rgba[:, 5:, 3] = 255
        path = str(tmp_path / "half.png")
        cv2.imwrite(path, cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA))

        loaded = load_image(path)
        assert loaded.shape == (10, 10, 4)
        assert list(loaded[0, 9]) == [255, 0, 0, 255]
        assert loaded[0, 0, 3] == 0

    def test_rgb_file_is_opaque(self, tmp_path):
        path = str(tmp_path / "blue.png")
        bgr = np.zeros((6, 6, 3), dtype=np.uint8)
        bgr[:, :, 0] = 255
        cv2.imwrite(path, bgr)

        loaded = load_image(path)
        assert list(loaded[0, 0]) == [0, 0, 255, 255]

    def test_sixteen_bit_scaled_down(self, tmp_path):
        path = str(tmp_path / "deep.png")
        cv2.imwrite(path, np.full((6, 6, 3), 100 * 257, dtype=np.uint16))

        loaded = load_image(path)
        assert loaded.dtype == np.uint8
        assert list(loaded[0, 0]) == [100, 100, 100, 255]

    def test_normalize_sixteen_bit(self):
        image = normalize_image(np.full((2, 2), 65535, dtype=np.uint16))
        assert image.dtype == np.uint8
        assert image[0, 0] == 255

    def test_missing_file(self, tmp_path):
        with pytest.raises(ImageLoadError):
            load_image(str(tmp_path / "missing.png"))


class TestResizeImage:
    """Tests for aspect-preserving downscaling."""

    def test_downscales_to_fit(self):
        image = np.zeros((1200, 1600, 4), dtype=np.uint8)
        assert resize_image(image).shape == (600, 800, 4)

    def test_portrait(self):
        image = np.zeros((1200, 600, 3), dtype=np.uint8)
        assert resize_image(image, max_width=800, max_height=600).shape[:2] == (600, 300)

    def test_small_image_untouched(self, red_square_image):
        assert resize_image(red_square_image) is red_square_image
