"""Shared test fixtures for recognition engine tests."""

import numpy as np
import pytest


def solid_image(color, width=100, height=100, alpha=255):
    """Generate a single-color RGBA image."""
    img = np.zeros((height, width, 4), dtype=np.uint8)
    img[:, :, :3] = color
    img[:, :, 3] = alpha
    return img


@pytest.fixture
def red_square_image():
    """100x100 opaque pure red."""
    return solid_image((255, 0, 0))


@pytest.fixture
def blue_square_image():
    """100x100 opaque pure blue."""
    return solid_image((0, 0, 255))


@pytest.fixture
def transparent_image():
    """100x100 fully transparent image."""
    return solid_image((255, 255, 255), alpha=0)


@pytest.fixture
def quadrant_image():
    """80x80 image: red / green over blue / white quadrants."""
    img = solid_image((255, 255, 255), width=80, height=80)
    img[:40, :40, :3] = [255, 0, 0]
    img[:40, 40:, :3] = [0, 255, 0]
    img[40:, :40, :3] = [0, 0, 255]
    return img


@pytest.fixture
def striped_image():
    """100x100 horizontal stripes covering 50% / 30% / 15% / 5% of rows."""
    img = solid_image((255, 0, 0))
    img[50:80, :, :3] = [0, 255, 0]
    img[80:95, :, :3] = [0, 0, 255]
    img[95:, :, :3] = [255, 255, 255]
    return img


@pytest.fixture
def noise_image():
    """200x200 random RGB noise."""
    rng = np.random.RandomState(42)
    return rng.randint(0, 256, (200, 200, 3)).astype(np.uint8)


def noise_images(count, size=200):
    """Independent random noise images."""
    return [
        np.random.RandomState(seed).randint(0, 256, (size, size, 3)).astype(np.uint8)
        for seed in range(1, count + 1)
    ]
