import numpy as np
import pytest


def solid(rgb, count, alpha=255):
    """(count, 4) RGBA pixels of a single color."""
    return np.tile(np.array([*rgb, alpha], dtype=np.uint8), (count, 1))


def image_from(*blocks, width=20):
    """Stack pixel blocks into an (h, width, 4) image."""
    pixels = np.concatenate(blocks)
    return pixels.reshape(-1, width, 4)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
