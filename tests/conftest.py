import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pixels import PixelBuffer  # noqa: E402


def solid(width, height, rgb, alpha=255) -> PixelBuffer:
    return PixelBuffer.blank(width, height, tuple(rgb) + (alpha,))


@pytest.fixture
def gray_image() -> PixelBuffer:
    """Solid mid-gray 100x100 buffer."""
    return solid(100, 100, (128, 128, 128))


@pytest.fixture
def gradient_image() -> PixelBuffer:
    """Horizontal black-to-white gradient, 32x24."""
    arr = np.zeros((24, 32, 3), dtype=np.uint8)
    for x in range(32):
        arr[:, x, :] = x * 255 // 31
    return PixelBuffer.from_array(arr)


@pytest.fixture
def checkerboard_image() -> PixelBuffer:
    """24x24 checkerboard of 4x4 black and white squares."""
    yy, xx = np.mgrid[0:24, 0:24]
    on = ((xx // 4) + (yy // 4)) % 2 == 0
    return PixelBuffer.from_array(np.where(on, 255, 0).astype(np.uint8))
