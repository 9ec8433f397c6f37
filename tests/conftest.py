import numpy as np
import pytest

from marker_locator.camera import DEFAULT_CAMERA_MATRIX
from marker_locator.decode import marker_image

CELL_PX = 20
MARKER_PX = CELL_PX * 7


def render_marker_frame(marker_id, x=250, y=170, rotations=0, shape=(480, 640)):
    """White BGR frame with one axis-aligned marker whose top-left pixel is (x, y)."""
    frame = np.full((shape[0], shape[1], 3), 255, dtype=np.uint8)
    img = np.rot90(marker_image(marker_id, CELL_PX), rotations)
    h, w = img.shape
    frame[y:y + h, x:x + w] = img[:, :, None]
    return frame


@pytest.fixture
def marker_frame():
    return render_marker_frame


@pytest.fixture
def camera_matrix():
    return np.array(DEFAULT_CAMERA_MATRIX, dtype=np.float64)


@pytest.fixture
def blank_frame():
    return np.full((480, 640, 3), 255, dtype=np.uint8)
