from pathlib import Path

import cv2
import numpy as np
import pytest

from marker_locator.camera import CameraModel, load_calib
from marker_locator.config import LocatorConfig
from marker_locator.node import MarkerPoseNode


def _write_calib(path: Path, K, dist, size=(640, 480)):
    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_WRITE)
    fs.write("camera_matrix", np.asarray(K, dtype=np.float64))
    fs.write("dist_coeffs", np.asarray(dist, dtype=np.float64).reshape(1, -1))
    if size is not None:
        fs.write("image_width", size[0])
        fs.write("image_height", size[1])
    fs.release()


def test_load_calib_roundtrip(tmp_path: Path):
    path = tmp_path / "calib.yml"
    K = [[610.0, 0.0, 321.0], [0.0, 612.0, 238.0], [0.0, 0.0, 1.0]]
    _write_calib(path, K, [0.1, -0.05, 0.0, 0.0, 0.01])

    K_read, dist, size = load_calib(str(path))

    assert np.allclose(K_read, K)
    assert np.allclose(dist.reshape(-1), [0.1, -0.05, 0.0, 0.0, 0.01])
    assert size == (640, 480)


def test_load_calib_without_image_size(tmp_path: Path):
    path = tmp_path / "calib.yml"
    _write_calib(path, np.eye(3), np.zeros(5), size=None)
    _, _, size = load_calib(str(path))
    assert size is None


def test_camera_model_pads_short_distortion():
    cam = CameraModel()
    cam.calibrate(np.eye(3), [0.2, 0.1])
    assert cam.dist.shape == (1, 5)
    assert np.allclose(cam.dist, [[0.2, 0.1, 0.0, 0.0, 0.0]])


def test_camera_model_rejects_malformed_matrix_without_latching():
    cam = CameraModel()
    with pytest.raises(ValueError):
        cam.calibrate(np.eye(2), np.zeros(5))
    assert not cam.calibrated
    assert cam.K[0, 0] == pytest.approx(570.3422241210938)


def test_node_uses_calibration_file_with_inline_override(tmp_path: Path):
    path = tmp_path / "calib.yml"
    _write_calib(path, [[610.0, 0.0, 321.0], [0.0, 612.0, 238.0], [0.0, 0.0, 1.0]], [0.1, 0, 0, 0, 0])

    node = MarkerPoseNode(LocatorConfig(calibration_path=str(path), distortion="0_0_0_0_0.5"))

    assert node.camera.calibrated
    assert node.camera.K[0, 0] == 610.0
    assert np.allclose(node.camera.dist, [[0, 0, 0, 0, 0.5]])
