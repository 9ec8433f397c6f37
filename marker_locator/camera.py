from __future__ import annotations

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_CAMERA_MATRIX = (
    (570.3422241210938, 0.0, 319.5),
    (0.0, 570.3422241210938, 239.5),
    (0.0, 0.0, 1.0),
)
DEFAULT_DIST_COEFFS = (0.0, 0.0, 0.0, 0.0, 0.0)


def load_calib(path: str) -> Tuple[np.ndarray, np.ndarray, Optional[tuple[int, int]]]:
    fs = cv2.FileStorage(path, cv2.FILE_STORAGE_READ)
    if not fs.isOpened():
        raise FileNotFoundError(f"Calibration not found: {path}")
    K = fs.getNode("camera_matrix").mat()
    dist = fs.getNode("dist_coeffs").mat()
    size = None
    if not fs.getNode("image_width").empty():
        size = (int(fs.getNode("image_width").real()), int(fs.getNode("image_height").real()))
    fs.release()
    if K is None or dist is None:
        raise ValueError(f"Calibration file {path} lacks camera_matrix/dist_coeffs")
    return K, dist, size


class CameraModel:
    """
    Intrinsics and distortion used by the pose solver.

    Starts with the built-in defaults; the first calibration is latched and
    later ones are ignored.
    """

    def __init__(self) -> None:
        self.K = np.array(DEFAULT_CAMERA_MATRIX, dtype=np.float64)
        self.dist = np.array(DEFAULT_DIST_COEFFS, dtype=np.float64).reshape(1, 5)
        self.calibrated = False

    def calibrate(self, camera_matrix, dist_coeffs) -> bool:
        if self.calibrated:
            logger.debug("Calibration already latched, ignoring update")
            return False

        K = np.asarray(camera_matrix, dtype=np.float64).reshape(3, 3)
        dist = np.asarray(dist_coeffs, dtype=np.float64).reshape(-1)
        if dist.size < 5:
            dist = np.concatenate([dist, np.zeros(5 - dist.size)])
        # swap both at once so a partial calibration is never visible
        self.K, self.dist = K.copy(), dist[:5].reshape(1, 5).copy()
        self.calibrated = True
        logger.debug("Camera calibration latched: K=%s dist=%s", self.K.tolist(), self.dist.tolist())
        return True
