"""Rigid transform, rotation and axis-convention utilities for marker poses."""

import math

import numpy as np
import cv2
from typing import Sequence, Tuple


def rvec_tvec_to_matrix(rvec: np.ndarray, tvec: np.ndarray) -> np.ndarray:
    """
    Build the homogeneous transform for a PnP solution.

    Args:
        rvec: Axis-angle rotation (3,) or (3,1)
        tvec: Translation (3,) or (3,1)

    Returns:
        4x4 float64 matrix mapping world points into the camera frame
    """
    R, _ = cv2.Rodrigues(np.asarray(rvec, dtype=np.float64).reshape(3))

    T = np.eye(4)
    T[:3, :3] = R
    T[:3, 3] = np.asarray(tvec, dtype=np.float64).reshape(3)
    return T


def invert_transform(T: np.ndarray) -> np.ndarray:
    """Rigid inverse of a 4x4 transform: [R^T, -R^T t; 0, 1]."""
    R_T = T[:3, :3].T

    T_inv = np.eye(4)
    T_inv[:3, :3] = R_T
    T_inv[:3, 3] = -R_T @ T[:3, 3]
    return T_inv


def camera_in_world(rvec: np.ndarray, tvec: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Turn a world-to-camera PnP solution into the camera pose in world axes.

    The inverse transform carries the camera orientation (R^T) and the
    camera center (-R^T t). The mapping is its own inverse, so feeding a
    camera pose back in yields the world-to-camera solution again.

    Args:
        rvec: World-to-camera rotation vector (3,) or (3,1)
        tvec: World-to-camera translation (3,) or (3,1)

    Returns:
        (position, rotation) both (3,) float64, rotation as axis-angle
    """
    T_cam = invert_transform(rvec_tvec_to_matrix(rvec, tvec))
    camera_rotation, _ = cv2.Rodrigues(T_cam[:3, :3])

    return T_cam[:3, 3].copy(), camera_rotation.reshape(3)


def euler_to_matrix(euler: Sequence[float]) -> np.ndarray:
    """
    Rotation matrix for Euler angles (rx, ry, rz) in radians.

    Rotations are applied about X, then Y, then Z (R = Rz * Ry * Rx).
    """
    rx, ry, rz = (float(a) for a in euler)
    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    cz, sz = math.cos(rz), math.sin(rz)

    Rx = np.array([[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]])
    Ry = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    Rz = np.array([[cz, -sz, 0.0], [sz, cz, 0.0], [0.0, 0.0, 1.0]])

    return Rz @ Ry @ Rx


def rvec_to_quaternion(rvec: Sequence[float]) -> Tuple[float, float, float, float]:
    """
    Convert an axis-angle rotation vector to a unit quaternion (x, y, z, w).

    A zero vector maps to the identity quaternion (0, 0, 0, 1).
    """
    x, y, z = (float(v) for v in np.asarray(rvec, dtype=np.float64).reshape(3))
    angle = math.sqrt(x * x + y * y + z * z)

    if angle > 0.0:
        s = math.sin(angle / 2.0) / angle
        return (x * s, y * s, z * s, math.cos(angle / 2.0))

    return (0.0, 0.0, 0.0, 1.0)


def vision_to_target(vec: Sequence[float]) -> np.ndarray:
    """
    Map a vector from vision axes (X right, Y down, Z forward) to target axes
    (X forward, Y left, Z up): (a, b, c) -> (c, -a, -b).
    """
    a, b, c = np.asarray(vec, dtype=np.float64).reshape(3)
    return np.array([c, -a, -b], dtype=np.float64)


def target_to_vision(vec: Sequence[float]) -> np.ndarray:
    """Inverse of vision_to_target: (a, b, c) -> (-b, -c, a)."""
    a, b, c = np.asarray(vec, dtype=np.float64).reshape(3)
    return np.array([-b, -c, a], dtype=np.float64)
