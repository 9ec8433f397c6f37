from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from .config import LocatorConfig
from .threshold import ThresholdController
from .transforms import camera_in_world, target_to_vision

WINDOW_NAME = "Markers"

# key -> (config field, step)
TUNING_KEYS = {
    "q": ("cosine_limit", 0.05),
    "a": ("cosine_limit", -0.05),
    "r": ("max_error_quad", 0.005),
    "f": ("max_error_quad", -0.005),
    "e": ("min_area", 50),
    "d": ("min_area", -50),
}

# key -> threshold block size step
BLOCK_KEYS = {"w": 2, "s": -2}


def apply_tuning_key(
    config: LocatorConfig,
    key: Optional[str],
    threshold: Optional[ThresholdController] = None,
) -> bool:
    """
    Adjust the detection parameters for a debug key press.

    W/S step the threshold block size when a controller is given; the
    controller keeps it inside its bounds.
    """
    if not key:
        return False
    if key in BLOCK_KEYS:
        if threshold is None:
            return False
        threshold.nudge(BLOCK_KEYS[key])
        return True
    if key not in TUNING_KEYS:
        return False
    name, step = TUNING_KEYS[key]
    value = getattr(config, name) + step
    if name == "min_area":
        value = max(0, int(value))
    else:
        value = max(0.0, round(value, 6))
    setattr(config, name, value)
    return True


def draw_text(frame: np.ndarray, text: str, point: tuple[int, int]) -> None:
    """Yellow text with a black outline."""
    cv2.putText(frame, text, point, cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 0, 0), 2, cv2.LINE_AA)
    cv2.putText(frame, text, point, cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 255, 255), 1, cv2.LINE_AA)


def draw_markers(frame: np.ndarray, markers) -> None:
    for det in markers:
        pts = np.asarray(det.corners, dtype=np.int32).reshape(-1, 1, 2)
        color = (0, 255, 0) if det.info is not None else (0, 0, 255)
        cv2.polylines(frame, [pts], True, color, 2, cv2.LINE_AA)
        cv2.circle(frame, tuple(int(v) for v in pts[0, 0]), 4, (255, 0, 0), -1)
        draw_text(frame, str(det.marker_id), tuple(int(v) for v in pts[0, 0]))


def draw_origin(frame: np.ndarray, node) -> bool:
    """
    Draw the world origin axes using the node's last solved pose.

    Axis length is the largest matched marker's edge. Returns False when
    there is no pose to draw from.
    """
    result = node.last_result
    if result is None or result.pose is None:
        return False

    position = np.asarray(result.pose.position, dtype=np.float64).reshape(3)
    rotation = np.asarray(result.pose.rotation, dtype=np.float64).reshape(3)
    if not node.config.use_vision_coords:
        position, rotation = target_to_vision(position), target_to_vision(rotation)
    tvec, rvec = camera_in_world(rotation, position)

    length = max((det.info.size for det in result.found), default=0.1)
    cv2.drawFrameAxes(frame, node.camera.K, node.camera.dist, rvec, tvec, float(length), 2)
    return True


def render_overlay(frame: np.ndarray, node) -> np.ndarray:
    """Annotated copy of ``frame`` showing the node's last result and tuning state."""
    draw = frame.copy()
    if draw.ndim == 2:
        draw = cv2.cvtColor(draw, cv2.COLOR_GRAY2BGR)
    result = node.last_result
    cfg = node.config

    if result is not None:
        draw_markers(draw, result.markers)
        draw_origin(draw, node)

    if result is not None and result.stamped is not None:
        p = result.stamped.position
        r = [float(v) for v in np.asarray(result.pose.rotation).reshape(3)]
        draw_text(draw, f"Position: {p[0]:.3f}, {p[1]:.3f}, {p[2]:.3f}", (10, 180))
        draw_text(draw, f"Rotation: {r[0]:.3f}, {r[1]:.3f}, {r[2]:.3f}", (10, 200))
    else:
        draw_text(draw, "Position: unknown", (10, 180))
        draw_text(draw, "Rotation: unknown", (10, 200))

    lines = [
        "Marker Locator Debug",
        f"OpenCV {cv2.__version__}",
        f"Cosine Limit (A-Q): {cfg.cosine_limit:.2f}",
        f"Threshold Block (W-S): {node.threshold.block_size}",
        f"Min Area (E-D): {cfg.min_area}",
        f"MaxError PolyDP (R-F): {cfg.max_error_quad:.3f}",
        f"Visible: {bool(result is not None and result.visible)}",
        f"Calibrated: {node.camera.calibrated}",
    ]
    for i, text in enumerate(lines):
        draw_text(draw, text, (10, 20 + 20 * i))
    return draw


def show(frame: np.ndarray, node) -> Optional[str]:
    """Display the overlay and return the pressed key, if any."""
    cv2.imshow(WINDOW_NAME, render_overlay(frame, node))
    code = cv2.waitKey(1) & 0xFF
    if code == 0xFF:
        return None
    return chr(code)
