from __future__ import annotations

import logging
from typing import Optional

import cv2
import numpy as np

from .camera import CameraModel
from .marker_types import CameraPose, DetectedMarker
from .registry import MarkerRegistry
from .transforms import camera_in_world, vision_to_target

logger = logging.getLogger(__name__)


def match_markers(markers: list[DetectedMarker], registry: MarkerRegistry) -> list[DetectedMarker]:
    """Attach registry info to detected markers; return the ones that matched."""
    found = []
    for det in markers:
        info = registry.lookup(det.marker_id)
        if info is None:
            continue
        det.attach_info(info)
        found.append(det)
    return found


def build_correspondences(found: list[DetectedMarker]) -> tuple[np.ndarray, np.ndarray]:
    """
    Parallel (N*4, 2) image points and (N*4, 3) world points, corner for
    corner, for every matched marker.
    """
    if not found:
        return np.zeros((0, 2), dtype=np.float64), np.zeros((0, 3), dtype=np.float64)
    projected = np.concatenate(
        [np.asarray(d.corners, dtype=np.float64).reshape(4, 2) for d in found]
    )
    world = np.concatenate([d.info.world.reshape(4, 3) for d in found])
    return projected, world


class PoseSolver:
    def __init__(self, use_vision_coords: bool = False):
        self.use_vision_coords = use_vision_coords

    def solve_pnp(
        self,
        projected: np.ndarray,
        world: np.ndarray,
        camera: CameraModel,
    ) -> Optional[tuple[np.ndarray, np.ndarray]]:
        if len(world) < 4 or len(world) != len(projected) or len(world) % 4 != 0:
            return None
        try:
            ok, rvec, tvec = cv2.solvePnP(
                world.astype(np.float64),
                projected.astype(np.float64),
                camera.K,
                camera.dist,
                flags=cv2.SOLVEPNP_ITERATIVE,
            )
        except cv2.error as exc:
            logger.debug("solvePnP failed: %s", exc)
            return None
        if not ok or not (np.all(np.isfinite(rvec)) and np.all(np.isfinite(tvec))):
            logger.debug("solvePnP did not converge")
            return None
        return rvec.reshape(3), tvec.reshape(3)

    def to_output(self, pose: CameraPose) -> CameraPose:
        if self.use_vision_coords:
            return pose
        return CameraPose(vision_to_target(pose.position), vision_to_target(pose.rotation))

    def solve(
        self,
        projected: np.ndarray,
        world: np.ndarray,
        camera: CameraModel,
    ) -> Optional[CameraPose]:
        solution = self.solve_pnp(projected, world, camera)
        if solution is None:
            return None
        position, rotation = camera_in_world(*solution)
        if not (np.all(np.isfinite(position)) and np.all(np.isfinite(rotation))):
            return None
        return self.to_output(CameraPose(position, rotation))

    def estimate(
        self,
        markers: list[DetectedMarker],
        registry: MarkerRegistry,
        camera: CameraModel,
    ) -> Optional[CameraPose]:
        projected, world = build_correspondences(match_markers(markers, registry))
        return self.solve(projected, world, camera)
