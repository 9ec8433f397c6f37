from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence

import numpy as np

from .transforms import euler_to_matrix

logger = logging.getLogger(__name__)


def marker_corners(size: float) -> np.ndarray:
    """
    Corners of a square marker of edge ``size`` in its own plane (z = 0).

    Order matches the detector: top-left, top-right, bottom-right, bottom-left
    when the marker is seen upright, with X right and Y down.
    """
    h = size / 2.0
    return np.array(
        [[-h, -h, 0.0], [h, -h, 0.0], [h, h, 0.0], [-h, h, 0.0]],
        dtype=np.float64,
    )


@dataclass
class MarkerInfo:
    marker_id: int
    size: float
    position: np.ndarray
    rotation: np.ndarray  # Euler angles, radians
    world: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.marker_id = int(self.marker_id)
        self.size = float(self.size)
        self.position = np.asarray(self.position, dtype=np.float64).reshape(3)
        self.rotation = np.asarray(self.rotation, dtype=np.float64).reshape(3)
        R = euler_to_matrix(self.rotation)
        self.world = (marker_corners(self.size) @ R.T + self.position).astype(np.float64)


class MarkerRegistry:
    """Known markers keyed by id. Registering an existing id replaces it."""

    def __init__(self) -> None:
        self._markers: dict[int, MarkerInfo] = {}

    def register(
        self,
        marker_id: int,
        size: float,
        position: Sequence[float],
        rotation: Sequence[float],
    ) -> MarkerInfo:
        marker_id = int(marker_id)
        if marker_id in self._markers:
            del self._markers[marker_id]
            logger.info("Marker %d already exists, was replaced.", marker_id)

        info = MarkerInfo(marker_id, size, position, rotation)
        self._markers[marker_id] = info
        logger.info("Marker %d added.", marker_id)
        return info

    def remove(self, marker_id: int) -> bool:
        info = self._markers.pop(int(marker_id), None)
        if info is None:
            return False
        logger.info("Marker %d removed.", info.marker_id)
        return True

    def lookup(self, marker_id: int) -> Optional[MarkerInfo]:
        return self._markers.get(int(marker_id))

    def __contains__(self, marker_id: object) -> bool:
        return marker_id in self._markers

    def __len__(self) -> int:
        return len(self._markers)

    def __iter__(self) -> Iterator[MarkerInfo]:
        return iter(list(self._markers.values()))
