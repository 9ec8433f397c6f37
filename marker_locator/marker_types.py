from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Frame:
    idx: int
    stamp: float
    image: Any  # numpy array, BGR or gray


@dataclass
class DetectedMarker:
    marker_id: int
    corners: Any  # (4,2) float32, top-left, top-right, bottom-right, bottom-left
    info: Optional[Any] = None  # MarkerInfo once matched against the registry

    def attach_info(self, info) -> None:
        self.info = info


@dataclass
class CameraPose:
    """Camera position and axis-angle rotation expressed in world axes."""

    position: Any  # (3,) float64
    rotation: Any  # (3,) float64, axis-angle


@dataclass
class PoseStamped:
    seq: int
    stamp: float
    frame_id: str
    position: tuple[float, float, float]
    orientation: tuple[float, float, float, float] = field(
        default=(0.0, 0.0, 0.0, 1.0)
    )  # x, y, z, w
