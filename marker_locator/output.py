from __future__ import annotations

import csv
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import numpy as np

from .marker_types import PoseStamped


class OutputSink(ABC):
    """Receives the three per-frame results: visibility, position/rotation, pose."""

    def open(self) -> None:
        return None

    @abstractmethod
    def publish_visible(self, visible: bool) -> None: ...

    @abstractmethod
    def publish_position_rotation(self, position: np.ndarray, rotation: np.ndarray) -> None: ...

    @abstractmethod
    def publish_pose(self, pose: PoseStamped) -> None: ...

    def close(self) -> None:
        return None


class NullOutput(OutputSink):
    def publish_visible(self, visible: bool) -> None:
        return None

    def publish_position_rotation(self, position, rotation) -> None:
        return None

    def publish_pose(self, pose: PoseStamped) -> None:
        return None


class RecordingOutput(OutputSink):
    def __init__(self) -> None:
        self.visible: list[bool] = []
        self.position_rotation: list[tuple[np.ndarray, np.ndarray]] = []
        self.poses: list[PoseStamped] = []

    def publish_visible(self, visible: bool) -> None:
        self.visible.append(bool(visible))

    def publish_position_rotation(self, position, rotation) -> None:
        self.position_rotation.append((np.array(position), np.array(rotation)))

    def publish_pose(self, pose: PoseStamped) -> None:
        self.poses.append(pose)


class LoggingOutput(OutputSink):
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.log = logger or logging.getLogger(__name__)

    def publish_visible(self, visible: bool) -> None:
        if not visible:
            self.log.debug("no known marker visible")

    def publish_position_rotation(self, position, rotation) -> None:
        return None

    def publish_pose(self, pose: PoseStamped) -> None:
        self.log.info(
            "pose seq=%d position=(%.4f, %.4f, %.4f) orientation=(%.4f, %.4f, %.4f, %.4f)",
            pose.seq,
            *pose.position,
            *pose.orientation,
        )


class CsvOutput(OutputSink):
    """One row per frame; pose columns are NaN when nothing was visible."""

    HEADER = [
        "stamp", "seq", "visible",
        "px", "py", "pz",
        "rx", "ry", "rz",
        "qx", "qy", "qz", "qw",
    ]

    def __init__(self, csv_path: str | Path):
        self.csv_path = Path(csv_path)
        self._fh = None
        self._w = None
        self._rotation: Optional[list[float]] = None

    def open(self) -> None:
        self.csv_path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = open(self.csv_path, "w", newline="")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.HEADER)

    @staticmethod
    def _vec(vec, n: int) -> list[float]:
        if vec is None:
            return [float("nan")] * n
        a = np.array(vec, dtype=np.float64).reshape(-1).tolist()
        if len(a) < n:
            a += [float("nan")] * (n - len(a))
        return a[:n]

    def publish_visible(self, visible: bool) -> None:
        # the pose row carries visible frames; blank rows are written here
        if not visible and self._w is not None:
            self._w.writerow(["", "", 0, *self._vec(None, 10)])

    def publish_position_rotation(self, position, rotation) -> None:
        self._rotation = self._vec(rotation, 3)

    def publish_pose(self, pose: PoseStamped) -> None:
        if self._w is None:
            return
        self._w.writerow([
            f"{pose.stamp:.6f}", pose.seq, 1,
            *self._vec(pose.position, 3),
            *(self._rotation or self._vec(None, 3)),
            *self._vec(pose.orientation, 4),
        ])
        self._rotation = None

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
            self._w = None
