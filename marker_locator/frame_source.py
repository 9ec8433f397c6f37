"""Frame source abstraction for camera input.

Provides a unified interface for the inputs the runner reads from:
- Device cameras (USB via V4L2)
- Video files and image sequences
"""

from __future__ import annotations

import re
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import cv2
import numpy as np


class FrameSource(ABC):
    """Abstract base class for frame sources."""

    @abstractmethod
    def start(self) -> None:
        """Start the frame source. Called before any read() calls."""
        ...

    @abstractmethod
    def read(self) -> tuple[np.ndarray, int, int] | None:
        """Read next frame.

        Returns:
            (frame_bgr, timestamp_ns, frame_id) tuple or None when no frame
            is available.
        """
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop the frame source and release resources."""
        ...


class DeviceCameraSource(FrameSource):
    """USB camera source using OpenCV's V4L2 interface."""

    def __init__(
        self,
        device: int | str,
        fps: Optional[int] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ):
        self.device = device
        self.fps = fps
        self.width = width
        self.height = height
        self.cap: Any = None
        self.frame_id = 0

    def start(self) -> None:
        """Open the camera device."""
        if isinstance(self.device, int):
            self.cap = cv2.VideoCapture(self.device, cv2.CAP_V4L2)
        else:
            match = re.match(r"^/dev/video(\d+)$", str(self.device))
            if match:
                self.cap = cv2.VideoCapture(int(match.group(1)), cv2.CAP_V4L2)
            else:
                self.cap = cv2.VideoCapture(str(self.device))

        if self.width:
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        if self.height:
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        if self.fps:
            self.cap.set(cv2.CAP_PROP_FPS, self.fps)

        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open camera: {self.device}")

        self.frame_id = 0

    def read(self) -> tuple[np.ndarray, int, int] | None:
        """Read next frame from camera."""
        if self.cap is None:
            return None

        ok, img = self.cap.read()
        if not ok:
            return None

        self.frame_id += 1
        return (img, time.time_ns(), self.frame_id)

    def stop(self) -> None:
        """Release camera resources."""
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class VideoFileSource(DeviceCameraSource):
    """Video file or printf-style image sequence (``frames/f%06d.png``).

    Returns None at end of stream.
    """

    def __init__(self, path: str):
        super().__init__(path)
        self.path = path

    def start(self) -> None:
        self.cap = cv2.VideoCapture(self.path)
        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video: {self.path}")
        self.frame_id = 0


def build_source(source_cfg) -> FrameSource:
    if source_cfg.type == "file":
        if not source_cfg.path:
            raise ValueError("file source requires 'path'")
        return VideoFileSource(source_cfg.path)
    if source_cfg.type == "device":
        return DeviceCameraSource(
            source_cfg.device, source_cfg.fps, source_cfg.width, source_cfg.height
        )
    raise ValueError(f"Unknown source type: {source_cfg.type}")
