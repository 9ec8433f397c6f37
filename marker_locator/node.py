from __future__ import annotations

import enum
import logging
import queue
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Union

import cv2
import numpy as np

from .camera import CameraModel, load_calib
from .config import LocatorConfig, parse_calibration, parse_distortion, parse_marker
from .detect import QuadDetector
from .localize import PoseSolver, build_correspondences, match_markers
from .marker_types import CameraPose, DetectedMarker, PoseStamped
from .output import NullOutput, OutputSink
from .registry import MarkerRegistry
from .threshold import ThresholdController
from .transforms import rvec_to_quaternion, target_to_vision

logger = logging.getLogger(__name__)


class FrameOutcome(enum.Enum):
    NO_CANDIDATES = "no_candidates"
    DECODE_FAILED = "decode_failed"
    NO_MATCH = "no_match"
    SOLVER_FAILED = "solver_failed"
    INVALID_FRAME = "invalid_frame"
    POSE = "pose"


@dataclass
class FrameResult:
    outcome: FrameOutcome
    markers: list[DetectedMarker] = field(default_factory=list)
    found: list[DetectedMarker] = field(default_factory=list)
    pose: Optional[CameraPose] = None
    stamped: Optional[PoseStamped] = None

    @property
    def visible(self) -> bool:
        return self.outcome is FrameOutcome.POSE


@dataclass
class RegisterMarker:
    marker_id: int
    size: float
    position: Sequence[float]
    rotation: Sequence[float]


@dataclass
class RemoveMarker:
    marker_id: int


@dataclass
class FrameArrived:
    image: Any
    stamp: Optional[float] = None


@dataclass
class CalibrationArrived:
    camera_matrix: Any
    dist_coeffs: Any


@dataclass
class RegistryCommandArrived:
    command: Union[RegisterMarker, RemoveMarker]


Event = Union[FrameArrived, CalibrationArrived, RegistryCommandArrived]


class MarkerPoseNode:
    """
    Per-frame driver: detect, adapt the threshold, match against the
    registry, solve the camera pose and publish.

    The registry, camera model and threshold state belong to the node and
    are only touched from ``dispatch``. Other threads hand events over with
    ``submit`` and the owner drains them in arrival order.
    """

    def __init__(
        self,
        config: LocatorConfig,
        sink: Optional[OutputSink] = None,
        detector: Optional[QuadDetector] = None,
        solver: Optional[PoseSolver] = None,
    ):
        self.config = config.validate()
        self.sink = sink or NullOutput()
        self.detector = detector or QuadDetector(
            threshold_offset=config.threshold_offset,
            corner_refine=config.corner_refine,
        )
        self.solver = solver or PoseSolver(use_vision_coords=config.use_vision_coords)

        self.registry = MarkerRegistry()
        self.camera = CameraModel()
        self.threshold = ThresholdController(
            config.threshold_block_size_min, config.threshold_block_size_max
        )
        self.last_result: Optional[FrameResult] = None
        self._seq = 0
        self._events: queue.Queue = queue.Queue()

        self._apply_static_calibration()
        self._apply_static_markers()

    def _apply_static_calibration(self) -> None:
        K, dist = None, None
        if self.config.calibration_path:
            K, dist, _ = load_calib(self.config.calibration_path)

        inline_K = parse_calibration(self.config.calibration)
        if inline_K is not None:
            K = inline_K
        inline_dist = parse_distortion(self.config.distortion)
        if inline_dist is not None:
            dist = inline_dist

        if K is None and dist is None:
            return
        self.camera.calibrate(
            K if K is not None else self.camera.K,
            dist if dist is not None else self.camera.dist,
        )

    def _apply_static_markers(self) -> None:
        for marker_id, data in sorted(self.config.markers.items()):
            parsed = parse_marker(data)
            if parsed is None:
                continue
            size, position, rotation = parsed
            self.register_marker(RegisterMarker(marker_id, size, position, rotation))

    # -- events ---------------------------------------------------------

    def submit(self, event: Event) -> None:
        self._events.put(event)

    def drain(self) -> list[Any]:
        results = []
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return results
            results.append(self.dispatch(event))

    def dispatch(self, event: Event) -> Any:
        if isinstance(event, FrameArrived):
            return self.process_frame(event.image, event.stamp)
        if isinstance(event, CalibrationArrived):
            return self.camera.calibrate(event.camera_matrix, event.dist_coeffs)
        if isinstance(event, RegistryCommandArrived):
            command = event.command
            if isinstance(command, RegisterMarker):
                return self.register_marker(command)
            if isinstance(command, RemoveMarker):
                return self.registry.remove(command.marker_id)
            raise TypeError(f"unknown registry command: {command!r}")
        raise TypeError(f"unknown event: {event!r}")

    def register_marker(self, command: RegisterMarker):
        """
        Store a marker given in the output axes.

        Position and Euler angles are remapped component by component. For
        orientations that combine rotations about more than one axis the
        remapped angles only approximate the same physical rotation.
        """
        position, rotation = command.position, command.rotation
        if not self.config.use_vision_coords:
            position = target_to_vision(position)
            rotation = target_to_vision(rotation)
        return self.registry.register(command.marker_id, command.size, position, rotation)

    # -- frames ---------------------------------------------------------

    def _detect(self, image):
        cfg = self.config
        return self.detector.detect_report(
            image,
            cfg.cosine_limit,
            self.threshold.block_size,
            cfg.min_area,
            cfg.max_error_quad,
        )

    def process_frame(self, image, stamp: Optional[float] = None) -> FrameResult:
        try:
            report = self._detect(image)
        except (cv2.error, ValueError, AttributeError) as exc:
            logger.warning("Error getting image data: %s", exc)
            result = FrameResult(FrameOutcome.INVALID_FRAME)
            self.last_result = result
            return result

        self.threshold.update(len(report.markers))

        found = match_markers(report.markers, self.registry)
        pose = None
        if not report.markers:
            outcome = FrameOutcome.DECODE_FAILED if report.rejected else FrameOutcome.NO_CANDIDATES
        elif not found:
            outcome = FrameOutcome.NO_MATCH
        else:
            projected, world = build_correspondences(found)
            pose = self.solver.solve(projected, world, self.camera)
            outcome = FrameOutcome.POSE if pose is not None else FrameOutcome.SOLVER_FAILED

        result = FrameResult(outcome, report.markers, found, pose)
        if pose is not None:
            result.stamped = self._publish_pose(pose, stamp)
        self.sink.publish_visible(result.visible)

        self.last_result = result
        return result

    def _publish_pose(self, pose: CameraPose, stamp: Optional[float]) -> PoseStamped:
        self.sink.publish_position_rotation(pose.position, pose.rotation)

        self._seq += 1
        stamped = PoseStamped(
            seq=self._seq,
            stamp=time.time() if stamp is None else float(stamp),
            frame_id=self.config.frame_id,
            position=tuple(float(v) for v in np.asarray(pose.position).reshape(3)),
            orientation=rvec_to_quaternion(pose.rotation),
        )
        self.sink.publish_pose(stamped)
        return stamped
