from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
import time
from dataclasses import dataclass
from typing import Optional

from . import debug as debug_view
from .config import LocatorConfig, load_config
from .frame_source import FrameSource, build_source
from .logging_utils import add_file_handler, setup_logger
from .marker_types import Frame
from .node import FrameArrived, FrameOutcome, MarkerPoseNode
from .output import CsvOutput, LoggingOutput, OutputSink


@dataclass
class RunSummary:
    frames_processed: int
    frames_visible: int
    avg_fps: float
    errors: int


class MarkerLocatorRunner:
    """Feeds frames from a source into a node until the source ends or stop() is called."""

    def __init__(
        self,
        config: LocatorConfig,
        source: Optional[FrameSource] = None,
        sink: Optional[OutputSink] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.logger = logger or setup_logger(config.node_name)
        if sink is None:
            sink = CsvOutput(config.output_csv) if config.output_csv else LoggingOutput(self.logger)
        self.sink = sink
        self.source = source or build_source(config.source)
        self.node = MarkerPoseNode(config, sink=self.sink)
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def run(self) -> RunSummary:
        self.logger.info("config: %s", self.config.as_dict())
        self.logger.info("known markers: %s", [m.marker_id for m in self.node.registry])

        self.sink.open()
        self.source.start()
        t0 = time.time()
        frames = 0
        visible = 0
        errors = 0

        try:
            while not self._stop_event.is_set():
                if self.config.max_frames and frames >= self.config.max_frames:
                    break

                item = self.source.read()
                if item is None:
                    break
                image, timestamp_ns, frame_id = item
                frame = Frame(idx=frame_id, stamp=timestamp_ns / 1e9, image=image)

                result = self.node.dispatch(FrameArrived(frame.image, frame.stamp))
                frames += 1
                if result.visible:
                    visible += 1
                elif result.outcome is FrameOutcome.INVALID_FRAME:
                    errors += 1

                self.logger.debug(
                    "frame=%d outcome=%s markers=%d block=%d",
                    frame.idx,
                    result.outcome.value,
                    len(result.markers),
                    self.node.threshold.block_size,
                )

                if self.config.debug:
                    key = debug_view.show(frame.image, self.node)
                    debug_view.apply_tuning_key(self.config, key, self.node.threshold)
        finally:
            self.source.stop()
            self.sink.close()

        avg = frames / max(1e-6, (time.time() - t0))
        self.logger.info(
            "summary frames=%d visible=%d avg_fps=%.2f errors=%d", frames, visible, avg, errors
        )
        return RunSummary(frames, visible, avg, errors)


def _parse_marker_arg(value: str) -> tuple[int, str]:
    marker_id, _, data = value.partition("=")
    if not data:
        raise argparse.ArgumentTypeError("expected ID=size_px_py_pz_rx_ry_rz")
    return int(marker_id), data


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Locate the camera from known square markers")
    ap.add_argument("--config", help="Path to JSON/YAML config")

    ap.add_argument("--node-name")
    ap.add_argument("--device")
    ap.add_argument("--video", help="Read frames from a video file or image sequence")
    ap.add_argument("--debug", action="store_true")
    ap.add_argument("--vision-coords", action="store_true", help="Keep X right, Y down, Z forward axes")
    ap.add_argument("--cosine-limit", type=float)
    ap.add_argument("--max-error-quad", type=float)
    ap.add_argument("--block-size-min", type=int)
    ap.add_argument("--block-size-max", type=int)
    ap.add_argument("--min-area", type=int)
    ap.add_argument("--calib", help="OpenCV FileStorage calibration file")
    ap.add_argument("--calibration", help="fx_0_cx_0_fy_cy_0_0_1")
    ap.add_argument("--distortion", help="k1_k2_p1_p2_k3")
    ap.add_argument("--marker", action="append", type=_parse_marker_arg, default=[])
    ap.add_argument("--csv", help="Write poses to this CSV file")
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--log-file")
    ap.add_argument("-v", "--verbose", action="store_true")

    return ap


def _apply_args(cfg: LocatorConfig, args: argparse.Namespace) -> LocatorConfig:
    cfg.apply_overrides(
        node_name=args.node_name,
        debug=True if args.debug else None,
        use_vision_coords=True if args.vision_coords else None,
        cosine_limit=args.cosine_limit,
        max_error_quad=args.max_error_quad,
        threshold_block_size_min=args.block_size_min,
        threshold_block_size_max=args.block_size_max,
        min_area=args.min_area,
        calibration_path=args.calib,
        calibration=args.calibration,
        distortion=args.distortion,
        output_csv=args.csv,
        max_frames=args.max_frames,
    )
    if args.marker:
        cfg.markers = {**cfg.markers, **dict(args.marker)}

    if args.video:
        cfg.source.type = "file"
        cfg.source.path = args.video
    elif args.device is not None:
        device = args.device
        if isinstance(device, str) and device.isdigit():
            device = int(device)
        cfg.source.type = "device"
        cfg.source.device = device
    return cfg.validate()


def main(argv: Optional[list[str]] = None) -> int:
    ap = _build_parser()
    args = ap.parse_args(argv)

    cfg = load_config(args.config) if args.config else LocatorConfig()
    cfg = _apply_args(cfg, args)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    logger = setup_logger(cfg.node_name, level)
    if args.log_file:
        add_file_handler(logger, cfg.node_name, args.log_file)

    runner = MarkerLocatorRunner(cfg, logger=logger)

    def _handle_signal(_sig, _frame):
        runner.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    summary = runner.run()
    print(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
