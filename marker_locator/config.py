from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Optional

DELIMITER = "_"


class ConfigError(ValueError):
    pass


@dataclass
class SourceConfig:
    """Configuration for the frame source (camera device or video file)."""

    type: str = "device"  # "device", "file"
    device: int | str = 0
    path: Optional[str] = None  # video file or image sequence pattern
    width: Optional[int] = None
    height: Optional[int] = None
    fps: Optional[int] = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class LocatorConfig:
    node_name: str = "marker_locator"
    debug: bool = False
    use_vision_coords: bool = False
    cosine_limit: float = 0.7
    max_error_quad: float = 0.035
    threshold_block_size_min: int = 3
    threshold_block_size_max: int = 21
    threshold_offset: float = 7.0
    min_area: int = 100
    corner_refine: bool = True
    calibration: str = ""
    distortion: str = ""
    calibration_path: Optional[str] = None
    markers: dict[int, str] = field(default_factory=dict)
    frame_id: str = "world"
    source: SourceConfig = field(default_factory=SourceConfig)
    output_csv: Optional[str] = None
    max_frames: Optional[int] = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "LocatorConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self

    def validate(self) -> "LocatorConfig":
        lo, hi = self.threshold_block_size_min, self.threshold_block_size_max
        for name, value in (("threshold_block_size_min", lo), ("threshold_block_size_max", hi)):
            if value < 3 or value % 2 == 0:
                raise ConfigError(f"{name} must be an odd integer >= 3, got {value}")
        if lo > hi:
            raise ConfigError(
                f"threshold_block_size_min ({lo}) exceeds threshold_block_size_max ({hi})"
            )
        return self


def parse_delimited(data: Optional[str], count: int, delimiter: str = DELIMITER) -> Optional[list[float]]:
    """
    Parse ``count`` numbers from a delimiter-separated string such as
    ``"570.3_0_319.5"``. Returns None for an empty string.
    """
    if data is None or not str(data).strip():
        return None
    tokens = [t for t in str(data).strip().split(delimiter) if t.strip()]
    if len(tokens) != count:
        raise ConfigError(f"expected {count} values separated by '{delimiter}', got {len(tokens)}: {data!r}")
    try:
        return [float(t) for t in tokens]
    except ValueError as exc:
        raise ConfigError(f"non-numeric value in {data!r}") from exc


def parse_calibration(data: Optional[str]) -> Optional[list[list[float]]]:
    values = parse_delimited(data, 9)
    if values is None:
        return None
    return [values[0:3], values[3:6], values[6:9]]


def parse_distortion(data: Optional[str]) -> Optional[list[float]]:
    return parse_delimited(data, 5)


def parse_marker(data: Optional[str]) -> Optional[tuple[float, list[float], list[float]]]:
    """``size_px_py_pz_rx_ry_rz`` -> (size, position, rotation)."""
    values = parse_delimited(data, 7)
    if values is None:
        return None
    return values[0], values[1:4], values[4:7]


def _normalize_markers(value: Any) -> dict[int, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError("markers must be a mapping of marker_id -> 'size_px_py_pz_rx_ry_rz'")
    # "5:" in YAML loads as None and means no static entry
    return {int(k): "" if v is None else str(v) for k, v in value.items()}


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        import yaml  # type: ignore
    except Exception as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "YAML config requested but PyYAML is not installed. "
            "Install with: pip install pyyaml"
        ) from exc
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config root must be a mapping")
    return data


def load_config(path: str | Path) -> LocatorConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON/YAML object")

    cfg = LocatorConfig()
    cfg.node_name = str(raw.get("node_name", cfg.node_name))
    cfg.debug = bool(raw.get("debug", cfg.debug))
    cfg.use_vision_coords = bool(raw.get("use_vision_coords", cfg.use_vision_coords))
    cfg.cosine_limit = float(raw.get("cosine_limit", cfg.cosine_limit))
    cfg.max_error_quad = float(raw.get("max_error_quad", cfg.max_error_quad))
    cfg.threshold_block_size_min = int(raw.get("threshold_block_size_min", cfg.threshold_block_size_min))
    cfg.threshold_block_size_max = int(raw.get("threshold_block_size_max", cfg.threshold_block_size_max))
    cfg.threshold_offset = float(raw.get("threshold_offset", cfg.threshold_offset))
    cfg.min_area = int(raw.get("min_area", cfg.min_area))
    cfg.corner_refine = bool(raw.get("corner_refine", cfg.corner_refine))
    cfg.calibration = str(raw.get("calibration") or "")
    cfg.distortion = str(raw.get("distortion") or "")
    cfg.calibration_path = raw.get("calibration_path", cfg.calibration_path)
    cfg.markers = _normalize_markers(raw.get("markers"))
    cfg.frame_id = str(raw.get("frame_id", cfg.frame_id))
    cfg.output_csv = raw.get("output_csv", cfg.output_csv)
    cfg.max_frames = raw.get("max_frames", cfg.max_frames)
    if cfg.max_frames is not None:
        cfg.max_frames = int(cfg.max_frames)

    src_raw = raw.get("source")
    if src_raw is not None and isinstance(src_raw, dict):
        src_cfg = SourceConfig()
        src_cfg.type = str(src_raw.get("type", src_cfg.type))
        src_cfg.device = src_raw.get("device", src_cfg.device)
        src_cfg.path = src_raw.get("path", src_cfg.path)
        for key in ("width", "height", "fps"):
            value = src_raw.get(key)
            setattr(src_cfg, key, int(value) if value is not None else None)
        cfg.source = src_cfg

    return cfg.validate()
