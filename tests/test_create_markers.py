import importlib.util
from pathlib import Path

import cv2

from marker_locator.detect import QuadDetector

SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "create_markers.py"


def _load_script():
    spec = importlib.util.spec_from_file_location("create_markers", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_generated_marker_is_detectable():
    script = _load_script()
    img = script.create_marker(77, size_px=210, margin_cells=2)

    assert img.shape == (210 + 4 * 30, 210 + 4 * 30)
    markers = QuadDetector().detect(img, 0.7, 13, 100, 0.035)
    assert [m.marker_id for m in markers] == [77]


def test_main_writes_pngs(tmp_path):
    script = _load_script()
    code = script.main(["--output-dir", str(tmp_path), "--marker-ids", "1", "2", "--size", "140"])

    assert code == 0
    for marker_id in (1, 2):
        img = cv2.imread(str(tmp_path / f"marker_{marker_id}.png"), cv2.IMREAD_GRAYSCALE)
        assert img is not None


def test_main_rejects_out_of_range_ids(tmp_path):
    script = _load_script()
    assert script.main(["--output-dir", str(tmp_path), "--marker-ids", "4096"]) == 1
