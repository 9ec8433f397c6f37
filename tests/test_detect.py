import cv2
import numpy as np
import pytest

from marker_locator.detect import (
    QuadDetector,
    angle_cosine,
    max_corner_cosine,
    order_clockwise,
)

MARKER_PX = 140
PARAMS = dict(cosine_limit=0.7, block_size=13, min_area=100, max_error=0.035)


def _expected_corners(x, y, size=MARKER_PX):
    # pixel-edge coordinates of the marker outline
    return np.array(
        [[x - 0.5, y - 0.5], [x + size - 0.5, y - 0.5],
         [x + size - 0.5, y + size - 0.5], [x - 0.5, y + size - 0.5]]
    )


def test_angle_cosine_right_angle():
    p0 = np.array([0.0, 0.0])
    assert abs(angle_cosine(np.array([1.0, 0.0]), np.array([0.0, 1.0]), p0)) < 1e-9
    assert max_corner_cosine(np.array([[0, 0], [10, 0], [10, 10], [0, 10]])) < 1e-9


def test_max_corner_cosine_skewed_quad():
    skewed = np.array([[0, 0], [10, 0], [20, 10], [10, 10]], dtype=np.float64)
    assert max_corner_cosine(skewed) == pytest.approx(np.cos(np.pi / 4), abs=1e-9)


def test_order_clockwise_fixes_winding_and_start():
    ccw = np.array([[10, 0], [0, 0], [0, 10], [10, 10]], dtype=np.float32)
    ordered = order_clockwise(ccw)
    assert np.allclose(ordered, [[0, 0], [10, 0], [10, 10], [0, 10]])


def test_detects_single_marker(marker_frame):
    frame = marker_frame(3, x=250, y=170)

    markers = QuadDetector().detect(frame, **PARAMS)

    assert len(markers) == 1
    det = markers[0]
    assert det.marker_id == 3
    assert det.corners.shape == (4, 2)
    assert np.allclose(det.corners, _expected_corners(250, 170), atol=1.5)


def test_detects_marker_without_refinement(marker_frame):
    frame = marker_frame(3, x=100, y=60)

    markers = QuadDetector(corner_refine=False).detect(frame, **PARAMS)

    assert [m.marker_id for m in markers] == [3]
    assert np.allclose(markers[0].corners, _expected_corners(100, 60), atol=1.5)


def test_rotated_marker_corners_start_at_marker_top_left(marker_frame):
    frame = marker_frame(0, x=250, y=170, rotations=1)

    markers = QuadDetector().detect(frame, **PARAMS)

    assert [m.marker_id for m in markers] == [0]
    expected = np.roll(_expected_corners(250, 170), 1, axis=0)
    assert np.allclose(markers[0].corners, expected, atol=1.5)


def test_detects_two_markers(marker_frame):
    frame = marker_frame(3, x=40, y=40)
    second = marker_frame(42, x=400, y=250)
    frame[250:250 + MARKER_PX, 400:400 + MARKER_PX] = second[250:250 + MARKER_PX, 400:400 + MARKER_PX]

    markers = QuadDetector().detect(frame, **PARAMS)

    assert sorted(m.marker_id for m in markers) == [3, 42]


def test_gray_input_accepted(marker_frame):
    gray = marker_frame(9)[:, :, 0].copy()
    markers = QuadDetector().detect(gray, **PARAMS)
    assert [m.marker_id for m in markers] == [9]


@pytest.mark.parametrize("value", [0, 255])
def test_uniform_frame_yields_nothing(value):
    frame = np.full((480, 640, 3), value, dtype=np.uint8)
    report = QuadDetector().detect_report(frame, **PARAMS)
    assert report.markers == []
    assert report.quads == 0


def test_empty_frame_yields_nothing():
    assert QuadDetector().detect(np.zeros((0, 0, 3), dtype=np.uint8), **PARAMS) == []
    assert QuadDetector().detect(None, **PARAMS) == []


def test_min_area_filters_small_quads(marker_frame):
    frame = marker_frame(3)
    report = QuadDetector().detect_report(frame, 0.7, 13, MARKER_PX * MARKER_PX * 2, 0.035)
    assert report.quads == 0


def test_undecodable_square_is_rejected_silently(blank_frame):
    blank_frame[100:240, 100:240] = 0
    report = QuadDetector().detect_report(blank_frame, **PARAMS)
    assert report.quads == 1
    assert report.rejected == 1
    assert report.markers == []


def test_accepted_quads_respect_cosine_and_area(blank_frame):
    # a square and a strongly sheared parallelogram
    blank_frame[50:150, 50:150] = 0
    pts = np.array([[300, 300], [400, 300], [550, 420], [450, 420]], dtype=np.int32)
    cv2.fillConvexPoly(blank_frame, pts, (0, 0, 0))
    gray = blank_frame[:, :, 0].copy()

    detector = QuadDetector()
    quads = detector.find_quads(gray, 0.7, 13, 100, 0.035)

    assert len(quads) == 1
    for quad in quads:
        assert max_corner_cosine(quad) <= 0.7
        assert abs(cv2.contourArea(quad.astype(np.float32))) >= 100

    loose = detector.find_quads(gray, 0.9, 13, 100, 0.035)
    assert len(loose) == 2
