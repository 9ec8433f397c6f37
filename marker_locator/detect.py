from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import cv2
import numpy as np

from .decode import HammingDecoder, MarkerDecoder
from .marker_types import DetectedMarker

logger = logging.getLogger(__name__)


@dataclass
class DetectionReport:
    """Markers found in one frame plus how many quads failed to decode."""

    markers: list[DetectedMarker] = field(default_factory=list)
    quads: int = 0
    rejected: int = 0


def to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def angle_cosine(p1: np.ndarray, p2: np.ndarray, p0: np.ndarray) -> float:
    """Cosine of the angle at ``p0`` between edges p0->p1 and p0->p2."""
    d1 = p1 - p0
    d2 = p2 - p0
    denom = float(np.sqrt(np.dot(d1, d1) * np.dot(d2, d2)) + 1e-10)
    return float(np.dot(d1, d2)) / denom


def max_corner_cosine(quad: np.ndarray) -> float:
    quad = np.asarray(quad, dtype=np.float64).reshape(4, 2)
    return max(
        abs(angle_cosine(quad[(i + 1) % 4], quad[(i + 3) % 4], quad[i]))
        for i in range(4)
    )


def order_clockwise(quad: np.ndarray) -> np.ndarray:
    """
    Return the quad with clockwise image winding (y down), starting at the
    vertex closest to the top-left of its bounding box.
    """
    quad = np.asarray(quad, dtype=np.float32).reshape(4, 2)
    # shoelace sum is negative for counter-clockwise in y-down image axes
    x, y = quad[:, 0], quad[:, 1]
    signed = float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))
    if signed < 0:
        quad = quad[::-1]
    start = int(np.argmin(quad[:, 0] + quad[:, 1]))
    return np.roll(quad, -start, axis=0)


class QuadDetector:
    """
    Finds square fiducial candidates: adaptive threshold, outer contours,
    polygon simplification, then convexity, area and angle filtering before
    handing each quad to the bit-pattern decoder.
    """

    def __init__(
        self,
        decoder: Optional[MarkerDecoder] = None,
        threshold_offset: float = 7.0,
        corner_refine: bool = True,
    ):
        self.decoder = decoder or HammingDecoder()
        self.threshold_offset = threshold_offset
        self.corner_refine = corner_refine

    def find_quads(
        self,
        gray: np.ndarray,
        cosine_limit: float,
        block_size: int,
        min_area: float,
        max_error: float,
    ) -> list[np.ndarray]:
        if block_size % 2 == 0:
            block_size += 1
        block_size = max(3, block_size)

        binary = cv2.adaptiveThreshold(
            gray,
            255,
            cv2.ADAPTIVE_THRESH_MEAN_C,
            cv2.THRESH_BINARY_INV,
            block_size,
            self.threshold_offset,
        )
        contours, _ = cv2.findContours(binary, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_NONE)

        quads = []
        for contour in contours:
            approx = cv2.approxPolyDP(contour, cv2.arcLength(contour, True) * max_error, True)
            if len(approx) != 4:
                continue
            if not cv2.isContourConvex(approx):
                continue
            if abs(cv2.contourArea(approx)) < min_area:
                continue
            if max_corner_cosine(approx) > cosine_limit:
                continue
            quads.append(order_clockwise(approx))
        return quads

    def refine(self, gray: np.ndarray, quad: np.ndarray) -> np.ndarray:
        criteria = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 30, 0.01)
        pts = quad.reshape(-1, 1, 2).astype(np.float32)
        cv2.cornerSubPix(gray, pts, (5, 5), (-1, -1), criteria)
        return pts.reshape(4, 2)

    def detect_report(
        self,
        image: np.ndarray,
        cosine_limit: float,
        block_size: int,
        min_area: float,
        max_error: float,
    ) -> DetectionReport:
        report = DetectionReport()
        if image is None or image.size == 0:
            return report

        gray = to_gray(image)
        quads = self.find_quads(gray, cosine_limit, block_size, min_area, max_error)
        report.quads = len(quads)

        for quad in quads:
            decoded = self.decoder.decode(gray, quad)
            if decoded is None:
                report.rejected += 1
                continue
            marker_id, corners = decoded
            if self.corner_refine:
                corners = self.refine(gray, corners)
            report.markers.append(DetectedMarker(int(marker_id), np.asarray(corners, dtype=np.float32)))

        return report

    def detect(
        self,
        image: np.ndarray,
        cosine_limit: float,
        block_size: int,
        min_area: float,
        max_error: float,
    ) -> list[DetectedMarker]:
        return self.detect_report(image, cosine_limit, block_size, min_area, max_error).markers
