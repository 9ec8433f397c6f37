"""Marker bit-pattern classifiers.

A decoder receives the gray image and the four corners of a candidate quad
(top-left, top-right, bottom-right, bottom-left in image winding) and either
rejects it or returns the marker id together with the corners rotated so that
index 0 is the marker's own top-left corner.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Tuple

import cv2
import numpy as np

# Classic ArUco 5x5 Hamming code: each row carries 2 bits of the id.
HAMMING_WORDS = (
    (1, 0, 0, 0, 0),
    (1, 0, 1, 1, 1),
    (0, 1, 0, 0, 1),
    (0, 1, 1, 1, 0),
)
DATA_BITS = 5
GRID_CELLS = DATA_BITS + 2  # data plus one cell of black border on each side
MAX_MARKER_ID = 1023


class MarkerDecoder(ABC):
    @abstractmethod
    def decode(self, gray: np.ndarray, corners: np.ndarray) -> Optional[Tuple[int, np.ndarray]]: ...


def marker_bits(marker_id: int) -> np.ndarray:
    """5x5 data grid (1 = white) for ``marker_id`` in the classic ArUco code."""
    if not 0 <= marker_id <= MAX_MARKER_ID:
        raise ValueError(f"marker id must be in [0, {MAX_MARKER_ID}], got {marker_id}")
    rows = []
    for row in range(DATA_BITS):
        chunk = (marker_id >> (2 * (DATA_BITS - 1 - row))) & 0b11
        rows.append(HAMMING_WORDS[chunk])
    return np.array(rows, dtype=np.uint8)


def marker_image(marker_id: int, cell_px: int = 20) -> np.ndarray:
    """Render a marker (black border included) as a uint8 image."""
    grid = np.zeros((GRID_CELLS, GRID_CELLS), dtype=np.uint8)
    grid[1:-1, 1:-1] = marker_bits(marker_id)
    img = (grid * 255).astype(np.uint8)
    return np.kron(img, np.ones((cell_px, cell_px), dtype=np.uint8))


def _hamming_distance(bits: np.ndarray) -> int:
    words = np.array(HAMMING_WORDS, dtype=np.uint8)
    total = 0
    for row in bits:
        total += int(np.min(np.sum(words != row, axis=1)))
    return total


def _bits_to_id(bits: np.ndarray) -> int:
    marker_id = 0
    for row in bits:
        marker_id = (marker_id << 1) | int(row[1])
        marker_id = (marker_id << 1) | int(row[3])
    return marker_id


class HammingDecoder(MarkerDecoder):
    """
    Reads the 7x7 cell grid of a classic ArUco marker.

    The quad is warped to a square, binarized with Otsu and each cell is
    sampled at its center. The outer ring of cells must be black; the inner
    5x5 grid is tried in all four rotations against the Hamming code.
    """

    def __init__(self, cell_px: int = 10, max_border_errors: int = 0):
        self.cell_px = cell_px
        self.max_border_errors = max_border_errors

    def read_cells(self, gray: np.ndarray, corners: np.ndarray) -> np.ndarray:
        side = self.cell_px * GRID_CELLS
        dst = np.array(
            [[0, 0], [side - 1, 0], [side - 1, side - 1], [0, side - 1]],
            dtype=np.float32,
        )
        M = cv2.getPerspectiveTransform(np.asarray(corners, dtype=np.float32), dst)
        warped = cv2.warpPerspective(gray, M, (side, side), flags=cv2.INTER_NEAREST)
        _, binary = cv2.threshold(warped, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)

        margin = self.cell_px // 4
        cells = np.zeros((GRID_CELLS, GRID_CELLS), dtype=np.uint8)
        for r in range(GRID_CELLS):
            for c in range(GRID_CELLS):
                y0, x0 = r * self.cell_px + margin, c * self.cell_px + margin
                patch = binary[y0:y0 + self.cell_px - 2 * margin, x0:x0 + self.cell_px - 2 * margin]
                cells[r, c] = 1 if patch.mean() > 127 else 0
        return cells

    def decode(self, gray: np.ndarray, corners: np.ndarray) -> Optional[Tuple[int, np.ndarray]]:
        cells = self.read_cells(gray, corners)

        border = np.concatenate([cells[0, :], cells[-1, :], cells[1:-1, 0], cells[1:-1, -1]])
        if int(border.sum()) > self.max_border_errors:
            return None

        seen = cells[1:-1, 1:-1]
        for k in range(4):
            # seen == rot90(canonical, k): the canonical top-left sits k corners back
            bits = np.rot90(seen, -k)
            if _hamming_distance(bits) == 0:
                ordered = np.roll(np.asarray(corners, dtype=np.float32), k, axis=0)
                return _bits_to_id(bits), ordered
        return None
