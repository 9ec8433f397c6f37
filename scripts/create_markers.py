#!/usr/bin/env python3
"""Generate printable marker images for the marker locator.

Each marker is written as a PNG with a white quiet zone around the black
border so the quad detector can find its outline once printed.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import cv2
import numpy as np

from marker_locator.decode import GRID_CELLS, MAX_MARKER_ID, marker_image


def create_marker(marker_id: int, size_px: int = 350, margin_cells: int = 1) -> np.ndarray:
    """Create a marker image.

    Args:
        marker_id: Marker id in [0, 1023]
        size_px: Approximate edge length of the marker itself in pixels
        margin_cells: White quiet zone around the marker, in cells

    Returns:
        Marker image (grayscale)
    """
    cell_px = max(1, size_px // GRID_CELLS)
    img = marker_image(marker_id, cell_px)
    pad = margin_cells * cell_px
    return cv2.copyMakeBorder(img, pad, pad, pad, pad, cv2.BORDER_CONSTANT, value=255)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Generate printable marker images")
    parser.add_argument(
        "--output-dir",
        type=str,
        default="markers",
        help="Output directory (default: markers)",
    )
    parser.add_argument(
        "--marker-ids",
        type=int,
        nargs="+",
        required=True,
        help="Marker IDs to generate (e.g., 0 1 2 3)",
    )
    parser.add_argument("--size", type=int, default=350, help="Marker size in pixels (default: 350)")
    parser.add_argument("--margin", type=int, default=1, help="Quiet zone in cells (default: 1)")

    args = parser.parse_args(argv)

    bad = [m for m in args.marker_ids if not 0 <= m <= MAX_MARKER_ID]
    if bad:
        print(f"Error: marker ids must be in [0, {MAX_MARKER_ID}]: {bad}", file=sys.stderr)
        return 1

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    for marker_id in args.marker_ids:
        output_path = output_dir / f"marker_{marker_id}.png"
        cv2.imwrite(str(output_path), create_marker(marker_id, args.size, args.margin))
        print(f"Created marker: {output_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
