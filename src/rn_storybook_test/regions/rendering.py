"""
Preview rendering for suggested ignore regions.

Draws the regions on top of the original screenshot so they can be checked
visually before being passed to a comparison run.
"""

from pathlib import Path
from typing import List, Tuple

import cv2
import numpy as np
from PIL import Image

from ..logging import get_logger
from .detection import DiffRegion

logger = get_logger(__name__)

PREVIEW_COLOR: Tuple[int, int, int, int] = (255, 0, 0, 255)
PREVIEW_THICKNESS = 2


def draw_regions(
    image: np.ndarray,
    regions: List[DiffRegion],
    color: Tuple[int, int, int, int] = PREVIEW_COLOR,
    thickness: int = PREVIEW_THICKNESS,
) -> np.ndarray:
    """
    Return a copy of an RGBA image with each region outlined.

    Borders are drawn inside the region so a region touching the image edge
    stays fully visible.
    """
    canvas = np.ascontiguousarray(image).copy()
    height, width = canvas.shape[:2]

    for region in regions:
        x0 = max(0, region.x)
        y0 = max(0, region.y)
        x1 = min(width, region.x + region.width) - 1
        y1 = min(height, region.y + region.height) - 1
        if x1 < x0 or y1 < y0:
            continue

        for offset in range(thickness):
            left, top = x0 + offset, y0 + offset
            right, bottom = x1 - offset, y1 - offset
            if right < left or bottom < top:
                break
            cv2.rectangle(canvas, (left, top), (right, bottom), color, thickness=1)

    return canvas


def render_region_preview(
    original_path: Path,
    regions: List[DiffRegion],
    output_path: Path,
) -> Path:
    """
    Draw regions over the original screenshot and save it as PNG.

    Args:
        original_path: screenshot the diff image was produced from
        regions: regions to outline
        output_path: where to write the preview

    Returns:
        The path of the written preview
    """
    with Image.open(original_path) as img:
        pixels = np.array(img.convert("RGBA"))

    preview = draw_regions(pixels, regions)
    Image.fromarray(preview).save(output_path, format="PNG")

    logger.debug(f"Rendered {len(regions)} regions onto {original_path} -> {output_path}")
    return output_path
